"""
Dashboard figures for donors, partners and admins.

Each dashboard reads the rows it needs in a few queries and aggregates in
Python; volumes per user are small.
"""

from __future__ import annotations

import logging
import math
from collections import Counter, defaultdict
from datetime import datetime, timezone

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.config import settings
from app.core.lifecycle import (
    ACTIVE_ASSIGNMENT_STATUSES,
    COMPLETED_OFFER_STATUSES,
    AssignmentStatus,
    OfferStatus,
)
from app.core.session import SessionContext
from app.models.offer import Assignment, Offer
from app.models.profile import DonorProfile
from app.models.user import User
from app.schemas.dashboard import (
    AdminDashboard,
    DonorDashboard,
    PartnerDashboard,
    TopDonor,
    TopPartner,
)
from app.schemas.offer import AssignmentRead, OfferRead, PickupRead

logger = logging.getLogger(__name__)

LBS_TO_KG = 0.4536
RECENT_LIMIT = 5
TOP_LIMIT = 5


# ── Impact math ─────────────────────────────────────────────────────
def quantity_in_kg(quantity: float | None, unit: str | None) -> float:
    """Weight of an offer in kg; countable units (units, servings) weigh 0."""
    if not quantity:
        return 0.0
    unit = (unit or "kg").lower()
    if unit == "kg":
        return float(quantity)
    if unit == "lbs":
        return float(quantity) * LBS_TO_KG
    return 0.0


def co2_saved(kg: float) -> float:
    return round(kg * settings.CO2_KG_PER_KG_FOOD, 2)


def meals_from_kg(kg: float) -> int:
    return math.floor(kg / settings.KG_PER_MEAL)


def _offer_kg(offer: Offer) -> float:
    return quantity_in_kg(offer.quantity_est, offer.quantity_unit)


def _sort_key(dt: datetime | None) -> datetime:
    if dt is None:
        return datetime.min.replace(tzinfo=timezone.utc)
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


# ── Donor ───────────────────────────────────────────────────────────
async def donor_dashboard(db: AsyncSession, ctx: SessionContext) -> DonorDashboard:
    result = await db.execute(
        select(Offer)
        .where(Offer.donor_id == ctx.user_id)
        .options(selectinload(Offer.assignments))
    )
    offers = list(result.scalars().all())

    completed = [o for o in offers if o.status in COMPLETED_OFFER_STATUSES]
    active = [
        o for o in offers
        if o.status in (OfferStatus.AVAILABLE.value, OfferStatus.ACCEPTED.value)
    ]
    total_kg = round(sum(_offer_kg(o) for o in completed), 2)
    partners = {
        a.partner_id
        for o in offers
        for a in o.assignments
        if a.status == AssignmentStatus.COMPLETED.value
    }
    recent = sorted(
        (o for o in offers if o.status == OfferStatus.DELIVERED.value),
        key=lambda o: _sort_key(o.updated_at),
        reverse=True,
    )[:RECENT_LIMIT]

    return DonorDashboard(
        total_offers=len(offers),
        active_offers=len(active),
        completed_offers=len(completed),
        total_kg=total_kg,
        co2_saved_kg=co2_saved(total_kg),
        meals_provided=meals_from_kg(total_kg),
        partners_helped=len(partners),
        recent_deliveries=[OfferRead.model_validate(o) for o in recent],
    )


# ── Partner ─────────────────────────────────────────────────────────
async def partner_dashboard(db: AsyncSession, ctx: SessionContext) -> PartnerDashboard:
    available = await db.scalar(
        select(func.count(Offer.id)).where(Offer.status == OfferStatus.AVAILABLE.value)
    )

    result = await db.execute(
        select(Assignment, User, DonorProfile)
        .join(Offer, Offer.id == Assignment.offer_id)
        .join(User, User.id == Offer.donor_id)
        .outerjoin(DonorProfile, DonorProfile.user_id == Offer.donor_id)
        .where(Assignment.partner_id == ctx.user_id)
        .options(selectinload(Assignment.offer))
        .order_by(Assignment.created_at.desc(), Assignment.id.desc())
    )
    rows = result.all()

    counts = Counter(a.status for a, _, _ in rows)
    collected = sum(
        _offer_kg(a.offer) for a, _, _ in rows if a.status == AssignmentStatus.COMPLETED.value
    )
    recent = [
        PickupRead(
            assignment=AssignmentRead.model_validate(a),
            offer=OfferRead.model_validate(a.offer),
            donor_name=donor.name,
            business_name=profile.business_name if profile else None,
            donor_address=profile.address if profile else None,
        )
        for a, donor, profile in rows[:RECENT_LIMIT]
    ]

    return PartnerDashboard(
        available_offers=available or 0,
        active_pickups=sum(counts[s] for s in ACTIVE_ASSIGNMENT_STATUSES),
        completed_pickups=counts[AssignmentStatus.COMPLETED.value],
        cancelled_pickups=counts[AssignmentStatus.CANCELLED.value],
        total_kg_collected=round(collected, 2),
        recent_pickups=recent,
    )


# ── Admin ───────────────────────────────────────────────────────────
async def admin_dashboard(db: AsyncSession) -> AdminDashboard:
    users = list((await db.execute(select(User))).scalars().all())
    offers = list((await db.execute(select(Offer))).scalars().all())
    assignments = list((await db.execute(select(Assignment))).scalars().all())

    now = datetime.now(timezone.utc)
    month_start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    new_users = sum(1 for u in users if u.created_at and _sort_key(u.created_at) >= month_start)

    users_by_role = Counter(u.role for u in users)
    offers_by_status = Counter(o.status for o in offers)
    completed = [o for o in offers if o.status in COMPLETED_OFFER_STATUSES]
    total_kg = round(sum(_offer_kg(o) for o in completed), 2)

    users_by_id = {u.id: u for u in users}

    # Top donors by rescued kg
    donor_count: dict[int, int] = defaultdict(int)
    donor_kg: dict[int, float] = defaultdict(float)
    for o in offers:
        donor_count[o.donor_id] += 1
        if o.status in COMPLETED_OFFER_STATUSES:
            donor_kg[o.donor_id] += _offer_kg(o)
    top_donor_ids = sorted(donor_count, key=lambda d: (-donor_kg[d], -donor_count[d], d))
    top_donors = [
        TopDonor(
            id=d,
            name=users_by_id[d].name,
            email=users_by_id[d].email,
            count=donor_count[d],
            kg=round(donor_kg[d], 2),
        )
        for d in top_donor_ids[:TOP_LIMIT]
        if d in users_by_id
    ]

    # Top partners by completed pickups
    partner_count: dict[int, int] = defaultdict(int)
    partner_done: dict[int, int] = defaultdict(int)
    for a in assignments:
        partner_count[a.partner_id] += 1
        if a.status == AssignmentStatus.COMPLETED.value:
            partner_done[a.partner_id] += 1
    top_partner_ids = sorted(partner_count, key=lambda p: (-partner_done[p], -partner_count[p], p))
    top_partners = [
        TopPartner(
            id=p,
            name=users_by_id[p].name,
            email=users_by_id[p].email,
            count=partner_count[p],
            completed=partner_done[p],
        )
        for p in top_partner_ids[:TOP_LIMIT]
        if p in users_by_id
    ]

    return AdminDashboard(
        total_users=len(users),
        new_users_this_month=new_users,
        users_by_role=dict(users_by_role),
        pending_applications=sum(
            1 for u in users if u.role == "partner" and u.approved is None
        ),
        banned_users=sum(1 for u in users if u.banned),
        total_offers=len(offers),
        completed_offers=len(completed),
        offers_by_status=dict(offers_by_status),
        total_kg_rescued=total_kg,
        co2_saved_kg=co2_saved(total_kg),
        meals_provided=meals_from_kg(total_kg),
        top_donors=top_donors,
        top_partners=top_partners,
    )
