"""
Offer lifecycle — create, accept, verify pickup, cancel, delete.

Every function takes the request's ``SessionContext`` and an ``AsyncSession``.
Multi-step writes (accept / complete / cancel) lock the offer row and commit
once, so either every row changes or none does.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import BackgroundTasks, HTTPException, status
from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.config import settings
from app.core.lifecycle import (
    ACTIVE_ASSIGNMENT_STATUSES,
    COMPLETED_OFFER_STATUSES,
    AssignmentStatus,
    OfferStatus,
    ensure_assignment_transition,
    ensure_offer_transition,
    generate_otp,
    otp_matches,
)
from app.core.session import SessionContext
from app.models.offer import Assignment, Offer
from app.models.profile import DonorProfile
from app.models.user import User
from app.schemas.offer import (
    AcceptResponse,
    AssignmentRead,
    AvailableOfferRead,
    DonorOfferRead,
    OfferCreate,
    OfferCreated,
    OfferRead,
    PickupRead,
)
from app.services.geocoding import Geocoder, GeocodingError, haversine_km
from app.services.notifications import NotificationDispatcher
from app.services.platform import get_or_create_platform_settings
from app.services.storage import ObjectStorage, StorageError, offer_image_path

logger = logging.getLogger(__name__)

PROFILE_MISSING = "User profile not found. Please refresh the page and try again."
PERMISSION_DENIED = "Permission denied. Please make sure you are logged in as a donor."
IMAGE_UPLOAD_FAILED = "Image upload failed, continuing without image"
GEOCODE_FAILED = "Could not locate the pickup address on the map"


# ── Read helpers ────────────────────────────────────────────────────
def _assignment_read(a: Assignment) -> AssignmentRead:
    partner = a.partner
    return AssignmentRead.model_validate(a).model_copy(
        update={
            "partner_name": partner.name if partner else None,
            "partner_phone": partner.phone if partner else None,
        }
    )


def _donor_offer_read(offer: Offer, assignments: list[Assignment] | None = None) -> DonorOfferRead:
    if assignments is None:
        assignments = list(offer.assignments)
    return DonorOfferRead(
        **OfferRead.model_validate(offer).model_dump(),
        assignments=[_assignment_read(a) for a in assignments],
    )


def _pickup_read(
    a: Assignment, offer: Offer, donor: User | None, profile: DonorProfile | None
) -> PickupRead:
    return PickupRead(
        assignment=_assignment_read(a),
        offer=OfferRead.model_validate(offer),
        donor_name=donor.name if donor else None,
        business_name=profile.business_name if profile else None,
        donor_address=profile.address if profile else None,
    )


def _search_clause(search: str):
    pattern = f"%{search.strip()}%"
    return or_(
        Offer.title.ilike(pattern),
        Offer.description.ilike(pattern),
        Offer.food_type.ilike(pattern),
    )


async def _get_offer_for_update(db: AsyncSession, offer_id: int) -> Offer:
    result = await db.execute(
        select(Offer)
        .where(Offer.id == offer_id)
        .options(selectinload(Offer.assignments).selectinload(Assignment.partner))
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    offer = result.scalar_one_or_none()
    if offer is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Offer not found")
    return offer


async def _get_own_offer_for_update(db: AsyncSession, ctx: SessionContext, offer_id: int) -> Offer:
    offer = await _get_offer_for_update(db, offer_id)
    if offer.donor_id != ctx.user_id:
        # Not revealing other donors' offers
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Offer not found")
    return offer


async def _get_own_assignment_for_update(
    db: AsyncSession, ctx: SessionContext, assignment_id: int
) -> tuple[Assignment, Offer]:
    result = await db.execute(
        select(Assignment.offer_id, Assignment.partner_id).where(Assignment.id == assignment_id)
    )
    row = result.first()
    if row is None or row.partner_id != ctx.user_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Pickup not found")
    # Lock the parent offer; its assignments are re-read under the lock
    offer = await _get_offer_for_update(db, row.offer_id)
    assignment = next((a for a in offer.assignments if a.id == assignment_id), None)
    if assignment is None:
        # Removed between the two reads
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Pickup not found")
    return assignment, offer


# ── Donor: create ───────────────────────────────────────────────────
async def create_offer(
    db: AsyncSession,
    ctx: SessionContext,
    data: OfferCreate,
    *,
    notifier: NotificationDispatcher,
    background_tasks: BackgroundTasks,
    geocoder: Geocoder | None = None,
    storage: ObjectStorage | None = None,
    image: tuple[str | None, bytes] | None = None,
) -> OfferCreated:
    """Create an ``available`` offer.

    The image (``(filename, content)``) is uploaded first; an upload failure is
    reported as a warning and the offer is created without it. Addresses
    without coordinates are geocoded best-effort. Partner emails are queued
    on ``background_tasks`` and go out after the response.
    """
    if ctx.role != "donor":
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=PERMISSION_DENIED)

    warnings: list[str] = []

    image_url: str | None = None
    if image is not None and storage is not None:
        filename, content = image
        try:
            path = offer_image_path(ctx.user_id, filename)
            stored = await storage.upload(settings.OFFER_IMAGE_BUCKET, path, content)
            image_url = storage.get_public_url(settings.OFFER_IMAGE_BUCKET, stored)
        except StorageError as exc:
            logger.warning("Offer image upload failed for donor %s: %s", ctx.user_id, exc)
            warnings.append(IMAGE_UPLOAD_FAILED)

    latitude, longitude = data.latitude, data.longitude
    if latitude is None and data.address and geocoder is not None:
        try:
            point = await geocoder.geocode(data.address)
        except GeocodingError as exc:
            logger.warning("Geocoding failed for offer address: %s", exc)
            point = None
        if point is None:
            warnings.append(GEOCODE_FAILED)
        else:
            latitude, longitude = point.latitude, point.longitude

    offer = Offer(
        donor_id=ctx.user_id,
        title=data.title,
        description=data.description,
        quantity_est=data.quantity_est,
        quantity_unit=data.quantity_unit,
        food_type=data.food_type,
        pickup_window_start=data.pickup_window_start,
        pickup_window_end=data.pickup_window_end,
        address=data.address,
        latitude=latitude,
        longitude=longitude,
        image_path=image_url,
        status=OfferStatus.AVAILABLE.value,
    )
    db.add(offer)
    try:
        await db.commit()
    except IntegrityError as exc:
        await db.rollback()
        logger.error("Offer insert rejected for donor %s: %s", ctx.user_id, exc.orig)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=PROFILE_MISSING)
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.error("Offer insert failed for donor %s: %s", ctx.user_id, exc)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create offer. Please try again.",
        )
    await db.refresh(offer)
    logger.info("Donor %s created offer %s (%s)", ctx.user_id, offer.id, offer.title)

    background_tasks.add_task(notifier.offer_posted, offer.id)

    return OfferCreated(**OfferRead.model_validate(offer).model_dump(), warnings=warnings)


# ── Listing ─────────────────────────────────────────────────────────
async def list_my_offers(
    db: AsyncSession,
    ctx: SessionContext,
    status_filter: str | None = None,
    search: str | None = None,
) -> list[DonorOfferRead]:
    stmt = (
        select(Offer)
        .where(Offer.donor_id == ctx.user_id)
        .options(selectinload(Offer.assignments).selectinload(Assignment.partner))
        .order_by(Offer.created_at.desc(), Offer.id.desc())
    )
    if status_filter and status_filter != "all":
        stmt = stmt.where(Offer.status == status_filter)
    if search and search.strip():
        stmt = stmt.where(_search_clause(search))
    result = await db.execute(stmt)
    return [_donor_offer_read(o) for o in result.scalars().all()]


async def list_available_offers(
    db: AsyncSession,
    ctx: SessionContext,
    food_type: str | None = None,
    search: str | None = None,
    lat: float | None = None,
    lng: float | None = None,
) -> list[AvailableOfferRead]:
    """Available offers for a partner, nearest first when a location is given.

    With a location, offers farther than ``max_offer_distance_km`` are dropped;
    offers without coordinates are kept and listed last.
    """
    stmt = (
        select(Offer, User, DonorProfile)
        .join(User, User.id == Offer.donor_id)
        .outerjoin(DonorProfile, DonorProfile.user_id == Offer.donor_id)
        .where(Offer.status == OfferStatus.AVAILABLE.value)
        .order_by(Offer.created_at.desc(), Offer.id.desc())
    )
    if food_type and food_type != "all":
        stmt = stmt.where(Offer.food_type == food_type)
    if search and search.strip():
        stmt = stmt.where(_search_clause(search))
    result = await db.execute(stmt)

    max_km: float | None = None
    if lat is not None and lng is not None:
        max_km = (await get_or_create_platform_settings(db)).max_offer_distance_km

    offers: list[AvailableOfferRead] = []
    for offer, donor, profile in result.all():
        distance = None
        if max_km is not None and offer.latitude is not None and offer.longitude is not None:
            distance = round(haversine_km(lat, lng, offer.latitude, offer.longitude), 2)
            if distance > max_km:
                continue
        offers.append(
            AvailableOfferRead(
                **OfferRead.model_validate(offer).model_dump(),
                donor_name=donor.name,
                business_name=profile.business_name if profile else None,
                distance_km=distance,
            )
        )

    if max_km is not None:
        offers.sort(key=lambda o: (o.distance_km is None, o.distance_km or 0.0))
    return offers


async def get_offer(db: AsyncSession, ctx: SessionContext, offer_id: int) -> DonorOfferRead:
    """Single offer. Donors see their own; partners see available offers and
    those they hold an assignment on; admins see everything."""
    result = await db.execute(
        select(Offer)
        .where(Offer.id == offer_id)
        .options(selectinload(Offer.assignments).selectinload(Assignment.partner))
    )
    offer = result.scalar_one_or_none()
    if offer is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Offer not found")

    if ctx.is_admin or offer.donor_id == ctx.user_id:
        return _donor_offer_read(offer)
    if ctx.role == "partner":
        mine = [a for a in offer.assignments if a.partner_id == ctx.user_id]
        if mine or offer.status == OfferStatus.AVAILABLE.value:
            return _donor_offer_read(offer, mine)
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Offer not found")


# ── Partner: accept ─────────────────────────────────────────────────
async def accept_offer(db: AsyncSession, ctx: SessionContext, offer_id: int) -> AcceptResponse:
    offer = await _get_offer_for_update(db, offer_id)
    target = ensure_offer_transition(offer.status, OfferStatus.ACCEPTED)

    assignment = Assignment(
        offer_id=offer.id,
        partner_id=ctx.user_id,
        status=AssignmentStatus.PENDING.value,
        otp_code=generate_otp(),
    )
    db.add(assignment)
    offer.status = target.value
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        logger.info("Partner %s lost the race for offer %s", ctx.user_id, offer_id)
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="This offer has already been accepted by another partner",
        )
    await db.refresh(assignment, attribute_names=["partner"])
    logger.info("Partner %s accepted offer %s (assignment %s)", ctx.user_id, offer.id, assignment.id)

    return AcceptResponse(
        success=True,
        message="Offer accepted! Check your pickups for the verification code.",
        assignment=_assignment_read(assignment),
        offer=OfferRead.model_validate(offer),
    )


# ── Partner: pickups ────────────────────────────────────────────────
async def list_pickups(
    db: AsyncSession,
    ctx: SessionContext,
    status_filter: str | None = None,
) -> list[PickupRead]:
    stmt = (
        select(Assignment, User, DonorProfile)
        .join(Offer, Offer.id == Assignment.offer_id)
        .join(User, User.id == Offer.donor_id)
        .outerjoin(DonorProfile, DonorProfile.user_id == Offer.donor_id)
        .where(Assignment.partner_id == ctx.user_id)
        .options(selectinload(Assignment.offer), selectinload(Assignment.partner))
        .order_by(Assignment.created_at.desc(), Assignment.id.desc())
    )
    if status_filter == "active":
        stmt = stmt.where(Assignment.status.in_(ACTIVE_ASSIGNMENT_STATUSES))
    elif status_filter and status_filter != "all":
        stmt = stmt.where(Assignment.status == status_filter)
    result = await db.execute(stmt)
    return [_pickup_read(a, a.offer, donor, profile) for a, donor, profile in result.all()]


async def _pickup_for(db: AsyncSession, assignment: Assignment, offer: Offer) -> PickupRead:
    result = await db.execute(
        select(User, DonorProfile)
        .outerjoin(DonorProfile, DonorProfile.user_id == User.id)
        .where(User.id == offer.donor_id)
    )
    row = result.first()
    donor, profile = (row[0], row[1]) if row else (None, None)
    return _pickup_read(assignment, offer, donor, profile)


async def complete_pickup(
    db: AsyncSession,
    ctx: SessionContext,
    assignment_id: int,
    otp_code: str,
) -> PickupRead:
    """Verify the pickup code; on a match the assignment completes and the
    offer is delivered in one commit. A wrong code changes nothing."""
    assignment, offer = await _get_own_assignment_for_update(db, ctx, assignment_id)

    a_target = ensure_assignment_transition(assignment.status, AssignmentStatus.COMPLETED)
    o_target = ensure_offer_transition(offer.status, OfferStatus.DELIVERED)

    if not otp_matches(assignment.otp_code, otp_code):
        await db.rollback()
        logger.info("Wrong pickup code for assignment %s", assignment_id)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid OTP code")

    assignment.status = a_target.value
    assignment.completed_at = datetime.now(timezone.utc)
    offer.status = o_target.value
    await db.commit()
    logger.info("Pickup %s completed; offer %s delivered", assignment.id, offer.id)

    return await _pickup_for(db, assignment, offer)


async def cancel_pickup(db: AsyncSession, ctx: SessionContext, assignment_id: int) -> PickupRead:
    """Partner backs out: assignment cancelled, offer released to ``available``."""
    assignment, offer = await _get_own_assignment_for_update(db, ctx, assignment_id)

    a_target = ensure_assignment_transition(assignment.status, AssignmentStatus.CANCELLED)
    o_target = ensure_offer_transition(offer.status, OfferStatus.AVAILABLE)

    assignment.status = a_target.value
    offer.status = o_target.value
    await db.commit()
    logger.info("Pickup %s cancelled; offer %s available again", assignment.id, offer.id)

    return await _pickup_for(db, assignment, offer)


# ── Donor: cancel / delete ─────────────────────────────────────────
async def cancel_offer(db: AsyncSession, ctx: SessionContext, offer_id: int) -> DonorOfferRead:
    offer = await _get_own_offer_for_update(db, ctx, offer_id)
    target = ensure_offer_transition(offer.status, OfferStatus.CANCELLED)

    for a in offer.assignments:
        if a.status in ACTIVE_ASSIGNMENT_STATUSES:
            a.status = ensure_assignment_transition(a.status, AssignmentStatus.CANCELLED).value
    offer.status = target.value
    await db.commit()
    logger.info("Donor %s cancelled offer %s", ctx.user_id, offer.id)
    return _donor_offer_read(offer)


async def delete_offer(db: AsyncSession, ctx: SessionContext, offer_id: int) -> None:
    offer = await _get_own_offer_for_update(db, ctx, offer_id)
    if offer.status in COMPLETED_OFFER_STATUSES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Completed offers cannot be deleted",
        )
    await db.delete(offer)
    await db.commit()
    logger.info("Donor %s deleted offer %s", ctx.user_id, offer_id)
