"""
Partner approval workflow and admin user management.

Approve / reject commit the decision first, then dispatch the email. A
delivery failure is logged and reported as ``email_sent=False``; it never
reverts the decision.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import HTTPException, status
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.session import SessionContext
from app.models.offer import Assignment, Offer
from app.models.profile import PartnerProfile
from app.models.user import User
from app.schemas.common import MessageResponse
from app.schemas.offer import AdminOfferRead, OfferRead
from app.schemas.user import ApplicationRead, UserRead
from app.services.notifications import NotificationDispatcher

logger = logging.getLogger(__name__)

APPLICATION_STATUSES = {
    "pending": User.approved.is_(None),
    "approved": User.approved.is_(True),
    "rejected": User.approved.is_(False),
}


def validate_rejection_reason(reason: str | None) -> str:
    """Reject decisions need a non-blank reason; checked before any DB access."""
    cleaned = (reason or "").strip()
    if not cleaned:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Please provide a rejection reason",
        )
    return cleaned


async def _get_user(db: AsyncSession, user_id: int) -> User:
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


async def _get_partner(db: AsyncSession, user_id: int) -> User:
    user = await _get_user(db, user_id)
    if user.role != "partner":
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Only partner applications can be reviewed",
        )
    return user


# ── Applications ────────────────────────────────────────────────────
async def list_applications(
    db: AsyncSession, status_filter: str = "pending"
) -> list[ApplicationRead]:
    stmt = (
        select(User, PartnerProfile.org_name)
        .outerjoin(PartnerProfile, PartnerProfile.user_id == User.id)
        .where(User.role == "partner")
        .order_by(User.created_at.desc(), User.id.desc())
    )
    if status_filter != "all":
        clause = APPLICATION_STATUSES.get(status_filter)
        if clause is None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Status must be one of: pending, approved, rejected, all",
            )
        stmt = stmt.where(clause)
    result = await db.execute(stmt)
    return [
        ApplicationRead(**UserRead.model_validate(user).model_dump(), org_name=org_name)
        for user, org_name in result.all()
    ]


async def approve_partner(
    db: AsyncSession,
    ctx: SessionContext,
    partner_id: int,
    notifier: NotificationDispatcher,
) -> MessageResponse:
    partner = await _get_partner(db, partner_id)
    if partner.approved is True:
        return MessageResponse(success=True, message="Partner is already approved", email_sent=False)

    partner.approved = True
    partner.approved_at = datetime.now(timezone.utc)
    partner.approved_by = ctx.user_id
    partner.rejection_reason = None
    await db.commit()
    logger.info("Admin %s approved partner %s", ctx.user_id, partner.id)

    email_sent = await notifier.partner_approved(partner)
    if not email_sent:
        logger.warning("Approval email for partner %s was not delivered", partner.id)
    return MessageResponse(
        success=True,
        message="Partner approved successfully",
        email_sent=email_sent,
    )


async def reject_partner(
    db: AsyncSession,
    ctx: SessionContext,
    partner_id: int,
    reason: str | None,
    notifier: NotificationDispatcher,
) -> MessageResponse:
    reason = validate_rejection_reason(reason)
    partner = await _get_partner(db, partner_id)

    partner.approved = False
    partner.approved_at = datetime.now(timezone.utc)
    partner.approved_by = ctx.user_id
    partner.rejection_reason = reason
    await db.commit()
    logger.info("Admin %s rejected partner %s", ctx.user_id, partner.id)

    email_sent = await notifier.partner_rejected(partner)
    if not email_sent:
        logger.warning("Rejection email for partner %s was not delivered", partner.id)
    return MessageResponse(
        success=True,
        message="Partner application rejected",
        email_sent=email_sent,
    )


# ── Users ───────────────────────────────────────────────────────────
async def list_users(
    db: AsyncSession,
    role: str | None = None,
    status_filter: str | None = None,
    search: str | None = None,
) -> list[UserRead]:
    stmt = select(User).order_by(User.created_at.desc(), User.id.desc())
    if role and role != "all":
        stmt = stmt.where(User.role == role)
    if status_filter == "active":
        stmt = stmt.where(User.banned.is_(False))
    elif status_filter == "banned":
        stmt = stmt.where(User.banned.is_(True))
    if search and search.strip():
        pattern = f"%{search.strip()}%"
        stmt = stmt.where(or_(User.email.ilike(pattern), User.name.ilike(pattern)))
    result = await db.execute(stmt)
    return [UserRead.model_validate(u) for u in result.scalars().all()]


async def toggle_ban(db: AsyncSession, ctx: SessionContext, user_id: int) -> UserRead:
    if user_id == ctx.user_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="You cannot ban your own account",
        )
    user = await _get_user(db, user_id)
    user.banned = not user.banned
    await db.commit()
    logger.info("Admin %s %s user %s", ctx.user_id, "banned" if user.banned else "unbanned", user.id)
    return UserRead.model_validate(user)


async def change_role(db: AsyncSession, ctx: SessionContext, user_id: int, role: str) -> UserRead:
    if user_id == ctx.user_id and role != "admin":
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="You cannot remove your own admin role",
        )
    user = await _get_user(db, user_id)
    old_role = user.role
    if old_role == role:
        return UserRead.model_validate(user)

    user.role = role
    if role == "partner":
        # A newly made partner goes through review like any applicant
        user.approved = None
        user.approved_at = None
        user.approved_by = None
    elif old_role == "partner":
        user.approved = True
        user.rejection_reason = None
    await db.commit()
    logger.info("Admin %s changed role of user %s: %s -> %s", ctx.user_id, user.id, old_role, role)
    return UserRead.model_validate(user)


# ── Offers ──────────────────────────────────────────────────────────
async def list_all_offers(
    db: AsyncSession,
    status_filter: str | None = None,
    search: str | None = None,
) -> list[AdminOfferRead]:
    stmt = (
        select(Offer, User)
        .join(User, User.id == Offer.donor_id)
        .options(selectinload(Offer.assignments).selectinload(Assignment.partner))
        .order_by(Offer.created_at.desc(), Offer.id.desc())
    )
    if status_filter and status_filter != "all":
        stmt = stmt.where(Offer.status == status_filter)
    if search and search.strip():
        pattern = f"%{search.strip()}%"
        stmt = stmt.where(
            or_(
                Offer.title.ilike(pattern),
                Offer.description.ilike(pattern),
                User.name.ilike(pattern),
            )
        )
    result = await db.execute(stmt)

    offers: list[AdminOfferRead] = []
    for offer, donor in result.all():
        latest = offer.assignments[-1] if offer.assignments else None
        offers.append(
            AdminOfferRead(
                **OfferRead.model_validate(offer).model_dump(),
                donor_name=donor.name,
                donor_email=donor.email,
                partner_name=latest.partner.name if latest and latest.partner else None,
                assignment_status=latest.status if latest else None,
            )
        )
    return offers
