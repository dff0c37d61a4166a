"""
Best-effort email notifications for approval decisions and new offers.

Every attempt is written to the ``notifications`` table. Failures are logged
and recorded but never raised: the calling workflow has already committed its
own change and must not be rolled back by a delivery problem.

The dispatcher opens its own sessions from a session factory, so a failed
write here never touches the request's session. ``offer_posted`` runs as a
background task after the create response has gone out.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.config import settings
from app.models.notification import Notification
from app.models.offer import Offer
from app.models.profile import DonorProfile, PartnerProfile
from app.models.user import User
from app.services.email import EmailClient, EmailResult, render_template
from app.services.platform import get_or_create_platform_settings

logger = logging.getLogger(__name__)

PARTNER_APPROVED = "partner_approved"
PARTNER_REJECTED = "partner_rejected"
OFFER_POSTED = "offer_posted"

SUBJECTS = {
    PARTNER_APPROVED: "Welcome aboard, {{org_name}}! Your partner application is approved",
    PARTNER_REJECTED: "Update on your partner application for {{org_name}}",
    OFFER_POSTED: "New food available: {{title}} ({{quantity}} {{unit}})",
}


@dataclass(frozen=True)
class Recipient:
    user_id: int
    email: str
    name: str | None


def _long_date(dt: datetime) -> str:
    # e.g. "March 5, 2025"
    return f"{dt.strftime('%B')} {dt.day}, {dt.year}"


class NotificationDispatcher:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession], email: EmailClient) -> None:
        self.session_factory = session_factory
        self.email = email

    async def _enabled(self) -> bool:
        async with self.session_factory() as session:
            platform = await get_or_create_platform_settings(session)
            return platform.email_notifications

    async def _support_email(self) -> str:
        async with self.session_factory() as session:
            platform = await get_or_create_platform_settings(session)
            return platform.support_email

    async def _deliver(self, to: Recipient, template_key: str, variables: dict[str, str]) -> EmailResult:
        try:
            return await self.email.send_templated_email(to.email, template_key, variables)
        except Exception as exc:  # delivery must never break the caller
            logger.exception("Email dispatch crashed for %s: %s", template_key, exc)
            return EmailResult(ok=False, error=str(exc))

    async def _record(self, rows: list[tuple[Recipient, dict[str, str], EmailResult]], template_key: str) -> None:
        subject_template = SUBJECTS.get(template_key, template_key)
        async with self.session_factory() as session:
            for to, variables, result in rows:
                session.add(
                    Notification(
                        user_id=to.user_id,
                        type="email",
                        template_key=template_key,
                        recipient=to.email,
                        subject=render_template(subject_template, variables),
                        payload=variables,
                        success=result.ok,
                        error=(result.error or "")[:500] or None,
                    )
                )
            try:
                await session.commit()
            except SQLAlchemyError as exc:
                await session.rollback()
                logger.error("Could not record %d %s notification(s): %s", len(rows), template_key, exc)

    async def _send(self, to: Recipient, template_key: str, variables: dict[str, str]) -> EmailResult:
        result = await self._deliver(to, template_key, variables)
        await self._record([(to, variables, result)], template_key)
        return result

    async def _org_name(self, user_id: int) -> str | None:
        async with self.session_factory() as session:
            result = await session.execute(
                select(PartnerProfile.org_name).where(PartnerProfile.user_id == user_id)
            )
            return result.scalar_one_or_none()

    # ── Approval decisions ─────────────────────────────────────────
    async def partner_approved(self, partner: User) -> bool:
        if not await self._enabled():
            logger.info("Email notifications disabled; approval email for %s skipped", partner.id)
            return False
        to = Recipient(partner.id, partner.email, partner.name)
        variables = {
            "partner_name": partner.name or "Partner",
            "org_name": await self._org_name(partner.id) or "Your Organization",
            "email": partner.email,
            "approved_date": _long_date(partner.approved_at or datetime.now(timezone.utc)),
            "dashboard_link": f"{settings.APP_URL}/dashboard/partner",
            "support_email": await self._support_email(),
        }
        result = await self._send(to, PARTNER_APPROVED, variables)
        return result.ok

    async def partner_rejected(self, partner: User) -> bool:
        if not await self._enabled():
            logger.info("Email notifications disabled; rejection email for %s skipped", partner.id)
            return False
        to = Recipient(partner.id, partner.email, partner.name)
        variables = {
            "partner_name": partner.name or "Partner",
            "org_name": await self._org_name(partner.id) or "Your Organization",
            "email": partner.email,
            "rejection_reason": partner.rejection_reason or "",
            "reviewed_date": _long_date(partner.approved_at or datetime.now(timezone.utc)),
            "support_link": f"{settings.APP_URL}/contact",
            "support_email": await self._support_email(),
        }
        result = await self._send(to, PARTNER_REJECTED, variables)
        return result.ok

    # ── New offers ─────────────────────────────────────────────────
    async def offer_posted(self, offer_id: int) -> int:
        """Tell every approved, non-banned partner about a new offer.

        Meant to run as a background task: the offer and its recipients are
        read fresh, then every email goes out concurrently. Returns the number
        of partners the email function accepted.
        """
        if not await self._enabled():
            return 0

        async with self.session_factory() as session:
            result = await session.execute(
                select(Offer, User.name, DonorProfile.business_name)
                .join(User, User.id == Offer.donor_id)
                .outerjoin(DonorProfile, DonorProfile.user_id == Offer.donor_id)
                .where(Offer.id == offer_id)
            )
            row = result.first()
            if row is None:
                logger.info("Offer %s is gone; nobody notified", offer_id)
                return 0
            offer, donor_name, business_name = row

            partners_result = await session.execute(
                select(User.id, User.email, User.name)
                .where(
                    User.role == "partner",
                    User.approved.is_(True),
                    User.banned.is_(False),
                )
                .order_by(User.id)
            )
            recipients = [Recipient(*r) for r in partners_result.all()]

        if not recipients:
            logger.info("No partners to notify for offer %s", offer_id)
            return 0

        quantity = offer.quantity_est
        base = {
            "title": offer.title,
            "donor_name": business_name or donor_name or "A donor",
            "quantity": f"{quantity:g}" if quantity is not None else "N/A",
            "unit": offer.quantity_unit or "kg",
            "food_type": offer.food_type or "Food",
            "pickup_start": offer.pickup_window_start.strftime("%Y-%m-%d %H:%M"),
            "pickup_end": offer.pickup_window_end.strftime("%Y-%m-%d %H:%M"),
            "address": offer.address or "See map",
            "offer_link": f"{settings.APP_URL}/dashboard/partner/browse?offer={offer_id}",
        }

        personalised = [{**base, "partner_name": to.name or "Partner"} for to in recipients]
        results = await asyncio.gather(
            *(self._deliver(to, OFFER_POSTED, v) for to, v in zip(recipients, personalised))
        )
        await self._record(list(zip(recipients, personalised, results)), OFFER_POSTED)

        sent = sum(1 for r in results if r.ok)
        logger.info("Notified %d/%d partners of offer %s", sent, len(recipients), offer_id)
        return sent
