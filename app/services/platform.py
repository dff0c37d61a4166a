"""Access to the singleton platform settings row."""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings as app_settings
from app.models.platform_settings import PlatformSettings

logger = logging.getLogger(__name__)


async def get_or_create_platform_settings(db: AsyncSession) -> PlatformSettings:
    """Fetch the singleton settings row, creating it with defaults if absent."""
    result = await db.execute(select(PlatformSettings).limit(1))
    row = result.scalar_one_or_none()
    if row is None:
        row = PlatformSettings(
            id=1,
            site_name=app_settings.PROJECT_NAME,
            support_email=app_settings.SUPPORT_EMAIL,
            auto_approve_partners=False,
            email_notifications=True,
            max_offer_distance_km=50.0,
        )
        db.add(row)
        await db.commit()
        await db.refresh(row)
        logger.info("Created default platform settings")
    return row
