"""
Platform settings endpoints — admin-configurable runtime options.

Singleton pattern: only one row in platform_settings. GET retrieves it,
PUT updates it. If no row exists, one is created with defaults on first GET.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.deps import get_db, require_admin
from app.core.session import SessionContext
from app.models.platform_settings import PlatformSettings
from app.schemas.common import PlatformSettingsRead, PlatformSettingsUpdate
from app.services.platform import get_or_create_platform_settings

router = APIRouter(tags=["settings"])
logger = logging.getLogger(__name__)


@router.get("/settings", response_model=PlatformSettingsRead)
async def get_settings(
    db: AsyncSession = Depends(get_db),
    _admin: SessionContext = Depends(require_admin),
) -> PlatformSettings:
    """Get current platform settings."""
    return await get_or_create_platform_settings(db)


@router.put("/settings", response_model=PlatformSettingsRead)
async def update_settings(
    body: PlatformSettingsUpdate,
    db: AsyncSession = Depends(get_db),
    _admin: SessionContext = Depends(require_admin),
) -> PlatformSettings:
    """Update site name, support email, auto-approval, notifications, max distance."""
    platform = await get_or_create_platform_settings(db)

    for field, value in body.model_dump(exclude_unset=True, exclude_none=True).items():
        setattr(platform, field, value)

    await db.commit()
    await db.refresh(platform)
    logger.info("Platform settings updated: %s", body.model_dump(exclude_unset=True))
    return platform
