"""
Platform Settings model — singleton table for admin-configurable behaviour.

Only one row should ever exist. The admin updates it via the settings API;
signup reads ``auto_approve_partners``, the notification dispatcher reads
``email_notifications`` and partner browsing reads ``max_offer_distance_km``.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, Float, Integer, String

from app.db.base import Base


class PlatformSettings(Base):
    __tablename__ = "platform_settings"

    id: int = Column(Integer, primary_key=True, default=1)  # type: ignore[assignment]
    site_name: str = Column(String(100), nullable=False, default="Food Rescue Platform")  # type: ignore[assignment]
    support_email: str = Column(String(320), nullable=False, default="support@foodrescue.com")  # type: ignore[assignment]
    auto_approve_partners: bool = Column(Boolean, nullable=False, default=False)  # type: ignore[assignment]
    email_notifications: bool = Column(Boolean, nullable=False, default=True)  # type: ignore[assignment]
    max_offer_distance_km: float = Column(Float, nullable=False, default=50.0)  # type: ignore[assignment]
    updated_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
