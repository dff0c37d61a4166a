"""
Notification model — one row per email dispatch attempt.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Integer, String

from app.db.base import Base


class Notification(Base):
    __tablename__ = "notifications"

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    user_id: int | None = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)  # type: ignore[assignment]
    type: str = Column(String(10), nullable=False, default="email")  # type: ignore[assignment]  # email | sms | push
    template_key: str = Column(String(50), nullable=False)  # type: ignore[assignment]
    recipient: str = Column(String(320), nullable=False)  # type: ignore[assignment]
    subject: str | None = Column(String(300), nullable=True)  # type: ignore[assignment]
    payload: dict | None = Column(JSON, nullable=True)  # type: ignore[assignment]
    success: bool = Column(Boolean, nullable=False, default=False)  # type: ignore[assignment]
    error: str | None = Column(String(500), nullable=True)  # type: ignore[assignment]
    sent_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
