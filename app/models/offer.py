"""
Offer & Assignment models — the donation lifecycle.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import (Column, DateTime, Float, ForeignKey, Index, Integer,
                        String, Text, text)
from sqlalchemy.orm import relationship

from app.db.base import Base

_ACTIVE_ASSIGNMENT = text("status IN ('pending', 'in_progress')")


class Offer(Base):
    __tablename__ = "offers"
    __table_args__ = (Index("ix_offers_status_created", "status", "created_at"),)

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    donor_id: int = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)  # type: ignore[assignment]
    title: str = Column(String(200), nullable=False)  # type: ignore[assignment]
    description: str | None = Column(Text, nullable=True)  # type: ignore[assignment]
    quantity_est: float | None = Column(Float, nullable=True)  # type: ignore[assignment]
    quantity_unit: str | None = Column(String(30), nullable=True)  # type: ignore[assignment]
    food_type: str | None = Column(String(50), nullable=True)  # type: ignore[assignment]
    pickup_window_start: datetime = Column(DateTime(timezone=True), nullable=False)  # type: ignore[assignment]
    pickup_window_end: datetime = Column(DateTime(timezone=True), nullable=False)  # type: ignore[assignment]
    address: str | None = Column(String(500), nullable=True)  # type: ignore[assignment]
    latitude: float | None = Column(Float, nullable=True)  # type: ignore[assignment]
    longitude: float | None = Column(Float, nullable=True)  # type: ignore[assignment]
    image_path: str | None = Column(String(1000), nullable=True)  # type: ignore[assignment]
    status: str = Column(  # type: ignore[assignment]
        String(20),
        nullable=False,
        default="available",
        server_default="available",
    )  # available | accepted | picked_up | delivered | cancelled
    created_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    donor = relationship("User", foreign_keys=[donor_id])
    assignments = relationship(
        "Assignment",
        back_populates="offer",
        cascade="all, delete-orphan",
        order_by="Assignment.created_at",
    )


class Assignment(Base):
    __tablename__ = "assignments"
    __table_args__ = (
        # One active pickup per offer
        Index(
            "uq_assignments_active_offer",
            "offer_id",
            unique=True,
            postgresql_where=_ACTIVE_ASSIGNMENT,
            sqlite_where=_ACTIVE_ASSIGNMENT,
        ),
        Index("ix_assignments_partner_status", "partner_id", "status"),
    )

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    offer_id: int = Column(Integer, ForeignKey("offers.id", ondelete="CASCADE"), nullable=False)  # type: ignore[assignment]
    partner_id: int = Column(Integer, ForeignKey("users.id"), nullable=False)  # type: ignore[assignment]
    status: str = Column(  # type: ignore[assignment]
        String(20),
        nullable=False,
        default="pending",
        server_default="pending",
    )  # pending | in_progress | completed | cancelled
    otp_code: str | None = Column(String(6), nullable=True)  # type: ignore[assignment]
    notes: str | None = Column(String(500), nullable=True)  # type: ignore[assignment]
    completed_at: datetime | None = Column(DateTime(timezone=True), nullable=True)  # type: ignore[assignment]
    created_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    offer = relationship("Offer", back_populates="assignments")
    partner = relationship("User", foreign_keys=[partner_id])
