"""Shared response / settings schemas."""

from __future__ import annotations

from pydantic import BaseModel, Field


# ── Generic ────────────────────────────────────────────────────────
class LogoutResponse(BaseModel):
    message: str


class DeleteResponse(BaseModel):
    success: bool
    message: str


class MessageResponse(BaseModel):
    success: bool
    message: str
    email_sent: bool | None = None


# ── Health ─────────────────────────────────────────────────────────
class HealthResponse(BaseModel):
    db: bool
    redis: bool


# ── Platform Settings ──────────────────────────────────────────────
class PlatformSettingsRead(BaseModel):
    site_name: str
    support_email: str
    auto_approve_partners: bool
    email_notifications: bool
    max_offer_distance_km: float

    model_config = {"from_attributes": True}


class PlatformSettingsUpdate(BaseModel):
    site_name: str | None = None
    support_email: str | None = None
    auto_approve_partners: bool | None = None
    email_notifications: bool | None = None
    max_offer_distance_km: float | None = Field(default=None, gt=0)


# ── Geocoding ──────────────────────────────────────────────────────
class GeoPointRead(BaseModel):
    latitude: float
    longitude: float
    display_name: str | None = None


class ReverseGeocodeRead(BaseModel):
    latitude: float
    longitude: float
    address: str
