"""Pydantic schemas for Offers, Assignments and Pickups."""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, Field, field_validator, model_validator

FOOD_TYPES = (
    "produce",
    "prepared",
    "packaged",
    "bakery",
    "dairy",
    "meat",
    "other",
)
QUANTITY_UNITS = ("kg", "lbs", "units", "servings")
MAX_QUANTITY = 100_000


# ── Offer create ────────────────────────────────────────────────────
class OfferCreate(BaseModel):
    title: str
    description: str | None = None
    quantity_est: float = Field(gt=0, le=MAX_QUANTITY, allow_inf_nan=False)
    quantity_unit: str = "kg"
    food_type: str
    pickup_window_start: datetime
    pickup_window_end: datetime
    address: str | None = None
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)

    @field_validator("title")
    @classmethod
    def _title(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Title must not be empty")
        if len(v) > 200:
            raise ValueError("Title must not exceed 200 characters")
        return v

    @field_validator("food_type")
    @classmethod
    def _food_type(cls, v: str) -> str:
        v = v.strip().lower()
        if v not in FOOD_TYPES:
            raise ValueError(f"Food type must be one of: {', '.join(FOOD_TYPES)}")
        return v

    @field_validator("quantity_unit")
    @classmethod
    def _unit(cls, v: str) -> str:
        v = v.strip().lower()
        if v not in QUANTITY_UNITS:
            raise ValueError(f"Quantity unit must be one of: {', '.join(QUANTITY_UNITS)}")
        return v

    @field_validator("pickup_window_start", "pickup_window_end")
    @classmethod
    def _assume_utc(cls, v: datetime) -> datetime:
        # Naive timestamps are taken as UTC
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    @field_validator("address")
    @classmethod
    def _address(cls, v: str | None) -> str | None:
        if v is None:
            return None
        return v.strip() or None

    @model_validator(mode="after")
    def _window_and_location(self) -> "OfferCreate":
        if self.pickup_window_end <= self.pickup_window_start:
            raise ValueError("Pickup window must end after it starts")
        if (self.latitude is None) != (self.longitude is None):
            raise ValueError("Latitude and longitude must be provided together")
        if self.address is None and self.latitude is None:
            raise ValueError("A pickup address or map location is required")
        return self


# ── Reads ───────────────────────────────────────────────────────────
class AssignmentRead(BaseModel):
    id: int
    offer_id: int
    partner_id: int
    partner_name: str | None = None
    partner_phone: str | None = None
    status: str
    otp_code: str | None
    notes: str | None = None
    completed_at: datetime | None = None
    created_at: datetime | None = None

    model_config = {"from_attributes": True}


class OfferRead(BaseModel):
    id: int
    donor_id: int
    title: str
    description: str | None
    quantity_est: float | None
    quantity_unit: str | None
    food_type: str | None
    pickup_window_start: datetime
    pickup_window_end: datetime
    address: str | None
    latitude: float | None
    longitude: float | None
    image_path: str | None
    status: str
    created_at: datetime | None
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}


class DonorOfferRead(OfferRead):
    """Donor's own offer, including who accepted it and the pickup code."""

    assignments: list[AssignmentRead] = Field(default_factory=list)


class AvailableOfferRead(OfferRead):
    donor_name: str | None = None
    business_name: str | None = None
    distance_km: float | None = None


class AdminOfferRead(OfferRead):
    donor_name: str | None = None
    donor_email: str | None = None
    partner_name: str | None = None
    assignment_status: str | None = None


class OfferCreated(OfferRead):
    warnings: list[str] = Field(default_factory=list)


# ── Pickups ─────────────────────────────────────────────────────────
class PickupRead(BaseModel):
    assignment: AssignmentRead
    offer: OfferRead
    donor_name: str | None = None
    business_name: str | None = None
    donor_address: str | None = None


class CompletePickupRequest(BaseModel):
    otp_code: str = Field(min_length=1, max_length=12)


class AcceptResponse(BaseModel):
    success: bool
    message: str
    assignment: AssignmentRead
    offer: OfferRead
