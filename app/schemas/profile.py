"""
Pydantic schemas for donor / partner profiles.

The organisation blobs (opening hours, capacity, collection preferences) are
versioned models. Clients may send them as objects or as JSON text typed into
a form; either way they must parse into the current shape, otherwise the
request fails with a 422 that names the field.
"""

from __future__ import annotations

import json
import re
from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

_HHMM_RE = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")
_WEEKDAYS = ("mon", "tue", "wed", "thu", "fri", "sat", "sun")


def _parse_json_text(v: Any) -> Any:
    """Accept raw JSON text from a form field as well as a decoded object."""
    if isinstance(v, str):
        if not v.strip():
            return None
        try:
            return json.loads(v)
        except json.JSONDecodeError as exc:
            raise ValueError(f"must be valid JSON ({exc.msg})") from exc
    return v


def _check_days(days: list[str]) -> list[str]:
    out = []
    for d in days:
        d = d.strip().lower()[:3]
        if d not in _WEEKDAYS:
            raise ValueError(f"Unknown weekday '{d}'")
        out.append(d)
    return out


# ── Versioned blobs ─────────────────────────────────────────────────
class TimeRange(BaseModel):
    open: str
    close: str

    @field_validator("open", "close")
    @classmethod
    def _hhmm(cls, v: str) -> str:
        if not _HHMM_RE.match(v):
            raise ValueError("Time must be HH:MM")
        return v


class OpeningHoursV1(BaseModel):
    version: Literal[1] = 1
    days: dict[str, list[TimeRange]] = Field(default_factory=dict)

    @field_validator("days")
    @classmethod
    def _weekday_keys(cls, v: dict[str, list[TimeRange]]) -> dict[str, list[TimeRange]]:
        _check_days(list(v))
        return {k.strip().lower()[:3]: ranges for k, ranges in v.items()}


class CapacityInfoV1(BaseModel):
    version: Literal[1] = 1
    max_kg: float | None = Field(default=None, ge=0)
    storage: list[Literal["dry", "chilled", "frozen"]] = Field(default_factory=list)
    vehicles: int = Field(default=0, ge=0)


class CollectionPrefsV1(BaseModel):
    version: Literal[1] = 1
    food_types: list[str] = Field(default_factory=list)
    max_distance_km: float | None = Field(default=None, gt=0)
    days: list[str] = Field(default_factory=list)

    @field_validator("days")
    @classmethod
    def _days(cls, v: list[str]) -> list[str]:
        return _check_days(v)


# ── Requests ────────────────────────────────────────────────────────
class _ProfileUpdateBase(BaseModel):
    name: str | None = None
    phone: str | None = None
    address: str | None = None
    city: str | None = None
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)


class DonorProfileUpdate(_ProfileUpdateBase):
    business_name: str | None = None
    opening_hours: OpeningHoursV1 | None = None

    @field_validator("opening_hours", mode="before")
    @classmethod
    def _opening_hours(cls, v: Any) -> Any:
        return _parse_json_text(v)


class PartnerProfileUpdate(_ProfileUpdateBase):
    org_name: str | None = None
    capacity_info: CapacityInfoV1 | None = None
    collection_prefs: CollectionPrefsV1 | None = None

    @field_validator("capacity_info", "collection_prefs", mode="before")
    @classmethod
    def _blobs(cls, v: Any) -> Any:
        return _parse_json_text(v)

    @field_validator("org_name")
    @classmethod
    def _org_name(cls, v: str | None) -> str | None:
        if v is not None and not v.strip():
            raise ValueError("Organisation name must not be empty")
        return v.strip() if v else v


# ── Reads ───────────────────────────────────────────────────────────
class DonorProfileRead(BaseModel):
    business_name: str | None
    address: str | None
    city: str | None
    latitude: float | None
    longitude: float | None
    opening_hours: OpeningHoursV1 | None

    model_config = {"from_attributes": True}


class PartnerProfileRead(BaseModel):
    org_name: str
    address: str | None
    city: str | None
    latitude: float | None
    longitude: float | None
    capacity_info: CapacityInfoV1 | None
    collection_prefs: CollectionPrefsV1 | None

    model_config = {"from_attributes": True}


class ProfileRead(BaseModel):
    id: int
    email: str
    name: str | None
    phone: str | None
    role: str
    approval_status: str
    created_at: datetime | None
    donor_profile: DonorProfileRead | None = None
    partner_profile: PartnerProfileRead | None = None
