"""Pydantic schemas for users, signup and admin user management."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, field_validator

from app.models.user import VALID_ROLES

_SIGNUP_ROLES = {"donor", "partner"}


def _normalise_email(v: str) -> str:
    v = v.strip().lower()
    if "@" not in v or v.startswith("@") or v.endswith("@"):
        raise ValueError("Invalid email address")
    return v


class SignupRequest(BaseModel):
    email: str
    password: str
    name: str
    role: str = "donor"
    business_name: str | None = None  # donor business / partner organisation
    phone: str | None = None

    @field_validator("email")
    @classmethod
    def _email(cls, v: str) -> str:
        return _normalise_email(v)

    @field_validator("password")
    @classmethod
    def _password(cls, v: str) -> str:
        if len(v) < 6:
            raise ValueError("Password must be at least 6 characters")
        return v

    @field_validator("name")
    @classmethod
    def _name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Name must not be empty")
        return v

    @field_validator("role")
    @classmethod
    def _role(cls, v: str) -> str:
        if v not in _SIGNUP_ROLES:
            raise ValueError("Role must be 'donor' or 'partner'")
        return v


class UserRead(BaseModel):
    id: int
    email: str
    name: str | None
    phone: str | None
    role: str
    approved: bool | None
    approval_status: str
    banned: bool
    rejection_reason: str | None
    approved_at: datetime | None
    approved_by: int | None
    created_at: datetime | None

    model_config = {"from_attributes": True}


class ApplicationRead(UserRead):
    org_name: str | None = None


class RoleUpdate(BaseModel):
    role: str

    @field_validator("role")
    @classmethod
    def _validate_role(cls, v: str) -> str:
        if v not in VALID_ROLES:
            raise ValueError(f"Role must be one of: {', '.join(VALID_ROLES)}")
        return v


class RejectRequest(BaseModel):
    rejection_reason: str

    @field_validator("rejection_reason")
    @classmethod
    def _reason(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Please provide a rejection reason")
        return v


class SessionRead(BaseModel):
    user: UserRead
    role: str
    approval_status: str
    dashboard: str
