"""Pydantic schemas for session tokens."""

from __future__ import annotations

from pydantic import BaseModel


class Token(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    role: str | None = None
    dashboard: str | None = None


class RefreshRequest(BaseModel):
    refresh_token: str
