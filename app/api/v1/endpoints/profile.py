"""
Profile endpoints — the logged-in user's details and organisation profile.

Partners may edit their profile in every approval state. The request body is
validated against the donor or partner shape according to the caller's role.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException
from fastapi.encoders import jsonable_encoder
from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.deps import get_db, get_session_context
from app.core.session import SessionContext
from app.models.profile import DonorProfile, PartnerProfile
from app.models.user import User
from app.schemas.profile import (DonorProfileRead, DonorProfileUpdate,
                                 PartnerProfileRead, PartnerProfileUpdate,
                                 ProfileRead)

router = APIRouter(prefix="/profile", tags=["profile"])
logger = logging.getLogger(__name__)

_USER_FIELDS = ("name", "phone")


async def _load_profile(db: AsyncSession, user: User) -> DonorProfile | PartnerProfile | None:
    if user.role == "donor":
        result = await db.execute(select(DonorProfile).where(DonorProfile.user_id == user.id))
        return result.scalar_one_or_none()
    if user.role == "partner":
        result = await db.execute(select(PartnerProfile).where(PartnerProfile.user_id == user.id))
        return result.scalar_one_or_none()
    return None


def _profile_read(user: User, profile: DonorProfile | PartnerProfile | None) -> ProfileRead:
    out = ProfileRead(
        id=user.id,
        email=user.email,
        name=user.name,
        phone=user.phone,
        role=user.role,
        approval_status=user.approval_status,
        created_at=user.created_at,
    )
    if isinstance(profile, DonorProfile):
        out.donor_profile = DonorProfileRead.model_validate(profile)
    elif isinstance(profile, PartnerProfile):
        out.partner_profile = PartnerProfileRead.model_validate(profile)
    return out


@router.get("", response_model=ProfileRead)
async def read_profile(
    db: AsyncSession = Depends(get_db),
    ctx: SessionContext = Depends(get_session_context),
) -> ProfileRead:
    return _profile_read(ctx.user, await _load_profile(db, ctx.user))


@router.put("", response_model=ProfileRead)
async def update_profile(
    body: dict[str, Any] = Body(...),
    db: AsyncSession = Depends(get_db),
    ctx: SessionContext = Depends(get_session_context),
) -> ProfileRead:
    """Update name/phone and upsert the donor or partner profile."""
    schema = PartnerProfileUpdate if ctx.role == "partner" else DonorProfileUpdate
    try:
        update = schema.model_validate(body)
    except ValidationError as exc:
        raise HTTPException(
            status_code=422,
            detail=jsonable_encoder(exc.errors(include_url=False, include_context=False)),
        )

    user = ctx.user
    changes = update.model_dump(exclude_unset=True, mode="json")
    for field in _USER_FIELDS:
        if field in changes:
            setattr(user, field, changes.pop(field))
    if "org_name" in changes and changes["org_name"] is None:
        del changes["org_name"]  # column is NOT NULL

    profile = await _load_profile(db, user)
    if ctx.role in ("donor", "partner") and changes:
        if profile is None:
            if ctx.role == "donor":
                profile = DonorProfile(user_id=user.id)
            else:
                org_name = changes.get("org_name") or user.name
                if not org_name:
                    raise HTTPException(status_code=400, detail="Organisation name is required")
                profile = PartnerProfile(user_id=user.id, org_name=org_name)
            db.add(profile)
        for field, value in changes.items():
            setattr(profile, field, value)
    elif changes:
        logger.info("Ignoring organisation fields for %s user %s", ctx.role, user.id)

    await db.commit()
    logger.info("Profile updated for user %s: %s", user.id, sorted(update.model_fields_set))
    return _profile_read(user, profile)
