"""
Pickup endpoints for approved partners — list, verify with OTP, cancel.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.deps import get_db, require_approved_partner
from app.core.session import SessionContext
from app.schemas.offer import CompletePickupRequest, PickupRead
from app.services import offers as offer_service

router = APIRouter(prefix="/pickups", tags=["pickups"])


@router.get("", response_model=list[PickupRead])
async def list_pickups(
    status: str | None = Query(
        default=None,
        description="pending | in_progress | completed | cancelled | active | all",
    ),
    db: AsyncSession = Depends(get_db),
    ctx: SessionContext = Depends(require_approved_partner),
) -> list[PickupRead]:
    return await offer_service.list_pickups(db, ctx, status)


@router.post("/{assignment_id}/complete", response_model=PickupRead)
async def complete_pickup(
    assignment_id: int,
    body: CompletePickupRequest,
    db: AsyncSession = Depends(get_db),
    ctx: SessionContext = Depends(require_approved_partner),
) -> PickupRead:
    """Confirm the pickup with the donor's 6-digit code; the offer becomes delivered."""
    return await offer_service.complete_pickup(db, ctx, assignment_id, body.otp_code)


@router.post("/{assignment_id}/cancel", response_model=PickupRead)
async def cancel_pickup(
    assignment_id: int,
    db: AsyncSession = Depends(get_db),
    ctx: SessionContext = Depends(require_approved_partner),
) -> PickupRead:
    """Back out of a pickup; the offer goes back to available."""
    return await offer_service.cancel_pickup(db, ctx, assignment_id)
