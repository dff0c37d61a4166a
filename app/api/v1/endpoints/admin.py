"""
Admin endpoints — partner applications, user management, offer overview.

Every route requires the admin role.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.deps import get_db, get_notifier, require_admin
from app.core.session import SessionContext
from app.schemas.common import MessageResponse
from app.schemas.offer import AdminOfferRead
from app.schemas.user import ApplicationRead, RejectRequest, RoleUpdate, UserRead
from app.services import approvals
from app.services.notifications import NotificationDispatcher

router = APIRouter(prefix="/admin", tags=["admin"])


# ── Partner applications ────────────────────────────────────────────
@router.get("/applications", response_model=list[ApplicationRead])
async def list_applications(
    status: str = Query(default="pending", description="pending | approved | rejected | all"),
    db: AsyncSession = Depends(get_db),
    _admin: SessionContext = Depends(require_admin),
) -> list[ApplicationRead]:
    return await approvals.list_applications(db, status)


@router.post("/applications/{user_id}/approve", response_model=MessageResponse)
async def approve_application(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    ctx: SessionContext = Depends(require_admin),
    notifier: NotificationDispatcher = Depends(get_notifier),
) -> MessageResponse:
    """Approve a partner and send the welcome email (best-effort)."""
    return await approvals.approve_partner(db, ctx, user_id, notifier)


@router.post("/applications/{user_id}/reject", response_model=MessageResponse)
async def reject_application(
    user_id: int,
    body: RejectRequest,
    db: AsyncSession = Depends(get_db),
    ctx: SessionContext = Depends(require_admin),
    notifier: NotificationDispatcher = Depends(get_notifier),
) -> MessageResponse:
    """Reject a partner with a reason and notify them (best-effort)."""
    return await approvals.reject_partner(db, ctx, user_id, body.rejection_reason, notifier)


# ── Users ───────────────────────────────────────────────────────────
@router.get("/users", response_model=list[UserRead])
async def list_users(
    role: str | None = Query(default=None),
    status: str | None = Query(default=None, description="active | banned"),
    search: str | None = Query(default=None, max_length=200),
    db: AsyncSession = Depends(get_db),
    _admin: SessionContext = Depends(require_admin),
) -> list[UserRead]:
    return await approvals.list_users(db, role, status, search)


@router.post("/users/{user_id}/ban", response_model=UserRead)
async def toggle_ban(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    ctx: SessionContext = Depends(require_admin),
) -> UserRead:
    """Ban or unban a user."""
    return await approvals.toggle_ban(db, ctx, user_id)


@router.patch("/users/{user_id}/role", response_model=UserRead)
async def change_role(
    user_id: int,
    body: RoleUpdate,
    db: AsyncSession = Depends(get_db),
    ctx: SessionContext = Depends(require_admin),
) -> UserRead:
    return await approvals.change_role(db, ctx, user_id, body.role)


# ── Offers ──────────────────────────────────────────────────────────
@router.get("/offers", response_model=list[AdminOfferRead])
async def list_offers(
    status: str | None = Query(default=None),
    search: str | None = Query(default=None, max_length=200),
    db: AsyncSession = Depends(get_db),
    _admin: SessionContext = Depends(require_admin),
) -> list[AdminOfferRead]:
    return await approvals.list_all_offers(db, status, search)
