"""
Session endpoint — who is logged in and where they should land.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from app.api.v1.deps import get_session_context
from app.core.session import SessionContext
from app.schemas.user import SessionRead, UserRead

router = APIRouter(tags=["session"])


@router.get("/session", response_model=SessionRead)
async def read_session(
    ctx: SessionContext = Depends(get_session_context),
) -> SessionRead:
    return SessionRead(
        user=UserRead.model_validate(ctx.user),
        role=ctx.role,
        approval_status=ctx.user.approval_status,
        dashboard=ctx.dashboard,
    )
