"""
Role dashboards. Login sends each user to ``/dashboard/{role}``; partners
that are not yet approved are turned away by the approval gate.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.deps import (get_db, require_admin, require_approved_partner,
                             require_donor)
from app.core.session import SessionContext
from app.schemas.dashboard import AdminDashboard, DonorDashboard, PartnerDashboard
from app.services import analytics

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get("/donor", response_model=DonorDashboard)
async def donor_dashboard(
    db: AsyncSession = Depends(get_db),
    ctx: SessionContext = Depends(require_donor),
) -> DonorDashboard:
    """Impact figures: offers, kg rescued, CO2 saved, meals, partners helped."""
    return await analytics.donor_dashboard(db, ctx)


@router.get("/partner", response_model=PartnerDashboard)
async def partner_dashboard(
    db: AsyncSession = Depends(get_db),
    ctx: SessionContext = Depends(require_approved_partner),
) -> PartnerDashboard:
    return await analytics.partner_dashboard(db, ctx)


@router.get("/admin", response_model=AdminDashboard)
async def admin_dashboard(
    db: AsyncSession = Depends(get_db),
    _admin: SessionContext = Depends(require_admin),
) -> AdminDashboard:
    """Platform analytics with the top donors and partners."""
    return await analytics.admin_dashboard(db)
