"""Pydantic schemas for the role dashboards."""

from __future__ import annotations

from pydantic import BaseModel

from app.schemas.offer import OfferRead, PickupRead


class DonorDashboard(BaseModel):
    total_offers: int
    active_offers: int
    completed_offers: int
    total_kg: float
    co2_saved_kg: float
    meals_provided: int
    partners_helped: int
    recent_deliveries: list[OfferRead]


class PartnerDashboard(BaseModel):
    available_offers: int
    active_pickups: int
    completed_pickups: int
    cancelled_pickups: int
    total_kg_collected: float
    recent_pickups: list[PickupRead]


class TopDonor(BaseModel):
    id: int
    name: str | None
    email: str
    count: int
    kg: float


class TopPartner(BaseModel):
    id: int
    name: str | None
    email: str
    count: int
    completed: int


class AdminDashboard(BaseModel):
    total_users: int
    new_users_this_month: int
    users_by_role: dict[str, int]
    pending_applications: int
    banned_users: int
    total_offers: int
    completed_offers: int
    offers_by_status: dict[str, int]
    total_kg_rescued: float
    co2_saved_kg: float
    meals_provided: int
    top_donors: list[TopDonor]
    top_partners: list[TopPartner]
