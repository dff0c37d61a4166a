"""
V1 API router aggregator — wires all endpoint modules together.
"""

from fastapi import APIRouter

from app.api.v1.endpoints import (admin, auth, dashboard, geo, health, offers,
                                  pickups, profile, session, settings)

api_router = APIRouter()

# Auth (signup, login, refresh, logout, me) and the session context
api_router.include_router(auth.router)
api_router.include_router(session.router)

# Offer lifecycle
api_router.include_router(offers.router)
api_router.include_router(pickups.router)

# Admin: applications, users, offers, platform settings
api_router.include_router(admin.router)
api_router.include_router(settings.router)

# Dashboards, profiles, geocoding
api_router.include_router(dashboard.router)
api_router.include_router(profile.router)
api_router.include_router(geo.router)

api_router.include_router(health.router)
