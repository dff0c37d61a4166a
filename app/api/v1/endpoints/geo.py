"""
Geocoding endpoints used by the offer and profile forms.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query

from app.api.v1.deps import get_geocoder, get_session_context
from app.core.session import SessionContext
from app.schemas.common import GeoPointRead, ReverseGeocodeRead
from app.services.geocoding import Geocoder, GeocodingError

router = APIRouter(prefix="/geo", tags=["geo"])


@router.get("/search", response_model=GeoPointRead)
async def search_address(
    q: str = Query(..., min_length=3, max_length=500),
    geocoder: Geocoder = Depends(get_geocoder),
    _ctx: SessionContext = Depends(get_session_context),
) -> GeoPointRead:
    """Resolve an address to coordinates."""
    try:
        point = await geocoder.geocode(q)
    except GeocodingError:
        raise HTTPException(status_code=502, detail="Geocoding service unavailable")
    if point is None:
        raise HTTPException(status_code=404, detail="Address not found")
    return GeoPointRead(
        latitude=point.latitude,
        longitude=point.longitude,
        display_name=point.display_name,
    )


@router.get("/reverse", response_model=ReverseGeocodeRead)
async def reverse_lookup(
    lat: float = Query(..., ge=-90, le=90),
    lng: float = Query(..., ge=-180, le=180),
    geocoder: Geocoder = Depends(get_geocoder),
    _ctx: SessionContext = Depends(get_session_context),
) -> ReverseGeocodeRead:
    """Resolve coordinates (e.g. a map click) to a display address."""
    try:
        address = await geocoder.reverse_geocode(lat, lng)
    except GeocodingError:
        raise HTTPException(status_code=502, detail="Geocoding service unavailable")
    if not address:
        raise HTTPException(status_code=404, detail="No address found for this location")
    return ReverseGeocodeRead(latitude=lat, longitude=lng, address=address)
