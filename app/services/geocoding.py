"""
Address ↔ coordinates lookups against a Nominatim-compatible API, plus the
great-circle distance used to sort offers for a partner.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass

import httpx

logger = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371.0


class GeocodingError(Exception):
    """The geocoding service could not be reached or answered garbage."""


@dataclass
class GeoPoint:
    latitude: float
    longitude: float
    display_name: str | None = None


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlmb = math.radians(lng2 - lng1)
    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlmb / 2) ** 2
    return 2 * EARTH_RADIUS_KM * math.asin(math.sqrt(a))


class Geocoder:
    def __init__(
        self,
        base_url: str,
        user_agent: str,
        timeout: float = 8.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.user_agent = user_agent
        self.timeout = timeout
        self._transport = transport

    async def _get(self, path: str, params: dict) -> object:
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                headers={"User-Agent": self.user_agent},
                transport=self._transport,
            ) as client:
                resp = await client.get(path, params={"format": "json", **params})
                resp.raise_for_status()
                return resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("Geocoding request %s failed: %s", path, exc)
            raise GeocodingError(str(exc) or exc.__class__.__name__) from exc

    async def geocode(self, address: str) -> GeoPoint | None:
        data = await self._get("/search", {"q": address, "limit": 1})
        if not isinstance(data, list) or not data:
            return None
        hit = data[0]
        try:
            return GeoPoint(
                latitude=float(hit["lat"]),
                longitude=float(hit["lon"]),
                display_name=hit.get("display_name"),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise GeocodingError(f"Malformed search result: {exc}") from exc

    async def reverse_geocode(self, latitude: float, longitude: float) -> str | None:
        data = await self._get("/reverse", {"lat": latitude, "lon": longitude})
        if not isinstance(data, dict) or "error" in data:
            return None
        return data.get("display_name")
