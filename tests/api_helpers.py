"""
Request helpers shared by the API tests.
"""

from datetime import datetime, timedelta, timezone

from httpx import AsyncClient

from app.core.security import create_access_token
from app.models.user import User

API = "/api/v1"


def auth_headers(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user.id, role=user.role)}"}


def offer_payload(**overrides) -> dict:
    start = datetime.now(timezone.utc) + timedelta(hours=1)
    body = {
        "title": "Bread",
        "description": "Day-old sourdough loaves",
        "quantity_est": 5,
        "quantity_unit": "kg",
        "food_type": "bakery",
        "pickup_window_start": start.isoformat(),
        "pickup_window_end": (start + timedelta(hours=2)).isoformat(),
        "address": "1 Baker St",
        "latitude": 51.5237,
        "longitude": -0.1585,
    }
    body.update(overrides)
    return body


async def create_offer(client: AsyncClient, donor: User, **overrides) -> dict:
    resp = await client.post(
        f"{API}/offers", json=offer_payload(**overrides), headers=auth_headers(donor)
    )
    assert resp.status_code == 201, resp.text
    return resp.json()


async def accept_offer(client: AsyncClient, partner: User, offer_id: int) -> dict:
    """Accept an offer and return the new assignment."""
    resp = await client.post(f"{API}/offers/{offer_id}/accept", headers=auth_headers(partner))
    assert resp.status_code == 200, resp.text
    return resp.json()["assignment"]
