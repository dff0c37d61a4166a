"""
Pickup verification tests — OTP completion, cancellation, ownership.
"""

import pytest
from api_helpers import API, accept_offer, auth_headers, create_offer
from httpx import AsyncClient
from sqlalchemy import delete, select

from app.models.offer import Assignment, Offer
from app.services import offers as offer_service


def _wrong_code(code: str) -> str:
    return "100000" if code != "100000" else "999999"


@pytest.mark.asyncio
async def test_correct_otp_completes_pickup(async_client: AsyncClient, donor, partner, session_factory):
    offer = await create_offer(async_client, donor)
    assignment = await accept_offer(async_client, partner, offer["id"])

    resp = await async_client.post(
        f"{API}/pickups/{assignment['id']}/complete",
        json={"otp_code": assignment["otp_code"]},
        headers=auth_headers(partner),
    )
    assert resp.status_code == 200, resp.text
    data = resp.json()
    assert data["assignment"]["status"] == "completed"
    assert data["assignment"]["completed_at"] is not None
    assert data["offer"]["status"] == "delivered"
    assert data["business_name"] == "Dana's Bakery"

    async with session_factory() as session:
        row = await session.get(Assignment, assignment["id"])
        assert row.status == "completed"
        assert row.completed_at is not None
        assert (await session.get(Offer, offer["id"])).status == "delivered"


@pytest.mark.asyncio
async def test_wrong_otp_changes_nothing(async_client: AsyncClient, donor, partner, session_factory):
    offer = await create_offer(async_client, donor)
    assignment = await accept_offer(async_client, partner, offer["id"])

    resp = await async_client.post(
        f"{API}/pickups/{assignment['id']}/complete",
        json={"otp_code": _wrong_code(assignment["otp_code"])},
        headers=auth_headers(partner),
    )
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Invalid OTP code"

    async with session_factory() as session:
        row = await session.get(Assignment, assignment["id"])
        assert row.status == "pending"
        assert row.completed_at is None
        assert (await session.get(Offer, offer["id"])).status == "accepted"


@pytest.mark.asyncio
async def test_cancel_pickup_releases_offer(async_client: AsyncClient, donor, partner, make_user):
    offer = await create_offer(async_client, donor)
    assignment = await accept_offer(async_client, partner, offer["id"])

    resp = await async_client.post(
        f"{API}/pickups/{assignment['id']}/cancel", headers=auth_headers(partner)
    )
    assert resp.status_code == 200
    assert resp.json()["assignment"]["status"] == "cancelled"
    assert resp.json()["offer"]["status"] == "available"

    # The offer can be claimed again, by anyone
    other = await make_user("second@example.com", role="partner")
    again = await accept_offer(async_client, other, offer["id"])
    assert again["status"] == "pending"
    assert again["partner_id"] == other.id


@pytest.mark.asyncio
async def test_completing_cancelled_pickup_conflicts(async_client: AsyncClient, donor, partner):
    offer = await create_offer(async_client, donor)
    assignment = await accept_offer(async_client, partner, offer["id"])
    await async_client.post(f"{API}/pickups/{assignment['id']}/cancel", headers=auth_headers(partner))

    resp = await async_client.post(
        f"{API}/pickups/{assignment['id']}/complete",
        json={"otp_code": assignment["otp_code"]},
        headers=auth_headers(partner),
    )
    assert resp.status_code == 409
    assert resp.json()["success"] is False


@pytest.mark.asyncio
async def test_completed_pickup_cannot_be_cancelled(async_client: AsyncClient, donor, partner):
    offer = await create_offer(async_client, donor)
    assignment = await accept_offer(async_client, partner, offer["id"])
    await async_client.post(
        f"{API}/pickups/{assignment['id']}/complete",
        json={"otp_code": assignment["otp_code"]},
        headers=auth_headers(partner),
    )

    resp = await async_client.post(
        f"{API}/pickups/{assignment['id']}/cancel", headers=auth_headers(partner)
    )
    assert resp.status_code == 409


@pytest.mark.asyncio
async def test_other_partner_cannot_touch_pickup(async_client: AsyncClient, donor, partner, make_user):
    intruder = await make_user("intruder@example.com", role="partner")
    offer = await create_offer(async_client, donor)
    assignment = await accept_offer(async_client, partner, offer["id"])

    resp = await async_client.post(
        f"{API}/pickups/{assignment['id']}/complete",
        json={"otp_code": assignment["otp_code"]},
        headers=auth_headers(intruder),
    )
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_list_pickups_with_status_filter(async_client: AsyncClient, donor, partner):
    first = await create_offer(async_client, donor, title="Soup")
    second = await create_offer(async_client, donor, title="Apples", food_type="produce")
    a1 = await accept_offer(async_client, partner, first["id"])
    await accept_offer(async_client, partner, second["id"])
    await async_client.post(
        f"{API}/pickups/{a1['id']}/complete",
        json={"otp_code": a1["otp_code"]},
        headers=auth_headers(partner),
    )

    resp = await async_client.get(f"{API}/pickups", headers=auth_headers(partner))
    assert resp.status_code == 200
    assert len(resp.json()) == 2

    resp = await async_client.get(
        f"{API}/pickups", params={"status": "active"}, headers=auth_headers(partner)
    )
    assert [p["offer"]["title"] for p in resp.json()] == ["Apples"]

    resp = await async_client.get(
        f"{API}/pickups", params={"status": "completed"}, headers=auth_headers(partner)
    )
    assert [p["offer"]["title"] for p in resp.json()] == ["Soup"]


@pytest.mark.asyncio
async def test_pending_partner_cannot_list_pickups(async_client: AsyncClient, pending_partner):
    resp = await async_client.get(f"{API}/pickups", headers=auth_headers(pending_partner))
    assert resp.status_code == 403
    assert resp.json()["redirect"] == "/dashboard/partner/pending"


@pytest.mark.asyncio
async def test_full_lifecycle_status_sequence(async_client: AsyncClient, donor, partner, db_session):
    offer = await create_offer(async_client, donor)
    statuses = [offer["status"]]

    assignment = await accept_offer(async_client, partner, offer["id"])
    statuses.append((await db_session.scalar(select(Offer.status).where(Offer.id == offer["id"]))))

    await async_client.post(f"{API}/pickups/{assignment['id']}/cancel", headers=auth_headers(partner))
    statuses.append((await db_session.scalar(select(Offer.status).where(Offer.id == offer["id"]))))

    assignment = await accept_offer(async_client, partner, offer["id"])
    await async_client.post(
        f"{API}/pickups/{assignment['id']}/complete",
        json={"otp_code": assignment["otp_code"]},
        headers=auth_headers(partner),
    )
    statuses.append((await db_session.scalar(select(Offer.status).where(Offer.id == offer["id"]))))

    assert statuses == ["available", "accepted", "available", "delivered"]


@pytest.mark.asyncio
async def test_pickup_removed_before_lock_is_not_found(
    async_client: AsyncClient, donor, partner, session_factory, monkeypatch
):
    offer = await create_offer(async_client, donor)
    assignment = await accept_offer(async_client, partner, offer["id"])
    locked_read = offer_service._get_offer_for_update

    async def remove_then_lock(db, offer_id):
        # The assignment disappears after the unlocked read
        async with session_factory() as session:
            await session.execute(delete(Assignment).where(Assignment.id == assignment["id"]))
            await session.commit()
        return await locked_read(db, offer_id)

    monkeypatch.setattr(offer_service, "_get_offer_for_update", remove_then_lock)
    resp = await async_client.post(
        f"{API}/pickups/{assignment['id']}/complete",
        json={"otp_code": assignment["otp_code"]},
        headers=auth_headers(partner),
    )
    assert resp.status_code == 404
    assert resp.json()["detail"] == "Pickup not found"
