"""
Offer endpoints.

- Donors create, list, cancel and delete their own offers.
- Approved partners browse available offers and accept them.
"""

from __future__ import annotations

import json
import logging

from fastapi import (APIRouter, BackgroundTasks, Depends, File, Form,
                     HTTPException, Query, UploadFile)
from fastapi.encoders import jsonable_encoder
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.deps import (get_db, get_geocoder, get_notifier,
                             get_session_context, get_storage,
                             require_approved_partner, require_donor)
from app.core.session import SessionContext
from app.schemas.common import DeleteResponse
from app.schemas.offer import (AcceptResponse, AvailableOfferRead,
                               DonorOfferRead, OfferCreate, OfferCreated)
from app.services import offers as offer_service
from app.services.geocoding import Geocoder
from app.services.notifications import NotificationDispatcher
from app.services.storage import ObjectStorage

router = APIRouter(prefix="/offers", tags=["offers"])
logger = logging.getLogger(__name__)


# ── Donor ───────────────────────────────────────────────────────────
@router.post("", response_model=OfferCreated, status_code=201)
async def create_offer(
    body: OfferCreate,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    ctx: SessionContext = Depends(require_donor),
    notifier: NotificationDispatcher = Depends(get_notifier),
    geocoder: Geocoder = Depends(get_geocoder),
) -> OfferCreated:
    """Post a new surplus-food offer (status ``available``)."""
    return await offer_service.create_offer(
        db, ctx, body, notifier=notifier, background_tasks=background_tasks, geocoder=geocoder
    )


@router.post("/with-image", response_model=OfferCreated, status_code=201)
async def create_offer_with_image(
    background_tasks: BackgroundTasks,
    payload: str = Form(..., description="Offer fields as a JSON object"),
    image: UploadFile | None = File(default=None),
    db: AsyncSession = Depends(get_db),
    ctx: SessionContext = Depends(require_donor),
    notifier: NotificationDispatcher = Depends(get_notifier),
    geocoder: Geocoder = Depends(get_geocoder),
    storage: ObjectStorage = Depends(get_storage),
) -> OfferCreated:
    """Multipart variant: ``payload`` JSON plus an optional ``image`` file.

    The image is uploaded first; if that fails the offer is still created and
    the response carries a warning.
    """
    try:
        body = OfferCreate.model_validate(json.loads(payload))
    except json.JSONDecodeError as exc:
        raise HTTPException(status_code=422, detail=f"payload must be valid JSON ({exc.msg})")
    except ValidationError as exc:
        raise HTTPException(
            status_code=422,
            detail=jsonable_encoder(exc.errors(include_url=False, include_context=False)),
        )

    upload = None
    if image is not None and image.filename:
        upload = (image.filename, await image.read())

    return await offer_service.create_offer(
        db,
        ctx,
        body,
        notifier=notifier,
        background_tasks=background_tasks,
        geocoder=geocoder,
        storage=storage,
        image=upload,
    )


@router.get("/mine", response_model=list[DonorOfferRead])
async def list_my_offers(
    status: str | None = Query(default=None, description="Offer status or 'all'"),
    search: str | None = Query(default=None, max_length=200),
    db: AsyncSession = Depends(get_db),
    ctx: SessionContext = Depends(require_donor),
) -> list[DonorOfferRead]:
    """Donor's offers, newest first, each with its pickups and verification code."""
    return await offer_service.list_my_offers(db, ctx, status, search)


# ── Partner ─────────────────────────────────────────────────────────
@router.get("/available", response_model=list[AvailableOfferRead])
async def list_available_offers(
    food_type: str | None = Query(default=None),
    search: str | None = Query(default=None, max_length=200),
    lat: float | None = Query(default=None, ge=-90, le=90),
    lng: float | None = Query(default=None, ge=-180, le=180),
    db: AsyncSession = Depends(get_db),
    ctx: SessionContext = Depends(require_approved_partner),
) -> list[AvailableOfferRead]:
    """Offers open for pickup; nearest first when ``lat``/``lng`` are given."""
    if (lat is None) != (lng is None):
        raise HTTPException(status_code=400, detail="lat and lng must be provided together")
    return await offer_service.list_available_offers(db, ctx, food_type, search, lat, lng)


@router.get("/{offer_id}", response_model=DonorOfferRead)
async def get_offer(
    offer_id: int,
    db: AsyncSession = Depends(get_db),
    ctx: SessionContext = Depends(get_session_context),
) -> DonorOfferRead:
    return await offer_service.get_offer(db, ctx, offer_id)


@router.post("/{offer_id}/accept", response_model=AcceptResponse)
async def accept_offer(
    offer_id: int,
    db: AsyncSession = Depends(get_db),
    ctx: SessionContext = Depends(require_approved_partner),
) -> AcceptResponse:
    """Claim an available offer. Exactly one partner can win a given offer."""
    return await offer_service.accept_offer(db, ctx, offer_id)


# ── Donor: cancel / delete ─────────────────────────────────────────
@router.post("/{offer_id}/cancel", response_model=DonorOfferRead)
async def cancel_offer(
    offer_id: int,
    db: AsyncSession = Depends(get_db),
    ctx: SessionContext = Depends(require_donor),
) -> DonorOfferRead:
    return await offer_service.cancel_offer(db, ctx, offer_id)


@router.delete("/{offer_id}", response_model=DeleteResponse)
async def delete_offer(
    offer_id: int,
    db: AsyncSession = Depends(get_db),
    ctx: SessionContext = Depends(require_donor),
) -> DeleteResponse:
    """Hard-delete an offer that has not been picked up or delivered."""
    await offer_service.delete_offer(db, ctx, offer_id)
    return DeleteResponse(success=True, message="Offer deleted")
