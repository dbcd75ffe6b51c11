"""ds_listing REST endpoints.

POST  /listings                          — create (DRAFT)
GET   /listings/{listing_id}             — detail with bid count
PATCH /listings/{listing_id}             — partial update (seller)
POST  /listings/{listing_id}/publish     — DRAFT -> ACTIVE (seller)
POST  /listings/{listing_id}/cancel      — soft delete (seller)
GET   /listings/{listing_id}/bids        — bids, highest first
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.ds_common.database import get_db_session
from src.ds_common.response import ApiResponse, success_response
from src.ds_gateway.auth.dependencies import get_current_user
from src.ds_gateway.user.db_models import UserModel
from src.ds_listing.application.schemas import (
    CreateListingRequest,
    UpdateListingRequest,
    bid_to_response,
    listing_to_response,
)
from src.ds_listing.application.service import ListingService

router = APIRouter(prefix="/listings", tags=["listings"])

_service = ListingService()


@router.post("", status_code=201)
async def create_listing(
    req: CreateListingRequest,
    request: Request,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    listing = await _service.create(db, str(current_user.id), req)
    resp = success_response(listing_to_response(listing).model_dump())
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.get("/{listing_id}")
async def get_listing(
    listing_id: str,
    request: Request,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    listing, bid_count = await _service.get(db, listing_id, str(current_user.id))
    resp = success_response(listing_to_response(listing, bid_count).model_dump())
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.patch("/{listing_id}")
async def update_listing(
    listing_id: str,
    req: UpdateListingRequest,
    request: Request,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    listing = await _service.update(db, listing_id, str(current_user.id), req)
    resp = success_response(listing_to_response(listing).model_dump())
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.post("/{listing_id}/publish")
async def publish_listing(
    listing_id: str,
    request: Request,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    listing = await _service.publish(db, listing_id, str(current_user.id))
    resp = success_response(listing_to_response(listing).model_dump())
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.post("/{listing_id}/cancel")
async def cancel_listing(
    listing_id: str,
    request: Request,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    listing = await _service.cancel(db, listing_id, str(current_user.id))
    resp = success_response(listing_to_response(listing).model_dump())
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.get("/{listing_id}/bids")
async def list_bids(
    listing_id: str,
    request: Request,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    limit: int = Query(50, ge=1, le=200),
) -> ApiResponse:
    bids = await _service.list_bids(db, listing_id, limit)
    resp = success_response([bid_to_response(b).model_dump() for b in bids])
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp
