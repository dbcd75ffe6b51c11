"""ds_auction REST endpoints.

POST /listings/{listing_id}/bids          — place a bid
GET  /listings/{listing_id}/minimum-bid   — smallest bid that would be accepted
POST /listings/{listing_id}/close         — seller closes the auction
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.ds_auction.application.schemas import (
    CloseAuctionRequest,
    MinimumBidResponse,
    PlaceBidRequest,
    outcome_to_response,
)
from src.ds_auction.application.service import get_auction_engine
from src.ds_common.database import get_db_session
from src.ds_common.response import ApiResponse, success_response
from src.ds_gateway.auth.dependencies import get_current_user
from src.ds_gateway.middleware.rate_limit import bid_limit
from src.ds_gateway.user.db_models import UserModel
from src.ds_listing.application.schemas import bid_to_response

router = APIRouter(prefix="/listings", tags=["auctions"])


@router.post("/{listing_id}/bids", status_code=201, dependencies=[Depends(bid_limit)])
async def place_bid(
    listing_id: str,
    req: PlaceBidRequest,
    request: Request,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    bid = await get_auction_engine().place_bid(db, listing_id, str(current_user.id), req.amount)
    resp = success_response(bid_to_response(bid).model_dump())
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.get("/{listing_id}/minimum-bid")
async def minimum_bid(
    listing_id: str,
    request: Request,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    amount = await get_auction_engine().minimum_bid(db, listing_id)
    result = MinimumBidResponse(listing_id=listing_id, minimum_bid=amount)
    resp = success_response(result.model_dump())
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.post("/{listing_id}/close")
async def close_auction(
    listing_id: str,
    req: CloseAuctionRequest,
    request: Request,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    outcome = await get_auction_engine().close_auction(
        db, listing_id, str(current_user.id), req.payment_method
    )
    resp = success_response(outcome_to_response(outcome).model_dump())
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp
