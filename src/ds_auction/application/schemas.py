"""Pydantic schemas for ds_auction API requests and responses."""

from pydantic import BaseModel, Field

from src.ds_auction.application.service import AuctionOutcome
from src.ds_common.enums import PaymentMethod
from src.ds_listing.application.schemas import (
    BidResponse,
    ListingResponse,
    bid_to_response,
    listing_to_response,
)


class PlaceBidRequest(BaseModel):
    amount: int = Field(..., gt=0)


class CloseAuctionRequest(BaseModel):
    payment_method: PaymentMethod = PaymentMethod.VA


class MinimumBidResponse(BaseModel):
    listing_id: str
    minimum_bid: int


class AuctionOutcomeResponse(BaseModel):
    listing: ListingResponse
    winning_bid: BidResponse | None = None
    transaction_id: str | None = None
    payment_id: str | None = None
    invoice_url: str | None = None


def outcome_to_response(outcome: AuctionOutcome) -> AuctionOutcomeResponse:
    return AuctionOutcomeResponse(
        listing=listing_to_response(outcome.listing),
        winning_bid=bid_to_response(outcome.winning_bid) if outcome.winning_bid else None,
        transaction_id=outcome.transaction.id if outcome.transaction else None,
        payment_id=outcome.payment.id if outcome.payment else None,
        invoice_url=outcome.payment.invoice_url if outcome.payment else None,
    )
