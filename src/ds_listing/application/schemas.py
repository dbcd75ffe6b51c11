"""Pydantic schemas for ds_listing API requests and responses."""

from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from src.ds_common.enums import ListingType
from src.ds_listing.domain.models import Bid, Listing


class CreateListingRequest(BaseModel):
    title: str = Field(..., min_length=5, max_length=100)
    description: str = Field(..., min_length=20, max_length=5000)
    category: str = Field(..., min_length=1, max_length=64)
    listing_type: ListingType = ListingType.FIXED
    price: int
    starting_bid: int | None = None
    bid_increment: int | None = None
    buy_now_price: int | None = None
    auction_ends_at: datetime | None = None

    @field_validator("title", "description", "category")
    @classmethod
    def strip_text(cls, v: str) -> str:
        stripped = v.strip()
        if not stripped:
            raise ValueError("must not be blank")
        return stripped

    @field_validator("auction_ends_at")
    @classmethod
    def require_timezone(cls, v: datetime | None) -> datetime | None:
        if v is not None and v.tzinfo is None:
            raise ValueError("auction_ends_at must include a timezone offset")
        return v


class UpdateListingRequest(BaseModel):
    """Partial update; omitted fields keep their current value."""

    title: str | None = Field(None, min_length=5, max_length=100)
    description: str | None = Field(None, min_length=20, max_length=5000)
    category: str | None = Field(None, min_length=1, max_length=64)
    price: int | None = None
    starting_bid: int | None = None
    bid_increment: int | None = None
    buy_now_price: int | None = None
    auction_ends_at: datetime | None = None

    @field_validator("title", "description", "category", "price")
    @classmethod
    def reject_null(cls, v: str | int | None) -> str | int:
        # These columns are NOT NULL: omit the field to keep the current value.
        if v is None:
            raise ValueError("may be omitted but not set to null")
        return v

    @field_validator("auction_ends_at")
    @classmethod
    def require_timezone(cls, v: datetime | None) -> datetime | None:
        if v is not None and v.tzinfo is None:
            raise ValueError("auction_ends_at must include a timezone offset")
        return v


class ListingResponse(BaseModel):
    id: str
    seller_id: str
    title: str
    description: str
    category: str
    listing_type: str
    price: int
    status: str
    starting_bid: int | None = None
    current_bid: int | None = None
    bid_increment: int | None = None
    buy_now_price: int | None = None
    auction_ends_at: datetime | None = None
    bid_count: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None


class BidResponse(BaseModel):
    id: str
    listing_id: str
    bidder_id: str
    amount: int
    created_at: datetime


def listing_to_response(listing: Listing, bid_count: int = 0) -> ListingResponse:
    return ListingResponse(
        id=listing.id,
        seller_id=listing.seller_id,
        title=listing.title,
        description=listing.description,
        category=listing.category,
        listing_type=listing.listing_type,
        price=listing.price,
        status=listing.status,
        starting_bid=listing.starting_bid,
        current_bid=listing.current_bid,
        bid_increment=listing.bid_increment,
        buy_now_price=listing.buy_now_price,
        auction_ends_at=listing.auction_ends_at,
        bid_count=bid_count,
        created_at=listing.created_at,
        updated_at=listing.updated_at,
    )


def bid_to_response(bid: Bid) -> BidResponse:
    return BidResponse(
        id=bid.id,
        listing_id=bid.listing_id,
        bidder_id=bid.bidder_id,
        amount=bid.amount,
        created_at=bid.created_at,
    )
