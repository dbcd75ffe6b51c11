"""Bid acceptance rules — pure checks, raise on the first violation."""

from datetime import datetime

from src.ds_common.enums import ListingStatus
from src.ds_common.errors import (
    AuctionEndedError,
    AuctionNotActiveError,
    BidTooLowError,
    NotAnAuctionError,
    SelfBidError,
)
from src.ds_listing.domain.models import Bid, Listing


def current_price(listing: Listing, highest_bid: Bid | None) -> int:
    """Highest accepted bid, or the starting bid while nobody has bid."""
    if highest_bid is not None:
        return highest_bid.amount
    return listing.starting_bid if listing.starting_bid is not None else listing.price


def minimum_next_bid(listing: Listing, highest_bid: Bid | None) -> int:
    """A bid must beat the current price by at least the increment; ties lose."""
    return current_price(listing, highest_bid) + (listing.bid_increment or 0)


def check_bid(
    listing: Listing,
    bidder_id: str,
    amount: int,
    highest_bid: Bid | None,
    now: datetime,
) -> None:
    if not listing.is_auction:
        raise NotAnAuctionError(listing.id)
    if listing.status != ListingStatus.ACTIVE:
        raise AuctionNotActiveError(listing.id, listing.status)
    if bidder_id == listing.seller_id:
        raise SelfBidError()
    if listing.auction_ends_at is not None and now > listing.auction_ends_at:
        raise AuctionEndedError(listing.id)
    minimum = minimum_next_bid(listing, highest_bid)
    if amount < minimum:
        raise BidTooLowError(amount, minimum)


def is_auction_over(listing: Listing, now: datetime) -> bool:
    return listing.auction_ends_at is not None and now > listing.auction_ends_at
