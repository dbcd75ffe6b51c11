"""Listing terms validation.

Field lengths and ranges are checked by the request schemas; the rules here
span fields or depend on the clock.
"""

from datetime import datetime

from src.ds_common.errors import InvalidListingError
from src.ds_common.money import validate_price
from src.ds_listing.domain.models import Listing

AUCTION_PRICING_FIELDS = ("starting_bid", "bid_increment", "auction_ends_at")


def check_listing_terms(listing: Listing, now: datetime) -> None:
    try:
        validate_price(listing.price)
        if listing.buy_now_price is not None:
            validate_price(listing.buy_now_price, "buy_now_price")
        if listing.is_auction:
            if listing.starting_bid is None:
                raise InvalidListingError("an auction needs a starting_bid")
            validate_price(listing.starting_bid, "starting_bid")
    except ValueError as exc:
        raise InvalidListingError(str(exc)) from None

    if not listing.is_auction:
        return
    if listing.bid_increment is None or listing.bid_increment <= 0:
        raise InvalidListingError("bid_increment must be positive")
    if listing.auction_ends_at is None:
        raise InvalidListingError("an auction needs auction_ends_at")
    if listing.auction_ends_at <= now:
        raise InvalidListingError("auction_ends_at must be in the future")
    if listing.buy_now_price is not None and listing.buy_now_price <= listing.starting_bid:
        raise InvalidListingError("buy_now_price must exceed starting_bid")
