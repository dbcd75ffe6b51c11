"""Domain models for ds_listing — pure dataclasses, no I/O."""

from dataclasses import dataclass
from datetime import datetime

from src.ds_common.enums import ListingStatus, ListingType


@dataclass
class Listing:
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
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_auction(self) -> bool:
        return self.listing_type == ListingType.AUCTION

    @property
    def is_biddable(self) -> bool:
        return self.is_auction and self.status == ListingStatus.ACTIVE

    def purchase_amount(self) -> int:
        """Amount a buyer pays: the current highest bid for auctions, else the price."""
        if self.is_auction and self.current_bid is not None:
            return self.current_bid
        return self.price


@dataclass
class Bid:
    """Immutable bid record; created only by the auction engine."""

    id: str
    listing_id: str
    bidder_id: str
    amount: int
    created_at: datetime
