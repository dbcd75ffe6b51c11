"""Repository Protocol — dependency inversion for testability.

Unit tests inject an in-memory fake that conforms to this Protocol.
Infrastructure layer provides the real implementation.
"""

from datetime import datetime
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.ds_listing.domain.models import Bid, Listing


class ListingRepositoryProtocol(Protocol):
    async def get_by_id(self, db: AsyncSession, listing_id: str) -> Listing | None: ...

    async def get_for_update(self, db: AsyncSession, listing_id: str) -> Listing | None:
        """Load the listing and hold its row lock until the unit of work ends."""
        ...

    async def insert(self, db: AsyncSession, listing: Listing) -> Listing: ...

    async def update_details(self, db: AsyncSession, listing: Listing) -> Listing: ...

    async def compare_and_set_status(
        self, db: AsyncSession, listing_id: str, expected: str, new: str
    ) -> bool:
        """Set status to `new` only if it is currently `expected`.

        Returns False when another unit of work changed the status first.
        """
        ...

    async def set_current_bid(self, db: AsyncSession, listing_id: str, amount: int) -> None: ...

    async def insert_bid(self, db: AsyncSession, bid: Bid) -> Bid: ...

    async def get_highest_bid(self, db: AsyncSession, listing_id: str) -> Bid | None: ...

    async def list_bids(self, db: AsyncSession, listing_id: str, limit: int) -> list[Bid]: ...

    async def count_bids(self, db: AsyncSession, listing_id: str) -> int: ...

    async def list_ended_auction_ids(
        self, db: AsyncSession, now: datetime, limit: int
    ) -> list[str]: ...
