"""ListingAvailabilityGuard — keeps listing status in lockstep with its transaction.

A listing is PENDING if and only if exactly one non-terminal transaction holds
it. Every status move goes through a compare-and-swap on the listing row, so a
competing reservation that lost the race fails deterministically instead of
double-booking.

    reserve        ACTIVE  -> PENDING   (transaction created)
    release        PENDING -> ACTIVE    (cancelled, expired, refunded)
    finalize_sold  PENDING -> SOLD      (completed)
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from src.ds_common.enums import ListingStatus
from src.ds_common.errors import (
    AppError,
    InternalError,
    ListingNotFoundError,
    ListingReservedError,
    ListingSoldError,
    ListingUnavailableError,
)
from src.ds_listing.domain.models import Listing
from src.ds_listing.domain.repository import ListingRepositoryProtocol

logger = logging.getLogger(__name__)


def unavailable_error(listing_id: str, status: str) -> AppError:
    """Map a non-ACTIVE listing status to the error the buyer should see."""
    if status == ListingStatus.SOLD:
        return ListingSoldError(listing_id)
    if status == ListingStatus.PENDING:
        return ListingReservedError(listing_id)
    return ListingUnavailableError(listing_id, status)


class ListingAvailabilityGuard:
    def __init__(self, repo: ListingRepositoryProtocol) -> None:
        self._repo = repo

    async def reserve(self, db: AsyncSession, listing: Listing) -> None:
        if listing.status != ListingStatus.ACTIVE:
            raise unavailable_error(listing.id, listing.status)
        swapped = await self._repo.compare_and_set_status(
            db, listing.id, ListingStatus.ACTIVE, ListingStatus.PENDING
        )
        if not swapped:
            current = await self._repo.get_by_id(db, listing.id)
            if current is None:
                raise ListingNotFoundError(listing.id)
            raise unavailable_error(listing.id, current.status)
        listing.status = ListingStatus.PENDING
        logger.info("Listing %s reserved", listing.id)

    async def release(self, db: AsyncSession, listing_id: str) -> None:
        await self._move(db, listing_id, ListingStatus.PENDING, ListingStatus.ACTIVE)

    async def finalize_sold(self, db: AsyncSession, listing_id: str) -> None:
        await self._move(db, listing_id, ListingStatus.PENDING, ListingStatus.SOLD)

    async def apply(self, db: AsyncSession, listing_id: str, target: str | None) -> None:
        """Apply the listing status a transaction transition asked for."""
        if target is None:
            return
        if target == ListingStatus.ACTIVE:
            await self.release(db, listing_id)
        elif target == ListingStatus.SOLD:
            await self.finalize_sold(db, listing_id)
        else:
            raise InternalError(f"Unsupported listing target status {target}")

    async def _move(
        self, db: AsyncSession, listing_id: str, expected: str, new: str
    ) -> None:
        swapped = await self._repo.compare_and_set_status(db, listing_id, expected, new)
        if not swapped:
            # The listing/transaction pairing is broken; abort the whole unit.
            raise InternalError(
                f"Listing {listing_id} expected status {expected} while moving to {new}"
            )
        logger.info("Listing %s: %s -> %s", listing_id, expected, new)
