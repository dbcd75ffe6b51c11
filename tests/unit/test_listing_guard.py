# tests/unit/test_listing_guard.py
"""ListingAvailabilityGuard — compare-and-swap moves of the listing status."""
from dataclasses import replace

import pytest

from src.ds_common.enums import ListingStatus
from src.ds_common.errors import (
    InternalError,
    ListingReservedError,
    ListingSoldError,
    ListingUnavailableError,
)
from src.ds_listing.domain.guard import ListingAvailabilityGuard, unavailable_error


@pytest.fixture
def guard(escrow) -> ListingAvailabilityGuard:
    return ListingAvailabilityGuard(escrow.listings)


class TestReserve:
    async def test_active_listing_becomes_pending(self, escrow, guard) -> None:
        listing = escrow.add_listing()

        await guard.reserve(escrow.db, listing)

        assert listing.status == ListingStatus.PENDING
        assert escrow.listing_status() == ListingStatus.PENDING

    @pytest.mark.parametrize(
        "status,error",
        [
            (ListingStatus.PENDING, ListingReservedError),
            (ListingStatus.SOLD, ListingSoldError),
            (ListingStatus.DRAFT, ListingUnavailableError),
            (ListingStatus.CANCELLED, ListingUnavailableError),
        ],
    )
    async def test_non_active_listing_rejected(self, escrow, guard, status, error) -> None:
        listing = escrow.add_listing(status=status)

        with pytest.raises(error):
            await guard.reserve(escrow.db, listing)

        assert escrow.listing_status() == status

    async def test_lost_race_reports_current_status(self, escrow, guard) -> None:
        # The caller read ACTIVE, but another unit of work reserved it since.
        listing = escrow.add_listing()
        stale = replace(listing)
        escrow.listings.listings[listing.id].status = ListingStatus.PENDING

        with pytest.raises(ListingReservedError):
            await guard.reserve(escrow.db, stale)


class TestReleaseAndFinalize:
    async def test_release_pending(self, escrow, guard) -> None:
        escrow.add_listing(status=ListingStatus.PENDING)
        await guard.release(escrow.db, "listing-1")
        assert escrow.listing_status() == ListingStatus.ACTIVE

    async def test_finalize_pending(self, escrow, guard) -> None:
        escrow.add_listing(status=ListingStatus.PENDING)
        await guard.finalize_sold(escrow.db, "listing-1")
        assert escrow.listing_status() == ListingStatus.SOLD

    async def test_release_of_non_pending_listing_is_internal_error(self, escrow, guard) -> None:
        escrow.add_listing(status=ListingStatus.ACTIVE)
        with pytest.raises(InternalError):
            await guard.release(escrow.db, "listing-1")

    async def test_sold_listing_cannot_be_resold(self, escrow, guard) -> None:
        escrow.add_listing(status=ListingStatus.SOLD)
        with pytest.raises(InternalError):
            await guard.finalize_sold(escrow.db, "listing-1")


class TestApply:
    async def test_none_is_noop(self, escrow, guard) -> None:
        escrow.add_listing(status=ListingStatus.PENDING)
        await guard.apply(escrow.db, "listing-1", None)
        assert escrow.listing_status() == ListingStatus.PENDING

    async def test_routes_targets(self, escrow, guard) -> None:
        escrow.add_listing(status=ListingStatus.PENDING)
        await guard.apply(escrow.db, "listing-1", ListingStatus.SOLD)
        assert escrow.listing_status() == ListingStatus.SOLD

    async def test_unsupported_target(self, escrow, guard) -> None:
        escrow.add_listing(status=ListingStatus.PENDING)
        with pytest.raises(InternalError):
            await guard.apply(escrow.db, "listing-1", ListingStatus.CANCELLED)


class TestUnavailableError:
    def test_mapping(self) -> None:
        assert isinstance(unavailable_error("l", ListingStatus.SOLD), ListingSoldError)
        assert isinstance(unavailable_error("l", ListingStatus.PENDING), ListingReservedError)
        err = unavailable_error("l", ListingStatus.DRAFT)
        assert isinstance(err, ListingUnavailableError)
        assert err.http_status == 409
