# tests/unit/test_sweeps.py
"""SweepService — batch runs of the scheduler-driven transitions."""
from unittest.mock import AsyncMock

from src.ds_common.enums import (
    AuditAction,
    DisputeResolution,
    ListingStatus,
    NotificationType,
    PaymentMethod,
    TransactionStatus,
)

SELLER = "seller-1"
BUYER = "buyer-1"


async def _open(escrow, listing_id: str = "listing-1"):
    escrow.add_listing(id=listing_id)
    return await escrow.machine.create(escrow.db, listing_id, BUYER, PaymentMethod.VA)


async def _transferred(escrow, listing_id: str = "listing-1"):
    opened = await _open(escrow, listing_id)
    await escrow.machine.mark_paid(escrow.db, opened.payment.id)
    await escrow.machine.mark_transferred(escrow.db, opened.transaction.id, SELLER)
    return opened


class TestExpirePayments:
    async def test_expires_overdue_and_cancels(self, escrow) -> None:
        overdue = await _open(escrow, "listing-1")
        escrow.clock.advance(hours=12)
        fresh = await _open(escrow, "listing-2")
        escrow.clock.advance(hours=12, seconds=1)
        escrow.db.reset_mock()

        report = await escrow.sweeps.expire_payments(escrow.db)

        assert (report.processed, report.succeeded, report.skipped) == (1, 1, 0)
        assert report.errors == []
        assert escrow.stored(overdue.transaction.id).status == TransactionStatus.CANCELLED
        assert escrow.stored(fresh.transaction.id).status == TransactionStatus.PENDING_PAYMENT
        assert escrow.listing_status("listing-1") == ListingStatus.ACTIVE
        assert escrow.listing_status("listing-2") == ListingStatus.PENDING
        assert escrow.db.rollback.await_count >= 1

    async def test_nothing_due(self, escrow) -> None:
        await _open(escrow)
        report = await escrow.sweeps.expire_payments(escrow.db)
        assert report.processed == 0

    async def test_unexpected_error_is_recorded_and_batch_continues(self, escrow) -> None:
        first = await _open(escrow, "listing-1")
        second = await _open(escrow, "listing-2")
        escrow.clock.advance(hours=25)
        real_expire = escrow.machine.expire_payment

        async def flaky(db, payment_id):
            if payment_id == first.payment.id:
                raise RuntimeError("connection lost")
            return await real_expire(db, payment_id)

        escrow.machine.expire_payment = flaky

        report = await escrow.sweeps.expire_payments(escrow.db)

        assert report.processed == 2
        assert report.succeeded == 1
        assert report.errors == [
            {"id": first.payment.id, "code": 9002, "message": "connection lost"}
        ]
        assert escrow.stored(second.transaction.id).status == TransactionStatus.CANCELLED


class TestAutoRelease:
    async def test_releases_expired_windows(self, escrow) -> None:
        opened = await _transferred(escrow)
        escrow.clock.advance(hours=24, seconds=1)

        report = await escrow.sweeps.auto_release(escrow.db)

        assert report.succeeded == 1
        assert escrow.stored(opened.transaction.id).status == TransactionStatus.COMPLETED
        assert escrow.payouts.payouts[0].amount == 95_000

    async def test_disputed_transaction_is_not_released(self, escrow) -> None:
        opened = await _transferred(escrow)
        await escrow.resolver.open(
            escrow.db, opened.transaction.id, BUYER, "NOT_AS_DESCRIBED",
            "The account was recovered by the original owner.",
        )
        escrow.clock.advance(hours=48)

        report = await escrow.sweeps.auto_release(escrow.db)

        assert report.processed == 0
        assert escrow.stored(opened.transaction.id).status == TransactionStatus.DISPUTED

    async def test_candidate_that_no_longer_qualifies_is_skipped(self, escrow) -> None:
        opened = await _transferred(escrow)
        # Selected as overdue, but the window is in fact still open.
        escrow.transactions.list_verification_expired_ids = AsyncMock(
            return_value=[opened.transaction.id]
        )

        report = await escrow.sweeps.auto_release(escrow.db)

        assert (report.processed, report.succeeded, report.skipped) == (1, 0, 1)
        assert report.errors == []


class TestRefundStalePaid:
    async def test_refunds_untransferred_orders(self, escrow) -> None:
        opened = await _open(escrow)
        await escrow.machine.mark_paid(escrow.db, opened.payment.id)
        escrow.clock.advance(hours=49)

        report = await escrow.sweeps.refund_stale_paid(escrow.db)

        assert report.succeeded == 1
        assert escrow.stored(opened.transaction.id).status == TransactionStatus.REFUNDED
        assert escrow.listing_status() == ListingStatus.ACTIVE


class TestCloseAuctions:
    async def test_closes_ended_auctions(self, escrow) -> None:
        escrow.add_auction(id="auction-1")
        escrow.add_auction(id="auction-2")
        await escrow.auctions.place_bid(escrow.db, "auction-1", BUYER, 110_000)
        escrow.clock.advance(hours=24, seconds=1)

        report = await escrow.sweeps.close_auctions(escrow.db)

        assert report.succeeded == 2
        assert escrow.listing_status("auction-1") == ListingStatus.PENDING
        assert escrow.listing_status("auction-2") == ListingStatus.CANCELLED
        txns = list(escrow.transactions.transactions.values())
        assert [(t.listing_id, t.buyer_id, t.transaction_amount) for t in txns] == [
            ("auction-1", BUYER, 110_000)
        ]

    async def test_gateway_error_is_reported_per_listing(self, escrow) -> None:
        escrow.add_auction(id="auction-1")
        escrow.add_auction(id="auction-2")
        await escrow.auctions.place_bid(escrow.db, "auction-1", BUYER, 110_000)
        escrow.clock.advance(hours=24, seconds=1)
        escrow.gateway.error = RuntimeError("gateway timeout")

        report = await escrow.sweeps.close_auctions(escrow.db)

        assert report.processed == 2
        assert report.succeeded == 1
        assert len(report.errors) == 1
        assert report.errors[0]["id"] == "auction-1"
        assert report.errors[0]["code"] == 5003
        assert escrow.listing_status("auction-2") == ListingStatus.CANCELLED

    async def test_running_auctions_untouched(self, escrow) -> None:
        escrow.add_auction()
        report = await escrow.sweeps.close_auctions(escrow.db)
        assert report.processed == 0
        assert escrow.listing_status("auction-1") == ListingStatus.ACTIVE

    async def test_lapsed_winner_is_not_reinvoiced(self, escrow) -> None:
        escrow.add_auction()
        await escrow.auctions.place_bid(escrow.db, "auction-1", BUYER, 110_000)
        escrow.clock.advance(hours=24, seconds=1)
        await escrow.sweeps.close_auctions(escrow.db)

        for _ in range(3):
            escrow.clock.advance(hours=25)
            await escrow.sweeps.expire_payments(escrow.db)
            await escrow.sweeps.close_auctions(escrow.db)

        txns = list(escrow.transactions.transactions.values())
        assert [(t.buyer_id, t.status) for t in txns] == [(BUYER, TransactionStatus.CANCELLED)]
        assert escrow.listing_status("auction-1") == ListingStatus.CANCELLED
        assert escrow.audit.actions().count(AuditAction.AUCTION_CLOSED) == 2
        assert NotificationType.AUCTION_ENDED in escrow.sink.types_for(SELLER)

    async def test_refunded_winner_gets_no_second_order(self, escrow) -> None:
        escrow.add_auction()
        await escrow.auctions.place_bid(escrow.db, "auction-1", BUYER, 110_000)
        escrow.clock.advance(hours=24, seconds=1)
        await escrow.sweeps.close_auctions(escrow.db)
        (won,) = escrow.transactions.transactions.values()
        (payment,) = escrow.payments.payments.values()
        await escrow.machine.mark_paid(escrow.db, payment.id)
        await escrow.machine.mark_transferred(escrow.db, won.id, SELLER)
        dispute = await escrow.resolver.open(
            escrow.db, won.id, BUYER, "ACCESS_ISSUE",
            "The account login was changed back by the seller after transfer.",
        )
        await escrow.resolver.start_review(escrow.db, dispute.id, "admin-1")
        await escrow.resolver.resolve(
            escrow.db, dispute.id, "admin-1", DisputeResolution.FULL_REFUND
        )
        assert escrow.listing_status("auction-1") == ListingStatus.ACTIVE

        report = await escrow.sweeps.close_auctions(escrow.db)

        assert report.succeeded == 1
        assert len(escrow.transactions.transactions) == 1
        assert escrow.stored(won.id).status == TransactionStatus.REFUNDED
        assert escrow.listing_status("auction-1") == ListingStatus.CANCELLED
        assert escrow.sink.types_for(BUYER).count(NotificationType.AUCTION_WON) == 1
