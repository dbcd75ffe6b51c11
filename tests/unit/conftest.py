"""In-memory fakes for the repository Protocols and external collaborators.

Every fake hands out copies (dataclasses.replace), so a service only changes
stored state through the repository calls it makes, just like with the real
database. The session is an AsyncMock: commit/rollback are recorded but the
fakes do not roll back, so failure paths assert on db.rollback instead.
"""

from dataclasses import dataclass, replace
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock

import pytest

from src.ds_auction.application.service import AuctionEngine
from src.ds_common.effects import AuditRecord, Notify
from src.ds_common.enums import (
    DisputeStatus,
    ListingStatus,
    ListingType,
    PaymentStatus,
    TransactionStatus,
)
from src.ds_common.locks import ListingLockRegistry
from src.ds_common.platform_config import PlatformConfig, StaticPlatformConfig
from src.ds_dispute.application.service import DisputeResolver
from src.ds_dispute.domain.models import Dispute, Evidence
from src.ds_gateway.user.providers import BankAccount, UserProfile
from src.ds_listing.application.service import ListingService
from src.ds_listing.domain.models import Bid, Listing
from src.ds_payment.domain.gateway import Invoice, InvoiceRequest
from src.ds_review.application.service import ReviewService
from src.ds_review.domain.models import Review
from src.ds_transaction.application.effects import EffectRunner
from src.ds_transaction.application.payments import PaymentService
from src.ds_transaction.application.service import TransactionStateMachine
from src.ds_transaction.application.sweeps import SweepService
from src.ds_transaction.domain.models import Payment, Payout, Transaction

T0 = datetime(2026, 3, 2, 9, 0, tzinfo=UTC)

SELLER = "seller-1"
BUYER = "buyer-1"
OTHER_BUYER = "buyer-2"
ADMIN = "admin-1"


def _copy(item):
    return replace(item) if item is not None else None


class FakeClock:
    def __init__(self, start: datetime = T0) -> None:
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> datetime:
        self.current += timedelta(**kwargs)
        return self.current


class FakeListingRepo:
    def __init__(self) -> None:
        self.listings: dict[str, Listing] = {}
        self.bids: list[Bid] = []

    async def get_by_id(self, db, listing_id):
        return _copy(self.listings.get(listing_id))

    async def get_for_update(self, db, listing_id):
        return _copy(self.listings.get(listing_id))

    async def insert(self, db, listing):
        stored = replace(listing, created_at=listing.created_at or T0, updated_at=T0)
        self.listings[stored.id] = stored
        return replace(stored)

    async def update_details(self, db, listing):
        self.listings[listing.id] = replace(listing)
        return replace(listing)

    async def compare_and_set_status(self, db, listing_id, expected, new):
        stored = self.listings.get(listing_id)
        if stored is None or stored.status != expected:
            return False
        stored.status = new
        return True

    async def set_current_bid(self, db, listing_id, amount):
        self.listings[listing_id].current_bid = amount

    async def insert_bid(self, db, bid):
        self.bids.append(replace(bid))
        return bid

    async def get_highest_bid(self, db, listing_id):
        bids = [b for b in self.bids if b.listing_id == listing_id]
        return _copy(max(bids, key=lambda b: b.amount, default=None))

    async def list_bids(self, db, listing_id, limit):
        bids = [b for b in self.bids if b.listing_id == listing_id]
        return sorted(bids, key=lambda b: b.amount, reverse=True)[:limit]

    async def count_bids(self, db, listing_id):
        return sum(1 for b in self.bids if b.listing_id == listing_id)

    async def list_ended_auction_ids(self, db, now, limit):
        return [
            listing.id
            for listing in self.listings.values()
            if listing.is_auction
            and listing.status == ListingStatus.ACTIVE
            and listing.auction_ends_at is not None
            and listing.auction_ends_at < now
        ][:limit]


class FakeDisputeRepo:
    def __init__(self) -> None:
        self.disputes: dict[str, Dispute] = {}
        self.evidence: list[Evidence] = []

    async def insert(self, db, dispute):
        if any(d.transaction_id == dispute.transaction_id for d in self.disputes.values()):
            raise RuntimeError("duplicate key value violates uq_disputes_transaction")
        stored = replace(dispute, created_at=T0, updated_at=T0)
        self.disputes[stored.id] = stored
        return replace(stored)

    async def get_by_id(self, db, dispute_id):
        return _copy(self.disputes.get(dispute_id))

    async def get_for_update(self, db, dispute_id):
        return _copy(self.disputes.get(dispute_id))

    async def get_by_transaction(self, db, transaction_id):
        found = next(
            (d for d in self.disputes.values() if d.transaction_id == transaction_id), None
        )
        return _copy(found)

    async def update(self, db, dispute, expected_status):
        stored = self.disputes.get(dispute.id)
        if stored is None or stored.status != expected_status:
            return False
        self.disputes[dispute.id] = replace(dispute)
        return True

    async def insert_evidence(self, db, evidence):
        stored = replace(evidence, created_at=T0)
        self.evidence.append(stored)
        return replace(stored)

    async def count_evidence(self, db, dispute_id, uploader_id):
        return sum(
            1 for e in self.evidence
            if e.dispute_id == dispute_id and e.uploader_id == uploader_id
        )

    async def list_evidence(self, db, dispute_id):
        return [replace(e) for e in self.evidence if e.dispute_id == dispute_id]


class FakeTransactionRepo:
    def __init__(self, disputes: FakeDisputeRepo) -> None:
        self.transactions: dict[str, Transaction] = {}
        self._disputes = disputes

    async def insert(self, db, txn):
        if any(
            t.listing_id == txn.listing_id and t.is_active for t in self.transactions.values()
        ):
            raise RuntimeError("duplicate key value violates uq_transactions_active_listing")
        self.transactions[txn.id] = replace(txn)
        return replace(txn)

    async def get_by_id(self, db, transaction_id):
        return _copy(self.transactions.get(transaction_id))

    async def get_for_update(self, db, transaction_id):
        return _copy(self.transactions.get(transaction_id))

    async def get_active_by_listing(self, db, listing_id):
        found = next(
            (t for t in self.transactions.values() if t.listing_id == listing_id and t.is_active),
            None,
        )
        return _copy(found)

    async def update(self, db, txn, expected_status):
        stored = self.transactions.get(txn.id)
        if stored is None or stored.status != expected_status:
            return False
        self.transactions[txn.id] = replace(txn)
        return True

    async def has_lapsed_order(self, db, listing_id, buyer_id):
        return any(
            t.listing_id == listing_id
            and t.buyer_id == buyer_id
            and t.status in (TransactionStatus.CANCELLED, TransactionStatus.REFUNDED)
            for t in self.transactions.values()
        )

    async def has_dispute(self, db, transaction_id):
        return any(d.transaction_id == transaction_id for d in self._disputes.disputes.values())

    async def has_open_dispute(self, db, transaction_id):
        return any(
            d.transaction_id == transaction_id and d.status != DisputeStatus.RESOLVED
            for d in self._disputes.disputes.values()
        )

    async def list_for_user(self, db, user_id, role, status, cursor_ts, cursor_id, limit):
        rows = [
            t for t in self.transactions.values()
            if (t.buyer_id == user_id if role == "buyer" else t.seller_id == user_id)
            and (status is None or t.status == status)
        ]
        rows.sort(key=lambda t: (t.created_at, t.id), reverse=True)
        if cursor_ts is not None:
            boundary = (datetime.fromisoformat(cursor_ts), cursor_id)
            rows = [t for t in rows if (t.created_at, t.id) < boundary]
        return [replace(t) for t in rows[:limit]]

    async def list_verification_expired_ids(self, db, now, limit):
        return [
            t.id for t in self.transactions.values()
            if t.status == TransactionStatus.ITEM_TRANSFERRED
            and t.verification_deadline is not None
            and t.verification_deadline < now
            and not any(d.transaction_id == t.id for d in self._disputes.disputes.values())
        ][:limit]

    async def list_stale_paid_ids(self, db, paid_before, limit):
        return [
            t.id for t in self.transactions.values()
            if t.status == TransactionStatus.PAID
            and t.paid_at is not None
            and t.paid_at < paid_before
        ][:limit]


class FakePaymentRepo:
    def __init__(self) -> None:
        self.payments: dict[str, Payment] = {}

    async def insert(self, db, payment):
        if payment.status == PaymentStatus.PENDING and any(
            p.transaction_id == payment.transaction_id and p.status == PaymentStatus.PENDING
            for p in self.payments.values()
        ):
            raise RuntimeError("duplicate key value violates uq_payments_pending_transaction")
        self.payments[payment.id] = replace(payment)
        return replace(payment)

    async def get_by_id(self, db, payment_id):
        return _copy(self.payments.get(payment_id))

    async def get_for_update(self, db, payment_id):
        return _copy(self.payments.get(payment_id))

    async def list_pending_for_transaction(self, db, transaction_id):
        return [
            replace(p) for p in self.payments.values()
            if p.transaction_id == transaction_id and p.status == PaymentStatus.PENDING
        ]

    async def list_by_transaction(self, db, transaction_id):
        return [replace(p) for p in self.payments.values() if p.transaction_id == transaction_id]

    async def mark_paid(self, db, payment_id, paid_at):
        stored = self.payments.get(payment_id)
        if stored is None or stored.status != PaymentStatus.PENDING:
            return False
        stored.status = PaymentStatus.PAID
        stored.paid_at = paid_at
        return True

    async def mark_expired(self, db, payment_id):
        stored = self.payments.get(payment_id)
        if stored is None or stored.status != PaymentStatus.PENDING:
            return False
        stored.status = PaymentStatus.EXPIRED
        return True

    async def expire_pending_for_transaction(self, db, transaction_id):
        expired = 0
        for p in self.payments.values():
            if p.transaction_id == transaction_id and p.status == PaymentStatus.PENDING:
                p.status = PaymentStatus.EXPIRED
                expired += 1
        return expired

    async def list_overdue_pending_ids(self, db, now, limit):
        return [
            p.id for p in self.payments.values()
            if p.status == PaymentStatus.PENDING and p.expires_at < now
        ][:limit]


class FakePayoutRepo:
    def __init__(self) -> None:
        self.payouts: list[Payout] = []

    async def insert(self, db, payout):
        if any(p.transaction_id == payout.transaction_id for p in self.payouts):
            raise RuntimeError("duplicate key value violates uq_payouts_transaction")
        self.payouts.append(replace(payout))
        return replace(payout)

    async def list_by_transaction(self, db, transaction_id):
        return [replace(p) for p in self.payouts if p.transaction_id == transaction_id]


class FakeReviewRepo:
    def __init__(self) -> None:
        self.reviews: list[Review] = []
        self.ratings: dict[str, tuple[float, int]] = {}

    async def insert(self, db, review):
        stored = replace(review, created_at=review.created_at or T0)
        self.reviews.append(stored)
        return replace(stored)

    async def get_by_reviewer(self, db, transaction_id, reviewer_id):
        found = next(
            (r for r in self.reviews
             if r.transaction_id == transaction_id and r.reviewer_id == reviewer_id),
            None,
        )
        return _copy(found)

    async def list_by_transaction(self, db, transaction_id):
        return [replace(r) for r in self.reviews if r.transaction_id == transaction_id]

    async def list_for_user(self, db, user_id, cursor_ts, cursor_id, limit):
        rows = [r for r in self.reviews if r.reviewed_user_id == user_id]
        rows.sort(key=lambda r: (r.created_at, r.id), reverse=True)
        if cursor_ts is not None:
            boundary = (datetime.fromisoformat(cursor_ts), cursor_id)
            rows = [r for r in rows if (r.created_at, r.id) < boundary]
        return [replace(r) for r in rows[:limit]]

    async def rating_distribution(self, db, user_id):
        distribution = {rating: 0 for rating in range(1, 6)}
        for r in self.reviews:
            if r.reviewed_user_id == user_id:
                distribution[r.rating] += 1
        return distribution

    async def get_user_rating_for_update(self, db, user_id):
        return self.ratings.get(user_id)

    async def get_user_rating(self, db, user_id):
        return self.ratings.get(user_id)

    async def set_user_rating(self, db, user_id, rating, count):
        self.ratings[user_id] = (rating, count)


class FakeGateway:
    """Invoice provider that records requests and reports a settable status."""

    def __init__(self, clock: FakeClock) -> None:
        self._clock = clock
        self.requests: list[InvoiceRequest] = []
        self.statuses: dict[str, str] = {}
        self.error: Exception | None = None

    async def create_invoice(self, request: InvoiceRequest) -> Invoice:
        if self.error is not None:
            raise self.error
        self.requests.append(request)
        invoice_id = f"inv-{len(self.requests)}"
        self.statuses[invoice_id] = PaymentStatus.PENDING
        return Invoice(
            id=invoice_id,
            invoice_url=f"https://checkout.test/{invoice_id}",
            expires_at=self._clock() + timedelta(hours=request.duration_hours),
            status=PaymentStatus.PENDING,
        )

    async def check_status(self, invoice_id: str) -> str:
        return self.statuses.get(invoice_id, PaymentStatus.PENDING)


class FakeProfiles:
    """Every user has completed KYC unless listed in `without_kyc`."""

    def __init__(self) -> None:
        self.without_kyc: set[str] = set()

    async def get_profile(self, db, user_id):
        if user_id in self.without_kyc:
            return UserProfile(
                id=user_id, email=f"{user_id}@example.com", name=user_id,
                phone=None, id_card_url=None,
            )
        return UserProfile(
            id=user_id, email=f"{user_id}@example.com", name=user_id,
            phone="+6281234567890", id_card_url=f"https://files.test/{user_id}/ktp.jpg",
        )

    async def has_completed_kyc(self, db, user_id):
        return (await self.get_profile(db, user_id)).has_completed_kyc


class FakeBankAccounts:
    def __init__(self) -> None:
        self.without_account: set[str] = set()

    async def get_default_bank_account(self, db, user_id):
        if user_id in self.without_account:
            return None
        return BankAccount(
            id=f"bank-{user_id}", user_id=user_id, bank_name="BCA",
            account_number="1234567890", account_holder_name=user_id,
        )


class FakeAudit:
    def __init__(self) -> None:
        self.records: list[AuditRecord] = []

    async def append(self, db, record: AuditRecord) -> int:
        self.records.append(record)
        return len(self.records)

    def actions(self) -> list[str]:
        return [r.action_type for r in self.records]


class RecordingSink:
    def __init__(self) -> None:
        self.messages: list[Notify] = []
        self.fail = False

    async def notify(self, message: Notify) -> None:
        if self.fail:
            raise ConnectionError("notification backend unavailable")
        self.messages.append(message)

    def types_for(self, user_id: str) -> list[str]:
        return [m.notification_type for m in self.messages if m.user_id == user_id]


@dataclass
class Escrow:
    """All services wired to one set of in-memory fakes."""

    clock: FakeClock
    db: AsyncMock
    listings: FakeListingRepo
    transactions: FakeTransactionRepo
    payments: FakePaymentRepo
    payouts: FakePayoutRepo
    disputes: FakeDisputeRepo
    reviews: FakeReviewRepo
    gateway: FakeGateway
    profiles: FakeProfiles
    bank_accounts: FakeBankAccounts
    audit: FakeAudit
    sink: RecordingSink
    effects: EffectRunner
    machine: TransactionStateMachine
    auctions: AuctionEngine
    payment_service: PaymentService
    sweeps: SweepService
    resolver: DisputeResolver
    listing_service: ListingService
    review_service: ReviewService

    def add_listing(self, **overrides) -> Listing:
        values = dict(
            id="listing-1",
            seller_id=SELLER,
            title="Mobile Legends account, Mythic rank",
            description="Level 80 account with 120 heroes and 300 skins.",
            category="GAME_ACCOUNT",
            listing_type=ListingType.FIXED,
            price=100_000,
            status=ListingStatus.ACTIVE,
            created_at=T0,
            updated_at=T0,
        )
        values.update(overrides)
        listing = Listing(**values)
        self.listings.listings[listing.id] = replace(listing)
        return listing

    def add_auction(self, **overrides) -> Listing:
        values = dict(
            id="auction-1",
            listing_type=ListingType.AUCTION,
            price=100_000,
            starting_bid=100_000,
            bid_increment=5_000,
            auction_ends_at=self.clock() + timedelta(hours=24),
        )
        values.update(overrides)
        return self.add_listing(**values)

    def listing_status(self, listing_id: str = "listing-1") -> str:
        return self.listings.listings[listing_id].status

    def stored(self, transaction_id: str) -> Transaction:
        return self.transactions.transactions[transaction_id]


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def platform_config() -> PlatformConfig:
    return PlatformConfig(
        fee_percentage=0.05,
        payment_timeout_hours=24,
        verification_period_hours=24,
        stale_paid_refund_hours=48,
        default_bid_increment=5_000,
    )


@pytest.fixture
def escrow(clock: FakeClock, platform_config: PlatformConfig) -> Escrow:
    db = AsyncMock()
    listings = FakeListingRepo()
    disputes = FakeDisputeRepo()
    transactions = FakeTransactionRepo(disputes)
    payments = FakePaymentRepo()
    payouts = FakePayoutRepo()
    reviews = FakeReviewRepo()
    gateway = FakeGateway(clock)
    profiles = FakeProfiles()
    bank_accounts = FakeBankAccounts()
    audit = FakeAudit()
    sink = RecordingSink()
    config = StaticPlatformConfig(platform_config)
    locks = ListingLockRegistry()

    effects = EffectRunner(audit=audit, payouts=payouts, bank_accounts=bank_accounts, sink=sink)
    machine = TransactionStateMachine(
        listings=listings,
        transactions=transactions,
        payments=payments,
        gateway=gateway,
        profiles=profiles,
        effects=effects,
        config=config,
        locks=locks,
        clock=clock,
    )
    auctions = AuctionEngine(
        listings=listings,
        transactions=transactions,
        machine=machine,
        profiles=profiles,
        clock=clock,
    )
    payment_service = PaymentService(
        machine=machine,
        listings=listings,
        transactions=transactions,
        payments=payments,
        gateway=gateway,
        config=config,
        clock=clock,
        debug=True,
    )
    sweeps = SweepService(
        machine=machine,
        auctions=auctions,
        listings=listings,
        transactions=transactions,
        payments=payments,
        clock=clock,
        batch_size=50,
    )
    return Escrow(
        clock=clock,
        db=db,
        listings=listings,
        transactions=transactions,
        payments=payments,
        payouts=payouts,
        disputes=disputes,
        reviews=reviews,
        gateway=gateway,
        profiles=profiles,
        bank_accounts=bank_accounts,
        audit=audit,
        sink=sink,
        effects=effects,
        machine=machine,
        auctions=auctions,
        payment_service=payment_service,
        sweeps=sweeps,
        resolver=DisputeResolver(disputes=disputes, transactions=transactions, machine=machine),
        listing_service=ListingService(
            repo=listings,
            transactions=transactions,
            profiles=profiles,
            audit=audit,
            config=config,
            locks=locks,
            clock=clock,
        ),
        review_service=ReviewService(repo=reviews, transactions=transactions, effects=effects),
    )
