"""TransactionStateMachine — orchestrates every transaction lifecycle operation.

Each operation is one atomic unit of work:

    listing lock -> SELECT ... FOR UPDATE -> decide_* (pure)
        -> CAS update on the transaction -> guard moves the listing
        -> audit + payout rows -> COMMIT -> notifications

The transaction status check-and-set and the listing status move happen in
the same database transaction; anything raised before COMMIT rolls all of it
back, including the audit rows. Notifications go out only after COMMIT.
"""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.ds_common.datetime_utils import hours_from, utc_now
from src.ds_common.effects import AuditRecord, Effect
from src.ds_common.enums import AuditAction, PaymentStatus, TransactionStatus
from src.ds_common.errors import (
    AppError,
    InternalError,
    InvalidTransitionError,
    InvoiceCreationError,
    KycIncompleteError,
    ListingNotFoundError,
    ListingReservedError,
    NotTransactionPartyError,
    PaymentAlreadyProcessedError,
    PaymentNotFoundError,
    PendingTransactionExistsError,
    SelfPurchaseError,
    TransactionNotFoundError,
)
from src.ds_common.id_generator import generate_id
from src.ds_common.locks import ListingLockRegistry, get_listing_lock_registry
from src.ds_common.platform_config import (
    PlatformConfig,
    PlatformConfigLoader,
    PlatformConfigProvider,
)
from src.ds_gateway.user.providers import UserProfileProvider, UserProfileProviderProtocol
from src.ds_listing.domain.guard import ListingAvailabilityGuard
from src.ds_listing.domain.models import Listing
from src.ds_listing.domain.repository import ListingRepositoryProtocol
from src.ds_listing.infrastructure.persistence import ListingRepository
from src.ds_payment.domain.gateway import InvoiceProviderProtocol, InvoiceRequest
from src.ds_payment.infrastructure.factory import build_invoice_provider
from src.ds_transaction.application.effects import EffectRunner
from src.ds_transaction.domain.models import Payment, Transaction
from src.ds_transaction.domain.repository import (
    PaymentRepositoryProtocol,
    TransactionRepositoryProtocol,
)
from src.ds_transaction.domain.state_machine import (
    TransitionResult,
    decide_auto_release,
    decide_cancel,
    decide_confirm_received,
    decide_open,
    decide_paid,
    decide_payment_expired,
    decide_stale_refund,
    decide_transferred,
)
from src.ds_transaction.infrastructure.payments_repository import PaymentRepository
from src.ds_transaction.infrastructure.persistence import TransactionRepository

logger = logging.getLogger(__name__)

Decision = Callable[[Transaction, PlatformConfig, datetime], Awaitable[TransitionResult]]


@dataclass
class OpenedTransaction:
    transaction: Transaction
    payment: Payment
    effects: list[Effect]


def redirect_urls(transaction_id: str, redirect_url: str | None) -> tuple[str, str]:
    """Return (success_url, failure_url) for the hosted invoice page."""
    if redirect_url:
        return redirect_url, redirect_url
    base = f"{settings.APP_BASE_URL.rstrip('/')}/transactions/{transaction_id}"
    return f"{base}?status=success", f"{base}?status=failed"


class TransactionStateMachine:
    def __init__(
        self,
        listings: ListingRepositoryProtocol | None = None,
        transactions: TransactionRepositoryProtocol | None = None,
        payments: PaymentRepositoryProtocol | None = None,
        gateway: InvoiceProviderProtocol | None = None,
        profiles: UserProfileProviderProtocol | None = None,
        effects: EffectRunner | None = None,
        config: PlatformConfigProvider | None = None,
        locks: ListingLockRegistry | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._listings: ListingRepositoryProtocol = listings or ListingRepository()
        self._transactions: TransactionRepositoryProtocol = transactions or TransactionRepository()
        self._payments: PaymentRepositoryProtocol = payments or PaymentRepository()
        self._gateway: InvoiceProviderProtocol = gateway or build_invoice_provider()
        self._profiles: UserProfileProviderProtocol = profiles or UserProfileProvider()
        self._effects = effects or EffectRunner()
        self._config: PlatformConfigProvider = config or PlatformConfigLoader()
        self._locks = locks or get_listing_lock_registry()
        self._clock = clock
        self._guard = ListingAvailabilityGuard(self._listings)

    @property
    def effects(self) -> EffectRunner:
        return self._effects

    @property
    def locks(self) -> ListingLockRegistry:
        return self._locks

    def now(self) -> datetime:
        return self._clock()

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    async def create(
        self,
        db: AsyncSession,
        listing_id: str,
        buyer_id: str,
        payment_method: str,
        redirect_url: str | None = None,
    ) -> OpenedTransaction:
        """Reserve a listing for the buyer and issue the first invoice."""
        if not await self._profiles.has_completed_kyc(db, buyer_id):
            raise KycIncompleteError("buying")

        async with self._locks.get(listing_id):
            try:
                listing = await self._listings.get_for_update(db, listing_id)
                if listing is None:
                    raise ListingNotFoundError(listing_id)
                if listing.seller_id == buyer_id:
                    raise SelfPurchaseError()
                existing = await self._transactions.get_active_by_listing(db, listing_id)
                if existing is not None:
                    if existing.buyer_id == buyer_id:
                        raise PendingTransactionExistsError(existing.id)
                    raise ListingReservedError(listing_id)

                opened = await self._open(
                    db, listing, buyer_id, listing.purchase_amount(),
                    payment_method, redirect_url, via_auction=False,
                )
                await db.commit()
            except Exception:
                await db.rollback()
                raise

        await self._effects.dispatch(opened.effects)
        logger.info(
            "Transaction %s opened on listing %s by buyer %s",
            opened.transaction.id, listing_id, buyer_id,
        )
        return opened

    async def open_for_auction_winner(
        self,
        db: AsyncSession,
        listing: Listing,
        winner_id: str,
        amount: int,
        payment_method: str,
    ) -> OpenedTransaction:
        """Open the winner's transaction inside the caller's unit of work.

        The caller holds the listing lock and row lock, commits, and
        dispatches the returned effects.
        """
        return await self._open(
            db, listing, winner_id, amount, payment_method, None, via_auction=True
        )

    async def _open(
        self,
        db: AsyncSession,
        listing: Listing,
        buyer_id: str,
        amount: int,
        payment_method: str,
        redirect_url: str | None,
        via_auction: bool,
    ) -> OpenedTransaction:
        config = await self._config.load(db)
        decision = decide_open(
            generate_id(), listing, buyer_id, amount, payment_method,
            config.fee_percentage, self._clock(), via_auction=via_auction,
        )
        await self._guard.reserve(db, listing)
        txn = await self._transactions.insert(db, decision.transaction)
        payment, invoice_effects = await self.issue_invoice(
            db, txn, listing.title, redirect_url, config, actor_id=buyer_id
        )
        effects = decision.effects + invoice_effects
        await self._effects.apply(db, effects)
        return OpenedTransaction(transaction=txn, payment=payment, effects=effects)

    async def issue_invoice(
        self,
        db: AsyncSession,
        txn: Transaction,
        title: str,
        redirect_url: str | None,
        config: PlatformConfig,
        actor_id: str | None,
    ) -> tuple[Payment, list[Effect]]:
        """Create a gateway invoice and its PENDING payment row.

        Returns the payment and the audit record the caller must apply.
        Gateway failures surface as InvoiceCreationError so the unit rolls back.
        """
        profile = await self._profiles.get_profile(db, txn.buyer_id)
        if profile is None:
            raise InternalError(f"Buyer profile {txn.buyer_id} not found")
        success_url, failure_url = redirect_urls(txn.id, redirect_url)
        try:
            invoice = await self._gateway.create_invoice(
                InvoiceRequest(
                    external_id=txn.id,
                    amount=txn.transaction_amount,
                    payer_email=profile.email,
                    description=f"{settings.APP_NAME}: {title}",
                    success_url=success_url,
                    failure_url=failure_url,
                    payment_method=txn.payment_method,
                    duration_hours=config.payment_timeout_hours,
                )
            )
        except AppError:
            raise
        except Exception as exc:
            raise InvoiceCreationError(str(exc)) from exc

        payment = await self._payments.insert(
            db,
            Payment(
                id=generate_id(),
                transaction_id=txn.id,
                external_invoice_id=invoice.id,
                invoice_url=invoice.invoice_url,
                amount=txn.transaction_amount,
                payment_method=txn.payment_method,
                status=PaymentStatus.PENDING,
                expires_at=invoice.expires_at,
                created_at=self._clock(),
            ),
        )
        audit = AuditRecord(
            entity_type="PAYMENT",
            entity_id=payment.id,
            action_type=AuditAction.INVOICE_CREATED,
            description=f"Invoice {invoice.id} created for transaction {txn.id}",
            actor_id=actor_id,
            new_value={
                "external_invoice_id": invoice.id,
                "amount": payment.amount,
                "expires_at": payment.expires_at.isoformat(),
            },
        )
        return payment, [audit]

    # ------------------------------------------------------------------
    # Transitions on an existing transaction
    # ------------------------------------------------------------------

    async def apply_transition(
        self, db: AsyncSession, expected_status: str, result: TransitionResult
    ) -> None:
        """Persist a decided transition inside the caller's unit of work."""
        txn = result.transaction
        updated = await self._transactions.update(db, txn, expected_status)
        if not updated:
            raise InvalidTransitionError(txn.id, expected_status, f"moved to {txn.status}")
        await self._guard.apply(db, txn.listing_id, result.listing_status)
        await self._effects.apply(db, result.effects)
        logger.info("Transaction %s: %s -> %s", txn.id, expected_status, txn.status)

    async def _run(
        self, db: AsyncSession, transaction_id: str, decide: Decision
    ) -> Transaction:
        current = await self._transactions.get_by_id(db, transaction_id)
        if current is None:
            raise TransactionNotFoundError(transaction_id)

        async with self._locks.get(current.listing_id):
            try:
                txn = await self._transactions.get_for_update(db, transaction_id)
                if txn is None:
                    raise TransactionNotFoundError(transaction_id)
                config = await self._config.load(db)
                result = await decide(txn, config, self._clock())
                await self.apply_transition(db, txn.status, result)
                await db.commit()
            except Exception:
                await db.rollback()
                raise

        await self._effects.dispatch(result.effects)
        return result.transaction

    async def mark_transferred(
        self,
        db: AsyncSession,
        transaction_id: str,
        seller_id: str,
        proof_url: str | None = None,
    ) -> Transaction:
        async def decide(txn: Transaction, config: PlatformConfig, now: datetime) -> TransitionResult:
            return decide_transferred(
                txn, seller_id, proof_url, now, config.verification_period_hours
            )

        return await self._run(db, transaction_id, decide)

    async def confirm_received(
        self, db: AsyncSession, transaction_id: str, buyer_id: str
    ) -> Transaction:
        async def decide(txn: Transaction, config: PlatformConfig, now: datetime) -> TransitionResult:
            has_open = await self._transactions.has_open_dispute(db, txn.id)
            return decide_confirm_received(txn, buyer_id, has_open, now)

        return await self._run(db, transaction_id, decide)

    async def cancel(
        self, db: AsyncSession, transaction_id: str, buyer_id: str
    ) -> Transaction:
        async def decide(txn: Transaction, config: PlatformConfig, now: datetime) -> TransitionResult:
            result = decide_cancel(txn, buyer_id, now)
            expired = await self._payments.expire_pending_for_transaction(db, txn.id)
            if expired:
                logger.info("Expired %d pending payment(s) of cancelled %s", expired, txn.id)
            return result

        return await self._run(db, transaction_id, decide)

    async def auto_release(self, db: AsyncSession, transaction_id: str) -> Transaction:
        """Complete an ITEM_TRANSFERRED transaction whose window passed undisputed."""
        async def decide(txn: Transaction, config: PlatformConfig, now: datetime) -> TransitionResult:
            has_dispute = await self._transactions.has_dispute(db, txn.id)
            return decide_auto_release(txn, has_dispute, now)

        return await self._run(db, transaction_id, decide)

    async def refund_stale_paid(self, db: AsyncSession, transaction_id: str) -> Transaction:
        async def decide(txn: Transaction, config: PlatformConfig, now: datetime) -> TransitionResult:
            return decide_stale_refund(txn, now, config.stale_paid_refund_hours)

        return await self._run(db, transaction_id, decide)

    # ------------------------------------------------------------------
    # Payment outcomes
    # ------------------------------------------------------------------

    async def _load_pending_payment(
        self, db: AsyncSession, payment_id: str
    ) -> tuple[Payment, Transaction]:
        payment = await self._payments.get_by_id(db, payment_id)
        if payment is None:
            raise PaymentNotFoundError(payment_id)
        txn = await self._transactions.get_by_id(db, payment.transaction_id)
        if txn is None:
            raise TransactionNotFoundError(payment.transaction_id)
        return payment, txn

    async def mark_paid(self, db: AsyncSession, payment_id: str) -> Transaction:
        """Gateway reported the invoice paid. Repeated calls are no-ops."""
        payment, txn = await self._load_pending_payment(db, payment_id)
        if payment.status == PaymentStatus.PAID:
            logger.info("Payment %s already PAID; ignoring duplicate confirmation", payment_id)
            return txn
        if payment.status != PaymentStatus.PENDING:
            raise PaymentAlreadyProcessedError(payment_id, payment.status)

        async with self._locks.get(txn.listing_id):
            try:
                locked_payment = await self._payments.get_for_update(db, payment_id)
                if locked_payment is None:
                    raise PaymentNotFoundError(payment_id)
                if locked_payment.status == PaymentStatus.PAID:
                    await db.rollback()
                    return txn
                if locked_payment.status != PaymentStatus.PENDING:
                    raise PaymentAlreadyProcessedError(payment_id, locked_payment.status)
                locked_txn = await self._transactions.get_for_update(db, txn.id)
                if locked_txn is None:
                    raise TransactionNotFoundError(txn.id)
                now = self._clock()
                result = decide_paid(locked_txn, now)
                if not await self._payments.mark_paid(db, payment_id, now):
                    raise PaymentAlreadyProcessedError(payment_id, "changed concurrently")
                await self.apply_transition(db, locked_txn.status, result)
                await db.commit()
            except Exception:
                await db.rollback()
                raise

        await self._effects.dispatch(result.effects)
        logger.info("Payment %s confirmed for transaction %s", payment_id, txn.id)
        return result.transaction

    async def expire_payment(self, db: AsyncSession, payment_id: str) -> Transaction:
        """Expire one PENDING payment.

        The transaction is cancelled and the listing released only when no
        other PENDING payment for it remains.
        """
        payment, txn = await self._load_pending_payment(db, payment_id)
        if payment.status == PaymentStatus.EXPIRED:
            return txn
        if payment.status != PaymentStatus.PENDING:
            raise PaymentAlreadyProcessedError(payment_id, payment.status)

        effects: list[Effect] = []
        updated = txn
        async with self._locks.get(txn.listing_id):
            try:
                if not await self._payments.mark_expired(db, payment_id):
                    raise PaymentAlreadyProcessedError(payment_id, "changed concurrently")
                now = self._clock()
                effects.append(
                    AuditRecord(
                        entity_type="PAYMENT",
                        entity_id=payment_id,
                        action_type=AuditAction.PAYMENT_EXPIRED,
                        description=f"Invoice {payment.external_invoice_id} expired",
                        new_value={"status": PaymentStatus.EXPIRED},
                    )
                )
                await self._effects.apply(db, effects)

                locked_txn = await self._transactions.get_for_update(db, txn.id)
                if locked_txn is None:
                    raise TransactionNotFoundError(txn.id)
                remaining = await self._payments.list_pending_for_transaction(db, txn.id)
                if locked_txn.status == TransactionStatus.PENDING_PAYMENT and not remaining:
                    result = decide_payment_expired(locked_txn, now)
                    await self.apply_transition(db, locked_txn.status, result)
                    effects.extend(result.effects)
                    updated = result.transaction
                else:
                    updated = locked_txn
                await db.commit()
            except Exception:
                await db.rollback()
                raise

        await self._effects.dispatch(effects)
        logger.info("Payment %s expired (transaction %s now %s)", payment_id, txn.id, updated.status)
        return updated

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get(
        self, db: AsyncSession, transaction_id: str, user_id: str, is_admin: bool = False
    ) -> Transaction:
        txn = await self._transactions.get_by_id(db, transaction_id)
        if txn is None:
            raise TransactionNotFoundError(transaction_id)
        if not is_admin and not txn.is_party(user_id):
            raise NotTransactionPartyError(transaction_id, "buyer or seller")
        return txn

    async def list_for_user(
        self,
        db: AsyncSession,
        user_id: str,
        role: str,
        status: str | None,
        cursor_ts: str | None,
        cursor_id: str | None,
        limit: int,
    ) -> list[Transaction]:
        return await self._transactions.list_for_user(
            db, user_id, role, status, cursor_ts, cursor_id, limit
        )

    async def list_stale_paid_ids(self, db: AsyncSession, limit: int) -> list[str]:
        config = await self._config.load(db)
        paid_before = hours_from(self._clock(), -config.stale_paid_refund_hours)
        return await self._transactions.list_stale_paid_ids(db, paid_before, limit)


_service: TransactionStateMachine | None = None


def get_transaction_service() -> TransactionStateMachine:
    global _service  # noqa: PLW0603
    if _service is None:
        _service = TransactionStateMachine()
    return _service
