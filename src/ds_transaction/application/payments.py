"""Payment entry points layered on the transaction state machine.

request_payment is idempotent per transaction: while an unexpired PENDING
invoice exists it is handed back unchanged, so a retried request never
creates a second invoice (the partial unique index on payments enforces the
same rule in the database).
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.ds_common.datetime_utils import utc_now
from src.ds_common.effects import AuditRecord, Effect
from src.ds_common.enums import AuditAction, PaymentStatus, TransactionStatus
from src.ds_common.errors import (
    InvalidTransitionError,
    ListingNotFoundError,
    NotTransactionPartyError,
    PaymentNotFoundError,
    PaymentSimulationDisabledError,
    TransactionNotFoundError,
)
from src.ds_common.platform_config import PlatformConfigLoader, PlatformConfigProvider
from src.ds_listing.domain.repository import ListingRepositoryProtocol
from src.ds_listing.infrastructure.persistence import ListingRepository
from src.ds_payment.domain.gateway import InvoiceProviderProtocol
from src.ds_payment.infrastructure.factory import build_invoice_provider
from src.ds_transaction.application.service import (
    TransactionStateMachine,
    get_transaction_service,
)
from src.ds_transaction.domain.models import Payment, Transaction
from src.ds_transaction.domain.repository import (
    PaymentRepositoryProtocol,
    TransactionRepositoryProtocol,
)
from src.ds_transaction.infrastructure.payments_repository import PaymentRepository
from src.ds_transaction.infrastructure.persistence import TransactionRepository

logger = logging.getLogger(__name__)


@dataclass
class PaymentRequestResult:
    payment: Payment
    is_existing: bool


class PaymentService:
    def __init__(
        self,
        machine: TransactionStateMachine | None = None,
        listings: ListingRepositoryProtocol | None = None,
        transactions: TransactionRepositoryProtocol | None = None,
        payments: PaymentRepositoryProtocol | None = None,
        gateway: InvoiceProviderProtocol | None = None,
        config: PlatformConfigProvider | None = None,
        clock: Callable[[], datetime] = utc_now,
        debug: bool | None = None,
    ) -> None:
        self._machine = machine or get_transaction_service()
        self._listings: ListingRepositoryProtocol = listings or ListingRepository()
        self._transactions: TransactionRepositoryProtocol = transactions or TransactionRepository()
        self._payments: PaymentRepositoryProtocol = payments or PaymentRepository()
        self._gateway: InvoiceProviderProtocol = gateway or build_invoice_provider()
        self._config: PlatformConfigProvider = config or PlatformConfigLoader()
        self._clock = clock
        self._debug = settings.DEBUG if debug is None else debug

    async def request_payment(
        self,
        db: AsyncSession,
        transaction_id: str,
        buyer_id: str,
        redirect_url: str | None = None,
    ) -> PaymentRequestResult:
        txn = await self._transactions.get_by_id(db, transaction_id)
        if txn is None:
            raise TransactionNotFoundError(transaction_id)
        if txn.buyer_id != buyer_id:
            raise NotTransactionPartyError(transaction_id, "buyer")

        async with self._machine.locks.get(txn.listing_id):
            try:
                locked = await self._transactions.get_for_update(db, transaction_id)
                if locked is None:
                    raise TransactionNotFoundError(transaction_id)
                if locked.status != TransactionStatus.PENDING_PAYMENT:
                    raise InvalidTransitionError(locked.id, locked.status, "paid")

                now = self._clock()
                pending = await self._payments.list_pending_for_transaction(db, locked.id)
                reusable = next((p for p in pending if p.is_reusable(now)), None)
                if reusable is not None:
                    await db.rollback()
                    logger.info(
                        "Reusing pending payment %s for transaction %s",
                        reusable.id, locked.id,
                    )
                    return PaymentRequestResult(payment=reusable, is_existing=True)

                # Lapsed invoices are closed without cancelling the transaction:
                # the buyer is asking to pay again right now.
                expired: list[Effect] = []
                for stale in pending:
                    if await self._payments.mark_expired(db, stale.id):
                        expired.append(
                            AuditRecord(
                                entity_type="PAYMENT",
                                entity_id=stale.id,
                                action_type=AuditAction.PAYMENT_EXPIRED,
                                description=f"Invoice {stale.external_invoice_id} lapsed; "
                                            "replaced on the buyer's request",
                                actor_id=buyer_id,
                                old_value={"status": PaymentStatus.PENDING},
                                new_value={"status": PaymentStatus.EXPIRED},
                            )
                        )

                listing = await self._listings.get_by_id(db, locked.listing_id)
                if listing is None:
                    raise ListingNotFoundError(locked.listing_id)
                config = await self._config.load(db)
                payment, effects = await self._machine.issue_invoice(
                    db, locked, listing.title, redirect_url, config, actor_id=buyer_id
                )
                await self._machine.effects.apply(db, expired + effects)
                await db.commit()
            except Exception:
                await db.rollback()
                raise

        logger.info("Payment %s issued for transaction %s", payment.id, transaction_id)
        return PaymentRequestResult(payment=payment, is_existing=False)

    async def reconcile_payment(self, db: AsyncSession, payment_id: str) -> Payment:
        """Poll the gateway and apply the reported outcome."""
        payment = await self._payments.get_by_id(db, payment_id)
        if payment is None:
            raise PaymentNotFoundError(payment_id)
        if payment.status != PaymentStatus.PENDING:
            return payment

        status = await self._gateway.check_status(payment.external_invoice_id)
        if status == PaymentStatus.PAID:
            await self._machine.mark_paid(db, payment_id)
        elif status == PaymentStatus.EXPIRED:
            await self._machine.expire_payment(db, payment_id)
        else:
            return payment

        refreshed = await self._payments.get_by_id(db, payment_id)
        return refreshed or payment

    async def list_payments(
        self, db: AsyncSession, transaction_id: str, user_id: str, is_admin: bool = False
    ) -> list[Payment]:
        await self._require_participant(db, transaction_id, user_id, is_admin)
        return await self._payments.list_by_transaction(db, transaction_id)

    async def get_payment(
        self, db: AsyncSession, payment_id: str, user_id: str, is_admin: bool = False
    ) -> Payment:
        payment = await self._payments.get_by_id(db, payment_id)
        if payment is None:
            raise PaymentNotFoundError(payment_id)
        await self._require_participant(db, payment.transaction_id, user_id, is_admin)
        return payment

    async def simulate_paid(self, db: AsyncSession, payment_id: str) -> Transaction:
        self._require_debug()
        return await self._machine.mark_paid(db, payment_id)

    async def simulate_expired(self, db: AsyncSession, payment_id: str) -> Transaction:
        self._require_debug()
        return await self._machine.expire_payment(db, payment_id)

    def _require_debug(self) -> None:
        if not self._debug:
            raise PaymentSimulationDisabledError()

    async def _require_participant(
        self, db: AsyncSession, transaction_id: str, user_id: str, is_admin: bool
    ) -> Transaction:
        txn = await self._transactions.get_by_id(db, transaction_id)
        if txn is None:
            raise TransactionNotFoundError(transaction_id)
        if not is_admin and not txn.is_party(user_id):
            raise NotTransactionPartyError(transaction_id, "buyer or seller")
        return txn
