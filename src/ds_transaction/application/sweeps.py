"""Scheduler sweeps.

The core never schedules itself; an external cron calls these through the
/cron endpoints. Each sweep selects up to SWEEP_BATCH_SIZE candidate ids and
runs the regular entry point once per id, one atomic unit each. A failure on
one id is recorded and the batch continues.

    skipped   the candidate no longer qualifies (state moved since selection)
    errors    anything else, with the error code and message
"""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.ds_auction.application.service import AuctionEngine, get_auction_engine
from src.ds_common.datetime_utils import utc_now
from src.ds_common.errors import AppError, ConflictError, PreconditionFailedError
from src.ds_listing.domain.repository import ListingRepositoryProtocol
from src.ds_listing.infrastructure.persistence import ListingRepository
from src.ds_transaction.application.service import (
    TransactionStateMachine,
    get_transaction_service,
)
from src.ds_transaction.domain.repository import (
    PaymentRepositoryProtocol,
    TransactionRepositoryProtocol,
)
from src.ds_transaction.infrastructure.payments_repository import PaymentRepository
from src.ds_transaction.infrastructure.persistence import TransactionRepository

logger = logging.getLogger(__name__)


@dataclass
class SweepReport:
    processed: int = 0
    succeeded: int = 0
    skipped: int = 0
    errors: list[dict[str, Any]] = field(default_factory=list)


class SweepService:
    def __init__(
        self,
        machine: TransactionStateMachine | None = None,
        auctions: AuctionEngine | None = None,
        listings: ListingRepositoryProtocol | None = None,
        transactions: TransactionRepositoryProtocol | None = None,
        payments: PaymentRepositoryProtocol | None = None,
        clock: Callable[[], datetime] = utc_now,
        batch_size: int | None = None,
    ) -> None:
        self._machine = machine or get_transaction_service()
        self._auctions = auctions or get_auction_engine()
        self._listings: ListingRepositoryProtocol = listings or ListingRepository()
        self._transactions: TransactionRepositoryProtocol = transactions or TransactionRepository()
        self._payments: PaymentRepositoryProtocol = payments or PaymentRepository()
        self._clock = clock
        self._batch_size = batch_size or settings.SWEEP_BATCH_SIZE

    async def expire_payments(self, db: AsyncSession) -> SweepReport:
        ids = await self._payments.list_overdue_pending_ids(db, self._clock(), self._batch_size)
        return await self._run("expire-payments", db, ids, self._machine.expire_payment)

    async def auto_release(self, db: AsyncSession) -> SweepReport:
        ids = await self._transactions.list_verification_expired_ids(
            db, self._clock(), self._batch_size
        )
        return await self._run("auto-release", db, ids, self._machine.auto_release)

    async def refund_stale_paid(self, db: AsyncSession) -> SweepReport:
        ids = await self._machine.list_stale_paid_ids(db, self._batch_size)
        return await self._run("refund-stale-paid", db, ids, self._machine.refund_stale_paid)

    async def close_auctions(self, db: AsyncSession) -> SweepReport:
        ids = await self._listings.list_ended_auction_ids(db, self._clock(), self._batch_size)

        async def close(session: AsyncSession, listing_id: str) -> object:
            return await self._auctions.close_auction(session, listing_id, actor_id=None)

        return await self._run("close-auctions", db, ids, close)

    async def _run(
        self,
        name: str,
        db: AsyncSession,
        ids: list[str],
        operation: Callable[[AsyncSession, str], Awaitable[object]],
    ) -> SweepReport:
        # The candidate SELECT opened a transaction; end it before per-id units.
        await db.rollback()
        report = SweepReport()
        for entity_id in ids:
            report.processed += 1
            try:
                await operation(db, entity_id)
                report.succeeded += 1
            except (PreconditionFailedError, ConflictError) as exc:
                report.skipped += 1
                logger.info("Sweep %s skipped %s: %s", name, entity_id, exc.message)
            except AppError as exc:
                report.errors.append({"id": entity_id, "code": exc.code, "message": exc.message})
                logger.warning("Sweep %s failed for %s: %s", name, entity_id, exc.message)
            except Exception as exc:
                report.errors.append({"id": entity_id, "code": 9002, "message": str(exc)})
                logger.exception("Sweep %s crashed on %s", name, entity_id)
        logger.info(
            "Sweep %s: processed=%d succeeded=%d skipped=%d errors=%d",
            name, report.processed, report.succeeded, report.skipped, len(report.errors),
        )
        return report
