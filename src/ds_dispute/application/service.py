"""DisputeResolver — the DISPUTED sub-flow of a transaction.

    open          ITEM_TRANSFERRED -> DISPUTED, buyer only, up to the deadline
    add_evidence  buyer or seller, until RESOLVED, at most 10 per uploader
    start_review  OPEN -> UNDER_REVIEW (admin)
    resolve       -> RESOLVED; transaction DISPUTED -> COMPLETED or REFUNDED

The dispute row and the transaction transition are written in one unit of
work under the listing lock, exactly like the state machine's own operations.
"""

import logging
from dataclasses import replace

from sqlalchemy.ext.asyncio import AsyncSession

from src.ds_common.effects import AuditRecord, Effect
from src.ds_common.enums import AuditAction, DisputeStatus
from src.ds_common.errors import (
    DisputeExistsError,
    DisputeNotFoundError,
    DisputeResolvedError,
    EvidenceLimitError,
    InvalidDisputeTransitionError,
    NotTransactionPartyError,
    TransactionNotFoundError,
)
from src.ds_common.id_generator import generate_id
from src.ds_dispute.domain.models import MAX_EVIDENCE_PER_UPLOADER, Dispute, Evidence
from src.ds_dispute.domain.repository import DisputeRepositoryProtocol
from src.ds_dispute.infrastructure.persistence import DisputeRepository
from src.ds_transaction.application.service import (
    TransactionStateMachine,
    get_transaction_service,
)
from src.ds_transaction.domain.models import Transaction
from src.ds_transaction.domain.repository import TransactionRepositoryProtocol
from src.ds_transaction.domain.state_machine import (
    decide_dispute_opened,
    decide_dispute_settlement,
)
from src.ds_transaction.infrastructure.persistence import TransactionRepository

logger = logging.getLogger(__name__)


class DisputeResolver:
    def __init__(
        self,
        disputes: DisputeRepositoryProtocol | None = None,
        transactions: TransactionRepositoryProtocol | None = None,
        machine: TransactionStateMachine | None = None,
    ) -> None:
        self._disputes: DisputeRepositoryProtocol = disputes or DisputeRepository()
        self._transactions: TransactionRepositoryProtocol = transactions or TransactionRepository()
        self._machine = machine or get_transaction_service()

    async def open(
        self,
        db: AsyncSession,
        transaction_id: str,
        buyer_id: str,
        category: str,
        description: str,
    ) -> Dispute:
        txn = await self._get_transaction(db, transaction_id)

        async with self._machine.locks.get(txn.listing_id):
            try:
                locked = await self._transactions.get_for_update(db, transaction_id)
                if locked is None:
                    raise TransactionNotFoundError(transaction_id)
                if locked.buyer_id != buyer_id:
                    raise NotTransactionPartyError(transaction_id, "buyer")
                if await self._disputes.get_by_transaction(db, transaction_id) is not None:
                    raise DisputeExistsError(transaction_id)

                dispute_id = generate_id()
                result = decide_dispute_opened(locked, buyer_id, dispute_id, self._machine.now())
                dispute = await self._disputes.insert(
                    db,
                    Dispute(
                        id=dispute_id,
                        transaction_id=transaction_id,
                        initiator_id=buyer_id,
                        category=category,
                        description=description,
                        status=DisputeStatus.OPEN,
                    ),
                )
                await self._machine.apply_transition(db, locked.status, result)
                await db.commit()
            except Exception:
                await db.rollback()
                raise

        await self._machine.effects.dispatch(result.effects)
        logger.info("Dispute %s opened on transaction %s", dispute.id, transaction_id)
        return dispute

    async def add_evidence(
        self,
        db: AsyncSession,
        dispute_id: str,
        uploader_id: str,
        file_url: str,
        file_type: str,
        file_name: str,
        file_size_bytes: int,
    ) -> Evidence:
        try:
            dispute = await self._disputes.get_for_update(db, dispute_id)
            if dispute is None:
                raise DisputeNotFoundError(dispute_id)
            txn = await self._get_transaction(db, dispute.transaction_id)
            if not txn.is_party(uploader_id):
                raise NotTransactionPartyError(txn.id, "buyer or seller")
            if dispute.status == DisputeStatus.RESOLVED:
                raise DisputeResolvedError(dispute_id)
            count = await self._disputes.count_evidence(db, dispute_id, uploader_id)
            if count >= MAX_EVIDENCE_PER_UPLOADER:
                raise EvidenceLimitError(MAX_EVIDENCE_PER_UPLOADER)

            evidence = await self._disputes.insert_evidence(
                db,
                Evidence(
                    id=generate_id(),
                    dispute_id=dispute_id,
                    uploader_id=uploader_id,
                    file_url=file_url,
                    file_type=file_type,
                    file_name=file_name,
                    file_size_bytes=file_size_bytes,
                ),
            )
            await self._machine.effects.apply(
                db,
                [
                    AuditRecord(
                        entity_type="DISPUTE",
                        entity_id=dispute_id,
                        action_type=AuditAction.EVIDENCE_ADDED,
                        description=f"Evidence {file_name} added",
                        actor_id=uploader_id,
                        new_value={"evidence_id": evidence.id, "file_url": file_url},
                    )
                ],
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return evidence

    async def start_review(self, db: AsyncSession, dispute_id: str, admin_id: str) -> Dispute:
        try:
            dispute = await self._disputes.get_for_update(db, dispute_id)
            if dispute is None:
                raise DisputeNotFoundError(dispute_id)
            if dispute.status != DisputeStatus.OPEN:
                raise InvalidDisputeTransitionError(dispute_id, dispute.status, "taken into review")
            reviewing = replace(dispute, status=DisputeStatus.UNDER_REVIEW)
            if not await self._disputes.update(db, reviewing, DisputeStatus.OPEN):
                raise InvalidDisputeTransitionError(dispute_id, "changed", "taken into review")
            await self._machine.effects.apply(
                db,
                [
                    AuditRecord(
                        entity_type="DISPUTE",
                        entity_id=dispute_id,
                        action_type=AuditAction.DISPUTE_UNDER_REVIEW,
                        description="Admin started review",
                        actor_id=admin_id,
                        old_value={"status": DisputeStatus.OPEN},
                        new_value={"status": DisputeStatus.UNDER_REVIEW},
                    )
                ],
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("Dispute %s under review by %s", dispute_id, admin_id)
        return reviewing

    async def resolve(
        self,
        db: AsyncSession,
        dispute_id: str,
        admin_id: str,
        resolution: str,
        refund_amount: int | None = None,
        admin_notes: str | None = None,
    ) -> Dispute:
        """Settle the dispute and move its transaction in the same unit of work.

        The refund amount (full amount, or the admin-supplied partial) is
        recorded on the dispute; moving the money is left to the payout side.
        """
        current = await self._disputes.get_by_id(db, dispute_id)
        if current is None:
            raise DisputeNotFoundError(dispute_id)
        txn = await self._get_transaction(db, current.transaction_id)

        effects: list[Effect] = []
        async with self._machine.locks.get(txn.listing_id):
            try:
                dispute = await self._disputes.get_for_update(db, dispute_id)
                if dispute is None:
                    raise DisputeNotFoundError(dispute_id)
                if dispute.status == DisputeStatus.RESOLVED:
                    raise DisputeResolvedError(dispute_id)
                locked = await self._transactions.get_for_update(db, txn.id)
                if locked is None:
                    raise TransactionNotFoundError(txn.id)

                now = self._machine.now()
                result, amount = decide_dispute_settlement(
                    locked, dispute_id, resolution, refund_amount, admin_id, now
                )
                resolved = replace(
                    dispute,
                    status=DisputeStatus.RESOLVED,
                    resolution=resolution,
                    refund_amount=amount,
                    admin_notes=admin_notes,
                    resolved_by=admin_id,
                    resolved_at=now,
                )
                if not await self._disputes.update(db, resolved, dispute.status):
                    raise DisputeResolvedError(dispute_id)
                await self._machine.apply_transition(db, locked.status, result)
                effects = result.effects
                await db.commit()
            except Exception:
                await db.rollback()
                raise

        await self._machine.effects.dispatch(effects)
        logger.info(
            "Dispute %s resolved %s (refund %d) by %s", dispute_id, resolution, amount, admin_id
        )
        return resolved

    async def get(
        self, db: AsyncSession, dispute_id: str, user_id: str, is_admin: bool = False
    ) -> tuple[Dispute, list[Evidence]]:
        dispute = await self._disputes.get_by_id(db, dispute_id)
        if dispute is None:
            raise DisputeNotFoundError(dispute_id)
        await self._require_viewer(db, dispute.transaction_id, user_id, is_admin)
        return dispute, await self._disputes.list_evidence(db, dispute_id)

    async def get_by_transaction(
        self, db: AsyncSession, transaction_id: str, user_id: str, is_admin: bool = False
    ) -> tuple[Dispute, list[Evidence]]:
        await self._require_viewer(db, transaction_id, user_id, is_admin)
        dispute = await self._disputes.get_by_transaction(db, transaction_id)
        if dispute is None:
            raise DisputeNotFoundError(f"transaction {transaction_id}")
        return dispute, await self._disputes.list_evidence(db, dispute.id)

    async def _get_transaction(self, db: AsyncSession, transaction_id: str) -> Transaction:
        txn = await self._transactions.get_by_id(db, transaction_id)
        if txn is None:
            raise TransactionNotFoundError(transaction_id)
        return txn

    async def _require_viewer(
        self, db: AsyncSession, transaction_id: str, user_id: str, is_admin: bool
    ) -> None:
        txn = await self._get_transaction(db, transaction_id)
        if not is_admin and not txn.is_party(user_id):
            raise NotTransactionPartyError(transaction_id, "buyer or seller")


_resolver: DisputeResolver | None = None


def get_dispute_resolver() -> DisputeResolver:
    global _resolver  # noqa: PLW0603
    if _resolver is None:
        _resolver = DisputeResolver()
    return _resolver
