"""EffectRunner — executes the side effects returned by transition decisions.

    apply(db, effects)     AuditRecord + PayoutRequest, on the caller's session
                           (inside the atomic unit, before commit)
    dispatch(effects)      Notify, after commit; failures are logged and dropped

A failed notification must never undo a committed transition, so dispatch()
catches per message.
"""

import logging
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.ds_audit.infrastructure.persistence import AuditLogRepository
from src.ds_common.effects import AuditRecord, Effect, Notify, PayoutRequest
from src.ds_common.enums import AuditAction, PayoutStatus
from src.ds_common.id_generator import generate_id
from src.ds_gateway.user.providers import BankAccountProvider, BankAccountProviderProtocol
from src.ds_notification.domain.sink import NotificationSinkProtocol
from src.ds_notification.infrastructure.sinks import DbNotificationSink
from src.ds_transaction.domain.models import Payout
from src.ds_transaction.domain.repository import PayoutRepositoryProtocol
from src.ds_transaction.infrastructure.payments_repository import PayoutRepository

logger = logging.getLogger(__name__)


class AuditLogProtocol(Protocol):
    async def append(self, db: AsyncSession, record: AuditRecord) -> int: ...


class EffectRunner:
    def __init__(
        self,
        audit: AuditLogProtocol | None = None,
        payouts: PayoutRepositoryProtocol | None = None,
        bank_accounts: BankAccountProviderProtocol | None = None,
        sink: NotificationSinkProtocol | None = None,
    ) -> None:
        self._audit: AuditLogProtocol = audit or AuditLogRepository()
        self._payouts: PayoutRepositoryProtocol = payouts or PayoutRepository()
        self._bank_accounts: BankAccountProviderProtocol = bank_accounts or BankAccountProvider()
        self._sink: NotificationSinkProtocol = sink or DbNotificationSink()

    async def apply(self, db: AsyncSession, effects: list[Effect]) -> None:
        for effect in effects:
            if isinstance(effect, AuditRecord):
                await self._audit.append(db, effect)
            elif isinstance(effect, PayoutRequest):
                await self._request_payout(db, effect)

    async def dispatch(self, effects: list[Effect]) -> None:
        for effect in effects:
            if not isinstance(effect, Notify):
                continue
            try:
                await self._sink.notify(effect)
            except Exception:
                logger.exception(
                    "Notification %s to user %s failed",
                    effect.notification_type, effect.user_id,
                )

    async def _request_payout(self, db: AsyncSession, request: PayoutRequest) -> Payout | None:
        account = await self._bank_accounts.get_default_bank_account(db, request.seller_id)
        if account is None:
            # Completion still stands; finance pays out manually once an account exists.
            logger.warning(
                "Seller %s has no default bank account; payout for transaction %s skipped",
                request.seller_id, request.transaction_id,
            )
            return None
        payout = await self._payouts.insert(
            db,
            Payout(
                id=generate_id(),
                transaction_id=request.transaction_id,
                seller_id=request.seller_id,
                bank_account_id=account.id,
                amount=request.amount,
                status=PayoutStatus.PENDING,
            ),
        )
        await self._audit.append(
            db,
            AuditRecord(
                entity_type="PAYOUT",
                entity_id=payout.id,
                action_type=AuditAction.PAYOUT_REQUESTED,
                description=f"Payout for transaction {request.transaction_id}",
                new_value={"amount": payout.amount, "bank_account_id": account.id},
            ),
        )
        logger.info(
            "Payout %s of %d requested for transaction %s",
            payout.id, payout.amount, request.transaction_id,
        )
        return payout
