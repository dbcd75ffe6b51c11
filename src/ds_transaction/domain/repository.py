"""Repository Protocols — dependency inversion for testability.

Unit tests inject in-memory fakes that conform to these Protocols.
Infrastructure layer provides the real implementations.
"""

from datetime import datetime
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.ds_transaction.domain.models import Payment, Payout, Transaction


class TransactionRepositoryProtocol(Protocol):
    async def insert(self, db: AsyncSession, txn: Transaction) -> Transaction: ...

    async def get_by_id(self, db: AsyncSession, transaction_id: str) -> Transaction | None: ...

    async def get_for_update(
        self, db: AsyncSession, transaction_id: str
    ) -> Transaction | None: ...

    async def get_active_by_listing(
        self, db: AsyncSession, listing_id: str
    ) -> Transaction | None: ...

    async def update(self, db: AsyncSession, txn: Transaction, expected_status: str) -> bool:
        """Persist a transition only if the row still has `expected_status`."""
        ...

    async def has_lapsed_order(
        self, db: AsyncSession, listing_id: str, buyer_id: str
    ) -> bool:
        """True if `buyer_id` already held an order on the listing that ended
        CANCELLED or REFUNDED."""
        ...

    async def has_dispute(self, db: AsyncSession, transaction_id: str) -> bool: ...

    async def has_open_dispute(self, db: AsyncSession, transaction_id: str) -> bool: ...

    async def list_for_user(
        self,
        db: AsyncSession,
        user_id: str,
        role: str,
        status: str | None,
        cursor_ts: str | None,
        cursor_id: str | None,
        limit: int,
    ) -> list[Transaction]: ...

    async def list_verification_expired_ids(
        self, db: AsyncSession, now: datetime, limit: int
    ) -> list[str]: ...

    async def list_stale_paid_ids(
        self, db: AsyncSession, paid_before: datetime, limit: int
    ) -> list[str]: ...


class PaymentRepositoryProtocol(Protocol):
    async def insert(self, db: AsyncSession, payment: Payment) -> Payment: ...

    async def get_by_id(self, db: AsyncSession, payment_id: str) -> Payment | None: ...

    async def get_for_update(self, db: AsyncSession, payment_id: str) -> Payment | None: ...

    async def list_pending_for_transaction(
        self, db: AsyncSession, transaction_id: str
    ) -> list[Payment]: ...

    async def list_by_transaction(
        self, db: AsyncSession, transaction_id: str
    ) -> list[Payment]: ...

    async def mark_paid(self, db: AsyncSession, payment_id: str, paid_at: datetime) -> bool: ...

    async def mark_expired(self, db: AsyncSession, payment_id: str) -> bool: ...

    async def expire_pending_for_transaction(
        self, db: AsyncSession, transaction_id: str
    ) -> int: ...

    async def list_overdue_pending_ids(
        self, db: AsyncSession, now: datetime, limit: int
    ) -> list[str]: ...


class PayoutRepositoryProtocol(Protocol):
    async def insert(self, db: AsyncSession, payout: Payout) -> Payout: ...

    async def list_by_transaction(
        self, db: AsyncSession, transaction_id: str
    ) -> list[Payout]: ...
