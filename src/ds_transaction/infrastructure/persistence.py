"""TransactionRepository — concrete implementation of TransactionRepositoryProtocol.

Transitions are persisted with UPDATE ... WHERE status = :expected_status.
A result of 0 rows means the transaction moved underneath us and the unit of
work must be rolled back.

Transaction ownership: the CALLER (application service) commits or rolls back.
"""

from datetime import datetime

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.ds_common.errors import InternalError
from src.ds_transaction.domain.models import Transaction

_TXN_COLUMNS = """
    id, listing_id, buyer_id, seller_id,
    transaction_amount, platform_fee_amount, seller_payout_amount,
    payment_method, status, paid_at, item_transferred_at, verification_deadline,
    completed_at, cancelled_at, refunded_at, transfer_proof_url,
    created_at, updated_at
"""

_INSERT_TXN_SQL = text(f"""
    INSERT INTO transactions
        (id, listing_id, buyer_id, seller_id,
         transaction_amount, platform_fee_amount, seller_payout_amount,
         payment_method, status, created_at, updated_at)
    VALUES
        (:id, :listing_id, :buyer_id, :seller_id,
         :transaction_amount, :platform_fee_amount, :seller_payout_amount,
         :payment_method, :status, :created_at, :updated_at)
    RETURNING {_TXN_COLUMNS}
""")

_GET_TXN_SQL = text(f"SELECT {_TXN_COLUMNS} FROM transactions WHERE id = :id")

_GET_TXN_FOR_UPDATE_SQL = text(
    f"SELECT {_TXN_COLUMNS} FROM transactions WHERE id = :id FOR UPDATE"
)

_GET_ACTIVE_BY_LISTING_SQL = text(f"""
    SELECT {_TXN_COLUMNS} FROM transactions
    WHERE listing_id = :listing_id
      AND status NOT IN ('COMPLETED', 'CANCELLED', 'REFUNDED')
    ORDER BY created_at DESC
    LIMIT 1
""")

_UPDATE_TXN_SQL = text("""
    UPDATE transactions
    SET status = :status,
        paid_at = :paid_at,
        item_transferred_at = :item_transferred_at,
        verification_deadline = :verification_deadline,
        completed_at = :completed_at,
        cancelled_at = :cancelled_at,
        refunded_at = :refunded_at,
        transfer_proof_url = :transfer_proof_url,
        updated_at = NOW()
    WHERE id = :id AND status = :expected_status
    RETURNING id
""")

_HAS_LAPSED_ORDER_SQL = text("""
    SELECT EXISTS (
        SELECT 1 FROM transactions
        WHERE listing_id = :listing_id
          AND buyer_id = :buyer_id
          AND status IN ('CANCELLED', 'REFUNDED')
    )
""")

_HAS_DISPUTE_SQL = text("""
    SELECT EXISTS (SELECT 1 FROM disputes WHERE transaction_id = :transaction_id)
""")

_HAS_OPEN_DISPUTE_SQL = text("""
    SELECT EXISTS (
        SELECT 1 FROM disputes
        WHERE transaction_id = :transaction_id AND status <> 'RESOLVED'
    )
""")

_LIST_FOR_USER_SQL = text(f"""
    SELECT {_TXN_COLUMNS} FROM transactions
    WHERE (
            (:role = 'buyer' AND buyer_id = CAST(:user_id AS UUID))
         OR (:role = 'seller' AND seller_id = CAST(:user_id AS UUID))
    )
      AND (CAST(:status AS TEXT) IS NULL OR status = CAST(:status AS TEXT))
      AND (
            CAST(:cursor_ts AS TIMESTAMPTZ) IS NULL
            OR created_at < CAST(:cursor_ts AS TIMESTAMPTZ)
            OR (
                created_at = CAST(:cursor_ts AS TIMESTAMPTZ)
                AND id < CAST(:cursor_id AS UUID)
            )
      )
    ORDER BY created_at DESC, id DESC
    LIMIT :limit
""")

_LIST_VERIFICATION_EXPIRED_SQL = text("""
    SELECT t.id FROM transactions t
    WHERE t.status = 'ITEM_TRANSFERRED'
      AND t.verification_deadline < :now
      AND NOT EXISTS (SELECT 1 FROM disputes d WHERE d.transaction_id = t.id)
    ORDER BY t.verification_deadline ASC
    LIMIT :limit
""")

_LIST_STALE_PAID_SQL = text("""
    SELECT id FROM transactions
    WHERE status = 'PAID' AND paid_at < :paid_before
    ORDER BY paid_at ASC
    LIMIT :limit
""")


def _row_to_transaction(row: object) -> Transaction:
    return Transaction(
        id=str(row.id),  # type: ignore[attr-defined]
        listing_id=str(row.listing_id),  # type: ignore[attr-defined]
        buyer_id=str(row.buyer_id),  # type: ignore[attr-defined]
        seller_id=str(row.seller_id),  # type: ignore[attr-defined]
        transaction_amount=row.transaction_amount,  # type: ignore[attr-defined]
        platform_fee_amount=row.platform_fee_amount,  # type: ignore[attr-defined]
        seller_payout_amount=row.seller_payout_amount,  # type: ignore[attr-defined]
        payment_method=row.payment_method,  # type: ignore[attr-defined]
        status=row.status,  # type: ignore[attr-defined]
        paid_at=row.paid_at,  # type: ignore[attr-defined]
        item_transferred_at=row.item_transferred_at,  # type: ignore[attr-defined]
        verification_deadline=row.verification_deadline,  # type: ignore[attr-defined]
        completed_at=row.completed_at,  # type: ignore[attr-defined]
        cancelled_at=row.cancelled_at,  # type: ignore[attr-defined]
        refunded_at=row.refunded_at,  # type: ignore[attr-defined]
        transfer_proof_url=row.transfer_proof_url,  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
        updated_at=row.updated_at,  # type: ignore[attr-defined]
    )


class TransactionRepository:
    async def insert(self, db: AsyncSession, txn: Transaction) -> Transaction:
        row = (
            await db.execute(
                _INSERT_TXN_SQL,
                {
                    "id": txn.id,
                    "listing_id": txn.listing_id,
                    "buyer_id": txn.buyer_id,
                    "seller_id": txn.seller_id,
                    "transaction_amount": txn.transaction_amount,
                    "platform_fee_amount": txn.platform_fee_amount,
                    "seller_payout_amount": txn.seller_payout_amount,
                    "payment_method": txn.payment_method,
                    "status": txn.status,
                    "created_at": txn.created_at,
                    "updated_at": txn.updated_at,
                },
            )
        ).fetchone()
        if row is None:
            raise InternalError("Transaction insert returned no rows")
        return _row_to_transaction(row)

    async def get_by_id(self, db: AsyncSession, transaction_id: str) -> Transaction | None:
        row = (await db.execute(_GET_TXN_SQL, {"id": transaction_id})).fetchone()
        return _row_to_transaction(row) if row else None

    async def get_for_update(
        self, db: AsyncSession, transaction_id: str
    ) -> Transaction | None:
        row = (await db.execute(_GET_TXN_FOR_UPDATE_SQL, {"id": transaction_id})).fetchone()
        return _row_to_transaction(row) if row else None

    async def get_active_by_listing(
        self, db: AsyncSession, listing_id: str
    ) -> Transaction | None:
        row = (
            await db.execute(_GET_ACTIVE_BY_LISTING_SQL, {"listing_id": listing_id})
        ).fetchone()
        return _row_to_transaction(row) if row else None

    async def update(self, db: AsyncSession, txn: Transaction, expected_status: str) -> bool:
        result = await db.execute(
            _UPDATE_TXN_SQL,
            {
                "id": txn.id,
                "expected_status": expected_status,
                "status": txn.status,
                "paid_at": txn.paid_at,
                "item_transferred_at": txn.item_transferred_at,
                "verification_deadline": txn.verification_deadline,
                "completed_at": txn.completed_at,
                "cancelled_at": txn.cancelled_at,
                "refunded_at": txn.refunded_at,
                "transfer_proof_url": txn.transfer_proof_url,
            },
        )
        return result.fetchone() is not None

    async def has_lapsed_order(
        self, db: AsyncSession, listing_id: str, buyer_id: str
    ) -> bool:
        result = await db.execute(
            _HAS_LAPSED_ORDER_SQL, {"listing_id": listing_id, "buyer_id": buyer_id}
        )
        return bool(result.scalar_one())

    async def has_dispute(self, db: AsyncSession, transaction_id: str) -> bool:
        result = await db.execute(_HAS_DISPUTE_SQL, {"transaction_id": transaction_id})
        return bool(result.scalar_one())

    async def has_open_dispute(self, db: AsyncSession, transaction_id: str) -> bool:
        result = await db.execute(_HAS_OPEN_DISPUTE_SQL, {"transaction_id": transaction_id})
        return bool(result.scalar_one())

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
        # asyncpg requires a real datetime object for TIMESTAMPTZ parameters
        cursor_ts_dt: datetime | None = None
        if cursor_ts is not None:
            cursor_ts_dt = datetime.fromisoformat(cursor_ts)
        rows = (
            await db.execute(
                _LIST_FOR_USER_SQL,
                {
                    "user_id": user_id,
                    "role": role,
                    "status": status,
                    "cursor_ts": cursor_ts_dt,
                    "cursor_id": cursor_id,
                    "limit": limit,
                },
            )
        ).fetchall()
        return [_row_to_transaction(r) for r in rows]

    async def list_verification_expired_ids(
        self, db: AsyncSession, now: datetime, limit: int
    ) -> list[str]:
        rows = (
            await db.execute(_LIST_VERIFICATION_EXPIRED_SQL, {"now": now, "limit": limit})
        ).fetchall()
        return [str(r.id) for r in rows]

    async def list_stale_paid_ids(
        self, db: AsyncSession, paid_before: datetime, limit: int
    ) -> list[str]:
        rows = (
            await db.execute(
                _LIST_STALE_PAID_SQL, {"paid_before": paid_before, "limit": limit}
            )
        ).fetchall()
        return [str(r.id) for r in rows]
