"""Payment and payout repositories.

A partial unique index (payments: one PENDING row per transaction) backs the
idempotent invoice contract at the database level.
"""

from datetime import datetime

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.ds_common.errors import InternalError
from src.ds_transaction.domain.models import Payment, Payout

_PAYMENT_COLUMNS = """
    id, transaction_id, external_invoice_id, invoice_url, amount, payment_method,
    status, expires_at, paid_at, created_at
"""

_INSERT_PAYMENT_SQL = text(f"""
    INSERT INTO payments
        (id, transaction_id, external_invoice_id, invoice_url, amount, payment_method,
         status, expires_at)
    VALUES
        (:id, :transaction_id, :external_invoice_id, :invoice_url, :amount, :payment_method,
         :status, :expires_at)
    RETURNING {_PAYMENT_COLUMNS}
""")

_GET_PAYMENT_SQL = text(f"SELECT {_PAYMENT_COLUMNS} FROM payments WHERE id = :id")

_GET_PAYMENT_FOR_UPDATE_SQL = text(
    f"SELECT {_PAYMENT_COLUMNS} FROM payments WHERE id = :id FOR UPDATE"
)

_LIST_PENDING_SQL = text(f"""
    SELECT {_PAYMENT_COLUMNS} FROM payments
    WHERE transaction_id = :transaction_id AND status = 'PENDING'
    ORDER BY created_at DESC
""")

_LIST_BY_TXN_SQL = text(f"""
    SELECT {_PAYMENT_COLUMNS} FROM payments
    WHERE transaction_id = :transaction_id
    ORDER BY created_at DESC
""")

_MARK_PAID_SQL = text("""
    UPDATE payments SET status = 'PAID', paid_at = :paid_at
    WHERE id = :id AND status = 'PENDING'
    RETURNING id
""")

_MARK_EXPIRED_SQL = text("""
    UPDATE payments SET status = 'EXPIRED'
    WHERE id = :id AND status = 'PENDING'
    RETURNING id
""")

_EXPIRE_PENDING_FOR_TXN_SQL = text("""
    UPDATE payments SET status = 'EXPIRED'
    WHERE transaction_id = :transaction_id AND status = 'PENDING'
    RETURNING id
""")

_LIST_OVERDUE_PENDING_SQL = text("""
    SELECT id FROM payments
    WHERE status = 'PENDING' AND expires_at < :now
    ORDER BY expires_at ASC
    LIMIT :limit
""")

_INSERT_PAYOUT_SQL = text("""
    INSERT INTO payouts (id, transaction_id, seller_id, bank_account_id, amount, status)
    VALUES (:id, :transaction_id, :seller_id, :bank_account_id, :amount, :status)
    RETURNING id, transaction_id, seller_id, bank_account_id, amount, status, created_at
""")

_LIST_PAYOUTS_SQL = text("""
    SELECT id, transaction_id, seller_id, bank_account_id, amount, status, created_at
    FROM payouts WHERE transaction_id = :transaction_id
    ORDER BY created_at ASC
""")


def _row_to_payment(row: object) -> Payment:
    return Payment(
        id=str(row.id),  # type: ignore[attr-defined]
        transaction_id=str(row.transaction_id),  # type: ignore[attr-defined]
        external_invoice_id=row.external_invoice_id,  # type: ignore[attr-defined]
        invoice_url=row.invoice_url,  # type: ignore[attr-defined]
        amount=row.amount,  # type: ignore[attr-defined]
        payment_method=row.payment_method,  # type: ignore[attr-defined]
        status=row.status,  # type: ignore[attr-defined]
        expires_at=row.expires_at,  # type: ignore[attr-defined]
        paid_at=row.paid_at,  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
    )


def _row_to_payout(row: object) -> Payout:
    return Payout(
        id=str(row.id),  # type: ignore[attr-defined]
        transaction_id=str(row.transaction_id),  # type: ignore[attr-defined]
        seller_id=str(row.seller_id),  # type: ignore[attr-defined]
        bank_account_id=str(row.bank_account_id),  # type: ignore[attr-defined]
        amount=row.amount,  # type: ignore[attr-defined]
        status=row.status,  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
    )


class PaymentRepository:
    async def insert(self, db: AsyncSession, payment: Payment) -> Payment:
        row = (
            await db.execute(
                _INSERT_PAYMENT_SQL,
                {
                    "id": payment.id,
                    "transaction_id": payment.transaction_id,
                    "external_invoice_id": payment.external_invoice_id,
                    "invoice_url": payment.invoice_url,
                    "amount": payment.amount,
                    "payment_method": payment.payment_method,
                    "status": payment.status,
                    "expires_at": payment.expires_at,
                },
            )
        ).fetchone()
        if row is None:
            raise InternalError("Payment insert returned no rows")
        return _row_to_payment(row)

    async def get_by_id(self, db: AsyncSession, payment_id: str) -> Payment | None:
        row = (await db.execute(_GET_PAYMENT_SQL, {"id": payment_id})).fetchone()
        return _row_to_payment(row) if row else None

    async def get_for_update(self, db: AsyncSession, payment_id: str) -> Payment | None:
        row = (await db.execute(_GET_PAYMENT_FOR_UPDATE_SQL, {"id": payment_id})).fetchone()
        return _row_to_payment(row) if row else None

    async def list_pending_for_transaction(
        self, db: AsyncSession, transaction_id: str
    ) -> list[Payment]:
        rows = (
            await db.execute(_LIST_PENDING_SQL, {"transaction_id": transaction_id})
        ).fetchall()
        return [_row_to_payment(r) for r in rows]

    async def list_by_transaction(
        self, db: AsyncSession, transaction_id: str
    ) -> list[Payment]:
        rows = (
            await db.execute(_LIST_BY_TXN_SQL, {"transaction_id": transaction_id})
        ).fetchall()
        return [_row_to_payment(r) for r in rows]

    async def mark_paid(self, db: AsyncSession, payment_id: str, paid_at: datetime) -> bool:
        result = await db.execute(_MARK_PAID_SQL, {"id": payment_id, "paid_at": paid_at})
        return result.fetchone() is not None

    async def mark_expired(self, db: AsyncSession, payment_id: str) -> bool:
        result = await db.execute(_MARK_EXPIRED_SQL, {"id": payment_id})
        return result.fetchone() is not None

    async def expire_pending_for_transaction(
        self, db: AsyncSession, transaction_id: str
    ) -> int:
        result = await db.execute(
            _EXPIRE_PENDING_FOR_TXN_SQL, {"transaction_id": transaction_id}
        )
        return len(result.fetchall())

    async def list_overdue_pending_ids(
        self, db: AsyncSession, now: datetime, limit: int
    ) -> list[str]:
        rows = (
            await db.execute(_LIST_OVERDUE_PENDING_SQL, {"now": now, "limit": limit})
        ).fetchall()
        return [str(r.id) for r in rows]


class PayoutRepository:
    async def insert(self, db: AsyncSession, payout: Payout) -> Payout:
        row = (
            await db.execute(
                _INSERT_PAYOUT_SQL,
                {
                    "id": payout.id,
                    "transaction_id": payout.transaction_id,
                    "seller_id": payout.seller_id,
                    "bank_account_id": payout.bank_account_id,
                    "amount": payout.amount,
                    "status": payout.status,
                },
            )
        ).fetchone()
        if row is None:
            raise InternalError("Payout insert returned no rows")
        return _row_to_payout(row)

    async def list_by_transaction(
        self, db: AsyncSession, transaction_id: str
    ) -> list[Payout]:
        rows = (
            await db.execute(_LIST_PAYOUTS_SQL, {"transaction_id": transaction_id})
        ).fetchall()
        return [_row_to_payout(r) for r in rows]
