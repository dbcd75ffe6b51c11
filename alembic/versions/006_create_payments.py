"""006: create payments and payouts tables

Revision ID: 006
Revises: 005
Create Date: 2026-10-01
"""
from typing import Sequence, Union
from alembic import op

revision: str = "006"
down_revision: Union[str, None] = "005"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE payments (
            id                  UUID            PRIMARY KEY DEFAULT gen_random_uuid(),
            transaction_id      UUID            NOT NULL REFERENCES transactions(id),
            external_invoice_id VARCHAR(128)    NOT NULL,
            invoice_url         VARCHAR(512)    NOT NULL,
            amount              BIGINT          NOT NULL,
            payment_method      VARCHAR(16)     NOT NULL,
            status              VARCHAR(10)     NOT NULL DEFAULT 'PENDING',
            expires_at          TIMESTAMPTZ     NOT NULL,
            paid_at             TIMESTAMPTZ,
            created_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_payments_external_invoice UNIQUE (external_invoice_id),
            CONSTRAINT ck_payments_status   CHECK (status IN ('PENDING', 'PAID', 'EXPIRED')),
            CONSTRAINT ck_payments_amount   CHECK (amount > 0),
            CONSTRAINT ck_payments_paid_at  CHECK (status <> 'PAID' OR paid_at IS NOT NULL)
        );
    """)
    # At most one PENDING payment per transaction.
    op.execute("""
        CREATE UNIQUE INDEX uq_payments_pending_txn
            ON payments (transaction_id)
            WHERE status = 'PENDING';
    """)
    op.execute("""
        CREATE INDEX idx_payments_pending_expiry
            ON payments (expires_at)
            WHERE status = 'PENDING';
    """)

    op.execute("""
        CREATE TABLE payouts (
            id                  UUID            PRIMARY KEY DEFAULT gen_random_uuid(),
            transaction_id      UUID            NOT NULL REFERENCES transactions(id),
            seller_id           UUID            NOT NULL REFERENCES users(id),
            bank_account_id     UUID            NOT NULL REFERENCES bank_accounts(id),
            amount              BIGINT          NOT NULL,
            status              VARCHAR(12)     NOT NULL DEFAULT 'PENDING',
            created_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_payouts_transaction   UNIQUE (transaction_id),
            CONSTRAINT ck_payouts_status        CHECK (
                status IN ('PENDING', 'PROCESSING', 'COMPLETED', 'FAILED')
            ),
            CONSTRAINT ck_payouts_amount        CHECK (amount >= 0)
        );
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS payouts CASCADE;")
    op.execute("DROP TABLE IF EXISTS payments CASCADE;")
