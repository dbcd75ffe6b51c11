"""005: create transactions table

Revision ID: 005
Revises: 004
Create Date: 2026-10-01
"""
from typing import Sequence, Union
from alembic import op

revision: str = "005"
down_revision: Union[str, None] = "004"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE transactions (
            id                      UUID            PRIMARY KEY DEFAULT gen_random_uuid(),
            listing_id              UUID            NOT NULL REFERENCES listings(id),
            buyer_id                UUID            NOT NULL REFERENCES users(id),
            seller_id               UUID            NOT NULL REFERENCES users(id),
            transaction_amount      BIGINT          NOT NULL,
            platform_fee_amount     BIGINT          NOT NULL,
            seller_payout_amount    BIGINT          NOT NULL,
            payment_method          VARCHAR(16)     NOT NULL,
            status                  VARCHAR(20)     NOT NULL DEFAULT 'PENDING_PAYMENT',
            paid_at                 TIMESTAMPTZ,
            item_transferred_at     TIMESTAMPTZ,
            verification_deadline   TIMESTAMPTZ,
            completed_at            TIMESTAMPTZ,
            cancelled_at            TIMESTAMPTZ,
            refunded_at             TIMESTAMPTZ,
            transfer_proof_url      VARCHAR(512),
            created_at              TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at              TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_transactions_status CHECK (
                status IN ('PENDING_PAYMENT', 'PAID', 'ITEM_TRANSFERRED', 'DISPUTED',
                           'COMPLETED', 'CANCELLED', 'REFUNDED')
            ),
            CONSTRAINT ck_transactions_payment_method CHECK (
                payment_method IN ('VA', 'EWALLET', 'QRIS', 'CARD', 'RETAIL')
            ),
            CONSTRAINT ck_transactions_amount       CHECK (transaction_amount > 0),
            CONSTRAINT ck_transactions_fee          CHECK (platform_fee_amount >= 0),
            CONSTRAINT ck_transactions_payout       CHECK (seller_payout_amount >= 0),
            CONSTRAINT ck_transactions_fee_split    CHECK (
                platform_fee_amount + seller_payout_amount = transaction_amount
            ),
            CONSTRAINT ck_transactions_not_self     CHECK (buyer_id <> seller_id)
        );
    """)
    # One non-terminal transaction per listing: the last guard against double-booking.
    op.execute("""
        CREATE UNIQUE INDEX uq_transactions_active_listing
            ON transactions (listing_id)
            WHERE status NOT IN ('COMPLETED', 'CANCELLED', 'REFUNDED');
    """)
    op.execute("CREATE INDEX idx_transactions_buyer ON transactions (buyer_id, created_at DESC, id DESC);")
    op.execute("CREATE INDEX idx_transactions_seller ON transactions (seller_id, created_at DESC, id DESC);")
    op.execute("""
        CREATE INDEX idx_transactions_verification_due
            ON transactions (verification_deadline)
            WHERE status = 'ITEM_TRANSFERRED';
    """)
    op.execute("""
        CREATE INDEX idx_transactions_paid_at
            ON transactions (paid_at)
            WHERE status = 'PAID';
    """)
    op.execute("""
        CREATE TRIGGER trg_transactions_updated_at
            BEFORE UPDATE ON transactions
            FOR EACH ROW EXECUTE FUNCTION fn_touch_updated_at();
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS transactions CASCADE;")
