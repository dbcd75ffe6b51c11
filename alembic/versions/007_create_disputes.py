"""007: create disputes and evidences tables

Revision ID: 007
Revises: 006
Create Date: 2026-10-01
"""
from typing import Sequence, Union
from alembic import op

revision: str = "007"
down_revision: Union[str, None] = "006"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE disputes (
            id              UUID            PRIMARY KEY DEFAULT gen_random_uuid(),
            transaction_id  UUID            NOT NULL REFERENCES transactions(id),
            initiator_id    UUID            NOT NULL REFERENCES users(id),
            category        VARCHAR(20)     NOT NULL,
            description     TEXT            NOT NULL,
            status          VARCHAR(16)     NOT NULL DEFAULT 'OPEN',
            resolution      VARCHAR(16),
            refund_amount   BIGINT,
            admin_notes     TEXT,
            resolved_by     UUID            REFERENCES users(id),
            resolved_at     TIMESTAMPTZ,
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_disputes_transaction  UNIQUE (transaction_id),
            CONSTRAINT ck_disputes_category     CHECK (
                category IN ('NOT_AS_DESCRIBED', 'ACCESS_ISSUE', 'FRAUD', 'OTHER')
            ),
            CONSTRAINT ck_disputes_status       CHECK (status IN ('OPEN', 'UNDER_REVIEW', 'RESOLVED')),
            CONSTRAINT ck_disputes_resolution   CHECK (
                resolution IS NULL OR resolution IN ('FULL_REFUND', 'PARTIAL_REFUND', 'NO_REFUND')
            ),
            CONSTRAINT ck_disputes_resolved     CHECK (
                (status = 'RESOLVED') = (resolution IS NOT NULL AND resolved_at IS NOT NULL)
            ),
            CONSTRAINT ck_disputes_refund       CHECK (refund_amount IS NULL OR refund_amount >= 0)
        );
    """)
    op.execute("""
        CREATE TRIGGER trg_disputes_updated_at
            BEFORE UPDATE ON disputes
            FOR EACH ROW EXECUTE FUNCTION fn_touch_updated_at();
    """)

    op.execute("""
        CREATE TABLE evidences (
            id              UUID            PRIMARY KEY DEFAULT gen_random_uuid(),
            dispute_id      UUID            NOT NULL REFERENCES disputes(id),
            uploader_id     UUID            NOT NULL REFERENCES users(id),
            file_url        VARCHAR(512)    NOT NULL,
            file_type       VARCHAR(100)    NOT NULL,
            file_name       VARCHAR(255)    NOT NULL,
            file_size_bytes BIGINT          NOT NULL,
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_evidences_size CHECK (file_size_bytes BETWEEN 1 AND 10485760)
        );
    """)
    op.execute("CREATE INDEX idx_evidences_uploader ON evidences (dispute_id, uploader_id);")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS evidences CASCADE;")
    op.execute("DROP TABLE IF EXISTS disputes CASCADE;")
