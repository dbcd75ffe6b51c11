"""008: create reviews table

Revision ID: 008
Revises: 007
Create Date: 2026-10-01
"""
from typing import Sequence, Union
from alembic import op

revision: str = "008"
down_revision: Union[str, None] = "007"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE reviews (
            id                  UUID            PRIMARY KEY DEFAULT gen_random_uuid(),
            transaction_id      UUID            NOT NULL REFERENCES transactions(id),
            reviewer_id         UUID            NOT NULL REFERENCES users(id),
            reviewed_user_id    UUID            NOT NULL REFERENCES users(id),
            rating              SMALLINT        NOT NULL,
            comment             VARCHAR(1000),
            created_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_reviews_txn_reviewer  UNIQUE (transaction_id, reviewer_id),
            CONSTRAINT ck_reviews_rating        CHECK (rating BETWEEN 1 AND 5),
            CONSTRAINT ck_reviews_not_self      CHECK (reviewer_id <> reviewed_user_id)
        );
    """)
    op.execute(
        "CREATE INDEX idx_reviews_reviewed ON reviews (reviewed_user_id, created_at DESC, id DESC);"
    )


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS reviews CASCADE;")
