"""002: create users and bank_accounts tables

Revision ID: 002
Revises: 001
Create Date: 2026-10-01
"""
from typing import Sequence, Union
from alembic import op

revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE users (
            id              UUID            PRIMARY KEY DEFAULT gen_random_uuid(),
            email           VARCHAR(255)    NOT NULL,
            name            VARCHAR(128)    NOT NULL,
            phone           VARCHAR(32),
            id_card_url     VARCHAR(512),
            role            VARCHAR(16)     NOT NULL DEFAULT 'USER',
            rating          DOUBLE PRECISION NOT NULL DEFAULT 0,
            rating_count    INT             NOT NULL DEFAULT 0,
            is_active       BOOLEAN         NOT NULL DEFAULT TRUE,
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_users_email           UNIQUE (email),
            CONSTRAINT ck_users_role            CHECK (role IN ('USER', 'ADMIN')),
            CONSTRAINT ck_users_rating          CHECK (rating BETWEEN 0 AND 5),
            CONSTRAINT ck_users_rating_count    CHECK (rating_count >= 0)
        );
    """)
    op.execute("""
        CREATE TRIGGER trg_users_updated_at
            BEFORE UPDATE ON users
            FOR EACH ROW EXECUTE FUNCTION fn_touch_updated_at();
    """)
    op.execute("""
        CREATE TABLE bank_accounts (
            id                  UUID            PRIMARY KEY DEFAULT gen_random_uuid(),
            user_id             UUID            NOT NULL REFERENCES users(id),
            bank_name           VARCHAR(64)     NOT NULL,
            account_number      VARCHAR(64)     NOT NULL,
            account_holder_name VARCHAR(128)    NOT NULL,
            is_default          BOOLEAN         NOT NULL DEFAULT FALSE,
            created_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW()
        );
    """)
    # At most one default account per user; payouts go there.
    op.execute("""
        CREATE UNIQUE INDEX uq_bank_accounts_default
            ON bank_accounts (user_id) WHERE is_default;
    """)
    op.execute("COMMENT ON TABLE users IS 'Users provisioned by the identity service; KYC and rating';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS bank_accounts CASCADE;")
    op.execute("DROP TABLE IF EXISTS users CASCADE;")
