"""003: create system_config table

Revision ID: 003
Revises: 002
Create Date: 2026-10-01
"""
from typing import Sequence, Union
from alembic import op

revision: str = "003"
down_revision: Union[str, None] = "002"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE system_config (
            key             VARCHAR(64)     PRIMARY KEY,
            value           VARCHAR(64)     NOT NULL,
            updated_by      UUID            REFERENCES users(id),
            updated_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_system_config_key CHECK (
                key IN ('PLATFORM_FEE_PERCENTAGE', 'PAYMENT_TIMEOUT_HOURS', 'VERIFICATION_PERIOD_HOURS')
            )
        );
    """)
    op.execute(
        "COMMENT ON TABLE system_config IS 'Admin overrides of platform defaults; absent key = settings default';"
    )


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS system_config CASCADE;")
