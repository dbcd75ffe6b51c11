"""009: create notifications and audit_logs tables

Revision ID: 009
Revises: 008
Create Date: 2026-10-01
"""
from typing import Sequence, Union
from alembic import op

revision: str = "009"
down_revision: Union[str, None] = "008"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE notifications (
            id              UUID            PRIMARY KEY DEFAULT gen_random_uuid(),
            user_id         UUID            NOT NULL REFERENCES users(id),
            type            VARCHAR(32)     NOT NULL,
            title           VARCHAR(128)    NOT NULL,
            body            TEXT            NOT NULL,
            payload         JSONB           NOT NULL DEFAULT '{}'::jsonb,
            is_read         BOOLEAN         NOT NULL DEFAULT FALSE,
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW()
        );
    """)
    op.execute(
        "CREATE INDEX idx_notifications_user ON notifications (user_id, created_at DESC);"
    )

    # Append-only: BIGSERIAL id gives a monotonic order of state changes.
    op.execute("""
        CREATE TABLE audit_logs (
            id                      BIGSERIAL       PRIMARY KEY,
            entity_type             VARCHAR(32)     NOT NULL,
            entity_id               VARCHAR(64)     NOT NULL,
            action_type             VARCHAR(32)     NOT NULL,
            action_description      TEXT            NOT NULL,
            old_value               JSONB,
            new_value               JSONB,
            performed_by_user_id    UUID,
            created_at              TIMESTAMPTZ     NOT NULL DEFAULT NOW()
        );
    """)
    op.execute("CREATE INDEX idx_audit_logs_entity ON audit_logs (entity_type, entity_id, id);")
    op.execute("""
        CREATE OR REPLACE FUNCTION fn_audit_logs_append_only()
        RETURNS TRIGGER AS $$
        BEGIN
            RAISE EXCEPTION 'audit_logs is append-only';
        END;
        $$ LANGUAGE plpgsql;
    """)
    op.execute("""
        CREATE TRIGGER trg_audit_logs_append_only
            BEFORE UPDATE OR DELETE ON audit_logs
            FOR EACH ROW EXECUTE FUNCTION fn_audit_logs_append_only();
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS audit_logs CASCADE;")
    op.execute("DROP FUNCTION IF EXISTS fn_audit_logs_append_only();")
    op.execute("DROP TABLE IF EXISTS notifications CASCADE;")
