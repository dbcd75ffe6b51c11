"""Append-only audit log writer.

audit_logs.id is a BIGSERIAL, so entries are monotonically ordered. Rows are
written on the caller's session and therefore commit or roll back together
with the state change they describe.
"""

import json

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.ds_common.effects import AuditRecord

_INSERT_AUDIT_SQL = text("""
    INSERT INTO audit_logs
        (entity_type, entity_id, action_type, action_description,
         old_value, new_value, performed_by_user_id)
    VALUES
        (:entity_type, :entity_id, :action_type, :action_description,
         CAST(:old_value AS JSONB), CAST(:new_value AS JSONB), :performed_by_user_id)
    RETURNING id
""")


def _to_json(value: dict[str, object] | None) -> str | None:
    return json.dumps(value, default=str) if value is not None else None


class AuditLogRepository:
    async def append(self, db: AsyncSession, record: AuditRecord) -> int:
        result = await db.execute(
            _INSERT_AUDIT_SQL,
            {
                "entity_type": record.entity_type,
                "entity_id": record.entity_id,
                "action_type": record.action_type,
                "action_description": record.description,
                "old_value": _to_json(record.old_value),
                "new_value": _to_json(record.new_value),
                "performed_by_user_id": record.actor_id,
            },
        )
        return int(result.scalar_one())
