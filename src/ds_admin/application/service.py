# src/ds_admin/application/service.py
"""Admin application service: runtime platform config overrides."""
import logging
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.ds_audit.infrastructure.persistence import AuditLogRepository
from src.ds_common.effects import AuditRecord
from src.ds_common.enums import AuditAction
from src.ds_common.platform_config import (
    PlatformConfigLoader,
    PlatformConfigProvider,
    parse_config_value,
)

logger = logging.getLogger(__name__)

_GET_CONFIG_VALUE_SQL = text("SELECT value FROM system_config WHERE key = :key")
_UPSERT_CONFIG_SQL = text("""
    INSERT INTO system_config (key, value, updated_by, updated_at)
    VALUES (:key, :value, :updated_by, NOW())
    ON CONFLICT (key) DO UPDATE
    SET value = EXCLUDED.value, updated_by = EXCLUDED.updated_by, updated_at = NOW()
""")


class AdminService:
    def __init__(
        self,
        audit: AuditLogRepository | None = None,
        config: PlatformConfigProvider | None = None,
    ) -> None:
        self._audit = audit or AuditLogRepository()
        self._config: PlatformConfigProvider = config or PlatformConfigLoader()

    async def get_config(self, db: AsyncSession) -> dict[str, Any]:
        config = await self._config.load(db)
        return {
            "PLATFORM_FEE_PERCENTAGE": config.fee_percentage,
            "PAYMENT_TIMEOUT_HOURS": config.payment_timeout_hours,
            "VERIFICATION_PERIOD_HOURS": config.verification_period_hours,
        }

    async def set_config(
        self, key: str, value: str, admin_id: str, db: AsyncSession
    ) -> dict[str, Any]:
        """Validate and store one override. Raises InvalidConfigError on a bad key or value."""
        parsed = parse_config_value(key, value)
        try:
            old = (await db.execute(_GET_CONFIG_VALUE_SQL, {"key": key})).fetchone()
            await db.execute(
                _UPSERT_CONFIG_SQL, {"key": key, "value": value, "updated_by": admin_id}
            )
            await self._audit.append(
                db,
                AuditRecord(
                    entity_type="SYSTEM_CONFIG",
                    entity_id=key,
                    action_type=AuditAction.CONFIG_UPDATED,
                    description=f"{key} set to {value}",
                    actor_id=admin_id,
                    old_value={"value": old.value} if old else None,
                    new_value={"value": value},
                ),
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("System config %s set to %s by %s", key, value, admin_id)
        return {"key": key, "value": parsed}
