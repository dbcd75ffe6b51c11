"""Runtime platform configuration.

Defaults come from config.settings; admins may override individual keys in the
system_config table. Values are validated here, so the fee calculator can
assume a percentage in [0, 1].
"""

import logging
from dataclasses import dataclass
from typing import Protocol

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.ds_common.errors import InvalidConfigError

logger = logging.getLogger(__name__)

FEE_PERCENTAGE_KEY = "PLATFORM_FEE_PERCENTAGE"
PAYMENT_TIMEOUT_KEY = "PAYMENT_TIMEOUT_HOURS"
VERIFICATION_PERIOD_KEY = "VERIFICATION_PERIOD_HOURS"

CONFIG_KEYS = (FEE_PERCENTAGE_KEY, PAYMENT_TIMEOUT_KEY, VERIFICATION_PERIOD_KEY)

_LOAD_CONFIG_SQL = text("""
    SELECT key, value FROM system_config
    WHERE key IN ('PLATFORM_FEE_PERCENTAGE', 'PAYMENT_TIMEOUT_HOURS', 'VERIFICATION_PERIOD_HOURS')
""")


@dataclass(frozen=True)
class PlatformConfig:
    fee_percentage: float
    payment_timeout_hours: int
    verification_period_hours: int
    stale_paid_refund_hours: int
    default_bid_increment: int


def default_platform_config() -> PlatformConfig:
    return PlatformConfig(
        fee_percentage=settings.PLATFORM_FEE_PERCENTAGE,
        payment_timeout_hours=settings.PAYMENT_TIMEOUT_HOURS,
        verification_period_hours=settings.VERIFICATION_PERIOD_HOURS,
        stale_paid_refund_hours=settings.STALE_PAID_REFUND_HOURS,
        default_bid_increment=settings.DEFAULT_BID_INCREMENT,
    )


def parse_config_value(key: str, raw: str) -> float | int:
    """Parse and validate one system_config value.

    Raises InvalidConfigError for unknown keys, a fee outside [0, 1] or a
    non-positive hour count.
    """
    try:
        if key == FEE_PERCENTAGE_KEY:
            fee = float(raw)
            if not (0.0 <= fee <= 1.0):
                raise InvalidConfigError(key, raw)
            return fee
        if key in (PAYMENT_TIMEOUT_KEY, VERIFICATION_PERIOD_KEY):
            hours = int(raw)
            if hours <= 0:
                raise InvalidConfigError(key, raw)
            return hours
    except ValueError:
        raise InvalidConfigError(key, raw) from None
    raise InvalidConfigError(key, raw)


def merge_overrides(base: PlatformConfig, rows: dict[str, str]) -> PlatformConfig:
    """Apply system_config rows on top of the defaults, skipping bad values."""
    values = {
        FEE_PERCENTAGE_KEY: base.fee_percentage,
        PAYMENT_TIMEOUT_KEY: base.payment_timeout_hours,
        VERIFICATION_PERIOD_KEY: base.verification_period_hours,
    }
    for key, raw in rows.items():
        try:
            values[key] = parse_config_value(key, raw)
        except InvalidConfigError:
            logger.warning("Ignoring invalid system_config %s=%r, using default", key, raw)
    return PlatformConfig(
        fee_percentage=float(values[FEE_PERCENTAGE_KEY]),
        payment_timeout_hours=int(values[PAYMENT_TIMEOUT_KEY]),
        verification_period_hours=int(values[VERIFICATION_PERIOD_KEY]),
        stale_paid_refund_hours=base.stale_paid_refund_hours,
        default_bid_increment=base.default_bid_increment,
    )


class PlatformConfigProvider(Protocol):
    async def load(self, db: AsyncSession) -> PlatformConfig: ...


class PlatformConfigLoader:
    """Reads the effective config at the start of each unit of work."""

    async def load(self, db: AsyncSession) -> PlatformConfig:
        result = await db.execute(_LOAD_CONFIG_SQL)
        rows = {row.key: row.value for row in result.fetchall()}
        return merge_overrides(default_platform_config(), rows)


class StaticPlatformConfig:
    """Fixed config, for callers that should not consult the database."""

    def __init__(self, config: PlatformConfig | None = None) -> None:
        self._config = config or default_platform_config()

    async def load(self, db: AsyncSession) -> PlatformConfig:
        return self._config
