# tests/unit/test_platform_config.py
"""Runtime platform config parsing and the admin override service."""
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.ds_admin.application.service import AdminService
from src.ds_common.enums import AuditAction
from src.ds_common.errors import InvalidConfigError
from src.ds_common.platform_config import (
    FEE_PERCENTAGE_KEY,
    PAYMENT_TIMEOUT_KEY,
    VERIFICATION_PERIOD_KEY,
    PlatformConfig,
    PlatformConfigLoader,
    StaticPlatformConfig,
    merge_overrides,
    parse_config_value,
)

BASE = PlatformConfig(
    fee_percentage=0.05,
    payment_timeout_hours=24,
    verification_period_hours=24,
    stale_paid_refund_hours=48,
    default_bid_increment=5_000,
)


class TestParseConfigValue:
    def test_fee_percentage(self) -> None:
        assert parse_config_value(FEE_PERCENTAGE_KEY, "0.075") == 0.075

    @pytest.mark.parametrize("raw", ["1.5", "-0.01", "five", ""])
    def test_fee_percentage_out_of_range(self, raw) -> None:
        with pytest.raises(InvalidConfigError):
            parse_config_value(FEE_PERCENTAGE_KEY, raw)

    def test_fee_bounds_inclusive(self) -> None:
        assert parse_config_value(FEE_PERCENTAGE_KEY, "0") == 0.0
        assert parse_config_value(FEE_PERCENTAGE_KEY, "1") == 1.0

    def test_hours(self) -> None:
        assert parse_config_value(PAYMENT_TIMEOUT_KEY, "12") == 12
        assert parse_config_value(VERIFICATION_PERIOD_KEY, "72") == 72

    @pytest.mark.parametrize("raw", ["0", "-3", "1.5", "a day"])
    def test_bad_hours(self, raw) -> None:
        with pytest.raises(InvalidConfigError):
            parse_config_value(PAYMENT_TIMEOUT_KEY, raw)

    def test_unknown_key(self) -> None:
        with pytest.raises(InvalidConfigError) as exc_info:
            parse_config_value("MAX_LISTINGS", "10")
        assert exc_info.value.code == 9003
        assert exc_info.value.http_status == 422


class TestMergeOverrides:
    def test_applies_valid_rows(self) -> None:
        merged = merge_overrides(
            BASE, {FEE_PERCENTAGE_KEY: "0.1", VERIFICATION_PERIOD_KEY: "48"}
        )
        assert merged.fee_percentage == 0.1
        assert merged.verification_period_hours == 48
        assert merged.payment_timeout_hours == 24

    def test_invalid_row_falls_back_to_default(self) -> None:
        merged = merge_overrides(BASE, {FEE_PERCENTAGE_KEY: "2.0", PAYMENT_TIMEOUT_KEY: "6"})
        assert merged.fee_percentage == 0.05
        assert merged.payment_timeout_hours == 6

    def test_settings_only_values_kept(self) -> None:
        merged = merge_overrides(BASE, {})
        assert merged == BASE


class TestLoaders:
    async def test_static_config(self) -> None:
        assert await StaticPlatformConfig(BASE).load(AsyncMock()) is BASE

    async def test_loader_reads_system_config(self) -> None:
        row = MagicMock()
        row.key = PAYMENT_TIMEOUT_KEY
        row.value = "6"
        db = AsyncMock()
        db.execute.return_value = MagicMock(fetchall=MagicMock(return_value=[row]))

        config = await PlatformConfigLoader().load(db)

        assert config.payment_timeout_hours == 6
        db.execute.assert_awaited_once()


class TestAdminService:
    def _service(self, audit) -> AdminService:
        return AdminService(audit=audit, config=StaticPlatformConfig(BASE))

    async def test_get_config(self, escrow) -> None:
        values = await self._service(escrow.audit).get_config(AsyncMock())
        assert values == {
            "PLATFORM_FEE_PERCENTAGE": 0.05,
            "PAYMENT_TIMEOUT_HOURS": 24,
            "VERIFICATION_PERIOD_HOURS": 24,
        }

    async def test_set_config_upserts_and_audits(self, escrow) -> None:
        old = MagicMock()
        old.value = "0.05"
        db = AsyncMock()
        db.execute.return_value = MagicMock(fetchone=MagicMock(return_value=old))

        result = await self._service(escrow.audit).set_config(
            FEE_PERCENTAGE_KEY, "0.07", "admin-1", db
        )

        assert result == {"key": FEE_PERCENTAGE_KEY, "value": 0.07}
        assert db.execute.await_count == 2
        db.commit.assert_awaited_once()
        record = escrow.audit.records[-1]
        assert record.action_type == AuditAction.CONFIG_UPDATED
        assert record.old_value == {"value": "0.05"}
        assert record.new_value == {"value": "0.07"}
        assert record.actor_id == "admin-1"

    async def test_set_config_rejects_invalid_before_writing(self, escrow) -> None:
        db = AsyncMock()
        with pytest.raises(InvalidConfigError):
            await self._service(escrow.audit).set_config(
                FEE_PERCENTAGE_KEY, "1.2", "admin-1", db
            )
        db.execute.assert_not_awaited()
        assert escrow.audit.records == []
