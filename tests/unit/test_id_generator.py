"""Tests for ds_common.id_generator and ds_common.datetime_utils."""

import uuid
from datetime import UTC, datetime, timedelta

from src.ds_common.datetime_utils import hours_from, utc_now
from src.ds_common.id_generator import generate_id


class TestGenerateId:
    def test_is_uuid4_string(self) -> None:
        value = generate_id()
        assert isinstance(value, str)
        assert uuid.UUID(value).version == 4

    def test_unique_ids(self) -> None:
        assert len({generate_id() for _ in range(1000)}) == 1000


class TestUtcNow:
    def test_returns_aware_datetime(self) -> None:
        now = utc_now()
        assert isinstance(now, datetime)
        assert now.tzinfo is not None

    def test_is_utc(self) -> None:
        assert utc_now().utcoffset() == timedelta(0)


class TestHoursFrom:
    def test_adds_hours(self) -> None:
        start = datetime(2026, 3, 2, 23, 0, tzinfo=UTC)
        assert hours_from(start, 24) == datetime(2026, 3, 3, 23, 0, tzinfo=UTC)
