# tests/unit/test_fee_calculation.py
"""Platform fee split and verification deadline arithmetic."""
from datetime import UTC, datetime, timedelta

from src.ds_transaction.domain.fees import compute_fees, verification_deadline


class TestComputeFees:
    def test_five_percent_of_hundred_thousand(self) -> None:
        assert compute_fees(100_000, 0.05) == (5_000, 95_000)

    def test_fee_rounds_half_up(self) -> None:
        # 10 * 0.05 = 0.5 -> 1
        assert compute_fees(10, 0.05) == (1, 9)
        # 29 * 0.05 = 1.45 -> 1
        assert compute_fees(29, 0.05) == (1, 28)
        # 30 * 0.05 = 1.5 -> 2
        assert compute_fees(30, 0.05) == (2, 28)

    def test_decimal_percentage_is_not_skewed_by_float(self) -> None:
        # 0.035 is stored as 0.035000000000000003 in binary
        assert compute_fees(100, 0.035) == (4, 96)
        assert compute_fees(1_000_000, 0.07) == (70_000, 930_000)

    def test_zero_percentage(self) -> None:
        assert compute_fees(250_000, 0.0) == (0, 250_000)

    def test_full_percentage(self) -> None:
        assert compute_fees(250_000, 1.0) == (250_000, 0)

    def test_fee_plus_payout_always_equals_amount(self) -> None:
        percentages = [0.0, 0.01, 0.025, 0.05, 0.075, 0.1, 0.125, 0.333, 0.5, 1.0]
        for amount in range(1_000, 2_000_000, 7_919):
            for pct in percentages:
                fee, payout = compute_fees(amount, pct)
                assert fee + payout == amount
                assert 0 <= fee <= amount
                assert abs(fee - amount * pct) <= 0.5 + 1e-6

    def test_results_are_ints(self) -> None:
        fee, payout = compute_fees(123_457, 0.05)
        assert isinstance(fee, int)
        assert isinstance(payout, int)


class TestVerificationDeadline:
    def test_adds_hours(self) -> None:
        start = datetime(2026, 3, 2, 9, 0, tzinfo=UTC)
        assert verification_deadline(start, 24) == start + timedelta(hours=24)

    def test_crosses_month_boundary(self) -> None:
        start = datetime(2026, 2, 28, 23, 30, tzinfo=UTC)
        assert verification_deadline(start, 48) == datetime(2026, 3, 2, 23, 30, tzinfo=UTC)
