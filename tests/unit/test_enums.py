"""Tests for ds_common.enums — all enum values must match DB CHECK constraints."""

from src.ds_common.enums import (
    TERMINAL_TRANSACTION_STATUSES,
    DisputeCategory,
    DisputeResolution,
    DisputeStatus,
    ListingStatus,
    ListingType,
    PaymentMethod,
    PaymentStatus,
    PayoutStatus,
    TransactionStatus,
)


class TestAllEnumsAreStr:
    """All enums inherit from (str, Enum) for JSON serialization."""

    def test_transaction_status_is_str(self) -> None:
        assert isinstance(TransactionStatus.PAID, str)
        assert TransactionStatus.PAID == "PAID"

    def test_listing_status_is_str(self) -> None:
        assert ListingStatus.PENDING == "PENDING"


class TestListing:
    def test_types(self) -> None:
        assert {t.value for t in ListingType} == {"FIXED", "AUCTION"}

    def test_statuses(self) -> None:
        expected = {"DRAFT", "ACTIVE", "PENDING", "SOLD", "CANCELLED"}
        assert {s.value for s in ListingStatus} == expected


class TestTransactionStatus:
    def test_all_values(self) -> None:
        expected = {
            "PENDING_PAYMENT", "PAID", "ITEM_TRANSFERRED", "DISPUTED",
            "COMPLETED", "CANCELLED", "REFUNDED",
        }
        assert {s.value for s in TransactionStatus} == expected

    def test_terminal_statuses(self) -> None:
        assert TERMINAL_TRANSACTION_STATUSES == {"COMPLETED", "CANCELLED", "REFUNDED"}


class TestPayments:
    def test_payment_statuses(self) -> None:
        assert {s.value for s in PaymentStatus} == {"PENDING", "PAID", "EXPIRED"}

    def test_payment_methods(self) -> None:
        assert {m.value for m in PaymentMethod} == {"VA", "EWALLET", "QRIS", "CARD", "RETAIL"}

    def test_payout_statuses(self) -> None:
        expected = {"PENDING", "PROCESSING", "COMPLETED", "FAILED"}
        assert {s.value for s in PayoutStatus} == expected


class TestDisputes:
    def test_statuses(self) -> None:
        assert {s.value for s in DisputeStatus} == {"OPEN", "UNDER_REVIEW", "RESOLVED"}

    def test_categories(self) -> None:
        expected = {"NOT_AS_DESCRIBED", "ACCESS_ISSUE", "FRAUD", "OTHER"}
        assert {c.value for c in DisputeCategory} == expected

    def test_resolutions(self) -> None:
        expected = {"FULL_REFUND", "PARTIAL_REFUND", "NO_REFUND"}
        assert {r.value for r in DisputeResolution} == expected
