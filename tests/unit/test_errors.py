"""Tests for ds_common.errors, ds_common.response and the small shared helpers."""

from datetime import UTC, datetime

import pytest

from src.ds_common.errors import (
    AppError,
    BidTooLowError,
    ConflictError,
    DisputeWindowClosedError,
    ForbiddenError,
    InvoiceCreationError,
    ListingReservedError,
    NotFoundError,
    NotTransactionPartyError,
    PendingTransactionExistsError,
    PreconditionFailedError,
    RateLimitError,
    TransactionNotFoundError,
)
from src.ds_common.money import format_idr, validate_price
from src.ds_common.pagination import cursor_decode, cursor_encode
from src.ds_common.response import ApiResponse, error_response, success_response


class TestAppError:
    def test_base_error(self) -> None:
        err = AppError(code=9002, message="Internal error")
        assert err.code == 9002
        assert err.message == "Internal error"
        assert err.http_status == 500
        assert err.data is None

    def test_is_exception(self) -> None:
        assert isinstance(AppError(code=1001, message="test"), Exception)


class TestTaxonomy:
    def test_not_found(self) -> None:
        err = TransactionNotFoundError("txn-9")
        assert isinstance(err, NotFoundError)
        assert err.code == 4001
        assert err.http_status == 404
        assert "txn-9" in err.message

    def test_forbidden(self) -> None:
        err = NotTransactionPartyError("txn-9", "seller")
        assert isinstance(err, ForbiddenError)
        assert err.http_status == 403

    def test_precondition_failed(self) -> None:
        err = DisputeWindowClosedError("txn-9")
        assert isinstance(err, PreconditionFailedError)
        assert err.code == 6003
        assert err.http_status == 422

    def test_conflict(self) -> None:
        err = ListingReservedError("listing-1")
        assert isinstance(err, ConflictError)
        assert err.code == 2003
        assert err.http_status == 409

    def test_external_service(self) -> None:
        err = InvoiceCreationError("timeout")
        assert err.code == 5003
        assert err.http_status == 502


class TestErrorData:
    def test_pending_transaction_points_at_existing_order(self) -> None:
        err = PendingTransactionExistsError("txn-42")
        assert err.data == {"transaction_id": "txn-42"}

    def test_bid_too_low_reports_minimum(self) -> None:
        err = BidTooLowError(amount=110_000, minimum=115_000)
        assert err.data == {"minimum_bid": 115_000}
        assert "115000" in err.message

    def test_rate_limit(self) -> None:
        err = RateLimitError(retry_after=37)
        assert err.code == 9001
        assert err.http_status == 429
        assert err.data == {"retry_after": 37}


class TestApiResponse:
    def test_success_response(self) -> None:
        resp = success_response(data={"id": "txn-1"})
        assert resp.code == 0
        assert resp.message == "success"
        assert resp.data == {"id": "txn-1"}
        assert resp.request_id.startswith("req_")

    def test_error_response(self) -> None:
        resp = error_response(code=2003, message="Listing reserved")
        assert resp.code == 2003
        assert resp.data is None

    def test_serialization(self) -> None:
        dumped = ApiResponse(data=[1, 2]).model_dump()
        assert set(dumped) == {"code", "message", "data", "timestamp", "request_id"}


class TestMoney:
    def test_format_idr(self) -> None:
        assert format_idr(100_000) == "Rp 100.000"
        assert format_idr(1_250_500) == "Rp 1.250.500"
        assert format_idr(0) == "Rp 0"
        assert format_idr(-5_000) == "-Rp 5.000"

    def test_validate_price_bounds(self) -> None:
        validate_price(1_000)
        validate_price(2_000_000_000)
        with pytest.raises(ValueError):
            validate_price(999)
        with pytest.raises(ValueError, match="starting_bid"):
            validate_price(2_000_000_001, "starting_bid")


class TestCursor:
    def test_round_trip(self) -> None:
        created = datetime(2026, 3, 2, 9, 30, tzinfo=UTC)
        ts, row_id = cursor_decode(cursor_encode(created, "txn-7"))
        assert ts == created.isoformat()
        assert row_id == "txn-7"

    def test_none(self) -> None:
        assert cursor_decode(None) == (None, None)

    @pytest.mark.parametrize("cursor", ["not-base64!!", "bm90IGpzb24=", "e30="])
    def test_malformed(self, cursor) -> None:
        assert cursor_decode(cursor) == (None, None)
