"""Pydantic schemas for ds_transaction API requests and responses."""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

from src.ds_common.enums import PaymentMethod
from src.ds_common.pagination import cursor_encode
from src.ds_transaction.application.sweeps import SweepReport
from src.ds_transaction.domain.models import Payment, Transaction
from src.ds_transaction.domain.state_machine import is_verification_expired

# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


class CreateTransactionRequest(BaseModel):
    listing_id: str
    payment_method: PaymentMethod = PaymentMethod.VA
    redirect_url: str | None = Field(None, max_length=2048)


class MarkTransferredRequest(BaseModel):
    proof_url: str | None = Field(None, max_length=2048)


class RequestPaymentRequest(BaseModel):
    redirect_url: str | None = Field(None, max_length=2048)


TransactionRole = Literal["buyer", "seller"]

# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------


class TransactionResponse(BaseModel):
    id: str
    listing_id: str
    buyer_id: str
    seller_id: str
    transaction_amount: int
    platform_fee_amount: int
    seller_payout_amount: int
    payment_method: str
    status: str
    paid_at: datetime | None = None
    item_transferred_at: datetime | None = None
    verification_deadline: datetime | None = None
    is_verification_expired: bool = False
    completed_at: datetime | None = None
    cancelled_at: datetime | None = None
    refunded_at: datetime | None = None
    transfer_proof_url: str | None = None
    created_at: datetime | None = None


class PaymentResponse(BaseModel):
    id: str
    transaction_id: str
    external_invoice_id: str
    invoice_url: str
    amount: int
    payment_method: str
    status: str
    expires_at: datetime
    paid_at: datetime | None = None
    created_at: datetime | None = None


class CreateTransactionResponse(BaseModel):
    transaction: TransactionResponse
    payment: PaymentResponse


class PaymentRequestResponse(BaseModel):
    payment: PaymentResponse
    is_existing: bool


class TransactionListResponse(BaseModel):
    items: list[TransactionResponse]
    next_cursor: str | None
    has_more: bool


class SweepReportResponse(BaseModel):
    processed: int
    succeeded: int
    skipped: int
    errors: list[dict[str, Any]]


# ---------------------------------------------------------------------------
# Converters
# ---------------------------------------------------------------------------


def transaction_to_response(txn: Transaction, now: datetime) -> TransactionResponse:
    return TransactionResponse(
        id=txn.id,
        listing_id=txn.listing_id,
        buyer_id=txn.buyer_id,
        seller_id=txn.seller_id,
        transaction_amount=txn.transaction_amount,
        platform_fee_amount=txn.platform_fee_amount,
        seller_payout_amount=txn.seller_payout_amount,
        payment_method=txn.payment_method,
        status=txn.status,
        paid_at=txn.paid_at,
        item_transferred_at=txn.item_transferred_at,
        verification_deadline=txn.verification_deadline,
        is_verification_expired=is_verification_expired(txn, now),
        completed_at=txn.completed_at,
        cancelled_at=txn.cancelled_at,
        refunded_at=txn.refunded_at,
        transfer_proof_url=txn.transfer_proof_url,
        created_at=txn.created_at,
    )


def payment_to_response(payment: Payment) -> PaymentResponse:
    return PaymentResponse(
        id=payment.id,
        transaction_id=payment.transaction_id,
        external_invoice_id=payment.external_invoice_id,
        invoice_url=payment.invoice_url,
        amount=payment.amount,
        payment_method=payment.payment_method,
        status=payment.status,
        expires_at=payment.expires_at,
        paid_at=payment.paid_at,
        created_at=payment.created_at,
    )


def build_transaction_list(
    rows: list[Transaction], limit: int, now: datetime
) -> TransactionListResponse:
    """`rows` holds up to limit + 1 items; the extra one only signals has_more."""
    has_more = len(rows) > limit
    page = rows[:limit]
    next_cursor = None
    if has_more and page and page[-1].created_at is not None:
        next_cursor = cursor_encode(page[-1].created_at, page[-1].id)
    return TransactionListResponse(
        items=[transaction_to_response(t, now) for t in page],
        next_cursor=next_cursor,
        has_more=has_more,
    )


def sweep_to_response(report: SweepReport) -> SweepReportResponse:
    return SweepReportResponse(
        processed=report.processed,
        succeeded=report.succeeded,
        skipped=report.skipped,
        errors=report.errors,
    )
