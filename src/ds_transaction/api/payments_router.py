"""Payment endpoints.

POST /transactions/{transaction_id}/payments   — request (or reuse) an invoice
GET  /transactions/{transaction_id}/payments   — payment history
GET  /payments/{payment_id}                    — detail
POST /payments/{payment_id}/reconcile          — poll the gateway for the outcome
POST /payments/{payment_id}/simulate-paid      — DEBUG only
POST /payments/{payment_id}/simulate-expiry    — DEBUG only
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.ds_common.database import get_db_session
from src.ds_common.response import ApiResponse, success_response
from src.ds_gateway.auth.dependencies import get_current_user
from src.ds_gateway.middleware.rate_limit import payment_request_limit
from src.ds_gateway.user.db_models import UserModel
from src.ds_transaction.application.payments import PaymentService
from src.ds_transaction.application.schemas import (
    PaymentRequestResponse,
    RequestPaymentRequest,
    payment_to_response,
    transaction_to_response,
)
from src.ds_transaction.application.service import get_transaction_service

router = APIRouter(tags=["payments"])

_service: PaymentService | None = None


def _payments() -> PaymentService:
    global _service  # noqa: PLW0603
    if _service is None:
        _service = PaymentService()
    return _service


@router.post(
    "/transactions/{transaction_id}/payments",
    dependencies=[Depends(payment_request_limit)],
)
async def request_payment(
    transaction_id: str,
    req: RequestPaymentRequest,
    request: Request,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    outcome = await _payments().request_payment(
        db, transaction_id, str(current_user.id), req.redirect_url
    )
    result = PaymentRequestResponse(
        payment=payment_to_response(outcome.payment), is_existing=outcome.is_existing
    )
    resp = success_response(result.model_dump())
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.get("/transactions/{transaction_id}/payments")
async def list_payments(
    transaction_id: str,
    request: Request,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    payments = await _payments().list_payments(
        db, transaction_id, str(current_user.id), current_user.is_admin
    )
    resp = success_response([payment_to_response(p).model_dump() for p in payments])
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.get("/payments/{payment_id}")
async def get_payment(
    payment_id: str,
    request: Request,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    payment = await _payments().get_payment(
        db, payment_id, str(current_user.id), current_user.is_admin
    )
    resp = success_response(payment_to_response(payment).model_dump())
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.post("/payments/{payment_id}/reconcile")
async def reconcile_payment(
    payment_id: str,
    request: Request,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    # Participants only; the outcome comes from the gateway, not the caller.
    await _payments().get_payment(db, payment_id, str(current_user.id), current_user.is_admin)
    payment = await _payments().reconcile_payment(db, payment_id)
    resp = success_response(payment_to_response(payment).model_dump())
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.post("/payments/{payment_id}/simulate-paid")
async def simulate_paid(
    payment_id: str,
    request: Request,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    await _payments().get_payment(db, payment_id, str(current_user.id), current_user.is_admin)
    txn = await _payments().simulate_paid(db, payment_id)
    now = get_transaction_service().now()
    resp = success_response(transaction_to_response(txn, now).model_dump())
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.post("/payments/{payment_id}/simulate-expiry")
async def simulate_expiry(
    payment_id: str,
    request: Request,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    await _payments().get_payment(db, payment_id, str(current_user.id), current_user.is_admin)
    txn = await _payments().simulate_expired(db, payment_id)
    now = get_transaction_service().now()
    resp = success_response(transaction_to_response(txn, now).model_dump())
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp
