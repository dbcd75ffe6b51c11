"""ds_transaction REST endpoints.

POST /transactions                         — buy a listing (reserve + first invoice)
GET  /transactions                         — my transactions as buyer or seller
GET  /transactions/{transaction_id}        — detail (participants, admin)
POST /transactions/{transaction_id}/cancel    — buyer, while PENDING_PAYMENT
POST /transactions/{transaction_id}/transfer  — seller, while PAID
POST /transactions/{transaction_id}/confirm   — buyer, while ITEM_TRANSFERRED
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.ds_common.database import get_db_session
from src.ds_common.enums import TransactionStatus
from src.ds_common.pagination import cursor_decode
from src.ds_common.response import ApiResponse, success_response
from src.ds_gateway.auth.dependencies import get_current_user
from src.ds_gateway.middleware.rate_limit import transaction_create_limit
from src.ds_gateway.user.db_models import UserModel
from src.ds_transaction.application.schemas import (
    CreateTransactionRequest,
    CreateTransactionResponse,
    MarkTransferredRequest,
    TransactionRole,
    build_transaction_list,
    payment_to_response,
    transaction_to_response,
)
from src.ds_transaction.application.service import get_transaction_service

router = APIRouter(prefix="/transactions", tags=["transactions"])


@router.post("", status_code=201, dependencies=[Depends(transaction_create_limit)])
async def create_transaction(
    req: CreateTransactionRequest,
    request: Request,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    machine = get_transaction_service()
    opened = await machine.create(
        db, req.listing_id, str(current_user.id), req.payment_method, req.redirect_url
    )
    result = CreateTransactionResponse(
        transaction=transaction_to_response(opened.transaction, machine.now()),
        payment=payment_to_response(opened.payment),
    )
    resp = success_response(result.model_dump())
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.get("")
async def list_transactions(
    request: Request,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    role: TransactionRole = Query("buyer"),
    status: TransactionStatus | None = Query(None),
    limit: int = Query(20, ge=1, le=100),
    cursor: str | None = Query(None),
) -> ApiResponse:
    machine = get_transaction_service()
    cursor_ts, cursor_id = cursor_decode(cursor)
    rows = await machine.list_for_user(
        db, str(current_user.id), role, status, cursor_ts, cursor_id, limit + 1
    )
    result = build_transaction_list(rows, limit, machine.now())
    resp = success_response(result.model_dump())
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.get("/{transaction_id}")
async def get_transaction(
    transaction_id: str,
    request: Request,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    machine = get_transaction_service()
    txn = await machine.get(db, transaction_id, str(current_user.id), current_user.is_admin)
    resp = success_response(transaction_to_response(txn, machine.now()).model_dump())
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.post("/{transaction_id}/cancel")
async def cancel_transaction(
    transaction_id: str,
    request: Request,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    machine = get_transaction_service()
    txn = await machine.cancel(db, transaction_id, str(current_user.id))
    resp = success_response(transaction_to_response(txn, machine.now()).model_dump())
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.post("/{transaction_id}/transfer")
async def mark_transferred(
    transaction_id: str,
    req: MarkTransferredRequest,
    request: Request,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    machine = get_transaction_service()
    txn = await machine.mark_transferred(
        db, transaction_id, str(current_user.id), req.proof_url
    )
    resp = success_response(transaction_to_response(txn, machine.now()).model_dump())
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.post("/{transaction_id}/confirm")
async def confirm_received(
    transaction_id: str,
    request: Request,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    machine = get_transaction_service()
    txn = await machine.confirm_received(db, transaction_id, str(current_user.id))
    resp = success_response(transaction_to_response(txn, machine.now()).model_dump())
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp
