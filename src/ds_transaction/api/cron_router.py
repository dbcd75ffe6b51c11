"""Scheduler endpoints, called by an external cron with Bearer <CRON_SECRET>.

POST /cron/expire-payments     — PENDING payments past expires_at
POST /cron/auto-release        — ITEM_TRANSFERRED past the verification deadline
POST /cron/refund-stale-paid   — PAID without transfer for too long
POST /cron/close-auctions      — ACTIVE auctions past auction_ends_at
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.ds_common.database import get_db_session
from src.ds_common.response import ApiResponse, success_response
from src.ds_gateway.auth.dependencies import require_cron
from src.ds_transaction.application.schemas import sweep_to_response
from src.ds_transaction.application.sweeps import SweepService

router = APIRouter(prefix="/cron", tags=["cron"], dependencies=[Depends(require_cron)])

_service: SweepService | None = None


def _sweeps() -> SweepService:
    global _service  # noqa: PLW0603
    if _service is None:
        _service = SweepService()
    return _service


@router.post("/expire-payments")
async def expire_payments(
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    report = await _sweeps().expire_payments(db)
    resp = success_response(sweep_to_response(report).model_dump())
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.post("/auto-release")
async def auto_release(
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    report = await _sweeps().auto_release(db)
    resp = success_response(sweep_to_response(report).model_dump())
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.post("/refund-stale-paid")
async def refund_stale_paid(
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    report = await _sweeps().refund_stale_paid(db)
    resp = success_response(sweep_to_response(report).model_dump())
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.post("/close-auctions")
async def close_auctions(
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    report = await _sweeps().close_auctions(db)
    resp = success_response(sweep_to_response(report).model_dump())
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp
