"""ds_dispute REST endpoints.

POST /transactions/{transaction_id}/dispute       — buyer opens a dispute
GET  /transactions/{transaction_id}/dispute       — dispute of a transaction
GET  /disputes/{dispute_id}                       — dispute with its evidence
POST /disputes/{dispute_id}/evidence              — buyer or seller adds evidence
POST /admin/disputes/{dispute_id}/review          — admin takes the dispute
POST /admin/disputes/{dispute_id}/resolve         — admin settles the dispute
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.ds_common.database import get_db_session
from src.ds_common.response import ApiResponse, success_response
from src.ds_dispute.application.schemas import (
    AddEvidenceRequest,
    OpenDisputeRequest,
    ResolveDisputeRequest,
    dispute_to_response,
    evidence_to_response,
)
from src.ds_dispute.application.service import get_dispute_resolver
from src.ds_gateway.auth.dependencies import get_current_user, require_admin
from src.ds_gateway.user.db_models import UserModel

router = APIRouter(tags=["disputes"])


def _wrap(request: Request, data: object) -> ApiResponse:
    resp = success_response(data)
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.post("/transactions/{transaction_id}/dispute", status_code=201)
async def open_dispute(
    transaction_id: str,
    req: OpenDisputeRequest,
    request: Request,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    dispute = await get_dispute_resolver().open(
        db, transaction_id, str(current_user.id), req.category.value, req.description
    )
    return _wrap(request, dispute_to_response(dispute).model_dump())


@router.get("/transactions/{transaction_id}/dispute")
async def get_transaction_dispute(
    transaction_id: str,
    request: Request,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    dispute, evidence = await get_dispute_resolver().get_by_transaction(
        db, transaction_id, str(current_user.id), current_user.is_admin
    )
    return _wrap(request, dispute_to_response(dispute, evidence).model_dump())


@router.get("/disputes/{dispute_id}")
async def get_dispute(
    dispute_id: str,
    request: Request,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    dispute, evidence = await get_dispute_resolver().get(
        db, dispute_id, str(current_user.id), current_user.is_admin
    )
    return _wrap(request, dispute_to_response(dispute, evidence).model_dump())


@router.post("/disputes/{dispute_id}/evidence", status_code=201)
async def add_evidence(
    dispute_id: str,
    req: AddEvidenceRequest,
    request: Request,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    evidence = await get_dispute_resolver().add_evidence(
        db,
        dispute_id,
        str(current_user.id),
        str(req.file_url),
        req.file_type,
        req.file_name,
        req.file_size_bytes,
    )
    return _wrap(request, evidence_to_response(evidence).model_dump())


@router.post("/admin/disputes/{dispute_id}/review")
async def start_review(
    dispute_id: str,
    request: Request,
    admin: Annotated[UserModel, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    dispute = await get_dispute_resolver().start_review(db, dispute_id, str(admin.id))
    return _wrap(request, dispute_to_response(dispute).model_dump())


@router.post("/admin/disputes/{dispute_id}/resolve")
async def resolve_dispute(
    dispute_id: str,
    req: ResolveDisputeRequest,
    request: Request,
    admin: Annotated[UserModel, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    dispute = await get_dispute_resolver().resolve(
        db, dispute_id, str(admin.id), req.resolution.value, req.refund_amount, req.admin_notes
    )
    return _wrap(request, dispute_to_response(dispute).model_dump())
