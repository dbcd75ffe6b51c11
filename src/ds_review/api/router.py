"""ds_review REST endpoints.

POST /reviews                                   — review the counter-party of a completed transaction
GET  /reviews/transaction/{transaction_id}      — reviews of one transaction
GET  /users/{user_id}/reviews                   — reviews received by a user (cursor)
GET  /users/{user_id}/rating                    — average, count and 1-5 distribution
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.ds_common.database import get_db_session
from src.ds_common.pagination import cursor_decode
from src.ds_common.response import ApiResponse, success_response
from src.ds_gateway.auth.dependencies import get_current_user
from src.ds_gateway.user.db_models import UserModel
from src.ds_review.application.schemas import (
    CreateReviewRequest,
    TransactionReviewsResponse,
    build_review_list,
    review_to_response,
    summary_to_response,
)
from src.ds_review.application.service import get_review_service

router = APIRouter(tags=["reviews"])


@router.post("/reviews", status_code=201)
async def create_review(
    req: CreateReviewRequest,
    request: Request,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    review = await get_review_service().create_review(
        db, req.transaction_id, str(current_user.id), req.rating, req.comment
    )
    resp = success_response(review_to_response(review).model_dump())
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.get("/reviews/transaction/{transaction_id}")
async def list_transaction_reviews(
    transaction_id: str,
    request: Request,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    reviews, has_reviewed = await get_review_service().list_for_transaction(
        db, transaction_id, str(current_user.id), current_user.is_admin
    )
    result = TransactionReviewsResponse(
        items=[review_to_response(r) for r in reviews], has_reviewed=has_reviewed
    )
    resp = success_response(result.model_dump())
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.get("/users/{user_id}/reviews")
async def list_user_reviews(
    user_id: str,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    limit: int = Query(20, ge=1, le=50),
    cursor: str | None = Query(None),
) -> ApiResponse:
    cursor_ts, cursor_id = cursor_decode(cursor)
    rows = await get_review_service().list_for_user(db, user_id, cursor_ts, cursor_id, limit + 1)
    resp = success_response(build_review_list(rows, limit).model_dump())
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.get("/users/{user_id}/rating")
async def rating_summary(
    user_id: str,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    summary = await get_review_service().rating_summary(db, user_id)
    resp = success_response(summary_to_response(summary).model_dump())
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp
