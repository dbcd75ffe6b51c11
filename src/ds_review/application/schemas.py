"""Pydantic schemas for ds_review API requests and responses."""

from datetime import datetime

from pydantic import BaseModel, Field

from src.ds_common.pagination import cursor_encode
from src.ds_review.domain.models import MAX_RATING, MIN_RATING, RatingSummary, Review


class CreateReviewRequest(BaseModel):
    transaction_id: str
    rating: int = Field(..., ge=MIN_RATING, le=MAX_RATING)
    comment: str | None = Field(None, min_length=10, max_length=1000)


class ReviewResponse(BaseModel):
    id: str
    transaction_id: str
    reviewer_id: str
    reviewed_user_id: str
    rating: int
    comment: str | None
    created_at: datetime | None


class ReviewListResponse(BaseModel):
    items: list[ReviewResponse]
    next_cursor: str | None
    has_more: bool


class TransactionReviewsResponse(BaseModel):
    items: list[ReviewResponse]
    has_reviewed: bool


class RatingSummaryResponse(BaseModel):
    user_id: str
    average: float
    count: int
    distribution: dict[int, int]


def review_to_response(review: Review) -> ReviewResponse:
    return ReviewResponse(
        id=review.id,
        transaction_id=review.transaction_id,
        reviewer_id=review.reviewer_id,
        reviewed_user_id=review.reviewed_user_id,
        rating=review.rating,
        comment=review.comment,
        created_at=review.created_at,
    )


def build_review_list(rows: list[Review], limit: int) -> ReviewListResponse:
    has_more = len(rows) > limit
    page = rows[:limit]
    next_cursor = None
    if has_more and page and page[-1].created_at is not None:
        next_cursor = cursor_encode(page[-1].created_at, page[-1].id)
    return ReviewListResponse(
        items=[review_to_response(r) for r in page],
        next_cursor=next_cursor,
        has_more=has_more,
    )


def summary_to_response(summary: RatingSummary) -> RatingSummaryResponse:
    return RatingSummaryResponse(
        user_id=summary.user_id,
        average=summary.average,
        count=summary.count,
        distribution=summary.distribution,
    )
