"""ReviewService — post-completion reviews and the reviewed user's rating.

Only a participant of a COMPLETED transaction may review, and the review is
always about the counter-party. One review per (transaction, reviewer).
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from src.ds_common.effects import Notify
from src.ds_common.enums import NotificationType, TransactionStatus
from src.ds_common.errors import (
    DuplicateReviewError,
    NotTransactionPartyError,
    ReviewNotAllowedError,
    TransactionNotFoundError,
    UserNotFoundError,
)
from src.ds_common.id_generator import generate_id
from src.ds_review.domain.models import RatingSummary, Review
from src.ds_review.domain.rating import running_average
from src.ds_review.domain.repository import ReviewRepositoryProtocol
from src.ds_review.infrastructure.persistence import ReviewRepository
from src.ds_transaction.application.effects import EffectRunner
from src.ds_transaction.domain.repository import TransactionRepositoryProtocol
from src.ds_transaction.infrastructure.persistence import TransactionRepository

logger = logging.getLogger(__name__)


class ReviewService:
    def __init__(
        self,
        repo: ReviewRepositoryProtocol | None = None,
        transactions: TransactionRepositoryProtocol | None = None,
        effects: EffectRunner | None = None,
    ) -> None:
        self._repo: ReviewRepositoryProtocol = repo or ReviewRepository()
        self._transactions: TransactionRepositoryProtocol = transactions or TransactionRepository()
        self._effects = effects or EffectRunner()

    async def create_review(
        self,
        db: AsyncSession,
        transaction_id: str,
        reviewer_id: str,
        rating: int,
        comment: str | None = None,
    ) -> Review:
        try:
            txn = await self._transactions.get_by_id(db, transaction_id)
            if txn is None:
                raise TransactionNotFoundError(transaction_id)
            if not txn.is_party(reviewer_id):
                raise NotTransactionPartyError(transaction_id, "buyer or seller")
            if txn.status != TransactionStatus.COMPLETED:
                raise ReviewNotAllowedError("the transaction is not completed")
            if await self._repo.get_by_reviewer(db, transaction_id, reviewer_id) is not None:
                raise DuplicateReviewError(transaction_id)

            reviewed_user_id = txn.seller_id if reviewer_id == txn.buyer_id else txn.buyer_id
            review = await self._repo.insert(
                db,
                Review(
                    id=generate_id(),
                    transaction_id=transaction_id,
                    reviewer_id=reviewer_id,
                    reviewed_user_id=reviewed_user_id,
                    rating=rating,
                    comment=comment,
                ),
            )

            current = await self._repo.get_user_rating_for_update(db, reviewed_user_id)
            if current is None:
                raise UserNotFoundError(reviewed_user_id)
            average, count = running_average(current[0], current[1], rating)
            await self._repo.set_user_rating(db, reviewed_user_id, average, count)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info(
            "Review %s: %s rated %s %d/5 (avg %.1f over %d)",
            review.id, reviewer_id, reviewed_user_id, rating, average, count,
        )
        await self._effects.dispatch(
            [
                Notify(
                    user_id=reviewed_user_id,
                    notification_type=NotificationType.REVIEW_RECEIVED,
                    title="New review",
                    body=f"You received a {rating}-star review",
                    payload={
                        "transaction_id": transaction_id,
                        "review_id": review.id,
                        "rating": rating,
                    },
                )
            ]
        )
        return review

    async def list_for_transaction(
        self, db: AsyncSession, transaction_id: str, user_id: str, is_admin: bool = False
    ) -> tuple[list[Review], bool]:
        """Return the transaction's reviews and whether `user_id` has reviewed it."""
        txn = await self._transactions.get_by_id(db, transaction_id)
        if txn is None:
            raise TransactionNotFoundError(transaction_id)
        if not is_admin and not txn.is_party(user_id):
            raise NotTransactionPartyError(transaction_id, "buyer or seller")
        reviews = await self._repo.list_by_transaction(db, transaction_id)
        return reviews, any(r.reviewer_id == user_id for r in reviews)

    async def list_for_user(
        self,
        db: AsyncSession,
        user_id: str,
        cursor_ts: str | None,
        cursor_id: str | None,
        limit: int,
    ) -> list[Review]:
        return await self._repo.list_for_user(db, user_id, cursor_ts, cursor_id, limit)

    async def rating_summary(self, db: AsyncSession, user_id: str) -> RatingSummary:
        current = await self._repo.get_user_rating(db, user_id)
        if current is None:
            raise UserNotFoundError(user_id)
        distribution = await self._repo.rating_distribution(db, user_id)
        return RatingSummary(
            user_id=user_id,
            average=current[0],
            count=current[1],
            distribution=distribution,
        )


_service: ReviewService | None = None


def get_review_service() -> ReviewService:
    global _service  # noqa: PLW0603
    if _service is None:
        _service = ReviewService()
    return _service
