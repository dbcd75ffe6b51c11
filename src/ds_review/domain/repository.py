"""Repository Protocol — dependency inversion for testability.

Unit tests inject an in-memory fake that conforms to this Protocol.
Infrastructure layer provides the real implementation.
"""

from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.ds_review.domain.models import Review


class ReviewRepositoryProtocol(Protocol):
    async def insert(self, db: AsyncSession, review: Review) -> Review: ...

    async def get_by_reviewer(
        self, db: AsyncSession, transaction_id: str, reviewer_id: str
    ) -> Review | None: ...

    async def list_by_transaction(
        self, db: AsyncSession, transaction_id: str
    ) -> list[Review]: ...

    async def list_for_user(
        self,
        db: AsyncSession,
        user_id: str,
        cursor_ts: str | None,
        cursor_id: str | None,
        limit: int,
    ) -> list[Review]:
        """Newest first; callers pass limit + 1 to detect has_more."""
        ...

    async def rating_distribution(self, db: AsyncSession, user_id: str) -> dict[int, int]: ...

    async def get_user_rating_for_update(
        self, db: AsyncSession, user_id: str
    ) -> tuple[float, int] | None:
        """Lock the user row and return (rating, rating_count), or None if absent."""
        ...

    async def get_user_rating(
        self, db: AsyncSession, user_id: str
    ) -> tuple[float, int] | None: ...

    async def set_user_rating(
        self, db: AsyncSession, user_id: str, rating: float, count: int
    ) -> None: ...
