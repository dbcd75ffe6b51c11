"""ReviewRepository — concrete implementation of ReviewRepositoryProtocol.

reviews has UNIQUE (transaction_id, reviewer_id). The reviewed user's running
rating lives on the users row and is updated under SELECT ... FOR UPDATE so
two concurrent reviews of the same user cannot lose an increment.

Transaction ownership: the CALLER (application service) commits or rolls back.
"""

from datetime import datetime

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.ds_common.errors import InternalError
from src.ds_review.domain.models import MAX_RATING, MIN_RATING, Review

_REVIEW_COLUMNS = """
    id, transaction_id, reviewer_id, reviewed_user_id, rating, comment, created_at
"""

_INSERT_REVIEW_SQL = text(f"""
    INSERT INTO reviews
        (id, transaction_id, reviewer_id, reviewed_user_id, rating, comment)
    VALUES
        (:id, :transaction_id, :reviewer_id, :reviewed_user_id, :rating, :comment)
    RETURNING {_REVIEW_COLUMNS}
""")

_GET_BY_REVIEWER_SQL = text(f"""
    SELECT {_REVIEW_COLUMNS} FROM reviews
    WHERE transaction_id = :transaction_id AND reviewer_id = :reviewer_id
""")

_LIST_BY_TXN_SQL = text(f"""
    SELECT {_REVIEW_COLUMNS} FROM reviews
    WHERE transaction_id = :transaction_id
    ORDER BY created_at ASC
""")

_LIST_FOR_USER_SQL = text(f"""
    SELECT {_REVIEW_COLUMNS} FROM reviews
    WHERE reviewed_user_id = CAST(:user_id AS UUID)
      AND (
            CAST(:cursor_ts AS TIMESTAMPTZ) IS NULL
            OR created_at < CAST(:cursor_ts AS TIMESTAMPTZ)
            OR (
                created_at = CAST(:cursor_ts AS TIMESTAMPTZ)
                AND id < CAST(:cursor_id AS UUID)
            )
      )
    ORDER BY created_at DESC, id DESC
    LIMIT :limit
""")

_DISTRIBUTION_SQL = text("""
    SELECT rating, COUNT(*) AS n FROM reviews
    WHERE reviewed_user_id = :user_id
    GROUP BY rating
""")

_GET_USER_RATING_SQL = text("SELECT rating, rating_count FROM users WHERE id = :user_id")

_GET_USER_RATING_FOR_UPDATE_SQL = text(
    "SELECT rating, rating_count FROM users WHERE id = :user_id FOR UPDATE"
)

_SET_USER_RATING_SQL = text("""
    UPDATE users
    SET rating = :rating, rating_count = :rating_count, updated_at = NOW()
    WHERE id = :user_id
""")


def _row_to_review(row: object) -> Review:
    return Review(
        id=str(row.id),  # type: ignore[attr-defined]
        transaction_id=str(row.transaction_id),  # type: ignore[attr-defined]
        reviewer_id=str(row.reviewer_id),  # type: ignore[attr-defined]
        reviewed_user_id=str(row.reviewed_user_id),  # type: ignore[attr-defined]
        rating=row.rating,  # type: ignore[attr-defined]
        comment=row.comment,  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
    )


class ReviewRepository:
    async def insert(self, db: AsyncSession, review: Review) -> Review:
        row = (
            await db.execute(
                _INSERT_REVIEW_SQL,
                {
                    "id": review.id,
                    "transaction_id": review.transaction_id,
                    "reviewer_id": review.reviewer_id,
                    "reviewed_user_id": review.reviewed_user_id,
                    "rating": review.rating,
                    "comment": review.comment,
                },
            )
        ).fetchone()
        if row is None:
            raise InternalError("Review insert returned no rows")
        return _row_to_review(row)

    async def get_by_reviewer(
        self, db: AsyncSession, transaction_id: str, reviewer_id: str
    ) -> Review | None:
        row = (
            await db.execute(
                _GET_BY_REVIEWER_SQL,
                {"transaction_id": transaction_id, "reviewer_id": reviewer_id},
            )
        ).fetchone()
        return _row_to_review(row) if row else None

    async def list_by_transaction(
        self, db: AsyncSession, transaction_id: str
    ) -> list[Review]:
        rows = (
            await db.execute(_LIST_BY_TXN_SQL, {"transaction_id": transaction_id})
        ).fetchall()
        return [_row_to_review(r) for r in rows]

    async def list_for_user(
        self,
        db: AsyncSession,
        user_id: str,
        cursor_ts: str | None,
        cursor_id: str | None,
        limit: int,
    ) -> list[Review]:
        # asyncpg requires a real datetime object for TIMESTAMPTZ parameters
        cursor_ts_dt: datetime | None = None
        if cursor_ts is not None:
            cursor_ts_dt = datetime.fromisoformat(cursor_ts)
        rows = (
            await db.execute(
                _LIST_FOR_USER_SQL,
                {
                    "user_id": user_id,
                    "cursor_ts": cursor_ts_dt,
                    "cursor_id": cursor_id,
                    "limit": limit,
                },
            )
        ).fetchall()
        return [_row_to_review(r) for r in rows]

    async def rating_distribution(self, db: AsyncSession, user_id: str) -> dict[int, int]:
        distribution = {r: 0 for r in range(MIN_RATING, MAX_RATING + 1)}
        rows = (await db.execute(_DISTRIBUTION_SQL, {"user_id": user_id})).fetchall()
        for row in rows:
            distribution[int(row.rating)] = int(row.n)
        return distribution

    async def get_user_rating_for_update(
        self, db: AsyncSession, user_id: str
    ) -> tuple[float, int] | None:
        row = (
            await db.execute(_GET_USER_RATING_FOR_UPDATE_SQL, {"user_id": user_id})
        ).fetchone()
        return (float(row.rating), int(row.rating_count)) if row else None

    async def get_user_rating(
        self, db: AsyncSession, user_id: str
    ) -> tuple[float, int] | None:
        row = (await db.execute(_GET_USER_RATING_SQL, {"user_id": user_id})).fetchone()
        return (float(row.rating), int(row.rating_count)) if row else None

    async def set_user_rating(
        self, db: AsyncSession, user_id: str, rating: float, count: int
    ) -> None:
        await db.execute(
            _SET_USER_RATING_SQL,
            {"user_id": user_id, "rating": rating, "rating_count": count},
        )
