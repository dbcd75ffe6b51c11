"""Domain models for ds_review — pure dataclasses, no business logic."""

from dataclasses import dataclass, field
from datetime import datetime

MIN_RATING = 1
MAX_RATING = 5


@dataclass
class Review:
    id: str
    transaction_id: str
    reviewer_id: str
    reviewed_user_id: str        # the counter-party of the reviewer
    rating: int
    comment: str | None = None
    created_at: datetime | None = None


@dataclass
class RatingSummary:
    user_id: str
    average: float
    count: int
    distribution: dict[int, int] = field(
        default_factory=lambda: {r: 0 for r in range(MIN_RATING, MAX_RATING + 1)}
    )
