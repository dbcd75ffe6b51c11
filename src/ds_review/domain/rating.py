"""Running-average arithmetic for user ratings."""

from decimal import ROUND_HALF_UP, Decimal


def running_average(average: float, count: int, rating: int) -> tuple[float, int]:
    """Fold one new rating into (average, count).

    new_average = round((average * count + rating) / (count + 1), 1), half-up
    """
    new_count = count + 1
    total = Decimal(str(average)) * count + rating
    new_average = (total / new_count).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP)
    return float(new_average), new_count
