"""Integer arithmetic utilities for rupiah amounts.

All prices, bids, fees and payouts are int (whole rupiah), never float.
Fractional intermediates (fee percentages, rating averages) go through
Decimal and are rounded half-up before they are stored.
"""

MIN_PRICE = 1_000
MAX_PRICE = 2_000_000_000


def validate_price(amount: int, field: str = "price") -> None:
    """Validate that an amount is within the marketplace price range."""
    if not (MIN_PRICE <= amount <= MAX_PRICE):
        raise ValueError(
            f"{field} must be between {MIN_PRICE} and {MAX_PRICE}, got {amount}"
        )


def format_idr(amount: int) -> str:
    """Format rupiah for display: 100000 -> 'Rp 100.000', -5000 -> '-Rp 5.000'."""
    sign = "-" if amount < 0 else ""
    grouped = f"{abs(amount):,}".replace(",", ".")
    return f"{sign}Rp {grouped}"
