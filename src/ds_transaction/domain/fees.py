"""FeeCalculator — pure fee and deadline arithmetic.

All amounts are int rupiah. The fee is the rounded product and the payout is
the remainder, so fee + payout always equals the amount exactly.

The percentage is validated to [0, 1] by the config layer
(config.settings / ds_common.platform_config); it is not re-checked here.
"""

from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal

from src.ds_common.datetime_utils import hours_from


def compute_fees(amount: int, fee_percentage: float) -> tuple[int, int]:
    """Return (platform_fee, seller_payout).

    platform_fee = round(amount * fee_percentage), half-up
    seller_payout = amount - platform_fee
    """
    # Decimal(str(p)) keeps 0.05 as 0.05 instead of its binary approximation
    product = Decimal(amount) * Decimal(str(fee_percentage))
    platform_fee = int(product.quantize(Decimal(1), rounding=ROUND_HALF_UP))
    return platform_fee, amount - platform_fee


def verification_deadline(from_time: datetime, hours: int) -> datetime:
    return hours_from(from_time, hours)
