"""Platform fee split and currency conversion helpers.

All amounts are integers in minor currency units.  Rounding is half-up and is
applied once, to the final product -- never per line item.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from connectpay.errors import ValidationError


@dataclass(frozen=True)
class FeeSplit:
    total_amount: int
    platform_fee_amount: int
    seller_amount: int
    fee_percent: float


def _round_half_up(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def compute_fee_split(unit_amount: int, quantity: int, fee_percent: float) -> FeeSplit:
    """Split ``unit_amount * quantity`` between platform and seller.

    ``platform_fee_amount = round(total * fee_percent / 100)`` and the seller
    receives the remainder, so the two always add up to the total.
    """
    if unit_amount <= 0:
        raise ValidationError("Amount must be greater than zero")
    if quantity < 1:
        raise ValidationError("Quantity must be at least 1")
    if not 0 <= fee_percent <= 100:
        raise ValidationError("Platform fee percent must be between 0 and 100")

    total = unit_amount * quantity
    fee = _round_half_up(Decimal(total) * Decimal(str(fee_percent)) / Decimal(100))
    return FeeSplit(
        total_amount=total,
        platform_fee_amount=fee,
        seller_amount=total - fee,
        fee_percent=fee_percent,
    )


def to_minor_units(amount: object) -> int:
    """Convert a major-unit amount (e.g. ``99.9`` reais) to minor units."""
    try:
        value = Decimal(str(amount))
    except InvalidOperation:
        raise ValidationError("Price must be a valid number")
    if not value.is_finite() or value <= 0:
        raise ValidationError("Price must be a number greater than zero")
    cents = _round_half_up(value * Decimal(100))
    if cents <= 0:
        raise ValidationError("Price must be a number greater than zero")
    return cents


def percentage(part: int, whole: int) -> int:
    """Whole-number percentage, rounded half-up."""
    return _round_half_up(Decimal(part) * Decimal(100) / Decimal(whole))
