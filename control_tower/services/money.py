"""Decimal helpers for amounts. Amounts are never handled as floats."""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Union

from control_tower.exceptions import ValidationError

CENTS = Decimal("0.01")

Amount = Union[Decimal, int, str, float]


def to_amount(value: Amount, field_name: str) -> Decimal:
    """Parse a caller-supplied amount into a 2-place Decimal."""
    if isinstance(value, bool):
        raise ValidationError(f"{field_name} must be a number")
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        raise ValidationError(f"{field_name} must be a number")
    if not amount.is_finite():
        raise ValidationError(f"{field_name} must be a finite number")
    return amount.quantize(CENTS, rounding=ROUND_HALF_UP)


def require_positive(value: Amount, field_name: str) -> Decimal:
    amount = to_amount(value, field_name)
    if amount <= 0:
        raise ValidationError(f"{field_name} must be greater than 0")
    return amount


def require_non_negative(value: Amount, field_name: str) -> Decimal:
    amount = to_amount(value, field_name)
    if amount < 0:
        raise ValidationError(f"{field_name} cannot be negative")
    return amount


def round_whole(value: Decimal) -> int:
    """Round half away from zero to an integer (2.5 -> 3)."""
    return int(Decimal(value).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
