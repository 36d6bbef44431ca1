"""Decimal helpers shared by the billing services."""

from decimal import ROUND_HALF_UP, Decimal

CENT = Decimal("0.01")
ZERO = Decimal("0")


def to_decimal(value) -> Decimal:
    """Coerce a DB/JSON numeric value (Decimal, int, float, str) to Decimal."""
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    # str() first so floats keep their short repr (0.1 -> "0.1")
    return Decimal(str(value))


def money(value) -> Decimal:
    """Round a monetary value to cents, half up."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def total_of(values) -> Decimal:
    """Sum monetary values as Decimal (empty sum is 0)."""
    return money(sum((to_decimal(v) for v in values), ZERO))


__all__ = ["CENT", "ZERO", "money", "to_decimal", "total_of"]
