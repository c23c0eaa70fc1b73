"""Decimal utilities for billing calculations.

All monetary values in the reconciliation engine are ``decimal.Decimal``
quantized to cents. Using Decimal instead of float keeps the financial
summary exact, so ``grand_total`` always equals the sum of its buckets.

Example:
    Convert a float to decimal for billing use::

        from rental_coverage.decimal_utils import to_decimal, ZERO

        amount = to_decimal(190.0)
        if amount != ZERO:
            print(f"Amount: {amount}")
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Union

# Standard precision for billing (2 decimal places)
CURRENCY_PLACES = Decimal("0.01")

ZERO = Decimal("0.00")
ONE = Decimal("1.00")

Numeric = Union[Decimal, float, int, str]


def to_decimal(value: Union[Numeric, None]) -> Decimal:
    """Convert a numeric value to Decimal.

    Floats are converted via their string representation to avoid binary
    floating point artifacts.

    Args:
        value: Numeric value to convert. None is converted to zero.

    Returns:
        Decimal representation of the value.

    Example:
        >>> to_decimal(190.5)
        Decimal('190.5')
        >>> to_decimal(None)
        Decimal('0.00')
    """
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(round(value, 10)))
    return Decimal(value)


def quantize_currency(value: Numeric) -> Decimal:
    """Quantize a value to currency precision (2 decimal places).

    Rounds using ROUND_HALF_UP, the usual rule for invoices.

    Example:
        >>> quantize_currency(Decimal("589.995"))
        Decimal('590.00')
    """
    if not isinstance(value, Decimal):
        value = to_decimal(value)
    return value.quantize(CURRENCY_PLACES, rounding=ROUND_HALF_UP)


def sum_decimals(values: Iterable[Numeric]) -> Decimal:
    """Sum values with Decimal precision, quantized to cents."""
    return quantize_currency(sum((to_decimal(v) for v in values), ZERO))


def safe_divide(numerator: Numeric, denominator: Numeric, default: Numeric = ZERO) -> Decimal:
    """Divide two values, returning ``default`` if the denominator is zero.

    Example:
        >>> safe_divide(300, 30)
        Decimal('10')
        >>> safe_divide(300, 0)
        Decimal('0.00')
    """
    num = to_decimal(numerator)
    denom = to_decimal(denominator)

    if denom == ZERO:
        return to_decimal(default)

    return num / denom


def prorate(monthly_rate: Numeric, days: int, days_per_month: int = 30) -> Decimal:
    """Price ``days`` of rental from a monthly rate.

    The rental business bills a flat 30-day month, so a gap of ``n`` days
    costs ``(monthly_rate / 30) * n``.

    Example:
        >>> prorate(300, 59)
        Decimal('590.00')
    """
    if days < 0:
        raise ValueError(f"days must be non-negative, got {days}")
    return quantize_currency(safe_divide(monthly_rate, days_per_month) * days)
