"""Integer money utilities.

All amounts are int rupiah (no fractional subunits). Percentages may be
fractional (e.g. 7.5), so they are converted to Decimal via str() before
multiplying; results are always rounded up.
"""

import math
from decimal import Decimal

Percentage = int | float | Decimal


def to_decimal(value: Percentage) -> Decimal:
    """Exact Decimal for an int/float/Decimal (floats go through repr)."""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def percent_of(amount: int, percentage: Percentage) -> Decimal:
    """amount * percentage / 100, unrounded."""
    return Decimal(amount) * to_decimal(percentage) / 100


def ceil_amount(value: Decimal | int) -> int:
    """Round a Decimal amount up to whole rupiah."""
    return math.ceil(value)


def ceil_percent(amount: int, percentage: Percentage) -> int:
    """ceil(amount * percentage / 100)."""
    return ceil_amount(percent_of(amount, percentage))


def rupiah_to_display(amount: int) -> str:
    """Format for humans: 120500 -> 'Rp120.500', -5000 -> '-Rp5.000'."""
    sign = "-" if amount < 0 else ""
    return f"{sign}Rp{abs(amount):,}".replace(",", ".")
