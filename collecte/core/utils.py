"""
Utility functions for money and period handling.
"""
from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Union

Number = Union[int, float, Decimal]


def round_half_up(value: Number) -> int:
    """Round to the nearest integer, halves away from zero (2.5 -> 3)."""
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return int(value.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def period_key(moment: Union[date, datetime]) -> str:
    """Truncate a timestamp to its "YYYY-MM" settlement period."""
    return moment.strftime("%Y-%m")
