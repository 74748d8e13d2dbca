"""Decimal helpers for monetary amounts."""

from datetime import date
from decimal import ROUND_HALF_UP, Decimal

CENT = Decimal("0.01")

# Tolerance used for every "is this settled / within bounds" comparison
EPSILON = Decimal("0.01")

ZERO = Decimal("0.00")


def to_money(value) -> Decimal:
    """Convert int/float/str/Decimal to a Decimal rounded to cents."""
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def month_key(value: date) -> str:
    """Return the 'YYYY-MM' key of a calendar date."""
    return value.strftime("%Y-%m")


def day_key(value: date) -> str:
    """Return the 'YYYY-MM-DD' key of a calendar date."""
    return value.strftime("%Y-%m-%d")


def parse_day_key(value: str) -> date:
    """Parse a 'YYYY-MM-DD' local calendar key without any timezone shift."""
    year, month, day = (int(part) for part in value.split("-"))
    return date(year, month, day)
