"""Utility functions for the payoff engine.

This module provides helpers for rounding money to cents, for parsing user
input into Python numbers and for handling dates, including adding months and
normalizing year-month strings to ``datetime.date`` instances.
"""

from __future__ import annotations

import calendar
import math
from datetime import date
from decimal import ROUND_CEILING, ROUND_HALF_UP, Decimal, getcontext, localcontext

getcontext().prec = 28  # increase decimal precision to avoid rounding errors

CENT = Decimal("0.01")
MONEY_PRECISION = 400


def round_money(value: float) -> float:
    """Round a monetary amount to two decimals, halves away from zero.

    The value goes through its shortest ``repr`` so that binary noise such as
    ``2.675 -> 2.67499999...`` does not flip the rounding direction. Infinite
    and NaN values are returned unchanged.
    """
    if not math.isfinite(value):
        return value
    with localcontext() as ctx:
        # wide enough for any finite float quantized to cents
        ctx.prec = MONEY_PRECISION
        quantized = Decimal(repr(value)).quantize(CENT, rounding=ROUND_HALF_UP)
    result = float(quantized)
    # avoid handing back -0.0
    return result + 0.0


def ceil_money(value: float) -> float:
    """Round a monetary amount *up* to the next cent."""
    if not math.isfinite(value):
        return value
    with localcontext() as ctx:
        ctx.prec = MONEY_PRECISION
        cents = Decimal(repr(value)) * 100
        return float(cents.to_integral_value(rounding=ROUND_CEILING) / 100)


def parse_year_month(ym: str) -> date:
    """Parse a YYYY-MM string into a ``date`` object (first day of month).

    Parameters
    ----------
    ym: str
        A string in the form ``"YYYY-MM"``. The day component, if present,
        will be ignored.

    Returns
    -------
    date
        A date object representing the first day of the specified month.

    Raises
    ------
    ValueError
        If the string is not a valid year-month.
    """
    try:
        parts = ym.split("-")
        if len(parts) < 2:
            raise ValueError
        year = int(parts[0])
        month = int(parts[1])
        return date(year, month, 1)
    except Exception as exc:
        raise ValueError(f"Invalid year-month string: {ym}") from exc


def add_months(dt: date, months: int) -> date:
    """Return a new date a number of months after ``dt``.

    The day of the month is clamped to the last valid day if needed (e.g.,
    adding one month to Jan 31 yields Feb 28 or 29).
    """
    year = dt.year + (dt.month - 1 + months) // 12
    month = (dt.month - 1 + months) % 12 + 1
    day = min(dt.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def parse_amount(value: str) -> float:
    """Parse a money string with optional ``k``/``m`` suffixes.

    Accepts plain numbers ("2500"), thousands separators ("2,500") and
    shorthand ("2.5k" meaning 2_500). Raises ``ValueError`` on bad input.
    """
    cleaned = str(value).strip().lower().replace(",", "")
    factor = 1.0
    if cleaned.endswith("k"):
        factor = 1_000.0
        cleaned = cleaned[:-1]
    elif cleaned.endswith("m"):
        factor = 1_000_000.0
        cleaned = cleaned[:-1]
    try:
        return float(cleaned) * factor
    except ValueError as exc:
        raise ValueError(f"Invalid amount: {value}") from exc


def parse_rate(value: str) -> float:
    """Parse an APR given as a percentage or a fraction.

    ``"19.99"``, ``"19.99%"`` and ``"0.1999"`` all yield ``0.1999``. Numbers
    above 1 (or carrying a percent sign) are read as percentages.
    """
    text = str(value).strip()
    is_percent = text.endswith("%")
    if is_percent:
        text = text[:-1]
    try:
        rate = float(text)
    except ValueError as exc:
        raise ValueError(f"Invalid rate: {value}") from exc
    if is_percent or rate > 1:
        rate = rate / 100
    return rate


def parse_amount_list(value: str) -> list[float]:
    """Parse a comma or newline separated list of amounts.

    Empty entries count as ``0`` so that ``"200,,150"`` keeps its positions.
    """
    if not value or not value.strip():
        return []
    parts = [p.strip() for p in value.replace("\n", ",").split(",")]
    return [parse_amount(p) if p else 0.0 for p in parts]
