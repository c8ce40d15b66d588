"""Output helpers for the payoff engine.

This module provides simple functions to render simulation summaries, month
schedules and scenario comparisons in a tabular text format, along with the
currency and duration formatting shared by the CLI and the web front end.
"""

from __future__ import annotations

import math
from datetime import date
from typing import Dict, Iterable, Optional

import click

from .data_models import MonthRecord
from .utils import add_months

CURRENCY_SYMBOLS = {
    "USD": "$",
    "CAD": "CA$",
    "EUR": "€",
    "GBP": "£",
    "JPY": "¥",
    "PLN": "zł",
}

NEVER = "Never"


def format_currency(amount: Optional[float], currency: str = "USD") -> str:
    """Format ``amount`` with its currency symbol and up to two decimals.

    Whole amounts drop their decimals (``$1,200``); others keep two
    (``$1,104.50``). ``None`` renders as "Never".
    """
    if amount is None:
        return NEVER
    symbol = CURRENCY_SYMBOLS.get(currency.upper(), f"{currency.upper()} ")
    sign = "-" if amount < 0 else ""
    value = abs(amount)
    if not math.isfinite(value):
        text = f"{value}"
    elif round(value, 2) == int(round(value, 2)):
        text = f"{int(round(value, 2)):,}"
    else:
        text = f"{value:,.2f}"
    return f"{sign}{symbol}{text}"


def format_percent(value: Optional[float]) -> str:
    return f"{(value or 0):.1f}%"


def format_months_to_years(months: Optional[int]) -> str:
    """Render a month count as years and months, e.g. ``2 yrs 3 mos``."""
    if months is None:
        return NEVER
    years, remaining = divmod(int(months), 12)
    if years == 0:
        return f"{remaining} mo" if remaining == 1 else f"{remaining} mos"
    year_text = "1 yr" if years == 1 else f"{years} yrs"
    if remaining == 0:
        return year_text
    month_text = "1 mo" if remaining == 1 else f"{remaining} mos"
    return f"{year_text} {month_text}"


def _money(value: Optional[float]) -> str:
    return NEVER if value is None else f"{value:.2f}"


def _count(value: Optional[int]) -> str:
    return NEVER if value is None else str(int(value))


def print_summary(summary: Dict[str, object]) -> None:
    """Print a summary of payoff metrics in a human-readable format."""
    currency = str(summary.get("currency") or "USD")
    click.echo("Summary")
    click.echo("-" * 72)
    if summary.get("strategy"):
        click.echo(f"Strategy           : {summary['strategy']}")
    click.echo(f"Starting balance   : {format_currency(summary['starting_balance'], currency)}")
    click.echo(f"Time to payoff     : {format_months_to_years(summary['months'])}")
    click.echo(f"Total interest     : {format_currency(summary['total_interest'], currency)}")
    click.echo(f"Total paid         : {format_currency(summary['total_paid'], currency)}")
    if summary.get("outcome") == "horizon_exceeded":
        click.echo(
            f"Not paid off within horizon; "
            f"{format_currency(summary['ending_balance'], currency)} still owed"
        )
    if summary.get("payoff_date"):
        click.echo(f"Payoff date        : {summary['payoff_date']}")
    target = summary.get("target")
    if target:
        if target["outcome"] == "solved":
            click.echo(f"Target             : {target['target_months']} months")
            click.echo(f"Extra payment      : {format_currency(target['extra_payment'], currency)}")
            click.echo(f"Monthly payment    : {format_currency(target['monthly_payment'], currency)}")
        else:
            click.echo(
                f"Target             : {target['target_months']} months cannot be reached; "
                "increase the horizon or lengthen the target"
            )
    comparison = summary.get("comparison")
    if comparison:
        click.echo(f"Minimum-only time  : {format_months_to_years(comparison['baseline_months'])}")
        click.echo(f"Minimum interest   : {format_currency(comparison['baseline_total_interest'], currency)}")
        if comparison.get("interest_saved") is not None:
            click.echo(f"Interest saved     : {format_currency(comparison['interest_saved'], currency)}")
        if comparison.get("months_saved"):
            click.echo(f"Time saved         : {format_months_to_years(comparison['months_saved'])}")
    click.echo("-" * 72)


def print_schedule(schedule: Iterable[MonthRecord], start_date: Optional[date] = None) -> None:
    """Print the month schedule as a simple table.

    Parameters
    ----------
    schedule: Iterable[MonthRecord]
        The month records to print.
    start_date: Optional[date]
        Month of the first payment. When given, a ``Date`` column labels each
        row with its calendar month.
    """
    headers = ["Month"]
    if start_date is not None:
        headers.append("Date")
    headers += ["Purchase", "Owed", "Payment", "Principal", "Interest", "Balance"]
    click.echo("\t".join(headers))
    for record in schedule:
        row = [str(record.month)]
        if start_date is not None:
            row.append(add_months(start_date, record.month - 1).strftime("%Y-%m"))
        row += [
            f"{record.purchase:.2f}",
            f"{record.balance_before:.2f}",
            f"{record.payment:.2f}",
            f"{record.principal:.2f}",
            f"{record.interest:.2f}",
            f"{record.balance:.2f}",
        ]
        click.echo("\t".join(row))


def print_comparison(s1: Dict[str, object], s2: Dict[str, object]) -> None:
    """Print a comparison of two payoff summaries side by side.

    The difference column is ``scenario2 - scenario1``; a negative difference
    means the second scenario is cheaper or shorter. Metrics where either
    side never pays off show "Never" and no difference.
    """
    click.echo("Comparison")
    click.echo("=" * 72)
    keys = [
        "months",
        "total_interest",
        "total_paid",
    ]
    click.echo(f"{'Metric':20s} {'Scenario1':>15s} {'Scenario2':>15s} {'Difference':>15s}")
    for key in keys:
        v1 = s1.get(key)
        v2 = s2.get(key)
        diff = None if v1 is None or v2 is None else v2 - v1
        # month counts are whole numbers
        fmt = _count if key == "months" else _money
        click.echo(f"{key:20s} {fmt(v1):>15s} {fmt(v2):>15s} {fmt(diff):>15s}")
    click.echo("=" * 72)
