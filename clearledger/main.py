"""Command-line interface for the payoff engine.

This module uses the ``click`` library to implement a multi-command
interface. Users can simulate fixed, minimum, variable and target payoff
strategies for a single debt, project a whole portfolio of debts, or compare
two scenarios. Results can be printed to the terminal or exported to
JSON/CSV files.
"""

from __future__ import annotations

import csv
import json
import logging
import shlex
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import click

from .data_models import Debt, FuturePurchase, MinimumPaymentRule, PayoffScenario, SimulationResult
from .engine import (
    covers_interest,
    portfolio_totals,
    run_scenario,
    simulate_portfolio,
    solve_portfolio_target,
    summarize,
    validate_scenario,
)
from .errors import ScenarioError
from .formatter import (
    format_currency,
    format_months_to_years,
    format_percent,
    print_comparison,
    print_schedule,
    print_summary,
)
from .utils import parse_amount, parse_amount_list, parse_rate, parse_year_month

MAX_ROWS = 120


def _amount(value: str) -> float:
    try:
        return parse_amount(value)
    except ValueError as exc:
        raise click.BadParameter(str(exc))


def _rate(value: str) -> float:
    try:
        return parse_rate(value)
    except ValueError as exc:
        raise click.BadParameter(str(exc))


def parse_purchase_strings(values: Tuple[str, ...]) -> List[FuturePurchase]:
    purchases: List[FuturePurchase] = []
    for item in values:
        parts = item.split(":")
        if len(parts) != 2:
            raise click.BadParameter(
                f"Purchase must be in MONTH:AMOUNT format; got {item}"
            )
        month_str, amount_str = parts
        try:
            month = int(month_str)
        except ValueError:
            raise click.BadParameter(f"Purchase month must be a whole number; got {month_str}")
        purchases.append(FuturePurchase(month=month, amount=_amount(amount_str)))
    return purchases


def parse_debt_strings(values: Tuple[str, ...]) -> List[Debt]:
    debts: List[Debt] = []
    for item in values:
        parts = item.split(":")
        if len(parts) != 5:
            raise click.BadParameter(
                f"Debt must be in NAME:KIND:BALANCE:APR:PAYMENT format; got {item}"
            )
        name, kind, balance_str, apr_str, payment_str = parts
        kind = kind.lower()
        if kind not in ("card", "loan"):
            raise click.BadParameter(f"Debt kind must be 'card' or 'loan'; got {kind}")
        debts.append(
            Debt(
                name=name,
                kind=kind,
                balance=_amount(balance_str),
                apr=_rate(apr_str),
                payment=_amount(payment_str),
            )
        )
    return debts


def build_scenario_from_options(
    balance: str,
    apr: str,
    strategy: str,
    payment: Optional[str] = None,
    payments: Optional[str] = None,
    min_type: Optional[str] = None,
    min_value: Optional[str] = None,
    min_floor: Optional[str] = None,
    min_payment: Optional[str] = None,
    target_months: Optional[int] = None,
    purchase: Tuple[str, ...] = (),
    max_months: Optional[int] = None,
    start_date: Optional[str] = None,
    currency: str = "USD",
) -> PayoffScenario:
    """Turn raw option strings into a validated :class:`PayoffScenario`.

    Raises ``click.BadParameter`` for anything that cannot be parsed or
    simulated.
    """
    start_dt = None
    if start_date:
        try:
            start_dt = parse_year_month(start_date)
        except ValueError as exc:
            raise click.BadParameter(str(exc))
    variable_payments: List[float] = []
    if payments:
        try:
            variable_payments = parse_amount_list(payments)
        except ValueError as exc:
            raise click.BadParameter(str(exc))
    if min_payment and (min_value or min_floor):
        raise click.BadParameter(
            "Use either a fixed minimum payment or a minimum payment rule, not both"
        )
    # A minimum rule is built when any of its parts is given
    rule = None
    if min_type or min_value or min_floor:
        rule_type = (min_type or "percentage").lower()
        if rule_type not in ("flat", "percentage"):
            raise click.BadParameter(
                f"Minimum payment type must be 'flat' or 'percentage'; got {rule_type}"
            )
        rule = MinimumPaymentRule(
            type=rule_type,
            value=_amount(min_value) if min_value else None,
            floor=_amount(min_floor) if min_floor else None,
        )
    scenario = PayoffScenario(
        balance=_amount(balance),
        apr=_rate(apr),
        strategy=strategy.lower(),
        payment=_amount(payment) if payment else None,
        variable_payments=variable_payments,
        minimum_rule=rule,
        minimum_payment=_amount(min_payment) if min_payment else None,
        target_months=target_months,
        future_purchases=parse_purchase_strings(purchase) if purchase else [],
        max_months=max_months,
        start_date=start_dt,
        currency=currency.upper(),
    )
    try:
        validate_scenario(scenario)
    except ScenarioError as exc:
        raise click.BadParameter(str(exc))
    return scenario


def export_to_json(path: Path, result: SimulationResult, summary: Dict[str, Any]) -> None:
    """Export result and summary to a JSON file."""
    data = {"summary": summary, "result": result.to_dict()}
    with path.open("w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)


def export_to_csv(path: Path, result: SimulationResult) -> None:
    """Export the month schedule to a CSV file."""
    header = [
        "Month",
        "Purchase",
        "Balance_Before",
        "Payment",
        "Principal",
        "Interest",
        "Balance",
    ]
    with path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(header)
        for record in result.breakdown:
            writer.writerow(
                [
                    record.month,
                    record.purchase,
                    record.balance_before,
                    record.payment,
                    record.principal,
                    record.interest,
                    record.balance,
                ]
            )


def _report(scenario: PayoffScenario, output: Optional[str], show_schedule: bool = True) -> None:
    result, summary = run_scenario(scenario)
    if scenario.strategy == "fixed" and not covers_interest(
        scenario.balance, scenario.apr, scenario.payment
    ):
        click.echo("Warning: payment does not cover the monthly interest; the balance will grow.")
    if output:
        path = Path(output)
        if path.suffix.lower() == ".json":
            export_to_json(path, result, summary)
        elif path.suffix.lower() == ".csv":
            export_to_csv(path, result)
        else:
            raise click.BadParameter("Unsupported output format; use .json or .csv")
        click.echo(f"Schedule exported to {path}")
        return
    print_summary(summary)
    if not show_schedule or not result.breakdown:
        return
    # Limit schedule length printed to avoid flooding the terminal
    if len(result.breakdown) > MAX_ROWS:
        click.echo(
            f"Schedule has {len(result.breakdown)} rows; showing first {MAX_ROWS} rows."
        )
        print_schedule(result.breakdown[:MAX_ROWS], scenario.start_date)
    else:
        print_schedule(result.breakdown, scenario.start_date)


def scenario_options(func):
    """Attach the options every single-debt command shares."""
    options = [
        click.option("--balance", "-b", "balance", required=True, help="Current balance"),
        click.option("--apr", "-a", "apr", required=True, help="Annual rate, e.g. 19.99 or 0.1999"),
        click.option("--purchase", "purchase", multiple=True, help="Future purchase in MONTH:AMOUNT format"),
        click.option("--max-months", "max_months", type=int, help="Simulation horizon in months"),
        click.option("--start-date", "-s", "start_date", help="First payment month (YYYY-MM)"),
        click.option("--currency", "currency", default="USD", show_default=True, help="Currency code for display"),
        click.option("--summary-only", "summary_only", is_flag=True, help="Print only the summary"),
        click.option("--output", "output", type=str, help="Output file path (.json or .csv)"),
    ]
    for option in reversed(options):
        func = option(func)
    return func


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Log simulation details")
def cli(verbose: bool) -> None:
    """Project debt payoff timelines for cards and loans."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


@cli.command()
@scenario_options
@click.option("--payment", "-p", "payment", required=True, help="Monthly payment")
@click.option("--min-payment", "min_payment", help="Minimum payment to compare against")
def fixed(
    balance: str,
    apr: str,
    purchase: Tuple[str, ...],
    max_months: Optional[int],
    start_date: Optional[str],
    currency: str,
    summary_only: bool,
    output: Optional[str],
    payment: str,
    min_payment: Optional[str],
) -> None:
    """Pay the same amount every month."""
    scenario = build_scenario_from_options(
        balance,
        apr,
        "fixed",
        payment=payment,
        min_payment=min_payment,
        purchase=purchase,
        max_months=max_months,
        start_date=start_date,
        currency=currency,
    )
    _report(scenario, output, not summary_only)


@cli.command()
@scenario_options
@click.option("--min-type", "min_type", type=click.Choice(["flat", "percentage"]), default="percentage", show_default=True)
@click.option("--min-value", "min_value", help="Flat amount, or percent of balance")
@click.option("--min-floor", "min_floor", help="Lowest payment for percentage rules")
@click.option("--min-payment", "min_payment", help="Fixed minimum amount instead of a rule")
def minimum(
    balance: str,
    apr: str,
    purchase: Tuple[str, ...],
    max_months: Optional[int],
    start_date: Optional[str],
    currency: str,
    summary_only: bool,
    output: Optional[str],
    min_type: str,
    min_value: Optional[str],
    min_floor: Optional[str],
    min_payment: Optional[str],
) -> None:
    """Pay only the minimum each month."""
    scenario = build_scenario_from_options(
        balance,
        apr,
        "minimum",
        min_type=None if min_payment else min_type,
        min_value=min_value,
        min_floor=min_floor,
        min_payment=min_payment,
        purchase=purchase,
        max_months=max_months,
        start_date=start_date,
        currency=currency,
    )
    _report(scenario, output, not summary_only)


@cli.command()
@scenario_options
@click.option("--payments", "payments", required=True, help="Comma separated monthly payments, e.g. 200,200,150")
@click.option("--min-payment", "min_payment", help="Minimum payment to compare against")
def variable(
    balance: str,
    apr: str,
    purchase: Tuple[str, ...],
    max_months: Optional[int],
    start_date: Optional[str],
    currency: str,
    summary_only: bool,
    output: Optional[str],
    payments: str,
    min_payment: Optional[str],
) -> None:
    """Pay a different amount each month.

    Months past the end of the list, and months listed as 0, repeat the last
    non-zero payment.
    """
    scenario = build_scenario_from_options(
        balance,
        apr,
        "variable",
        payments=payments,
        min_payment=min_payment,
        purchase=purchase,
        max_months=max_months,
        start_date=start_date,
        currency=currency,
    )
    _report(scenario, output, not summary_only)


@cli.command()
@scenario_options
@click.option("--target-months", "-t", "target_months", required=True, type=int, help="Months to payoff")
@click.option("--min-payment", "min_payment", help="Minimum payment the extra amount is added to")
def target(
    balance: str,
    apr: str,
    purchase: Tuple[str, ...],
    max_months: Optional[int],
    start_date: Optional[str],
    currency: str,
    summary_only: bool,
    output: Optional[str],
    target_months: int,
    min_payment: Optional[str],
) -> None:
    """Find the payment that pays the balance off in a target number of months."""
    scenario = build_scenario_from_options(
        balance,
        apr,
        "target",
        min_payment=min_payment,
        target_months=target_months,
        purchase=purchase,
        max_months=max_months,
        start_date=start_date,
        currency=currency,
    )
    _report(scenario, output, not summary_only)


@cli.command()
@click.option("--debt", "debt", multiple=True, required=True, help="Debt in NAME:KIND:BALANCE:APR:PAYMENT format")
@click.option("--extra", "extra", help="Extra amount paid on top of the minimums")
@click.option("--target-months", "-t", "target_months", type=int, help="Solve for the extra amount that meets this payoff time")
@click.option("--currency", "currency", default="USD", show_default=True)
def portfolio(debt: Tuple[str, ...], extra: Optional[str], target_months: Optional[int], currency: str) -> None:
    """Project all debts together at their balance-weighted rate."""
    debts = parse_debt_strings(debt)
    totals = portfolio_totals(debts)
    click.echo(f"Total debt         : {format_currency(totals['total_debt'], currency)}")
    click.echo(f"Weighted APR       : {format_percent(totals['weighted_apr'] * 100)}")
    click.echo(f"Monthly minimums   : {format_currency(totals['monthly_minimums'], currency)}")

    minimum_only = simulate_portfolio(debts)
    click.echo(f"Minimums only      : {format_months_to_years(minimum_only.months)}, "
               f"{format_currency(minimum_only.total_interest, currency)} interest")
    if extra:
        with_extra = simulate_portfolio(debts, _amount(extra))
        click.echo(f"With extra         : {format_months_to_years(with_extra.months)}, "
                   f"{format_currency(with_extra.total_interest, currency)} interest")
    if target_months:
        solution = solve_portfolio_target(debts, target_months)
        if solution.solved:
            click.echo(f"Extra for target   : {format_currency(round(solution.extra_payment, 2), currency)} "
                       f"({format_currency(round(solution.monthly_payment, 2), currency)} per month)")
        else:
            click.echo(f"Extra for target   : {target_months} months cannot be reached")


SCENARIO_FLAGS = {
    "-b": "balance",
    "--balance": "balance",
    "-a": "apr",
    "--apr": "apr",
    "--strategy": "strategy",
    "-p": "payment",
    "--payment": "payment",
    "--payments": "payments",
    "--min-type": "min_type",
    "--min-value": "min_value",
    "--min-floor": "min_floor",
    "--min-payment": "min_payment",
    "-t": "target_months",
    "--target-months": "target_months",
    "--purchase": "purchase",
    "--max-months": "max_months",
    "-s": "start_date",
    "--start-date": "start_date",
    "--currency": "currency",
}


def parse_scenario_opts(opts: str) -> Dict[str, Any]:
    """Convert a quoted option string into ``build_scenario_from_options`` keywords."""
    tokens = shlex.split(opts)
    params: Dict[str, Any] = {"strategy": "fixed", "purchase": []}
    i = 0
    while i < len(tokens):
        token = tokens[i]
        key = SCENARIO_FLAGS.get(token)
        if key is None:
            raise click.BadParameter(f"Unknown option in scenario: {token}")
        if i + 1 >= len(tokens):
            raise click.BadParameter(f"Option {token} needs a value")
        value = tokens[i + 1]
        if key == "purchase":
            params["purchase"].append(value)
        elif key in ("target_months", "max_months"):
            try:
                params[key] = int(value)
            except ValueError:
                raise click.BadParameter(f"Option {token} needs a whole number; got {value}")
        else:
            params[key] = value
        i += 2
    for required in ("balance", "apr"):
        if required not in params:
            raise click.BadParameter(f"Scenario missing required option {required}")
    params["purchase"] = tuple(params["purchase"])
    return params


@cli.command()
@click.option("--scenario1", "scenario1", required=True, help="First scenario options quoted string")
@click.option("--scenario2", "scenario2", required=True, help="Second scenario options quoted string")
def compare(scenario1: str, scenario2: str) -> None:
    """Compare two payoff scenarios.

    Scenarios are provided as quoted option strings, for example:

        clearledger compare --scenario1 "-b 5000 -a 19.99 -p 150" --scenario2 "-b 5000 -a 19.99 -p 300"
    """
    config1 = build_scenario_from_options(**parse_scenario_opts(scenario1))
    config2 = build_scenario_from_options(**parse_scenario_opts(scenario2))
    result1, _ = run_scenario(config1)
    result2, _ = run_scenario(config2)
    print_comparison(
        summarize(result1, config1.balance, config1.start_date),
        summarize(result2, config2.balance, config2.start_date),
    )


if __name__ == "__main__":
    cli()
