"""Core calculation engine for ClearLedger.

This module implements the payoff simulation: it projects a card or loan
balance forward month by month under fixed, minimum, variable and
target-timeline payment strategies. Every month applies any scheduled
purchase, accrues interest at ``apr / 12`` and then applies the payment.
Results are returned as :class:`SimulationResult` objects whose outcome tells
whether the debt was paid off, ran past the month cap, or can never be paid
off.

The functions are pure: they hold no state and raise no errors for numeric
input, so callers may run several what-if simulations side by side.
"""

from __future__ import annotations

import logging
import math
from datetime import date
from decimal import ROUND_HALF_UP, Decimal, localcontext
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from .data_models import (
    STRATEGIES,
    Debt,
    FuturePurchase,
    MinimumPaymentRule,
    MonthRecord,
    Outcome,
    PayoffScenario,
    SimulationResult,
    SolveOutcome,
    TargetSolution,
)
from .errors import ScenarioError
from .utils import MONEY_PRECISION, add_months, ceil_money, round_money

logger = logging.getLogger(__name__)

DEFAULT_MAX_MONTHS = 360
VARIABLE_MAX_MONTHS = 600
MINIMUM_MAX_MONTHS = 600  # 50 years
TARGET_MAX_ITERATIONS = 50
BALANCE_EPSILON = 0.01
PAYOFF_MONTHS = 36

PaymentFn = Callable[[int, float], float]
PaymentEntry = Union[float, int, str, None, Mapping[str, Any]]


def calculate_utilization(balance: float, limit: Optional[float]) -> int:
    """Return the credit utilization as a whole percentage."""
    if not limit:
        return 0
    with localcontext() as ctx:
        ctx.prec = MONEY_PRECISION
        ratio = Decimal(repr(balance / limit * 100))
        return int(ratio.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def calculate_minimum_payment(balance: float, rule: Optional[MinimumPaymentRule] = None) -> float:
    """Return the minimum payment due on ``balance`` under ``rule``.

    Flat rules charge ``min(value, balance)``. Percentage rules charge the
    given percent of the balance, but never less than the floor and never
    more than the balance itself.
    """
    if balance <= 0:
        return 0.0
    rule = rule or MinimumPaymentRule()
    if rule.type == "flat":
        return min(rule.value or 25.0, balance)
    percentage_amount = balance * ((rule.value or 2.0) / 100)
    floor = rule.floor or 25.0
    return min(max(percentage_amount, floor), balance)


def calculate_monthly_interest(balance: float, apr: float) -> float:
    if balance <= 0 or not apr:
        return 0.0
    return balance * (apr / 12)


def calculate_payoff_payment(balance: float, apr: float, months: int = PAYOFF_MONTHS) -> float:
    """Return the level payment that clears ``balance`` in ``months`` months.

    The formula is:

        payment = P * (i * (1 + i)^n) / ((1 + i)^n - 1)

    where ``P`` is the balance, ``i`` is the monthly rate and ``n`` the number
    of payments. The result is rounded up to the cent so that paying it
    never leaves a residual past the last month.
    """
    if balance <= 0 or months <= 0:
        return 0.0
    if not apr:
        return ceil_money(balance / months)
    rate = apr / 12
    factor = (1 + rate) ** months
    return ceil_money(balance * (rate * factor) / (factor - 1))


def covers_interest(balance: float, apr: float, payment: float) -> bool:
    """Return True if ``payment`` exceeds the interest of the first month.

    A payment at or below the interest leaves the balance flat or growing.
    The simulation still runs such payments; callers use this to warn.
    """
    return payment > calculate_monthly_interest(balance, apr)


def _prepare_purchases(purchases: Iterable[FuturePurchase]) -> Dict[int, float]:
    """Group purchases by month for quick lookup."""
    mapping: Dict[int, float] = {}
    for purchase in purchases:
        mapping[purchase.month] = mapping.get(purchase.month, 0.0) + purchase.amount
    return mapping


def _amortize(
    balance: float,
    apr: float,
    payment_for: PaymentFn,
    max_months: int,
    future_purchases: Iterable[FuturePurchase],
) -> SimulationResult:
    """Run the month-by-month loop shared by every payment strategy.

    ``payment_for(index, owed)`` returns the payment requested for the
    0-based month ``index`` given the amount ``owed`` after that month's
    purchase and interest. A non-positive request stops the loop before the
    month is committed.
    """
    monthly_rate = apr / 12
    purchase_map = _prepare_purchases(future_purchases)
    total_interest = 0.0
    months = 0
    breakdown: List[MonthRecord] = []
    stopped = False
    overflowed = False

    while balance > 0 and months < max_months:
        purchase = purchase_map.get(months + 1, 0.0)
        interest = (balance + purchase) * monthly_rate
        requested = payment_for(months, balance + purchase + interest)
        if requested <= 0:
            stopped = True
            break

        balance += purchase + interest
        total_interest += interest
        balance_before = balance

        actual_payment = min(requested, balance)
        principal = actual_payment - interest
        balance -= actual_payment
        months += 1

        # Treat sub-cent residue as paid to avoid phantom extra months
        if balance < BALANCE_EPSILON:
            balance = 0.0

        breakdown.append(
            MonthRecord(
                month=months,
                payment=round_money(actual_payment),
                interest=round_money(interest),
                principal=round_money(principal),
                balance_before=round_money(balance_before),
                balance=round_money(balance),
                purchase=round_money(purchase),
            )
        )
        if not math.isfinite(balance):
            overflowed = True
            break

    if stopped:
        logger.debug("Payments stopped after %d months with %.2f owed", months, balance)
        return SimulationResult(Outcome.NEVER, None, None, tuple(breakdown))
    if overflowed or balance > 0:
        logger.debug("Balance %.2f still owed after %d-month horizon", balance, max_months)
        outcome = Outcome.HORIZON_EXCEEDED
    else:
        outcome = Outcome.PAID_OFF
    return SimulationResult(outcome, months, round_money(total_interest), tuple(breakdown))


def simulate_fixed_payment(
    balance: float,
    apr: float,
    monthly_payment: float,
    max_months: int = DEFAULT_MAX_MONTHS,
    future_purchases: Iterable[FuturePurchase] = (),
) -> SimulationResult:
    """Project ``balance`` paid down by the same amount every month.

    Parameters
    ----------
    balance: float
        Starting balance. Nothing is simulated when it is zero or negative.
    apr: float
        Annual rate as a decimal fraction (``0.24`` for 24 %).
    monthly_payment: float
        Payment requested each month. The final payment is capped at the
        amount owed. A non-positive payment can never clear the debt and
        yields :attr:`Outcome.NEVER`.
    max_months: int
        Month cap. Reaching it with a balance left yields
        :attr:`Outcome.HORIZON_EXCEEDED`.
    future_purchases: Iterable[FuturePurchase]
        Charges added before interest in the month they land.
    """
    if balance <= 0:
        return SimulationResult.empty()
    if monthly_payment <= 0:
        logger.debug("Payment %.2f can never pay off %.2f", monthly_payment, balance)
        return SimulationResult.never()
    return _amortize(
        balance,
        apr,
        lambda index, owed: monthly_payment,
        max_months,
        future_purchases,
    )


def _payment_amount(entry: PaymentEntry) -> float:
    """Return the amount of a schedule entry, accepting ``{"amount": ...}``."""
    if isinstance(entry, Mapping):
        entry = entry.get("amount")
    return float(entry) if entry else 0.0


def default_payment(amounts: Sequence[float]) -> float:
    """Return the last non-zero amount of a payment schedule, or 0."""
    for amount in reversed(amounts):
        if amount:
            return amount
    return 0.0


def simulate_variable_payment(
    balance: float,
    apr: float,
    variable_payments: Sequence[PaymentEntry],
    max_months: int = VARIABLE_MAX_MONTHS,
    future_purchases: Iterable[FuturePurchase] = (),
) -> SimulationResult:
    """Project ``balance`` under a month-by-month payment schedule.

    Month ``i`` pays the ``i``-th schedule entry when it is positive and the
    schedule's last non-zero entry otherwise, including every month past the
    end of the schedule. If no positive payment can be resolved the
    simulation stops and the outcome is :attr:`Outcome.NEVER`.
    """
    if balance <= 0:
        return SimulationResult.empty()
    amounts = [_payment_amount(entry) for entry in variable_payments]
    fallback = default_payment(amounts)

    def payment_for(index: int, owed: float) -> float:
        if index < len(amounts) and amounts[index] > 0:
            return amounts[index]
        return fallback

    return _amortize(balance, apr, payment_for, max_months, future_purchases)


def simulate_minimum_payment(
    balance: float,
    apr: float,
    min_payment: Union[float, MinimumPaymentRule],
    future_purchases: Iterable[FuturePurchase] = (),
) -> SimulationResult:
    """Project ``balance`` when only the minimum payment is made.

    ``min_payment`` is either a fixed amount or a :class:`MinimumPaymentRule`
    evaluated against each month's balance after interest. The horizon is
    fixed at 600 months.
    """
    if balance <= 0:
        return SimulationResult.empty()
    if isinstance(min_payment, MinimumPaymentRule):
        rule = min_payment

        def payment_for(index: int, owed: float) -> float:
            return calculate_minimum_payment(owed, rule)

    else:
        if min_payment <= 0:
            logger.debug("Minimum payment %.2f can never pay off %.2f", min_payment, balance)
            return SimulationResult.never()

        def payment_for(index: int, owed: float) -> float:
            return min(min_payment, owed)

    return _amortize(balance, apr, payment_for, MINIMUM_MAX_MONTHS, future_purchases)


def solve_for_target_payment(
    balance: float,
    apr: float,
    target_months: int,
    minimum_payment: float = 0.0,
    simulate_fn: Optional[Callable[[float], SimulationResult]] = None,
    max_iterations: int = TARGET_MAX_ITERATIONS,
) -> TargetSolution:
    """Search for the extra payment that pays ``balance`` off in ``target_months``.

    Bisects the extra amount over ``[0, balance / 12]``. Each candidate is
    simulated with ``minimum_payment + extra`` (through ``simulate_fn(extra)``
    when given) and the first candidate landing within one month of the
    target is accepted. Candidates that do not pay off, or take longer than
    the target, move the lower bound up; the rest move the upper bound down.

    Returns an :attr:`SolveOutcome.UNSOLVABLE` solution for a non-positive
    target, an empty balance, or when no candidate qualifies within
    ``max_iterations``.
    """
    if not target_months or target_months <= 0 or balance <= 0:
        return TargetSolution(SolveOutcome.UNSOLVABLE)

    if simulate_fn is None:

        def simulate_fn(extra: float) -> SimulationResult:
            return simulate_fixed_payment(balance, apr, minimum_payment + extra, MINIMUM_MAX_MONTHS)

    low = 0.0
    high = balance / 12
    for iteration in range(1, max_iterations + 1):
        mid = (low + high) / 2
        result = simulate_fn(mid)
        if result.paid_off and abs(result.months - target_months) <= 1:
            return TargetSolution(
                SolveOutcome.SOLVED,
                extra_payment=mid,
                monthly_payment=minimum_payment + mid,
                result=result,
                iterations=iteration,
            )
        if not result.paid_off or result.months > target_months:
            low = mid
        else:
            high = mid

    logger.debug(
        "No payment pays off %.2f in %d months within %d iterations",
        balance,
        target_months,
        max_iterations,
    )
    return TargetSolution(SolveOutcome.UNSOLVABLE, iterations=max_iterations)


def portfolio_totals(debts: Iterable[Debt]) -> Dict[str, float]:
    """Aggregate debts into a single balance, rate and monthly payment.

    The rate is the balance-weighted APR. Cards contribute their minimum
    payment capped at the balance; loans contribute their regular payment.
    """
    debts = list(debts)
    total_debt = sum(d.balance for d in debts)
    if total_debt > 0:
        weighted_apr = sum(d.balance * d.apr for d in debts) / total_debt
    else:
        weighted_apr = 0.0
    monthly_minimums = 0.0
    for d in debts:
        if d.kind == "card":
            monthly_minimums += min(d.payment or 0.0, d.balance)
        else:
            monthly_minimums += d.payment or 0.0
    return {
        "total_debt": total_debt,
        "weighted_apr": weighted_apr,
        "monthly_minimums": monthly_minimums,
    }


def simulate_portfolio(
    debts: Iterable[Debt],
    extra_payment: float = 0.0,
    max_months: int = MINIMUM_MAX_MONTHS,
) -> SimulationResult:
    """Project all debts together, paying the minimums plus ``extra_payment``."""
    totals = portfolio_totals(debts)
    return simulate_fixed_payment(
        totals["total_debt"],
        totals["weighted_apr"],
        totals["monthly_minimums"] + extra_payment,
        max_months,
    )


def solve_portfolio_target(debts: Iterable[Debt], target_months: int) -> TargetSolution:
    """Find the extra monthly payment that clears all debts in ``target_months``."""
    debts = list(debts)
    totals = portfolio_totals(debts)
    return solve_for_target_payment(
        totals["total_debt"],
        totals["weighted_apr"],
        target_months,
        minimum_payment=totals["monthly_minimums"],
        simulate_fn=lambda extra: simulate_portfolio(debts, extra),
    )


def summarize(
    result: SimulationResult,
    starting_balance: float,
    start_date: Optional[date] = None,
) -> Dict[str, object]:
    """Return aggregate metrics for a simulation result.

    ``payoff_date`` is the ``YYYY-MM`` label of the final payment when a
    start date is known and the debt is paid off.
    """
    payoff_date = None
    if start_date is not None and result.paid_off and result.months:
        payoff_date = add_months(start_date, result.months - 1).strftime("%Y-%m")
    if result.breakdown:
        ending_balance = result.breakdown[-1].balance
    else:
        ending_balance = 0.0 if result.paid_off else round_money(starting_balance)
    return {
        "outcome": result.outcome.value,
        "starting_balance": round_money(starting_balance),
        "months": result.months,
        "total_interest": result.total_interest,
        "total_paid": None if result.is_never else round_money(result.total_paid),
        "ending_balance": ending_balance,
        "payoff_date": payoff_date,
    }


def compare_results(baseline: SimulationResult, candidate: SimulationResult) -> Dict[str, object]:
    """Return how much interest and time ``candidate`` saves over ``baseline``.

    Savings are ``None`` when either side never pays off.
    """
    interest_saved = None
    months_saved = None
    if baseline.months is not None and candidate.months is not None:
        interest_saved = round_money(baseline.total_interest - candidate.total_interest)
        months_saved = baseline.months - candidate.months
    return {
        "baseline_outcome": baseline.outcome.value,
        "baseline_months": baseline.months,
        "baseline_total_interest": baseline.total_interest,
        "interest_saved": interest_saved,
        "months_saved": months_saved,
    }


def validate_scenario(scenario: PayoffScenario) -> None:
    """Raise :class:`ScenarioError` if ``scenario`` cannot be simulated."""
    if scenario.balance < 0:
        raise ScenarioError("Balance must not be negative")
    if scenario.apr < 0:
        raise ScenarioError("APR must not be negative")
    if scenario.strategy not in STRATEGIES:
        raise ScenarioError(
            f"Strategy must be one of {', '.join(STRATEGIES)}; got {scenario.strategy}"
        )
    if scenario.max_months is not None and scenario.max_months <= 0:
        raise ScenarioError("Month cap must be positive")
    if scenario.strategy == "fixed" and scenario.payment is None:
        raise ScenarioError("A fixed strategy needs a monthly payment")
    if scenario.strategy == "variable" and not scenario.variable_payments:
        raise ScenarioError("A variable strategy needs at least one scheduled payment")
    if scenario.strategy == "minimum" and (
        scenario.minimum_rule is None and scenario.minimum_payment is None
    ):
        raise ScenarioError("A minimum strategy needs a minimum payment or rule")
    if scenario.strategy == "target" and not scenario.target_months:
        raise ScenarioError("A target strategy needs a target number of months")
    for purchase in scenario.future_purchases:
        if purchase.month < 1:
            raise ScenarioError(f"Purchase month must be 1 or later; got {purchase.month}")


def _baseline_minimum(scenario: PayoffScenario) -> Optional[SimulationResult]:
    """Simulate minimum-only payments when the scenario defines a minimum."""
    if scenario.minimum_rule is not None:
        minimum: Union[float, MinimumPaymentRule] = scenario.minimum_rule
    elif scenario.minimum_payment is not None:
        minimum = scenario.minimum_payment
    else:
        return None
    return simulate_minimum_payment(
        scenario.balance, scenario.apr, minimum, scenario.future_purchases
    )


def run_scenario(scenario: PayoffScenario) -> Tuple[SimulationResult, Dict[str, object]]:
    """Simulate ``scenario`` and return its result and summary.

    Parameters
    ----------
    scenario: PayoffScenario
        The scenario to run. It is validated first.

    Returns
    -------
    result: SimulationResult
        The simulation for the chosen strategy. For ``target`` scenarios it
        is the simulation at the solved payment, or the minimum-only
        simulation when the target cannot be met.
    summary: Dict[str, object]
        Aggregate metrics from :func:`summarize`, plus ``comparison`` against
        minimum-only payments when a minimum is configured and ``target``
        for target scenarios.
    """
    validate_scenario(scenario)
    balance = scenario.balance
    apr = scenario.apr
    purchases = scenario.future_purchases
    baseline = _baseline_minimum(scenario)
    target = None

    if scenario.strategy == "fixed":
        result = simulate_fixed_payment(
            balance,
            apr,
            scenario.payment,
            scenario.max_months or DEFAULT_MAX_MONTHS,
            purchases,
        )
    elif scenario.strategy == "variable":
        result = simulate_variable_payment(
            balance,
            apr,
            scenario.variable_payments,
            scenario.max_months or VARIABLE_MAX_MONTHS,
            purchases,
        )
    elif scenario.strategy == "minimum":
        result = baseline
        baseline = None
    else:
        if scenario.minimum_payment is not None:
            minimum = scenario.minimum_payment
        elif scenario.minimum_rule is not None:
            minimum = calculate_minimum_payment(balance, scenario.minimum_rule)
        else:
            minimum = 0.0
        horizon = scenario.max_months or MINIMUM_MAX_MONTHS
        target = solve_for_target_payment(
            balance,
            apr,
            scenario.target_months,
            minimum_payment=minimum,
            simulate_fn=lambda extra: simulate_fixed_payment(
                balance, apr, minimum + extra, horizon, purchases
            ),
        )
        if target.solved:
            result = target.result
        else:
            result = simulate_fixed_payment(balance, apr, minimum, horizon, purchases)

    summary = summarize(result, balance, scenario.start_date)
    summary["strategy"] = scenario.strategy
    summary["currency"] = scenario.currency
    if baseline is not None:
        summary["comparison"] = compare_results(baseline, result)
    if target is not None:
        summary["target"] = {
            "outcome": target.outcome.value,
            "target_months": scenario.target_months,
            "extra_payment": None if target.extra_payment is None else round_money(target.extra_payment),
            "monthly_payment": None if target.monthly_payment is None else round_money(target.monthly_payment),
        }
    return result, summary
