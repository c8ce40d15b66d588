"""Data models for the payoff engine.

This module defines dataclasses representing the entities used by the
simulator: future purchases, minimum payment rules, individual month records,
simulation results, target solutions, debts and the overall scenario
configuration. Using dataclasses makes it easy to construct, inspect and
serialize these structures.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class Outcome(str, Enum):
    """How a simulation ended."""

    PAID_OFF = "paid_off"
    HORIZON_EXCEEDED = "horizon_exceeded"
    NEVER = "never"


class SolveOutcome(str, Enum):
    SOLVED = "solved"
    UNSOLVABLE = "unsolvable"


STRATEGIES = ("fixed", "minimum", "variable", "target")


@dataclass(frozen=True)
class FuturePurchase:
    """An additional charge added to the balance in a given month.

    Attributes
    ----------
    month: int
        1-based index of the simulated month in which the purchase lands.
    amount: float
        The amount charged. It is added before interest accrues, so it is
        charged interest starting the same month.
    """

    month: int
    amount: float


@dataclass(frozen=True)
class MinimumPaymentRule:
    """How a card issuer computes the minimum payment.

    Attributes
    ----------
    type: str
        ``"flat"`` for a fixed amount or ``"percentage"`` for a share of the
        balance.
    value: Optional[float]
        The flat amount, or the percentage of the balance (``2`` means 2 %).
        When unset, 25 is used for flat rules and 2 for percentage rules.
    floor: Optional[float]
        Lowest payment a percentage rule may produce (default 25).
    """

    type: str = "percentage"
    value: Optional[float] = None
    floor: Optional[float] = None


@dataclass(frozen=True)
class MonthRecord:
    """One simulated month.

    ``balance_before`` is the balance after the month's purchase and interest
    but before the payment. ``principal`` is negative when the payment did not
    cover the interest.
    """

    month: int
    payment: float
    interest: float
    principal: float
    balance_before: float
    balance: float
    purchase: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "month": self.month,
            "payment": self.payment,
            "interest": self.interest,
            "principal": self.principal,
            "balance_before": self.balance_before,
            "balance": self.balance,
            "purchase": self.purchase,
        }


@dataclass(frozen=True)
class SimulationResult:
    """Result of a payoff simulation.

    ``months`` and ``total_interest`` are ``None`` when the outcome is
    :attr:`Outcome.NEVER`. For :attr:`Outcome.HORIZON_EXCEEDED` they describe
    the truncated schedule and ``months`` equals the month cap.
    """

    outcome: Outcome
    months: Optional[int]
    total_interest: Optional[float]
    breakdown: Tuple[MonthRecord, ...] = ()

    @classmethod
    def empty(cls) -> "SimulationResult":
        return cls(Outcome.PAID_OFF, 0, 0.0, ())

    @classmethod
    def never(cls) -> "SimulationResult":
        return cls(Outcome.NEVER, None, None, ())

    @property
    def paid_off(self) -> bool:
        return self.outcome is Outcome.PAID_OFF

    @property
    def is_never(self) -> bool:
        return self.outcome is Outcome.NEVER

    @property
    def total_paid(self) -> float:
        return sum(r.payment for r in self.breakdown)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "outcome": self.outcome.value,
            "months": self.months,
            "total_interest": self.total_interest,
            "breakdown": [r.to_dict() for r in self.breakdown],
        }


@dataclass(frozen=True)
class TargetSolution:
    """Result of searching for a payment that meets a target payoff time."""

    outcome: SolveOutcome
    extra_payment: Optional[float] = None
    monthly_payment: Optional[float] = None
    result: Optional[SimulationResult] = None
    iterations: int = 0

    @property
    def solved(self) -> bool:
        return self.outcome is SolveOutcome.SOLVED


@dataclass
class Debt:
    """A card or loan taking part in a portfolio simulation.

    For cards ``payment`` is the configured minimum payment; for loans it is
    the regular monthly installment.
    """

    name: str
    kind: str  # "card" or "loan"
    balance: float
    apr: float
    payment: float


@dataclass
class PayoffScenario:
    """Configuration of a single payoff simulation.

    This configuration collects all user inputs into a single object, making
    it easy to pass around and serialize. Only the fields relevant to the
    chosen ``strategy`` are consulted.
    """

    balance: float
    apr: float  # annual rate as a decimal fraction
    strategy: str  # 'fixed', 'minimum', 'variable' or 'target'
    payment: Optional[float] = None
    variable_payments: List[float] = field(default_factory=list)
    minimum_rule: Optional[MinimumPaymentRule] = None
    minimum_payment: Optional[float] = None
    target_months: Optional[int] = None
    future_purchases: List[FuturePurchase] = field(default_factory=list)
    max_months: Optional[int] = None
    start_date: Optional[date] = None
    currency: str = "USD"
