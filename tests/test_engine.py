"""Tests for the payoff simulation engine."""

import math
from datetime import date

import pytest

from clearledger.data_models import (
    Debt,
    FuturePurchase,
    MinimumPaymentRule,
    Outcome,
    PayoffScenario,
    SimulationResult,
    SolveOutcome,
)
from clearledger.engine import (
    calculate_minimum_payment,
    calculate_monthly_interest,
    calculate_payoff_payment,
    calculate_utilization,
    compare_results,
    covers_interest,
    default_payment,
    portfolio_totals,
    run_scenario,
    simulate_fixed_payment,
    simulate_minimum_payment,
    simulate_portfolio,
    simulate_variable_payment,
    solve_for_target_payment,
    solve_portfolio_target,
    summarize,
)
from clearledger.errors import ScenarioError


class TestFixedPayment:
    @pytest.mark.parametrize("balance", [0, 0.0, -250.0])
    def test_empty_balance_yields_nothing_to_simulate(self, balance):
        result = simulate_fixed_payment(balance, 0.2, 100)

        assert result.outcome is Outcome.PAID_OFF
        assert result.months == 0
        assert result.total_interest == 0
        assert result.breakdown == ()

    @pytest.mark.parametrize("payment", [0, -10.0])
    def test_non_positive_payment_never_pays_off(self, payment):
        result = simulate_fixed_payment(500, 0.20, payment)

        assert result.is_never
        assert result.months is None
        assert result.total_interest is None
        assert result.breakdown == ()

    def test_first_month_accrues_interest_before_payment(self):
        result = simulate_fixed_payment(1200.00, 0.24, 120.00)

        first = result.breakdown[0]
        assert first.month == 1
        assert first.interest == 24.00
        assert first.payment == 120.00
        assert first.principal == 96.00
        assert first.balance_before == 1224.00
        assert first.balance == 1104.00

    def test_final_payment_is_capped_at_balance(self):
        result = simulate_fixed_payment(1000, 0, 300)

        assert result.paid_off
        assert result.months == 4
        assert result.total_interest == 0
        assert [r.payment for r in result.breakdown] == [300, 300, 300, 100]
        assert result.breakdown[-1].balance == 0

    def test_month_indices_are_one_based_and_consecutive(self):
        result = simulate_fixed_payment(5000, 0.1999, 250)

        assert [r.month for r in result.breakdown] == list(range(1, result.months + 1))

    def test_negative_amortization_runs_to_horizon(self):
        result = simulate_fixed_payment(10_000, 0.24, 100)

        assert result.outcome is Outcome.HORIZON_EXCEEDED
        assert result.months == 360
        assert result.breakdown[0].principal == -100.00
        assert result.breakdown[-1].balance > 10_000

    def test_custom_horizon(self):
        result = simulate_fixed_payment(5000, 0.18, 100, max_months=12)

        assert result.outcome is Outcome.HORIZON_EXCEEDED
        assert result.months == 12
        assert len(result.breakdown) == 12

    def test_sub_cent_residue_snaps_to_zero(self):
        result = simulate_fixed_payment(100.005, 0, 100)

        assert result.paid_off
        assert result.months == 1
        assert result.breakdown[0].balance == 0

    def test_future_purchase_increases_balance_in_its_month(self):
        purchases = [FuturePurchase(month=2, amount=300)]
        result = simulate_fixed_payment(1000, 0, 500, future_purchases=purchases)

        assert result.months == 3
        second = result.breakdown[1]
        assert second.purchase == 300
        assert second.balance_before == 800
        assert second.balance == 300
        assert result.breakdown[0].purchase == 0

    def test_future_purchase_is_charged_interest_the_same_month(self):
        purchases = [FuturePurchase(month=1, amount=1000)]
        result = simulate_fixed_payment(1000, 0.12, 100, future_purchases=purchases)

        assert result.breakdown[0].interest == pytest.approx(20.00)

    def test_purchases_in_the_same_month_add_up(self):
        purchases = [FuturePurchase(month=1, amount=100), FuturePurchase(month=1, amount=50)]
        result = simulate_fixed_payment(1000, 0, 2000, future_purchases=purchases)

        assert result.breakdown[0].purchase == 150
        assert result.breakdown[0].payment == 1150

    def test_identical_inputs_give_identical_results(self):
        args = (7321.55, 0.2299, 212.40)

        assert simulate_fixed_payment(*args) == simulate_fixed_payment(*args)

    def test_payday_rate_below_interest_runs_to_horizon(self):
        result = simulate_fixed_payment(1000, 2.0, 10)

        assert result.outcome is Outcome.HORIZON_EXCEEDED
        assert result.months == 360
        assert result.breakdown[-1].balance > 1e26
        assert result.total_interest > 1e26

    def test_overflowing_balance_stops_at_horizon(self):
        result = simulate_fixed_payment(1000, 1000.0, 10)

        assert result.outcome is Outcome.HORIZON_EXCEEDED
        assert result.months < 360
        assert math.isinf(result.breakdown[-1].balance)


class TestVariablePayment:
    def test_zero_entries_fall_back_to_last_non_zero_payment(self):
        result = simulate_variable_payment(1000, 0, [200, 200, 0, 0])

        assert result.paid_off
        assert result.months == 5
        assert [r.payment for r in result.breakdown] == [200] * 5

    def test_months_past_schedule_repeat_last_payment(self):
        result = simulate_variable_payment(1000, 0, [100, 250])

        assert [r.payment for r in result.breakdown] == [100, 250, 250, 250, 150]

    def test_all_zero_schedule_never_pays_off(self):
        result = simulate_variable_payment(1000, 0.15, [0, 0, 0])

        assert result.is_never
        assert result.breakdown == ()

    def test_empty_schedule_never_pays_off(self):
        assert simulate_variable_payment(1000, 0.15, []).is_never

    def test_accepts_saved_schedule_entries(self):
        schedule = [{"month": 1, "amount": 300}, {"month": 2, "amount": ""}]
        result = simulate_variable_payment(900, 0, schedule)

        assert result.months == 3
        assert [r.payment for r in result.breakdown] == [300, 300, 300]

    def test_empty_balance(self):
        assert simulate_variable_payment(0, 0.2, [100]) == SimulationResult.empty()

    def test_default_horizon_is_fifty_years(self):
        result = simulate_variable_payment(10_000, 0.24, [50])

        assert result.outcome is Outcome.HORIZON_EXCEEDED
        assert result.months == 600

    def test_default_payment_scans_from_the_end(self):
        assert default_payment([100, 0, 75, 0]) == 75
        assert default_payment([0, 0]) == 0
        assert default_payment([]) == 0


class TestMinimumPayment:
    def test_flat_amount(self):
        result = simulate_minimum_payment(1000, 0, 100)

        assert result.paid_off
        assert result.months == 10

    def test_non_positive_minimum_never_pays_off(self):
        assert simulate_minimum_payment(1000, 0.2, 0).is_never

    def test_runaway_balance_stops_at_fifty_years(self):
        result = simulate_minimum_payment(100_000, 0.30, 100)

        assert result.outcome is Outcome.HORIZON_EXCEEDED
        assert result.months == 600

    def test_payday_rate_minimum_runs_to_horizon(self):
        result = simulate_minimum_payment(5000, 1.5, 25)

        assert result.outcome is Outcome.HORIZON_EXCEEDED
        assert result.months == 600

    def test_overflowing_rule_minimum_is_not_paid_off(self, percentage_rule):
        result = simulate_minimum_payment(1000, 1000.0, percentage_rule)

        assert result.outcome is Outcome.HORIZON_EXCEEDED
        assert not result.paid_off

    def test_rule_is_evaluated_each_month(self, percentage_rule):
        result = simulate_minimum_payment(5000, 0.18, percentage_rule)

        assert result.paid_off
        assert result.months < 600
        # 2 % of the balance after interest, falling to the floor later on
        assert result.breakdown[0].payment == pytest.approx(5075 * 0.02, abs=0.01)
        assert result.breakdown[-2].payment == 25.00

    @pytest.mark.parametrize(
        "balance, rule, expected",
        [
            (1000, MinimumPaymentRule(type="flat", value=40), 40),
            (30, MinimumPaymentRule(type="flat", value=40), 30),
            (1000, MinimumPaymentRule(type="flat"), 25),
            (5000, MinimumPaymentRule(type="percentage", value=2, floor=25), 100),
            (500, MinimumPaymentRule(type="percentage", value=2, floor=25), 25),
            (10, MinimumPaymentRule(type="percentage", value=2, floor=25), 10),
            (5000, MinimumPaymentRule(type="percentage", value=3, floor=35), 150),
            (0, MinimumPaymentRule(type="flat", value=40), 0),
            (5000, None, 100),
        ],
    )
    def test_calculate_minimum_payment(self, balance, rule, expected):
        assert calculate_minimum_payment(balance, rule) == pytest.approx(expected)


class TestTargetPayment:
    def test_minimum_alone_already_meets_target(self):
        solution = solve_for_target_payment(3600, 0, 36, minimum_payment=100)

        assert solution.solved
        assert 0 <= solution.extra_payment < 10
        check = simulate_fixed_payment(3600, 0, solution.monthly_payment, 600)
        assert abs(check.months - 36) <= 1

    def test_solution_reproduces_target_with_interest(self):
        solution = solve_for_target_payment(8000, 0.2199, 24, minimum_payment=160)

        assert solution.solved
        assert solution.monthly_payment == pytest.approx(160 + solution.extra_payment)
        check = simulate_fixed_payment(8000, 0.2199, solution.monthly_payment, 600)
        assert abs(check.months - 24) <= 1
        assert solution.result == check

    @pytest.mark.parametrize("target", [0, -5, None])
    def test_non_positive_target_is_unsolvable(self, target):
        solution = solve_for_target_payment(1000, 0.1, target)

        assert solution.outcome is SolveOutcome.UNSOLVABLE
        assert solution.extra_payment is None

    def test_target_shorter_than_search_range_is_unsolvable(self):
        # The search never looks above balance / 12, which needs twelve months
        solution = solve_for_target_payment(1200, 0, 1)

        assert not solution.solved
        assert solution.iterations == 50

    def test_uses_supplied_simulation(self):
        calls = []

        def simulate(extra):
            calls.append(extra)
            return simulate_fixed_payment(2400, 0, 50 + extra, 600)

        solution = solve_for_target_payment(2400, 0, 24, minimum_payment=50, simulate_fn=simulate)

        assert solution.solved
        assert calls[0] == pytest.approx(100)
        assert len(calls) == solution.iterations


class TestHelpers:
    def test_monthly_interest(self):
        assert calculate_monthly_interest(1200, 0.24) == pytest.approx(24)
        assert calculate_monthly_interest(0, 0.24) == 0
        assert calculate_monthly_interest(1200, 0) == 0

    @pytest.mark.parametrize(
        "balance, apr, months, expected",
        [
            (3600, 0, 36, 100.00),
            (1000, 0, 3, 333.34),
            (1000, 0.12, 12, 88.85),
            (0, 0.2, 36, 0),
        ],
    )
    def test_payoff_payment(self, balance, apr, months, expected):
        assert calculate_payoff_payment(balance, apr, months) == expected

    def test_payoff_payment_clears_balance_in_time(self):
        payment = calculate_payoff_payment(4500, 0.1999)
        result = simulate_fixed_payment(4500, 0.1999, payment)

        assert result.months == 36

    @pytest.mark.parametrize(
        "balance, limit, expected",
        [(250, 1000, 25), (1, 3, 33), (5, 1000, 1), (500, None, 0), (500, 0, 0)],
    )
    def test_utilization(self, balance, limit, expected):
        assert calculate_utilization(balance, limit) == expected

    def test_covers_interest(self):
        assert not covers_interest(1200, 0.24, 24)
        assert covers_interest(1200, 0.24, 24.01)


class TestPortfolio:
    def test_totals_weight_rate_by_balance(self, debts):
        totals = portfolio_totals(debts)

        assert totals["total_debt"] == pytest.approx(10_020)
        assert totals["weighted_apr"] == pytest.approx((200 + 2 + 450) / 10_020)
        # the store card's minimum is capped at its 20.00 balance
        assert totals["monthly_minimums"] == pytest.approx(370)

    def test_empty_portfolio(self):
        totals = portfolio_totals([])

        assert totals == {"total_debt": 0, "weighted_apr": 0.0, "monthly_minimums": 0.0}
        assert simulate_portfolio([]) == SimulationResult.empty()

    def test_extra_payment_shortens_payoff(self, debts):
        minimum_only = simulate_portfolio(debts)
        with_extra = simulate_portfolio(debts, 200)

        assert with_extra.months < minimum_only.months
        assert with_extra.total_interest < minimum_only.total_interest

    def test_solve_target(self):
        debts = [Debt(name="Card", kind="card", balance=1200, apr=0, payment=50)]
        solution = solve_portfolio_target(debts, 12)

        assert solution.solved
        assert solution.extra_payment == pytest.approx(50)
        assert solution.result.months == 12


class TestSummaries:
    def test_summarize_paid_off(self):
        result = simulate_fixed_payment(1000, 0, 300)
        summary = summarize(result, 1000, date(2026, 11, 1))

        assert summary["outcome"] == "paid_off"
        assert summary["months"] == 4
        assert summary["total_paid"] == 1000
        assert summary["ending_balance"] == 0
        assert summary["payoff_date"] == "2027-02"

    def test_summarize_never(self):
        summary = summarize(SimulationResult.never(), 500, date(2026, 1, 1))

        assert summary["outcome"] == "never"
        assert summary["months"] is None
        assert summary["total_paid"] is None
        assert summary["ending_balance"] == 500
        assert summary["payoff_date"] is None

    def test_compare_results(self):
        baseline = simulate_fixed_payment(5000, 0.2, 150)
        faster = simulate_fixed_payment(5000, 0.2, 300)
        comparison = compare_results(baseline, faster)

        assert comparison["months_saved"] == baseline.months - faster.months
        assert comparison["interest_saved"] == pytest.approx(
            baseline.total_interest - faster.total_interest, abs=0.01
        )

    def test_compare_with_never(self):
        comparison = compare_results(SimulationResult.never(), simulate_fixed_payment(100, 0, 50))

        assert comparison["interest_saved"] is None
        assert comparison["months_saved"] is None


class TestRunScenario:
    def test_fixed_with_minimum_comparison(self):
        scenario = PayoffScenario(
            balance=5000, apr=0.1999, strategy="fixed", payment=300, minimum_payment=100
        )
        result, summary = run_scenario(scenario)

        assert result.paid_off
        assert summary["strategy"] == "fixed"
        assert summary["comparison"]["months_saved"] > 0
        assert summary["comparison"]["interest_saved"] > 0

    def test_minimum_strategy_has_no_comparison(self, percentage_rule):
        scenario = PayoffScenario(
            balance=2000, apr=0.18, strategy="minimum", minimum_rule=percentage_rule
        )
        result, summary = run_scenario(scenario)

        assert result.paid_off
        assert "comparison" not in summary

    def test_variable(self):
        scenario = PayoffScenario(
            balance=1000, apr=0, strategy="variable", variable_payments=[200, 200, 0, 0]
        )
        result, summary = run_scenario(scenario)

        assert summary["months"] == 5

    def test_target_solved(self):
        scenario = PayoffScenario(
            balance=3600, apr=0, strategy="target", target_months=36, minimum_payment=100
        )
        result, summary = run_scenario(scenario)

        assert summary["target"]["outcome"] == "solved"
        assert abs(result.months - 36) <= 1

    def test_target_unsolvable_falls_back_to_minimum(self):
        scenario = PayoffScenario(
            balance=1200, apr=0, strategy="target", target_months=1, minimum_payment=10
        )
        result, summary = run_scenario(scenario)

        assert summary["target"]["outcome"] == "unsolvable"
        assert summary["target"]["monthly_payment"] is None
        assert result.months == 120

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"balance": -1, "apr": 0.1, "strategy": "fixed", "payment": 10},
            {"balance": 100, "apr": -0.1, "strategy": "fixed", "payment": 10},
            {"balance": 100, "apr": 0.1, "strategy": "snowball"},
            {"balance": 100, "apr": 0.1, "strategy": "fixed"},
            {"balance": 100, "apr": 0.1, "strategy": "variable"},
            {"balance": 100, "apr": 0.1, "strategy": "minimum"},
            {"balance": 100, "apr": 0.1, "strategy": "target"},
            {"balance": 100, "apr": 0.1, "strategy": "fixed", "payment": 10, "max_months": 0},
            {
                "balance": 100,
                "apr": 0.1,
                "strategy": "fixed",
                "payment": 10,
                "future_purchases": [FuturePurchase(month=0, amount=5)],
            },
        ],
    )
    def test_invalid_scenarios_are_rejected(self, kwargs):
        with pytest.raises(ScenarioError):
            run_scenario(PayoffScenario(**kwargs))

    def test_zero_payment_is_not_an_input_error(self):
        result, summary = run_scenario(
            PayoffScenario(balance=500, apr=0.2, strategy="fixed", payment=0)
        )

        assert result.is_never
        assert summary["outcome"] == "never"
