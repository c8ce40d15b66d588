"""Error classes for ClearLedger.

The simulation functions never raise for numeric input; they report
unpayable debts and unreachable targets through tagged outcomes. Errors are
only raised at the edges, where user input is turned into a
:class:`~clearledger.data_models.PayoffScenario`.
"""


class ScenarioError(ValueError):
    """
    Invalid payoff scenario configuration.

    Raised when a scenario cannot be simulated as described: a negative
    balance or APR, an unknown strategy, or a strategy missing its input
    (no payment for ``fixed``, no schedule for ``variable``, no target for
    ``target``).

    **Example Usage:**
        ```python
        from clearledger.engine import run_scenario
        from clearledger.errors import ScenarioError

        try:
            result, summary = run_scenario(scenario)
        except ScenarioError as e:
            print(f"Scenario error: {e}")
        ```
    """

    pass
