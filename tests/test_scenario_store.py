"""Tests for the saved scenario store."""


def _add(store, user, scenario_id, **overrides):
    fields = {
        "payment_type": "fixed",
        "starting_balance": 5000.0,
        "total_interest": 812.44,
        "months_to_payoff": 20,
        "fixed_payment": 300.0,
    }
    fields.update(overrides)
    store.add_scenario(user, scenario_id, f"Plan {scenario_id}", **fields)


def test_add_and_list(store):
    _add(store, "alice", "a1")
    _add(
        store,
        "alice",
        "a2",
        payment_type="variable",
        fixed_payment=None,
        variable_payments=[200.0, 200.0, 150.0],
    )

    saved = store.list_scenarios("alice")

    assert [s["id"] for s in saved] == ["a1", "a2"]
    assert saved[0]["fixed_payment"] == 300.0
    assert saved[0]["variable_payments"] is None
    assert saved[1]["variable_payments"] == [200.0, 200.0, 150.0]
    assert store.list_scenarios("bob") == []


def test_never_paying_plan_is_stored_without_totals(store):
    _add(store, "alice", "n1", total_interest=None, months_to_payoff=None, fixed_payment=0.0)

    (saved,) = store.list_scenarios("alice")

    assert saved["months_to_payoff"] is None
    assert saved["total_interest"] is None


def test_remove_only_touches_own_scenarios(store):
    _add(store, "alice", "a1")
    _add(store, "bob", "b1")

    store.remove_scenario("alice", "b1")
    store.remove_scenario("bob", "b1")

    assert len(store.list_scenarios("alice")) == 1
    assert store.list_scenarios("bob") == []


def test_clear(store):
    _add(store, "alice", "a1")
    _add(store, "alice", "a2")
    _add(store, "bob", "b1")

    store.clear_scenarios("alice")

    assert store.list_scenarios("alice") == []
    assert len(store.list_scenarios("bob")) == 1


def test_oldest_scenarios_are_trimmed(store):
    for i in range(5):
        _add(store, "alice", f"a{i}")

    assert len(store.list_scenarios("alice")) == 3


def test_empty_token_is_ignored(store):
    _add(store, "", "x1")

    assert store.list_scenarios("") == []
    store.remove_scenario("", "x1")
    store.clear_scenarios("")
