"""Shared fixtures for the ClearLedger test suite."""

import os

import pytest

# Keep the web app's module-level store off the working directory
os.environ.setdefault("SCENARIO_DATABASE_URL", "sqlite://")

from clearledger.data_models import Debt, MinimumPaymentRule  # noqa: E402
from clearledger_web.scenario_store import ScenarioStore  # noqa: E402


@pytest.fixture
def store(tmp_path):
    return ScenarioStore(f"sqlite:///{tmp_path / 'scenarios.sqlite3'}", max_per_user=3)


@pytest.fixture
def percentage_rule():
    return MinimumPaymentRule(type="percentage", value=2, floor=25)


@pytest.fixture
def debts():
    return [
        Debt(name="Visa", kind="card", balance=1000.0, apr=0.20, payment=50.0),
        Debt(name="Store card", kind="card", balance=20.0, apr=0.10, payment=25.0),
        Debt(name="Car loan", kind="loan", balance=9000.0, apr=0.05, payment=300.0),
    ]
