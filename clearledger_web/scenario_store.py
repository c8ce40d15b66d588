"""Persistence layer for saved payoff scenarios.

Users save the what-if plans they try in the simulator (a fixed payment, or a
month-by-month schedule) together with the resulting payoff time and interest
so they can compare them later. Scenarios are kept per user token. The store
defaults to SQLite for local development, but accepts any
SQLAlchemy-compatible URL.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import Column, DateTime, Float, Integer, String, Text, create_engine, select
from sqlalchemy.orm import declarative_base, sessionmaker

logger = logging.getLogger(__name__)

Base = declarative_base()

DEFAULT_URL = "sqlite:///clearledger_scenarios.sqlite3"


class SavedScenarioModel(Base):
    __tablename__ = "saved_scenarios"

    id = Column(String(64), primary_key=True)
    user_token = Column(String(64), index=True, nullable=False)
    name = Column(String(255), nullable=False)
    payment_type = Column(String(16), nullable=False)
    fixed_payment = Column(Float, nullable=True)
    variable_payments_json = Column(Text, nullable=True)
    starting_balance = Column(Float, nullable=False)
    total_interest = Column(Float, nullable=True)  # null when the plan never pays off
    months_to_payoff = Column(Integer, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class ScenarioStore:
    """Database-backed scenario store."""

    def __init__(self, url: str, *, max_per_user: int = 10) -> None:
        self._engine = create_engine(url, future=True)
        Base.metadata.create_all(self._engine)
        self._session_factory = sessionmaker(self._engine, expire_on_commit=False, future=True)
        self._max_per_user = max_per_user

    def list_scenarios(self, user_token: str) -> List[Dict[str, Any]]:
        if not user_token:
            return []
        with self._session_factory() as session:
            rows: Iterable[SavedScenarioModel] = session.execute(
                select(SavedScenarioModel)
                .where(SavedScenarioModel.user_token == user_token)
                .order_by(SavedScenarioModel.created_at.asc())
            ).scalars()
            return [self._to_dict(row) for row in rows]

    def add_scenario(
        self,
        user_token: str,
        scenario_id: str,
        name: str,
        *,
        payment_type: str,
        starting_balance: float,
        total_interest: Optional[float],
        months_to_payoff: Optional[int],
        fixed_payment: Optional[float] = None,
        variable_payments: Optional[List[float]] = None,
    ) -> None:
        if not user_token:
            return
        payload = SavedScenarioModel(
            id=scenario_id,
            user_token=user_token,
            name=name,
            payment_type=payment_type,
            fixed_payment=fixed_payment,
            variable_payments_json=json.dumps(variable_payments) if variable_payments else None,
            starting_balance=starting_balance,
            total_interest=total_interest,
            months_to_payoff=months_to_payoff,
        )
        with self._session_factory() as session:
            session.add(payload)
            session.commit()
        logger.info("Saved scenario %s (%s) for user %s", scenario_id, payment_type, user_token)
        self._trim_user(user_token)

    def remove_scenario(self, user_token: str, scenario_id: str) -> None:
        if not user_token:
            return
        with self._session_factory() as session:
            row = session.get(SavedScenarioModel, scenario_id)
            if row and row.user_token == user_token:
                session.delete(row)
                session.commit()

    def clear_scenarios(self, user_token: str) -> None:
        if not user_token:
            return
        with self._session_factory() as session:
            session.execute(
                SavedScenarioModel.__table__.delete().where(
                    SavedScenarioModel.user_token == user_token
                )
            )
            session.commit()

    def _trim_user(self, user_token: str) -> None:
        if not self._max_per_user or self._max_per_user < 0:
            return
        with self._session_factory() as session:
            rows = session.execute(
                select(SavedScenarioModel)
                .where(SavedScenarioModel.user_token == user_token)
                .order_by(SavedScenarioModel.created_at.desc())
            ).scalars().all()
            if len(rows) <= self._max_per_user:
                return
            for row in rows[self._max_per_user :]:
                session.delete(row)
            session.commit()
            logger.debug("Trimmed %d old scenarios for user %s", len(rows) - self._max_per_user, user_token)

    @staticmethod
    def _to_dict(row: SavedScenarioModel) -> Dict[str, Any]:
        return {
            "id": row.id,
            "name": row.name,
            "payment_type": row.payment_type,
            "fixed_payment": row.fixed_payment,
            "variable_payments": json.loads(row.variable_payments_json) if row.variable_payments_json else None,
            "starting_balance": row.starting_balance,
            "total_interest": row.total_interest,
            "months_to_payoff": row.months_to_payoff,
            "created_at": row.created_at.isoformat(),
        }


def create_store_from_env(url: Optional[str], max_per_user: Optional[str] = None) -> ScenarioStore:
    limit = int(max_per_user) if max_per_user else 10
    return ScenarioStore(url or DEFAULT_URL, max_per_user=limit)
