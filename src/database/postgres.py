"""
Lightweight in-memory PostgresDB replacement for local development.

Provides the same audit-store interface as src.database.postgres_real so the
orchestrator can run without a real database. Rows written inside a session
only become visible when the session exits cleanly. It is NOT intended for
production use.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterator, List

from src.errors import PersistenceError


@dataclass
class InsuranceCalculation:
    id: str
    timestamp: datetime
    price: float
    request_data: str
    response_data: str


@dataclass
class InsurancePayment:
    id: str
    timestamp: datetime
    policy_number: str
    premium: float
    payment_link: str
    ext_id: str
    request_data: str


@dataclass
class _PendingSession:
    calculations: List[InsuranceCalculation] = field(default_factory=list)
    payments: List[InsurancePayment] = field(default_factory=list)


class PostgresDB:
    """
    In-memory stand-in for the Postgres-backed audit store.

    `fail_writes` makes every add_* call raise, which is how tests simulate a
    database outage.
    """

    def __init__(self, *, fail_writes: bool = False) -> None:
        self.calculations: List[InsuranceCalculation] = []
        self.payments: List[InsurancePayment] = []
        self.fail_writes = fail_writes
        self.sessions_opened = 0
        self.sessions_closed = 0

    def check_config(self) -> None:
        return None

    async def prepare(self) -> None:
        return None

    def create_tables(self) -> None:
        """No-op for the in-memory implementation."""
        return None

    @contextmanager
    def session(self) -> Iterator[_PendingSession]:
        self.sessions_opened += 1
        pending = _PendingSession()
        try:
            yield pending
            self.calculations.extend(pending.calculations)
            self.payments.extend(pending.payments)
        finally:
            self.sessions_closed += 1

    def add_calculation(self, session: _PendingSession, fields: Dict[str, Any]) -> InsuranceCalculation:
        if self.fail_writes:
            raise PersistenceError("insurance_calculations write failed")
        row = InsuranceCalculation(**fields)
        session.calculations.append(row)
        return row

    def add_payment(self, session: _PendingSession, fields: Dict[str, Any]) -> InsurancePayment:
        if self.fail_writes:
            raise PersistenceError("insurance_payments write failed")
        row = InsurancePayment(**fields)
        session.payments.append(row)
        return row
