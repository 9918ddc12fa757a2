"""
Transaction recorder.

Writes one audit row per successful orchestration step into the session the
dispatcher opened for the invocation. Request and response bodies are stored
as JSON text so the exchange with the partner can be reconstructed later.
"""

from __future__ import annotations

import json
import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterator, Optional
from uuid import uuid4

from sqlalchemy.exc import SQLAlchemyError

from src.errors import PersistenceError
from src.integrations.contracts.accident import Payment, Policy, QuoteResult

logger = logging.getLogger(__name__)


def _dumps(value: Any) -> str:
    if hasattr(value, "model_dump"):
        value = value.model_dump(by_alias=True, exclude_none=True)
    return json.dumps(value, ensure_ascii=False, default=str)


class TransactionRecorder:
    def __init__(self, db, *, clock: Optional[Callable[[], datetime]] = None) -> None:
        self.db = db
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def check_config(self) -> None:
        self.db.check_config()

    async def prepare(self) -> None:
        await self.db.prepare()

    @contextmanager
    def session(self) -> Iterator[Any]:
        try:
            with self.db.session() as s:
                yield s
        except SQLAlchemyError as exc:
            logger.error("Database session failed: %s", exc)
            raise PersistenceError(f"Database write failed: {exc}") from exc

    def record_quote(self, session, request: Dict[str, Any], response: QuoteResult) -> str:
        record_id = str(uuid4())
        fields = {
            "id": record_id,
            "timestamp": self._clock(),
            "price": float(response.premium or 0),
            "request_data": _dumps(request),
            "response_data": _dumps(response),
        }
        self._write("insurance_calculations", self.db.add_calculation, session, fields)
        return record_id

    def record_payment(
        self,
        session,
        request: Dict[str, Any],
        policy: Policy,
        payment: Payment,
        external_id: Optional[str],
    ) -> str:
        record_id = str(uuid4())
        fields = {
            "id": record_id,
            "timestamp": self._clock(),
            "policy_number": policy.policy_number,
            "premium": float(policy.premium or 0),
            "payment_link": payment.payment_link or "",
            "ext_id": str(external_id) if external_id is not None else "",
            "request_data": _dumps(request),
        }
        self._write("insurance_payments", self.db.add_payment, session, fields)
        return record_id

    def _write(self, table: str, add: Callable[[Any, Dict[str, Any]], Any], session, fields: Dict[str, Any]) -> None:
        try:
            add(session, fields)
        except PersistenceError:
            logger.error("Write to %s failed (record %s)", table, fields["id"])
            raise
        except SQLAlchemyError as exc:
            logger.error("Write to %s failed (record %s): %s", table, fields["id"], exc)
            raise PersistenceError(f"Write to {table} failed: {exc}") from exc
        logger.info("Recorded %s row %s", table, fields["id"])
