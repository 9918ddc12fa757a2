"""
Real Postgres-backed audit store.

The engine is created lazily, exactly once per process. When DATABASE_URL is
not set the connection is built from DB_ENDPOINT / DB_NAME and authenticated
with the infra identity token, which is re-read on every new connection so a
refreshed token is picked up without rebuilding the pool.
Implements the same interface as src.database.postgres (in-memory stub).
"""

from __future__ import annotations

import logging
import os
import re
import threading
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Mapping, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import URL, Engine
from sqlalchemy.orm import Session, sessionmaker

from src.database.models import Base, InsuranceCalculation, InsurancePayment
from src.integrations.credentials import InfraTokenProvider
from src.utils.config_loader import DatabaseConfig, require_env

logger = logging.getLogger(__name__)


def _normalize_connection_string(s: str) -> str:
    """Strip common mistakes: 'psql \'...\'', extra quotes, whitespace."""
    s = s.strip()
    if re.match(r"^psql\s+", s, re.IGNORECASE):
        s = re.sub(r"^psql\s+", "", s, flags=re.IGNORECASE).strip()
    if len(s) >= 2 and s[0] == s[-1] and s[0] in ("'", '"'):
        s = s[1:-1].strip()
    return s


class PostgresDB:
    """
    Postgres data access using SQLAlchemy. Use when DATABASE_URL or
    DB_ENDPOINT/DB_NAME are set.
    """

    def __init__(
        self,
        config: Optional[DatabaseConfig] = None,
        *,
        token_provider: Optional[InfraTokenProvider] = None,
        connection_string: Optional[str] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> None:
        self.config = config or DatabaseConfig()
        self._env = os.environ if environ is None else environ
        self._token_provider = token_provider
        self._connection_string = connection_string or self._env.get("DATABASE_URL")
        self._token: Optional[str] = None
        self._engine: Optional[Engine] = None
        self._session_factory: Optional[sessionmaker] = None
        self._init_lock = threading.Lock()

    def check_config(self) -> None:
        if not self._connection_string:
            require_env(self.config.endpoint_env, self.config.name_env, environ=self._env)

    async def prepare(self) -> None:
        """Make sure the engine exists and the current infra token is known."""
        self.check_config()
        if not self._connection_string and self._token_provider is not None:
            self._token = await self._token_provider.get_token()
        self._ensure_engine()

    def _build_url(self) -> URL | str:
        if self._connection_string:
            return _normalize_connection_string(self._connection_string)
        env = require_env(self.config.endpoint_env, self.config.name_env, environ=self._env)
        host, _, port = env[self.config.endpoint_env].partition(":")
        return URL.create(
            self.config.driver,
            username=self.config.user,
            host=host,
            port=int(port) if port else None,
            database=env[self.config.name_env],
        )

    def _ensure_engine(self) -> Engine:
        if self._engine is None:
            with self._init_lock:
                if self._engine is None:
                    engine = create_engine(
                        self._build_url(),
                        pool_pre_ping=True,
                        pool_size=self.config.pool_size,
                        max_overflow=self.config.max_overflow,
                    )
                    if not self._connection_string:
                        event.listen(engine, "do_connect", self._inject_token)
                    self._session_factory = sessionmaker(
                        autocommit=False, autoflush=False, bind=engine, expire_on_commit=False
                    )
                    self._engine = engine
                    logger.info("Database engine initialised")
        return self._engine

    @property
    def engine(self) -> Engine:
        return self._ensure_engine()

    def _inject_token(self, dialect, conn_rec, cargs, cparams: Dict[str, Any]) -> None:
        if self._token:
            cparams["password"] = self._token

    def create_tables(self) -> None:
        Base.metadata.create_all(bind=self._ensure_engine())

    @contextmanager
    def session(self) -> Iterator[Session]:
        self._ensure_engine()
        s = self._session_factory()
        try:
            yield s
            s.commit()
        except Exception:
            s.rollback()
            raise
        finally:
            s.close()

    # ------------------------------------------------------------------ #
    # Audit rows
    # ------------------------------------------------------------------ #
    def add_calculation(self, session: Session, fields: Dict[str, Any]) -> InsuranceCalculation:
        row = InsuranceCalculation(**fields)
        session.add(row)
        session.flush()
        return row

    def add_payment(self, session: Session, fields: Dict[str, Any]) -> InsurancePayment:
        row = InsurancePayment(**fields)
        session.add(row)
        session.flush()
        return row
