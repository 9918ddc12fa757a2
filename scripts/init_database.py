#!/usr/bin/env python3
"""
Create the audit tables (insurance_calculations, insurance_payments).

Connects the same way the service does: DATABASE_URL when set, otherwise
DB_ENDPOINT / DB_NAME with the infra identity token as password. Existing
tables are left untouched.

  python scripts/init_database.py
  python scripts/init_database.py --config config/orchestrator.yml
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv
load_dotenv()

from sqlalchemy import inspect
from sqlalchemy.exc import SQLAlchemyError

from src.database.models import Base
from src.database.postgres_real import PostgresDB
from src.errors import OrchestratorError
from src.integrations.credentials import get_infra_token_provider
from src.utils.config_loader import load_orchestrator_config

logger = logging.getLogger("init_database")


async def _init(config_path: Path | None) -> list:
    cfg = load_orchestrator_config(config_path)
    db = PostgresDB(cfg.database, token_provider=get_infra_token_provider(cfg.metadata))
    await db.prepare()
    db.create_tables()
    existing = set(inspect(db.engine).get_table_names())
    return sorted(existing & set(Base.metadata.tables))


def main() -> int:
    parser = argparse.ArgumentParser(description="Create the orchestrator audit tables")
    parser.add_argument("--config", type=Path, help="Path to orchestrator.yml")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")
    try:
        tables = asyncio.run(_init(args.config))
    except OrchestratorError as e:
        logger.error("%s %s", e.message, e.details or "")
        return 1
    except SQLAlchemyError as e:
        logger.error("Database error: %s", e)
        return 2

    logger.info("Audit tables present: %s", ", ".join(tables))
    return 0


if __name__ == "__main__":
    sys.exit(main())
