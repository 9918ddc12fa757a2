#!/usr/bin/env python3
"""
Run one action request through the orchestrator handler and print the response.

Examples:
  python scripts/run_action.py --mock request.json
  echo '{"action": "pdf", "policy": "123"}' | python scripts/run_action.py --mock -
  python scripts/run_action.py --pdf-path /policies/123.pdf --mock
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv
load_dotenv()

from src.api.handlers import build_dispatcher, handler, pdf_handler, set_dispatcher
from src.utils.config_loader import load_orchestrator_config


def setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s", force=True)


def _read_body(source: str) -> str:
    if source == "-":
        return sys.stdin.read()
    return Path(source).read_text(encoding="utf-8")


async def _run(args: argparse.Namespace) -> dict:
    if args.pdf_path:
        return await pdf_handler({"path": args.pdf_path})
    return await handler({"body": _read_body(args.request), "isBase64Encoded": False})


def main() -> int:
    parser = argparse.ArgumentParser(description="Run an orchestrator action locally")
    parser.add_argument("request", nargs="?", default="-", help="JSON request file, or - for stdin")
    parser.add_argument("--pdf-path", help="Call the PDF download entry point with this path instead")
    parser.add_argument("--config", type=Path, help="Path to orchestrator.yml")
    parser.add_argument("--mock", action="store_true", help="Use mock partner API, in-memory DB and storage")
    parser.add_argument("--verbose", "-v", action="store_true")
    args = parser.parse_args()

    setup_logging(args.verbose)
    cfg = load_orchestrator_config(args.config)
    set_dispatcher(build_dispatcher(cfg, mock=args.mock or None))

    result = asyncio.run(_run(args))
    print(json.dumps(result, ensure_ascii=False, indent=2))
    return 0 if result.get("statusCode") == 200 else 1


if __name__ == "__main__":
    sys.exit(main())
