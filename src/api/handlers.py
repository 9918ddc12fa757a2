"""
Serverless entry points.

`handler` receives the request envelope of the hosting runtime
(`{body, isBase64Encoded, ...}`) with a JSON body `{action, ...}` and returns
`{statusCode, headers, body, isBase64Encoded}`.
`pdf_handler` serves a policy document by the policy number in the trailing
path segment (`/.../<policyNumber>.pdf`).

The dispatcher and its collaborators are built once per process. Mock vs real
integrations are selected here and nowhere else.
"""

from __future__ import annotations

from dotenv import load_dotenv

load_dotenv()

import base64
import binascii
import json
import logging
import os
import threading
from typing import Any, Dict, Optional

from src.api.dispatcher import ActionDispatcher
from src.api.responses import json_response
from src.database.recorder import TransactionRecorder
from src.errors import ConfigError
from src.integrations.clients.mocks.object_storage import InMemoryS3Client
from src.integrations.clients.mocks.partner_api import MockPartnerApiClient, MockPartnerTokenProvider
from src.integrations.clients.real_http.partner_api import PartnerApiClient
from src.integrations.credentials import PartnerTokenProvider, get_infra_token_provider
from src.integrations.policy.request_builder import RequestNormalizer
from src.storage.object_storage import DocumentArchiver
from src.utils.config_loader import OrchestratorConfig, load_orchestrator_config

logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO").upper())
logger = logging.getLogger(__name__)

_dispatcher: Optional[ActionDispatcher] = None
_dispatcher_lock = threading.Lock()


def _use_mock_integrations() -> bool:
    return os.getenv("INTEGRATIONS_MODE", "").strip().lower() in {"mock", "test"}


def build_dispatcher(config: Optional[OrchestratorConfig] = None, *, mock: Optional[bool] = None) -> ActionDispatcher:
    cfg = config or load_orchestrator_config()
    use_mock = _use_mock_integrations() if mock is None else mock
    normalizer = RequestNormalizer(cfg.normalizer, validation_enabled=cfg.validation.enabled)

    if use_mock:
        from src.database.postgres import PostgresDB

        logger.info("Using mock partner client and in-memory audit store")
        return ActionDispatcher(
            partner_tokens=MockPartnerTokenProvider(),
            partner_client=MockPartnerApiClient(),
            recorder=TransactionRecorder(PostgresDB()),
            archiver=DocumentArchiver(cfg.object_storage, client=InMemoryS3Client()),
            normalizer=normalizer,
        )

    from src.database.postgres_real import PostgresDB

    infra = get_infra_token_provider(cfg.metadata)
    return ActionDispatcher(
        partner_tokens=PartnerTokenProvider(cfg.partner_api),
        partner_client=PartnerApiClient(cfg.partner_api),
        recorder=TransactionRecorder(PostgresDB(cfg.database, token_provider=infra)),
        archiver=DocumentArchiver(cfg.object_storage),
        normalizer=normalizer,
    )


def get_dispatcher() -> ActionDispatcher:
    global _dispatcher
    if _dispatcher is None:
        with _dispatcher_lock:
            if _dispatcher is None:
                _dispatcher = build_dispatcher()
    return _dispatcher


def set_dispatcher(dispatcher: Optional[ActionDispatcher]) -> None:
    """Override (or reset with None) the process-wide dispatcher."""
    global _dispatcher
    with _dispatcher_lock:
        _dispatcher = dispatcher


def parse_request_body(event: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    raw = (event or {}).get("body")
    if not raw:
        return None
    if isinstance(raw, dict):
        return raw
    try:
        if event.get("isBase64Encoded"):
            raw = base64.b64decode(raw).decode("utf-8")
        data = json.loads(raw)
    except (binascii.Error, UnicodeDecodeError, ValueError) as e:
        logger.error("Error parsing request body: %s", e)
        return None
    return data if isinstance(data, dict) else None


def policy_number_from_path(path: str) -> str:
    last = (path or "").rstrip("/").split("/")[-1]
    return last[: -len(".pdf")] if last.endswith(".pdf") else last


async def handler(event: Dict[str, Any], context: Any = None) -> Dict[str, Any]:
    logger.info("Handler invoked")
    body = parse_request_body(event)
    action = body.get("action") if body else None
    if not action or not isinstance(action, str):
        return json_response(400, {"error": "action missing"}).to_event()

    try:
        dispatcher = get_dispatcher()
    except ConfigError as e:
        logger.error("Configuration error: %s", e)
        return json_response(500, {"error": e.message}).to_event()
    return (await dispatcher.dispatch(body)).to_event()


async def pdf_handler(event: Dict[str, Any], context: Any = None) -> Dict[str, Any]:
    path = (event or {}).get("path") or ""
    logger.info("PDF handler invoked for path %s", path)
    policy_number = policy_number_from_path(path)
    if not policy_number:
        return json_response(400, {"error": "Policy number is required"}).to_event()

    try:
        dispatcher = get_dispatcher()
    except ConfigError as e:
        logger.error("Configuration error: %s", e)
        return json_response(500, {"error": e.message}).to_event()
    return (await dispatcher.download_policy(policy_number)).to_event()
