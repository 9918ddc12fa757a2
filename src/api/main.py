"""
FastAPI application - HTTP surface for the orchestrator

Exposes the same two entry points as the serverless handlers:
- POST /api/v1/insurance        JSON body {action, ...}
- GET  /api/v1/policies/{policy}.pdf
"""

from dotenv import load_dotenv

load_dotenv()

import base64
import logging
import os
from datetime import datetime
from typing import Any, Dict

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response

from src.api.dependencies import api_key_protection
from src.api.handlers import get_dispatcher, policy_number_from_path
from src.api.responses import json_response
from src.errors import ConfigError
from src.integrations.contracts.accident import HandlerResponse

# Setup logging
logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO").upper())
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Accident Policy Orchestrator API",
    description="Quotes, issues and pays individual accident policies through the partner insurer API",
    version="1.0.0",
    dependencies=[Depends(api_key_protection)],
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _to_http(envelope: HandlerResponse) -> Response:
    headers: Dict[str, str] = dict(envelope.headers or {})
    content: Any = envelope.body
    if envelope.is_base64_encoded:
        content = base64.b64decode(envelope.body)
    media_type = headers.pop("Content-Type", "application/json")
    return Response(content=content, status_code=envelope.status_code, headers=headers, media_type=media_type)


def _dispatcher_or_error():
    try:
        return get_dispatcher(), None
    except ConfigError as e:
        logger.error("Configuration error: %s", e)
        return None, _to_http(json_response(500, {"error": e.message}))


@app.get("/health", tags=["Health"])
async def health_check():
    return {"status": "healthy", "timestamp": datetime.now().isoformat()}


@app.post("/api/v1/insurance", tags=["Insurance"])
async def run_action(request: Request):
    try:
        body = await request.json()
    except ValueError:
        body = None
    if not isinstance(body, dict) or not isinstance(body.get("action"), str) or not body.get("action"):
        return _to_http(json_response(400, {"error": "action missing"}))
    dispatcher, failure = _dispatcher_or_error()
    if failure is not None:
        return failure
    return _to_http(await dispatcher.dispatch(body))


@app.get("/api/v1/policies/{policy_file}", tags=["Insurance"])
async def download_policy(policy_file: str):
    dispatcher, failure = _dispatcher_or_error()
    if failure is not None:
        return failure
    return _to_http(await dispatcher.download_policy(policy_number_from_path(policy_file)))
