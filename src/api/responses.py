"""Response envelope helpers shared by the entry points."""

from __future__ import annotations

import base64
import json
from typing import Any, Dict

from src.errors import OrchestratorError
from src.integrations.contracts.accident import HandlerResponse

JSON_HEADERS = {"Content-Type": "application/json"}


def json_response(status_code: int, payload: Dict[str, Any]) -> HandlerResponse:
    return HandlerResponse(
        statusCode=status_code,
        headers=dict(JSON_HEADERS),
        body=json.dumps(payload, ensure_ascii=False, default=str),
    )


def error_response(exc: OrchestratorError) -> HandlerResponse:
    payload: Dict[str, Any] = {"error": exc.message, "code": exc.code, "category": exc.category}
    if exc.details:
        payload["details"] = exc.details
    return json_response(exc.http_status, payload)


def pdf_response(policy_number: str, content: bytes, *, quoted_filename: bool = True) -> HandlerResponse:
    filename = f'"{policy_number}.pdf"' if quoted_filename else f"{policy_number}.pdf"
    return HandlerResponse(
        statusCode=200,
        headers={
            "Content-Type": "application/pdf",
            "Content-Disposition": f"attachment; filename={filename}",
        },
        body=base64.b64encode(content).decode("ascii"),
        isBase64Encoded=True,
    )
