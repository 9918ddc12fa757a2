"""API key guard for the HTTP surface.

Keys come from the comma separated API_KEYS variable and are read on every
request so rotating them does not need a restart. Health and docs routes stay
open for the platform probes.
"""

import hmac
import logging
import os
from typing import List, Optional

from fastapi import Header, HTTPException, Request, status

logger = logging.getLogger(__name__)

OPEN_PATHS = frozenset({"/health", "/docs", "/docs/oauth2-redirect", "/openapi.json", "/redoc"})


def get_api_keys() -> List[str]:
    return [k.strip() for k in os.getenv("API_KEYS", "").split(",") if k.strip()]


def is_valid_api_key(candidate: Optional[str], keys: List[str]) -> bool:
    candidate = (candidate or "").strip()
    return bool(candidate) and any(hmac.compare_digest(candidate, k) for k in keys)


async def api_key_protection(
    request: Request = None,
    x_api_key: Optional[str] = Header(default=None, alias="X-API-KEY"),
):
    path = request.url.path if request is not None else None
    if path in OPEN_PATHS:
        return

    if not is_valid_api_key(x_api_key, get_api_keys()):
        logger.warning("Rejected request to %s: invalid or missing API key", path or "<direct call>")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing API Key",
        )
