"""
Real Partner API HTTP Client.

Purpose:
- Issues the partner insurer operations for the individual accident product:
  quote, policy issuance, installment payment and policy document retrieval
- Parses responses into the contracts in src/integrations/contracts/accident.py

Implementation notes:
- Uses httpx for async requests, one client per call with a fixed timeout
- Bearer token auth on every call; the token is obtained by the caller
- No retries here: any failure surfaces as UpstreamError with the upstream
  status code and body when available
- The legacy PDF endpoint lives on a different host with its own versioned
  path. It is kept as a separate operation from fetch_document.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx
from pydantic import ValidationError

from src.errors import UpstreamError
from src.integrations.contracts.accident import (
    DocumentType,
    InstallmentPayment,
    Payment,
    Policy,
    PolicyDocument,
    QuoteResult,
)
from src.utils.config_loader import PartnerApiConfig

logger = logging.getLogger(__name__)

QUOTES_PATH = "individual/accident/quotes"
POLICIES_PATH = "individual/accident/policies"


class PartnerApiClient:
    def __init__(
        self,
        config: Optional[PartnerApiConfig] = None,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.config = config or PartnerApiConfig()
        self.base_url = self.config.base_url if self.config.base_url.endswith("/") else f"{self.config.base_url}/"
        self.timeout_seconds = self.config.timeout_seconds
        self._transport = transport

    async def quote(self, token: str, request: Dict[str, Any]) -> QuoteResult:
        data = await self._send_json("quote", "POST", f"{self.base_url}{QUOTES_PATH}", token, json=request)
        return self._parse("quote", QuoteResult, data)

    async def issue_policy(self, token: str, request: Dict[str, Any]) -> Policy:
        data = await self._send_json("issue_policy", "POST", f"{self.base_url}{POLICIES_PATH}", token, json=request)
        policy = self._parse("issue_policy", Policy, data)
        logger.info("Policy issued: policyNumber=%s", policy.policy_number)
        return policy

    async def pay_installment(
        self,
        token: str,
        policy_number: str,
        installment_index: int,
        payment: InstallmentPayment,
    ) -> Payment:
        url = f"{self.base_url}{POLICIES_PATH}/{policy_number}/installments/{installment_index}"
        body = payment.model_dump(by_alias=True)
        data = await self._send_json("pay_installment", "PUT", url, token, json=body)
        return self._parse("pay_installment", Payment, data)

    async def fetch_document(
        self,
        token: str,
        policy_number: str,
        doc_type: DocumentType = DocumentType.POLICY,
    ) -> PolicyDocument:
        doc = getattr(doc_type, "value", doc_type)
        url = f"{self.base_url}policies/{policy_number}/files/{doc}"
        data = await self._send_json("fetch_document", "GET", url, token)
        return self._parse("fetch_document", PolicyDocument, data)

    async def fetch_legacy_pdf(self, token: str, policy_number: str) -> bytes:
        url = self.config.legacy_pdf_url.format(policy=policy_number)
        response = await self._send("fetch_legacy_pdf", "GET", url, token)
        return response.content

    async def _send_json(self, operation: str, method: str, url: str, token: str, **kwargs: Any) -> Dict[str, Any]:
        response = await self._send(operation, method, url, token, **kwargs)
        try:
            data = response.json() if response.content else {}
        except ValueError as exc:
            raise UpstreamError(
                f"Partner {operation} returned a non-JSON body",
                status_code=response.status_code,
                body=response.text[:2000],
                operation=operation,
            ) from exc
        if not isinstance(data, dict):
            raise UpstreamError(
                f"Partner {operation} returned an unexpected payload",
                status_code=response.status_code,
                operation=operation,
            )
        return data

    async def _send(self, operation: str, method: str, url: str, token: str, **kwargs: Any) -> httpx.Response:
        headers = {"Authorization": f"Bearer {token}"}
        try:
            logger.info("Partner %s: %s %s", operation, method, url)
            async with httpx.AsyncClient(timeout=self.timeout_seconds, transport=self._transport) as client:
                response = await client.request(method, url, headers=headers, **kwargs)
                response.raise_for_status()
                logger.info("Partner %s response: status=%s", operation, response.status_code)
                return response
        except httpx.HTTPStatusError as e:
            body = _error_body(e.response)
            logger.error("HTTP error from partner %s: %s %s", operation, e.response.status_code, body)
            raise UpstreamError(
                f"Partner {operation} failed with status {e.response.status_code}",
                status_code=e.response.status_code,
                body=body,
                operation=operation,
            ) from e
        except httpx.RequestError as e:
            logger.error("Request error connecting to partner %s: %s", operation, e)
            raise UpstreamError(f"Partner {operation} request failed: {e}", operation=operation) from e

    def _parse(self, operation: str, model_type, data: Dict[str, Any]):
        try:
            return model_type.model_validate(data)
        except ValidationError as exc:
            raise UpstreamError(
                f"Partner {operation} response validation failed: {exc}",
                body=data,
                operation=operation,
            ) from exc


def _error_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text[:2000]
