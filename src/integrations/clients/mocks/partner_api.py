"""
Mock Partner API Client.

Purpose:
- Fake partner insurer integration for development/testing
- Does NOT make network calls
- Returns deterministic quotes, policies, payment links and documents

Usage:
- Selected with INTEGRATIONS_MODE=mock (see src/api/handlers.py)
- Same interface as clients/real_http/partner_api.py

Every call is appended to `calls` so tests can assert on the sequence.
"""

from __future__ import annotations

import base64
from typing import Any, Dict, List, Optional, Tuple

from src.errors import UpstreamError
from src.integrations.contracts.accident import (
    DocumentType,
    InstallmentPayment,
    Payment,
    Policy,
    PolicyDocument,
    QuoteResult,
)

SAMPLE_PDF = b"%PDF-1.4\n% mock accident policy\n%%EOF\n"
_RATE = 0.012


def _premium_for(request: Dict[str, Any]) -> float:
    covers = (request.get("insuredObject") or {}).get("covers") or []
    total = sum(float(c.get("sumInsured") or 0) for c in covers)
    return round(total * _RATE, 2)


class MockPartnerApiClient:
    def __init__(
        self,
        *,
        quote_response: Optional[Dict[str, Any]] = None,
        policy_response: Optional[Dict[str, Any]] = None,
        payment_response: Optional[Dict[str, Any]] = None,
        document_response: Optional[Dict[str, Any]] = None,
        legacy_pdf: bytes = SAMPLE_PDF,
        fail_on: Optional[Dict[str, UpstreamError]] = None,
    ) -> None:
        self.quote_response = quote_response
        self.policy_response = policy_response
        self.payment_response = payment_response
        self.document_response = document_response
        self.legacy_pdf = legacy_pdf
        self.fail_on = fail_on or {}
        self.calls: List[Tuple[str, Dict[str, Any]]] = []
        self._policy_seq = 0

    def _record(self, operation: str, **kwargs: Any) -> None:
        self.calls.append((operation, kwargs))
        if operation in self.fail_on:
            raise self.fail_on[operation]

    async def quote(self, token: str, request: Dict[str, Any]) -> QuoteResult:
        self._record("quote", request=request)
        data = self.quote_response or {
            "premium": _premium_for(request),
            "draftId": "DRAFT-MOCK-1",
            "insuredObject": {"covers": (request.get("insuredObject") or {}).get("covers", [])},
        }
        return QuoteResult.model_validate(data)

    async def issue_policy(self, token: str, request: Dict[str, Any]) -> Policy:
        self._record("issue_policy", request=request)
        self._policy_seq += 1
        data = self.policy_response or {
            "policyNumber": f"MOCK-{self._policy_seq:06d}",
            "premium": _premium_for(request),
            "draftId": f"DRAFT-MOCK-{self._policy_seq}",
        }
        return Policy.model_validate(data)

    async def pay_installment(
        self,
        token: str,
        policy_number: str,
        installment_index: int,
        payment: InstallmentPayment,
    ) -> Payment:
        self._record(
            "pay_installment",
            policy_number=policy_number,
            installment_index=installment_index,
            payment=payment.model_dump(by_alias=True),
        )
        data = self.payment_response or {"paymentLink": f"https://pay.example.test/{policy_number}/{installment_index}"}
        return Payment.model_validate(data)

    async def fetch_document(
        self,
        token: str,
        policy_number: str,
        doc_type: DocumentType = DocumentType.POLICY,
    ) -> PolicyDocument:
        self._record("fetch_document", policy_number=policy_number, doc_type=getattr(doc_type, "value", doc_type))
        if self.document_response is not None:
            return PolicyDocument.model_validate(self.document_response)
        return PolicyDocument(policyPDF=base64.b64encode(SAMPLE_PDF).decode("ascii"))

    async def fetch_legacy_pdf(self, token: str, policy_number: str) -> bytes:
        self._record("fetch_legacy_pdf", policy_number=policy_number)
        return self.legacy_pdf


class MockPartnerTokenProvider:
    def __init__(self, token: str = "mock-partner-token") -> None:
        self.token = token
        self.calls = 0

    def check_config(self) -> None:
        return None

    async def get_token(self) -> str:
        self.calls += 1
        return self.token
