"""
Accident insurance contracts.

Request/response shapes exchanged with the partner insurer API and the
internal records built from them. Partner payloads use camelCase keys, so the
models accept both the alias and the python field name.

These contracts are used by both:
- clients/mocks/partner_api.py (deterministic responses for development/testing)
- clients/real_http/partner_api.py (real partner API calls)
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class CredentialKind(str, Enum):
    INFRA = "INFRA"
    PARTNER = "PARTNER"


class DocumentType(str, Enum):
    POLICY = "POLICY"


class Credential(BaseModel):
    kind: CredentialKind
    value: str = Field(repr=False)
    acquired_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class _PartnerModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")


class QuoteResult(_PartnerModel):
    premium: Optional[float] = None
    draft_id: Optional[str] = Field(default=None, alias="draftId")
    insured_object: Dict[str, Any] = Field(default_factory=dict, alias="insuredObject")

    @property
    def covers(self) -> List[Dict[str, Any]]:
        return list(self.insured_object.get("covers") or [])


class Policy(_PartnerModel):
    policy_number: str = Field(alias="policyNumber")
    premium: Optional[float] = None
    draft_id: Optional[str] = Field(default=None, alias="draftId")


class InstallmentPayment(_PartnerModel):
    """Body of the installment payment call"""

    amount: Optional[float] = None
    payment_type: str = Field(default="CARD", alias="paymentType")
    success_url: Optional[str] = Field(default=None, alias="successUrl")
    fail_url: Optional[str] = Field(default=None, alias="failUrl")


class Payment(_PartnerModel):
    payment_link: Optional[str] = Field(default=None, alias="paymentLink")
    policy_number: Optional[str] = Field(default=None, alias="policyNumber")
    premium: Optional[float] = None
    external_id: Optional[str] = Field(default=None, alias="externalId")


class PolicyDocument(_PartnerModel):
    policy_pdf: Optional[str] = Field(default=None, alias="policyPDF")


class ArchivedDocument(BaseModel):
    key: str
    url: str
    expires_at: datetime


class HandlerResponse(BaseModel):
    """Response envelope returned to the hosting runtime"""

    model_config = ConfigDict(populate_by_name=True)

    status_code: int = Field(alias="statusCode")
    body: str
    headers: Optional[Dict[str, str]] = None
    is_base64_encoded: Optional[bool] = Field(default=None, alias="isBase64Encoded")

    def to_event(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


__all__ = [
    "ArchivedDocument",
    "Credential",
    "CredentialKind",
    "DocumentType",
    "HandlerResponse",
    "InstallmentPayment",
    "Payment",
    "Policy",
    "PolicyDocument",
    "QuoteResult",
]
