"""
Integrations layer.
This package contains all code used to communicate with external systems:
- the partner insurer API (quotes, policy issuance, installment payments, documents)
- the partner OAuth endpoint and the cloud metadata service (credentials)

Key rule:
- The action dispatcher MUST NOT build HTTP requests itself.
- It calls integration clients (under src/integrations/clients).
- MOCK clients are used for local runs and tests, REAL_HTTP clients in deployment.

Switching implementations:
- The selection of mock vs real clients happens in ONE place (src/api/handlers.py).
"""

from .contracts.accident import (
    ArchivedDocument,
    Credential,
    CredentialKind,
    DocumentType,
    HandlerResponse,
    InstallmentPayment,
    Payment,
    Policy,
    PolicyDocument,
    QuoteResult,
)

__all__ = [
    "ArchivedDocument", "Credential", "CredentialKind", "DocumentType",
    "HandlerResponse", "InstallmentPayment", "Payment", "Policy",
    "PolicyDocument", "QuoteResult",
]
