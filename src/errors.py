"""Error taxonomy for the orchestration layer.

Lower-level components raise these; the action dispatcher is the only place
that turns them into response envelopes.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional


class OrchestratorError(Exception):
    code = "INTERNAL_ERROR"
    category = "internal_error"
    http_status = 500

    def __init__(self, message: str, *, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigError(OrchestratorError):
    code = "CONFIG_MISSING"
    category = "internal_error"
    http_status = 500

    def __init__(self, message: str, *, missing: Optional[List[str]] = None) -> None:
        super().__init__(message, details={"missing": missing} if missing else None)
        self.missing = missing or []


class AuthError(OrchestratorError):
    code = "AUTH_FAILED"
    category = "upstream_error"
    http_status = 502


class ClientInputError(OrchestratorError):
    code = "BAD_REQUEST"
    category = "client_error"
    http_status = 400


class MissingFieldError(ClientInputError):
    code = "MISSING_FIELD"

    def __init__(self, fields: List[str]) -> None:
        super().__init__(f"Missing required field(s): {', '.join(fields)}", details={"fields": fields})
        self.fields = fields


class ValidationFailedError(ClientInputError):
    code = "VALIDATION_FAILED"

    def __init__(self, errors: List[str]) -> None:
        super().__init__("Input validation failed", details={"errors": errors})
        self.errors = errors


class UpstreamError(OrchestratorError):
    code = "UPSTREAM_FAILED"
    category = "upstream_error"
    http_status = 502

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        body: Any = None,
        operation: Optional[str] = None,
    ) -> None:
        details: Dict[str, Any] = {}
        if status_code is not None:
            details["upstream_status"] = status_code
        if body:
            details["upstream_body"] = body
        if operation:
            details["operation"] = operation
        super().__init__(message, details=details)
        self.status_code = status_code
        self.body = body
        self.operation = operation


class DocumentMissingError(UpstreamError):
    code = "DOCUMENT_MISSING"


class PersistenceError(OrchestratorError):
    code = "PERSISTENCE_FAILED"
    category = "internal_error"
    http_status = 500


class StorageError(OrchestratorError):
    code = "STORAGE_FAILED"
    category = "internal_error"
    http_status = 500
