"""
Action dispatcher.

One inbound action request = one orchestration invocation. The dispatcher
sequences credential acquisition, request normalisation, partner calls,
audit recording and document archiving, and is the single place where errors
are turned into response envelopes.

    Idle -> TokenAcquired -> Quoted | Issued | Issued+Paid | Issued+Archived -> Responded

Steps inside one invocation run strictly in order; each depends on the
previous step's output. A policy issued before a later step fails stays
issued at the partner, there is no compensation.
"""

from __future__ import annotations

import base64
import binascii
import logging
from typing import Any, Awaitable, Callable, Dict, Optional
from uuid import uuid4

from src.api.responses import error_response, json_response, pdf_response
from src.database.recorder import TransactionRecorder
from src.errors import AuthError, DocumentMissingError, OrchestratorError
from src.integrations.contracts.accident import DocumentType, HandlerResponse, InstallmentPayment
from src.integrations.credentials import PartnerTokenProvider
from src.integrations.policy.request_builder import RequestNormalizer
from src.storage.object_storage import DocumentArchiver

logger = logging.getLogger(__name__)

ActionHandler = Callable[[str, Dict[str, Any]], Awaitable[HandlerResponse]]

FIRST_INSTALLMENT = 1
PAYMENT_TYPE_CARD = "CARD"


class ActionDispatcher:
    def __init__(
        self,
        *,
        partner_tokens: PartnerTokenProvider,
        partner_client,
        recorder: TransactionRecorder,
        archiver: DocumentArchiver,
        normalizer: Optional[RequestNormalizer] = None,
    ) -> None:
        self.partner_tokens = partner_tokens
        self.partner = partner_client
        self.recorder = recorder
        self.archiver = archiver
        self.normalizer = normalizer or RequestNormalizer()
        self._routes: Dict[str, ActionHandler] = {
            "calc": self._handle_calc,
            "pay": self._handle_pay,
            "sample": self._handle_sample,
            "pdf": self._handle_pdf,
        }

    @property
    def actions(self):
        return tuple(self._routes)

    async def dispatch(self, body: Dict[str, Any]) -> HandlerResponse:
        invocation_id = uuid4().hex[:12]
        action = body.get("action")
        route = self._routes.get(action) if isinstance(action, str) else None
        if route is None:
            logger.warning("[%s] Unknown action %r", invocation_id, action)
            return json_response(400, {"error": "Unknown action"})

        logger.info("[%s] Dispatching action=%s", invocation_id, action)
        try:
            response = await route(invocation_id, body)
        except OrchestratorError as exc:
            logger.error(
                "[%s] action=%s failed: %s %s details=%s",
                invocation_id, action, exc.code, exc.message, exc.details,
                exc_info=exc.http_status >= 500,
            )
            return error_response(exc)
        except Exception as exc:
            logger.exception("[%s] Internal error in action=%s", invocation_id, action)
            return json_response(500, {"error": str(exc) or type(exc).__name__, "category": "internal_error"})
        self._transition(invocation_id, "Responded", status=response.status_code)
        return response

    def _transition(self, invocation_id: str, state: str, **context: Any) -> None:
        logger.info("[%s] state=%s %s", invocation_id, state, context or "")

    async def _partner_token(self, invocation_id: str) -> str:
        try:
            token = await self.partner_tokens.get_token()
        except OrchestratorError:
            raise
        except Exception as exc:
            raise AuthError(f"Partner authentication failed: {exc}") from exc
        self._transition(invocation_id, "TokenAcquired")
        return token

    # ------------------------------------------------------------------ #
    # Actions
    # ------------------------------------------------------------------ #
    async def _handle_calc(self, invocation_id: str, body: Dict[str, Any]) -> HandlerResponse:
        self.partner_tokens.check_config()
        self.recorder.check_config()
        await self.recorder.prepare()
        token = await self._partner_token(invocation_id)
        request = self.normalizer.build(body)

        with self.recorder.session() as session:
            quote = await self.partner.quote(token, request)
            self._transition(invocation_id, "Quoted", premium=quote.premium, draft_id=quote.draft_id)
            self.recorder.record_quote(session, request, quote)

        return json_response(200, {
            "premium": quote.premium,
            "requestId": quote.draft_id,
            "covers": quote.covers,
        })

    async def _handle_pay(self, invocation_id: str, body: Dict[str, Any]) -> HandlerResponse:
        self.partner_tokens.check_config()
        self.recorder.check_config()
        await self.recorder.prepare()
        token = await self._partner_token(invocation_id)
        request = self.normalizer.build(body)

        with self.recorder.session() as session:
            policy = await self.partner.issue_policy(token, request)
            self._transition(invocation_id, "Issued", policy_number=policy.policy_number)
            payment = await self.partner.pay_installment(
                token,
                policy.policy_number,
                FIRST_INSTALLMENT,
                InstallmentPayment(
                    amount=policy.premium,
                    paymentType=PAYMENT_TYPE_CARD,
                    successUrl=body.get("successUrl"),
                    failUrl=body.get("failUrl"),
                ),
            )
            self._transition(invocation_id, "Issued+Paid", policy_number=policy.policy_number)
            self.recorder.record_payment(session, request, policy, payment, body.get("id"))

        return json_response(200, {
            "paymentLink": payment.payment_link,
            "policyNumber": policy.policy_number,
            "premium": policy.premium,
            "id": body.get("id"),
        })

    async def _handle_sample(self, invocation_id: str, body: Dict[str, Any]) -> HandlerResponse:
        self.partner_tokens.check_config()
        self.archiver.check_config()
        token = await self._partner_token(invocation_id)
        request = self.normalizer.build(body)

        policy = await self.partner.issue_policy(token, request)
        self._transition(invocation_id, "Issued", policy_number=policy.policy_number)
        document = await self.partner.fetch_document(token, policy.policy_number, DocumentType.POLICY)
        archived = self.archiver.archive(policy.policy_number, document.policy_pdf)
        self._transition(invocation_id, "Issued+Archived", key=archived.key)

        return json_response(200, {
            "policyNumber": policy.policy_number,
            "premium": policy.premium,
            "pdfUrl": archived.url,
            "expiresAt": archived.expires_at.isoformat(),
        })

    async def _handle_pdf(self, invocation_id: str, body: Dict[str, Any]) -> HandlerResponse:
        policy_number = body.get("policy")
        if not policy_number:
            return json_response(400, {"error": "policy missing"})

        self.partner_tokens.check_config()
        token = await self._partner_token(invocation_id)
        content = await self.partner.fetch_legacy_pdf(token, str(policy_number))
        return pdf_response(str(policy_number), content)

    # ------------------------------------------------------------------ #
    # Path-based document download
    # ------------------------------------------------------------------ #
    async def download_policy(self, policy_number: str) -> HandlerResponse:
        invocation_id = uuid4().hex[:12]
        if not policy_number:
            return json_response(400, {"error": "Policy number is required"})

        logger.info("[%s] Fetching policy document for %s", invocation_id, policy_number)
        try:
            self.partner_tokens.check_config()
            token = await self._partner_token(invocation_id)
            document = await self.partner.fetch_document(token, policy_number, DocumentType.POLICY)
            if not document.policy_pdf:
                raise DocumentMissingError("PDF not found", operation="fetch_document")
            try:
                content = base64.b64decode(document.policy_pdf, validate=True)
            except (binascii.Error, ValueError) as exc:
                raise DocumentMissingError("PDF not found", operation="fetch_document") from exc
        except DocumentMissingError:
            logger.warning("[%s] No document returned for policy %s", invocation_id, policy_number)
            return json_response(404, {"error": "PDF not found"})
        except Exception as exc:
            logger.exception("[%s] Policy document download failed for %s", invocation_id, policy_number)
            message = exc.message if isinstance(exc, OrchestratorError) else str(exc)
            return json_response(500, {"error": message or type(exc).__name__})

        self._transition(invocation_id, "Responded", status=200)
        return pdf_response(policy_number, content, quoted_filename=False)
