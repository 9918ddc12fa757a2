"""End-to-end tests of the action dispatcher with mocked collaborators."""

import base64
import json

import httpx
import pytest

from src.api.dispatcher import ActionDispatcher
from src.database.postgres import PostgresDB
from src.database.postgres_real import PostgresDB as SqlAlchemyDB
from src.database.recorder import TransactionRecorder
from src.errors import ConfigError, UpstreamError
from src.integrations.clients.mocks.partner_api import SAMPLE_PDF, MockPartnerApiClient
from src.integrations.credentials import InfraTokenProvider, PartnerTokenProvider
from src.storage.object_storage import DocumentArchiver


def _body(response):
    return json.loads(response.body)


class FailingTokens:
    def __init__(self, exc):
        self.exc = exc

    def check_config(self):
        return None

    async def get_token(self):
        raise self.exc


@pytest.mark.asyncio
async def test_calc_end_to_end(calc_body, db, recorder, archiver, tokens):
    partner = MockPartnerApiClient(quote_response={
        "premium": 1234.5,
        "draftId": "D1",
        "insuredObject": {"covers": [{"sumInsured": 100000}]},
    })
    dispatcher = ActionDispatcher(partner_tokens=tokens, partner_client=partner, recorder=recorder, archiver=archiver)

    response = await dispatcher.dispatch(calc_body)

    assert response.status_code == 200
    assert _body(response) == {"premium": 1234.5, "requestId": "D1", "covers": [{"sumInsured": 100000}]}
    assert len(db.calculations) == 1
    assert db.calculations[0].price == 1234.5
    sent = partner.calls[0][1]["request"]
    assert sent["policyHolder"]["person"]["type"] == "individual"
    assert sent["issueDate"].endswith("T23:59:59+03:00")
    assert db.sessions_opened == db.sessions_closed == 1


@pytest.mark.asyncio
async def test_unknown_action_makes_no_calls(dispatcher, partner, tokens, db):
    response = await dispatcher.dispatch({"action": "frobnicate"})

    assert response.status_code == 400
    assert _body(response) == {"error": "Unknown action"}
    assert partner.calls == []
    assert tokens.calls == 0
    assert db.calculations == [] and db.payments == []
    assert db.sessions_opened == 0


@pytest.mark.asyncio
async def test_pdf_without_policy_is_client_error(dispatcher, partner, tokens):
    response = await dispatcher.dispatch({"action": "pdf"})

    assert response.status_code == 400
    assert _body(response) == {"error": "policy missing"}
    assert partner.calls == []
    assert tokens.calls == 0


@pytest.mark.asyncio
async def test_pdf_returns_legacy_document(dispatcher, partner):
    response = await dispatcher.dispatch({"action": "pdf", "policy": "P-9"})

    assert response.status_code == 200
    assert response.headers["Content-Type"] == "application/pdf"
    assert response.headers["Content-Disposition"] == 'attachment; filename="P-9.pdf"'
    assert response.is_base64_encoded is True
    assert base64.b64decode(response.body) == SAMPLE_PDF
    assert [op for op, _ in partner.calls] == ["fetch_legacy_pdf"]


@pytest.mark.asyncio
async def test_pay_issues_pays_and_records(calc_body, dispatcher, partner, db):
    calc_body.update(action="pay", id="order-42", successUrl="https://ok", failUrl="https://fail")
    response = await dispatcher.dispatch(calc_body)

    assert response.status_code == 200
    body = _body(response)
    assert body["policyNumber"] == "MOCK-000001"
    assert body["paymentLink"] == "https://pay.example.test/MOCK-000001/1"
    assert body["premium"] == 1200.0
    assert body["id"] == "order-42"

    assert [op for op, _ in partner.calls] == ["issue_policy", "pay_installment"]
    payment_call = partner.calls[1][1]
    assert payment_call["installment_index"] == 1
    assert payment_call["payment"] == {
        "amount": 1200.0,
        "paymentType": "CARD",
        "successUrl": "https://ok",
        "failUrl": "https://fail",
    }
    assert len(db.payments) == 1
    assert db.payments[0].ext_id == "order-42"


@pytest.mark.asyncio
async def test_sample_issues_and_archives(calc_body, dispatcher, partner, s3_client, db):
    calc_body["action"] = "sample"
    response = await dispatcher.dispatch(calc_body)

    assert response.status_code == 200
    body = _body(response)
    assert body["policyNumber"] == "MOCK-000001"
    assert body["pdfUrl"].startswith("memory://your-bucket-name/policy-samples/MOCK-000001.pdf")
    assert "expiresAt" in body
    assert [op for op, _ in partner.calls] == ["issue_policy", "fetch_document"]
    assert partner.calls[1][1]["doc_type"] == "POLICY"
    assert s3_client.objects["your-bucket-name/policy-samples/MOCK-000001.pdf"]["body"] == SAMPLE_PDF
    assert db.sessions_opened == 0


@pytest.mark.asyncio
async def test_sample_without_document_writes_nothing(calc_body, tokens, recorder, archiver, s3_client):
    partner = MockPartnerApiClient(document_response={})
    dispatcher = ActionDispatcher(partner_tokens=tokens, partner_client=partner, recorder=recorder, archiver=archiver)
    calc_body["action"] = "sample"

    response = await dispatcher.dispatch(calc_body)

    assert response.status_code == 502
    assert _body(response)["code"] == "DOCUMENT_MISSING"
    assert s3_client.objects == {}


@pytest.mark.asyncio
async def test_calc_persistence_failure_is_reported(calc_body, tokens, partner, archiver):
    db = PostgresDB(fail_writes=True)
    dispatcher = ActionDispatcher(
        partner_tokens=tokens, partner_client=partner, recorder=TransactionRecorder(db), archiver=archiver
    )

    response = await dispatcher.dispatch(calc_body)

    assert response.status_code == 500
    assert _body(response)["code"] == "PERSISTENCE_FAILED"
    # the partner already answered, the audit write is what failed
    assert [op for op, _ in partner.calls] == ["quote"]
    assert db.sessions_closed == 1


@pytest.mark.asyncio
async def test_upstream_failure_writes_no_record(calc_body, tokens, recorder, archiver, db):
    partner = MockPartnerApiClient(fail_on={
        "quote": UpstreamError("Partner quote failed with status 500", status_code=500, body={"error": "down"}),
    })
    dispatcher = ActionDispatcher(partner_tokens=tokens, partner_client=partner, recorder=recorder, archiver=archiver)

    response = await dispatcher.dispatch(calc_body)

    assert response.status_code == 502
    body = _body(response)
    assert body["category"] == "upstream_error"
    assert body["details"]["upstream_status"] == 500
    assert db.calculations == []
    assert db.sessions_opened == db.sessions_closed == 1


@pytest.mark.asyncio
async def test_payment_failure_after_issue_is_upstream_error(calc_body, tokens, recorder, archiver, db):
    partner = MockPartnerApiClient(fail_on={"pay_installment": UpstreamError("payment rejected", status_code=409)})
    dispatcher = ActionDispatcher(partner_tokens=tokens, partner_client=partner, recorder=recorder, archiver=archiver)
    calc_body["action"] = "pay"

    response = await dispatcher.dispatch(calc_body)

    assert response.status_code == 502
    assert [op for op, _ in partner.calls] == ["issue_policy", "pay_installment"]
    assert db.payments == []


@pytest.mark.asyncio
async def test_missing_required_input_is_client_error(calc_body, dispatcher, partner):
    del calc_body["policyHolder"]
    response = await dispatcher.dispatch(calc_body)

    assert response.status_code == 400
    body = _body(response)
    assert body["category"] == "client_error"
    assert body["details"]["fields"] == ["policyHolder.person"]
    assert partner.calls == []


@pytest.mark.asyncio
async def test_partner_auth_failure_maps_to_auth_error(calc_body, partner, recorder, archiver):
    request = httpx.Request("POST", "https://services-stg.vsk.ru/ship/token")
    dispatcher = ActionDispatcher(
        partner_tokens=FailingTokens(httpx.ConnectError("refused", request=request)),
        partner_client=partner,
        recorder=recorder,
        archiver=archiver,
    )

    response = await dispatcher.dispatch(calc_body)

    assert response.status_code == 502
    assert _body(response)["code"] == "AUTH_FAILED"
    assert partner.calls == []


@pytest.mark.asyncio
async def test_missing_configuration_is_internal_error(calc_body, partner, recorder, archiver):
    dispatcher = ActionDispatcher(
        partner_tokens=FailingTokens(ConfigError("Missing env: VSK_CLIENT_ID", missing=["VSK_CLIENT_ID"])),
        partner_client=partner,
        recorder=recorder,
        archiver=archiver,
    )

    response = await dispatcher.dispatch(calc_body)

    assert response.status_code == 500
    assert _body(response)["details"] == {"missing": ["VSK_CLIENT_ID"]}


@pytest.mark.asyncio
async def test_unexpected_error_is_generic_500(calc_body, tokens, recorder, archiver):
    class Broken(MockPartnerApiClient):
        async def quote(self, token, request):
            raise KeyError("premium")

    dispatcher = ActionDispatcher(partner_tokens=tokens, partner_client=Broken(), recorder=recorder, archiver=archiver)
    response = await dispatcher.dispatch(calc_body)

    assert response.status_code == 500
    assert _body(response)["category"] == "internal_error"


@pytest.mark.asyncio
async def test_download_policy_returns_pdf(dispatcher):
    response = await dispatcher.download_policy("P-3")

    assert response.status_code == 200
    assert response.headers["Content-Disposition"] == "attachment; filename=P-3.pdf"
    assert base64.b64decode(response.body) == SAMPLE_PDF


@pytest.mark.asyncio
async def test_download_policy_not_found(tokens, recorder, archiver):
    partner = MockPartnerApiClient(document_response={"policyPDF": None})
    dispatcher = ActionDispatcher(partner_tokens=tokens, partner_client=partner, recorder=recorder, archiver=archiver)

    response = await dispatcher.download_policy("P-3")

    assert response.status_code == 404
    assert _body(response) == {"error": "PDF not found"}


@pytest.mark.asyncio
async def test_download_policy_upstream_failure_is_500(tokens, recorder, archiver):
    partner = MockPartnerApiClient(fail_on={"fetch_document": UpstreamError("Partner fetch_document failed")})
    dispatcher = ActionDispatcher(partner_tokens=tokens, partner_client=partner, recorder=recorder, archiver=archiver)

    response = await dispatcher.download_policy("P-3")

    assert response.status_code == 500
    assert _body(response) == {"error": "Partner fetch_document failed"}


@pytest.mark.asyncio
@pytest.mark.parametrize("action", ["calc", "pay"])
async def test_missing_partner_credentials_fail_before_metadata_call(calc_body, partner, archiver, action):
    metadata_calls = []

    def metadata(request):
        metadata_calls.append(request)
        return httpx.Response(200, json={"access_token": "iam"})

    store = SqlAlchemyDB(
        token_provider=InfraTokenProvider(transport=httpx.MockTransport(metadata)),
        environ={"DB_ENDPOINT": "db.internal:6432", "DB_NAME": "audit"},
    )
    dispatcher = ActionDispatcher(
        partner_tokens=PartnerTokenProvider(environ={}),
        partner_client=partner,
        recorder=TransactionRecorder(store),
        archiver=archiver,
    )
    calc_body["action"] = action

    response = await dispatcher.dispatch(calc_body)

    assert response.status_code == 500
    assert _body(response)["details"] == {"missing": ["VSK_CLIENT_ID", "VSK_CLIENT_SECRET"]}
    assert metadata_calls == []
    assert partner.calls == []


@pytest.mark.asyncio
async def test_sample_checks_partner_credentials_before_storage(calc_body, partner, recorder):
    dispatcher = ActionDispatcher(
        partner_tokens=PartnerTokenProvider(environ={}),
        partner_client=partner,
        recorder=recorder,
        archiver=DocumentArchiver(environ={}),
    )
    calc_body["action"] = "sample"

    response = await dispatcher.dispatch(calc_body)

    assert response.status_code == 500
    assert _body(response)["details"] == {"missing": ["VSK_CLIENT_ID", "VSK_CLIENT_SECRET"]}
    assert partner.calls == []
