"""Pytest fixtures for the orchestrator tests."""

import copy

import pytest

from src.api.dispatcher import ActionDispatcher
from src.database.postgres import PostgresDB
from src.database.recorder import TransactionRecorder
from src.integrations.clients.mocks.object_storage import InMemoryS3Client
from src.integrations.clients.mocks.partner_api import MockPartnerApiClient, MockPartnerTokenProvider
from src.storage.object_storage import DocumentArchiver

CALC_BODY = {
    "action": "calc",
    "startDate": "2025-01-01",
    "endDate": "2026-01-01",
    "policyHolder": {
        "person": {"firstName": "A", "lastName": "B", "birthDate": "1990-01-01"},
        "address": "x",
        "phone": "+70000000000",
        "email": "a@b.c",
    },
    "insuredObject": {
        "covers": [{"sumInsured": 100000}],
        "insureds": [{"person": {"firstName": "A", "lastName": "B", "birthDate": "1990-01-01"}}],
    },
}


@pytest.fixture
def calc_body():
    return copy.deepcopy(CALC_BODY)


@pytest.fixture
def db():
    """In-memory PostgresDB stub for tests."""
    return PostgresDB()


@pytest.fixture
def recorder(db):
    return TransactionRecorder(db)


@pytest.fixture
def partner():
    return MockPartnerApiClient()


@pytest.fixture
def tokens():
    return MockPartnerTokenProvider()


@pytest.fixture
def s3_client():
    return InMemoryS3Client()


@pytest.fixture
def archiver(s3_client):
    return DocumentArchiver(client=s3_client)


@pytest.fixture
def dispatcher(tokens, partner, recorder, archiver):
    return ActionDispatcher(
        partner_tokens=tokens,
        partner_client=partner,
        recorder=recorder,
        archiver=archiver,
    )
