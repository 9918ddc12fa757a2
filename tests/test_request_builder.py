"""Tests for the accident request normalizer."""

import copy
from datetime import datetime, timezone

import pytest

from src.errors import ClientInputError, MissingFieldError, ValidationFailedError
from src.integrations.policy.request_builder import (
    RequestNormalizer,
    build_quote_request,
    coerce_sum_insured,
    issue_date_for,
    validate_accident_input,
)
from src.utils.config_loader import NormalizerConfig


def test_issue_date_is_end_of_day_in_moscow():
    morning = datetime(2025, 3, 10, 6, 0, tzinfo=timezone.utc)
    evening = datetime(2025, 3, 10, 21, 30, tzinfo=timezone.utc)
    assert issue_date_for(morning) == "2025-03-10T23:59:59+03:00"
    # 21:30 UTC is already the next day in Moscow
    assert issue_date_for(evening) == "2025-03-11T23:59:59+03:00"


def test_issue_date_overrides_client_value(calc_body):
    calc_body["issueDate"] = "1999-01-01T00:00:00Z"
    now = datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)
    request = build_quote_request(calc_body, now=now)
    assert request["issueDate"] == "2025-01-01T23:59:59+03:00"


def test_build_is_pure(calc_body):
    snapshot = copy.deepcopy(calc_body)
    now = datetime(2025, 1, 1, 9, 0, tzinfo=timezone.utc)
    first = build_quote_request(calc_body, now=now)
    second = build_quote_request(calc_body, now=now)
    assert first == second
    assert calc_body == snapshot


def test_build_shapes_request(calc_body):
    calc_body["insuredObject"]["insureds"][0]["additionalFactors"] = {"sport": "ski"}
    request = build_quote_request(calc_body, now=datetime(2025, 1, 1, tzinfo=timezone.utc))

    assert request["product"] == {"code": "ACCIDENT"}
    assert request["startDate"] == "2025-01-01"
    assert request["endDate"] == "2026-01-01"
    assert request["policyHolder"]["person"] == {
        "firstName": "A",
        "lastName": "B",
        "birthDate": "1990-01-01",
        "type": "individual",
    }
    assert request["policyHolder"]["email"] == "a@b.c"
    assert request["insuredObject"]["covers"] == [{"sumInsured": 100000}]
    insured = request["insuredObject"]["insureds"][0]
    assert insured["person"]["type"] == "individual"
    assert insured["additionalFactors"] == {"sport": "ski"}
    assert "action" not in request


def test_subject_type_tag_wins_over_client_value(calc_body):
    calc_body["policyHolder"]["person"]["type"] = "legal"
    request = build_quote_request(calc_body)
    assert request["policyHolder"]["person"]["type"] == "individual"


def test_client_product_is_kept(calc_body):
    calc_body["product"] = {"code": "ACCIDENT_PLUS"}
    assert build_quote_request(calc_body)["product"] == {"code": "ACCIDENT_PLUS"}


def test_end_date_before_start_date_passes_through(calc_body):
    calc_body["startDate"], calc_body["endDate"] = "2026-01-01", "2025-01-01"
    request = build_quote_request(calc_body)
    assert (request["startDate"], request["endDate"]) == ("2026-01-01", "2025-01-01")


@pytest.mark.parametrize("value", [50000, 100000, 250000, 500000])
def test_sum_insured_tiers_pass_through(value):
    assert coerce_sum_insured(value) == value


@pytest.mark.parametrize("value", [0, None, "abc", "", [], float("nan")])
def test_sum_insured_falls_back_to_minimum_tier(value):
    # zero is treated as "not provided", same as absent
    assert coerce_sum_insured(value) == 50000


def test_sum_insured_absent_and_numeric_string():
    assert coerce_sum_insured() == 50000
    assert coerce_sum_insured("250000") == 250000


def test_sum_insured_zero_can_be_rejected():
    cfg = NormalizerConfig(zero_sum_insured="reject")
    with pytest.raises(ClientInputError):
        coerce_sum_insured(0, config=cfg)
    assert coerce_sum_insured(None, config=cfg) == 50000


def test_missing_cover_value_uses_minimum(calc_body):
    calc_body["insuredObject"]["covers"] = [{}, {"sumInsured": "abc"}]
    request = build_quote_request(calc_body)
    assert request["insuredObject"]["covers"] == [{"sumInsured": 50000}, {"sumInsured": 50000}]


@pytest.mark.parametrize(
    "mutate, missing",
    [
        (lambda b: b.pop("policyHolder"), ["policyHolder.person"]),
        (lambda b: b["policyHolder"].pop("person"), ["policyHolder.person"]),
        (lambda b: b["insuredObject"].update(covers=[]), ["insuredObject.covers"]),
        (lambda b: b["insuredObject"].pop("insureds"), ["insuredObject.insureds"]),
        (lambda b: b.pop("insuredObject"), ["insuredObject.covers", "insuredObject.insureds"]),
    ],
)
def test_missing_required_fields(calc_body, mutate, missing):
    mutate(calc_body)
    with pytest.raises(MissingFieldError) as excinfo:
        build_quote_request(calc_body)
    assert excinfo.value.fields == missing
    assert excinfo.value.http_status == 400


def test_validation_is_off_by_default(calc_body):
    calc_body["insuredObject"]["covers"] = [{"sumInsured": 123}]
    request = build_quote_request(calc_body)
    assert request["insuredObject"]["covers"] == [{"sumInsured": 123}]


def test_validation_step_when_enabled(calc_body):
    calc_body["insuredObject"]["covers"] = [{"sumInsured": 123}]
    del calc_body["policyHolder"]["person"]["birthDate"]
    normalizer = RequestNormalizer(validation_enabled=True)
    with pytest.raises(ValidationFailedError) as excinfo:
        normalizer.build(calc_body)
    errors = excinfo.value.errors
    assert "policyHolder.person.birthDate is required" in errors
    assert any("sumInsured" in e for e in errors)


def test_custom_validators_are_pluggable(calc_body):
    normalizer = RequestNormalizer(validation_enabled=True, validators=[lambda params: ["always wrong"]])
    with pytest.raises(ValidationFailedError) as excinfo:
        normalizer.build(calc_body)
    assert excinfo.value.errors == ["always wrong"]


def test_validate_accident_input_accepts_complete_input(calc_body):
    assert validate_accident_input(calc_body) == []


def test_tiers_and_defaults_come_from_configuration(calc_body):
    config = NormalizerConfig(
        minimum_sum_insured=75000,
        sum_insured_tiers=[75000, 150000],
        subject_type="person",
        default_product_code="ACCIDENT_PLUS",
    )
    calc_body["insuredObject"]["covers"] = [{"sumInsured": None}]

    request = RequestNormalizer(config).build(calc_body)

    assert request["insuredObject"]["covers"] == [{"sumInsured": 75000}]
    assert request["policyHolder"]["person"]["type"] == "person"
    assert request["product"] == {"code": "ACCIDENT_PLUS"}
    calc_body["insuredObject"]["covers"] = [{"sumInsured": 100000}]
    assert validate_accident_input(calc_body, config=config) == [
        "insuredObject.covers[0].sumInsured must be one of [75000, 150000]"
    ]
