"""
Accident request normalizer.

Turns the loosely shaped client payload into the canonical body the partner
API expects for quotes and policy issuance:
- issueDate is always derived server-side ("today 23:59:59" in the product's
  civil timezone), whatever the client sent
- product falls back to the default product code
- every person is tagged with the subject-type discriminator
- sumInsured is coerced to a number, with the minimum tier as fallback

Building is pure (no I/O). Structural presence of the nested objects is
checked first and reported as MissingFieldError. Content validation is a
separate, pluggable step that is off unless enabled in configuration.
"""

from __future__ import annotations

import logging
import math
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence
from zoneinfo import ZoneInfo

from src.errors import ClientInputError, MissingFieldError, ValidationFailedError
from src.utils.config_loader import NormalizerConfig

logger = logging.getLogger(__name__)

Validator = Callable[[Dict[str, Any]], List[str]]

_UNSET = object()


def _as_number(value: Any) -> Optional[float]:
    if value is None or isinstance(value, (list, dict)):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def coerce_sum_insured(value: Any = _UNSET, *, config: Optional[NormalizerConfig] = None) -> int | float:
    """
    Coerce a client supplied sumInsured to a number.

    Anything that does not yield a non-zero number (absent, null, "abc", 0)
    becomes the minimum tier. Zero is deliberately treated as "not provided";
    set normalizer.zero_sum_insured to "reject" to answer 400 instead.
    """
    cfg = config or NormalizerConfig()
    number = None if value is _UNSET else _as_number(value)

    if number == 0 and cfg.zero_sum_insured == "reject":
        raise ClientInputError("sumInsured must not be zero", details={"sumInsured": value})
    if not number:
        return cfg.minimum_sum_insured
    return int(number) if number.is_integer() else number


def issue_date_for(now: Optional[datetime] = None, *, config: Optional[NormalizerConfig] = None) -> str:
    cfg = config or NormalizerConfig()
    moment = now or datetime.now(timezone.utc)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    today = moment.astimezone(ZoneInfo(cfg.timezone)).date().isoformat()
    return f"{today}T{cfg.end_of_day}{cfg.utc_offset}"


def missing_required_fields(params: Dict[str, Any]) -> List[str]:
    missing: List[str] = []
    holder = params.get("policyHolder")
    if not isinstance(holder, dict) or not isinstance(holder.get("person"), dict):
        missing.append("policyHolder.person")

    insured_object = params.get("insuredObject")
    if not isinstance(insured_object, dict):
        insured_object = {}
    covers = insured_object.get("covers")
    if not isinstance(covers, list) or not covers:
        missing.append("insuredObject.covers")
    insureds = insured_object.get("insureds")
    if not isinstance(insureds, list) or not insureds:
        missing.append("insuredObject.insureds")
    return missing


def validate_accident_input(params: Dict[str, Any], *, config: Optional[NormalizerConfig] = None) -> List[str]:
    """Field-level checks for the accident product. Returns a list of error messages."""
    cfg = config or NormalizerConfig()
    errors: List[str] = []

    product = params.get("product")
    if product is not None and not (isinstance(product, dict) and product.get("code")):
        errors.append("product.code is required")
    if not params.get("startDate"):
        errors.append("startDate is required")
    if not params.get("endDate"):
        errors.append("endDate is required")

    holder = (params.get("policyHolder") or {}).get("person")
    if not isinstance(holder, dict):
        errors.append("policyHolder.person is required")
    else:
        for key in ("firstName", "lastName", "birthDate"):
            if not holder.get(key):
                errors.append(f"policyHolder.person.{key} is required")

    insured_object = params.get("insuredObject") or {}
    insureds = insured_object.get("insureds") or [{}]
    insured = insureds[0].get("person") if isinstance(insureds[0], dict) else None
    if not isinstance(insured, dict):
        errors.append("insuredObject.insureds[0].person is required")
    else:
        for key in ("firstName", "lastName", "birthDate"):
            if not insured.get(key):
                errors.append(f"insuredObject.insureds[0].person.{key} is required")

    covers = insured_object.get("covers") or [{}]
    first_cover = covers[0] if isinstance(covers[0], dict) else {}
    if _as_number(first_cover.get("sumInsured")) not in set(cfg.sum_insured_tiers):
        errors.append(f"insuredObject.covers[0].sumInsured must be one of {cfg.sum_insured_tiers}")

    return errors


class RequestNormalizer:
    def __init__(
        self,
        config: Optional[NormalizerConfig] = None,
        *,
        validation_enabled: bool = False,
        validators: Optional[Sequence[Validator]] = None,
    ) -> None:
        self.config = config or NormalizerConfig()
        self.validation_enabled = validation_enabled
        if validators is None:
            validators = [lambda params: validate_accident_input(params, config=self.config)]
        self.validators = list(validators)

    def validate(self, params: Dict[str, Any]) -> None:
        if not self.validation_enabled:
            return
        errors: List[str] = []
        for validator in self.validators:
            errors.extend(validator(params))
        if errors:
            logger.warning("Accident input validation failed: %s", errors)
            raise ValidationFailedError(errors)

    def _tag_person(self, person: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        return {**(person or {}), "type": self.config.subject_type}

    def build(self, params: Dict[str, Any], *, now: Optional[datetime] = None) -> Dict[str, Any]:
        missing = missing_required_fields(params)
        if missing:
            raise MissingFieldError(missing)
        self.validate(params)

        holder = params["policyHolder"]
        insured_object = params["insuredObject"]
        covers = [
            {"sumInsured": coerce_sum_insured(
                cover.get("sumInsured") if isinstance(cover, dict) else None, config=self.config
            )}
            for cover in insured_object["covers"]
        ]
        insureds = [
            {
                "person": self._tag_person(insured.get("person") if isinstance(insured, dict) else None),
                "additionalFactors": insured.get("additionalFactors") if isinstance(insured, dict) else None,
            }
            for insured in insured_object["insureds"]
        ]

        return {
            "product": params.get("product") or {"code": self.config.default_product_code},
            "startDate": params.get("startDate"),
            "endDate": params.get("endDate"),
            "issueDate": issue_date_for(now, config=self.config),
            "policyHolder": {
                "person": self._tag_person(holder["person"]),
                "address": holder.get("address"),
                "phone": holder.get("phone"),
                "email": holder.get("email"),
            },
            "insuredObject": {"covers": covers, "insureds": insureds},
        }


def build_quote_request(params: Dict[str, Any], *, now: Optional[datetime] = None) -> Dict[str, Any]:
    """Build the partner request with default settings (validation disabled)."""
    return RequestNormalizer().build(params, now=now)
