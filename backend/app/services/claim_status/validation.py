"""
Payload access and per-status field validation.

Payload keys are snake_case; the camelCase names used on the wire by
existing clients (``paymentAmount``, ``denialReason``...) are accepted too.
"""
from datetime import date, datetime, timedelta
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping, Optional

from app.core.time_utils import parse_date, parse_datetime
from app.db.models.claim import StatusSource
from app.services.claim_status.exceptions import ClaimValidationError

# Upper bound of a Numeric(12, 2) column
MAX_AMOUNT = Decimal("10000000000")

PAYLOAD_ALIASES = {
    "reference_number": "referenceNumber",
    "status_code": "statusCode",
    "status_description": "statusDescription",
    "payment_amount": "paymentAmount",
    "payment_date": "paymentDate",
    "check_number": "checkNumber",
    "era_number": "eraNumber",
    "denial_reason": "denialReason",
    "denial_code": "denialCode",
    "is_appealable": "isAppealable",
    "pend_reason": "pendReason",
    "information_requested": "informationRequested",
    "response_deadline": "responseDeadline",
    "claim_number": "claimNumber",
    "claim_id": "claimId",
    "trace_number": "traceNumber",
}


def payload_value(payload: Mapping[str, Any], key: str, default: Any = None) -> Any:
    """Read ``key`` (or its camelCase alias) from ``payload``."""
    value = payload.get(key)
    if value is None and key in PAYLOAD_ALIASES:
        value = payload.get(PAYLOAD_ALIASES[key])
    return default if value is None else value


def optional_text(payload: Mapping[str, Any], key: str) -> Optional[str]:
    value = payload_value(payload, key)
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def require_text(payload: Mapping[str, Any], key: str, status: str) -> str:
    text = optional_text(payload, key)
    if text is None:
        raise ClaimValidationError(key, f"{key} is required for status '{status}'")
    return text


def require_amount(payload: Mapping[str, Any], key: str, status: str) -> Decimal:
    """Non-negative, finite monetary amount."""
    value = payload_value(payload, key)
    if value is None or value == "":
        raise ClaimValidationError(key, f"{key} is required for status '{status}'")
    if isinstance(value, bool):
        raise ClaimValidationError(key, f"{key} must be a number")
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        raise ClaimValidationError(key, f"{key} must be a number")
    if not amount.is_finite():
        raise ClaimValidationError(key, f"{key} must be a number")
    if amount < 0:
        raise ClaimValidationError(key, f"{key} cannot be negative")
    if amount >= MAX_AMOUNT:
        raise ClaimValidationError(key, f"{key} must be less than {MAX_AMOUNT}")
    try:
        return amount.quantize(Decimal("0.01"))
    except InvalidOperation:
        raise ClaimValidationError(key, f"{key} must be a number")


def _coerce_date(key: str, value: Any) -> date:
    try:
        parsed = parse_date(value)
    except (ValueError, TypeError, AttributeError):
        raise ClaimValidationError(key, f"{key} must be an ISO-8601 date")
    if parsed is None:
        raise ClaimValidationError(key, f"{key} must be an ISO-8601 date")
    return parsed


def require_date(payload: Mapping[str, Any], key: str, status: str) -> date:
    value = payload_value(payload, key)
    if value is None or value == "":
        raise ClaimValidationError(key, f"{key} is required for status '{status}'")
    return _coerce_date(key, value)


def optional_date(payload: Mapping[str, Any], key: str) -> Optional[date]:
    value = payload_value(payload, key)
    if value is None or value == "":
        return None
    return _coerce_date(key, value)


def optional_datetime(key: str, value: Any) -> Optional[datetime]:
    """Parse a query bound (date or datetime)."""
    if value is None or value == "":
        return None
    try:
        return parse_datetime(value)
    except (ValueError, TypeError, AttributeError):
        raise ClaimValidationError(key, f"{key} must be an ISO-8601 date")


def optional_end_datetime(key: str, value: Any) -> Optional[datetime]:
    """Parse an inclusive upper bound; a bare date covers the whole day."""
    end = optional_datetime(key, value)
    if end is None:
        return None
    is_bare_date = (
        isinstance(value, date) and not isinstance(value, datetime)
        or isinstance(value, str) and len(value.strip()) == 10
    )
    if is_bare_date:
        end = end + timedelta(days=1) - timedelta(microseconds=1)
    return end


def parse_source(payload: Mapping[str, Any]) -> StatusSource:
    value = payload_value(payload, "source", StatusSource.MANUAL)
    try:
        return StatusSource(value)
    except ValueError:
        allowed = ", ".join(s.value for s in StatusSource)
        raise ClaimValidationError("source", f"source must be one of: {allowed}")


def parse_information_requested(payload: Mapping[str, Any]) -> list[str]:
    value = payload_value(payload, "information_requested")
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if not isinstance(value, (list, tuple)):
        raise ClaimValidationError(
            "information_requested", "information_requested must be a list"
        )
    return [str(item) for item in value]


def parse_appealable(payload: Mapping[str, Any]) -> bool:
    """Denials are appealable unless the payer says otherwise."""
    return payload_value(payload, "is_appealable") is not False
