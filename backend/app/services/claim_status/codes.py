"""
Payer 277 claim status codes and their mapping onto ClaimStatus.

The table is static: every known payer code maps to exactly one internal
status. Codes missing from the table fall back to ``UNKNOWN_CODE_STATUS`` (under_review)
and the raw code is kept on the history entry.
"""
from enum import Enum
from typing import Optional, Tuple, Union

from app.db.models.claim import ClaimStatus


class PayerStatusCode(str, Enum):
    # Acknowledgment / forwarded
    ACK_FORWARDED = "1"
    ACK_RECEIPT = "2"
    ACK_ACCEPTED = "3"
    ACK_REJECTED = "4"
    # Financial
    FINALIZED_PAYMENT = "5"
    FINALIZED_DENIAL = "6"
    FINALIZED_PARTIAL_PAYMENT = "7"
    # Status
    STATUS_PENDING = "8"
    STATUS_FINALIZED = "9"
    # Detail codes
    ACCEPTED_FOR_PROCESSING = "10"
    PENDING_AWAITING_INFORMATION = "11"
    PENDING_UNDER_REVIEW = "12"
    PENDING_PRICING = "13"
    PENDING_COORDINATION_OF_BENEFITS = "14"
    SUSPENDED_AWAITING_PROVIDER = "15"
    SUSPENDED_INVESTIGATION = "16"
    SUSPENDED_MEDICAL_DIRECTOR = "17"
    PAID_FULL = "18"
    PAID_PARTIAL = "19"
    DENIED_NOT_COVERED = "20"
    DENIED_PRIOR_AUTH_REQUIRED = "21"
    DENIED_SERVICE_NOT_COVERED = "22"
    DENIED_TIMELY_FILING = "23"
    DENIED_DUPLICATE = "24"
    PENDED_INFORMATION_REQUESTED = "25"
    PROCESSED_AWAITING_PAYMENT = "26"
    PROCESSED_PAYMENT_ISSUED = "27"


STATUS_CODE_DESCRIPTIONS = {
    PayerStatusCode.ACK_FORWARDED: "Acknowledgement/Forwarded",
    PayerStatusCode.ACK_RECEIPT: "Acknowledgement/Receipt",
    PayerStatusCode.ACK_ACCEPTED: "Acknowledgement/Accepted",
    PayerStatusCode.ACK_REJECTED: "Acknowledgement/Rejected",
    PayerStatusCode.FINALIZED_PAYMENT: "Finalized/Payment",
    PayerStatusCode.FINALIZED_DENIAL: "Finalized/Denial",
    PayerStatusCode.FINALIZED_PARTIAL_PAYMENT: "Finalized/Partial Payment",
    PayerStatusCode.STATUS_PENDING: "Status/Pending",
    PayerStatusCode.STATUS_FINALIZED: "Status/Finalized",
    PayerStatusCode.ACCEPTED_FOR_PROCESSING: "Accepted for Processing",
    PayerStatusCode.PENDING_AWAITING_INFORMATION: "Pending: Awaiting Information",
    PayerStatusCode.PENDING_UNDER_REVIEW: "Pending: Under Review",
    PayerStatusCode.PENDING_PRICING: "Pending: Pricing",
    PayerStatusCode.PENDING_COORDINATION_OF_BENEFITS: "Pending: Coordination of Benefits",
    PayerStatusCode.SUSPENDED_AWAITING_PROVIDER: "Suspended: Awaiting Information from Provider",
    PayerStatusCode.SUSPENDED_INVESTIGATION: "Suspended: Under Investigation",
    PayerStatusCode.SUSPENDED_MEDICAL_DIRECTOR: "Suspended: Review by Medical Director",
    PayerStatusCode.PAID_FULL: "Paid: Full Payment",
    PayerStatusCode.PAID_PARTIAL: "Paid: Partial Payment",
    PayerStatusCode.DENIED_NOT_COVERED: "Denied: Patient Not Covered",
    PayerStatusCode.DENIED_PRIOR_AUTH_REQUIRED: "Denied: Prior Authorization Required",
    PayerStatusCode.DENIED_SERVICE_NOT_COVERED: "Denied: Service Not Covered",
    PayerStatusCode.DENIED_TIMELY_FILING: "Denied: Timely Filing Limit",
    PayerStatusCode.DENIED_DUPLICATE: "Denied: Duplicate Claim",
    PayerStatusCode.PENDED_INFORMATION_REQUESTED: "Pended: Additional Information Requested",
    PayerStatusCode.PROCESSED_AWAITING_PAYMENT: "Processed: Awaiting Payment",
    PayerStatusCode.PROCESSED_PAYMENT_ISSUED: "Processed: Payment Issued",
}


STATUS_CODE_MAP = {
    PayerStatusCode.ACK_FORWARDED: ClaimStatus.SUBMITTED,
    PayerStatusCode.ACK_RECEIPT: ClaimStatus.ACKNOWLEDGED,
    PayerStatusCode.ACK_ACCEPTED: ClaimStatus.ACKNOWLEDGED,
    PayerStatusCode.ACK_REJECTED: ClaimStatus.REJECTED,
    PayerStatusCode.FINALIZED_PAYMENT: ClaimStatus.PAID,
    PayerStatusCode.FINALIZED_DENIAL: ClaimStatus.DENIED,
    PayerStatusCode.FINALIZED_PARTIAL_PAYMENT: ClaimStatus.PARTIALLY_PAID,
    PayerStatusCode.STATUS_PENDING: ClaimStatus.PENDING,
    PayerStatusCode.STATUS_FINALIZED: ClaimStatus.CLOSED,
    PayerStatusCode.ACCEPTED_FOR_PROCESSING: ClaimStatus.ACKNOWLEDGED,
    PayerStatusCode.PENDING_AWAITING_INFORMATION: ClaimStatus.PENDED,
    PayerStatusCode.PENDING_UNDER_REVIEW: ClaimStatus.UNDER_REVIEW,
    PayerStatusCode.PENDING_PRICING: ClaimStatus.PENDING,
    PayerStatusCode.PENDING_COORDINATION_OF_BENEFITS: ClaimStatus.PENDING,
    PayerStatusCode.SUSPENDED_AWAITING_PROVIDER: ClaimStatus.PENDED,
    PayerStatusCode.SUSPENDED_INVESTIGATION: ClaimStatus.UNDER_REVIEW,
    PayerStatusCode.SUSPENDED_MEDICAL_DIRECTOR: ClaimStatus.UNDER_REVIEW,
    PayerStatusCode.PAID_FULL: ClaimStatus.PAID,
    PayerStatusCode.PAID_PARTIAL: ClaimStatus.PARTIALLY_PAID,
    PayerStatusCode.DENIED_NOT_COVERED: ClaimStatus.DENIED,
    PayerStatusCode.DENIED_PRIOR_AUTH_REQUIRED: ClaimStatus.DENIED,
    PayerStatusCode.DENIED_SERVICE_NOT_COVERED: ClaimStatus.DENIED,
    PayerStatusCode.DENIED_TIMELY_FILING: ClaimStatus.DENIED,
    PayerStatusCode.DENIED_DUPLICATE: ClaimStatus.REJECTED,
    PayerStatusCode.PENDED_INFORMATION_REQUESTED: ClaimStatus.PENDED,
    PayerStatusCode.PROCESSED_AWAITING_PAYMENT: ClaimStatus.APPROVED_FOR_PAYMENT,
    PayerStatusCode.PROCESSED_PAYMENT_ISSUED: ClaimStatus.PAID,
}

UNKNOWN_CODE_STATUS = ClaimStatus.UNDER_REVIEW


def normalize_status_code(code: Union[str, int, None]) -> str:
    """Payers send codes as ints or zero-padded strings; compare on the bare number."""
    if code is None:
        return ""
    text = str(code).strip()
    if text.isdigit():
        text = str(int(text))
    return text


def lookup_status_code(code: Union[str, int, None]) -> Optional[PayerStatusCode]:
    try:
        return PayerStatusCode(normalize_status_code(code))
    except ValueError:
        return None


def describe_status_code(code: Union[str, int, None]) -> Optional[str]:
    known = lookup_status_code(code)
    return STATUS_CODE_DESCRIPTIONS[known] if known else None


def map_277_status(code: Union[str, int, None]) -> Tuple[ClaimStatus, Optional[PayerStatusCode]]:
    """Map a payer status code to (internal status, known code or None)."""
    known = lookup_status_code(code)
    if known is None:
        return UNKNOWN_CODE_STATUS, None
    return STATUS_CODE_MAP[known], known
