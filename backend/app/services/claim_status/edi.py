"""
276 inquiry records and 277 response entry handling.

These are structured stand-ins for the X12 transactions; no X12 segments
are produced or parsed here.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Mapping, Optional

from app.db.models import Claim, ClaimStatus, StatusSource
from app.services.claim_status.codes import (
    STATUS_CODE_DESCRIPTIONS,
    PayerStatusCode,
    map_277_status,
)
from app.services.claim_status.states import DENIAL_STATUSES
from app.services.claim_status.validation import optional_text, payload_value

INQUIRY_TRANSACTION = "276"


def build_inquiry_record(claim: Claim) -> dict:
    """One claim's entry in a 276 status inquiry."""
    return {
        "claim_id": str(claim.claim_id),
        "claim_number": claim.claim_number,
        "current_status": claim.status.value,
        "patient": {
            "name": claim.patient_name,
            "member_id": claim.member_id,
        },
        "provider": {
            "id": claim.provider_id,
            "npi": claim.provider_npi,
            "name": claim.provider_name,
        },
        "payer": {
            "id": claim.payer_id,
            "name": claim.payer_name,
        },
        "service_date": claim.service_date.isoformat() if claim.service_date else None,
        "total_charges": float(claim.total_amount or 0),
        "submitted_date": claim.submitted_at.isoformat() if claim.submitted_at else None,
        "clearinghouse_claim_id": claim.clearinghouse_claim_id,
    }


def build_inquiry_envelope(records: list[dict], errors: list[dict], now: datetime) -> dict:
    return {
        "transaction_type": INQUIRY_TRANSACTION,
        "inquiry_date": now.isoformat(),
        "inquiry_count": len(records),
        "claims": records,
        "errors": errors,
    }


@dataclass
class StatusResponseEntry:
    """A single claim line of a payer 277 response."""
    index: int
    claim_number: Optional[str]
    status_code: Optional[str]
    status_description: Optional[str] = None
    clearinghouse_claim_id: Optional[str] = None
    raw: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, index: int, item: Mapping[str, Any]) -> "StatusResponseEntry":
        return cls(
            index=index,
            claim_number=optional_text(item, "claim_number"),
            status_code=optional_text(item, "status_code"),
            status_description=optional_text(item, "status_description"),
            clearinghouse_claim_id=optional_text(item, "claim_id"),
            raw=item,
        )

    def missing_fields(self) -> list[str]:
        missing = []
        if not self.claim_number:
            missing.append("claim_number")
        if not self.status_code:
            missing.append("status_code")
        return missing

    def resolve_status(self) -> tuple[ClaimStatus, Optional[PayerStatusCode]]:
        return map_277_status(self.status_code)

    def build_reason(self, known: Optional[PayerStatusCode]) -> str:
        if known is None:
            reason = f"Unrecognized 277 status code '{self.status_code}'"
            if self.status_description:
                reason = f"{reason}: {self.status_description}"
            return reason
        return self.status_description or STATUS_CODE_DESCRIPTIONS[known]

    def to_update_payload(self) -> tuple[ClaimStatus, dict]:
        """Target status and the ``update_claim_status`` payload for this entry."""
        new_status, known = self.resolve_status()
        reason = self.build_reason(known)
        item = self.raw
        payload = {
            "reason": reason,
            "notes": self.status_description,
            "source": StatusSource.EDI_277.value,
            "reference_number": payload_value(item, "trace_number"),
            "status_code": self.status_code,
            "payment_amount": payload_value(item, "payment_amount"),
            "payment_date": payload_value(item, "payment_date"),
            "check_number": payload_value(item, "check_number"),
            "era_number": payload_value(item, "era_number"),
            "denial_code": payload_value(item, "denial_code"),
        }
        if new_status in DENIAL_STATUSES:
            payload["denial_reason"] = payload_value(item, "denial_reason", reason)
            payload["is_appealable"] = payload_value(item, "is_appealable")
        if new_status == ClaimStatus.PENDED:
            payload["pend_reason"] = payload_value(item, "pend_reason", reason)
            payload["information_requested"] = payload_value(item, "information_requested")
            payload["response_deadline"] = payload_value(item, "response_deadline")
        return new_status, payload
