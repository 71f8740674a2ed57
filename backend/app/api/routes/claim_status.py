"""
Claim status API routes
"""
from typing import Annotated, Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import AfterValidator, BaseModel, ConfigDict, Field, field_validator

from app.api.deps import (
    get_claim_monitor,
    get_claim_status_engine,
    get_current_user_id,
    require_billing_role,
)
from app.core import log_audit_event
from app.db.models import ClaimStatus, StatusSource
from app.services.claim_status import ClaimStatusEngine
from app.services.monitoring import ClaimStatusMonitor

router = APIRouter()


def _check_source(v: Optional[str]) -> Optional[str]:
    if v is not None:
        valid_sources = [s.value for s in StatusSource]
        if v not in valid_sources:
            raise ValueError(f"source must be one of: {', '.join(valid_sources)}")
    return v


SourceField = Annotated[Optional[str], AfterValidator(_check_source)]


# Request schemas (camelCase wire names, snake_case accepted)
class StatusUpdateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    status: str
    reason: Optional[str] = None
    notes: Optional[str] = None
    source: SourceField = None
    reference_number: Optional[str] = Field(None, alias="referenceNumber")
    status_code: Optional[str] = Field(None, alias="statusCode")
    payment_amount: Optional[float] = Field(None, alias="paymentAmount")
    payment_date: Optional[str] = Field(None, alias="paymentDate")
    check_number: Optional[str] = Field(None, alias="checkNumber")
    era_number: Optional[str] = Field(None, alias="eraNumber")
    denial_reason: Optional[str] = Field(None, alias="denialReason")
    denial_code: Optional[str] = Field(None, alias="denialCode")
    is_appealable: Optional[bool] = Field(None, alias="isAppealable")
    pend_reason: Optional[str] = Field(None, alias="pendReason")
    information_requested: Optional[List[str]] = Field(None, alias="informationRequested")
    response_deadline: Optional[str] = Field(None, alias="responseDeadline")

    @field_validator("status")
    @classmethod
    def validate_status(cls, v: str) -> str:
        valid_statuses = [cs.value for cs in ClaimStatus]
        if v not in valid_statuses:
            raise ValueError(f"status must be one of: {', '.join(valid_statuses)}")
        return v


class MarkPaidRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    payment_amount: float = Field(..., alias="paymentAmount")
    payment_date: str = Field(..., alias="paymentDate")
    check_number: Optional[str] = Field(None, alias="checkNumber")
    era_number: Optional[str] = Field(None, alias="eraNumber")
    notes: Optional[str] = None
    source: SourceField = None


class MarkDeniedRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    denial_reason: str = Field(..., alias="denialReason")
    denial_code: Optional[str] = Field(None, alias="denialCode")
    is_appealable: Optional[bool] = Field(None, alias="isAppealable")
    notes: Optional[str] = None
    source: SourceField = None


class PendRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    pend_reason: str = Field(..., alias="pendReason")
    information_requested: Optional[List[str]] = Field(None, alias="informationRequested")
    response_deadline: Optional[str] = Field(None, alias="responseDeadline")
    notes: Optional[str] = None
    source: SourceField = None


class InquiryRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    claim_ids: List[str] = Field(..., alias="claimIds", min_length=1, max_length=100)


class StatusResponseItem(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    claim_number: str = Field(..., alias="claimNumber", min_length=1)
    status_code: str = Field(..., alias="statusCode", min_length=1)
    status_description: Optional[str] = Field(None, alias="statusDescription")

    @field_validator("status_code", mode="before")
    @classmethod
    def stringify_code(cls, v: Any) -> Any:
        return str(v) if isinstance(v, int) else v


class StatusResponseRequest(BaseModel):
    claims: List[StatusResponseItem] = Field(..., min_length=1)


def _audit(event: str, user_id: str, details: Dict[str, Any]) -> None:
    log_audit_event(event, user_id, "user", details)


@router.put("/{claim_id}/status")
async def update_claim_status(
    claim_id: str,
    request: StatusUpdateRequest,
    user_id: str = Depends(require_billing_role),
    engine: ClaimStatusEngine = Depends(get_claim_status_engine),
):
    """Move a claim to a new status."""
    payload = request.model_dump(exclude={"status"}, exclude_none=True)
    result = engine.update_claim_status(claim_id, request.status, payload, user_id)

    _audit("claim_status_updated", user_id, {"claim_id": claim_id, "status": request.status})
    return {
        "message": "Claim status updated successfully",
        **result.to_dict(),
    }


@router.get("/{claim_id}/status-history")
async def get_status_history(
    claim_id: str,
    user_id: str = Depends(get_current_user_id),
    engine: ClaimStatusEngine = Depends(get_claim_status_engine),
):
    """Chronological status history of a claim."""
    return engine.get_status_history(claim_id).to_dict()


@router.get("/{claim_id}/timeline")
async def get_status_timeline(
    claim_id: str,
    user_id: str = Depends(get_current_user_id),
    engine: ClaimStatusEngine = Depends(get_claim_status_engine),
):
    """Status history with elapsed times and milestones."""
    return engine.get_status_timeline(claim_id)


@router.get("/by-status/{status}")
async def get_claims_by_status(
    status: str,
    payer_id: Optional[str] = Query(None, alias="payerId"),
    provider_id: Optional[str] = Query(None, alias="providerId"),
    date_from: Optional[str] = Query(None, alias="dateFrom"),
    date_to: Optional[str] = Query(None, alias="dateTo"),
    date_field: str = Query("last_status_update", alias="dateField"),
    limit: Optional[int] = Query(None, ge=1, le=500),
    user_id: str = Depends(require_billing_role),
    engine: ClaimStatusEngine = Depends(get_claim_status_engine),
):
    """Claims currently in the given status."""
    claims = engine.get_claims_by_status(
        status,
        payer_id=payer_id,
        provider_id=provider_id,
        date_from=date_from,
        date_to=date_to,
        date_field=date_field,
        limit=limit,
    )
    return {
        "status": status,
        "count": len(claims),
        "claims": [c.to_dict() for c in claims],
    }


@router.get("/aging-report")
async def get_aging_report(
    user_id: str = Depends(require_billing_role),
    engine: ClaimStatusEngine = Depends(get_claim_status_engine),
):
    """Outstanding claims bucketed by days since the last status update."""
    return engine.get_aging_report()


@router.get("/stale-claims")
async def get_stale_claims(
    days_threshold: Optional[int] = Query(None, alias="daysThreshold", ge=1, le=365),
    user_id: str = Depends(require_billing_role),
    engine: ClaimStatusEngine = Depends(get_claim_status_engine),
):
    """Non-terminal claims without a status update for the threshold."""
    threshold = days_threshold or engine.config.stale_claim_days
    claims = engine.check_stale_claims(threshold)
    return {
        "threshold": threshold,
        "count": len(claims),
        "claims": [c.to_dict() for c in claims],
    }


@router.get("/statistics")
async def get_status_statistics(
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    user_id: str = Depends(require_billing_role),
    engine: ClaimStatusEngine = Depends(get_claim_status_engine),
):
    """Status counts, time to payment and denial rate for a period."""
    return engine.get_status_statistics(start_date, end_date)


@router.post("/276-inquiry")
async def generate_276_inquiry(
    request: InquiryRequest,
    user_id: str = Depends(require_billing_role),
    engine: ClaimStatusEngine = Depends(get_claim_status_engine),
):
    """Build a 276 status inquiry for the given claims."""
    inquiry = engine.generate_276_inquiry(request.claim_ids)

    _audit("claim_status_inquiry", user_id, {"claim_count": inquiry["inquiry_count"]})
    return {
        "message": "276 inquiry generated successfully",
        "inquiry": inquiry,
    }


@router.post("/277-response")
async def process_277_response(
    request: StatusResponseRequest,
    user_id: str = Depends(require_billing_role),
    engine: ClaimStatusEngine = Depends(get_claim_status_engine),
):
    """Apply a payer 277 status response."""
    items = [item.model_dump(exclude_none=True) for item in request.claims]
    result = engine.process_277_response(items, actor_id=user_id)

    _audit(
        "claim_status_response",
        user_id,
        {"total": result["total"], "successful": result["successful"], "failed": result["failed"]},
    )
    return {
        "message": f"Processed {result['successful']} of {result['total']} claim status updates",
        **result,
    }


@router.post("/{claim_id}/mark-paid")
async def mark_paid(
    claim_id: str,
    request: MarkPaidRequest,
    user_id: str = Depends(require_billing_role),
    engine: ClaimStatusEngine = Depends(get_claim_status_engine),
):
    """Record a payment and mark the claim paid."""
    result = engine.mark_paid(
        claim_id,
        payment_amount=request.payment_amount,
        payment_date=request.payment_date,
        check_number=request.check_number,
        era_number=request.era_number,
        notes=request.notes,
        source=request.source or "manual",
        actor_id=user_id,
    )

    _audit("claim_marked_paid", user_id, {"claim_id": claim_id})
    return {
        "message": "Claim marked as paid successfully",
        "claim": result.claim.to_dict(),
    }


@router.post("/{claim_id}/mark-denied")
async def mark_denied(
    claim_id: str,
    request: MarkDeniedRequest,
    user_id: str = Depends(require_billing_role),
    engine: ClaimStatusEngine = Depends(get_claim_status_engine),
):
    """Record a payer denial."""
    result = engine.mark_denied(
        claim_id,
        denial_reason=request.denial_reason,
        denial_code=request.denial_code,
        is_appealable=request.is_appealable,
        notes=request.notes,
        source=request.source or "manual",
        actor_id=user_id,
    )

    _audit("claim_marked_denied", user_id, {"claim_id": claim_id})
    return {
        "message": "Claim marked as denied",
        "claim": result.claim.to_dict(),
    }


@router.post("/{claim_id}/pend")
async def pend_claim(
    claim_id: str,
    request: PendRequest,
    user_id: str = Depends(require_billing_role),
    engine: ClaimStatusEngine = Depends(get_claim_status_engine),
):
    """Pend a claim while the payer waits on information."""
    result = engine.pend_claim(
        claim_id,
        pend_reason=request.pend_reason,
        information_requested=request.information_requested,
        response_deadline=request.response_deadline,
        notes=request.notes,
        source=request.source or "manual",
        actor_id=user_id,
    )

    _audit("claim_pended", user_id, {"claim_id": claim_id})
    return {
        "message": "Claim pended successfully",
        "claim": result.claim.to_dict(),
    }


@router.get("/monitoring/attention")
async def get_claims_requiring_attention(
    user_id: str = Depends(require_billing_role),
    monitor: ClaimStatusMonitor = Depends(get_claim_monitor),
):
    """Stale, pended and denied claims plus timely filing alerts."""
    return monitor.get_claims_requiring_attention()


@router.post("/monitoring/run")
async def run_monitoring_checks(
    user_id: str = Depends(require_billing_role),
    monitor: ClaimStatusMonitor = Depends(get_claim_monitor),
):
    """Run every monitoring check once."""
    return monitor.run_all_checks()
