"""
Claim Status Engine

Owns the claim status workflow: status transitions with per-status payload
validation, the append-only status history, 276/277 batch handling and the
aging / staleness / statistics reports.

Transitions are lenient by default (any status may follow any other, as
payers skip stages); the payer transition graph is only enforced when
``ClaimStatusConfig.strict_transitions`` is on.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Iterable, Mapping, Optional, Union

from sqlalchemy import func

from app.core.logging import get_logger
from app.core.time_utils import Clock, days_between, utc_now
from app.db.models import Claim, ClaimStatus, ClaimStatusEntry
from app.services.claim_status.store import ClaimId, ClaimStore
from app.services.claim_status import validation as v
from app.services.claim_status.codes import describe_status_code
from app.services.claim_status.edi import (
    StatusResponseEntry,
    build_inquiry_envelope,
    build_inquiry_record,
)
from app.services.claim_status.exceptions import (
    ClaimNotFoundError,
    ClaimStatusError,
    ClaimValidationError,
    InvalidStatusError,
    InvalidTransitionError,
    StorageError,
)
from app.services.claim_status.reporting import (
    DEFAULT_AGING_BUCKETS,
    AgingBucket,
    build_aging_report,
    compute_status_statistics,
)
from app.services.claim_status.states import (
    PAYMENT_STATUSES,
    TERMINAL_STATUSES,
    is_valid_transition,
)

logger = get_logger(__name__)

CLAIM_DATE_FIELDS = ("last_status_update", "service_date")


@dataclass
class ClaimStatusConfig:
    """Engine configuration, fixed at construction."""
    strict_transitions: bool = False
    stale_claim_days: int = 30
    default_query_limit: int = 100
    max_query_limit: int = 500
    max_inquiry_batch: int = 100
    aging_buckets: tuple[AgingBucket, ...] = DEFAULT_AGING_BUCKETS

    @classmethod
    def from_settings(cls, settings) -> "ClaimStatusConfig":
        return cls(
            strict_transitions=settings.STRICT_TRANSITIONS,
            stale_claim_days=settings.STALE_CLAIM_DAYS,
            default_query_limit=settings.DEFAULT_CLAIMS_QUERY_LIMIT,
            max_query_limit=settings.MAX_CLAIMS_QUERY_LIMIT,
            max_inquiry_batch=settings.MAX_INQUIRY_BATCH,
        )


@dataclass
class StatusUpdateResult:
    claim: Claim
    status_entry: ClaimStatusEntry

    def to_dict(self) -> dict:
        return {
            "claim": self.claim.to_dict(),
            "status_entry": self.status_entry.to_dict(),
        }


@dataclass
class StatusHistory:
    claim_id: str
    claim_number: str
    current_status: ClaimStatus
    entries: list[ClaimStatusEntry]

    def to_dict(self) -> dict:
        return {
            "claim_id": self.claim_id,
            "claim_number": self.claim_number,
            "current_status": self.current_status.value,
            "history": [e.to_dict() for e in self.entries],
        }


def coerce_status(value: Union[str, ClaimStatus]) -> ClaimStatus:
    try:
        return ClaimStatus(value)
    except ValueError:
        raise InvalidStatusError(value)


class ClaimStatusEngine:
    """Claim status state machine and derived reporting."""

    def __init__(
        self,
        store: ClaimStore,
        config: Optional[ClaimStatusConfig] = None,
        clock: Clock = utc_now,
    ):
        self.store = store
        self.config = config or ClaimStatusConfig()
        self.clock = clock

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _get_claim(self, claim_id: ClaimId) -> Claim:
        claim = self.store.find_by_id(claim_id)
        if claim is None:
            raise ClaimNotFoundError(str(claim_id))
        return claim

    def _build_change(
        self,
        claim: Claim,
        new_status: ClaimStatus,
        payload: Mapping[str, Any],
        actor_id: Optional[str],
        now: datetime,
    ) -> tuple[dict, dict]:
        """Validate ``payload`` for ``new_status``; return (entry fields, claim patch)."""
        if self.config.strict_transitions and not is_valid_transition(claim.status, new_status):
            raise InvalidTransitionError(claim.status.value, new_status.value)

        source = v.parse_source(payload)
        status_code = v.optional_text(payload, "status_code")
        details: dict[str, Any] = {}
        patch: dict[str, Any] = {
            "status": new_status,
            "last_status_update": now,
            "payment_info": None,
            "denial_info": None,
            "pend_info": None,
        }

        if new_status in PAYMENT_STATUSES:
            amount = v.require_amount(payload, "payment_amount", new_status.value)
            paid_on = v.require_date(payload, "payment_date", new_status.value)
            check_number = v.optional_text(payload, "check_number")
            era_number = v.optional_text(payload, "era_number")
            details.update(
                payment_amount=float(amount),
                payment_date=paid_on.isoformat(),
                check_number=check_number,
                era_number=era_number,
            )
            patch["payment_info"] = {
                "amount": float(amount),
                "date": paid_on.isoformat(),
                "check_number": check_number,
                "era_number": era_number,
            }
            patch["paid_at"] = now

        elif new_status == ClaimStatus.DENIED:
            denial = {
                "reason": v.require_text(payload, "denial_reason", new_status.value),
                "code": v.optional_text(payload, "denial_code"),
                "is_appealable": v.parse_appealable(payload),
            }
            details.update(
                denial_reason=denial["reason"],
                denial_code=denial["code"],
                is_appealable=denial["is_appealable"],
            )
            patch["denial_info"] = denial

        elif new_status == ClaimStatus.REJECTED:
            # Front-end rejections may carry no reason
            rejection = {
                "reason": v.optional_text(payload, "denial_reason"),
                "code": v.optional_text(payload, "denial_code"),
                "is_appealable": v.parse_appealable(payload),
            }
            details.update(
                denial_reason=rejection["reason"],
                denial_code=rejection["code"],
                is_appealable=rejection["is_appealable"],
            )
            patch["denial_info"] = rejection

        elif new_status == ClaimStatus.PENDED:
            deadline = v.optional_date(payload, "response_deadline")
            pend = {
                "reason": v.require_text(payload, "pend_reason", new_status.value),
                "information_requested": v.parse_information_requested(payload),
                "response_deadline": deadline.isoformat() if deadline else None,
            }
            details.update(
                pend_reason=pend["reason"],
                information_requested=pend["information_requested"],
                response_deadline=pend["response_deadline"],
            )
            patch["pend_info"] = pend

        elif new_status == ClaimStatus.SUBMITTED:
            patch["submitted_at"] = now
        elif new_status == ClaimStatus.ACKNOWLEDGED:
            patch["acknowledged_at"] = now

        entry = {
            "status": new_status,
            "timestamp": now,
            "reason": v.optional_text(payload, "reason"),
            "notes": v.optional_text(payload, "notes"),
            "source": source,
            "actor_id": str(actor_id) if actor_id is not None else None,
            "reference_number": v.optional_text(payload, "reference_number"),
            "status_code": status_code,
            "status_code_description": describe_status_code(status_code),
            "details": details,
        }
        return entry, patch

    def update_claim_status(
        self,
        claim_id: ClaimId,
        new_status: Union[str, ClaimStatus],
        payload: Optional[Mapping[str, Any]] = None,
        actor_id: Optional[str] = None,
    ) -> StatusUpdateResult:
        """
        Move a claim to ``new_status`` and append the transition to its history.

        Raises:
            InvalidStatusError: status outside the enumeration
            ClaimNotFoundError: unknown claim id
            ClaimValidationError: a field required by ``new_status`` is missing
            StorageError: the Claim Store failed
        """
        status = coerce_status(new_status)
        payload = payload or {}
        claim = self._get_claim(claim_id)
        previous = claim.status

        try:
            entry_fields, patch = self._build_change(claim, status, payload, actor_id, self.clock())
        except ClaimValidationError as e:
            logger.warning(
                f"Rejected status change for claim {claim.claim_number}: "
                f"{previous.value} -> {status.value}: {e.message}"
            )
            raise

        claim, entry = self.store.append_status(claim.claim_id, entry_fields, patch)

        logger.info(
            f"Claim status updated: claim={claim.claim_number} "
            f"{previous.value} -> {status.value} source={entry.source.value} actor={actor_id}"
        )
        return StatusUpdateResult(claim=claim, status_entry=entry)

    def mark_paid(
        self,
        claim_id: ClaimId,
        payment_amount: Any,
        payment_date: Any,
        check_number: Optional[str] = None,
        era_number: Optional[str] = None,
        notes: Optional[str] = None,
        source: str = "manual",
        actor_id: Optional[str] = None,
    ) -> StatusUpdateResult:
        payload = {
            "payment_amount": payment_amount,
            "payment_date": payment_date,
            "check_number": check_number,
            "era_number": era_number,
            "notes": notes,
            "reason": "Payment received",
            "source": source,
        }
        v.require_amount(payload, "payment_amount", ClaimStatus.PAID.value)
        v.require_date(payload, "payment_date", ClaimStatus.PAID.value)
        return self.update_claim_status(claim_id, ClaimStatus.PAID, payload, actor_id)

    def mark_denied(
        self,
        claim_id: ClaimId,
        denial_reason: Optional[str],
        denial_code: Optional[str] = None,
        is_appealable: Optional[bool] = None,
        notes: Optional[str] = None,
        source: str = "manual",
        actor_id: Optional[str] = None,
    ) -> StatusUpdateResult:
        payload = {
            "denial_reason": denial_reason,
            "denial_code": denial_code,
            "is_appealable": is_appealable,
            "notes": notes,
            "source": source,
        }
        reason = v.require_text(payload, "denial_reason", ClaimStatus.DENIED.value)
        payload["reason"] = f"Denied: {reason}"
        return self.update_claim_status(claim_id, ClaimStatus.DENIED, payload, actor_id)

    def pend_claim(
        self,
        claim_id: ClaimId,
        pend_reason: Optional[str],
        information_requested: Optional[list[str]] = None,
        response_deadline: Any = None,
        notes: Optional[str] = None,
        source: str = "manual",
        actor_id: Optional[str] = None,
    ) -> StatusUpdateResult:
        payload = {
            "pend_reason": pend_reason,
            "information_requested": information_requested,
            "response_deadline": response_deadline,
            "notes": notes,
            "source": source,
        }
        reason = v.require_text(payload, "pend_reason", ClaimStatus.PENDED.value)
        payload["reason"] = f"Pended: {reason}"
        return self.update_claim_status(claim_id, ClaimStatus.PENDED, payload, actor_id)

    # ------------------------------------------------------------------
    # History and queries
    # ------------------------------------------------------------------

    def get_status_history(self, claim_id: ClaimId) -> StatusHistory:
        claim = self._get_claim(claim_id)
        return StatusHistory(
            claim_id=str(claim.claim_id),
            claim_number=claim.claim_number,
            current_status=claim.status,
            entries=self.store.history(claim.claim_id),
        )

    def get_status_timeline(self, claim_id: ClaimId) -> dict:
        """History annotated with elapsed days, plus tracking milestones."""
        claim = self._get_claim(claim_id)
        entries = self.store.history(claim.claim_id)

        submitted_at = next(
            (e.timestamp for e in entries if e.status == ClaimStatus.SUBMITTED),
            claim.submitted_at,
        )

        timeline = []
        previous_ts = None
        for entry in entries:
            since_previous = (
                round(days_between(previous_ts, entry.timestamp), 2)
                if previous_ts is not None else None
            )
            since_submission = (
                round(days_between(submitted_at, entry.timestamp), 2)
                if submitted_at is not None and entry.timestamp >= submitted_at else None
            )
            timeline.append({
                **entry.to_dict(),
                "event": f"Status: {entry.status.value}",
                "days_since_previous": since_previous,
                "days_since_submission": since_submission,
            })
            previous_ts = entry.timestamp

        milestones = []
        for label, moment in (
            ("Claim Submitted", claim.submitted_at),
            ("Claim Acknowledged", claim.acknowledged_at),
            ("Payment Received", claim.paid_at),
        ):
            if moment is not None:
                milestones.append({"event": label, "date": moment.isoformat()})

        total_duration = (
            round(days_between(entries[0].timestamp, entries[-1].timestamp), 2)
            if entries else None
        )

        return {
            "claim_id": str(claim.claim_id),
            "claim_number": claim.claim_number,
            "current_status": claim.status.value,
            "status_changes": len(entries),
            "timeline": timeline,
            "milestones": milestones,
            "total_duration_days": total_duration,
        }

    def get_claims_by_status(
        self,
        status: Union[str, ClaimStatus],
        payer_id: Optional[str] = None,
        provider_id: Optional[str] = None,
        date_from: Any = None,
        date_to: Any = None,
        date_field: str = "last_status_update",
        limit: Optional[int] = None,
    ) -> list[Claim]:
        """Claims currently in ``status``, most recently updated first."""
        status = coerce_status(status)
        if limit is None:
            limit = self.config.default_query_limit
        if not 1 <= limit <= self.config.max_query_limit:
            raise ClaimValidationError(
                "limit", f"limit must be between 1 and {self.config.max_query_limit}"
            )
        if date_field not in CLAIM_DATE_FIELDS:
            raise ClaimValidationError(
                "date_field", f"date_field must be one of: {', '.join(CLAIM_DATE_FIELDS)}"
            )

        lower = v.optional_datetime("date_from", date_from)
        upper = v.optional_end_datetime("date_to", date_to)
        column = getattr(Claim, date_field)
        if date_field == "service_date":
            lower = lower.date() if lower else None
            upper = upper.date() if upper else None

        criteria = [Claim.status == status]
        if payer_id:
            criteria.append(Claim.payer_id == payer_id)
        if provider_id:
            criteria.append(Claim.provider_id == provider_id)
        if lower is not None:
            criteria.append(column >= lower)
        if upper is not None:
            criteria.append(column <= upper)

        return self.store.query(
            *criteria,
            order_by=(Claim.last_status_update.desc(), Claim.created_at.desc()),
            limit=limit,
        )

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def get_aging_report(self) -> dict:
        claims = self.store.query(Claim.status.notin_(
            [s for s in TERMINAL_STATUSES if s != ClaimStatus.DENIED]
        ))
        report = build_aging_report(claims, self.clock(), self.config.aging_buckets)
        logger.info(
            f"Generated aging report: {report['total_count']} outstanding claims, "
            f"{len(report['by_payer'])} payers"
        )
        return report

    def check_stale_claims(self, days_threshold: Optional[int] = None) -> list[Claim]:
        """Non-terminal claims with no status update for ``days_threshold`` days."""
        if days_threshold is None:
            days_threshold = self.config.stale_claim_days
        if isinstance(days_threshold, bool) or not isinstance(days_threshold, int) \
                or not 1 <= days_threshold <= 365:
            raise ClaimValidationError(
                "days_threshold", "days_threshold must be an integer between 1 and 365"
            )

        cutoff = self.clock() - timedelta(days=days_threshold)
        last_activity = func.coalesce(
            Claim.last_status_update, Claim.submitted_at, Claim.created_at
        )
        stale = self.store.query(
            Claim.status.notin_(list(TERMINAL_STATUSES)),
            last_activity <= cutoff,
            order_by=(last_activity.asc(),),
        )
        logger.info(f"Checked for stale claims: threshold={days_threshold}d count={len(stale)}")
        return stale

    def get_status_statistics(self, start_date: Any = None, end_date: Any = None) -> dict:
        start = v.optional_datetime("start_date", start_date)
        end = v.optional_end_datetime("end_date", end_date)
        if start is not None and end is not None and start > end:
            raise ClaimValidationError("start_date", "start_date must not be after end_date")

        entries = self.store.entries_between(None, end)
        claim_ids = {e.claim_id for e in entries}
        claims = (
            {c.claim_id: c for c in self.store.query(Claim.claim_id.in_(list(claim_ids)))}
            if claim_ids else {}
        )
        return compute_status_statistics(entries, claims, start, end)

    # ------------------------------------------------------------------
    # 276 / 277
    # ------------------------------------------------------------------

    def generate_276_inquiry(self, claim_ids: Iterable[ClaimId]) -> dict:
        """
        Build a 276 status inquiry for up to ``max_inquiry_batch`` claims.

        Unknown ids are reported in ``errors`` without failing the batch. A
        storage failure stops the batch; the ids not yet read are listed in
        ``fatal_error``.
        """
        claim_ids = list(claim_ids or [])
        if not 1 <= len(claim_ids) <= self.config.max_inquiry_batch:
            raise ClaimValidationError(
                "claim_ids",
                f"Provide 1-{self.config.max_inquiry_batch} claim IDs",
            )

        records: list[dict] = []
        errors: list[dict] = []
        fatal_error = None
        for position, claim_id in enumerate(claim_ids):
            try:
                claim = self.store.find_by_id(claim_id)
            except StorageError as e:
                fatal_error = {
                    "error": e.message,
                    "unprocessed": [str(c) for c in claim_ids[position:]],
                }
                logger.error(
                    f"276 inquiry aborted after {position} of {len(claim_ids)} claims: {e.message}"
                )
                break
            if claim is None:
                errors.append({"claim_id": str(claim_id), "error": "Claim not found"})
                continue
            records.append(build_inquiry_record(claim))

        inquiry = build_inquiry_envelope(records, errors, self.clock())
        if fatal_error is not None:
            inquiry["fatal_error"] = fatal_error

        logger.info(
            f"Generated 276 claim status inquiry: {len(records)} claims, {len(errors)} errors"
        )
        return inquiry

    def process_277_response(
        self,
        response: Union[Mapping[str, Any], list],
        actor_id: Optional[str] = None,
    ) -> dict:
        """
        Apply a payer 277 response, one status update per entry.

        Each entry succeeds or fails on its own; every call appends new history
        entries (no de-duplication of repeated submissions). A storage failure
        stops the batch and the remaining entries are reported together in
        ``fatal_error``.
        """
        items = response.get("claims", []) if isinstance(response, Mapping) else list(response)
        entries = [StatusResponseEntry.from_payload(i, item or {}) for i, item in enumerate(items)]

        results: list[dict] = []
        fatal_error = None
        for position, entry in enumerate(entries):
            try:
                results.append(self._apply_277_entry(entry, actor_id))
            except StorageError as e:
                tail = entries[position:]
                fatal_error = {
                    "error": e.message,
                    "unprocessed": len(tail),
                    "claim_numbers": [t.claim_number for t in tail],
                }
                logger.error(
                    f"277 batch aborted at entry {position} of {len(entries)}: {e.message}"
                )
                break

        successful = sum(1 for r in results if r["success"])
        failed = len(results) - successful
        summary = {
            "total": len(entries),
            "successful": successful,
            "failed": failed,
            "results": results,
        }
        if fatal_error is not None:
            summary["fatal_error"] = fatal_error

        logger.info(
            f"Processed 277 response batch: total={len(entries)} "
            f"successful={successful} failed={failed}"
        )
        return summary

    def _apply_277_entry(self, entry: StatusResponseEntry, actor_id: Optional[str]) -> dict:
        outcome = {
            "index": entry.index,
            "claim_number": entry.claim_number,
            "status_code": entry.status_code,
        }

        missing = entry.missing_fields()
        if missing:
            return {**outcome, "success": False, "error": f"Missing required fields: {', '.join(missing)}"}

        claim = self.store.find_by_claim_number(entry.claim_number)
        if claim is None and entry.clearinghouse_claim_id:
            claim = self.store.find_by_claim_number(entry.clearinghouse_claim_id)
        if claim is None:
            return {**outcome, "success": False, "error": "Claim not found"}

        new_status, payload = entry.to_update_payload()
        try:
            result = self.update_claim_status(claim.claim_id, new_status, payload, actor_id)
        except StorageError:
            raise
        except ClaimStatusError as e:
            return {
                **outcome,
                "success": False,
                "claim_id": str(claim.claim_id),
                "error": e.message,
            }

        return {
            **outcome,
            "success": True,
            "claim_id": str(result.claim.claim_id),
            "status": new_status.value,
        }
