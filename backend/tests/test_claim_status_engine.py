"""
Tests for claim status transitions, history and queries.
"""
import uuid
from datetime import date, timedelta

import pytest

from app.db.models import ClaimStatus, StatusSource
from app.services.claim_status import (
    ClaimNotFoundError,
    ClaimValidationError,
    InvalidStatusError,
    InvalidTransitionError,
)


class TestUpdateClaimStatus:
    """Test status transitions and payload validation."""

    def test_transition_appends_history_entry(self, claim_engine, make_claim):
        """Current status always equals the last history entry."""
        claim = make_claim(status=ClaimStatus.DRAFT)

        result = claim_engine.update_claim_status(
            claim.claim_id, "submitted", {"source": "manual", "reason": "Sent to clearinghouse"}, "user-1"
        )

        history = claim_engine.get_status_history(claim.claim_id).entries
        assert len(history) == 1
        assert result.claim.status == ClaimStatus.SUBMITTED
        assert history[-1].status == result.claim.status
        assert result.status_entry.previous_status == ClaimStatus.DRAFT
        assert result.status_entry.source == StatusSource.MANUAL
        assert result.status_entry.actor_id == "user-1"
        assert result.status_entry.reason == "Sent to clearinghouse"

    def test_each_update_adds_exactly_one_entry(self, claim_engine, make_claim):
        claim = make_claim()
        steps = [
            ("acknowledged", {}),
            ("under_review", {}),
            ("pended", {"pend_reason": "Need operative report"}),
            ("under_review", {}),
            ("partially_paid", {"payment_amount": 40, "payment_date": "2024-06-01"}),
            ("appealed", {"reason": "Underpaid per contract"}),
        ]
        for expected_length, (status, payload) in enumerate(steps, start=1):
            result = claim_engine.update_claim_status(claim.claim_id, status, payload, "user-1")
            history = claim_engine.get_status_history(claim.claim_id).entries
            assert len(history) == expected_length
            assert history[-1].status == result.claim.status == ClaimStatus(status)

    def test_source_defaults_to_manual(self, claim_engine, make_claim):
        claim = make_claim()
        result = claim_engine.update_claim_status(claim.claim_id, "acknowledged")
        assert result.status_entry.source == StatusSource.MANUAL
        assert result.status_entry.actor_id is None

    def test_negative_payment_rejected(self, claim_engine, make_claim):
        claim = make_claim()
        with pytest.raises(ClaimValidationError) as exc_info:
            claim_engine.update_claim_status(
                claim.claim_id, "paid", {"payment_amount": -5, "payment_date": "2024-06-01"}
            )
        assert exc_info.value.field == "payment_amount"
        assert claim_engine.get_status_history(claim.claim_id).entries == []
        assert claim.status == ClaimStatus.SUBMITTED

    @pytest.mark.parametrize("amount", ["1e30", 10_000_000_000])
    def test_oversized_payment_rejected(self, claim_engine, make_claim, amount):
        claim = make_claim()
        with pytest.raises(ClaimValidationError) as exc_info:
            claim_engine.update_claim_status(
                claim.claim_id, "paid", {"payment_amount": amount, "payment_date": "2024-06-01"}
            )
        assert exc_info.value.field == "payment_amount"

    def test_payment_date_required(self, claim_engine, make_claim):
        claim = make_claim()
        with pytest.raises(ClaimValidationError) as exc_info:
            claim_engine.update_claim_status(claim.claim_id, "paid", {"payment_amount": 10})
        assert exc_info.value.field == "payment_date"

    def test_malformed_payment_date_rejected(self, claim_engine, make_claim):
        claim = make_claim()
        with pytest.raises(ClaimValidationError):
            claim_engine.update_claim_status(
                claim.claim_id, "paid", {"payment_amount": 10, "payment_date": "not-a-date"}
            )

    def test_denied_requires_reason(self, claim_engine, make_claim):
        claim = make_claim()
        with pytest.raises(ClaimValidationError) as exc_info:
            claim_engine.update_claim_status(claim.claim_id, "denied", {})
        assert exc_info.value.field == "denial_reason"

    def test_blank_denial_reason_rejected(self, claim_engine, make_claim):
        claim = make_claim()
        with pytest.raises(ClaimValidationError):
            claim_engine.update_claim_status(claim.claim_id, "denied", {"denial_reason": "   "})

    def test_pended_requires_reason(self, claim_engine, make_claim):
        claim = make_claim()
        with pytest.raises(ClaimValidationError) as exc_info:
            claim_engine.update_claim_status(claim.claim_id, "pended", {"notes": "waiting"})
        assert exc_info.value.field == "pend_reason"

    def test_unknown_claim(self, claim_engine):
        with pytest.raises(ClaimNotFoundError):
            claim_engine.update_claim_status(
                "nonexistent-id", "paid", {"payment_amount": 10, "payment_date": "2024-06-01"}
            )
        with pytest.raises(ClaimNotFoundError):
            claim_engine.update_claim_status(uuid.uuid4(), "acknowledged")

    def test_invalid_status(self, claim_engine, make_claim):
        claim = make_claim()
        with pytest.raises(InvalidStatusError):
            claim_engine.update_claim_status(claim.claim_id, "lost_in_mail")

    def test_invalid_source(self, claim_engine, make_claim):
        claim = make_claim()
        with pytest.raises(ClaimValidationError) as exc_info:
            claim_engine.update_claim_status(claim.claim_id, "acknowledged", {"source": "fax"})
        assert exc_info.value.field == "source"

    def test_lenient_transitions_allow_any_status(self, claim_engine, make_claim):
        """Closed claims can be reopened when strict transitions are off."""
        claim = make_claim(status=ClaimStatus.CLOSED)
        result = claim_engine.update_claim_status(claim.claim_id, "pending")
        assert result.claim.status == ClaimStatus.PENDING

    def test_strict_transitions(self, strict_engine, make_claim):
        closed = make_claim(status=ClaimStatus.CLOSED)
        with pytest.raises(InvalidTransitionError):
            strict_engine.update_claim_status(closed.claim_id, "pending")

        draft = make_claim(status=ClaimStatus.DRAFT)
        result = strict_engine.update_claim_status(draft.claim_id, "submitted")
        assert result.claim.status == ClaimStatus.SUBMITTED

    def test_camel_case_payload(self, claim_engine, make_claim):
        claim = make_claim()
        result = claim_engine.update_claim_status(
            claim.claim_id,
            "partially_paid",
            {"paymentAmount": "80.50", "paymentDate": "2024-05-30", "checkNumber": "CHK-1001"},
        )
        assert result.claim.payment_info == {
            "amount": 80.5,
            "date": "2024-05-30",
            "check_number": "CHK-1001",
            "era_number": None,
        }
        assert result.status_entry.details["payment_amount"] == 80.5

    def test_status_payloads_follow_current_status(self, claim_engine, make_claim):
        claim = make_claim()

        denied = claim_engine.update_claim_status(
            claim.claim_id, "denied", {"denial_reason": "Not covered", "denial_code": "CO-50"}
        )
        assert denied.claim.denial_info == {
            "reason": "Not covered",
            "code": "CO-50",
            "is_appealable": True,
        }

        appealed = claim_engine.update_claim_status(claim.claim_id, "appealed")
        assert appealed.claim.denial_info is None
        assert appealed.claim.payment_info is None

    def test_rejection_keeps_denial_details(self, claim_engine, make_claim):
        claim = make_claim()
        result = claim_engine.update_claim_status(claim.claim_id, "rejected", {"denialCode": "A7"})
        assert result.claim.denial_info == {"reason": None, "code": "A7", "is_appealable": True}

    def test_pend_info(self, claim_engine, make_claim):
        claim = make_claim()
        result = claim_engine.update_claim_status(
            claim.claim_id,
            "pended",
            {
                "pend_reason": "Medical records requested",
                "information_requested": ["operative report", "progress notes"],
                "response_deadline": "2024-07-01",
            },
        )
        assert result.claim.pend_info == {
            "reason": "Medical records requested",
            "information_requested": ["operative report", "progress notes"],
            "response_deadline": "2024-07-01",
        }

    def test_tracking_timestamps(self, claim_engine, make_claim, clock):
        claim = make_claim(status=ClaimStatus.DRAFT)

        claim_engine.update_claim_status(claim.claim_id, "submitted")
        submitted_at = clock()
        clock.advance(days=2)
        result = claim_engine.update_claim_status(claim.claim_id, "acknowledged")

        assert result.claim.submitted_at == submitted_at
        assert result.claim.acknowledged_at == clock()
        assert result.claim.last_status_update == clock()

    def test_last_status_update_never_moves_back(self, claim_engine, make_claim, clock):
        claim = make_claim()
        claim_engine.update_claim_status(claim.claim_id, "acknowledged")
        latest = clock()

        clock.advance(days=-3)
        result = claim_engine.update_claim_status(claim.claim_id, "pending")
        assert result.claim.last_status_update == latest

    def test_status_code_description(self, claim_engine, make_claim):
        claim = make_claim()
        result = claim_engine.update_claim_status(
            claim.claim_id, "under_review", {"status_code": "12", "reference_number": "TRN-77"}
        )
        assert result.status_entry.status_code == "12"
        assert result.status_entry.status_code_description == "Pending: Under Review"
        assert result.status_entry.reference_number == "TRN-77"


class TestConvenienceWrappers:
    """Test mark_paid / mark_denied / pend_claim."""

    def test_submit_then_mark_paid(self, claim_engine, make_claim):
        claim = make_claim(status=ClaimStatus.DRAFT)

        claim_engine.update_claim_status(claim.claim_id, "submitted", {"source": "manual"})
        result = claim_engine.mark_paid(claim.claim_id, payment_amount=150.00, payment_date="2024-01-15")

        history = claim_engine.get_status_history(claim.claim_id)
        assert [e.status for e in history.entries] == [ClaimStatus.SUBMITTED, ClaimStatus.PAID]
        assert result.claim.payment_info["amount"] == 150.00
        assert result.claim.payment_info["date"] == "2024-01-15"
        assert history.entries[-1].reason == "Payment received"

    def test_mark_paid_prevalidates(self, claim_engine):
        with pytest.raises(ClaimValidationError):
            claim_engine.mark_paid("nonexistent-id", payment_amount=-1, payment_date="2024-01-15")

    def test_mark_denied(self, claim_engine, make_claim):
        claim = make_claim()
        result = claim_engine.mark_denied(
            claim.claim_id, "Prior authorization missing", denial_code="CO-197", is_appealable=False
        )
        assert result.claim.status == ClaimStatus.DENIED
        assert result.claim.denial_info["is_appealable"] is False
        assert result.status_entry.reason == "Denied: Prior authorization missing"

    def test_mark_denied_requires_reason(self, claim_engine, make_claim):
        claim = make_claim()
        with pytest.raises(ClaimValidationError):
            claim_engine.mark_denied(claim.claim_id, "")
        assert claim_engine.get_status_history(claim.claim_id).entries == []

    def test_pend_claim(self, claim_engine, make_claim):
        claim = make_claim()
        result = claim_engine.pend_claim(
            claim.claim_id, "Itemized bill needed", information_requested=["itemized bill"]
        )
        assert result.claim.status == ClaimStatus.PENDED
        assert result.status_entry.reason == "Pended: Itemized bill needed"
        assert result.claim.pend_info["information_requested"] == ["itemized bill"]

    def test_pend_claim_requires_reason(self, claim_engine, make_claim):
        claim = make_claim()
        with pytest.raises(ClaimValidationError):
            claim_engine.pend_claim(claim.claim_id, None)


class TestHistoryAndTimeline:
    """Test history reads and the timeline projection."""

    def test_history_reads_are_stable(self, claim_engine, make_claim):
        claim = make_claim()
        claim_engine.update_claim_status(claim.claim_id, "acknowledged")
        claim_engine.update_claim_status(claim.claim_id, "pending")

        first = claim_engine.get_status_history(claim.claim_id).to_dict()
        second = claim_engine.get_status_history(claim.claim_id).to_dict()
        assert first == second
        assert [e["status"] for e in first["history"]] == ["acknowledged", "pending"]

    def test_history_unknown_claim(self, claim_engine):
        with pytest.raises(ClaimNotFoundError):
            claim_engine.get_status_history(str(uuid.uuid4()))

    def test_timeline_elapsed_days(self, claim_engine, make_claim, clock):
        claim = make_claim(status=ClaimStatus.DRAFT)

        claim_engine.update_claim_status(claim.claim_id, "submitted")
        clock.advance(days=2)
        claim_engine.update_claim_status(claim.claim_id, "acknowledged")
        clock.advance(days=3)
        claim_engine.update_claim_status(claim.claim_id, "pending")

        timeline = claim_engine.get_status_timeline(claim.claim_id)
        assert timeline["status_changes"] == 3
        assert [t["days_since_previous"] for t in timeline["timeline"]] == [None, 2.0, 3.0]
        assert [t["days_since_submission"] for t in timeline["timeline"]] == [0.0, 2.0, 5.0]
        assert timeline["total_duration_days"] == 5.0
        assert [m["event"] for m in timeline["milestones"]] == [
            "Claim Submitted",
            "Claim Acknowledged",
        ]

    def test_timeline_without_history(self, claim_engine, make_claim):
        claim = make_claim()
        timeline = claim_engine.get_status_timeline(claim.claim_id)
        assert timeline["timeline"] == []
        assert timeline["total_duration_days"] is None


class TestClaimsByStatus:
    """Test filtered status queries."""

    def test_orders_most_recent_first(self, claim_engine, make_claim):
        older = make_claim(status=ClaimStatus.PENDING, days_since_update=10)
        newest = make_claim(status=ClaimStatus.PENDING, days_since_update=1)
        middle = make_claim(status=ClaimStatus.PENDING, days_since_update=5)
        make_claim(status=ClaimStatus.PAID, days_since_update=0)

        claims = claim_engine.get_claims_by_status("pending")
        assert [c.claim_id for c in claims] == [newest.claim_id, middle.claim_id, older.claim_id]

    def test_filters(self, claim_engine, make_claim, clock):
        match = make_claim(status=ClaimStatus.PENDING, payer_id="PAYER-B", provider_id="PROV-9",
                           days_since_update=3)
        make_claim(status=ClaimStatus.PENDING, payer_id="PAYER-A", provider_id="PROV-9")
        make_claim(status=ClaimStatus.PENDING, payer_id="PAYER-B", provider_id="PROV-1")
        make_claim(status=ClaimStatus.PENDING, payer_id="PAYER-B", provider_id="PROV-9",
                   days_since_update=40)

        claims = claim_engine.get_claims_by_status(
            ClaimStatus.PENDING,
            payer_id="PAYER-B",
            provider_id="PROV-9",
            date_from=(clock() - timedelta(days=7)).isoformat(),
            date_to=clock().isoformat(),
        )
        assert [c.claim_id for c in claims] == [match.claim_id]

    def test_service_date_range(self, claim_engine, make_claim):
        in_range = make_claim(status=ClaimStatus.PENDING, service_date=date(2024, 3, 10))
        make_claim(status=ClaimStatus.PENDING, service_date=date(2024, 1, 5))

        claims = claim_engine.get_claims_by_status(
            "pending", date_from="2024-03-01", date_to="2024-03-31", date_field="service_date"
        )
        assert [c.claim_id for c in claims] == [in_range.claim_id]

    def test_bare_end_date_covers_whole_day(self, claim_engine, make_claim, clock):
        updated_at_noon = make_claim(status=ClaimStatus.PENDING)

        claims = claim_engine.get_claims_by_status(
            "pending", date_from="2024-06-01", date_to=clock().date().isoformat()
        )
        assert [c.claim_id for c in claims] == [updated_at_noon.claim_id]

    def test_limit(self, claim_engine, make_claim):
        for _ in range(3):
            make_claim(status=ClaimStatus.PENDING)
        assert len(claim_engine.get_claims_by_status("pending", limit=2)) == 2

    @pytest.mark.parametrize("limit", [0, 501])
    def test_limit_bounds(self, claim_engine, limit):
        with pytest.raises(ClaimValidationError):
            claim_engine.get_claims_by_status("pending", limit=limit)

    def test_invalid_status(self, claim_engine):
        with pytest.raises(InvalidStatusError):
            claim_engine.get_claims_by_status("archived")

    def test_invalid_date_field(self, claim_engine):
        with pytest.raises(ClaimValidationError):
            claim_engine.get_claims_by_status("pending", date_field="created_at")
