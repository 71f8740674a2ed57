"""
Claim status groupings and the payer transition graph.
"""
from app.db.models.claim import ClaimStatus

S = ClaimStatus

# No further payer activity is expected
TERMINAL_STATUSES = frozenset({S.PAID, S.DENIED, S.CANCELLED, S.CLOSED})

PAYMENT_STATUSES = frozenset({S.PAID, S.PARTIALLY_PAID})
DENIAL_STATUSES = frozenset({S.DENIED, S.REJECTED})

# Payer-side waiting states, candidates for a 276 inquiry
INQUIRY_STATUSES = frozenset({S.ACKNOWLEDGED, S.PENDING, S.UNDER_REVIEW})

# Graph followed by payers in practice. Only enforced in strict mode.
STATUS_TRANSITIONS = {
    S.DRAFT: {S.SUBMITTED, S.CANCELLED},
    S.SUBMITTED: {S.ACKNOWLEDGED, S.REJECTED, S.CANCELLED},
    S.ACKNOWLEDGED: {S.PENDING, S.UNDER_REVIEW, S.PENDED, S.DENIED, S.PAID},
    S.PENDING: {S.UNDER_REVIEW, S.PENDED, S.DENIED, S.PAID, S.PARTIALLY_PAID},
    S.UNDER_REVIEW: {S.PENDED, S.APPROVED_FOR_PAYMENT, S.DENIED, S.PAID, S.PARTIALLY_PAID},
    S.PENDED: {S.UNDER_REVIEW, S.PENDING, S.DENIED, S.PAID},
    S.APPROVED_FOR_PAYMENT: {S.PAID, S.PARTIALLY_PAID},
    S.PAID: {S.CLOSED, S.APPEALED},
    S.PARTIALLY_PAID: {S.PAID, S.APPEALED, S.CLOSED},
    S.DENIED: {S.APPEALED, S.CLOSED},
    S.REJECTED: {S.RESUBMITTED, S.CLOSED},
    S.APPEALED: {S.UNDER_REVIEW, S.PAID, S.PARTIALLY_PAID, S.DENIED, S.CLOSED},
    S.RESUBMITTED: {S.SUBMITTED},
    S.CANCELLED: set(),
    S.CLOSED: set(),
}


def is_terminal(status: ClaimStatus) -> bool:
    return status in TERMINAL_STATUSES


def is_valid_transition(current: ClaimStatus, new: ClaimStatus) -> bool:
    """Whether ``current -> new`` is an edge of the payer transition graph."""
    return new in STATUS_TRANSITIONS.get(current, set())
