"""
Claim status workflow package
"""
from app.services.claim_status.codes import (
    STATUS_CODE_DESCRIPTIONS,
    STATUS_CODE_MAP,
    PayerStatusCode,
    map_277_status,
)
from app.services.claim_status.engine import (
    ClaimStatusConfig,
    ClaimStatusEngine,
    StatusHistory,
    StatusUpdateResult,
)
from app.services.claim_status.exceptions import (
    ClaimNotFoundError,
    ClaimStatusError,
    ClaimValidationError,
    InvalidStatusError,
    InvalidTransitionError,
    StorageError,
)
from app.services.claim_status.reporting import AgingBucket, DEFAULT_AGING_BUCKETS
from app.services.claim_status.store import ClaimStore
from app.services.claim_status.states import (
    STATUS_TRANSITIONS,
    TERMINAL_STATUSES,
    is_valid_transition,
)

__all__ = [
    "ClaimStatusEngine",
    "ClaimStatusConfig",
    "ClaimStore",
    "StatusHistory",
    "StatusUpdateResult",
    "PayerStatusCode",
    "STATUS_CODE_DESCRIPTIONS",
    "STATUS_CODE_MAP",
    "map_277_status",
    "AgingBucket",
    "DEFAULT_AGING_BUCKETS",
    "STATUS_TRANSITIONS",
    "TERMINAL_STATUSES",
    "is_valid_transition",
    "ClaimStatusError",
    "ClaimNotFoundError",
    "InvalidStatusError",
    "ClaimValidationError",
    "InvalidTransitionError",
    "StorageError",
]
