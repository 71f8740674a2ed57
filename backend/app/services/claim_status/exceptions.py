"""
Claim status workflow errors.

NotFound, InvalidStatus and validation errors are caller-correctable.
StorageError is retryable by the caller; the engine never retries.
"""
from typing import Optional


class ClaimStatusError(Exception):
    """Base class for claim status workflow errors."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ClaimNotFoundError(ClaimStatusError):
    """The claim (or another referenced entity) does not exist."""

    def __init__(self, claim_ref: str):
        self.claim_ref = claim_ref
        super().__init__(f"Claim not found: {claim_ref}")


class InvalidStatusError(ClaimStatusError):
    """Status value outside the closed claim status enumeration."""

    def __init__(self, status: object):
        self.status = status
        super().__init__(f"Invalid claim status: {status!r}")


class ClaimValidationError(ClaimStatusError):
    """A field required by the target status is missing or malformed."""

    def __init__(self, field: str, message: str):
        self.field = field
        super().__init__(message)


class InvalidTransitionError(ClaimValidationError):
    """Transition rejected by the payer transition graph (strict mode only)."""

    def __init__(self, current: str, new: str):
        self.current = current
        self.new = new
        super().__init__(
            "status",
            f"Invalid status transition from '{current}' to '{new}'",
        )


class StorageError(ClaimStatusError):
    """The Claim Store failed; the operation may be retried."""

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        self.original_error = original_error
        super().__init__(message)
