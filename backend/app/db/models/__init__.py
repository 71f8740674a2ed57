"""
Database models package
"""
from app.db.models.claim import Claim, ClaimStatus, StatusSource
from app.db.models.claim_status import ClaimStatusEntry

__all__ = [
    # Claim
    "Claim",
    "ClaimStatus",
    "StatusSource",
    # Status history
    "ClaimStatusEntry",
]
