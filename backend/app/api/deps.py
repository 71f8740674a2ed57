"""
API dependencies
"""
from fastapi import Depends
from sqlalchemy.orm import Session

from app.core import BILLING_ROLES, get_current_user_id, require_role, settings
from app.db import get_db
from app.services.claim_status import ClaimStatusConfig, ClaimStatusEngine, ClaimStore
from app.services.monitoring import ClaimStatusMonitor, MonitoringConfig


def get_claim_status_engine(db: Session = Depends(get_db)) -> ClaimStatusEngine:
    """Engine bound to the request's database session."""
    return ClaimStatusEngine(ClaimStore(db), ClaimStatusConfig.from_settings(settings))


def get_claim_monitor(
    engine: ClaimStatusEngine = Depends(get_claim_status_engine),
) -> ClaimStatusMonitor:
    return ClaimStatusMonitor(engine, MonitoringConfig.from_settings(settings))


require_billing_role = require_role(BILLING_ROLES)

__all__ = [
    "get_db",
    "get_current_user_id",
    "require_role",
    "require_billing_role",
    "get_claim_status_engine",
    "get_claim_monitor",
]
