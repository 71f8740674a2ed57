"""
Services package
"""
from app.services.claim_status.store import ClaimStore
from app.services.claim_status import ClaimStatusConfig, ClaimStatusEngine
from app.services.monitoring import ClaimStatusMonitor, MonitoringConfig

__all__ = [
    "ClaimStore",
    "ClaimStatusConfig",
    "ClaimStatusEngine",
    "ClaimStatusMonitor",
    "MonitoringConfig",
]
