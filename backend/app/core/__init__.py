"""
Core module exports
"""
from app.core.config import settings, get_settings
from app.core.security import (
    BILLING_ROLES,
    create_access_token,
    decode_access_token,
    get_current_user_id,
    require_role,
)
from app.core.logging import logger, get_logger, log_audit_event

__all__ = [
    "settings",
    "get_settings",
    "BILLING_ROLES",
    "create_access_token",
    "decode_access_token",
    "get_current_user_id",
    "require_role",
    "logger",
    "get_logger",
    "log_audit_event",
]
