"""
Logging configuration with field masking for sensitive data
"""
import logging
import re
from typing import Any

from app.core.config import settings


# Patterns to mask in logs (JSON and repr'd dict styles)
MASK_PATTERNS = [
    (r'(["\'])member_id\1:\s*(["\'])[^"\']*\2', r'\1member_id\1: \2***\2'),
    (r'(["\'])patient_name\1:\s*(["\'])[^"\']*\2', r'\1patient_name\1: \2***\2'),
    (r'(["\'])check_number\1:\s*(["\'])[^"\']*\2', r'\1check_number\1: \2***\2'),
    (r'(["\'])era_number\1:\s*(["\'])[^"\']*\2', r'\1era_number\1: \2***\2'),
]


class MaskingFormatter(logging.Formatter):
    """Custom formatter that masks sensitive fields."""

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        for pattern, replacement in MASK_PATTERNS:
            message = re.sub(pattern, replacement, message, flags=re.IGNORECASE)
        return message


def setup_logging() -> logging.Logger:
    """Configure application logging."""
    logger = logging.getLogger("claimtrack")
    logger.setLevel(logging.DEBUG if settings.DEBUG else logging.INFO)

    if not logger.handlers:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(logging.DEBUG if settings.DEBUG else logging.INFO)

        formatter = MaskingFormatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )
        console_handler.setFormatter(formatter)

        logger.addHandler(console_handler)

    return logger


# Global logger instance
logger = setup_logging()


def get_logger(name: str) -> logging.Logger:
    """Module logger nested under the service logger."""
    if name.startswith("app."):
        name = name[len("app."):]
    return logger.getChild(name)


def log_audit_event(
    event_type: str,
    actor_id: str,
    actor_type: str,
    details: dict[str, Any],
) -> None:
    """Log an audit event."""
    logger.info(
        f"AUDIT: {event_type} | actor={actor_id} ({actor_type}) | details={details}"
    )
