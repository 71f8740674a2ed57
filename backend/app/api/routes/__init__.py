"""
API routes package
"""
from app.api.routes import claim_status

__all__ = [
    "claim_status",
]
