"""
Tests for caller identity and log masking.
"""
import asyncio
import logging
from datetime import timedelta

import pytest
from fastapi import HTTPException
from fastapi.security import HTTPAuthorizationCredentials

from app.core.logging import MaskingFormatter
from app.core.security import (
    BILLING_ROLES,
    create_access_token,
    decode_access_token,
    require_role,
)


def credentials(token: str) -> HTTPAuthorizationCredentials:
    return HTTPAuthorizationCredentials(scheme="Bearer", credentials=token)


class TestTokens:
    """Test JWT creation and role checks."""

    def test_round_trip(self):
        token = create_access_token(data={"sub": "user-1", "role": "billing"})
        payload = decode_access_token(token)
        assert payload["sub"] == "user-1"
        assert payload["role"] == "billing"

    def test_expired_token(self):
        token = create_access_token(data={"sub": "user-1"}, expires_delta=timedelta(seconds=-1))
        with pytest.raises(HTTPException) as exc_info:
            decode_access_token(token)
        assert exc_info.value.status_code == 401

    def test_role_checker_returns_actor(self):
        checker = require_role(BILLING_ROLES)
        token = create_access_token(data={"sub": "billing-user-1", "role": "admin"})
        assert asyncio.run(checker(credentials(token))) == "billing-user-1"

    def test_role_checker_rejects_other_roles(self):
        checker = require_role(BILLING_ROLES)
        token = create_access_token(data={"sub": "user-2", "role": "customer"})
        with pytest.raises(HTTPException) as exc_info:
            asyncio.run(checker(credentials(token)))
        assert exc_info.value.status_code == 403


class TestLogMasking:
    """Test masking of member and payment identifiers in log output."""

    def format(self, message: str) -> str:
        record = logging.LogRecord("claimtrack", logging.INFO, __file__, 1, message, None, None)
        return MaskingFormatter("%(message)s").format(record)

    def test_masks_json_fields(self):
        output = self.format('{"member_id": "MBR123456", "claim_number": "CLM-1"}')
        assert "MBR123456" not in output
        assert '"member_id": "***"' in output
        assert "CLM-1" in output

    def test_masks_dict_repr(self):
        output = self.format(str({"check_number": "CHK-9", "era_number": "ERA-7"}))
        assert "CHK-9" not in output
        assert "ERA-7" not in output

    def test_masks_patient_name(self):
        output = self.format("details={'patient_name': 'John Doe'}")
        assert "John Doe" not in output

    def test_plain_message_unchanged(self):
        assert self.format("Claim status updated") == "Claim status updated"
