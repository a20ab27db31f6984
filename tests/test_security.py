"""Tests for session tokens, shared secrets and PII-safe logging helpers."""

import uuid

import jwt
import pytest

from app.core.config import settings
from app.core.security import create_session_token, decode_session_token, verify_secret
from app.core.structured_logging import build_log_context, mask_email


def test_session_token_round_trip_for_platform_admin():
    admin_id = uuid.uuid4()
    token = create_session_token(admin_id, None, "SUPER_ADMIN", 3)

    payload = decode_session_token(token)

    assert payload["sub"] == str(admin_id)
    assert payload["tenant_id"] is None
    assert payload["role"] == "SUPER_ADMIN"
    assert payload["token_version"] == 3


def test_session_token_accepts_previous_secret(monkeypatch):
    monkeypatch.setattr(settings, "JWT_SECRET", "old-secret")
    token = create_session_token(uuid.uuid4(), uuid.uuid4(), "MANAGER", 1)

    monkeypatch.setattr(settings, "JWT_SECRET", "new-secret")
    monkeypatch.setattr(settings, "JWT_SECRET_PREVIOUS", "old-secret")

    assert decode_session_token(token)["role"] == "MANAGER"


def test_session_token_rejects_unknown_secret(monkeypatch):
    token = jwt.encode({"sub": "x"}, "someone-else", algorithm="HS256")
    with pytest.raises(jwt.InvalidTokenError):
        decode_session_token(token)


@pytest.mark.parametrize(
    ("provided", "expected", "result"),
    [
        ("s3cret", "s3cret", True),
        ("s3cret", "other", False),
        ("", "", False),
        (None, "s3cret", False),
        ("s3cret", "", False),
    ],
)
def test_verify_secret(provided, expected, result):
    assert verify_secret(provided, expected) is result


def test_mask_email():
    assert mask_email("dana.fletcher@example.com") == "dan***@example.com"
    assert mask_email("") == ""
    assert mask_email(None) == ""


def test_build_log_context_omits_empty_fields():
    assert build_log_context(tenant_id="t1", achievement_id=None, route="/x") == {
        "tenant_id": "t1",
        "route": "/x",
    }
