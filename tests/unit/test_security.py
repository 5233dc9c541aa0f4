from datetime import UTC, datetime, timedelta

import pytest

from venue.core.security import decode_access_token, hash_password, issue_access_token, verify_password


def test_password_hash_and_verify():
    plain = "StrongPass123"
    hashed = hash_password(plain)

    assert hashed != plain
    assert verify_password(plain, hashed) is True
    assert verify_password("WrongPass123", hashed) is False


def test_access_token_carries_identity_claims():
    token = issue_access_token(user_id=7, role="admin", email="boss@example.com")
    claims = decode_access_token(token)

    assert claims["sub"] == "7"
    assert claims["role"] == "admin"
    assert claims["email"] == "boss@example.com"


def test_expired_token_is_rejected():
    token = issue_access_token(user_id=7, role="member", email="m@example.com", now=datetime.now(UTC) - timedelta(days=1))
    with pytest.raises(ValueError):
        decode_access_token(token)
