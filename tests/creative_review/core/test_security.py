"""Tests for security utilities."""

from datetime import datetime, timedelta, timezone
from unittest.mock import patch

from creative_review.core.security import (
    create_access_token,
    decode_access_token,
    hash_password,
    verify_password,
)


def test_hash_password():
    """Test that password hashing produces a bcrypt hash."""
    hashed = hash_password("test_password_123")

    assert hashed != "test_password_123"
    assert hashed.startswith("$2b$")


def test_verify_password():
    """Test that verification accepts the right password only."""
    hashed = hash_password("test_password_123")

    assert verify_password("test_password_123", hashed) is True
    assert verify_password("wrong_password", hashed) is False


def test_create_and_decode_access_token():
    """Test that token claims survive encoding."""
    token = create_access_token({"sub": "user_id_123", "role": "pm"})
    decoded = decode_access_token(token)

    assert decoded is not None
    assert decoded["sub"] == "user_id_123"
    assert decoded["role"] == "pm"
    assert "exp" in decoded


def test_decode_access_token_invalid_token():
    """Test that a malformed token returns None."""
    assert decode_access_token("invalid_token_string") is None


def test_decode_access_token_expired():
    """Test that an expired token returns None."""
    token = create_access_token({"sub": "user_id_123"}, expires_delta=timedelta(seconds=-1))

    assert decode_access_token(token) is None


def test_decode_access_token_wrong_secret():
    """Test that a token signed with another secret returns None."""
    token = create_access_token({"sub": "user_id_123"})

    with patch("creative_review.core.security.settings") as mock_settings:
        mock_settings.secret_key = "wrong_secret_key"
        mock_settings.algorithm = "HS256"
        assert decode_access_token(token) is None


def test_token_expiration_time():
    """Test that the custom expiration is applied."""
    token = create_access_token({"sub": "user_id_123"}, expires_delta=timedelta(minutes=30))
    decoded = decode_access_token(token)

    exp_datetime = datetime.fromtimestamp(decoded["exp"], tz=timezone.utc)
    minutes_left = (exp_datetime - datetime.now(timezone.utc)).total_seconds() / 60
    assert 29 <= minutes_left <= 31
