"""Tests for password hashing and access tokens."""

from datetime import timedelta

from app.core.security import (
    create_access_token,
    decode_access_token,
    get_password_hash,
    verify_password,
)


def test_password_hash_roundtrip():
    hashed = get_password_hash("Sturdy-Passw0rd")

    assert hashed.startswith("$2b$12$")
    assert verify_password("Sturdy-Passw0rd", hashed) is True
    assert verify_password("sturdy-passw0rd", hashed) is False


def test_token_carries_subject_and_version():
    token = create_access_token({"sub": "abc"}, token_version=3)

    payload = decode_access_token(token)

    assert payload["sub"] == "abc"
    assert payload["tv"] == 3
    assert "exp" in payload


def test_expired_token_rejected():
    token = create_access_token({"sub": "abc"}, expires_delta=timedelta(seconds=-5))

    assert decode_access_token(token) is None


def test_tampered_token_rejected():
    token = create_access_token({"sub": "abc"})

    assert decode_access_token(token[:-2] + "xx") is None
