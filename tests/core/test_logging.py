"""Tests for log redaction."""

from app.core.logging import redact_sensitive_data, redact_string


def test_sensitive_keys_redacted():
    event = {
        "event": "login",
        "password": "hunter2",
        "access_token": "eyJ...",
        "two_factor_secret": "JBSWY3DP",
        "totp_code": "123456",
        "ip_address": "10.0.0.1",
    }

    redacted = redact_sensitive_data(None, "info", event)

    assert redacted["password"] == "***REDACTED***"
    assert redacted["access_token"] == "***REDACTED***"
    assert redacted["two_factor_secret"] == "***REDACTED***"
    assert redacted["totp_code"] == "***REDACTED***"
    assert redacted["ip_address"] == "10.0.0.1"
    assert event["password"] == "hunter2"


def test_emails_masked_in_messages():
    redacted = redact_sensitive_data(None, "warning", {"event": "Rate limit exceeded for alice@example.com (login)"})

    assert redacted["event"] == "Rate limit exceeded for a***@example.com (login)"


def test_redact_string_without_email():
    assert redact_string("nothing to hide") == "nothing to hide"
