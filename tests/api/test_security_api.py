"""Tests for the admin security dashboard API."""

from datetime import timedelta

import pytest
from httpx import AsyncClient

from app.models.login_attempt import FailureReason
from app.models.user import User
from app.services.login_attempts import record_login_attempt
from app.utils.time import utc_now


@pytest.mark.asyncio
async def test_stats_require_admin(authenticated_client: AsyncClient):
    response = await authenticated_client.get("/api/security/stats")

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_stats_after_logins(admin_client: AsyncClient, test_user: User, user_password: str):
    await admin_client.post("/api/auth/login", json={"email": test_user.email, "password": user_password})
    await admin_client.post("/api/auth/login", json={"email": test_user.email, "password": "nope-nope"})

    response = await admin_client.get("/api/security/stats", params={"hours": 1})

    assert response.status_code == 200
    assert response.json() == {
        "hours": 1,
        "total_attempts": 2,
        "failed_attempts": 1,
        "successful_attempts": 1,
        "unique_ips": 1,
        "blocked_count": 0,
    }


@pytest.mark.asyncio
async def test_failed_attempts_most_recent_first(admin_client: AsyncClient, test_session):
    now = utc_now()
    await record_login_attempt(
        test_session, "first@example.com", "10.0.0.1", False, FailureReason.INVALID_CREDENTIALS, now=now - timedelta(minutes=5)
    )
    await record_login_attempt(
        test_session, "second@example.com", "10.0.0.1", False, FailureReason.RATE_LIMITED, now=now - timedelta(minutes=1)
    )

    response = await admin_client.get("/api/security/failed-attempts", params={"hours": 1, "limit": 10})

    assert response.status_code == 200
    attempts = response.json()["attempts"]
    assert [a["email"] for a in attempts] == ["second@example.com", "first@example.com"]
    assert attempts[0]["failure_reason"] == "rate_limited"


@pytest.mark.asyncio
async def test_cleanup(admin_client: AsyncClient, test_session):
    await record_login_attempt(
        test_session, "ancient@example.com", "10.0.0.1", False, now=utc_now() - timedelta(days=90)
    )

    response = await admin_client.post("/api/security/cleanup")

    assert response.status_code == 200
    assert response.json() == {"login_attempts": 1, "rate_limits": 0, "verification_codes": 0}
