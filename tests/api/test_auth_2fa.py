"""Tests for 2FA authentication API endpoints."""

import pyotp
import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.user import User
from app.services.totp import hash_backup_code

SECRET = "JBSWY3DPEHPK3PXPJBSWY3DPEHPK3PXP"


async def _enable_2fa(session: AsyncSession, user: User, backup_codes: list[str] | None = None) -> None:
    user.two_factor_enabled = True
    user.two_factor_secret = SECRET
    user.two_factor_backup_codes = [hash_backup_code(c) for c in backup_codes or []]
    await session.commit()


class TestSetup2FA:
    """Tests for POST /auth/2fa/setup endpoint."""

    @pytest.mark.asyncio
    async def test_2fa_setup_returns_qr_uri(
        self, authenticated_client: AsyncClient, test_user: User
    ):
        """2FA setup returns QR URI and secret."""
        response = await authenticated_client.post("/api/auth/2fa/setup", json={})
        assert response.status_code == 200
        data = response.json()
        assert data["qr_uri"].startswith("otpauth://totp/")
        assert len(data["secret"]) == 32
        # Pending until confirmed
        assert test_user.two_factor_enabled is False
        assert test_user.two_factor_secret == data["secret"]

    @pytest.mark.asyncio
    async def test_2fa_setup_fails_if_already_enabled(
        self, authenticated_client: AsyncClient, test_session: AsyncSession, test_user: User
    ):
        """2FA setup fails if already enabled."""
        await _enable_2fa(test_session, test_user)

        response = await authenticated_client.post("/api/auth/2fa/setup", json={})

        assert response.status_code == 400
        assert "already enabled" in response.json()["detail"]

    @pytest.mark.asyncio
    async def test_2fa_setup_requires_auth(self, client: AsyncClient):
        response = await client.post("/api/auth/2fa/setup", json={})

        assert response.status_code == 401


class TestVerify2FA:
    """Tests for POST /auth/2fa/verify endpoint."""

    @pytest.mark.asyncio
    async def test_verify_enables_2fa_and_returns_backup_codes(
        self, authenticated_client: AsyncClient, test_user: User
    ):
        setup = await authenticated_client.post("/api/auth/2fa/setup", json={})
        secret = setup.json()["secret"]

        response = await authenticated_client.post(
            "/api/auth/2fa/verify", json={"code": pyotp.TOTP(secret).now()}
        )

        assert response.status_code == 200
        assert len(response.json()["backup_codes"]) == 10
        assert test_user.two_factor_enabled is True
        assert len(test_user.two_factor_backup_codes) == 10

    @pytest.mark.asyncio
    async def test_verify_rejects_wrong_code(self, authenticated_client: AsyncClient, test_user: User):
        await authenticated_client.post("/api/auth/2fa/setup", json={})

        response = await authenticated_client.post("/api/auth/2fa/verify", json={"code": "abcdef"})

        assert response.status_code == 400
        assert test_user.two_factor_enabled is False

    @pytest.mark.asyncio
    async def test_verify_without_setup(self, authenticated_client: AsyncClient):
        response = await authenticated_client.post("/api/auth/2fa/verify", json={"code": "123456"})

        assert response.status_code == 400


class TestDisable2FA:
    """Tests for POST /auth/2fa/disable endpoint."""

    @pytest.mark.asyncio
    async def test_disable_with_totp(
        self, authenticated_client: AsyncClient, test_session: AsyncSession, test_user: User
    ):
        await _enable_2fa(test_session, test_user)

        response = await authenticated_client.post(
            "/api/auth/2fa/disable", json={"code": pyotp.TOTP(SECRET).now()}
        )

        assert response.status_code == 200
        assert test_user.two_factor_enabled is False
        assert test_user.two_factor_secret is None

    @pytest.mark.asyncio
    async def test_disable_with_backup_code(
        self, authenticated_client: AsyncClient, test_session: AsyncSession, test_user: User
    ):
        await _enable_2fa(test_session, test_user, ["RECOVER1"])

        response = await authenticated_client.post("/api/auth/2fa/disable", json={"code": "RECOVER1"})

        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_disable_rejects_invalid_code(
        self, authenticated_client: AsyncClient, test_session: AsyncSession, test_user: User
    ):
        await _enable_2fa(test_session, test_user)

        response = await authenticated_client.post("/api/auth/2fa/disable", json={"code": "WRONG999"})

        assert response.status_code == 400
        assert test_user.two_factor_enabled is True

    @pytest.mark.asyncio
    async def test_disable_when_not_enabled(self, authenticated_client: AsyncClient):
        response = await authenticated_client.post("/api/auth/2fa/disable", json={"code": "123456"})

        assert response.status_code == 400


class TestLoginWith2FA:
    @pytest.mark.asyncio
    async def test_login_with_totp_code(
        self, client: AsyncClient, test_session: AsyncSession, test_user: User, user_password: str
    ):
        await _enable_2fa(test_session, test_user)

        response = await client.post(
            "/api/auth/login",
            json={
                "email": test_user.email,
                "password": user_password,
                "totp_code": pyotp.TOTP(SECRET).now(),
            },
        )

        assert response.status_code == 200
        assert "access_token" in response.json()

    @pytest.mark.asyncio
    async def test_login_with_invalid_totp_code(
        self, client: AsyncClient, test_session: AsyncSession, test_user: User, user_password: str
    ):
        await _enable_2fa(test_session, test_user)

        response = await client.post(
            "/api/auth/login",
            json={"email": test_user.email, "password": user_password, "totp_code": "00000000"},
        )

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "UNAUTHORIZED"
