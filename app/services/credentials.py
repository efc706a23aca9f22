"""
Credential verification for the login endpoint.

Order of checks:
1. Rate limit (cheap rejection before the bcrypt comparison)
2. User lookup by normalized email
3. Password hash comparison
4. Second factor, when enabled

Each call writes exactly one row to the login attempt ledger. Rejections
share one public message so callers cannot tell an unknown email from a wrong
password; the ledger keeps the real reason.

A storage failure while loading the user fails CLOSED (the attempt is
rejected), unlike the rate limiter which fails open.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.security import dummy_verify, verify_password
from app.models.login_attempt import FailureReason
from app.models.user import User
from app.services import rate_limit
from app.services.login_attempts import record_login_attempt
from app.services.totp import verify_second_factor
from app.services.users import get_user_by_email, normalize_email

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS_MESSAGE = "Invalid email or password"
TWO_FACTOR_REQUIRED_MESSAGE = "Two-factor authentication code required"
INVALID_TWO_FACTOR_MESSAGE = "Invalid two-factor authentication code"
UNAVAILABLE_MESSAGE = "Unable to verify credentials right now. Please try again later."


@dataclass(frozen=True)
class AuthenticatedUser:
    """Public identity handed to the session/token layer."""

    id: uuid.UUID
    email: str
    name: str
    image: str | None
    token_version: int = 0

    @classmethod
    def from_user(cls, user: User) -> "AuthenticatedUser":
        return cls(
            id=user.id,
            email=user.email,
            name=user.display_name,
            image=user.profile_image,
            token_version=user.token_version,
        )


@dataclass(frozen=True)
class AuthResult:
    success: bool
    user: AuthenticatedUser | None = None
    reason: FailureReason | None = None
    message: str | None = None
    reset_time: datetime | None = None
    retry_after: int = 0


async def authenticate(
    db: AsyncSession,
    email: str,
    password: str,
    ip_address: str,
    user_agent: str | None = None,
    two_factor_code: str | None = None,
    *,
    max_attempts: int = rate_limit.DEFAULT_MAX_ATTEMPTS,
    window_minutes: int = rate_limit.DEFAULT_WINDOW_MINUTES,
    now: datetime | None = None,
) -> AuthResult:
    email = normalize_email(email)

    async def _reject(reason: FailureReason, message: str, **extra) -> AuthResult:
        await record_login_attempt(
            db, email, ip_address, False, reason, user_agent, now=now
        )
        return AuthResult(success=False, reason=reason, message=message, **extra)

    check = await rate_limit.check_and_consume(
        db, email, rate_limit.LOGIN_ACTION, max_attempts, window_minutes, now=now
    )
    if not check.allowed:
        logger.info("Login rate limited for %s from %s", email, ip_address)
        return await _reject(
            FailureReason.RATE_LIMITED,
            check.message,
            reset_time=check.reset_time,
            retry_after=check.retry_after_seconds(now),
        )

    try:
        user = await get_user_by_email(db, email)
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("User lookup failed during login for %s", email)
        return await _reject(FailureReason.SERVICE_UNAVAILABLE, UNAVAILABLE_MESSAGE)

    if user is None:
        dummy_verify()
        return await _reject(FailureReason.INVALID_CREDENTIALS, INVALID_CREDENTIALS_MESSAGE)

    if not verify_password(password, user.password_hash):
        return await _reject(FailureReason.INVALID_CREDENTIALS, INVALID_CREDENTIALS_MESSAGE)

    if not user.is_active:
        return await _reject(FailureReason.ACCOUNT_LOCKED, INVALID_CREDENTIALS_MESSAGE)

    if user.two_factor_enabled:
        if not two_factor_code:
            return await _reject(FailureReason.TWO_FACTOR_REQUIRED, TWO_FACTOR_REQUIRED_MESSAGE)

        valid, remaining_codes = verify_second_factor(
            user.two_factor_secret, user.two_factor_backup_codes, two_factor_code
        )
        if not valid:
            return await _reject(FailureReason.INVALID_TWO_FACTOR, INVALID_TWO_FACTOR_MESSAGE)
        if remaining_codes is not None:
            user.two_factor_backup_codes = remaining_codes
            try:
                await db.commit()
            except SQLAlchemyError:
                # An unconsumed backup code must not grant a session
                await db.rollback()
                logger.exception("Could not consume backup code for %s", email)
                return await _reject(FailureReason.SERVICE_UNAVAILABLE, UNAVAILABLE_MESSAGE)
            logger.info("Backup code used for %s; %d remaining", user.id, len(remaining_codes))

    identity = AuthenticatedUser.from_user(user)
    await rate_limit.reset(db, email, rate_limit.LOGIN_ACTION)
    await record_login_attempt(db, email, ip_address, True, None, user_agent, now=now)
    return AuthResult(success=True, user=identity)
