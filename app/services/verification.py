"""
Verification code service.

Codes are 6 random digits, single use, and expire after a configurable number
of minutes. Issuing a new code for a (user, type) pair invalidates the older
ones.
"""

import logging
import secrets
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta
from uuid import UUID

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.verification_code import VerificationCode, VerificationCodeType
from app.utils.time import utc_now

logger = logging.getLogger(__name__)

DEFAULT_EXPIRES_MINUTES = 15


@dataclass(frozen=True)
class VerificationResult:
    success: bool
    user_id: UUID | None = None


def generate_code() -> str:
    return f"{secrets.randbelow(900000) + 100000}"


async def invalidate_user_codes(
    db: AsyncSession,
    user_id: UUID,
    code_type: VerificationCodeType,
) -> None:
    """Mark every unused code of this type for the user as used."""
    await db.execute(
        update(VerificationCode)
        .where(
            VerificationCode.user_id == user_id,
            VerificationCode.type == code_type.value,
            VerificationCode.used.is_(False),
        )
        .values(used=True)
    )
    await db.commit()


async def create_code(
    db: AsyncSession,
    user_id: UUID,
    email: str,
    code_type: VerificationCodeType,
    expires_in_minutes: int = DEFAULT_EXPIRES_MINUTES,
    *,
    now: datetime | None = None,
) -> str:
    """Issue a fresh code and return it in plain text for delivery."""
    now = now or utc_now()
    await invalidate_user_codes(db, user_id, code_type)

    code = generate_code()
    db.add(
        VerificationCode(
            user_id=user_id,
            email=email.lower(),
            code=code,
            type=code_type.value,
            expires_at=now + timedelta(minutes=expires_in_minutes),
            created_at=now,
        )
    )
    await db.commit()
    logger.info("Issued %s code for user %s", code_type.value, user_id)
    return code


async def verify_code(
    db: AsyncSession,
    email: str,
    code: str,
    code_type: VerificationCodeType,
    *,
    now: datetime | None = None,
) -> VerificationResult:
    """Check a code and mark it used on success."""
    now = now or utc_now()
    result = await db.execute(
        select(VerificationCode)
        .where(
            VerificationCode.email == email.lower(),
            VerificationCode.code == code,
            VerificationCode.type == code_type.value,
            VerificationCode.used.is_(False),
            VerificationCode.expires_at > now,
        )
        .limit(1)
    )
    record = result.scalar_one_or_none()
    if record is None:
        return VerificationResult(success=False)

    record.used = True
    await db.commit()
    return VerificationResult(success=True, user_id=record.user_id)


async def cleanup_expired_codes(db: AsyncSession, *, now: datetime | None = None) -> int:
    """Delete codes past their expiry. Returns count deleted."""
    result = await db.execute(
        delete(VerificationCode).where(VerificationCode.expires_at < (now or utc_now()))
    )
    await db.commit()
    return result.rowcount


async def get_recent_codes(db: AsyncSession, limit: int = 50) -> Sequence[VerificationCode]:
    result = await db.execute(
        select(VerificationCode).order_by(VerificationCode.created_at.desc()).limit(limit)
    )
    return result.scalars().all()
