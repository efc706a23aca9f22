"""
Login attempt ledger.

Writes are best effort: an audit write failure is logged and swallowed so the
authentication path is never blocked by it.
"""

import logging
from collections.abc import Sequence
from datetime import datetime, timedelta

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.login_attempt import FailureReason, LoginAttempt
from app.utils.time import utc_now

logger = logging.getLogger(__name__)


async def record_login_attempt(
    db: AsyncSession,
    email: str,
    ip_address: str,
    success: bool,
    failure_reason: FailureReason | str | None = None,
    user_agent: str | None = None,
    *,
    now: datetime | None = None,
) -> None:
    """Append one attempt to the ledger."""
    if isinstance(failure_reason, FailureReason):
        failure_reason = failure_reason.value

    try:
        db.add(
            LoginAttempt(
                email=email.lower(),
                ip_address=ip_address,
                user_agent=user_agent[:512] if user_agent else None,
                success=success,
                failure_reason=None if success else failure_reason,
                attempted_at=now or utc_now(),
            )
        )
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Error recording login attempt")


async def list_failed_attempts(
    db: AsyncSession,
    hours: int = 24,
    limit: int = 100,
    *,
    now: datetime | None = None,
) -> Sequence[LoginAttempt]:
    """Failed attempts within the trailing window, most recent first."""
    since = (now or utc_now()) - timedelta(hours=hours)
    try:
        result = await db.execute(
            select(LoginAttempt)
            .where(
                LoginAttempt.success.is_(False),
                LoginAttempt.attempted_at >= since,
            )
            .order_by(LoginAttempt.attempted_at.desc(), LoginAttempt.id.desc())
            .limit(limit)
        )
        return result.scalars().all()
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Error listing failed login attempts")
        return []


async def purge_older_than(db: AsyncSession, days: int = 30, *, now: datetime | None = None) -> int:
    """Remove attempts older than ``days``. Returns count deleted."""
    cutoff = (now or utc_now()) - timedelta(days=days)
    result = await db.execute(
        delete(LoginAttempt).where(LoginAttempt.attempted_at < cutoff)
    )
    await db.commit()
    return result.rowcount
