"""
Security reporting and maintenance sweeps.

Aggregates the login attempt ledger for the admin dashboard and runs the
periodic cleanups (old ledger rows, lapsed rate-limit blocks, expired
verification codes).
"""

import logging
from collections.abc import Sequence
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.login_attempt import LoginAttempt
from app.models.rate_limit import RateLimit
from app.services import rate_limit
from app.services.login_attempts import list_failed_attempts, purge_older_than
from app.services.verification import cleanup_expired_codes
from app.utils.time import utc_now

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SecurityStats:
    total_attempts: int = 0
    failed_attempts: int = 0
    successful_attempts: int = 0
    unique_ips: int = 0
    blocked_count: int = 0

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


async def get_security_stats(
    db: AsyncSession,
    hours: int = 24,
    *,
    now: datetime | None = None,
) -> SecurityStats:
    """Attempt counts over the trailing ``hours`` and currently blocked logins."""
    now = now or utc_now()
    since = now - timedelta(hours=hours)

    try:
        result = await db.execute(
            select(
                func.count(LoginAttempt.id),
                func.count(LoginAttempt.id).filter(LoginAttempt.success.is_(False)),
                func.count(LoginAttempt.id).filter(LoginAttempt.success.is_(True)),
                func.count(func.distinct(LoginAttempt.ip_address)),
            ).where(LoginAttempt.attempted_at >= since)
        )
        total, failed, successful, unique_ips = result.one()

        blocked = await db.execute(
            select(func.count()).select_from(RateLimit).where(
                RateLimit.action_type == rate_limit.LOGIN_ACTION,
                RateLimit.blocked_until >= now,
            )
        )
        return SecurityStats(
            total_attempts=total or 0,
            failed_attempts=failed or 0,
            successful_attempts=successful or 0,
            unique_ips=unique_ips or 0,
            blocked_count=blocked.scalar() or 0,
        )
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Error computing security stats")
        return SecurityStats()


async def get_failed_attempts(
    db: AsyncSession,
    hours: int = 24,
    limit: int = 100,
    *,
    now: datetime | None = None,
) -> Sequence[LoginAttempt]:
    return await list_failed_attempts(db, hours=hours, limit=limit, now=now)


async def run_maintenance(
    db: AsyncSession,
    retention_days: int = 30,
    *,
    now: datetime | None = None,
) -> dict[str, int]:
    """
    Run every cleanup sweep once.

    Sweeps are independent: one failing is logged and does not stop the
    others. A failed sweep reports -1.
    """
    now = now or utc_now()
    sweeps = {
        "login_attempts": lambda: purge_older_than(db, retention_days, now=now),
        "rate_limits": lambda: rate_limit.cleanup_expired_blocks(db, now=now),
        "verification_codes": lambda: cleanup_expired_codes(db, now=now),
    }

    results: dict[str, int] = {}
    for name, sweep in sweeps.items():
        try:
            results[name] = await sweep()
        except SQLAlchemyError:
            await db.rollback()
            logger.exception("Maintenance sweep %s failed", name)
            results[name] = -1

    logger.info(
        "Maintenance complete: %d login attempts, %d rate limits, %d verification codes removed",
        results["login_attempts"],
        results["rate_limits"],
        results["verification_codes"],
    )
    return results
