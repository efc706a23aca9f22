"""
Rate limiting service for guarded actions (login, signup, code requests).

Keeps one counter row per (identifier, action type) in the database, which is
the single source of truth shared by every worker process. The counter uses a
fixed window that starts at the first attempt; once the count reaches the
limit the pair is blocked for twice the window length.

Storage failures fail OPEN: a rate-limiter outage must not lock every user out
of the authentication path. Callers that need the opposite behaviour check
``RateLimitResult.degraded``.
"""

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.rate_limit import RateLimit
from app.utils.time import ensure_utc, utc_now

logger = logging.getLogger(__name__)

LOGIN_ACTION = "login"
SIGNUP_ACTION = "signup"

DEFAULT_MAX_ATTEMPTS = 5
DEFAULT_WINDOW_MINUTES = 15

# Block duration is this multiple of the detection window
BLOCK_MULTIPLIER = 2

FAIL_OPEN = True


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    attempts: int
    reset_time: datetime | None = None
    message: str | None = None
    degraded: bool = False

    def retry_after_seconds(self, now: datetime | None = None) -> int:
        """Seconds until the block lifts, at least 1 when blocked."""
        if self.reset_time is None:
            return 0
        now = now or utc_now()
        return max(1, math.ceil((self.reset_time - now).total_seconds()))


@dataclass(frozen=True)
class RateLimitStatus:
    locked: bool
    attempts: int
    blocked_until: datetime | None


def _blocked_message(reset_time: datetime) -> str:
    return f"Too many attempts. Try again after {reset_time.strftime('%H:%M:%S')} UTC."


def _validate(identifier: str, action_type: str, max_attempts: int, window_minutes: int) -> None:
    if not identifier:
        raise ValueError("identifier must be a non-empty string")
    if not action_type:
        raise ValueError("action_type must be a non-empty string")
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")
    if window_minutes < 1:
        raise ValueError("window_minutes must be at least 1")


async def _lock_record(db: AsyncSession, identifier: str, action_type: str) -> RateLimit | None:
    """Load the counter row with a row-level lock held until commit."""
    result = await db.execute(
        select(RateLimit)
        .where(RateLimit.identifier == identifier, RateLimit.action_type == action_type)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def check_and_consume(
    db: AsyncSession,
    identifier: str,
    action_type: str,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    window_minutes: int = DEFAULT_WINDOW_MINUTES,
    *,
    now: datetime | None = None,
) -> RateLimitResult:
    """
    Decide whether ``identifier`` may perform ``action_type`` and consume one attempt.

    The read-modify-write happens in a single transaction with the row locked,
    so concurrent requests for the same pair are serialized by the database.
    Every call commits the updated row.
    """
    _validate(identifier, action_type, max_attempts, window_minutes)
    now = now or utc_now()

    try:
        record = await _lock_record(db, identifier, action_type)

        if record is None:
            db.add(
                RateLimit(
                    identifier=identifier,
                    action_type=action_type,
                    attempts=1,
                    first_attempt_at=now,
                    last_attempt_at=now,
                )
            )
            try:
                await db.commit()
                return RateLimitResult(allowed=True, attempts=1)
            except IntegrityError:
                # Another request created the row first; continue against theirs
                await db.rollback()
                record = await _lock_record(db, identifier, action_type)
                if record is None:
                    raise

        blocked_until = ensure_utc(record.blocked_until)
        if blocked_until is not None and blocked_until > now:
            await db.commit()  # release the row lock
            return RateLimitResult(
                allowed=False,
                attempts=record.attempts,
                reset_time=blocked_until,
                message=_blocked_message(blocked_until),
            )

        window_start = now - timedelta(minutes=window_minutes)
        if ensure_utc(record.first_attempt_at) < window_start:
            record.attempts = 1
            record.first_attempt_at = now
            record.last_attempt_at = now
            record.blocked_until = None
            await db.commit()
            return RateLimitResult(allowed=True, attempts=1)

        record.attempts += 1
        record.last_attempt_at = now
        attempts = record.attempts

        if attempts >= max_attempts:
            reset_time = now + timedelta(minutes=window_minutes * BLOCK_MULTIPLIER)
            record.blocked_until = reset_time
            await db.commit()
            logger.warning(
                "Rate limit exceeded for %s (%s): %d attempts, blocked until %s",
                identifier,
                action_type,
                attempts,
                reset_time.isoformat(),
            )
            return RateLimitResult(
                allowed=False,
                attempts=attempts,
                reset_time=reset_time,
                message=_blocked_message(reset_time),
            )

        await db.commit()
        return RateLimitResult(allowed=True, attempts=attempts)

    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Rate limit check failed for %s (%s); allowing request", identifier, action_type)
        return RateLimitResult(allowed=FAIL_OPEN, attempts=0, degraded=True)


async def reset(db: AsyncSession, identifier: str, action_type: str) -> None:
    """Delete the counter for the pair. No-op when it does not exist."""
    try:
        await db.execute(
            delete(RateLimit).where(
                RateLimit.identifier == identifier,
                RateLimit.action_type == action_type,
            )
        )
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Failed to reset rate limit for %s (%s)", identifier, action_type)


async def get_status(
    db: AsyncSession,
    identifier: str,
    action_type: str = LOGIN_ACTION,
    *,
    now: datetime | None = None,
) -> RateLimitStatus:
    """Read-only view of a counter, for the admin lock-status endpoint."""
    now = now or utc_now()
    result = await db.execute(
        select(RateLimit).where(
            RateLimit.identifier == identifier,
            RateLimit.action_type == action_type,
        ).execution_options(populate_existing=True)
    )
    record = result.scalar_one_or_none()
    if record is None:
        return RateLimitStatus(locked=False, attempts=0, blocked_until=None)

    blocked_until = ensure_utc(record.blocked_until)
    locked = blocked_until is not None and blocked_until > now
    return RateLimitStatus(
        locked=locked,
        attempts=record.attempts,
        blocked_until=blocked_until if locked else None,
    )


async def cleanup_expired_blocks(db: AsyncSession, *, now: datetime | None = None) -> int:
    """Remove counters whose block has lapsed. Returns count deleted."""
    now = now or utc_now()
    result = await db.execute(
        delete(RateLimit).where(
            RateLimit.blocked_until.is_not(None),
            RateLimit.blocked_until < now,
        )
    )
    await db.commit()
    return result.rowcount
