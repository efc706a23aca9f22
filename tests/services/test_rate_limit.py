"""Tests for the database-backed rate limiter."""

from datetime import timedelta
from unittest.mock import patch

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.rate_limit import RateLimit
from app.services import rate_limit
from app.utils.time import ensure_utc

EMAIL = "user@example.com"


async def _record(session: AsyncSession, identifier: str = EMAIL, action: str = rate_limit.LOGIN_ACTION):
    result = await session.execute(
        select(RateLimit)
        .where(RateLimit.identifier == identifier, RateLimit.action_type == action)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def _consume(session, now, identifier=EMAIL, action=rate_limit.LOGIN_ACTION, max_attempts=5, window=15):
    return await rate_limit.check_and_consume(
        session, identifier, action, max_attempts, window, now=now
    )


class TestCheckAndConsume:
    @pytest.mark.asyncio
    async def test_first_attempt_creates_record(self, test_session, now):
        result = await _consume(test_session, now)

        assert result.allowed is True
        assert result.attempts == 1
        assert result.reset_time is None

        record = await _record(test_session)
        assert record.attempts == 1
        assert ensure_utc(record.first_attempt_at) == now
        assert record.blocked_until is None

    @pytest.mark.asyncio
    async def test_attempts_increment_within_window(self, test_session, now):
        for i in range(3):
            result = await _consume(test_session, now + timedelta(minutes=i))

        assert result.allowed is True
        assert result.attempts == 3
        record = await _record(test_session)
        assert ensure_utc(record.last_attempt_at) == now + timedelta(minutes=2)

    @pytest.mark.asyncio
    async def test_reaching_limit_blocks_for_twice_the_window(self, test_session, now):
        results = [
            await _consume(test_session, now + timedelta(minutes=2 * i)) for i in range(5)
        ]
        last_attempt = now + timedelta(minutes=8)

        assert all(r.allowed for r in results[:4])
        assert results[4].allowed is False
        assert results[4].attempts == 5
        assert results[4].reset_time == last_attempt + timedelta(minutes=30)
        assert results[4].message == "Too many attempts. Try again after 12:38:00 UTC."

    @pytest.mark.asyncio
    async def test_blocked_pair_stays_denied_without_counting(self, test_session, now):
        for i in range(5):
            await _consume(test_session, now + timedelta(minutes=2 * i))

        later = now + timedelta(minutes=13)
        result = await _consume(test_session, later)

        assert result.allowed is False
        assert result.attempts == 5
        assert result.reset_time == now + timedelta(minutes=38)
        assert result.retry_after_seconds(later) == 25 * 60

    @pytest.mark.asyncio
    async def test_allowed_again_with_fresh_count_after_block_expires(self, test_session, now):
        for i in range(5):
            await _consume(test_session, now + timedelta(minutes=2 * i))

        result = await _consume(test_session, now + timedelta(minutes=8 + 31))

        assert result.allowed is True
        assert result.attempts == 1
        record = await _record(test_session)
        assert record.attempts == 1
        assert record.blocked_until is None

    @pytest.mark.asyncio
    async def test_window_expiry_resets_count(self, test_session, now):
        for i in range(3):
            await _consume(test_session, now + timedelta(minutes=i))

        result = await _consume(test_session, now + timedelta(minutes=16))

        assert result.allowed is True
        assert result.attempts == 1

    @pytest.mark.asyncio
    async def test_max_attempts_of_one_blocks_on_second_call(self, test_session, now):
        first = await _consume(test_session, now, max_attempts=1)
        second = await _consume(test_session, now + timedelta(seconds=1), max_attempts=1)

        assert first.allowed is True
        assert second.allowed is False

    @pytest.mark.asyncio
    async def test_pairs_are_independent(self, test_session, now):
        for i in range(5):
            await _consume(test_session, now + timedelta(seconds=i))

        other_action = await _consume(test_session, now, action=rate_limit.SIGNUP_ACTION)
        other_identifier = await _consume(test_session, now, identifier="other@example.com")

        assert other_action.allowed is True
        assert other_identifier.allowed is True

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "identifier,action,max_attempts,window",
        [
            ("", rate_limit.LOGIN_ACTION, 5, 15),
            (EMAIL, "", 5, 15),
            (EMAIL, rate_limit.LOGIN_ACTION, 0, 15),
            (EMAIL, rate_limit.LOGIN_ACTION, 5, 0),
        ],
    )
    async def test_invalid_arguments_rejected(self, test_session, identifier, action, max_attempts, window):
        with pytest.raises(ValueError):
            await rate_limit.check_and_consume(test_session, identifier, action, max_attempts, window)

    @pytest.mark.asyncio
    async def test_storage_failure_fails_open(self, test_session, now):
        error = OperationalError("SELECT", {}, Exception("database is down"))
        with patch.object(test_session, "execute", side_effect=error):
            result = await _consume(test_session, now)

        assert result.allowed is True
        assert result.attempts == 0
        assert result.degraded is True


class TestResetAndStatus:
    @pytest.mark.asyncio
    async def test_reset_deletes_record(self, test_session, now):
        for i in range(4):
            await _consume(test_session, now + timedelta(minutes=i))

        await rate_limit.reset(test_session, EMAIL, rate_limit.LOGIN_ACTION)

        assert await _record(test_session) is None
        result = await _consume(test_session, now + timedelta(minutes=5))
        assert result.attempts == 1

    @pytest.mark.asyncio
    async def test_reset_missing_record_is_noop(self, test_session):
        await rate_limit.reset(test_session, "nobody@example.com", rate_limit.LOGIN_ACTION)

    @pytest.mark.asyncio
    async def test_status_reports_lock(self, test_session, now):
        for i in range(5):
            await _consume(test_session, now + timedelta(seconds=i))

        status = await rate_limit.get_status(test_session, EMAIL, now=now + timedelta(minutes=1))

        assert status.locked is True
        assert status.attempts == 5
        assert status.blocked_until == now + timedelta(seconds=4, minutes=30)

    @pytest.mark.asyncio
    async def test_status_after_block_lapses(self, test_session, now):
        for i in range(5):
            await _consume(test_session, now + timedelta(seconds=i))

        status = await rate_limit.get_status(test_session, EMAIL, now=now + timedelta(hours=1))

        assert status.locked is False
        assert status.blocked_until is None

    @pytest.mark.asyncio
    async def test_status_without_record(self, test_session):
        status = await rate_limit.get_status(test_session, EMAIL)

        assert status.locked is False
        assert status.attempts == 0


class TestCleanupExpiredBlocks:
    @pytest.mark.asyncio
    async def test_removes_only_lapsed_blocks(self, test_session, now):
        for i in range(5):
            await _consume(test_session, now + timedelta(seconds=i), identifier="old@example.com")
        for i in range(5):
            await _consume(
                test_session, now + timedelta(minutes=40, seconds=i), identifier="new@example.com"
            )
        await _consume(test_session, now, identifier="unblocked@example.com")

        removed = await rate_limit.cleanup_expired_blocks(test_session, now=now + timedelta(minutes=45))

        assert removed == 1
        assert await _record(test_session, "old@example.com") is None
        assert await _record(test_session, "new@example.com") is not None
        assert await _record(test_session, "unblocked@example.com") is not None
