"""Security dashboard API: login statistics, failed attempts and cleanup (admin only)."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import require_admin
from app.core.config import settings
from app.db.session import get_db
from app.models.user import User
from app.schemas.security import (
    CleanupResponse,
    FailedAttemptsResponse,
    LoginAttemptResponse,
    SecurityStatsResponse,
)
from app.services.security_stats import get_failed_attempts, get_security_stats, run_maintenance

router = APIRouter(prefix="/security", tags=["security"])


@router.get("/stats", response_model=SecurityStatsResponse)
async def security_stats(
    db: Annotated[AsyncSession, Depends(get_db)],
    _: Annotated[User, Depends(require_admin)],
    hours: int = Query(24, ge=1, le=720),
):
    stats = await get_security_stats(db, hours=hours)
    return SecurityStatsResponse(hours=hours, **stats.to_dict())


@router.get("/failed-attempts", response_model=FailedAttemptsResponse)
async def failed_attempts(
    db: Annotated[AsyncSession, Depends(get_db)],
    _: Annotated[User, Depends(require_admin)],
    hours: int = Query(24, ge=1, le=720),
    limit: int = Query(100, ge=1, le=1000),
):
    """Recent failed logins, most recent first."""
    attempts = await get_failed_attempts(db, hours=hours, limit=limit)
    return FailedAttemptsResponse(
        hours=hours,
        attempts=[LoginAttemptResponse.model_validate(a) for a in attempts],
    )


@router.post("/cleanup", response_model=CleanupResponse)
async def cleanup(
    db: Annotated[AsyncSession, Depends(get_db)],
    _: Annotated[User, Depends(require_admin)],
):
    """Run the maintenance sweeps now instead of waiting for the scheduler."""
    results = await run_maintenance(db, retention_days=settings.LOGIN_ATTEMPT_RETENTION_DAYS)
    return CleanupResponse(**results)
