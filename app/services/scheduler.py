"""
Scheduler service for periodic maintenance jobs.

Uses APScheduler to run the security cleanup sweeps (old login attempts,
lapsed rate-limit blocks, expired verification codes) outside the request
path. Sweeps are delete-by-predicate and safe to run while live traffic is
inserting rows, so several workers running the same job is harmless.
"""

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from app.core.config import Settings
from app.db.session import Database
from app.services.security_stats import run_maintenance

logger = logging.getLogger(__name__)

MAINTENANCE_JOB_ID = "security_maintenance"


class SchedulerService:
    """Owns an AsyncIOScheduler and the jobs registered on it."""

    def __init__(self, database: Database, settings: Settings):
        self.database = database
        self.settings = settings
        self.scheduler = AsyncIOScheduler()

    @property
    def running(self) -> bool:
        return self.scheduler.running

    def start(self) -> None:
        """Register jobs and start the scheduler."""
        self._schedule_maintenance()
        if not self.scheduler.running:
            self.scheduler.start()
            logger.info("Scheduler started")

    def stop(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Scheduler stopped")

    def _schedule_maintenance(self) -> None:
        interval = self.settings.MAINTENANCE_INTERVAL_MINUTES
        self.scheduler.add_job(
            self.run_maintenance_job,
            trigger=IntervalTrigger(minutes=interval),
            id=MAINTENANCE_JOB_ID,
            name="security maintenance",
            replace_existing=True,
            misfire_grace_time=interval * 60,
            coalesce=True,
        )
        logger.info("Scheduled security maintenance every %d minutes", interval)

    async def run_maintenance_job(self) -> dict[str, int] | None:
        """Job body: run the sweeps in a fresh session."""
        try:
            async with self.database.session() as session:
                return await run_maintenance(
                    session, retention_days=self.settings.LOGIN_ATTEMPT_RETENTION_DAYS
                )
        except Exception:
            logger.exception("Security maintenance job failed")
            return None
