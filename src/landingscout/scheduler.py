"""
APScheduler-based driver that starts due scouts.

Jobs (all times UTC)
--------------------
  check_scheduled_scouts: every ``scheduler_check_interval`` seconds
  purge_html_snapshots:   04:00 every day

Lifecycle
---------
Build a ``ScoutScheduler`` with a running engine, call ``start()`` from
inside the event loop, and ``shutdown()`` before the engine shuts down.
"""

import logging
from datetime import timedelta
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from landingscout.config import Config, settings
from landingscout.models import utcnow
from landingscout.scout_service import ScoutService
from landingscout.session_engine import CrawlSessionEngine

logger = logging.getLogger(__name__)


class ScoutScheduler:
    """Periodically starts sessions for scouts whose next run time has passed."""

    def __init__(
        self,
        engine: CrawlSessionEngine,
        scout_service: Optional[ScoutService] = None,
        config: Optional[Config] = None,
    ):
        self.engine = engine
        self.scout_service = scout_service or engine.scout_service
        self.config = config or settings
        self._scheduler: Optional[AsyncIOScheduler] = None

    def build(self) -> AsyncIOScheduler:
        """Return a configured but not yet started ``AsyncIOScheduler``."""
        scheduler = AsyncIOScheduler(timezone="UTC")

        scheduler.add_job(
            self.check_scheduled_scouts,
            trigger="interval",
            seconds=self.config.scheduler_check_interval,
            id="check_scheduled_scouts",
            name="Start due scouts",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
            next_run_time=utcnow(),
        )
        scheduler.add_job(
            self.purge_html_snapshots,
            trigger="cron",
            hour=4,
            minute=0,
            id="purge_html_snapshots",
            name="Purge expired HTML snapshots",
            replace_existing=True,
            misfire_grace_time=3600,
        )
        return scheduler

    def start(self) -> bool:
        """Start the scheduler unless it is disabled by configuration."""
        if not self.config.scheduler_enabled:
            logger.info("Scheduler is disabled")
            return False

        self._scheduler = self.build()
        self._scheduler.start()
        logger.info(
            f"Scheduler initialized with check interval: {self.config.scheduler_check_interval}s"
        )
        return True

    def shutdown(self) -> None:
        if self._scheduler is not None and self._scheduler.running:
            self._scheduler.shutdown(wait=False)
            logger.info("Scheduler stopped")
        self._scheduler = None

    @property
    def running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    async def check_scheduled_scouts(self) -> int:
        """
        Start a session for every due scout, within the concurrency cap.

        Returns:
            Number of sessions started
        """
        logger.debug("Checking for scheduled scouts...")
        try:
            due = self.scout_service.list_due()
        except Exception as e:
            logger.error(f"Error checking scheduled scouts: {e}")
            return 0

        if not due:
            return 0

        available = self.config.max_concurrent_scouts - self.engine.db.count_running_sessions()
        started = 0
        for scout in due:
            if available <= 0:
                logger.warning(
                    f"Concurrency limit ({self.config.max_concurrent_scouts}) reached, "
                    f"deferring {len(due) - started} due scouts"
                )
                break

            logger.info(f"Starting scheduled session for scout: {scout.name} ({scout.id})")
            try:
                await self.engine.start_session(scout.id)
                self.scout_service.update_last_run(scout.id)
            except Exception as e:
                logger.error(f"Error starting scheduled session for scout {scout.id}: {e}")
                continue

            started += 1
            available -= 1

        return started

    async def purge_html_snapshots(self) -> int:
        """Drop HTML snapshots older than the configured retention window.

        A coroutine, so the scheduler runs it on the loop thread that owns
        the store connection.
        """
        cutoff = utcnow() - timedelta(days=self.config.html_snapshot_retention_days)
        purged = self.engine.db.purge_html_snapshots(cutoff)
        logger.info(f"Purged {purged} HTML snapshots older than {cutoff.isoformat()}")
        return purged
