"""Background scheduler for the poll and sweep loops."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from miniflux_bot.core.time_utils import UTC

if TYPE_CHECKING:
    from miniflux_bot.config import AppConfig
    from miniflux_bot.services.poller import EntryPoller
    from miniflux_bot.services.reconciler import ReconciliationSweep

logger = logging.getLogger(__name__)

POLL_JOB_ID = "miniflux_poll"
SWEEP_JOB_ID = "reconciliation_sweep"


class SchedulerService:
    """Runs the poll loop and, when cleanup is enabled, the reconciliation sweep."""

    def __init__(
        self,
        cfg: AppConfig,
        poller: EntryPoller,
        sweeper: ReconciliationSweep | None = None,
    ) -> None:
        """Initialize scheduler service.

        Args:
            cfg: Application configuration
            poller: Poll loop run every ``MINIFLUX_SLEEP_TIME`` minutes
            sweeper: Reconciliation sweep, scheduled only if cleanup is enabled
        """
        self.cfg = cfg
        self.poller = poller
        self.sweeper = sweeper
        self._scheduler: AsyncIOScheduler | None = None
        self._started = False

    async def start(self) -> None:
        """Start the scheduler with configured jobs."""
        if self._started:
            logger.warning("scheduler_already_started")
            return

        self._scheduler = AsyncIOScheduler(timezone=UTC)

        self._scheduler.add_job(
            self._run_poll,
            trigger=IntervalTrigger(minutes=self.cfg.miniflux.sleep_time_minutes),
            id=POLL_JOB_ID,
            name="Miniflux poll",
            replace_existing=True,
            max_instances=1,  # Prevent overlapping runs
            coalesce=True,
        )
        logger.info(
            "scheduler_poll_job_added",
            extra={"job_id": POLL_JOB_ID, "interval_minutes": self.cfg.miniflux.sleep_time_minutes},
        )

        if self.sweeper is not None and self.cfg.telegram.cleanup_messages:
            self._scheduler.add_job(
                self._run_sweep,
                trigger=IntervalTrigger(minutes=self.cfg.runtime.sweep_interval_minutes),
                id=SWEEP_JOB_ID,
                name="Reconciliation sweep",
                replace_existing=True,
                max_instances=1,
                coalesce=True,
            )
            logger.info(
                "scheduler_sweep_job_added",
                extra={
                    "job_id": SWEEP_JOB_ID,
                    "interval_minutes": self.cfg.runtime.sweep_interval_minutes,
                },
            )
        else:
            logger.info(
                "scheduler_sweep_job_skipped",
                extra={"cleanup_messages": self.cfg.telegram.cleanup_messages},
            )

        self._scheduler.start()
        self._started = True
        logger.info("scheduler_started")

    async def stop(self) -> None:
        """Stop the scheduler gracefully."""
        if self._scheduler and self._started:
            self._scheduler.shutdown(wait=False)
            self._scheduler = None
            self._started = False
            logger.info("scheduler_stopped")

    async def _run_poll(self) -> None:
        correlation_id = f"poll_{datetime.now(UTC).strftime('%Y%m%d_%H%M%S')}"
        try:
            await self.poller.poll_once()
        except Exception as e:
            logger.exception("scheduled_poll_failed", extra={"cid": correlation_id, "error": str(e)})

    async def _run_sweep(self) -> None:
        if self.sweeper is None:
            return
        correlation_id = f"sweep_{datetime.now(UTC).strftime('%Y%m%d_%H%M%S')}"
        try:
            await self.sweeper.sweep()
        except Exception as e:
            logger.exception("scheduled_sweep_failed", extra={"cid": correlation_id, "error": str(e)})

    def get_next_run_time(self, job_id: str) -> datetime | None:
        """Get next scheduled run time for a job.

        Args:
            job_id: Job identifier (``POLL_JOB_ID`` or ``SWEEP_JOB_ID``)

        Returns:
            Next run time or None if job doesn't exist or scheduler not started
        """
        if not self._scheduler or not self._started:
            return None
        job = self._scheduler.get_job(job_id)
        return job.next_run_time if job else None

    @property
    def is_running(self) -> bool:
        """Check if scheduler is running."""
        return self._started and self._scheduler is not None
