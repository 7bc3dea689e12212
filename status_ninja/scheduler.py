"""Interval scheduling of health sweeps."""

import asyncio
from typing import Callable, Optional

import structlog
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger


logger = structlog.get_logger(__name__)

SWEEP_JOB_ID = "health-sweep"


class SweepScheduler:
    """Runs a callback on a fixed interval using APScheduler."""

    def __init__(self, launch: Callable[[], asyncio.Task], interval_seconds: int):
        self.launch = launch
        self.interval_seconds = max(1, int(interval_seconds))
        self.scheduler: Optional[AsyncIOScheduler] = None
        self.running = False

    async def start(self):
        """Start the scheduler on the running event loop."""
        if self.running:
            logger.warning("Scheduler already running")
            return

        self.scheduler = AsyncIOScheduler()
        self.scheduler.add_job(
            func=self._tick,
            trigger=IntervalTrigger(seconds=self.interval_seconds),
            id=SWEEP_JOB_ID,
            name="Health sweep over all endpoints",
            max_instances=1,
            coalesce=True,
        )
        self.scheduler.start()
        self.running = True
        logger.info("Sweep scheduler started", interval_seconds=self.interval_seconds)

    async def stop(self):
        """Stop the scheduler."""
        if not self.running or self.scheduler is None:
            return

        self.scheduler.shutdown(wait=False)
        self.running = False
        logger.info("Sweep scheduler stopped")

    async def _tick(self):
        # The sweep is detached; the tick returns immediately.
        task = self.launch()
        logger.info("Scheduled sweep launched", task=task.get_name())

    def get_next_run_time(self):
        """Next scheduled tick, or None when not running."""
        if self.scheduler is None:
            return None
        job = self.scheduler.get_job(SWEEP_JOB_ID)
        return job.next_run_time if job else None
