"""
Maintenance Scheduler

APScheduler-based async scheduler running the maintenance sweep
(expired carts, campaign activation and expiry) on a fixed interval.
"""

import logging
from collections.abc import Awaitable, Callable

from apscheduler.schedulers.asyncio import AsyncIOScheduler  # type: ignore[import-not-found]
from apscheduler.triggers.interval import IntervalTrigger  # type: ignore[import-not-found]
from pytz import timezone

from storefront.domains.commerce.application.use_cases import SweepResult

logger = logging.getLogger(__name__)

SWEEP_JOB_ID = "maintenance_sweep"


class MaintenanceScheduler:
    """
    Periodic maintenance sweep.

    ``run_sweep`` opens its own unit of work per run so a failing run
    never leaves a session behind.
    """

    def __init__(
        self,
        run_sweep: Callable[[], Awaitable[SweepResult]],
        interval_minutes: int = 15,
        timezone_name: str = "UTC",
        enabled: bool = True,
    ):
        self.run_sweep = run_sweep
        self.interval_minutes = interval_minutes
        self.tz = timezone(timezone_name)
        self.enabled = enabled

        self._scheduler: AsyncIOScheduler | None = None
        self._is_running = False

    @property
    def is_running(self) -> bool:
        return self._is_running

    async def start(self) -> None:
        """Start the scheduler."""
        if not self.enabled:
            logger.info("MaintenanceScheduler is disabled, skipping start")
            return

        if self._is_running:
            logger.warning("MaintenanceScheduler already running")
            return

        scheduler = AsyncIOScheduler(timezone=self.tz)
        self._scheduler = scheduler

        scheduler.add_job(
            self._run,
            IntervalTrigger(minutes=self.interval_minutes, timezone=self.tz),
            id=SWEEP_JOB_ID,
            replace_existing=True,
            name="Cart and campaign maintenance",
            max_instances=1,
            coalesce=True,
        )

        scheduler.start()
        self._is_running = True
        logger.info(f"MaintenanceScheduler started (every {self.interval_minutes} min, timezone {self.tz})")

    async def stop(self) -> None:
        """Stop the scheduler gracefully."""
        if self._scheduler and self._is_running:
            self._scheduler.shutdown(wait=False)
            self._is_running = False
            logger.info("MaintenanceScheduler stopped")

    async def _run(self) -> None:
        logger.info("Starting maintenance sweep job")
        try:
            await self.run_sweep()
        except Exception as e:
            logger.error(f"Error running maintenance sweep: {e}", exc_info=True)


__all__ = ["MaintenanceScheduler", "SWEEP_JOB_ID"]
