"""Cron-driven runner for the credential status reconciliation cycle."""

from __future__ import annotations

import asyncio

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from app.core.errors import CycleAlreadyRunningError, FetchError
from app.core.logger import get_logger
from app.schemas.reconciliation import CycleResult
from app.services.reconciliation_service import ReconciliationService

logger = get_logger(component="ReconciliationScheduler")


class ReconciliationScheduler:
    """
    Fires the reconciliation cycle on a cron schedule, one cycle at a time.

    Features:
    - Single flight: a tick that arrives while a cycle runs is skipped, not queued
    - A failing cycle is logged and never takes the process down
    - Manual runs go through the same guard as scheduled ones
    """

    JOB_ID = "credential-status-reconciliation"

    def __init__(
        self,
        service: ReconciliationService,
        *,
        cron_schedule: str,
        timezone: str = "UTC",
    ) -> None:
        self._service = service
        self._cron_schedule = cron_schedule
        self._timezone = timezone
        self._lock = asyncio.Lock()
        self._scheduler: AsyncIOScheduler | None = None

    @property
    def is_running_cycle(self) -> bool:
        return self._lock.locked()

    def start(self) -> None:
        if self._scheduler is not None:
            return
        self._scheduler = AsyncIOScheduler(timezone=self._timezone)
        self._scheduler.add_job(
            self.run_once,
            trigger=CronTrigger.from_crontab(self._cron_schedule, timezone=self._timezone),
            id=self.JOB_ID,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self._scheduler.start()
        logger.info("Reconciliation scheduler started", cron_schedule=self._cron_schedule)

    async def shutdown(self) -> None:
        if self._scheduler is None:
            return
        logger.info("Shutdown requested for reconciliation scheduler")
        self._scheduler.shutdown(wait=False)
        self._scheduler = None
        # Let an in-flight cycle finish so the checkpoint is not left mid-update.
        async with self._lock:
            pass
        logger.info("Reconciliation scheduler stopped")

    async def run_once(self) -> CycleResult | None:
        """Run a cycle unless one is already running. Never raises."""
        if self._lock.locked():
            logger.warning("Previous reconciliation cycle still running, skipping tick")
            return None

        async with self._lock:
            try:
                return await self._service.run_cycle()
            except FetchError as exc:
                logger.error("Upstream feed unavailable, window will be retried next run", error=str(exc))
            except Exception as exc:
                logger.exception("Fatal error in reconciliation cycle", error=str(exc))
        return None

    async def trigger(self) -> CycleResult:
        """
        Run a cycle on demand and return its result.

        Raises:
            CycleAlreadyRunningError: if a cycle is already in flight.
            FetchError: if the upstream feed fails.
        """
        if self._lock.locked():
            raise CycleAlreadyRunningError("A reconciliation cycle is already running")
        async with self._lock:
            return await self._service.run_cycle()
