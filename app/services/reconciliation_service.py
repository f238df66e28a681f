from __future__ import annotations

import asyncio
import time
from collections.abc import Sequence
from datetime import timedelta

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.clock import Clock, utc_now
from app.core.logger import get_logger
from app.models.checkpoint import CheckpointState
from app.models.credential_record import CredentialStatus
from app.models.processing_log import ProcessingOutcome
from app.schemas.events import LifecycleEvent, TimeWindow
from app.schemas.reconciliation import CycleResult
from app.services.checkpoint_store import CheckpointStore
from app.services.event_source_client import EventSourceClient
from app.services.record_processor import RecordProcessor
from app.services.record_repository import CredentialRecordRepository
from app.services.status_mapper import map_event_type

logger = get_logger(component="ReconciliationService")


class ReconciliationService:
    """
    One checkpointed pass over the upstream lifecycle feed.

    The watermark tracks time covered, not records reconciled: after the events of a
    window have been processed the checkpoint moves to the window end even when some
    records failed. Failed records stay visible in the processing log and are only
    revisited when the feed reports a new event for them. A fetch failure or any
    exception escaping the loop leaves the checkpoint where it was, so the same
    window is retried on the next run.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        job_name: str,
        lookback_minutes: int,
        event_source: EventSourceClient,
        checkpoint_store: CheckpointStore,
        repository: CredentialRecordRepository,
        processor: RecordProcessor,
        max_concurrency: int = 1,
        clock: Clock = utc_now,
    ) -> None:
        self.session_factory = session_factory
        self.job_name = job_name
        self.lookback = timedelta(minutes=lookback_minutes)
        self.event_source = event_source
        self.checkpoint_store = checkpoint_store
        self.repository = repository
        self.processor = processor
        self.max_concurrency = max(1, max_concurrency)
        self.clock = clock

    def compute_window(self, checkpoint: CheckpointState) -> TimeWindow:
        start = checkpoint.last_processed_to
        end = max(self.clock() - self.lookback, start)
        return TimeWindow(start=start, end=end)

    async def run_cycle(self) -> CycleResult:
        """
        Run one reconciliation cycle.

        Raises:
            FetchError: when the upstream feed fails; nothing has been mutated.
        """
        started = time.monotonic()
        log = logger.bind(job_name=self.job_name)

        async with self.session_factory() as session:
            checkpoint = await self.checkpoint_store.get_or_create(
                session, self.job_name, initial=self.clock() - self.lookback
            )
        window = self.compute_window(checkpoint)
        result = CycleResult(window_from=window.start, window_to=window.end)

        if window.is_empty:
            log.info("Nothing to process", start=window.start.isoformat(), end=window.end.isoformat())
            return result

        log.info("Processing time window", start=window.start.isoformat(), end=window.end.isoformat())
        summary = await self.event_source.fetch(window.start, window.end)
        result.fetched = len(summary.events)

        async with self.session_factory() as session:
            known_events = await self.repository.filter_known_events(session, summary.events)
        result.filtered = len(known_events)

        mapped: list[tuple[LifecycleEvent, CredentialStatus]] = []
        for event in known_events:
            status = map_event_type(event.event_type)
            if status is None:
                result.unmapped += 1
                continue
            mapped.append((event, status))

        outcomes = await self._process_all(mapped, window)
        result.succeeded = sum(1 for outcome in outcomes if outcome is ProcessingOutcome.SUCCESS)
        result.failed = sum(1 for outcome in outcomes if outcome is ProcessingOutcome.FAILED)
        result.skipped = sum(1 for outcome in outcomes if outcome is None)

        async with self.session_factory() as session:
            await self.checkpoint_store.advance(session, checkpoint, window.end)
        result.checkpoint_advanced = True

        result.duration_ms = int((time.monotonic() - started) * 1000)
        log.info(
            "Reconciliation cycle completed",
            fetched=result.fetched,
            filtered=result.filtered,
            unmapped=result.unmapped,
            succeeded=result.succeeded,
            failed=result.failed,
            skipped=result.skipped,
            duration_ms=result.duration_ms,
        )
        return result

    async def _process_all(
        self, mapped: Sequence[tuple[LifecycleEvent, CredentialStatus]], window: TimeWindow
    ) -> list[ProcessingOutcome | None]:
        # Events of one record stay in feed order inside a single task; records run side by side.
        per_record: dict[str, list[tuple[LifecycleEvent, CredentialStatus]]] = {}
        for event, status in mapped:
            per_record.setdefault(event.record_id, []).append((event, status))

        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def process_record(items: list[tuple[LifecycleEvent, CredentialStatus]]) -> list[ProcessingOutcome | None]:
            async with semaphore:
                return [await self.processor.process_event(event, status, window) for event, status in items]

        tasks = [asyncio.create_task(process_record(items)) for items in per_record.values()]
        try:
            grouped = await asyncio.gather(*tasks)
        except BaseException:
            # No record task may outlive the cycle that started it.
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise
        return [outcome for outcomes in grouped for outcome in outcomes]
