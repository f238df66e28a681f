from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from app.core.errors import CycleAlreadyRunningError, FetchError, ReconciliationError
from app.schemas.reconciliation import CycleResult
from app.workers.reconciliation_scheduler import ReconciliationScheduler

T0 = datetime(2025, 1, 1, 0, 0, tzinfo=timezone.utc)


def _scheduler(run_cycle) -> ReconciliationScheduler:
    service = MagicMock()
    service.run_cycle = run_cycle
    return ReconciliationScheduler(service, cron_schedule="*/5 * * * *")


@pytest.mark.asyncio
async def test_run_once_returns_cycle_result():
    result = CycleResult(window_from=T0, window_to=T0, checkpoint_advanced=False)
    scheduler = _scheduler(AsyncMock(return_value=result))

    assert await scheduler.run_once() is result


@pytest.mark.asyncio
async def test_overlapping_tick_is_skipped():
    release = asyncio.Event()
    calls = 0

    async def slow_cycle():
        nonlocal calls
        calls += 1
        await release.wait()

    scheduler = _scheduler(slow_cycle)
    first = asyncio.create_task(scheduler.run_once())
    await asyncio.sleep(0)
    assert scheduler.is_running_cycle

    assert await scheduler.run_once() is None

    release.set()
    await first
    assert calls == 1
    assert not scheduler.is_running_cycle


@pytest.mark.asyncio
@pytest.mark.parametrize("error", [FetchError("feed down"), RuntimeError("database gone")])
async def test_run_once_never_raises(error):
    scheduler = _scheduler(AsyncMock(side_effect=error))

    assert await scheduler.run_once() is None
    assert not scheduler.is_running_cycle


@pytest.mark.asyncio
async def test_trigger_propagates_fetch_error():
    scheduler = _scheduler(AsyncMock(side_effect=FetchError("feed down")))

    with pytest.raises(FetchError):
        await scheduler.trigger()
    assert not scheduler.is_running_cycle


@pytest.mark.asyncio
async def test_trigger_refuses_while_cycle_runs():
    release = asyncio.Event()

    async def slow_cycle():
        await release.wait()

    scheduler = _scheduler(slow_cycle)
    running = asyncio.create_task(scheduler.run_once())
    await asyncio.sleep(0)

    with pytest.raises(CycleAlreadyRunningError):
        await scheduler.trigger()

    release.set()
    await running


@pytest.mark.asyncio
async def test_start_registers_single_instance_cron_job():
    scheduler = _scheduler(AsyncMock())

    scheduler.start()
    try:
        job = scheduler._scheduler.get_job(ReconciliationScheduler.JOB_ID)
        assert job is not None
        assert job.max_instances == 1
        assert job.coalesce is True
    finally:
        await scheduler.shutdown()

    assert scheduler._scheduler is None


@pytest.mark.asyncio
async def test_shutdown_waits_for_in_flight_cycle():
    release = asyncio.Event()
    finished = asyncio.Event()

    async def slow_cycle():
        await release.wait()
        finished.set()

    scheduler = _scheduler(slow_cycle)
    scheduler.start()
    running = asyncio.create_task(scheduler.run_once())
    await asyncio.sleep(0)

    stopping = asyncio.create_task(scheduler.shutdown())
    await asyncio.sleep(0)
    assert not stopping.done()

    release.set()
    await stopping
    await running
    assert finished.is_set()


@pytest.mark.asyncio
async def test_shutdown_without_start_is_noop():
    scheduler = _scheduler(AsyncMock())

    await scheduler.shutdown()


def test_busy_error_belongs_to_reconciliation_errors():
    assert issubclass(CycleAlreadyRunningError, ReconciliationError)
