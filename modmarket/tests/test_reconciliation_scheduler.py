"""
Tests for the background reconciliation loop.
"""

import asyncio
import pytest
from datetime import datetime, timezone

from modmarket.app.domain.entitlements.reconciliation import ReconciliationService, TickSummary
from modmarket.app.services.reconciliation_scheduler import ReconciliationScheduler


async def wait_until(predicate, timeout: float = 2.0):
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.01)


@pytest.fixture
def summary():
    return TickSummary(started_at=datetime.now(timezone.utc))


def test_interval_must_be_positive(session_factory):
    with pytest.raises(ValueError):
        ReconciliationScheduler(session_factory, interval_seconds=0)


async def test_run_once_records_summary(session_factory, summary, mocker):
    run_tick = mocker.patch.object(ReconciliationService, "run_tick", new=mocker.AsyncMock(return_value=summary))
    scheduler = ReconciliationScheduler(session_factory, interval_seconds=60)
    
    result = await scheduler.run_once()
    
    assert result is summary
    assert scheduler.last_summary is summary
    run_tick.assert_awaited_once()


async def test_loop_ticks_until_stopped(session_factory, summary, mocker):
    run_tick = mocker.patch.object(ReconciliationService, "run_tick", new=mocker.AsyncMock(return_value=summary))
    scheduler = ReconciliationScheduler(session_factory, interval_seconds=0.01)
    
    scheduler.start()
    assert scheduler.running
    await wait_until(lambda: run_tick.await_count >= 2)
    await scheduler.stop()
    
    assert not scheduler.running
    calls = run_tick.await_count
    await asyncio.sleep(0.05)
    assert run_tick.await_count == calls


async def test_failed_tick_does_not_stop_loop(session_factory, summary, mocker):
    attempts = []
    
    async def flaky(session):
        attempts.append(session)
        if len(attempts) == 1:
            raise RuntimeError("database unavailable")
        return summary
    
    mocker.patch.object(ReconciliationService, "run_tick", new=mocker.AsyncMock(side_effect=flaky))
    scheduler = ReconciliationScheduler(session_factory, interval_seconds=0.01)
    
    scheduler.start()
    await wait_until(lambda: scheduler.last_summary is not None)
    await scheduler.stop()
    
    assert scheduler.ticks_failed == 1
    assert len(attempts) >= 2


async def test_stop_during_initial_delay_skips_tick(session_factory, mocker):
    run_tick = mocker.patch.object(ReconciliationService, "run_tick", new=mocker.AsyncMock())
    scheduler = ReconciliationScheduler(session_factory, interval_seconds=60, initial_delay_seconds=60)
    
    scheduler.start()
    await asyncio.sleep(0.01)
    await scheduler.stop()
    
    run_tick.assert_not_awaited()


async def test_start_twice_reuses_task(session_factory, mocker):
    mocker.patch.object(ReconciliationService, "run_tick", new=mocker.AsyncMock())
    scheduler = ReconciliationScheduler(session_factory, interval_seconds=60, initial_delay_seconds=60)
    
    first = scheduler.start()
    second = scheduler.start()
    await scheduler.stop()
    
    assert first is second
