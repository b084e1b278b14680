"""
Background reconciliation loop.

Runs one reconciliation tick per fixed interval for the lifetime of the
application. A tick that raises is logged and the loop carries on; the full
interval is always waited before the next tick. Shutdown is honoured between
ticks only: an in-flight tick always runs to completion.
"""

import asyncio
import logging
from typing import Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from modmarket.app.domain.entitlements.reconciliation import ReconciliationService, TickSummary

logger = logging.getLogger(__name__)


class ReconciliationScheduler:
    """Owns the asyncio task that drives ReconciliationService.run_tick."""
    
    def __init__(
        self,
        session_factory: Callable[[], AsyncSession],
        interval_seconds: float,
        initial_delay_seconds: float = 0.0,
    ):
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self._session_factory = session_factory
        self._interval = interval_seconds
        self._initial_delay = max(0.0, initial_delay_seconds)
        self._stop = asyncio.Event()
        self._task: Optional[asyncio.Task] = None
        self.last_summary: Optional[TickSummary] = None
        self.ticks_failed = 0
    
    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()
    
    def start(self) -> asyncio.Task:
        if self.running:
            return self._task
        self._stop.clear()
        self._task = asyncio.create_task(self.run(), name="entitlement-reconciliation")
        return self._task
    
    async def stop(self) -> None:
        """Signal shutdown and wait for the current tick (if any) to finish."""
        self._stop.set()
        if self._task is not None:
            await self._task
            self._task = None
    
    async def run_once(self) -> TickSummary:
        async with self._session_factory() as session:
            summary = await ReconciliationService.run_tick(session)
        self.last_summary = summary
        return summary
    
    async def run(self) -> None:
        logger.info("Reconciliation loop started", extra={"interval_seconds": self._interval})
        if await self._wait(self._initial_delay):
            return
        while not self._stop.is_set():
            try:
                logger.info("Executing reconciliation tick")
                await self.run_once()
            except Exception:
                self.ticks_failed += 1
                logger.exception("Unhandled error when processing reconciliation tick")
            if await self._wait(self._interval):
                break
        logger.info("Reconciliation loop stopped")
    
    async def _wait(self, seconds: float) -> bool:
        """Sleep up to `seconds`; True when shutdown was requested meanwhile."""
        if seconds <= 0:
            return self._stop.is_set()
        try:
            await asyncio.wait_for(self._stop.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return False
        return True
