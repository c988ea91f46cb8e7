"""
Background maintenance for the report store.

Runs ReportStore.evict_expired() on a fixed interval (hourly by default)
as an asyncio task owned by the application lifespan. Request handling
never waits on the sweep: the store only holds its lock while deleting.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from backend.app.reports.store import ReportStore

logger = logging.getLogger(__name__)


class ExpirySweeper:
    """
    Periodic expired-report eviction.

    Usage:
        sweeper = ExpirySweeper(store, interval_seconds=3600)
        await sweeper.start()
        ...
        await sweeper.stop()
    """

    def __init__(self, store: ReportStore, interval_seconds: float = 3600):
        self._store = store
        self.interval_seconds = interval_seconds
        self._running = False
        self._task: Optional[asyncio.Task] = None
        self.total_evicted = 0
        self.runs = 0

    @property
    def running(self) -> bool:
        return self._running

    async def start(self):
        """Start the sweep loop."""
        if self._running:
            return

        self._running = True
        self._task = asyncio.create_task(self._run())
        logger.info(
            "Expiry sweeper started (every %.0fs)", self.interval_seconds,
        )

    async def stop(self):
        """Stop the sweep loop."""
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Expiry sweeper stopped")

    def run_once(self) -> int:
        """Evict expired reports now; returns the number removed."""
        removed = self._store.evict_expired()
        self.runs += 1
        self.total_evicted += removed
        return removed

    async def _run(self):
        """Main sweep loop."""
        while self._running:
            try:
                await asyncio.sleep(self.interval_seconds)
                await asyncio.to_thread(self.run_once)
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.exception("Expiry sweep error: %s", e)
