"""
Periodic dashboard refresh.

A RefreshLoop owns one repeating asyncio task: create it with start(),
cancel it with stop() (or use it as an async context manager). Runs are
numbered, and a result is only kept if no newer run has already landed,
so a slow earlier run can never overwrite fresher data.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional


logger = logging.getLogger(__name__)


class RefreshLoop:
    """Owned, cancellable repeating refresh with last-write-wins results."""

    def __init__(
        self,
        refresh: Callable[[], Awaitable[Any]],
        interval_seconds: float,
        on_update: Optional[Callable[[Any], None]] = None,
        on_error: Optional[Callable[[Exception], None]] = None,
    ):
        self._refresh = refresh
        self.interval_seconds = interval_seconds
        self._on_update = on_update
        self._on_error = on_error
        self._task: Optional[asyncio.Task] = None
        self._started_runs = 0
        self._landed_run = 0
        self.latest: Any = None
        self.latest_error: Optional[Exception] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def refresh_now(self) -> bool:
        """
        Run one refresh.

        Returns:
            True if this run's outcome was kept, False if a newer run
            landed first and this one was discarded.
        """
        self._started_runs += 1
        run_id = self._started_runs

        try:
            result = await self._refresh()
        except Exception as e:
            if run_id < self._landed_run:
                return False
            self._landed_run = run_id
            self.latest_error = e
            logger.error(f"Refresh #{run_id} failed: {e}")
            if self._on_error:
                self._on_error(e)
            return True

        if run_id < self._landed_run:
            logger.info(f"Discarding stale refresh #{run_id} (#{self._landed_run} already landed)")
            return False

        self._landed_run = run_id
        self.latest = result
        self.latest_error = None
        if self._on_update:
            self._on_update(result)
        return True

    async def _run(self) -> None:
        while True:
            await self.refresh_now()
            await asyncio.sleep(self.interval_seconds)

    def start(self) -> None:
        """Start the repeating task on the running event loop (no-op if running)."""
        if self.running:
            return
        self._task = asyncio.create_task(self._run())
        logger.info(f"Auto-refresh started (every {self.interval_seconds:.0f}s)")

    async def stop(self) -> None:
        """Cancel the repeating task and wait for it to finish."""
        if self._task is None:
            return
        task, self._task = self._task, None
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("Auto-refresh stopped")

    async def __aenter__(self) -> "RefreshLoop":
        self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.stop()
