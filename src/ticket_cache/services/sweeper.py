"""Background staleness sweep.

Periodically deletes entries older than the TTL so storage stays bounded.
The sweep runs in a worker thread so it never blocks resolutions on the
event loop.
"""

import asyncio
import logging

from ticket_cache.errors import StorageError
from ticket_cache.services.fetch_coordinator import FetchCoordinator

logger = logging.getLogger(__name__)


class StalenessSweeper:
    """Runs ``FetchCoordinator.sweep_stale`` on a fixed interval."""

    def __init__(self, coordinator: FetchCoordinator, interval: float) -> None:
        if interval <= 0:
            raise ValueError("Sweep interval must be greater than 0 seconds")
        self._coordinator = coordinator
        self._interval = interval
        self._task: asyncio.Task[None] | None = None
        self._last_removed = 0

    async def run_once(self) -> int:
        """Sweep now.

        Returns:
            Number of entries removed
        """
        removed = await asyncio.to_thread(self._coordinator.sweep_stale)
        self._last_removed = removed
        return removed

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                await self.run_once()
            except StorageError as e:
                # Next tick retries; a failed sweep never affects freshness
                logger.warning("Cache sweep failed: %s", e.detail)

    def start(self) -> None:
        """Start the sweep loop on the running event loop."""
        if self._task is None:
            self._task = asyncio.create_task(self._run())
            logger.info("Cache sweeper started (interval: %ss)", self._interval)

    async def stop(self) -> None:
        """Cancel the sweep loop and wait for it to exit."""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Cache sweeper stopped")

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def last_removed(self) -> int:
        return self._last_removed
