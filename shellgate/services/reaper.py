"""Background cleanup of idle sessions."""

import asyncio
import logging
from datetime import timedelta
from typing import Optional

from shellgate.services.registry import SessionRegistry

logger = logging.getLogger(__name__)

DEFAULT_CHECK_INTERVAL = 300.0
DEFAULT_INACTIVITY_THRESHOLD = timedelta(minutes=30)


class InactivityReaper:
    """Periodically disconnects sessions idle past a threshold.

    A failed scan is logged and the next tick still fires. ``stop()``
    wakes the loop immediately instead of waiting out the interval.
    """

    def __init__(
        self,
        registry: SessionRegistry,
        check_interval: float = DEFAULT_CHECK_INTERVAL,
        inactivity_threshold: timedelta = DEFAULT_INACTIVITY_THRESHOLD,
    ):
        self.registry = registry
        self.check_interval = check_interval
        self.inactivity_threshold = inactivity_threshold
        self._stop_event = asyncio.Event()
        self._task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the background loop on the running event loop."""
        if self.is_running:
            return
        self._stop_event.clear()
        self._task = asyncio.create_task(self._run(), name="session-reaper")

    async def stop(self) -> None:
        """Signal the loop to stop and wait for it."""
        self._stop_event.set()
        task, self._task = self._task, None
        if task is None:
            return
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def run_once(self) -> list[str]:
        """Run a single cleanup scan."""
        logger.debug("Running session cleanup")
        reaped = await self.registry.reap_inactive(self.inactivity_threshold)
        if reaped:
            logger.info("Reaped %d inactive session(s)", len(reaped))
        return reaped

    async def _run(self) -> None:
        logger.info(
            "Session cleanup service starting (interval=%gs, threshold=%s)",
            self.check_interval, self.inactivity_threshold,
        )

        while not self._stop_event.is_set():
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self.check_interval)
                break
            except asyncio.TimeoutError:
                pass

            try:
                await self.run_once()
            except Exception:
                logger.exception("Error during session cleanup")

        logger.info("Session cleanup service stopped")
