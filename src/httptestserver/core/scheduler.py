"""
One-shot timers for deferred responses.

    schedule(7, 2.0, fire)          {7: <TimerHandle>}
        │
        ├── 2 seconds pass ──────►  entry removed, then fire() runs
        │
        └── connection 7 torn down
            first ──► cancel(7) ──► entry removed, fire() never runs

Timers run on the event loop's monotonic clock (loop.call_later), so wall
clock jumps never make a response go out early or late.
"""

import asyncio
import logging
from typing import Callable, Dict, Optional


logger = logging.getLogger(__name__)


class DelayScheduler:
    """At most one pending delayed callback per connection id."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop
        self._timers: Dict[int, asyncio.TimerHandle] = {}

    def __len__(self) -> int:
        return len(self._timers)

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        """
        The loop given at construction, else whichever loop is running now.

        Not cached: a server stopped and started again under a new loop
        must schedule on the new one.
        """
        if self._loop is not None:
            return self._loop
        return asyncio.get_running_loop()

    def pending(self, conn_id: int) -> bool:
        return conn_id in self._timers

    def schedule(self, conn_id: int, seconds: float, on_fire: Callable[[], None]) -> asyncio.TimerHandle:
        """
        Run on_fire once, `seconds` from now.

        Raises:
            ValueError: If conn_id already has a pending timer.
        """
        if conn_id in self._timers:
            raise ValueError(f"connection {conn_id} already has a pending delay")

        def fire() -> None:
            # Drop the entry before the callback so a close() inside
            # on_fire finds nothing left to cancel.
            self._timers.pop(conn_id, None)
            on_fire()

        handle = self.loop.call_later(seconds, fire)
        self._timers[conn_id] = handle
        logger.debug(f"[{conn_id}] response delayed by {seconds:g}s")
        return handle

    def cancel(self, conn_id: int) -> bool:
        """Cancel the pending timer for conn_id. Returns False if none."""
        handle = self._timers.pop(conn_id, None)
        if handle is None:
            return False
        handle.cancel()
        logger.debug(f"[{conn_id}] delayed response cancelled")
        return True

    def cancel_all(self) -> int:
        cancelled = 0
        for conn_id in list(self._timers):
            cancelled += self.cancel(conn_id)
        return cancelled
