"""Per-provider call spacing.

Each provider client owns one ``CallThrottle``; callers to the same provider
queue on its lock, callers to different providers never wait on each other.
"""

import asyncio
import time


class CallThrottle:
    """Async context manager enforcing a minimum interval between calls."""

    def __init__(self, min_interval_seconds: float = 0.0):
        self.min_interval = max(0.0, min_interval_seconds)
        self._lock = asyncio.Lock()
        self._last_call: float | None = None

    async def acquire(self) -> None:
        """Wait for the lock and for the spacing interval. Pair with ``release``."""
        await self._lock.acquire()
        try:
            if self._last_call is not None and self.min_interval > 0:
                wait = self.min_interval - (time.monotonic() - self._last_call)
                if wait > 0:
                    await asyncio.sleep(wait)
        except BaseException:
            self._lock.release()
            raise

    def release(self) -> None:
        self._last_call = time.monotonic()
        self._lock.release()

    async def __aenter__(self) -> "CallThrottle":
        await self.acquire()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.release()
