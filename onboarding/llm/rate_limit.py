"""Concurrency and pacing limits for model calls."""

import asyncio
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator


class RateLimiter:
    """Bound concurrent model calls and space out their start times.

    One instance is shared by every gateway that talks to the same provider.
    """

    def __init__(self, max_concurrency: int = 4, min_interval_seconds: float = 0.0):
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self.max_concurrency = max_concurrency
        self.min_interval_seconds = max(0.0, min_interval_seconds)
        self._semaphore = asyncio.Semaphore(max_concurrency)
        self._lock = asyncio.Lock()
        self._next_start = 0.0

    @asynccontextmanager
    async def slot(self) -> AsyncIterator[None]:
        """Hold one call slot for the duration of the block."""
        async with self._semaphore:
            if self.min_interval_seconds:
                async with self._lock:
                    wait = self._next_start - time.monotonic()
                    if wait > 0:
                        await asyncio.sleep(wait)
                    self._next_start = time.monotonic() + self.min_interval_seconds
            yield
