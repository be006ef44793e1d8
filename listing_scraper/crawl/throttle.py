"""Dispatch throttling: per-minute rate window and crawl-wide request budget.

Concurrency itself is bounded by the engine's worker count.
"""

import asyncio
import logging
import time
from collections import deque
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


class CrawlBudget:
    """Monotonically decreasing count of dispatches left in a crawl."""

    def __init__(self, max_requests: int):
        if max_requests < 0:
            raise ValueError("max_requests must be >= 0")
        self.max_requests = max_requests
        self._used = 0

    @property
    def used(self) -> int:
        return self._used

    @property
    def remaining(self) -> int:
        return max(0, self.max_requests - self._used)

    @property
    def exhausted(self) -> bool:
        return self._used >= self.max_requests

    def try_consume(self) -> bool:
        """Take one dispatch from the budget; False once it is spent."""
        if self.exhausted:
            return False
        self._used += 1
        return True


class RollingWindowLimiter:
    """
    Caps dispatches in any rolling window (60s by default).

    Keeps the timestamps of recent dispatches; a caller over the limit
    sleeps until the oldest one leaves the window. Unlike a refilling token
    bucket this never admits a burst above the limit inside one window.
    """

    def __init__(
        self,
        max_per_window: int,
        window_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if max_per_window < 1:
            raise ValueError("max_per_window must be >= 1")
        self.max_per_window = max_per_window
        self.window_seconds = window_seconds
        self._clock = clock
        self._sleep = sleep
        self._dispatches: deque[float] = deque()
        self._lock = asyncio.Lock()

    def _evict(self, now: float) -> None:
        while self._dispatches and now - self._dispatches[0] >= self.window_seconds:
            self._dispatches.popleft()

    def in_window(self) -> int:
        """Dispatches currently inside the window."""
        self._evict(self._clock())
        return len(self._dispatches)

    async def acquire(self) -> float:
        """
        Wait for a free slot in the window and claim it.

        Returns:
            Seconds spent waiting
        """
        waited = 0.0
        async with self._lock:
            while True:
                now = self._clock()
                self._evict(now)
                if len(self._dispatches) < self.max_per_window:
                    self._dispatches.append(now)
                    return waited
                wait_time = self.window_seconds - (now - self._dispatches[0])
                logger.debug(f"Rate limit reached ({self.max_per_window}/min), deferring {wait_time:.2f}s")
                await self._sleep(wait_time)
                waited += wait_time


class ThrottleController:
    """Bundles the three crawl ceilings."""

    def __init__(
        self,
        max_concurrency: int,
        max_requests_per_minute: int,
        max_requests_per_crawl: int,
        limiter: Optional[RollingWindowLimiter] = None,
    ):
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be >= 1")
        self.max_concurrency = max_concurrency
        self.budget = CrawlBudget(max_requests_per_crawl)
        self.limiter = limiter or RollingWindowLimiter(max_requests_per_minute)

    async def wait_for_slot(self) -> float:
        """Defer until the per-minute ceiling admits one more dispatch."""
        return await self.limiter.acquire()
