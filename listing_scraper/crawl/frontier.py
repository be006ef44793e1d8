"""Deduplicated request queue shared by the crawl workers.

Tracks pending, in-flight and seen requests. Serves forefront requests
(e.g. a login step) before the FIFO queue, and stops dispatching once the
crawl budget is spent.
"""

import asyncio
import logging
from collections import deque
from typing import Optional

from listing_scraper.crawl.models import CrawlRequest, RequestState
from listing_scraper.crawl.throttle import CrawlBudget

logger = logging.getLogger(__name__)


class Frontier:
    """
    asyncio-safe frontier using two deques, a seen set and an in-flight count.

    Every mutation happens under one ``asyncio.Condition`` so concurrent
    workers never dequeue the same request twice.
    """

    def __init__(self, budget: CrawlBudget):
        self.budget = budget
        self._forefront: deque[CrawlRequest] = deque()
        self._queue: deque[CrawlRequest] = deque()
        self._seen: set[tuple[str, str]] = set()
        self._in_flight = 0
        self._handled = 0
        self._discarded = 0
        self._cond = asyncio.Condition()

    async def enqueue(
        self,
        request: CrawlRequest,
        forefront: bool = False,
        retry: bool = False,
    ) -> bool:
        """
        Add a request unless its (canonical url, label) key was already seen.

        Args:
            request: Request to add
            forefront: Serve before regular FIFO requests
            retry: Re-admit a request whose key is already known

        Returns:
            True if the request was queued
        """
        key = request.unique_key
        async with self._cond:
            if key in self._seen and not retry:
                logger.debug(f"enqueue: skipped (already seen): {key[1]} {key[0]}")
                return False
            self._seen.add(key)
            request.state = RequestState.PENDING
            (self._forefront if forefront else self._queue).append(request)
            self._cond.notify_all()

        logger.debug(
            f"enqueue: queued {request.label.value} {request.url} "
            f"(attempt={request.attempt_count}, pending={self.pending_count})"
        )
        return True

    async def requeue(self, request: CrawlRequest) -> bool:
        """Put a failed request back for another attempt."""
        return await self.enqueue(request, retry=True)

    async def next(self) -> Optional[CrawlRequest]:
        """
        Return the next request to dispatch.

        Waits while the queue is empty but requests are still in flight
        (they may discover more work). Returns None when the crawl is
        finished or the budget is exhausted.
        """
        async with self._cond:
            while True:
                if self.budget.exhausted:
                    self._discard_pending()
                    return None
                if self._forefront or self._queue:
                    request = self._forefront.popleft() if self._forefront else self._queue.popleft()
                    self.budget.try_consume()
                    self._in_flight += 1
                    request.state = RequestState.IN_FLIGHT
                    return request
                if self._in_flight == 0:
                    return None
                await self._cond.wait()

    async def mark_done(self, request: CrawlRequest) -> None:
        """Release the in-flight slot taken by ``next()``."""
        async with self._cond:
            self._in_flight = max(0, self._in_flight - 1)
            if request.state in (RequestState.SUCCEEDED, RequestState.FAILED):
                self._handled += 1
            self._cond.notify_all()

    def _discard_pending(self) -> None:
        dropped = len(self._forefront) + len(self._queue)
        if dropped:
            logger.info(f"Crawl budget exhausted, discarding {dropped} undispatched requests")
            self._discarded += dropped
            self._forefront.clear()
            self._queue.clear()
        self._cond.notify_all()

    def remaining_budget(self) -> int:
        """How many more requests may be dispatched."""
        return self.budget.remaining

    @property
    def pending_count(self) -> int:
        return len(self._forefront) + len(self._queue)

    @property
    def in_flight_count(self) -> int:
        return self._in_flight

    def get_stats(self) -> dict[str, int]:
        return {
            "pending": self.pending_count,
            "in_flight": self._in_flight,
            "seen": len(self._seen),
            "handled": self._handled,
            "discarded": self._discarded,
            "dispatched": self.budget.used,
            "remaining_budget": self.budget.remaining,
        }
