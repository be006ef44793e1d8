"""Tests for the per-minute limiter and crawl budget."""

import pytest

from listing_scraper.crawl.throttle import CrawlBudget, RollingWindowLimiter, ThrottleController


class FakeClock:
    """Manual clock whose sleep advances time instantly."""

    def __init__(self):
        self.now = 0.0

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.now += seconds


@pytest.mark.asyncio
async def test_acquire_immediate_under_limit():
    clock = FakeClock()
    limiter = RollingWindowLimiter(3, clock=clock, sleep=clock.sleep)

    waits = [await limiter.acquire() for _ in range(3)]

    assert waits == [0.0, 0.0, 0.0]
    assert limiter.in_window() == 3


@pytest.mark.asyncio
async def test_acquire_over_limit_waits_for_window():
    clock = FakeClock()
    limiter = RollingWindowLimiter(3, clock=clock, sleep=clock.sleep)
    for _ in range(3):
        await limiter.acquire()
        clock.now += 5

    waited = await limiter.acquire()

    # Oldest dispatch at t=0 leaves the window at t=60; now is t=15
    assert waited == pytest.approx(45.0)
    assert clock.now == pytest.approx(60.0)


@pytest.mark.asyncio
async def test_no_rolling_window_exceeds_limit():
    clock = FakeClock()
    limiter = RollingWindowLimiter(4, clock=clock, sleep=clock.sleep)
    dispatched = []
    for _ in range(25):
        await limiter.acquire()
        dispatched.append(clock.now)
        clock.now += 1.5

    for start in dispatched:
        in_window = [t for t in dispatched if start <= t < start + 60]
        assert len(in_window) <= 4


def test_budget_consumption():
    budget = CrawlBudget(2)

    assert budget.try_consume()
    assert budget.try_consume()
    assert not budget.try_consume()
    assert budget.exhausted
    assert budget.remaining == 0
    assert budget.used == 2


def test_zero_budget_is_exhausted():
    assert CrawlBudget(0).exhausted


@pytest.mark.asyncio
async def test_controller_wires_ceilings():
    clock = FakeClock()
    limiter = RollingWindowLimiter(1, clock=clock, sleep=clock.sleep)
    throttle = ThrottleController(max_concurrency=3, max_requests_per_minute=1, max_requests_per_crawl=7, limiter=limiter)

    assert throttle.max_concurrency == 3
    assert throttle.budget.remaining == 7
    assert await throttle.wait_for_slot() == 0.0
    assert await throttle.wait_for_slot() == pytest.approx(60.0)


def test_invalid_ceilings_rejected():
    with pytest.raises(ValueError):
        ThrottleController(max_concurrency=0, max_requests_per_minute=10, max_requests_per_crawl=10)
    with pytest.raises(ValueError):
        RollingWindowLimiter(0)
