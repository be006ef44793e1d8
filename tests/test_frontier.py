"""Tests for the deduplicated request frontier."""

import asyncio

import pytest

from listing_scraper.crawl.frontier import Frontier
from listing_scraper.crawl.models import CrawlRequest, RequestLabel, RequestState
from listing_scraper.crawl.throttle import CrawlBudget


def make_request(path: str, label: RequestLabel = RequestLabel.LIST, **user_data) -> CrawlRequest:
    return CrawlRequest(url=f"https://dir.example{path}", label=label, user_data=user_data)


class TestEnqueue:
    @pytest.mark.asyncio
    async def test_duplicate_key_is_noop(self):
        frontier = Frontier(CrawlBudget(10))

        assert await frontier.enqueue(make_request("/list?page=1"))
        assert not await frontier.enqueue(make_request("/list/?page=1#top"))
        assert frontier.pending_count == 1

    @pytest.mark.asyncio
    async def test_same_url_different_label_is_distinct(self):
        frontier = Frontier(CrawlBudget(10))

        assert await frontier.enqueue(make_request("/company/acme", RequestLabel.LIST))
        assert await frontier.enqueue(make_request("/company/acme", RequestLabel.DETAIL))

    @pytest.mark.asyncio
    async def test_retry_readmits_known_key(self):
        frontier = Frontier(CrawlBudget(10))
        request = make_request("/company/acme", RequestLabel.DETAIL)
        await frontier.enqueue(request)
        dispatched = await frontier.next()

        assert await frontier.requeue(dispatched)
        assert dispatched.state == RequestState.PENDING
        assert frontier.pending_count == 1


class TestNext:
    @pytest.mark.asyncio
    async def test_fifo_with_forefront_first(self):
        frontier = Frontier(CrawlBudget(10))
        await frontier.enqueue(make_request("/a"))
        await frontier.enqueue(make_request("/b"))
        await frontier.enqueue(make_request("/login", RequestLabel.DETAIL, is_login_step=True), forefront=True)

        order = [(await frontier.next()).url for _ in range(3)]

        assert order == ["https://dir.example/login", "https://dir.example/a", "https://dir.example/b"]

    @pytest.mark.asyncio
    async def test_returns_none_when_drained(self):
        frontier = Frontier(CrawlBudget(10))
        await frontier.enqueue(make_request("/a"))

        request = await frontier.next()
        assert request.state == RequestState.IN_FLIGHT
        request.state = RequestState.SUCCEEDED
        await frontier.mark_done(request)

        assert await frontier.next() is None
        assert frontier.get_stats()["handled"] == 1

    @pytest.mark.asyncio
    async def test_waits_while_requests_in_flight(self):
        frontier = Frontier(CrawlBudget(10))
        await frontier.enqueue(make_request("/a"))
        first = await frontier.next()

        waiter = asyncio.create_task(frontier.next())
        await asyncio.sleep(0.01)
        assert not waiter.done()

        await frontier.enqueue(make_request("/b"))
        second = await asyncio.wait_for(waiter, timeout=1)
        assert second.url == "https://dir.example/b"

        await frontier.mark_done(first)
        await frontier.mark_done(second)
        assert await frontier.next() is None

    @pytest.mark.asyncio
    async def test_concurrent_workers_never_share_a_request(self):
        frontier = Frontier(CrawlBudget(100))
        for i in range(20):
            await frontier.enqueue(make_request(f"/company/{i}", RequestLabel.DETAIL))

        results = await asyncio.gather(*(frontier.next() for _ in range(20)))

        assert len({r.url for r in results}) == 20


class TestBudget:
    @pytest.mark.asyncio
    async def test_dispatches_never_exceed_budget(self):
        frontier = Frontier(CrawlBudget(2))
        for i in range(5):
            await frontier.enqueue(make_request(f"/company/{i}"))

        first = await frontier.next()
        second = await frontier.next()

        assert frontier.remaining_budget() == 0
        assert await frontier.next() is None
        stats = frontier.get_stats()
        assert stats["dispatched"] == 2
        assert stats["discarded"] == 3
        assert frontier.pending_count == 0
        assert first.url != second.url

    @pytest.mark.asyncio
    async def test_retries_count_against_budget(self):
        frontier = Frontier(CrawlBudget(2))
        request = make_request("/company/acme")
        await frontier.enqueue(request)

        await frontier.next()
        await frontier.requeue(request)
        await frontier.mark_done(request)
        await frontier.next()

        assert frontier.remaining_budget() == 0
