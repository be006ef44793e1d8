"""Crawl orchestration: worker pool, request state machine and handlers.

Each worker pulls a request from the frontier, waits for a rate-limit slot,
checks out a session, loads the page, classifies it and routes it to the
LIST, DETAIL or login handler. Every failure is contained at the request:
blocks retire the session and requeue, transient errors requeue, and a
request past its retry ceiling becomes exactly one FailureRecord.

Request states::

    PENDING -> IN_FLIGHT -> SUCCEEDED
                         -> BLOCKED_RETRY -> PENDING
                         -> PENDING (transient error, retry)
                         -> FAILED
"""

import asyncio
import logging
import time
from dataclasses import asdict, dataclass
from typing import Iterable, Optional

from listing_scraper import metrics
from listing_scraper.config import LoginStep
from listing_scraper.crawl.block_detector import BlockDetector
from listing_scraper.crawl.errors import (
    BlockDetected,
    HandlerTimeout,
    NavigationTimeout,
    PageFetchError,
    PermanentPageError,
    RequestError,
)
from listing_scraper.crawl.frontier import Frontier
from listing_scraper.crawl.models import (
    CrawlRequest,
    ExtractedRecord,
    FailureRecord,
    RequestLabel,
    RequestState,
    Session,
)
from listing_scraper.crawl.paginator import Paginator
from listing_scraper.crawl.session_pool import SessionPool
from listing_scraper.crawl.throttle import ThrottleController
from listing_scraper.extract.detail import DetailExtractor
from listing_scraper.extract.dom import DomTree
from listing_scraper.extract.listing import ListExtractor
from listing_scraper.fetchers.base import PageHandle, PageSurface
from listing_scraper.sinks.output import OutputSink

logger = logging.getLogger(__name__)

PERMANENT_STATUSES = (404, 410)

# Outer navigation timer runs this much longer than the surface's own timeout
NAVIGATION_GRACE_SECS = 5.0


@dataclass
class CrawlStats:
    """Counters for one crawl run."""

    succeeded: int = 0
    failed: int = 0
    retried: int = 0
    blocked: int = 0
    records: int = 0
    empty_list_pages: int = 0
    pages_enqueued: int = 0
    details_enqueued: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


class ListingCrawler:
    """Runs a list/detail crawl over a page surface."""

    def __init__(
        self,
        surface: PageSurface,
        session_pool: SessionPool,
        frontier: Frontier,
        throttle: ThrottleController,
        output: OutputSink,
        block_detector: Optional[BlockDetector] = None,
        list_extractor: Optional[ListExtractor] = None,
        detail_extractor: Optional[DetailExtractor] = None,
        paginator: Optional[Paginator] = None,
        max_request_retries: int = 3,
        crawl_details: bool = True,
        login: Optional[LoginStep] = None,
        navigation_timeout: float = 45.0,
        handler_timeout: float = 90.0,
    ):
        self.surface = surface
        self.session_pool = session_pool
        self.frontier = frontier
        self.throttle = throttle
        self.output = output
        self.block_detector = block_detector or BlockDetector()
        self.list_extractor = list_extractor or ListExtractor()
        self.detail_extractor = detail_extractor or DetailExtractor()
        self.paginator = paginator or Paginator()
        self.max_request_retries = max_request_retries
        self.crawl_details = crawl_details
        self.login = login
        self.navigation_timeout = navigation_timeout
        self.handler_timeout = handler_timeout
        self.stats = CrawlStats()

    # ------------------------------------------------------------------
    # Run loop
    # ------------------------------------------------------------------

    async def run(self, start_requests: Iterable[CrawlRequest]) -> CrawlStats:
        """
        Crawl from the seed requests until the frontier drains or the budget is spent.

        When a login step is configured it runs alone first, so its cookies
        reach every session before regular requests are dispatched.

        Args:
            start_requests: Seed requests (LIST or DETAIL)

        Returns:
            CrawlStats for the run
        """
        started = time.monotonic()

        if self.login is not None and self.login.is_active:
            login_request = CrawlRequest(
                url=self.login.login_url,
                label=RequestLabel.DETAIL,
                user_data={"is_login_step": True},
            )
            await self.frontier.enqueue(login_request, forefront=True)
            logger.info(f"Running login step at {login_request.url}")
            await self._worker(0)

        seeded = 0
        for request in start_requests:
            if await self.frontier.enqueue(request):
                seeded += 1
        logger.info(f"Seeded {seeded} start requests, starting {self.throttle.max_concurrency} workers")

        workers = [
            asyncio.create_task(self._worker(worker_id))
            for worker_id in range(self.throttle.max_concurrency)
        ]
        await asyncio.gather(*workers)

        elapsed = time.monotonic() - started
        logger.info(
            f"Crawl finished in {elapsed:.1f}s: {self.stats.to_dict()} "
            f"frontier={self.frontier.get_stats()} sessions={self.session_pool.get_stats()}"
        )
        return self.stats

    async def _worker(self, worker_id: int) -> None:
        while True:
            request = await self.frontier.next()
            if request is None:
                logger.debug(f"Worker {worker_id} exiting")
                return
            try:
                await self.throttle.wait_for_slot()
                await self._process(request)
            finally:
                await self.frontier.mark_done(request)

    # ------------------------------------------------------------------
    # Request state machine
    # ------------------------------------------------------------------

    async def _process(self, request: CrawlRequest) -> None:
        """Handle one dispatched request end to end. Never raises for request errors."""
        started = time.monotonic()
        outcome = "succeeded"
        session = await self.session_pool.checkout()
        logger.debug(f"{request.label.value} {request.url} on {session.id} (attempt {request.attempt_count})")

        try:
            await asyncio.wait_for(self._handle(request, session), timeout=self.handler_timeout)
        except asyncio.TimeoutError:
            outcome = await self._on_error(request, session, HandlerTimeout(request.url, self.handler_timeout))
        except BlockDetected as e:
            outcome = await self._on_block(request, session, e)
        except RequestError as e:
            outcome = await self._on_error(request, session, e)
        except Exception as e:
            logger.exception(f"Unexpected error handling {request.url}: {e}")
            outcome = await self._on_error(request, session, e)
        else:
            request.state = RequestState.SUCCEEDED
            self.stats.succeeded += 1
            await self._release(session)

        metrics.record_request(request.label.value, outcome, time.monotonic() - started)

    async def _release(self, session: Session) -> None:
        await self.session_pool.release(session)
        if self.session_pool.is_retired(session.id):
            await self.surface.discard_session(session.id)

    async def _on_block(self, request: CrawlRequest, session: Session, error: BlockDetected) -> str:
        logger.warning(f"Blocked on {request.url} ({error.reason}), retiring {session.id}")
        self.stats.blocked += 1
        metrics.record_block(error.reason)
        await self.session_pool.retire(session)
        await self.surface.discard_session(session.id)
        return await self._retry_or_fail(request, error, blocked=True)

    async def _on_error(self, request: CrawlRequest, session: Session, error: Exception) -> str:
        await self._release(session)
        return await self._retry_or_fail(request, error)

    async def _retry_or_fail(self, request: CrawlRequest, error: Exception, blocked: bool = False) -> str:
        """Requeue while under the retry ceiling, else emit the one FailureRecord."""
        kind = getattr(error, "kind", type(error).__name__)
        retryable = getattr(error, "retryable", True)
        request.errors.append(str(error))

        if retryable and request.attempt_count < self.max_request_retries:
            request.attempt_count += 1
            request.state = RequestState.BLOCKED_RETRY if blocked else RequestState.PENDING
            self.stats.retried += 1
            metrics.record_retry(kind)
            logger.warning(
                f"Retrying {request.url} ({kind}), attempt {request.attempt_count}/{self.max_request_retries}"
            )
            await self.frontier.enqueue(request, forefront=request.is_login_step, retry=True)
            return "retried"

        request.state = RequestState.FAILED
        self.stats.failed += 1
        logger.error(f"Request failed: {request.url} ({kind}) after {request.attempt_count} retries: {error}")
        await self.output.emit_failure(FailureRecord(url=request.url, kind=kind, message=str(error)))
        return "failed"

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    async def _navigate(self, request: CrawlRequest, session: Session) -> PageHandle:
        try:
            return await asyncio.wait_for(
                self.surface.navigate(request.url, session, self.navigation_timeout),
                timeout=self.navigation_timeout + NAVIGATION_GRACE_SECS,
            )
        except asyncio.TimeoutError:
            raise NavigationTimeout(request.url, self.navigation_timeout)

    async def _handle(self, request: CrawlRequest, session: Session) -> None:
        page = await self._navigate(request, session)
        try:
            tree = DomTree(await page.content(), page.url or request.url)

            verdict = self.block_detector.classify(page.status, tree.body_text())
            if verdict.blocked:
                raise BlockDetected(request.url, verdict.reason, page.status)

            status = page.status
            if status is not None and status >= 400:
                if status in PERMANENT_STATUSES:
                    raise PermanentPageError(request.url, status)
                raise PageFetchError(request.url, status)

            if request.is_login_step:
                await self._handle_login(request, page)
            elif request.label == RequestLabel.LIST:
                await self._handle_list(request, page, tree)
            else:
                await self._handle_detail(request, page, tree)
        finally:
            await page.close()

    async def _handle_list(self, request: CrawlRequest, page: PageHandle, tree: DomTree) -> None:
        current_url = page.url or request.url
        items = self.list_extractor.extract(tree, current_url)

        if not items:
            self.stats.empty_list_pages += 1
            logger.warning(f"No listings found on {current_url}")
            await self.output.save_debug_snapshot(current_url, tree.body_html_excerpt(self.output.snapshot_chars))
        else:
            logger.info(f"Found {len(items)} listings on {current_url}")

        for item in items:
            await self.output.emit(ExtractedRecord.build(item.url, {"name": item.name}, source_list=request.url))
            self.stats.records += 1
            if self.crawl_details:
                detail = CrawlRequest(
                    url=item.url,
                    label=RequestLabel.DETAIL,
                    user_data={"source_list": request.url, "list_name": item.name},
                )
                if await self.frontier.enqueue(detail):
                    self.stats.details_enqueued += 1

        next_url = await self.paginator.next_url(page, tree, current_url, self.navigation_timeout)
        if next_url:
            next_request = CrawlRequest(url=next_url, label=RequestLabel.LIST, user_data=dict(request.user_data))
            if await self.frontier.enqueue(next_request):
                self.stats.pages_enqueued += 1
                logger.info(f"Enqueued next page {next_url}")

    async def _handle_detail(self, request: CrawlRequest, page: PageHandle, tree: DomTree) -> None:
        fields = self.detail_extractor.extract(tree, page.url or request.url)
        if not fields.get("name") and request.user_data.get("list_name"):
            fields["name"] = request.user_data["list_name"]

        record = ExtractedRecord.build(request.url, fields, source_list=request.user_data.get("source_list"))
        await self.output.emit(record)
        self.stats.records += 1
        resolved = sum(1 for value in fields.values() if value)
        logger.info(f"Extracted {resolved}/{len(fields)} fields from {request.url}")

    async def _handle_login(self, request: CrawlRequest, page: PageHandle) -> None:
        login = self.login
        if login is None:
            logger.warning(f"Login step queued without login settings: {request.url}")
            return
        await page.fill(login.username_selector, login.username or "")
        await page.fill(login.password_selector, login.password or "")
        await page.click(login.submit_selector, timeout=self.navigation_timeout)

        cookies = await page.cookies()
        await self.session_pool.share_cookies(cookies)
        logger.info(f"Login step done at {page.url}, sharing {len(cookies)} cookies")
