"""Headless Chromium page surface (Playwright)."""

import asyncio
import logging
from typing import Optional

from playwright.async_api import (
    Browser,
    BrowserContext,
    Error as PlaywrightError,
    Page,
    TimeoutError as PlaywrightTimeoutError,
    async_playwright,
)

from listing_scraper.crawl.errors import NavigationTimeout, PageFetchError
from listing_scraper.crawl.fingerprints import FingerprintGenerator
from listing_scraper.crawl.models import Session
from listing_scraper.fetchers.base import PageHandle, PageSurface

logger = logging.getLogger(__name__)

STEALTH_ARGS = [
    "--disable-blink-features=AutomationControlled",
    "--disable-dev-shm-usage",
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-infobars",
    "--disable-extensions",
]

EXTRA_HEADERS = {"Accept-Language": "en-US,en;q=0.9"}


class BrowserPage(PageHandle):
    """Playwright page wrapper."""

    supports_click = True

    def __init__(self, page: Page, status: Optional[int]):
        self._page = page
        self._status = status

    @property
    def url(self) -> str:
        return self._page.url

    @property
    def status(self) -> Optional[int]:
        return self._status

    async def content(self) -> str:
        return await self._page.content()

    async def click(self, selector: str, timeout: float) -> None:
        await self._page.click(selector, timeout=timeout * 1000)
        await self.wait_for_load_state(timeout)

    async def fill(self, selector: str, value: str) -> None:
        await self._page.fill(selector, value)

    async def wait_for_load_state(self, timeout: float) -> None:
        try:
            await self._page.wait_for_load_state("domcontentloaded", timeout=timeout * 1000)
        except PlaywrightTimeoutError:
            logger.debug(f"Load state wait timed out on {self._page.url}")

    async def cookies(self) -> list[dict]:
        return [dict(c) for c in await self._page.context.cookies()]

    async def close(self) -> None:
        try:
            await self._page.close()
        except PlaywrightError as e:
            logger.debug(f"Error closing page: {e}")


class BrowserSurface(PageSurface):
    """
    One shared Chromium instance, one browser context per session.

    Each context carries the session's fingerprint, user agent, proxy and
    cookies, so retiring a session discards its whole identity.
    """

    name = "browser"

    def __init__(self, headless: bool = True):
        self.headless = headless
        self._playwright = None
        self._browser: Optional[Browser] = None
        self._contexts: dict[str, BrowserContext] = {}  # session id -> context
        self._init_lock = asyncio.Lock()

    async def _ensure_browser(self) -> Browser:
        async with self._init_lock:
            if self._playwright is None:
                self._playwright = await async_playwright().start()
            if self._browser is None:
                self._browser = await self._playwright.chromium.launch(
                    headless=self.headless,
                    args=STEALTH_ARGS,
                )
                logger.info("Launched headless Chromium")
            return self._browser

    async def _context_for(self, session: Session) -> BrowserContext:
        context = self._contexts.get(session.id)
        if context is None:
            browser = await self._ensure_browser()
            options = FingerprintGenerator.playwright_context_options(session.fingerprint, session.user_agent)
            options["extra_http_headers"] = dict(EXTRA_HEADERS)
            if session.proxy:
                options["proxy"] = session.proxy.playwright_config
            context = await browser.new_context(**options)
            self._contexts[session.id] = context
            logger.debug(f"Created browser context for {session.id}")
        if session.cookies:
            await context.add_cookies(session.cookies)
        return context

    async def navigate(self, url: str, session: Session, timeout: float) -> PageHandle:
        context = await self._context_for(session)
        page = await context.new_page()
        try:
            response = await page.goto(url, wait_until="domcontentloaded", timeout=timeout * 1000)
        except PlaywrightTimeoutError:
            await self._close_page(page)
            raise NavigationTimeout(url, timeout)
        except PlaywrightError as e:
            await self._close_page(page)
            raise PageFetchError(url, None, f"Navigation to {url} failed: {e}")
        except BaseException:
            # Cancelled by an outer timeout
            await self._close_page(page)
            raise

        return BrowserPage(page, response.status if response else None)

    @staticmethod
    async def _close_page(page: Page) -> None:
        try:
            await page.close()
        except PlaywrightError as e:
            logger.debug(f"Error closing page: {e}")

    async def discard_session(self, session_id: str) -> None:
        context = self._contexts.pop(session_id, None)
        if context is not None:
            try:
                await context.close()
            except PlaywrightError as e:
                logger.error(f"Error closing context for {session_id}: {e}")

    async def close(self) -> None:
        """Close browser and cleanup."""
        for session_id in list(self._contexts):
            await self.discard_session(session_id)

        if self._browser:
            await self._browser.close()
            self._browser = None

        if self._playwright:
            await self._playwright.stop()
            self._playwright = None
