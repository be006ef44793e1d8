"""Static HTTP page surface (httpx), for server-rendered directories."""

import asyncio
import logging
from typing import Optional

import httpx

from listing_scraper.crawl.errors import NavigationTimeout, PageFetchError
from listing_scraper.crawl.models import Session
from listing_scraper.fetchers.base import PageHandle, PageSurface

logger = logging.getLogger(__name__)

DEFAULT_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
    "Accept-Encoding": "gzip, deflate",
    "Connection": "keep-alive",
    "Upgrade-Insecure-Requests": "1",
}


class HttpPage(PageHandle):
    """A fetched response. Cannot click; pagination relies on hrefs."""

    supports_click = False

    def __init__(self, response: httpx.Response, client: httpx.AsyncClient):
        self._response = response
        self._client = client

    @property
    def url(self) -> str:
        return str(self._response.url)

    @property
    def status(self) -> Optional[int]:
        return self._response.status_code

    async def content(self) -> str:
        return self._response.text

    async def cookies(self) -> list[dict]:
        return [
            {"name": c.name, "value": c.value, "domain": c.domain, "path": c.path}
            for c in self._client.cookies.jar
        ]


class HttpSurface(PageSurface):
    """One ``httpx.AsyncClient`` per session (headers, proxy and cookie jar)."""

    name = "http"

    def __init__(self, request_timeout: float = 25.0):
        self.request_timeout = request_timeout
        self._clients: dict[str, httpx.AsyncClient] = {}  # session id -> client
        self._lock = asyncio.Lock()

    async def _client_for(self, session: Session) -> httpx.AsyncClient:
        async with self._lock:
            client = self._clients.get(session.id)
            if client is None:
                headers = dict(DEFAULT_HEADERS)
                headers["User-Agent"] = session.user_agent
                client = httpx.AsyncClient(
                    timeout=self.request_timeout,
                    follow_redirects=True,
                    headers=headers,
                    proxy=session.proxy.url if session.proxy else None,
                )
                self._clients[session.id] = client
                logger.debug(f"Created HTTP client for {session.id}")
            for cookie in session.cookies:
                client.cookies.set(
                    cookie["name"],
                    cookie["value"],
                    domain=cookie.get("domain", ""),
                    path=cookie.get("path", "/"),
                )
            return client

    async def navigate(self, url: str, session: Session, timeout: float) -> PageHandle:
        client = await self._client_for(session)
        try:
            response = await client.get(url, timeout=timeout)
        except httpx.TimeoutException:
            raise NavigationTimeout(url, timeout)
        except httpx.HTTPError as e:
            raise PageFetchError(url, None, f"Request to {url} failed: {e}")
        return HttpPage(response, client)

    async def discard_session(self, session_id: str) -> None:
        async with self._lock:
            client = self._clients.pop(session_id, None)
        if client is not None:
            try:
                await client.aclose()
            except Exception as e:
                logger.error(f"Error closing client for {session_id}: {e}")

    async def close(self) -> None:
        """Close HTTP clients."""
        for session_id in list(self._clients):
            await self.discard_session(session_id)
