"""Page automation surface interface shared by the browser and HTTP fetchers."""

from abc import ABC, abstractmethod
from typing import Optional

from listing_scraper.crawl.models import Session


class PageHandle(ABC):
    """A page loaded on behalf of one session, valid for one request."""

    supports_click: bool = False

    @property
    @abstractmethod
    def url(self) -> str:
        """Current URL (after redirects or client-side navigation)."""
        pass

    @property
    @abstractmethod
    def status(self) -> Optional[int]:
        """HTTP status of the main response, None if unknown."""
        pass

    @abstractmethod
    async def content(self) -> str:
        """Rendered HTML."""
        pass

    async def click(self, selector: str, timeout: float) -> None:
        """
        Click the first element matching ``selector`` and wait for navigation.

        Raises:
            NotImplementedError: If the surface cannot click
        """
        raise NotImplementedError(f"{type(self).__name__} cannot click")

    async def fill(self, selector: str, value: str) -> None:
        raise NotImplementedError(f"{type(self).__name__} cannot fill forms")

    async def wait_for_load_state(self, timeout: float) -> None:
        pass

    async def cookies(self) -> list[dict]:
        return []

    async def close(self) -> None:
        pass


class PageSurface(ABC):
    """Fetches pages under a session's identity."""

    name: str = "surface"

    @abstractmethod
    async def navigate(self, url: str, session: Session, timeout: float) -> PageHandle:
        """
        Load a page.

        Args:
            url: Absolute URL
            session: Identity to load it with
            timeout: Navigation timeout in seconds

        Returns:
            PageHandle for the loaded page

        Raises:
            NavigationTimeout: If the page did not load in time
        """
        pass

    async def discard_session(self, session_id: str) -> None:
        """Drop resources held for a retired session."""
        pass

    async def close(self) -> None:
        pass
