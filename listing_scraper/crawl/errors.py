"""Exception types for crawl request handling."""

from typing import Optional


class FatalInitError(RuntimeError):
    """Raised before crawling starts when required credentials or config are missing."""
    pass


class RequestError(RuntimeError):
    """Base class for errors contained at the request boundary."""

    kind = "error"
    retryable = True

    def __init__(self, url: str, message: str):
        super().__init__(message)
        self.url = url


class BlockDetected(RequestError):
    """Raised when a page is classified as an anti-bot block (403 or challenge text)."""

    kind = "blocked"

    def __init__(self, url: str, reason: str, status: Optional[int] = None):
        super().__init__(url, f"Blocked on {url}: {reason}")
        self.reason = reason
        self.status = status


class NavigationTimeout(RequestError):
    """Navigation did not complete within its timeout."""

    kind = "navigation_timeout"

    def __init__(self, url: str, timeout: float):
        super().__init__(url, f"Navigation to {url} timed out after {timeout:.0f}s")
        self.timeout = timeout


class HandlerTimeout(RequestError):
    """Request handling did not complete within its timeout."""

    kind = "handler_timeout"

    def __init__(self, url: str, timeout: float):
        super().__init__(url, f"Handling {url} timed out after {timeout:.0f}s")
        self.timeout = timeout


class PageFetchError(RequestError):
    """Raised for a non-success status that is not a block (5xx, 429, ...)."""

    kind = "http_error"

    def __init__(self, url: str, status: Optional[int], message: Optional[str] = None):
        super().__init__(url, message or f"HTTP {status} for {url}")
        self.status = status


class PermanentPageError(PageFetchError):
    """Raised when the URL is permanently gone (404/410). Not retried."""

    kind = "not_found"
    retryable = False


class ExternalSinkError(RuntimeError):
    """Raised by document store adapters when an upsert fails."""

    def __init__(self, collection: str, doc_id: str, message: str):
        super().__init__(message)
        self.collection = collection
        self.doc_id = doc_id
