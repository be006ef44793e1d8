"""Anti-bot block page detection from response status and rendered text."""

import logging
import re
from dataclasses import dataclass
from typing import Iterable, Optional

logger = logging.getLogger(__name__)

DEFAULT_BLOCK_PHRASES = (
    "access denied",
    "forbidden",
    "blocked",
    "verify you are a human",
    "just a moment",
)


@dataclass(frozen=True)
class BlockVerdict:
    """Result of classifying one page."""

    blocked: bool
    reason: Optional[str] = None


NORMAL = BlockVerdict(blocked=False)


class BlockDetector:
    """
    Classifies a fetched page as blocked or normal.

    A page is blocked when its status is one of ``blocked_statuses`` (403 by
    default), regardless of content, or when its whitespace-collapsed text
    contains any block phrase (case-insensitive substring).
    """

    def __init__(
        self,
        phrases: Iterable[str] = DEFAULT_BLOCK_PHRASES,
        blocked_statuses: Iterable[int] = (403,),
    ):
        self.phrases = tuple(p.lower() for p in phrases if p)
        self.blocked_statuses = frozenset(blocked_statuses)
        self._pattern = (
            re.compile("|".join(re.escape(p) for p in self.phrases), re.IGNORECASE)
            if self.phrases else None
        )

    def classify(self, status: Optional[int] = None, text: Optional[str] = None) -> BlockVerdict:
        """
        Classify a page.

        Args:
            status: HTTP status of the main response, if known
            text: Rendered page text (body text is preferred over raw HTML)

        Returns:
            BlockVerdict with the matched reason
        """
        if status is not None and status in self.blocked_statuses:
            return BlockVerdict(blocked=True, reason=f"HTTP {status}")

        if text and self._pattern is not None:
            haystack = " ".join(text.split())
            match = self._pattern.search(haystack)
            if match:
                phrase = match.group(0).lower()
                logger.debug(f"Block phrase matched: {phrase!r}")
                return BlockVerdict(blocked=True, reason=phrase)

        return NORMAL

    def is_blocked(self, status: Optional[int] = None, text: Optional[str] = None) -> bool:
        return self.classify(status, text).blocked
