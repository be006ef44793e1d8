"""Next-page discovery for list pages.

A next target is found by an ordered chain:

(a) ``a[rel~=next]``
(b) an anchor whose visible text is "next" / "next page" (optionally with arrows)
(c) a configured marker element: the href of its enclosing (or inner) anchor, else a click

Whatever the step, the result goes through one termination rule: if the
canonical next URL equals the canonical current URL, pagination stops.
"""

import logging
import re
from dataclasses import dataclass
from typing import Optional, Sequence

from listing_scraper.crawl.urls import absolute_url, canonical_url, is_http_url
from listing_scraper.extract.dom import DomTree, ancestors, node_attr, node_text
from listing_scraper.fetchers.base import PageHandle

logger = logging.getLogger(__name__)

DEFAULT_NEXT_SELECTORS = ["div.next.font-16"]

NEXT_TEXT = re.compile(r"next(\s+page)?\s*[›»>→]*", re.IGNORECASE)


@dataclass(frozen=True)
class NextTarget:
    """Either a URL to enqueue or an element to click."""

    strategy: str
    url: Optional[str] = None
    click_selector: Optional[str] = None


class Paginator:
    """Resolves and follows the next-page target of a list page."""

    def __init__(self, next_selectors: Optional[Sequence[str]] = None):
        self.next_selectors = list(next_selectors) if next_selectors else list(DEFAULT_NEXT_SELECTORS)

    @staticmethod
    def _href_target(node, base_url: str, strategy: str) -> Optional[NextTarget]:
        href = node_attr(node, "href")
        if not href:
            return None
        url = absolute_url(href, base_url)
        if not is_http_url(url):
            return None
        return NextTarget(strategy=strategy, url=url)

    def resolve(self, tree: DomTree, current_url: str, can_click: bool = True) -> Optional[NextTarget]:
        """
        Find the next-page target without touching the page.

        Args:
            tree: Parsed list page
            current_url: URL the page was loaded from
            can_click: Whether the surface supports click-driven pagination

        Returns:
            NextTarget, or None when the page has no next link
        """
        for node in tree.find_by_selector("a[rel~=next]"):
            target = self._href_target(node, current_url, "rel_next")
            if target:
                return target

        for node in tree.anchors():
            if NEXT_TEXT.fullmatch(node_text(node)):
                target = self._href_target(node, current_url, "next_text")
                if target:
                    return target

        for selector in self.next_selectors:
            marker = tree.find_first(selector)
            if marker is None:
                continue
            anchor = marker if marker.tag == "a" else next((a for a in ancestors(marker) if a.tag == "a"), None)
            if anchor is None:
                anchor = marker.css_first("a[href]")
            if anchor is not None:
                target = self._href_target(anchor, current_url, "marker_href")
                if target:
                    return target
            if can_click:
                return NextTarget(strategy="marker_click", click_selector=selector)
            logger.debug(f"Next marker {selector!r} has no href and the surface cannot click")

        return None

    async def follow(
        self,
        page: PageHandle,
        target: NextTarget,
        current_url: str,
        timeout: float,
    ) -> Optional[str]:
        """
        Turn a target into the next page URL.

        Click targets are clicked and the resulting page URL observed.

        Returns:
            Next URL, or None when pagination has terminated
        """
        if target.url:
            candidate = target.url
        else:
            if not page.supports_click:
                return None
            try:
                await page.click(target.click_selector, timeout=timeout)
            except Exception as e:
                logger.info(f"Next-page click failed on {current_url}: {e}")
                return None
            candidate = page.url

        if canonical_url(candidate) == canonical_url(current_url):
            logger.info(f"Pagination ended at {current_url} ({target.strategy})")
            return None
        return candidate

    async def next_url(
        self,
        page: PageHandle,
        tree: DomTree,
        current_url: str,
        timeout: float,
    ) -> Optional[str]:
        target = self.resolve(tree, current_url, can_click=page.supports_click)
        if target is None:
            logger.info(f"No next page on {current_url}")
            return None
        return await self.follow(page, target, current_url, timeout)
