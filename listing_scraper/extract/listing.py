"""Anchor extraction for list (directory) pages."""

import logging
from typing import Optional, Sequence

from listing_scraper.crawl.models import ListItem
from listing_scraper.crawl.urls import absolute_url, canonical_url, is_http_url
from listing_scraper.extract.dom import DomTree, node_attr, node_text

logger = logging.getLogger(__name__)

# Company anchors inside the directory results block, most specific first
DEFAULT_LIST_SELECTORS = [
    "#companyResults a.companyName",
    "#companyResults > div > div.col-md-6 > a",
]


class ListExtractor:
    """Collects (name, absolute url) pairs from a list page."""

    def __init__(self, selectors: Optional[Sequence[str]] = None):
        self.selectors = list(selectors) if selectors else list(DEFAULT_LIST_SELECTORS)

    def extract(self, tree: DomTree, page_url: Optional[str] = None) -> list[ListItem]:
        """
        Extract company anchors from a list page.

        Selector alternatives are tried in order; all matches of the first
        alternative that yields at least one anchor are used. Anchors without
        an href are skipped and repeated hrefs are reported once.

        Args:
            tree: Parsed page
            page_url: URL used to resolve relative hrefs (defaults to ``tree.url``)

        Returns:
            List items in document order; empty when nothing matched
        """
        base_url = page_url or tree.url
        for selector in self.selectors:
            anchors = [node for node in tree.find_by_selector(selector) if node_attr(node, "href")]
            if not anchors:
                continue

            items = []
            seen = set()
            for anchor in anchors:
                url = absolute_url(node_attr(anchor, "href"), base_url)
                if not is_http_url(url):
                    continue
                key = canonical_url(url)
                if key in seen:
                    continue
                seen.add(key)
                items.append(ListItem(name=node_text(anchor) or None, url=url))

            logger.debug(f"List selector {selector!r} matched {len(items)} items on {base_url}")
            return items

        return []
