"""DOM tree wrapper used by the extractors.

Wraps a selectolax parse of the rendered page and exposes the three
capabilities the field resolvers need: selector lookup, label-text lookup
and fallback regions. Everything here is pure data-in/data-out so the
extractors can be tested against literal HTML.
"""

import logging
import re
from dataclasses import dataclass
from typing import Iterable, Iterator, Optional

from selectolax.parser import HTMLParser, Node

logger = logging.getLogger(__name__)

_WS = re.compile(r"\s+")

NON_CONTENT_TAGS = ["script", "style", "noscript", "template"]

# Elements that end an inline run of text after a label
BLOCK_TAGS = frozenset([
    "br", "hr", "p", "div", "li", "ul", "ol", "dl", "dt", "dd", "tr", "td", "th",
    "table", "section", "article", "aside", "address", "h1", "h2", "h3", "h4", "h5", "h6",
])

TEXT_BEARING_SELECTOR = ", ".join([
    "dt", "dd", "th", "td", "li", "p", "span", "div", "label",
    "strong", "b", "em", "small", "h2", "h3", "h4", "h5", "h6",
])


def clean_text(value: Optional[str]) -> str:
    """Collapse whitespace runs and trim."""
    return _WS.sub(" ", value or "").strip()


def node_text(node: Optional[Node]) -> str:
    """Visible text of a node, whitespace-collapsed."""
    if node is None:
        return ""
    return clean_text(node.text(deep=True, separator=" "))


def _is_special(node: Node) -> bool:
    """Text, comment and document nodes have pseudo tags like ``-text``."""
    tag = node.tag or ""
    return tag.startswith(("-", "_"))


def node_attr(node: Node, name: str) -> Optional[str]:
    value = node.attributes.get(name)
    return value.strip() if value else None


def next_element_sibling(node: Node) -> Optional[Node]:
    """Next sibling that is an element (skips text and comment nodes)."""
    sibling = node.next
    while sibling is not None and _is_special(sibling):
        sibling = sibling.next
    return sibling


def ancestors(node: Node) -> Iterator[Node]:
    parent = node.parent
    while parent is not None and not _is_special(parent):
        yield parent
        parent = parent.parent


def trailing_inline_text(node: Node) -> str:
    """
    Text that follows a node inside the same line of its parent.

    Collects sibling text nodes and inline elements up to the first block
    element or the next label (inline text ending in a colon), so
    ``<p><strong>Phone:</strong> 555-0100</p>`` yields ``555-0100``.
    """
    parts = []
    sibling = node.next
    while sibling is not None:
        tag = sibling.tag or ""
        if tag == "-text":
            parts.append(sibling.text(deep=False))
        elif not _is_special(sibling):
            if tag in BLOCK_TAGS:
                break
            text = node_text(sibling)
            if text.endswith(":"):
                break
            parts.append(f" {text} ")
        sibling = sibling.next
    return clean_text("".join(parts)).lstrip(":-– ").strip()


@dataclass(frozen=True)
class LabelMatch:
    """An element whose text starts with a label phrase."""

    node: Node
    label: str
    remainder: str
    trailing: str = ""


class DomTree:
    """Parsed page with selector, label and region lookups."""

    def __init__(self, html: str, url: str = ""):
        self.url = url
        self.html = html or ""
        self._parser = HTMLParser(self.html)
        self._parser.strip_tags(NON_CONTENT_TAGS)

    @property
    def title(self) -> str:
        return node_text(self._parser.css_first("title"))

    def body_text(self) -> str:
        """Page title plus visible body text, whitespace-collapsed."""
        body = self._parser.body
        text = node_text(body) if body is not None else node_text(self._parser.root)
        title = self.title
        return f"{title} {text}".strip() if title else text

    def body_html_excerpt(self, limit: int = 5000) -> str:
        """Whitespace-collapsed body HTML, cut to ``limit`` characters."""
        body = self._parser.body
        raw = body.html if body is not None else self.html
        return clean_text(raw)[:limit]

    def find_by_selector(self, selector: str) -> list[Node]:
        """All matches for a CSS selector; an invalid selector matches nothing."""
        try:
            return self._parser.css(selector)
        except Exception as e:
            logger.debug(f"Selector {selector!r} failed: {e}")
            return []

    def find_first(self, selector: str) -> Optional[Node]:
        matches = self.find_by_selector(selector)
        return matches[0] if matches else None

    def find_by_label_text(self, labels: Iterable[str]) -> list[LabelMatch]:
        """
        Innermost text-bearing elements whose text starts with a label.

        Matching is case-insensitive on whitespace-collapsed text. An element
        is skipped when one of its descendants also starts with a label, so
        ``<div><span>Address:</span> 1 Main St</div>`` yields the span, with
        ``1 Main St`` as its trailing inline text.

        Args:
            labels: Label phrases, e.g. ``["website:", "url:"]``

        Returns:
            Matches in document order
        """
        phrases = [label.lower() for label in labels if label]
        if not phrases:
            return []

        def matching_label(node: Node) -> Optional[str]:
            text = node_text(node).lower()
            for phrase in phrases:
                if text.startswith(phrase):
                    return phrase
            return None

        matches = []
        for node in self.find_by_selector(TEXT_BEARING_SELECTOR):
            label = matching_label(node)
            if label is None:
                continue
            if any(
                matching_label(child)
                for child in node.css(TEXT_BEARING_SELECTOR)
                if child.mem_id != node.mem_id
            ):
                continue
            remainder = node_text(node)[len(label):].strip(" :-–")
            trailing = "" if remainder else trailing_inline_text(node)
            matches.append(LabelMatch(node=node, label=label, remainder=remainder, trailing=trailing))
        return matches

    def fallback_region(self, selectors: Iterable[str]) -> list[Node]:
        """Region containers (sidebar, summary box, ...) in selector order."""
        regions = []
        seen = set()
        for selector in selectors:
            for node in self.find_by_selector(selector):
                if node.mem_id not in seen:
                    seen.add(node.mem_id)
                    regions.append(node)
        return regions

    def anchors(self) -> list[Node]:
        return self.find_by_selector("a[href]")
