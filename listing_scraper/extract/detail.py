"""Ordered-fallback field extraction for detail (company profile) pages.

Each field is resolved by the first strategy that yields a value:

1. configured CSS selectors,
2. a label phrase ("Website:", "Address:") followed by the value,
3. a domain fallback (first external link in a sidebar/summary region).

A field nothing resolves is returned as None; that is never an error.
"""

import logging
from dataclasses import dataclass, replace
from typing import Callable, Optional, Sequence

from selectolax.parser import Node

from listing_scraper.crawl.urls import absolute_url, is_http_url, same_site
from listing_scraper.extract.dom import (
    DomTree,
    clean_text,
    next_element_sibling,
    node_attr,
    node_text,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FieldSpec:
    """How to find one record field."""

    name: str
    selectors: tuple[str, ...] = ()
    labels: tuple[str, ...] = ()
    link: bool = False  # value is a URL read from an href
    region_fallback: bool = False


DEFAULT_FIELD_SPECS: tuple[FieldSpec, ...] = (
    FieldSpec(
        name="name",
        selectors=("h1.company-name", "[itemprop=name] h1", "h1[itemprop=name]", ".company-profile h1", "h1"),
        labels=("company name:", "business name:", "legal name:"),
    ),
    FieldSpec(
        name="address",
        selectors=("p.company-address", "[itemprop=address]", ".company-address", "address"),
        labels=("address:", "headquarters:", "location:", "head office:"),
    ),
    FieldSpec(
        name="phone",
        selectors=("a.company-phone", "[itemprop=telephone]", "a[href^='tel:']"),
        labels=("phone:", "telephone:", "tel:", "phone number:"),
    ),
    FieldSpec(
        name="website",
        selectors=("a.company-website", "a[itemprop=url]"),
        labels=("website:", "web:", "url:", "homepage:"),
        link=True,
        region_fallback=True,
    ),
    FieldSpec(
        name="industry",
        selectors=("span.company-industry", "[itemprop=industry]", ".company-industry"),
        labels=("industry:", "sector:", "line of business:", "industry type:"),
    ),
)

DEFAULT_REGION_SELECTORS = (
    "aside",
    ".sidebar",
    "[class*=sidebar]",
    ".company-summary",
    "[class*=summary]",
    "[class*=overview]",
)

Resolver = Callable[[DomTree, FieldSpec, str, Sequence[str]], Optional[str]]


def _absolute_http_href(node: Node, page_url: str) -> Optional[str]:
    href = node_attr(node, "href")
    if not href:
        return None
    url = absolute_url(href, page_url)
    return url if is_http_url(url) else None


def resolve_by_selector(tree: DomTree, spec: FieldSpec, page_url: str, regions: Sequence[str]) -> Optional[str]:
    """Strategy 1: first configured selector with a non-empty value."""
    for selector in spec.selectors:
        node = tree.find_first(selector)
        if node is None:
            continue
        if spec.link:
            url = _absolute_http_href(node, page_url)
            if url:
                return url
        text = node_text(node)
        if text:
            return text
    return None


def resolve_by_label(tree: DomTree, spec: FieldSpec, page_url: str, regions: Sequence[str]) -> Optional[str]:
    """
    Strategy 2: value next to a label.

    Link fields prefer an anchor with an absolute http(s) href in the same
    container as the label. An element holding both label and value
    ("Industry: Logistics") yields the text after the label. An inline label
    ("<b>Industry:</b> Logistics") yields the text following it on the same
    line; otherwise the next sibling element's text is used.
    """
    for match in tree.find_by_label_text(spec.labels):
        if spec.link:
            containers = [match.node]
            if match.node.parent is not None:
                containers.append(match.node.parent)
            for container in containers:
                for anchor in container.css("a[href]"):
                    href = node_attr(anchor, "href") or ""
                    if is_http_url(href):
                        return absolute_url(href)

        if match.remainder:
            return match.remainder
        if match.trailing:
            return match.trailing

        sibling = next_element_sibling(match.node)
        if sibling is not None:
            if spec.link and sibling.tag == "a":
                url = _absolute_http_href(sibling, page_url)
                if url:
                    return url
            text = node_text(sibling)
            if text:
                return text
    return None


def resolve_by_region(tree: DomTree, spec: FieldSpec, page_url: str, regions: Sequence[str]) -> Optional[str]:
    """Strategy 3: first external link in a sidebar/summary region."""
    if not spec.region_fallback or not page_url:
        return None
    for region in tree.fallback_region(regions):
        for anchor in region.css("a[href]"):
            url = _absolute_http_href(anchor, page_url)
            if url and not same_site(url, page_url):
                return url
    return None


RESOLVERS: tuple[Resolver, ...] = (resolve_by_selector, resolve_by_label, resolve_by_region)


class DetailExtractor:
    """Applies the resolver chain to every configured field."""

    def __init__(
        self,
        field_specs: Sequence[FieldSpec] = DEFAULT_FIELD_SPECS,
        overrides: Optional[dict[str, str]] = None,
        region_selectors: Sequence[str] = DEFAULT_REGION_SELECTORS,
    ):
        overrides = overrides or {}
        specs = []
        for spec in field_specs:
            override = overrides.get(spec.name)
            if override:
                spec = replace(spec, selectors=(override,) + tuple(s for s in spec.selectors if s != override))
            specs.append(spec)
        self.field_specs = tuple(specs)
        self.region_selectors = tuple(region_selectors)

    def resolve_field(self, tree: DomTree, spec: FieldSpec, page_url: str) -> Optional[str]:
        for resolver in RESOLVERS:
            value = clean_text(resolver(tree, spec, page_url, self.region_selectors))
            if value:
                return value
        logger.debug(f"Field {spec.name!r} unresolved on {page_url}")
        return None

    def extract(self, tree: DomTree, page_url: Optional[str] = None) -> dict[str, Optional[str]]:
        """
        Extract all fields from a detail page.

        Args:
            tree: Parsed page
            page_url: Page URL (defaults to ``tree.url``)

        Returns:
            Field name -> value, None for unresolved fields
        """
        url = page_url or tree.url
        return {spec.name: self.resolve_field(tree, spec, url) for spec in self.field_specs}
