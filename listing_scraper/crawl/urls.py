"""URL canonicalization and stable record ids."""

import hashlib
from typing import Optional
from urllib.parse import parse_qsl, urlencode, urljoin, urlsplit, urlunsplit

DEFAULT_PORTS = {"http": 80, "https": 443}


def absolute_url(href: str, base: Optional[str] = None) -> str:
    """Resolve ``href`` against ``base`` and drop the fragment."""
    resolved = urljoin(base, href.strip()) if base else href.strip()
    parts = urlsplit(resolved)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, parts.query, ""))


def canonical_url(url: str, base: Optional[str] = None) -> str:
    """
    Normalize a URL for identity and dedup comparisons.

    Lowercases scheme and host, drops default ports, credentials and the
    fragment, sorts query parameters and strips a trailing slash from
    non-root paths.

    Args:
        url: Absolute or relative URL
        base: Base URL used to resolve relative input

    Returns:
        Canonical absolute URL
    """
    parts = urlsplit(absolute_url(url, base))
    scheme = parts.scheme.lower()
    host = (parts.hostname or "").lower()

    try:
        port = parts.port
    except ValueError:
        port = None
    netloc = host
    if port and DEFAULT_PORTS.get(scheme) != port:
        netloc = f"{host}:{port}"

    path = parts.path or "/"
    if len(path) > 1 and path.endswith("/"):
        path = path.rstrip("/") or "/"

    query = urlencode(sorted(parse_qsl(parts.query, keep_blank_values=True)))
    return urlunsplit((scheme, netloc, path, query, ""))


def stable_id_from(url: str) -> str:
    """SHA-1 hex digest of the canonical URL; the primary key for records."""
    return hashlib.sha1(canonical_url(url).encode("utf-8")).hexdigest()


def is_http_url(url: Optional[str]) -> bool:
    """True for absolute http(s) URLs with a host."""
    if not url:
        return False
    parts = urlsplit(url)
    return parts.scheme in ("http", "https") and bool(parts.netloc)


def site_host(url: str) -> str:
    """Host without a leading ``www.``; used for same-site checks."""
    host = (urlsplit(url).hostname or "").lower()
    return host[4:] if host.startswith("www.") else host


def same_site(url: str, other: str) -> bool:
    """True when both URLs point at the same host (ignoring ``www.``) or a subdomain of it."""
    a, b = site_host(url), site_host(other)
    if not a or not b:
        return False
    return a == b or a.endswith("." + b) or b.endswith("." + a)
