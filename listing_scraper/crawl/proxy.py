"""Proxy configuration: Apify proxy groups or a static rotating list."""

import itertools
import logging
from dataclasses import dataclass
from typing import Optional
from urllib.parse import quote, urlsplit

from listing_scraper.crawl.errors import FatalInitError

logger = logging.getLogger(__name__)


@dataclass
class ProxyInfo:
    """Proxy information for use in page surfaces."""

    host: str
    port: int
    username: Optional[str] = None
    password: Optional[str] = None
    scheme: str = "http"

    @classmethod
    def from_url(cls, url: str) -> "ProxyInfo":
        parts = urlsplit(url)
        if not parts.hostname or not parts.port:
            raise ValueError(f"Proxy URL needs host and port: {url}")
        return cls(
            host=parts.hostname,
            port=parts.port,
            username=parts.username,
            password=parts.password,
            scheme=parts.scheme or "http",
        )

    @property
    def url(self) -> str:
        """Get proxy URL for httpx."""
        if self.username and self.password:
            return f"{self.scheme}://{quote(self.username, safe=',+-_')}:{quote(self.password, safe='')}@{self.host}:{self.port}"
        return f"{self.scheme}://{self.host}:{self.port}"

    @property
    def playwright_config(self) -> dict:
        """Get proxy config for Playwright."""
        config = {"server": f"{self.scheme}://{self.host}:{self.port}"}
        if self.username:
            config["username"] = self.username
        if self.password:
            config["password"] = self.password
        return config


class ProxyConfiguration:
    """
    Hands out one proxy per session.

    With an Apify proxy password, sessions get sticky Apify proxy URLs
    (``groups-A+B,session-<id>,country-US``) so each identity keeps its IP.
    Otherwise static proxy URLs are rotated round-robin.
    """

    def __init__(
        self,
        apify_password: str = "",
        groups: Optional[list[str]] = None,
        country_code: Optional[str] = None,
        hostname: str = "proxy.apify.com",
        port: int = 8000,
        proxy_urls: Optional[list[str]] = None,
    ):
        self.apify_password = apify_password
        self.groups = list(groups or [])
        self.country_code = country_code
        self.hostname = hostname
        self.port = port
        self._static = [ProxyInfo.from_url(url) for url in (proxy_urls or [])]
        self._cycle = itertools.cycle(self._static) if self._static else None

    @classmethod
    def create(
        cls,
        use_proxy: bool,
        apify_password: str = "",
        groups: Optional[list[str]] = None,
        country_code: Optional[str] = None,
        hostname: str = "proxy.apify.com",
        port: int = 8000,
        proxy_urls: Optional[list[str]] = None,
    ) -> Optional["ProxyConfiguration"]:
        """
        Build the proxy configuration for a run.

        Returns:
            None when proxies are disabled

        Raises:
            FatalInitError: If proxies are enabled but no source is configured
        """
        if not use_proxy:
            return None
        if not apify_password and not proxy_urls:
            raise FatalInitError(
                "useProxy is enabled but neither APIFY_PROXY_PASSWORD nor PROXY_URLS is set"
            )
        config = cls(
            apify_password=apify_password,
            groups=groups,
            country_code=country_code,
            hostname=hostname,
            port=port,
            proxy_urls=None if apify_password else proxy_urls,
        )
        logger.info(
            f"Proxy enabled ({'apify groups=' + ','.join(config.groups) if apify_password else f'{len(config._static)} static proxies'})"
        )
        return config

    def new_proxy(self, session_id: str) -> ProxyInfo:
        """Proxy for a newly created session."""
        if self.apify_password:
            parts = []
            if self.groups:
                parts.append("groups-" + "+".join(self.groups))
            parts.append(f"session-{session_id}")
            if self.country_code:
                parts.append(f"country-{self.country_code.upper()}")
            return ProxyInfo(
                host=self.hostname,
                port=self.port,
                username=",".join(parts),
                password=self.apify_password,
            )
        return next(self._cycle)
