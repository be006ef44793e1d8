"""Data model for crawl requests, sessions and output records."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from listing_scraper.crawl.proxy import ProxyInfo
from listing_scraper.crawl.urls import absolute_url, canonical_url, stable_id_from

RECORD_FIELDS = ("name", "address", "phone", "website", "industry")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def iso_timestamp(value: datetime) -> str:
    """ISO-8601 with millisecond precision and a ``Z`` suffix."""
    return value.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class RequestLabel(str, Enum):
    """Which handler a request is routed to."""

    LIST = "LIST"
    DETAIL = "DETAIL"


class RequestState(str, Enum):
    """Lifecycle of a request. Transitions are driven by handler outcomes only."""

    PENDING = "pending"
    IN_FLIGHT = "in_flight"
    BLOCKED_RETRY = "blocked_retry"
    FAILED = "failed"
    SUCCEEDED = "succeeded"


@dataclass
class CrawlRequest:
    """A page to fetch."""

    url: str
    label: RequestLabel = RequestLabel.LIST
    user_data: dict[str, Any] = field(default_factory=dict)
    attempt_count: int = 0
    state: RequestState = RequestState.PENDING
    errors: list[str] = field(default_factory=list)

    def __post_init__(self):
        self.url = absolute_url(self.url)
        self.label = RequestLabel(self.label)

    @property
    def unique_key(self) -> tuple[str, str]:
        """Dedup key: (canonical url, label)."""
        return canonical_url(self.url), self.label.value

    @property
    def is_login_step(self) -> bool:
        return bool(self.user_data.get("is_login_step"))


class SessionStatus(str, Enum):
    HEALTHY = "healthy"
    RETIRED = "retired"


@dataclass
class Session:
    """A rotating browser/network identity with bounded reuse."""

    id: str
    max_usage_count: int
    user_agent: str
    fingerprint: dict[str, Any] = field(default_factory=dict)
    proxy: Optional[ProxyInfo] = None
    cookies: list[dict] = field(default_factory=list)
    usage_count: int = 0
    status: SessionStatus = SessionStatus.HEALTHY
    created_at: datetime = field(default_factory=utc_now)

    @property
    def is_usable(self) -> bool:
        return self.status == SessionStatus.HEALTHY and self.usage_count < self.max_usage_count


@dataclass(frozen=True)
class ExtractedRecord:
    """A business listing extracted from a page."""

    id: str
    url: str
    fields: dict[str, Optional[str]]
    source_list: Optional[str] = None
    scraped_at: datetime = field(default_factory=utc_now)

    @classmethod
    def build(
        cls,
        url: str,
        fields: dict[str, Optional[str]],
        source_list: Optional[str] = None,
    ) -> "ExtractedRecord":
        """Create a record whose id is derived from the canonical URL."""
        normalized = {name: fields.get(name) for name in RECORD_FIELDS}
        for name, value in fields.items():
            normalized.setdefault(name, value)
        return cls(
            id=stable_id_from(url),
            url=url,
            fields=normalized,
            source_list=source_list,
        )

    def to_item(self) -> dict[str, Any]:
        """Primary dataset representation."""
        item: dict[str, Any] = {"id": self.id, "url": self.url}
        item.update(self.fields)
        if self.source_list:
            item["sourceList"] = self.source_list
        item["scrapedAt"] = iso_timestamp(self.scraped_at)
        return item

    def upsert_fields(self) -> dict[str, Any]:
        """Fields sent to the external store; unresolved (None) fields are left out."""
        return {key: value for key, value in self.to_item().items() if value is not None}


@dataclass(frozen=True)
class FailureRecord:
    """A request that failed terminally."""

    url: str
    kind: str
    message: str = ""
    scraped_at: datetime = field(default_factory=utc_now)

    def to_item(self) -> dict[str, Any]:
        return {
            "url": self.url,
            "error": "FAILED",
            "scrapedAt": iso_timestamp(self.scraped_at),
        }


@dataclass(frozen=True)
class ListItem:
    """An anchor discovered on a list page."""

    name: Optional[str]
    url: str
