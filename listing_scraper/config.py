"""Application configuration using Pydantic settings.

Two layers:
- ``Settings``: process-level knobs read from the environment / ``.env``.
- ``CrawlInput``: the per-run actor input (``INPUT.json``), camelCase keys.
"""

import json
from enum import Enum
from pathlib import Path
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel
from pydantic_settings import BaseSettings, SettingsConfigDict

from listing_scraper.crawl.errors import FatalInitError


class Settings(BaseSettings):
    """Application settings."""

    # App Settings
    log_level: str = "INFO"
    logs_dir: str = ""
    metrics_port: int = 0  # 0 disables the Prometheus HTTP endpoint

    # Local storage (Apify-style layout)
    storage_dir: str = "storage"
    dataset_name: str = "default"
    key_value_store_name: str = "default"

    # ==========================================================================
    # Request handling
    # ==========================================================================
    navigation_timeout_secs: float = 45.0
    request_handler_timeout_secs: float = 90.0
    http_request_timeout_secs: float = 25.0
    debug_snapshot_chars: int = 5000  # Body excerpt stored for empty list pages

    # Session Management
    session_pool_size: int = 0  # 0 = sized from max concurrency
    session_max_usage_count: int = 50

    # Block detection (lowercase substring match on collapsed page text)
    block_phrases: list[str] = [
        "access denied",
        "forbidden",
        "blocked",
        "verify you are a human",
        "just a moment",
    ]
    block_statuses: list[int] = [403]

    # ==========================================================================
    # Proxy Settings
    # ==========================================================================
    apify_proxy_password: str = ""
    apify_proxy_hostname: str = "proxy.apify.com"
    apify_proxy_port: int = 8000
    proxy_urls: list[str] = []  # Static proxies, rotated round-robin

    # ==========================================================================
    # External document store
    # ==========================================================================
    external_store_backend: str = "firestore"  # "firestore" or "redis"
    firebase_service_account_base64: str = ""
    firebase_collection: str = ""  # Overrides the input collection when set
    redis_url: str = "redis://localhost:6379/0"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


settings = Settings()


class CrawlerType(str, Enum):
    """Page automation backend."""

    BROWSER = "browser"
    HTTP = "http"


class _InputModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class StartUrl(_InputModel):
    """A seed request. Plain strings are accepted and become LIST seeds."""

    url: str
    label: str = "LIST"
    user_data: dict[str, Any] = Field(default_factory=dict)

    @field_validator("label")
    @classmethod
    def _upper_label(cls, value: str) -> str:
        value = value.upper()
        if value not in ("LIST", "DETAIL"):
            raise ValueError(f"unknown label {value!r}, expected LIST or DETAIL")
        return value


class FieldSelectors(_InputModel):
    """Per-field CSS overrides for detail pages (tried before the defaults)."""

    name: Optional[str] = None
    address: Optional[str] = None
    phone: Optional[str] = None
    website: Optional[str] = None
    industry: Optional[str] = None

    def overrides(self) -> dict[str, str]:
        return {k: v for k, v in self.model_dump().items() if v}


class LoginStep(_InputModel):
    """Optional login flow, run once before the other requests."""

    enabled: bool = False
    login_url: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None
    username_selector: str = "input[name=email]"
    password_selector: str = "input[type=password]"
    submit_selector: str = "button[type=submit]"

    @property
    def is_active(self) -> bool:
        return self.enabled and bool(self.login_url)


class CrawlInput(_InputModel):
    """Actor input for one crawl run."""

    start_urls: list[StartUrl] = Field(default_factory=list)

    max_requests_per_crawl: int = Field(default=50, ge=1)
    max_concurrency: int = Field(default=5, ge=1)
    max_requests_per_minute: int = Field(default=60, ge=1)
    max_request_retries: int = Field(default=3, ge=0)

    use_proxy: bool = False
    proxy_groups: list[str] = Field(default_factory=list)
    proxy_country_code: Optional[str] = None

    crawler_type: CrawlerType = CrawlerType.BROWSER
    crawl_details: bool = True

    selectors: FieldSelectors = Field(default_factory=FieldSelectors)
    list_selectors: list[str] = Field(default_factory=list)
    next_selectors: list[str] = Field(default_factory=list)

    firebase_enabled: bool = Field(
        default=False,
        validation_alias=AliasChoices("firebaseEnabled", "externalSyncEnabled", "firebase_enabled"),
    )
    firebase_collection: str = "companies"

    login: LoginStep = Field(default_factory=LoginStep)

    @field_validator("start_urls", mode="before")
    @classmethod
    def _coerce_start_urls(cls, value: Any) -> Any:
        if value is None:
            return []
        return [{"url": item} if isinstance(item, str) else item for item in value]


def load_crawl_input(path: str | Path) -> CrawlInput:
    """Read and validate an ``INPUT.json`` file. A missing file yields defaults."""
    input_path = Path(path)
    if not input_path.exists():
        return CrawlInput()
    try:
        with open(input_path, "r", encoding="utf-8") as f:
            raw = json.load(f)
        return CrawlInput.model_validate(raw or {})
    except (json.JSONDecodeError, ValidationError) as e:
        raise FatalInitError(f"Invalid crawl input {input_path}: {e}") from e
