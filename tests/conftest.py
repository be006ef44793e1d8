"""Shared pytest fixtures."""

from typing import Optional

import pytest

from listing_scraper.config import CrawlInput, Settings
from listing_scraper.fetchers.base import PageSurface
from listing_scraper.main import build_crawler
from listing_scraper.sinks.document_store import DocumentStore


@pytest.fixture
def make_crawler(tmp_path):
    """Factory building a fully wired crawler over a fake surface."""

    def _make(surface: PageSurface, document_store: Optional[DocumentStore] = None, settings_overrides=None, **input_overrides):
        raw = {
            "maxConcurrency": 1,
            "maxRequestsPerMinute": 10_000,
            "maxRequestsPerCrawl": 50,
            "maxRequestRetries": 3,
            "crawlDetails": False,
        }
        raw.update(input_overrides)
        crawl_input = CrawlInput.model_validate(raw)
        setting_values = {
            "storage_dir": str(tmp_path / "storage"),
            "navigation_timeout_secs": 5,
            "request_handler_timeout_secs": 5,
        }
        setting_values.update(settings_overrides or {})
        app_settings = Settings(**setting_values)
        return build_crawler(crawl_input, app_settings, surface=surface, document_store=document_store)

    return _make
