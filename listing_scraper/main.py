"""Command-line entry point: ``python -m listing_scraper.main --input INPUT.json``."""

import argparse
import asyncio
import logging
import sys
import uuid
from pathlib import Path
from typing import Optional

from listing_scraper import metrics
from listing_scraper.config import CrawlerType, CrawlInput, Settings, load_crawl_input, settings
from listing_scraper.crawl.block_detector import BlockDetector
from listing_scraper.crawl.engine import CrawlStats, ListingCrawler
from listing_scraper.crawl.errors import FatalInitError
from listing_scraper.crawl.fingerprints import FingerprintGenerator
from listing_scraper.crawl.frontier import Frontier
from listing_scraper.crawl.models import CrawlRequest
from listing_scraper.crawl.paginator import Paginator
from listing_scraper.crawl.proxy import ProxyConfiguration
from listing_scraper.crawl.session_pool import SessionPool
from listing_scraper.crawl.throttle import ThrottleController
from listing_scraper.extract.detail import DetailExtractor
from listing_scraper.extract.listing import ListExtractor
from listing_scraper.fetchers.base import PageSurface
from listing_scraper.fetchers.browser import BrowserSurface
from listing_scraper.fetchers.http import HttpSurface
from listing_scraper.logging_config import get_logger, setup_logging
from listing_scraper.sinks.dataset import JsonlDataset
from listing_scraper.sinks.document_store import DocumentStore, create_document_store
from listing_scraper.sinks.key_value_store import KeyValueStore
from listing_scraper.sinks.output import OutputSink

logger = logging.getLogger(__name__)

DEFAULT_INPUT_PATH = Path("storage") / "key_value_stores" / "default" / "INPUT.json"


def build_start_requests(crawl_input: CrawlInput) -> list[CrawlRequest]:
    return [
        CrawlRequest(url=start.url, label=start.label, user_data=dict(start.user_data))
        for start in crawl_input.start_urls
    ]


def create_surface(crawl_input: CrawlInput, app_settings: Settings) -> PageSurface:
    if crawl_input.crawler_type == CrawlerType.HTTP:
        if crawl_input.login.is_active:
            raise FatalInitError("The login step needs the browser crawler (crawlerType: browser)")
        return HttpSurface(request_timeout=app_settings.http_request_timeout_secs)
    return BrowserSurface()


def build_crawler(
    crawl_input: CrawlInput,
    app_settings: Settings,
    surface: Optional[PageSurface] = None,
    document_store: Optional[DocumentStore] = None,
) -> ListingCrawler:
    """
    Wire up every crawl component for one run.

    The external document store is created here (once) and injected into the
    output sink; tests pass their own surface and store.

    Raises:
        FatalInitError: If proxy or external sync credentials are missing
    """
    proxy_configuration = ProxyConfiguration.create(
        use_proxy=crawl_input.use_proxy,
        apify_password=app_settings.apify_proxy_password,
        groups=crawl_input.proxy_groups,
        country_code=crawl_input.proxy_country_code,
        hostname=app_settings.apify_proxy_hostname,
        port=app_settings.apify_proxy_port,
        proxy_urls=app_settings.proxy_urls,
    )

    if crawl_input.firebase_enabled and document_store is None:
        document_store = create_document_store(
            app_settings.external_store_backend,
            firebase_service_account_base64=app_settings.firebase_service_account_base64,
            redis_url=app_settings.redis_url,
        )
    elif not crawl_input.firebase_enabled:
        document_store = None

    collection = app_settings.firebase_collection or crawl_input.firebase_collection
    storage_dir = Path(app_settings.storage_dir)
    output = OutputSink(
        dataset=JsonlDataset(storage_dir, app_settings.dataset_name),
        key_value_store=KeyValueStore(storage_dir, app_settings.key_value_store_name),
        document_store=document_store,
        collection=collection,
        snapshot_chars=app_settings.debug_snapshot_chars,
    )
    if document_store is not None:
        logger.info(f"External sync enabled ({document_store.backend}, collection {collection!r})")

    throttle = ThrottleController(
        max_concurrency=crawl_input.max_concurrency,
        max_requests_per_minute=crawl_input.max_requests_per_minute,
        max_requests_per_crawl=crawl_input.max_requests_per_crawl,
    )
    session_pool = SessionPool(
        max_pool_size=app_settings.session_pool_size or crawl_input.max_concurrency,
        max_usage_count=app_settings.session_max_usage_count,
        fingerprints=FingerprintGenerator(),
        proxy_configuration=proxy_configuration,
    )

    return ListingCrawler(
        surface=surface or create_surface(crawl_input, app_settings),
        session_pool=session_pool,
        frontier=Frontier(throttle.budget),
        throttle=throttle,
        output=output,
        block_detector=BlockDetector(app_settings.block_phrases, app_settings.block_statuses),
        list_extractor=ListExtractor(crawl_input.list_selectors),
        detail_extractor=DetailExtractor(overrides=crawl_input.selectors.overrides()),
        paginator=Paginator(crawl_input.next_selectors),
        max_request_retries=crawl_input.max_request_retries,
        crawl_details=crawl_input.crawl_details,
        login=crawl_input.login,
        navigation_timeout=app_settings.navigation_timeout_secs,
        handler_timeout=app_settings.request_handler_timeout_secs,
    )


async def run_crawl(crawl_input: CrawlInput, app_settings: Settings = settings) -> CrawlStats:
    """Run one crawl and release its resources."""
    log = get_logger(__name__, run_id=uuid.uuid4().hex[:8], crawler_type=crawl_input.crawler_type.value)
    crawler = build_crawler(crawl_input, app_settings)
    start_requests = build_start_requests(crawl_input)
    if not start_requests:
        log.warning("No startUrls in input, nothing to crawl")

    log.info(
        f"Starting crawl: {len(start_requests)} start URLs, "
        f"maxRequestsPerCrawl={crawl_input.max_requests_per_crawl}, "
        f"maxConcurrency={crawl_input.max_concurrency}, "
        f"maxRequestsPerMinute={crawl_input.max_requests_per_minute}"
    )
    try:
        stats = await crawler.run(start_requests)
    finally:
        await crawler.surface.close()
        await crawler.output.close()

    log.info(f"Dataset written to {crawler.output.dataset.path}")
    return stats


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Crawl business listings from list/detail pages")
    parser.add_argument(
        "--input",
        type=Path,
        default=DEFAULT_INPUT_PATH,
        help=f"Path to the crawl input JSON (default: {DEFAULT_INPUT_PATH})",
    )
    args = parser.parse_args(argv)

    setup_logging()
    metrics.start_metrics_server(settings.metrics_port)

    try:
        crawl_input = load_crawl_input(args.input)
        asyncio.run(run_crawl(crawl_input, settings))
    except FatalInitError as e:
        logger.error(f"Fatal: {e}")
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted")
        return 130
    return 0


if __name__ == "__main__":
    sys.exit(main())
