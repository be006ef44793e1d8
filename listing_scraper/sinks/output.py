"""Dual-sink output policy.

Every record and failure is appended to the primary dataset. When external
sync is enabled, records are additionally upserted into the document store
by stable id. External failures are logged and counted, never raised, so
they can't abort a crawl.
"""

import logging
import time
from typing import Any, Optional, Union

from listing_scraper import metrics
from listing_scraper.crawl.errors import ExternalSinkError
from listing_scraper.crawl.models import ExtractedRecord, FailureRecord, iso_timestamp, utc_now
from listing_scraper.sinks.dataset import JsonlDataset
from listing_scraper.sinks.document_store import DocumentStore
from listing_scraper.sinks.key_value_store import KeyValueStore

logger = logging.getLogger(__name__)


class OutputSink:
    """Writes crawl output to the primary dataset and the optional external store."""

    def __init__(
        self,
        dataset: JsonlDataset,
        key_value_store: KeyValueStore,
        document_store: Optional[DocumentStore] = None,
        collection: str = "companies",
        snapshot_chars: int = 5000,
    ):
        self.dataset = dataset
        self.key_value_store = key_value_store
        self.document_store = document_store
        self.collection = collection
        self.snapshot_chars = snapshot_chars
        self.external_failures = 0
        self._last_snapshot_ms = 0

    @property
    def sync_enabled(self) -> bool:
        return self.document_store is not None

    async def append(self, entry: Union[ExtractedRecord, FailureRecord]) -> None:
        """Append a record or failure to the primary dataset."""
        await self.dataset.append(entry.to_item())
        metrics.record_output("failure" if isinstance(entry, FailureRecord) else "record")

    async def upsert_external(self, collection: str, doc_id: str, fields: dict[str, Any]) -> bool:
        """
        Merge ``fields`` into the external store.

        Returns:
            True on success, False when sync is disabled or the write failed
        """
        if self.document_store is None:
            return False
        try:
            await self.document_store.upsert(collection, doc_id, fields)
        except ExternalSinkError as e:
            self.external_failures += 1
            metrics.record_external_upsert(success=False)
            logger.error(f"External upsert failed for {collection}/{doc_id}: {e}")
            return False
        except Exception as e:
            self.external_failures += 1
            metrics.record_external_upsert(success=False)
            logger.exception(f"Unexpected external store error for {collection}/{doc_id}: {e}")
            return False

        metrics.record_external_upsert(success=True)
        logger.debug(f"Upserted {collection}/{doc_id}")
        return True

    async def emit(self, record: ExtractedRecord) -> None:
        """Append a record, then upsert it by id when sync is enabled."""
        await self.append(record)
        if self.sync_enabled:
            await self.upsert_external(self.collection, record.id, record.upsert_fields())

    async def emit_failure(self, failure: FailureRecord) -> None:
        await self.append(failure)

    async def save_debug_snapshot(self, url: str, excerpt: str) -> Optional[str]:
        """
        Store a diagnostic snapshot of an empty list page under ``DEBUG_<epoch-ms>``.

        Best-effort: a failed write is logged and None returned.
        """
        now_ms = int(time.time() * 1000)
        # Keys must stay unique when two pages come back empty in the same millisecond
        now_ms = max(now_ms, self._last_snapshot_ms + 1)
        self._last_snapshot_ms = now_ms
        key = f"DEBUG_{now_ms}"
        try:
            await self.key_value_store.put(key, {
                "url": url,
                "savedAt": iso_timestamp(utc_now()),
                "html": (excerpt or "")[: self.snapshot_chars],
            })
        except (OSError, ValueError) as e:
            logger.warning(f"Could not save debug snapshot for {url}: {e}")
            return None
        metrics.record_debug_snapshot()
        logger.info(f"Saved debug snapshot {key} for {url}")
        return key

    async def close(self) -> None:
        if self.document_store is not None:
            await self.document_store.close()
