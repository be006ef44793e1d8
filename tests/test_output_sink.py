"""Tests for the dual-sink output policy."""

import pytest

from listing_scraper.crawl.models import ExtractedRecord, FailureRecord
from listing_scraper.sinks.dataset import JsonlDataset
from listing_scraper.sinks.key_value_store import KeyValueStore
from listing_scraper.sinks.output import OutputSink

from tests.fakes import InMemoryDocumentStore

URL = "https://dir.example/company/acme"


def make_sink(tmp_path, store=None, snapshot_chars=5000) -> OutputSink:
    return OutputSink(
        dataset=JsonlDataset(tmp_path, "default"),
        key_value_store=KeyValueStore(tmp_path, "default"),
        document_store=store,
        collection="companies",
        snapshot_chars=snapshot_chars,
    )


def make_record(**fields) -> ExtractedRecord:
    values = {"name": "Acme Corp", "address": None, "phone": "555-0100", "website": None, "industry": None}
    values.update(fields)
    return ExtractedRecord.build(URL, values, source_list="https://dir.example/list")


class TestPrimaryDataset:
    @pytest.mark.asyncio
    async def test_record_item_schema(self, tmp_path):
        sink = make_sink(tmp_path)

        await sink.emit(make_record())

        items = list(sink.dataset.iter_items())
        assert len(items) == 1
        item = items[0]
        assert list(item) == ["id", "url", "name", "address", "phone", "website", "industry", "sourceList", "scrapedAt"]
        assert item["name"] == "Acme Corp"
        assert item["address"] is None
        assert item["scrapedAt"].endswith("Z")

    @pytest.mark.asyncio
    async def test_failure_item_schema(self, tmp_path):
        sink = make_sink(tmp_path)

        await sink.append(FailureRecord(url=URL, kind="blocked", message="Blocked"))

        [item] = list(sink.dataset.iter_items())
        assert set(item) == {"url", "error", "scrapedAt"}
        assert item["error"] == "FAILED"

    @pytest.mark.asyncio
    async def test_primary_store_is_append_only(self, tmp_path):
        sink = make_sink(tmp_path)

        await sink.emit(make_record())
        await sink.emit(make_record())

        assert len(list(sink.dataset.iter_items())) == 2
        assert sink.dataset.appended_count == 2


class TestExternalUpsert:
    @pytest.mark.asyncio
    async def test_upsert_is_idempotent(self, tmp_path):
        once = InMemoryDocumentStore()
        twice = InMemoryDocumentStore()
        record = make_record()

        await make_sink(tmp_path / "a", once).emit(record)
        sink = make_sink(tmp_path / "b", twice)
        await sink.emit(record)
        await sink.emit(record)

        assert once.docs == twice.docs
        assert list(twice.docs) == [("companies", record.id)]

    @pytest.mark.asyncio
    async def test_unresolved_fields_do_not_clobber_stored_values(self, tmp_path):
        store = InMemoryDocumentStore()
        sink = make_sink(tmp_path, store)

        await sink.emit(make_record(website="https://acme.example"))
        await sink.emit(make_record(website=None, industry="Logistics"))

        doc = store.docs[("companies", make_record().id)]
        assert doc["website"] == "https://acme.example"
        assert doc["industry"] == "Logistics"

    @pytest.mark.asyncio
    async def test_failed_upsert_is_isolated(self, tmp_path):
        store = InMemoryDocumentStore(fail=True)
        sink = make_sink(tmp_path, store)

        await sink.emit(make_record())

        assert len(list(sink.dataset.iter_items())) == 1
        assert sink.external_failures == 1
        assert store.calls == 1

    @pytest.mark.asyncio
    async def test_sync_disabled_skips_store(self, tmp_path):
        sink = make_sink(tmp_path)

        assert not sink.sync_enabled
        assert await sink.upsert_external("companies", "abc", {"name": "x"}) is False


class TestDebugSnapshot:
    @pytest.mark.asyncio
    async def test_snapshot_written_and_truncated(self, tmp_path):
        sink = make_sink(tmp_path, snapshot_chars=10)

        key = await sink.save_debug_snapshot("https://dir.example/list", "x" * 50)

        assert key.startswith("DEBUG_")
        saved = await sink.key_value_store.get(key)
        assert saved["url"] == "https://dir.example/list"
        assert saved["html"] == "x" * 10

    @pytest.mark.asyncio
    async def test_snapshot_keys_are_unique(self, tmp_path):
        sink = make_sink(tmp_path)

        first = await sink.save_debug_snapshot("https://dir.example/a", "")
        second = await sink.save_debug_snapshot("https://dir.example/b", "")

        assert first != second
        assert sink.key_value_store.keys() == sorted([first, second])

    @pytest.mark.asyncio
    async def test_snapshot_failure_is_not_raised(self, tmp_path):
        sink = make_sink(tmp_path)
        sink.key_value_store.base_path = tmp_path / "missing" / "dir"

        assert await sink.save_debug_snapshot("https://dir.example/a", "<p></p>") is None
