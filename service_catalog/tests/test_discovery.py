"""
Unit tests for the incremental discovery walk.
"""

import pytest
from datetime import datetime, timezone

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from service_catalog.app.caching.keys import CacheKeys
from service_catalog.app.models import EPOCH
from service_catalog.app.warming.discovery import DiscoveryWalker
from shared.config import CatalogCacheConfig
from shared.errors import OriginError
from shared.test_helpers import CatalogDataFactory, FakeOrigin, InMemoryKVStore


NOW = datetime(2025, 1, 1, tzinfo=timezone.utc)


def feed_items(start, count, modified="2024-06-01T00:00:00.000Z"):
    return [CatalogDataFactory.create_listing_item(f"movie-{n}", n, modified) for n in range(start, start + count)]


def feed(sizes, total_pages=True):
    pages = {}
    start = 0
    for page, size in enumerate(sizes, start=1):
        total = len(sizes) if total_pages else None
        pages[page] = CatalogDataFactory.create_feed_page(feed_items(start, size), page, total)
        start += size
    return pages


class TestDiscoveryWalker:
    """Test cases for DiscoveryWalker."""

    @pytest.fixture
    def config(self):
        return CatalogCacheConfig(discovery_page_delay_seconds=0)

    @pytest.fixture
    def store(self):
        return InMemoryKVStore()

    @pytest.fixture
    def keys(self, config):
        return CacheKeys(config.key_prefix)

    def make_walker(self, store, origin, config, clock=lambda: NOW):
        return DiscoveryWalker(store, origin, config, clock=clock)

    @pytest.mark.asyncio
    async def test_walks_until_reported_total(self, store, config, keys):
        origin = FakeOrigin(feed_pages=feed([100, 100, 40]))
        walker = self.make_walker(store, origin, config)

        result = await walker.walk()

        assert len(result.slugs) == 240
        assert origin.count("feed") == 3
        assert [call[2] for call in origin.calls] == [100, 100, 100]
        assert result.complete
        assert result.watermark_after == NOW
        assert store.raw(keys.watermark) == NOW.isoformat()

    @pytest.mark.asyncio
    async def test_unknown_total_ends_on_short_page(self, store, config):
        origin = FakeOrigin(feed_pages=feed([100, 100, 40], total_pages=False))
        walker = self.make_walker(store, origin, config)

        slugs = await walker.discover_changed_slugs()

        assert len(slugs) == 240
        assert origin.count("feed") == 3

    @pytest.mark.asyncio
    async def test_unknown_total_ends_on_empty_page(self, store, config):
        origin = FakeOrigin(feed_pages=feed([100, 100], total_pages=False))
        walker = self.make_walker(store, origin, config)

        result = await walker.walk()

        assert len(result.slugs) == 200
        assert origin.count("feed") == 3
        assert result.complete

    @pytest.mark.asyncio
    async def test_filters_entries_at_or_before_watermark(self, store, config, keys):
        await store.set(keys.watermark, "2024-06-01T00:00:00+00:00")
        items = [
            CatalogDataFactory.create_listing_item("old", 1, "2024-05-01T00:00:00.000Z"),
            CatalogDataFactory.create_listing_item("same", 2, "2024-06-01T00:00:00.000Z"),
            CatalogDataFactory.create_listing_item("new", 3, "2024-06-02T10:00:00.000Z"),
            {"_id": "x", "slug": "undated", "name": "No timestamp"},
        ]
        origin = FakeOrigin(feed_pages={1: CatalogDataFactory.create_feed_page(items, 1, 1)})
        walker = self.make_walker(store, origin, config)

        result = await walker.walk()

        assert result.slugs == {"new"}

    @pytest.mark.asyncio
    async def test_watermark_never_moves_backwards(self, store, config, keys):
        future = datetime(2030, 1, 1, tzinfo=timezone.utc)
        await store.set(keys.watermark, future.isoformat())
        origin = FakeOrigin(feed_pages=feed([3]))
        walker = self.make_walker(store, origin, config)

        result = await walker.walk()

        assert result.complete
        assert result.watermark_before == future
        assert result.watermark_after == future
        assert await walker.read_watermark() == future

    @pytest.mark.asyncio
    async def test_duplicate_slugs_across_pages_are_collapsed(self, store, config):
        duplicate = CatalogDataFactory.create_listing_item("repeat", 1)
        pages = {
            1: CatalogDataFactory.create_feed_page([duplicate, CatalogDataFactory.create_listing_item("a", 2)], 1, 2),
            2: CatalogDataFactory.create_feed_page([duplicate], 2, 2),
        }
        origin = FakeOrigin(feed_pages=pages)
        walker = self.make_walker(store, origin, config)

        result = await walker.walk()

        assert result.slugs == {"repeat", "a"}

    @pytest.mark.asyncio
    async def test_failed_page_keeps_partial_results_and_watermark(self, store, config, keys):
        pages = feed([100, 100, 40])
        pages[2] = OriginError("Unexpected status 502")
        origin = FakeOrigin(feed_pages=pages)
        walker = self.make_walker(store, origin, config)

        result = await walker.walk()

        assert len(result.slugs) == 100
        assert not result.complete
        assert result.watermark_after == EPOCH
        assert store.raw(keys.watermark) is None

    @pytest.mark.asyncio
    async def test_rerun_reuses_cached_pages(self, store, config):
        pages = feed([100, 100, 40])
        healthy_page_two = pages[2]
        pages[2] = OriginError("Unexpected status 502")
        origin = FakeOrigin(feed_pages=pages)
        walker = self.make_walker(store, origin, config)
        await walker.walk()

        origin.feed_pages[2] = healthy_page_two
        origin.calls.clear()
        result = await walker.walk()

        assert [call[1] for call in origin.calls] == [2, 3]
        assert len(result.slugs) == 240
        assert result.complete

    @pytest.mark.asyncio
    async def test_invalid_payload_stops_walk(self, store, config):
        origin = FakeOrigin(feed_pages={1: {"status": False, "msg": "maintenance"}})
        walker = self.make_walker(store, origin, config)

        result = await walker.walk()

        assert result.slugs == set()
        assert not result.complete

    @pytest.mark.asyncio
    async def test_empty_feed_is_complete(self, store, config):
        origin = FakeOrigin()
        walker = self.make_walker(store, origin, config)

        result = await walker.walk()

        assert result.complete
        assert result.slugs == set()
        assert origin.count("feed") == 1

    @pytest.mark.asyncio
    async def test_change_between_failed_walk_and_resume_is_found_later(self, store, config):
        now = [datetime(2025, 1, 1, tzinfo=timezone.utc)]
        pages = feed([100, 100])
        healthy_page_two = pages[2]
        pages[2] = OriginError("Unexpected status 502")
        origin = FakeOrigin(feed_pages=pages)
        walker = self.make_walker(store, origin, config, clock=lambda: now[0])

        first = await walker.walk()
        assert not first.complete

        origin.feed_pages[1]["items"][5]["modified"]["time"] = "2025-01-02T00:00:00.000Z"
        origin.feed_pages[2] = healthy_page_two
        now[0] = datetime(2025, 1, 3, tzinfo=timezone.utc)
        resumed = await walker.walk()

        assert resumed.complete
        assert resumed.watermark_after == datetime(2025, 1, 1, tzinfo=timezone.utc)

        now[0] = datetime(2025, 1, 4, tzinfo=timezone.utc)
        latest = await walker.walk()

        assert latest.slugs == {"movie-5"}
        assert latest.watermark_after == datetime(2025, 1, 4, tzinfo=timezone.utc)

    @pytest.mark.asyncio
    async def test_cached_page_records_fetch_time(self, store, config, keys):
        origin = FakeOrigin(feed_pages=feed([3]))
        walker = self.make_walker(store, origin, config)

        await walker.walk()

        cached = store.raw(keys.discovery_page(EPOCH.isoformat(), 1))
        assert cached["fetched_at"] == NOW.isoformat()
        assert cached["item_count"] == 3

    @pytest.mark.asyncio
    async def test_reused_page_without_fetch_time_holds_watermark(self, store, config, keys):
        await store.set_with_expiry(
            keys.discovery_page(EPOCH.isoformat(), 1),
            {"slugs": ["legacy"], "item_count": 1, "total_pages": 1},
            60,
        )
        walker = self.make_walker(store, FakeOrigin(), config)

        result = await walker.walk()

        assert result.complete
        assert result.slugs == {"legacy"}
        assert result.watermark_after == EPOCH
