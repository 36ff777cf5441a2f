"""
Tests for service wiring and the warming entry point.
"""

import pytest
from unittest.mock import AsyncMock, patch

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from service_catalog.app import main as entry
from service_catalog.app.caching.keys import CacheKeys
from service_catalog.app.main import CatalogCacheService, run_warming
from shared.config import CatalogCacheConfig
from shared.errors import VerificationError
from shared.metrics import MetricsCollector
from shared.test_helpers import CatalogDataFactory, FakeOrigin, InMemoryKVStore


def origin_with(slugs, broken=()):
    items = [CatalogDataFactory.create_listing_item(slug, n) for n, slug in enumerate(slugs, start=1)]
    details = {
        slug: CatalogDataFactory.create_detail_payload(slug, n)
        for n, slug in enumerate(slugs, start=1)
        if slug not in broken
    }
    return FakeOrigin(details=details, feed_pages={1: CatalogDataFactory.create_feed_page(items, 1, 1)})


class TestCatalogCacheService:
    """Test cases for the warming entry point."""

    @pytest.fixture
    def config(self):
        return CatalogCacheConfig(
            retry_base_delay_seconds=0,
            discovery_page_delay_seconds=0,
            warm_batch_delay_seconds=0,
        )

    @pytest.fixture
    def store(self):
        return InMemoryKVStore()

    @pytest.fixture
    def metrics(self):
        return MetricsCollector("catalog-test")

    @pytest.mark.asyncio
    async def test_warm_end_to_end(self, store, config, metrics):
        origin = origin_with(["a", "b", "c"])
        service = CatalogCacheService(config, store=store, origin=origin, metrics=metrics)

        result = await service.warm()

        keys = CacheKeys(config.key_prefix)
        assert result.warmed == 3
        assert all(store.raw(keys.detail(slug)) for slug in ["a", "b", "c"])
        assert store.raw(keys.watermark) is not None

    @pytest.mark.asyncio
    async def test_warm_raises_when_verification_fails(self, store, config, metrics):
        origin = origin_with(["a", "b"], broken={"b"})
        service = CatalogCacheService(config, store=store, origin=origin, metrics=metrics)

        with pytest.raises(VerificationError) as exc_info:
            await service.warm()

        assert exc_info.value.details["failed_slugs"] == ["b"]

    @pytest.mark.asyncio
    async def test_run_warming_success_closes_clients(self, store, config, metrics):
        origin = origin_with(["a"])

        code = await run_warming(config, store=store, origin=origin, metrics=metrics)

        assert code == 0
        assert store.closed
        assert origin.closed

    @pytest.mark.asyncio
    async def test_run_warming_verification_failure(self, store, config, metrics):
        origin = origin_with(["a"], broken={"a"})

        code = await run_warming(config, store=store, origin=origin, metrics=metrics)

        assert code == 1
        assert store.closed

    @pytest.mark.asyncio
    async def test_run_warming_unexpected_error(self, store, config, metrics):
        origin = origin_with([])
        with patch.object(CatalogCacheService, "warm", new=AsyncMock(side_effect=RuntimeError("boom"))):
            code = await run_warming(config, store=store, origin=origin, metrics=metrics)

        assert code == 1
        assert store.closed

    @pytest.mark.asyncio
    async def test_empty_run_succeeds(self, store, config, metrics):
        code = await run_warming(config, store=store, origin=FakeOrigin(), metrics=metrics)

        assert code == 0

    def test_lookup_shares_clients(self, store, config, metrics):
        origin = FakeOrigin()
        service = CatalogCacheService(config, store=store, origin=origin, metrics=metrics)

        assert service.lookup.store is store
        assert service.lookup.writer is service.writer
        assert service.list_cache.origin is origin

    def test_main_maps_interrupt_to_exit_code(self):
        def interrupted(coro):
            coro.close()
            raise KeyboardInterrupt

        with patch.object(entry, "configure_logging"), \
             patch.object(entry.asyncio, "run", side_effect=interrupted):
            assert entry.main() == 130
