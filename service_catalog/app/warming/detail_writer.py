"""
Per-entry detail fetch, validation and storage.
"""

import asyncio
from datetime import datetime, timezone
from typing import Any, Optional

from shared.config import CatalogCacheConfig
from shared.errors import OriginError, RecordValidationError, StoreError
from shared.logging import get_logger
from shared.retry import RetryConfig, RetryError, call_with_retry

from ..caching.keys import CacheKeys
from ..models import (
    DetailRecord,
    StreamId,
    StreamRecord,
    derive_stream_records,
    is_complete_detail,
    is_valid_slug,
    validate_detail_payload,
)


class DetailCacheWriter:
    """Fetches, validates and stores one entry's detail and its stream records.

    Ongoing items are always re-fetched; anything else is served from cache
    while its key lives. Transport, validation and store-write failures are
    retried with linear backoff, after which ``None`` is returned.
    """

    def __init__(
        self,
        store,
        origin,
        config: CatalogCacheConfig,
        *,
        keys: Optional[CacheKeys] = None,
        metrics=None,
    ):
        self.store = store
        self.origin = origin
        self.config = config
        self.keys = keys or CacheKeys(config.key_prefix)
        self.metrics = metrics
        self.logger = get_logger("catalog.detail_writer")
        self.retry_config = RetryConfig.linear(
            max_attempts=config.retry_attempts,
            base_delay=config.retry_base_delay_seconds,
        )

    def ttl_for(self, record: DetailRecord) -> int:
        """Short TTL for ongoing items, long otherwise."""
        return self.config.ttl_ongoing_seconds if record.is_ongoing else self.config.ttl_detail_seconds

    async def cache_detail(
        self,
        slug: Any,
        *,
        force_refresh: bool = False,
        retries: Optional[int] = None,
    ) -> Optional[DetailRecord]:
        """Warm one slug and return its record, or None if it could not be warmed."""
        if not is_valid_slug(slug):
            self.logger.error("Invalid slug", slug=slug)
            self._record("invalid")
            return None

        if not force_refresh:
            cached = await self.read_cached(slug)
            if cached is not None and not cached.is_ongoing:
                self.logger.debug("Detail cache hit", slug=slug)
                self._record("hit")
                return cached

        retry_config = self.retry_config
        if retries is not None:
            retry_config = RetryConfig.linear(max_attempts=retries, base_delay=self.config.retry_base_delay_seconds)

        try:
            record = await call_with_retry(
                self._fetch_and_store,
                slug,
                exceptions=(OriginError, RecordValidationError, StoreError),
                config=retry_config,
                operation="cache_detail",
            )
        except RetryError as exc:
            self.logger.error(
                "Max retries for detail",
                slug=slug,
                attempts=exc.attempts,
                error=str(exc.last_exception),
            )
            self._record("failed")
            return None

        self._record("stored")
        return record

    async def read_cached(self, slug: str) -> Optional[DetailRecord]:
        """Return the cached record when present and complete."""
        cached = await self.store.get(self.keys.detail(slug))
        return self.parse_cached(cached)

    @staticmethod
    def parse_cached(cached: Any) -> Optional[DetailRecord]:
        if not is_complete_detail(cached):
            return None
        try:
            return DetailRecord.model_validate(cached)
        except ValueError:
            return None

    async def _fetch_and_store(self, slug: str) -> DetailRecord:
        payload = await self.origin.get_detail(slug)
        try:
            record = validate_detail_payload(payload)
        except RecordValidationError as exc:
            self.logger.error("Invalid data for detail", slug=slug, details=exc.details)
            raise

        record.fetched_at = datetime.now(timezone.utc)
        ttl = self.ttl_for(record)
        cache_key = self.keys.detail(slug)

        if not await self.store.set_with_expiry(cache_key, record.to_cache(), ttl):
            raise StoreError("Detail write failed", {"key": cache_key})
        await self.store.set_with_expiry(self.keys.id_to_slug(record.id), slug, ttl)
        await self.store.add_member(self.keys.membership_set, cache_key)
        self.logger.info("Cached detail", slug=slug, ttl=ttl, ongoing=record.is_ongoing)

        await self.cache_streams(record)
        return record

    async def cache_streams(self, record: DetailRecord) -> int:
        """Store every derived stream record; returns how many were written.

        All writes are awaited, so once this returns the parent's streams are
        in the store (or logged as failed).
        """
        ttl = self.ttl_for(record)
        derived = derive_stream_records(record)
        if not derived:
            return 0

        results = await asyncio.gather(
            *(self.store_stream(stream_id, stream, ttl) for stream_id, stream in derived.items())
        )
        stored = sum(1 for ok in results if ok)
        self.logger.debug("Cached stream details", detail_id=record.id, streams=stored, derived=len(derived))
        return stored

    async def store_stream(self, stream_id: StreamId, stream: StreamRecord, ttl: int) -> bool:
        cache_key = self.keys.stream(stream_id)
        if not await self.store.set_with_expiry(cache_key, stream.model_dump(mode="json"), ttl):
            self.logger.error("Stream detail not cached", stream_id=str(stream_id))
            return False
        await self.store.add_member(self.keys.membership_set, cache_key)
        return True

    def _record(self, result: str):
        if self.metrics:
            self.metrics.increment_counter("catalog_detail_warm_total", result=result)
