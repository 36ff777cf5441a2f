"""
On-demand detail, stream and slug-resolution lookups.
"""

import asyncio
import re
from typing import Any, List, Optional, Sequence

from shared.errors import MalformedInputError
from shared.logging import get_logger

from ..caching.keys import CacheKeys
from ..caching.list_cache import ListCache
from ..models import (
    DetailRecord,
    StreamId,
    StreamRecord,
    build_stream_record,
    is_valid_slug,
)
from ..warming.detail_writer import DetailCacheWriter


DETAIL_ID_PATTERN = re.compile(r"^[0-9a-f]{32}$")


class LookupService:
    """Cache-first reads that fall back to the detail writer on a miss.

    Keys in the membership set were written by the warming path and are
    served as-is; other cached records are re-checked before use. Lookups
    never raise on bad input or origin failure, they return None.
    """

    def __init__(
        self,
        store,
        writer: DetailCacheWriter,
        list_cache: ListCache,
        *,
        keys: Optional[CacheKeys] = None,
        metrics=None,
    ):
        self.store = store
        self.writer = writer
        self.list_cache = list_cache
        self.keys = keys or writer.keys
        self.metrics = metrics
        self.logger = get_logger("catalog.lookup")

    async def get_detail(self, slug: Any, force_refresh: bool = False) -> Optional[DetailRecord]:
        if not is_valid_slug(slug):
            self.logger.error("Invalid slug", slug=slug)
            return None

        if not force_refresh:
            cache_key = self.keys.detail(slug)
            trusted = await self.store.is_member(self.keys.membership_set, cache_key)
            cached = await self.store.get(cache_key)
            record = self._load_detail(cached, trusted)
            if record is not None:
                self._record_lookup("detail", "hit")
                self.logger.debug("Detail served from cache", slug=slug, precached=trusted)
                return record

        self._record_lookup("detail", "miss")
        return await self.writer.cache_detail(slug, force_refresh=force_refresh)

    async def get_multiple_details(self, slugs: Sequence[Any]) -> List[Optional[DetailRecord]]:
        """Batch read via multi-get, warming each miss individually.

        Misses are fetched concurrently with no cap of their own.
        """
        slugs = list(slugs)
        valid = [index for index, slug in enumerate(slugs) if is_valid_slug(slug)]
        details: List[Optional[DetailRecord]] = [None] * len(slugs)

        cached = await self.store.mget([self.keys.detail(slugs[index]) for index in valid])
        missing = []
        for index, payload in zip(valid, cached):
            record = DetailCacheWriter.parse_cached(payload)
            if record is not None:
                details[index] = record
            else:
                missing.append(index)

        self.logger.debug("Multi-detail lookup", requested=len(slugs), hits=len(valid) - len(missing), misses=len(missing))
        if missing:
            fetched = await asyncio.gather(*(self.writer.cache_detail(slugs[index]) for index in missing))
            for index, record in zip(missing, fetched):
                details[index] = record
        return details

    async def get_stream(self, slug: Any, stream_id: Any, detail_id: Optional[str] = None) -> Optional[StreamRecord]:
        try:
            parsed = StreamId.parse(stream_id)
        except MalformedInputError as exc:
            self.logger.error("Invalid stream id", stream_id=stream_id, error=exc.message)
            return None

        if detail_id and detail_id != parsed.detail_id:
            self.logger.error("Stream id does not belong to detail", stream_id=stream_id, detail_id=detail_id)
            return None

        cache_key = self.keys.stream(parsed)
        trusted = await self.store.is_member(self.keys.membership_set, cache_key)
        stream = self._load_stream(await self.store.get(cache_key), parsed, trusted)
        if stream is not None:
            self._record_lookup("stream", "hit")
            self.logger.debug("Stream served from cache", stream_id=stream_id, precached=trusted)
            return stream

        self._record_lookup("stream", "miss")
        record = await self.writer.cache_detail(slug, force_refresh=True)
        if record is None:
            self.logger.error("No detail found for stream", slug=slug, stream_id=stream_id)
            return None

        stream = build_stream_record(record, parsed)
        if stream is None:
            self.logger.error("No episode found for stream id", slug=slug, stream_id=stream_id)
            return None

        # The forced refresh already stored every stream derived from the record.
        return stream

    async def resolve_slug_from_id(self, detail_id: Any) -> Optional[str]:
        if not isinstance(detail_id, str) or not DETAIL_ID_PATTERN.match(detail_id):
            return None

        cache_key = self.keys.id_to_slug(detail_id)
        cached = await self.store.get(cache_key)
        if isinstance(cached, str) and cached:
            self._record_lookup("id_to_slug", "hit")
            return cached

        self._record_lookup("id_to_slug", "miss")
        results = await self.list_cache.search(detail_id, limit=1)
        found = next((item for item in results.items if item.get("_id") == detail_id), None)
        slug = found.get("slug") if found else None
        if not is_valid_slug(slug):
            return None

        if not await self.store.set_with_expiry(cache_key, slug, self.writer.config.ttl_detail_seconds):
            self.logger.warning("Slug index not cached", detail_id=detail_id)
        return slug

    def _load_detail(self, cached: Any, trusted: bool) -> Optional[DetailRecord]:
        if cached is None:
            return None
        if not trusted:
            return DetailCacheWriter.parse_cached(cached)
        try:
            return DetailRecord.model_validate(cached)
        except ValueError:
            return None

    def _load_stream(self, cached: Any, stream_id: StreamId, trusted: bool) -> Optional[StreamRecord]:
        if cached is None:
            return None
        try:
            stream = StreamRecord.model_validate(cached)
        except ValueError:
            return None
        if trusted:
            return stream
        # Untrusted entries must carry the link derived for this exact id.
        expected = f"default_{stream_id}"
        if not any(link.id == expected for link in stream.stream_links):
            return None
        return stream

    # List and search accessors

    async def get_categories(self):
        return await self.list_cache.get_categories()

    async def get_countries(self):
        return await self.list_cache.get_countries()

    async def get_new_entries(self, page: int = 1, limit: int = 20):
        return await self.list_cache.get_new_entries(page, limit)

    async def get_by_type(self, type_slug: str, page: int = 1, limit: int = 20):
        return await self.list_cache.get_by_type(type_slug, page, limit)

    async def get_by_category(self, slug: str, page: int = 1, limit: int = 20):
        return await self.list_cache.get_by_category(slug, page, limit)

    async def get_by_country(self, slug: str, page: int = 1, limit: int = 20):
        return await self.list_cache.get_by_country(slug, page, limit)

    async def search(self, keyword: str, page: int = 1, limit: int = 20, **filters):
        return await self.list_cache.search(keyword, page, limit, **filters)

    async def suggest(self, keyword: str, limit: int = 5):
        return await self.list_cache.suggest(keyword, limit)

    def _record_lookup(self, cache: str, result: str):
        if self.metrics:
            self.metrics.increment_counter("catalog_cache_lookups_total", cache=cache, result=result)
