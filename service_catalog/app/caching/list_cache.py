"""
Cache-aside wrapper for catalog list, taxonomy and search endpoints.
"""

from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from shared.config import CatalogCacheConfig
from shared.errors import OriginError
from shared.logging import get_logger
from shared.retry import RetryConfig, RetryError, call_with_retry

from ..adapters.origin_client import (
    CATEGORIES_PATH,
    CATEGORY_LISTING_PATH,
    COUNTRIES_PATH,
    COUNTRY_LISTING_PATH,
    LISTING_PATH,
    RECENTLY_UPDATED_PATH,
    SEARCH_PATH,
)
from ..models import ListPage
from .keys import CacheKeys


SERIES_TYPE_SLUG = "phim-bo"


class ResourceKind(str, Enum):
    """TTL class of a cached resource, chosen at the call site."""
    TAXONOMY = "taxonomy"
    NEW_ENTRIES = "new_entries"
    SERIES = "series"
    LISTING = "listing"
    SEARCH = "search"
    SUGGEST = "suggest"


def kind_ttls(config: CatalogCacheConfig) -> Dict[ResourceKind, int]:
    """Map each resource kind to its configured TTL in seconds."""
    return {
        ResourceKind.TAXONOMY: config.ttl_taxonomy_seconds,
        ResourceKind.NEW_ENTRIES: config.ttl_new_entries_seconds,
        ResourceKind.SERIES: config.ttl_series_seconds,
        ResourceKind.LISTING: config.ttl_listing_seconds,
        ResourceKind.SEARCH: config.ttl_search_seconds,
        ResourceKind.SUGGEST: config.ttl_suggest_seconds,
    }


def _coerce_int(value: Any) -> int:
    try:
        return max(0, int(value))
    except (TypeError, ValueError):
        return 0


def _reported_total_pages(data: Mapping[str, Any]) -> int:
    pagination = data.get("pagination") if isinstance(data.get("pagination"), Mapping) else {}
    params = data.get("params") if isinstance(data.get("params"), Mapping) else {}
    nested = params.get("pagination") if isinstance(params.get("pagination"), Mapping) else {}
    for candidate in (
        data.get("totalPages"),
        pagination.get("totalPages"),
        nested.get("totalPages"),
        data.get("total_pages"),
    ):
        total = _coerce_int(candidate)
        if total:
            return total
    return 0


def normalize_list_payload(raw: Any) -> ListPage:
    """Normalise the origin's list response shapes into a ListPage.

    Accepts a bare array, an object with ``items``, or either wrapped in
    ``data``. The page count is 0 when the origin does not report one.
    """
    data = raw
    if isinstance(data, Mapping) and data.get("data"):
        data = data["data"]

    if isinstance(data, list):
        items, total = data, 0
    elif isinstance(data, Mapping):
        items = data.get("items") if isinstance(data.get("items"), list) else []
        total = _reported_total_pages(data)
    else:
        items, total = [], 0

    return ListPage(items=[item for item in items if isinstance(item, Mapping)], total_pages=total)


class ListCache:
    """Read-through cache for list endpoints.

    A miss fetches from the origin with linear-backoff retries, infers a page
    count when the origin omits one (search results excepted), and stores the normalised page with the
    TTL of its resource kind. Exhausted retries return an empty page, which
    callers must read as "temporarily unavailable".
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
        self.logger = get_logger("catalog.list_cache")
        self.ttls = kind_ttls(config)
        self.retry_config = RetryConfig.linear(
            max_attempts=config.retry_attempts,
            base_delay=config.retry_base_delay_seconds,
        )

    def ttl_for(self, kind: ResourceKind) -> int:
        return self.ttls[kind]

    async def fetch(self, kind: ResourceKind, path: str, params: Optional[Dict[str, Any]] = None) -> ListPage:
        """Return the cached page for ``path``/``params``, populating it on miss."""
        cache_key = self.keys.list_page(path, params)

        page = self._parse_cached(await self.store.get(cache_key))
        if page is not None:
            self._record_lookup(kind, "hit")
            self.logger.debug("List cache hit", path=path, key=cache_key)
            return page

        self._record_lookup(kind, "miss")
        try:
            page = await call_with_retry(
                self._fetch_from_origin,
                path,
                params,
                kind,
                exceptions=(OriginError,),
                config=self.retry_config,
                operation="list_fetch",
            )
        except RetryError as exc:
            self.logger.error(
                "Max retries reached for list resource",
                path=path,
                params=params,
                attempts=exc.attempts,
                error=str(exc.last_exception),
            )
            return ListPage.empty()

        self.logger.info("Fetched list resource", path=path, items=len(page.items), total_pages=page.total_pages)
        if await self.store.set_with_expiry(cache_key, page.to_cache(), self.ttl_for(kind)):
            await self.store.add_member(self.keys.membership_set, cache_key)
        else:
            self.logger.warning("List page not cached", key=cache_key)
        return page

    async def _fetch_from_origin(self, path: str, params: Optional[Dict[str, Any]], kind: ResourceKind) -> ListPage:
        raw = await self.origin.get_json(path, params, endpoint=kind.value)
        page = normalize_list_payload(raw)

        limit = _coerce_int((params or {}).get("limit"))
        if kind is not ResourceKind.SEARCH and page.total_pages == 0 and limit and len(page.items) == limit:
            # Full page without metadata: fetch one page ahead to avoid undercounting.
            current = _coerce_int((params or {}).get("page")) or 1
            lookahead_raw = await self.origin.get_json(path, {**(params or {}), "page": current + 1}, endpoint=kind.value)
            lookahead = normalize_list_payload(lookahead_raw)
            page.total_pages = current + 2 if lookahead.items else current + 1
            self.logger.debug("Inferred total pages", path=path, page=current, total_pages=page.total_pages)

        return page

    @staticmethod
    def _parse_cached(cached: Any) -> Optional[ListPage]:
        if not isinstance(cached, Mapping) or not isinstance(cached.get("items"), list):
            return None
        try:
            return ListPage.model_validate(cached)
        except ValueError:
            return None

    # Resource accessors

    async def get_categories(self) -> List[Dict[str, Any]]:
        page = await self.fetch(ResourceKind.TAXONOMY, CATEGORIES_PATH)
        return page.items

    async def get_countries(self) -> List[Dict[str, Any]]:
        page = await self.fetch(ResourceKind.TAXONOMY, COUNTRIES_PATH)
        return page.items

    async def get_new_entries(self, page: int = 1, limit: int = 20) -> ListPage:
        return await self.fetch(ResourceKind.NEW_ENTRIES, RECENTLY_UPDATED_PATH, {"page": page, "limit": limit})

    async def get_by_type(self, type_slug: str, page: int = 1, limit: int = 20) -> ListPage:
        kind = ResourceKind.SERIES if type_slug == SERIES_TYPE_SLUG else ResourceKind.LISTING
        return await self.fetch(kind, LISTING_PATH.format(type_slug=type_slug), {"page": page, "limit": limit})

    async def get_by_category(self, slug: str, page: int = 1, limit: int = 20) -> ListPage:
        return await self.fetch(ResourceKind.LISTING, CATEGORY_LISTING_PATH.format(slug=slug), {"page": page, "limit": limit})

    async def get_by_country(self, slug: str, page: int = 1, limit: int = 20) -> ListPage:
        return await self.fetch(ResourceKind.LISTING, COUNTRY_LISTING_PATH.format(slug=slug), {"page": page, "limit": limit})

    async def search(self, keyword: str, page: int = 1, limit: int = 20, **filters: Any) -> ListPage:
        if not isinstance(keyword, str) or not keyword.strip():
            return ListPage.empty()
        params = {**filters, "keyword": keyword, "page": page, "limit": limit}
        return await self.fetch(ResourceKind.SEARCH, SEARCH_PATH, params)

    async def suggest(self, keyword: str, limit: int = 5) -> List[str]:
        """Names of the first search hits for ``keyword``."""
        if not isinstance(keyword, str) or not keyword.strip():
            return []

        cache_key = self.keys.suggest(keyword)
        cached = await self.store.get(cache_key)
        if isinstance(cached, list):
            self._record_lookup(ResourceKind.SUGGEST, "hit")
            return cached

        self._record_lookup(ResourceKind.SUGGEST, "miss")
        results = await self.search(keyword, limit=limit)
        suggestions = [item.get("name") or "Unknown Title" for item in results.items]
        if suggestions:
            await self.store.set_with_expiry(cache_key, suggestions, self.ttl_for(ResourceKind.SUGGEST))
        return suggestions

    async def merge_into_cached_list(
        self,
        cache_key: str,
        new_items: List[Dict[str, Any]],
        limit: int,
        kind: ResourceKind,
    ) -> List[Dict[str, Any]]:
        """Prepend ``new_items`` to the cached list under ``cache_key``.

        Older entries sharing an id with a new item are dropped and the result
        is truncated to ``limit``. Not atomic: a concurrent writer to the same
        key can lose its update until the TTL expires.
        """
        cached = await self.store.get(cache_key)
        existing = cached if isinstance(cached, list) else []

        new_ids = {_item_id(item) for item in new_items} - {None}
        merged = list(new_items) + [item for item in existing if _item_id(item) not in new_ids]
        merged = merged[:limit]

        if not await self.store.set_with_expiry(cache_key, merged, self.ttl_for(kind)):
            self.logger.error("Failed to update cached list", key=cache_key)
            return list(new_items)
        return merged

    def _record_lookup(self, kind: ResourceKind, result: str):
        if self.metrics:
            self.metrics.increment_counter("catalog_cache_lookups_total", cache=kind.value, result=result)


def _item_id(item: Any) -> Optional[str]:
    if not isinstance(item, Mapping):
        return None
    return item.get("_id") or item.get("id")
