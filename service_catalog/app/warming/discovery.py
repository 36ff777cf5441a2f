"""
Incremental discovery of changed catalog entries.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Mapping, Optional, Set

from shared.config import CatalogCacheConfig
from shared.errors import OriginError
from shared.logging import get_logger

from ..caching.keys import CacheKeys
from ..caching.list_cache import normalize_list_payload
from ..models import EPOCH, CatalogEntry, parse_timestamp


@dataclass
class DiscoveryResult:
    """Outcome of one walk over the recently-updated feed."""

    slugs: Set[str] = field(default_factory=set)
    complete: bool = False
    pages: int = 0
    watermark_before: datetime = EPOCH
    watermark_after: datetime = EPOCH


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _is_list_payload(raw: Any) -> bool:
    data = raw
    if isinstance(raw, Mapping) and raw.get("data"):
        data = raw["data"]
    return isinstance(data, list) or (isinstance(data, Mapping) and isinstance(data.get("items"), list))


class DiscoveryWalker:
    """Pages through the recently-updated feed collecting slugs changed since the watermark.

    Each filtered page is cached under a key scoped to the watermark it was
    filtered against, so a re-run after an interrupted walk reuses the pages
    it already fetched. The watermark only advances after a complete walk,
    and never past the fetch time of the oldest page that walk reused.
    """

    def __init__(
        self,
        store,
        origin,
        config: CatalogCacheConfig,
        *,
        keys: Optional[CacheKeys] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.store = store
        self.origin = origin
        self.config = config
        self.keys = keys or CacheKeys(config.key_prefix)
        self.clock = clock
        self.page_size = config.discovery_page_size
        self.logger = get_logger("catalog.discovery")

    async def discover_changed_slugs(self) -> Set[str]:
        """Return the de-duplicated set of slugs modified after the stored watermark."""
        result = await self.walk()
        return result.slugs

    async def read_watermark(self) -> datetime:
        return parse_timestamp(await self.store.get(self.keys.watermark)) or EPOCH

    async def walk(self) -> DiscoveryResult:
        started_at = self.clock()
        watermark = await self.read_watermark()
        result = DiscoveryResult(watermark_before=watermark, watermark_after=watermark)
        token = watermark.isoformat()
        cutoff = started_at

        page = 1
        while True:
            page_key = self.keys.discovery_page(token, page)
            entry = self._parse_page_entry(await self.store.get(page_key))
            fetched = False

            if entry is None:
                try:
                    raw = await self.origin.get_recently_updated(page, self.page_size)
                except OriginError as exc:
                    self.logger.error("Error fetching discovery page", page=page, error=exc.message)
                    break
                if not _is_list_payload(raw):
                    self.logger.error("Invalid discovery page response", page=page)
                    break

                entry = self._filter_page(raw, watermark, fetched_at=self.clock())
                if not await self.store.set_with_expiry(page_key, entry, self.config.ttl_discovery_page_seconds):
                    self.logger.warning("Discovery page not cached", page=page)
                fetched = True
            else:
                self.logger.debug("Discovery page cache hit", page=page)
                # Changes after this page was fetched are not in it.
                cutoff = min(cutoff, entry["fetched_at"] or watermark)

            result.slugs.update(entry["slugs"])
            result.pages = page

            if self._is_last_page(page, entry):
                result.complete = True
                break

            page += 1
            if fetched:
                await asyncio.sleep(self.config.discovery_page_delay_seconds)

        if result.complete:
            result.watermark_after = max(cutoff, watermark)
            await self.store.set(
                self.keys.watermark,
                result.watermark_after.isoformat(),
                ttl=self.config.watermark_ttl_seconds,
            )
        else:
            self.logger.warning(
                "Discovery walk incomplete; watermark not advanced",
                pages=result.pages,
                watermark=token,
            )

        self.logger.info(
            "Discovery finished",
            slugs=len(result.slugs),
            pages=result.pages,
            complete=result.complete,
        )
        return result

    def _filter_page(self, raw: Any, watermark: datetime, *, fetched_at: datetime) -> Dict[str, Any]:
        listing = normalize_list_payload(raw)
        slugs = []
        for item in listing.items:
            try:
                entry = CatalogEntry.model_validate(item)
            except ValueError:
                continue
            if entry.modified_at > watermark and isinstance(entry.slug, str) and entry.slug:
                slugs.append(entry.slug)
        return {
            "slugs": slugs,
            "item_count": len(listing.items),
            "total_pages": listing.total_pages,
            "fetched_at": fetched_at.isoformat(),
        }

    def _is_last_page(self, page: int, entry: Mapping[str, Any]) -> bool:
        if not entry["item_count"]:
            return True
        if entry["total_pages"]:
            return page >= entry["total_pages"]
        return entry["item_count"] < self.page_size

    @staticmethod
    def _parse_page_entry(cached: Any) -> Optional[Dict[str, Any]]:
        if not isinstance(cached, Mapping) or not isinstance(cached.get("slugs"), list):
            return None
        return {
            "slugs": [slug for slug in cached["slugs"] if isinstance(slug, str) and slug],
            "item_count": int(cached.get("item_count") or 0),
            "total_pages": int(cached.get("total_pages") or 0),
            "fetched_at": parse_timestamp(cached.get("fetched_at")),
        }
