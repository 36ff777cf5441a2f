"""
Persisted key layout.
"""

import hashlib
import json
from typing import Any, Dict, Optional


class CacheKeys:
    """Builds every key the service reads or writes, under one namespace prefix."""

    def __init__(self, prefix: str = "catalog"):
        self.prefix = prefix.rstrip(":")

    def _key(self, *parts: Any) -> str:
        return ":".join([self.prefix] + [str(part) for part in parts])

    @property
    def membership_set(self) -> str:
        return self._key("membership_set")

    @property
    def watermark(self) -> str:
        return self._key("watermark", "last_discovery")

    def detail(self, slug: str) -> str:
        return self._key("detail", slug)

    def stream(self, stream_id: Any) -> str:
        return self._key("stream", stream_id)

    def id_to_slug(self, detail_id: str) -> str:
        return self._key("id_to_slug", detail_id)

    def list_page(self, resource: str, params: Optional[Dict[str, Any]] = None) -> str:
        """Deterministic key for a list resource and its query parameters."""
        serialized = json.dumps(params or {}, sort_keys=True, separators=(",", ":"), default=str)
        digest = hashlib.md5(serialized.encode()).hexdigest()
        return self._key("list_page", resource.strip("/"), digest)

    def discovery_page(self, watermark: str, page: int) -> str:
        digest = hashlib.md5(watermark.encode()).hexdigest()[:12]
        return self._key("discovery_page", digest, page)

    def suggest(self, keyword: str) -> str:
        return self._key("suggest", keyword)
