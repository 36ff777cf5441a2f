"""
Catalog caching package.

Key layout and the cache-aside wrapper used for list, taxonomy and search
endpoints. Every value is written with an explicit TTL; nothing here
invalidates keys, expiry and re-warming do.
"""

from .keys import CacheKeys
from .list_cache import ListCache, ResourceKind

__all__ = ["CacheKeys", "ListCache", "ResourceKind"]
