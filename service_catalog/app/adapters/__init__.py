"""
Adapters package for the catalog cache service.

Thin wrappers over the two external collaborators:

- KVStore: the shared Redis key-value store
- OriginClient: the upstream catalog HTTP API

Both are constructed once per process and injected into every component.
"""

from .kv_store import KVStore
from .origin_client import OriginClient

__all__ = [
    "KVStore",
    "OriginClient",
]
