"""
Cache warming pipeline.

Discovery -> per-entry detail caching under a concurrency cap -> verification.
A run is best-effort and idempotent: re-running it rewrites the same keys.
"""

from .discovery import DiscoveryResult, DiscoveryWalker
from .detail_writer import DetailCacheWriter
from .orchestrator import BatchOrchestrator, WarmRunResult
from .verifier import CacheVerifier, VerificationReport

__all__ = [
    "DiscoveryResult",
    "DiscoveryWalker",
    "DetailCacheWriter",
    "BatchOrchestrator",
    "WarmRunResult",
    "CacheVerifier",
    "VerificationReport",
]
