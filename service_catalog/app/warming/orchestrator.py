"""
Batch orchestration of a warming run.
"""

import asyncio
import time
from dataclasses import dataclass, field
from typing import Iterable, List, Sequence

from shared.config import CatalogCacheConfig
from shared.logging import get_logger


@dataclass
class WarmRunResult:
    """Summary of one warming run."""

    warmed: int = 0
    total: int = 0
    slugs: List[str] = field(default_factory=list)
    discovery_complete: bool = False
    duration_seconds: float = 0.0


class BatchOrchestrator:
    """Drives discovered slugs through the detail writer in paced, bounded batches.

    Within a batch every slug is dispatched at once; the semaphore caps how
    many detail warms are in flight at any moment across the whole run.
    """

    def __init__(self, walker, writer, config: CatalogCacheConfig, *, metrics=None):
        self.walker = walker
        self.writer = writer
        self.config = config
        self.metrics = metrics
        self.batch_size = max(1, config.warm_batch_size)
        self.logger = get_logger("catalog.orchestrator")
        self._semaphore = asyncio.Semaphore(max(1, config.warm_concurrency))

    async def run(self) -> WarmRunResult:
        """Discover changed slugs and warm each of them."""
        start = time.perf_counter()
        discovery = await self.walker.walk()
        slugs = sorted(discovery.slugs)
        self.logger.info("Found changed entries", total=len(slugs), discovery_complete=discovery.complete)

        warmed = await self.warm_slugs(slugs)
        duration = time.perf_counter() - start
        if self.metrics:
            self.metrics.observe_histogram("catalog_warm_run_duration_seconds", duration)

        self.logger.info("Warming run completed", warmed=warmed, total=len(slugs), duration=round(duration, 3))
        return WarmRunResult(
            warmed=warmed,
            total=len(slugs),
            slugs=slugs,
            discovery_complete=discovery.complete,
            duration_seconds=duration,
        )

    async def warm_slugs(self, slugs: Sequence[str]) -> int:
        """Warm ``slugs`` batch by batch; returns the number successfully warmed."""
        warmed = 0
        batches = list(_chunks(slugs, self.batch_size))
        for index, batch in enumerate(batches, start=1):
            results = await asyncio.gather(*(self._warm_one(slug) for slug in batch), return_exceptions=True)
            for slug, outcome in zip(batch, results):
                if isinstance(outcome, Exception):
                    self.logger.error("Warm task failed", slug=slug, error=str(outcome))
                elif outcome:
                    warmed += 1

            self.logger.debug("Batch settled", batch=index, batches=len(batches), warmed=warmed)
            if index < len(batches):
                await asyncio.sleep(self.config.warm_batch_delay_seconds)
        return warmed

    async def _warm_one(self, slug: str) -> bool:
        async with self._semaphore:
            if self.metrics:
                self.metrics.inc_gauge("catalog_warm_inflight")
            try:
                return await self.writer.cache_detail(slug) is not None
            finally:
                if self.metrics:
                    self.metrics.dec_gauge("catalog_warm_inflight")


def _chunks(items: Sequence[str], size: int) -> Iterable[Sequence[str]]:
    for offset in range(0, len(items), size):
        yield items[offset:offset + size]
