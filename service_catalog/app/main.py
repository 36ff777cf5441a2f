"""
Catalog cache service wiring and the warming entry point.
"""

import asyncio
from typing import Optional

from shared.config import CatalogCacheConfig, get_config
from shared.errors import VerificationError
from shared.logging import clear_context, configure_logging, get_logger, set_run_id
from shared.metrics import MetricsCollector, get_metrics_collector

from .adapters.kv_store import KVStore
from .adapters.origin_client import OriginClient
from .caching.keys import CacheKeys
from .caching.list_cache import ListCache
from .lookup.service import LookupService
from .warming.detail_writer import DetailCacheWriter
from .warming.discovery import DiscoveryWalker
from .warming.orchestrator import BatchOrchestrator, WarmRunResult
from .warming.verifier import CacheVerifier


SERVICE_NAME = "catalog"


class CatalogCacheService:
    """Builds the process-scoped clients and every component that shares them."""

    def __init__(
        self,
        config: Optional[CatalogCacheConfig] = None,
        *,
        store=None,
        origin=None,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.config = config or get_config()
        self.logger = get_logger(SERVICE_NAME)
        self.metrics = metrics or get_metrics_collector(SERVICE_NAME)
        self.keys = CacheKeys(self.config.key_prefix)

        self.store = store or KVStore(self.config.redis_url)
        self.origin = origin or OriginClient(
            self.config.origin_base_url,
            timeout=self.config.origin_timeout_seconds,
            default_params=self.config.origin_default_params,
            metrics=self.metrics,
        )

        self.list_cache = ListCache(self.store, self.origin, self.config, keys=self.keys, metrics=self.metrics)
        self.writer = DetailCacheWriter(self.store, self.origin, self.config, keys=self.keys, metrics=self.metrics)
        self.walker = DiscoveryWalker(self.store, self.origin, self.config, keys=self.keys)
        self.orchestrator = BatchOrchestrator(self.walker, self.writer, self.config, metrics=self.metrics)
        self.verifier = CacheVerifier(self.store, self.keys)
        self.lookup = LookupService(
            self.store,
            self.writer,
            self.list_cache,
            keys=self.keys,
            metrics=self.metrics,
        )

    async def warm(self) -> WarmRunResult:
        """Run discovery, batch warming and verification.

        Raises VerificationError when any processed entry is missing or
        incomplete in the cache afterwards.
        """
        run_id = set_run_id()
        self.logger.info("Starting pre-cache", run_id=run_id)

        result = await self.orchestrator.run()
        report = await self.verifier.verify_report(result.slugs)
        if not report.ok:
            raise VerificationError(
                f"{report.errors} of {report.checked} cached entries failed verification",
                {"failed_slugs": report.failed_slugs[:50], "errors": report.errors},
            )

        self.logger.info("Pre-cache completed", warmed=result.warmed, total=result.total)
        return result

    async def close(self):
        await self.origin.close()
        await self.store.close()


async def run_warming(config: Optional[CatalogCacheConfig] = None, **components) -> int:
    """Execute one warming run and map its outcome to a process exit code."""
    service = CatalogCacheService(config, **components)
    try:
        await service.warm()
    except VerificationError as exc:
        service.logger.error("Verification failed", error=exc.message, details=exc.details)
        return 1
    except Exception as exc:
        service.logger.exception("Pre-cache failed", error=str(exc))
        return 1
    finally:
        await service.close()
        clear_context()
    return 0


def main() -> int:
    config = get_config()
    configure_logging(SERVICE_NAME, config.log_level)

    metrics = get_metrics_collector(SERVICE_NAME)
    if config.metrics_port:
        metrics.start_metrics_server(config.metrics_port)

    try:
        return asyncio.run(run_warming(config, metrics=metrics))
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    raise SystemExit(main())
