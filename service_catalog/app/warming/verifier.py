"""
Post-run integrity verification.
"""

from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from shared.logging import get_logger

from ..caching.keys import CacheKeys
from ..models import is_complete_detail


@dataclass
class VerificationReport:
    checked: int = 0
    errors: int = 0
    failed_slugs: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.errors == 0


class CacheVerifier:
    """Re-reads cached details and re-applies the completeness predicate."""

    def __init__(self, store, keys: Optional[CacheKeys] = None):
        self.store = store
        self.keys = keys or CacheKeys()
        self.logger = get_logger("catalog.verifier")

    async def verify(self, slugs: Iterable[str]) -> bool:
        report = await self.verify_report(slugs)
        return report.ok

    async def verify_report(self, slugs: Iterable[str]) -> VerificationReport:
        report = VerificationReport()
        for slug in slugs:
            report.checked += 1
            cached = await self.store.get(self.keys.detail(slug))
            if not is_complete_detail(cached):
                self.logger.error("Verification failed", slug=slug)
                report.errors += 1
                report.failed_slugs.append(slug)

        self.logger.info("Verification finished", checked=report.checked, errors=report.errors)
        return report
