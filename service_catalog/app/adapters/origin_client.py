"""
Origin catalog API client.
"""

from typing import Any, Dict, Optional

import httpx

from shared.errors import OriginError
from shared.logging import get_logger


RECENTLY_UPDATED_PATH = "/danh-sach/phim-moi-cap-nhat"
CATEGORIES_PATH = "/the-loai"
COUNTRIES_PATH = "/quoc-gia"
LISTING_PATH = "/v1/api/danh-sach/{type_slug}"
CATEGORY_LISTING_PATH = "/v1/api/the-loai/{slug}"
COUNTRY_LISTING_PATH = "/v1/api/quoc-gia/{slug}"
SEARCH_PATH = "/v1/api/tim-kiem"
DETAIL_PATH = "/phim/{slug}"


class OriginClient:
    """Client for the paginated upstream catalog API.

    Every request carries the configured timeout and default sort parameters.
    Transport failures and non-2xx responses raise OriginError; retrying is
    the caller's decision.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 10.0,
        default_params: Optional[Dict[str, Any]] = None,
        client: Optional[httpx.AsyncClient] = None,
        metrics=None,
    ):
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.default_params = dict(default_params or {})
        self.metrics = metrics
        self.logger = get_logger("catalog.origin_client")
        self._client = client
        self._owns_client = client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                follow_redirects=True,
            )
        return self._client

    async def close(self):
        """Close the HTTP client if this instance created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def get_json(self, path: str, params: Optional[Dict[str, Any]] = None, *, endpoint: Optional[str] = None) -> Any:
        """GET ``path`` with default parameters merged under ``params``."""
        query = {**self.default_params, **(params or {})}
        label = endpoint or path
        url = f"{self.base_url}{path}"

        try:
            response = await self._get_client().get(url, params=query, timeout=self.timeout)
        except httpx.HTTPError as exc:
            self._record(label, "transport_error")
            self.logger.warning("Origin request failed", url=url, params=query, error=str(exc))
            raise OriginError(str(exc) or exc.__class__.__name__, {"url": url, "params": query}) from exc

        if response.status_code < 200 or response.status_code >= 300:
            self._record(label, f"status_{response.status_code}")
            self.logger.warning(
                "Origin returned error status",
                url=url,
                params=query,
                status_code=response.status_code,
            )
            raise OriginError(
                f"Unexpected status {response.status_code}",
                {"url": url, "status_code": response.status_code},
            )

        try:
            payload = response.json()
        except ValueError as exc:
            self._record(label, "invalid_json")
            raise OriginError("Response body is not JSON", {"url": url}) from exc

        self._record(label, "ok")
        self.logger.debug("Origin response received", url=url, params=query)
        return payload

    async def get_recently_updated(self, page: int, limit: int) -> Any:
        """Fetch one page of the recently-updated feed."""
        return await self.get_json(
            RECENTLY_UPDATED_PATH,
            {"page": page, "limit": limit},
            endpoint="recently_updated",
        )

    async def get_detail(self, slug: str) -> Any:
        """Fetch the full detail payload for one slug."""
        return await self.get_json(DETAIL_PATH.format(slug=slug), endpoint="detail")

    def _record(self, endpoint: str, outcome: str):
        if self.metrics:
            self.metrics.increment_counter(
                "catalog_origin_requests_total",
                endpoint=endpoint,
                outcome=outcome,
            )
