"""
Unit tests for the origin catalog client.
"""

import httpx
import pytest

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from service_catalog.app.adapters.origin_client import OriginClient
from shared.errors import OriginError
from shared.metrics import MetricsCollector


BASE_URL = "https://origin.example"


def make_client(handler, metrics=None):
    transport = httpx.MockTransport(handler)
    http = httpx.AsyncClient(transport=transport)
    return OriginClient(
        BASE_URL,
        timeout=5.0,
        default_params={"sort_field": "_id", "sort_type": "asc"},
        client=http,
        metrics=metrics,
    )


class TestOriginClient:
    """Test cases for OriginClient."""

    @pytest.mark.asyncio
    async def test_default_params_merged(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["params"] = dict(request.url.params)
            return httpx.Response(200, json={"items": []})

        client = make_client(handler)
        await client.get_recently_updated(page=2, limit=100)

        assert seen["path"] == "/danh-sach/phim-moi-cap-nhat"
        assert seen["params"] == {"sort_field": "_id", "sort_type": "asc", "page": "2", "limit": "100"}

    @pytest.mark.asyncio
    async def test_call_params_override_defaults(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen.update(dict(request.url.params))
            return httpx.Response(200, json=[])

        client = make_client(handler)
        await client.get_json("/the-loai", {"sort_type": "desc"})

        assert seen["sort_type"] == "desc"

    @pytest.mark.asyncio
    async def test_get_detail_path(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/phim/some-slug"
            return httpx.Response(200, json={"movie": {"slug": "some-slug"}, "episodes": []})

        client = make_client(handler)
        payload = await client.get_detail("some-slug")

        assert payload["movie"]["slug"] == "some-slug"

    @pytest.mark.asyncio
    async def test_non_2xx_raises(self):
        metrics = MetricsCollector("catalog-test")
        client = make_client(lambda request: httpx.Response(503, text="busy"), metrics=metrics)

        with pytest.raises(OriginError) as exc_info:
            await client.get_detail("slug")

        assert exc_info.value.code == "ORIGIN_ERROR"
        assert exc_info.value.details["status_code"] == 503
        assert metrics.sample(
            "catalog_origin_requests_total", endpoint="detail", outcome="status_503"
        ) == 1.0

    @pytest.mark.asyncio
    async def test_transport_error_raises(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectTimeout("timed out", request=request)

        client = make_client(handler)

        with pytest.raises(OriginError):
            await client.get_recently_updated(1, 100)

    @pytest.mark.asyncio
    async def test_invalid_json_raises(self):
        client = make_client(lambda request: httpx.Response(200, text="<html>"))

        with pytest.raises(OriginError):
            await client.get_json("/the-loai")

    @pytest.mark.asyncio
    async def test_success_recorded(self):
        metrics = MetricsCollector("catalog-test")
        client = make_client(lambda request: httpx.Response(200, json={"items": []}), metrics=metrics)

        await client.get_json("/quoc-gia", endpoint="taxonomy")

        assert metrics.sample("catalog_origin_requests_total", endpoint="taxonomy", outcome="ok") == 1.0

    @pytest.mark.asyncio
    async def test_close_leaves_injected_client_open(self):
        http = httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(200, json={})))
        client = OriginClient(BASE_URL, client=http)

        await client.close()

        assert not http.is_closed
        await http.aclose()
