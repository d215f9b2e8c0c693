"""Tests for ssb_mcp.client."""

from __future__ import annotations

import json
import os
from collections.abc import Callable
from typing import Any
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from ssb_mcp.client import SSBAPIError, SSBClient, _RateLimiter
from ssb_mcp.models import QueryFilter

Handler = Callable[[httpx.Request], httpx.Response]


def _client_with(handler: Handler) -> SSBClient:
    """Return an SSBClient whose requests are answered by ``handler``."""
    return SSBClient(
        base_url="https://data.ssb.no/api/v0",
        rate_limit=0,
        transport=httpx.MockTransport(handler),
    )


class TestSSBClient:
    def test_client_initialization(self) -> None:
        client = SSBClient()
        assert client._base_url == "https://data.ssb.no/api/v0"
        assert client._timeout == 30.0

    def test_base_url_trailing_slash(self) -> None:
        client = SSBClient(base_url="http://localhost:8080/api/v0/")
        assert client._base_url == "http://localhost:8080/api/v0"

    def test_env_var_fallback(self) -> None:
        with patch.dict(os.environ, {"SSB_API_BASE_URL": "http://proxy/api/v0"}):
            client = SSBClient()
            assert client._base_url == "http://proxy/api/v0"

    @pytest.mark.asyncio
    async def test_client_context_manager(self) -> None:
        async with SSBClient() as client:
            assert isinstance(client, SSBClient)

    @pytest.mark.asyncio
    async def test_transport_used_and_closed(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=[])

        async with SSBClient(rate_limit=0, transport=httpx.MockTransport(handler)) as client:
            assert await client.search("kpi") == []

        assert seen[0].headers["Accept"] == "application/json"
        assert client._http.is_closed

    def test_rate_limiter(self) -> None:
        assert _RateLimiter(2.0)._interval == 0.5
        assert _RateLimiter(0)._interval == 0.0


class TestBrowse:
    @pytest.mark.asyncio
    async def test_root(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(
                200,
                json=[
                    {"type": "l", "id": "al", "text": "Arbeid og lønn"},
                    {"type": "l", "id": "be", "text": "Befolkning"},
                ],
            )

        async with _client_with(handler) as client:
            nodes = await client.browse()

        assert str(seen[0].url) == "https://data.ssb.no/api/v0/no/table/"
        assert seen[0].method == "GET"
        assert [n.id for n in nodes] == ["al", "be"]

    @pytest.mark.asyncio
    async def test_path_and_language(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(
                200,
                json=[
                    {
                        "type": "t",
                        "id": "07459",
                        "text": "Population",
                        "updated": "2024-02-21T07:00:00",
                        "firstPeriod": "1986",
                        "lastPeriod": "2024",
                        "variables": ["region", "year"],
                    }
                ],
            )

        async with _client_with(handler) as client:
            nodes = await client.browse(["be", "be01/"], language="en")

        assert str(seen[0].url) == "https://data.ssb.no/api/v0/en/table/be/be01/"
        assert nodes[0].is_table
        assert nodes[0].last_period == "2024"


class TestSearch:
    @pytest.mark.asyncio
    async def test_search(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(
                200,
                json=[
                    {
                        "id": "07459",
                        "path": "/be/be01/folkemengde/",
                        "title": "07459: Befolkning",
                        "score": 9.1,
                        "published": "2024-02-21T08:00:00",
                    }
                ],
            )

        async with _client_with(handler) as client:
            results = await client.search("befolkning oslo")

        assert seen[0].url.path == "/api/v0/no/table/"
        assert seen[0].url.params["query"] == "befolkning oslo"
        assert len(results) == 1
        assert results[0].id == "07459"
        assert results[0].score == 9.1

    @pytest.mark.asyncio
    async def test_search_empty(self) -> None:
        async with _client_with(lambda request: httpx.Response(200, json=[])) as client:
            assert await client.search("nonexistent") == []


class TestTableMetadata:
    @pytest.mark.asyncio
    async def test_get_table_metadata(self) -> None:
        payload = {
            "title": "Befolkning, etter region, statistikkvariabel og år",
            "variables": [
                {
                    "code": "Region",
                    "text": "region",
                    "values": ["0", "0301"],
                    "valueTexts": ["Hele landet", "Oslo"],
                    "elimination": True,
                },
                {
                    "code": "Tid",
                    "text": "år",
                    "values": ["2023", "2024"],
                    "valueTexts": ["2023", "2024"],
                    "time": True,
                },
            ],
        }
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=payload)

        async with _client_with(handler) as client:
            meta = await client.get_table_metadata("07459")

        assert str(seen[0].url) == "https://data.ssb.no/api/v0/no/table/07459"
        assert meta.title.startswith("Befolkning")
        assert [v.code for v in meta.variables] == ["Region", "Tid"]
        assert meta.variables[0].value_texts == ["Hele landet", "Oslo"]
        assert meta.variables[1].time is True

    @pytest.mark.asyncio
    async def test_unexpected_payload(self) -> None:
        async with _client_with(lambda request: httpx.Response(200, json={"nope": 1})) as client:
            with pytest.raises(SSBAPIError, match="Unexpected metadata response") as exc_info:
                await client.get_table_metadata("07459")
        assert exc_info.value.status_code is None


class TestQueryTable:
    @pytest.mark.asyncio
    async def test_posts_query_body(self, year_region_payload: dict[str, Any]) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=year_region_payload)

        filters = [
            QueryFilter(code="Region", filter="item", values=["0301", "1103"]),
            QueryFilter(code="Tid", filter="top", values=["5"]),
        ]
        async with _client_with(handler) as client:
            dataset = await client.query_table("07459", filters, language="en")

        request = seen[0]
        assert request.method == "POST"
        assert str(request.url) == "https://data.ssb.no/api/v0/en/table/07459"
        assert json.loads(request.content) == {
            "query": [
                {"code": "Region", "selection": {"filter": "item", "values": ["0301", "1103"]}},
                {"code": "Tid", "selection": {"filter": "top", "values": ["5"]}},
            ],
            "response": {"format": "json-stat2"},
        }
        assert dataset.id == ["year", "region"]
        assert dataset.value == [1, 2, 3, 4, 5, 6]

    @pytest.mark.asyncio
    async def test_malformed_dataset(self, year_region_payload: dict[str, Any]) -> None:
        year_region_payload["value"] = [1, 2]

        async with _client_with(lambda request: httpx.Response(200, json=year_region_payload)) as client:
            with pytest.raises(SSBAPIError, match="Unexpected json-stat2 response"):
                await client.query_table("07459", [])


class TestErrors:
    @pytest.mark.asyncio
    async def test_client_error_not_retried(self) -> None:
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            return httpx.Response(400, text="Bad query")

        async with _client_with(handler) as client:
            with pytest.raises(SSBAPIError, match=r"SSB API error \(400\): Bad query") as exc_info:
                await client.query_table("07459", [])

        assert exc_info.value.status_code == 400
        assert calls == 1

    @pytest.mark.asyncio
    async def test_not_found(self) -> None:
        async with _client_with(lambda request: httpx.Response(404, text="Not found")) as client:
            with pytest.raises(SSBAPIError) as exc_info:
                await client.get_table_metadata("99999")
        assert exc_info.value.status_code == 404

    @pytest.mark.asyncio
    async def test_server_error_retried_then_raised(self) -> None:
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            return httpx.Response(503, text="Unavailable")

        with patch("ssb_mcp.client.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            async with _client_with(handler) as client:
                with pytest.raises(SSBAPIError) as exc_info:
                    await client.browse()

        assert exc_info.value.status_code == 503
        assert calls == 3
        assert [c.args[0] for c in mock_sleep.call_args_list] == [1, 2]

    @pytest.mark.asyncio
    async def test_retry_then_success(self) -> None:
        responses = [
            httpx.Response(429, text="Too many requests"),
            httpx.Response(200, json=[]),
        ]

        with patch("ssb_mcp.client.asyncio.sleep", new_callable=AsyncMock):
            async with _client_with(lambda request: responses.pop(0)) as client:
                assert await client.search("kpi") == []

        assert responses == []

    @pytest.mark.asyncio
    async def test_transport_error_wrapped(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with patch("ssb_mcp.client.asyncio.sleep", new_callable=AsyncMock):
            async with _client_with(handler) as client:
                with pytest.raises(SSBAPIError, match="HTTP error") as exc_info:
                    await client.browse()

        assert exc_info.value.status_code is None
        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)
