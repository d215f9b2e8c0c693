"""High-level async client for the SSB (Statistics Norway) PxWeb API.

This is the primary public interface of ssb-mcp. All SSB operations —
browsing the table hierarchy, table search, metadata retrieval and data
queries — flow through :class:`SSBClient`.

Example::

    import asyncio
    from ssb_mcp import QueryFilter, SSBClient

    async def main():
        async with SSBClient() as client:
            hits = await client.search("befolkning")
            meta = await client.get_table_metadata(hits[0].id)
            data = await client.query_table(
                hits[0].id,
                [QueryFilter(code="Tid", filter="top", values=["5"])],
            )
            print(data.label)

    asyncio.run(main())

PxWeb v0 API conventions:
    - Every path starts with a language segment (``no`` or ``en``).
    - ``GET {lang}/table/{path}/`` lists folders (``type == "l"``) and
      tables (``type == "t"``) below a path.
    - ``GET {lang}/table/{id}`` returns a table's variables;
      ``POST`` to the same URL runs a data query.
    - ``GET {lang}/table/?query=...`` searches tables.
"""

from __future__ import annotations

import asyncio
import os
import time
from typing import TYPE_CHECKING, Any

import httpx
from loguru import logger
from pydantic import BaseModel, TypeAdapter, ValidationError

from ssb_mcp.models import (
    JsonStat2Dataset,
    Language,
    NavigationNode,
    QueryFilter,
    SearchResult,
    TableMetadata,
)

if TYPE_CHECKING:
    from collections.abc import Sequence

# SSB PxWeb API v0 base URL
_BASE_URL = "https://data.ssb.no/api/v0"

# HTTP status codes that warrant a retry
_RETRYABLE_STATUS = {429, 500, 502, 503, 504}

_DEFAULT_TIMEOUT = 30.0

# Default rate limit (requests per second)
_DEFAULT_RATE_LIMIT = 1.0

_MAX_RETRIES = 3

_nodes_adapter = TypeAdapter(list[NavigationNode])
_search_adapter = TypeAdapter(list[SearchResult])


class SSBAPIError(Exception):
    """Raised when the SSB API fails or returns an unexpected response.

    Attributes:
        status_code: HTTP status of the failed response, or ``None`` for
            transport failures and malformed payloads.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class _RateLimiter:
    """Simple rate limiter for API requests."""

    def __init__(self, rate: float) -> None:
        self._interval = 1.0 / rate if rate > 0 else 0.0
        self._last_request: float = 0.0
        self._lock = asyncio.Lock()

    async def wait(self) -> None:
        """Wait if necessary to maintain the rate limit."""
        if self._interval <= 0:
            return
        async with self._lock:
            now = time.monotonic()
            elapsed = now - self._last_request
            if elapsed < self._interval:
                await asyncio.sleep(self._interval - elapsed)
            self._last_request = time.monotonic()


def _status_error(resp: httpx.Response) -> SSBAPIError:
    return SSBAPIError(
        f"SSB API error ({resp.status_code}): {resp.text}",
        status_code=resp.status_code,
    )


class SSBClient:
    """Async client for the SSB PxWeb API v0."""

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float = _DEFAULT_TIMEOUT,
        rate_limit: float = _DEFAULT_RATE_LIMIT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = (base_url or os.environ.get("SSB_API_BASE_URL") or _BASE_URL).rstrip("/")
        self._timeout = timeout
        self._limiter = _RateLimiter(rate_limit)

        self._http = httpx.AsyncClient(
            timeout=self._timeout,
            headers={"Accept": "application/json"},
            transport=transport,
        )

    async def close(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> SSBClient:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()

    def _table_url(self, language: Language, *segments: str) -> str:
        return "/".join([self._base_url, language, "table", *segments])

    async def _request_with_retry(
        self, method: str, url: str, **kwargs: Any
    ) -> httpx.Response:
        last_exc: BaseException | None = None

        for attempt in range(_MAX_RETRIES):
            await self._limiter.wait()
            logger.debug(f"{method} {url}")
            try:
                resp = await self._http.request(method, url, **kwargs)
                if resp.status_code not in _RETRYABLE_STATUS:
                    if resp.is_error:
                        raise _status_error(resp)
                    return resp
                last_exc = _status_error(resp)
            except httpx.TransportError as e:
                last_exc = e

            if attempt < _MAX_RETRIES - 1:
                delay = 2**attempt
                logger.warning(f"Retry {attempt + 1}/{_MAX_RETRIES} after {delay}s")
                await asyncio.sleep(delay)

        if isinstance(last_exc, httpx.TransportError):
            raise SSBAPIError(f"HTTP error: {last_exc}") from last_exc
        raise last_exc  # type: ignore[misc]

    async def _get_json(self, url: str, params: dict[str, Any] | None = None) -> Any:
        resp = await self._request_with_retry("GET", url, params=params)
        return resp.json()

    @staticmethod
    def _validate(adapter: TypeAdapter[Any] | type[BaseModel], data: Any, what: str) -> Any:
        try:
            if isinstance(adapter, TypeAdapter):
                return adapter.validate_python(data)
            return adapter.model_validate(data)
        except ValidationError as e:
            raise SSBAPIError(f"Unexpected {what} response: {e}") from e

    async def browse(
        self,
        path: Sequence[str] | None = None,
        language: Language = "no",
    ) -> list[NavigationNode]:
        """List folders and tables below ``path`` (the root when empty)."""
        segments = [p.strip("/") for p in (path or []) if p.strip("/")]
        url = self._table_url(language, *segments) + "/"
        data = await self._get_json(url)
        nodes: list[NavigationNode] = self._validate(_nodes_adapter, data, "browse")
        logger.info(f"Found {len(nodes)} nodes under /{'/'.join(segments)}")
        return nodes

    async def get_table_metadata(
        self,
        table_id: str,
        language: Language = "no",
    ) -> TableMetadata:
        """Return a table's title and variables with all admissible values."""
        data = await self._get_json(self._table_url(language, table_id))
        return self._validate(TableMetadata, data, "metadata")

    async def search(
        self,
        query: str,
        language: Language = "no",
    ) -> list[SearchResult]:
        """Search tables by free-text query."""
        url = self._table_url(language) + "/"
        data = await self._get_json(url, params={"query": query})
        results: list[SearchResult] = self._validate(_search_adapter, data, "search")
        logger.info(f"Found {len(results)} tables for '{query}'")
        return results

    async def query_table(
        self,
        table_id: str,
        filters: Sequence[QueryFilter],
        language: Language = "no",
    ) -> JsonStat2Dataset:
        """Run a data query and return the JSON-stat2 dataset."""
        body = {
            "query": [f.to_query() for f in filters],
            "response": {"format": "json-stat2"},
        }
        resp = await self._request_with_retry(
            "POST", self._table_url(language, table_id), json=body
        )
        dataset: JsonStat2Dataset = self._validate(JsonStat2Dataset, resp.json(), "json-stat2")
        logger.info(f"Table {table_id}: {len(dataset.value)} values in {len(dataset.id)} dimensions")
        return dataset
