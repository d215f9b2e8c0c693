"""MCP server exposing SSB tools to LLMs via FastMCP.

This module defines the MCP (Model Context Protocol) server that allows
AI assistants to browse, search, inspect and query Norwegian statistics
from Statistics Norway (SSB).

Usage with Claude Desktop (add to ``claude_desktop_config.json``)::

    {
      "mcpServers": {
        "ssb": {
          "command": "uvx",
          "args": ["ssb-mcp", "serve"]
        }
      }
    }
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Annotated, Any, NoReturn

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

import httpx
from fastmcp import FastMCP
from fastmcp.exceptions import ToolError
from loguru import logger
from pydantic import Field

from ssb_mcp.client import SSBAPIError, SSBClient
from ssb_mcp.formatting import (
    format_browse,
    format_query_template,
    format_search_results,
    format_table_info,
    texts,
)
from ssb_mcp.jsonstat import DEFAULT_MAX_ROWS, decode_jsonstat2, render_table
from ssb_mcp.models import Language, QueryFilter

# Lazily initialized client with lock for concurrent-safe access
_client: SSBClient | None = None
_client_lock = asyncio.Lock()

LanguageParam = Annotated[
    Language,
    Field(description='Language: "no" (Norwegian, default) or "en" (English)'),
]


async def _get_client() -> SSBClient:
    """Return the shared SSBClient, creating it on first call.

    Uses double-checked locking to avoid race conditions when
    multiple MCP tool calls arrive concurrently.
    """
    global _client
    if _client is not None:
        return _client
    async with _client_lock:
        if _client is None:
            _client = SSBClient()
    return _client


@asynccontextmanager
async def _lifespan(server: FastMCP[dict[str, Any]]) -> AsyncIterator[dict[str, Any]]:
    """Manage SSBClient lifecycle — close httpx.AsyncClient on shutdown."""
    yield {}
    if _client is not None:
        await _client.close()


def _fail(error: Exception, language: Language) -> NoReturn:
    logger.warning(f"Tool call failed: {error}")
    raise ToolError(f"{texts(language)['error']}: {error}") from error


# Errors reported back to the caller as tool errors
_TOOL_ERRORS = (SSBAPIError, httpx.HTTPError, ValueError)


mcp = FastMCP(
    name="ssb-statistics",
    lifespan=_lifespan,
    instructions=(
        "SSB MCP server provides tools for accessing official Norwegian "
        "statistics from Statistics Norway (Statistisk sentralbyrå, SSB).\n\n"
        "Typical workflow:\n"
        "1. ssb_search or ssb_browse to find a table ID\n"
        "2. ssb_table_info to see the table's variables and value codes\n"
        "3. ssb_query_builder for a ready-made starting query\n"
        "4. ssb_query to fetch the data as a table\n\n"
        "Tables cover population, labour, prices, national accounts, "
        "housing, education, health and regional statistics. Results can be "
        'requested in Norwegian ("no") or English ("en").'
    ),
)


@mcp.tool()
async def ssb_browse(
    path: Annotated[
        list[str] | None,
        Field(
            description=(
                'Path segments to browse, e.g. ["be"] for the population subject. '
                "Empty or omitted for root."
            ),
        ),
    ] = None,
    language: LanguageParam = "no",
) -> str:
    """Browse the SSB table hierarchy. Returns categories and tables.

    Call with no path to see top-level subject areas. Provide path segments
    to drill deeper.
    """
    client = await _get_client()
    try:
        nodes = await client.browse(path or [], language=language)
    except _TOOL_ERRORS as e:
        _fail(e, language)
    return format_browse(nodes, path, language)


@mcp.tool()
async def ssb_search(
    query: Annotated[
        str,
        Field(description='Search query, e.g. "befolkning oslo" or "unemployment rate"'),
    ],
    language: LanguageParam = "no",
) -> str:
    """Search for SSB tables by keywords.

    Returns matching tables with IDs that can be used with ssb_table_info
    and ssb_query.
    """
    client = await _get_client()
    try:
        results = await client.search(query, language=language)
    except _TOOL_ERRORS as e:
        _fail(e, language)
    return format_search_results(results, query, language)


@mcp.tool()
async def ssb_table_info(
    table_id: Annotated[str, Field(description='Table ID, e.g. "07459" or "11342"')],
    language: LanguageParam = "no",
) -> str:
    """Get detailed metadata for an SSB table.

    Lists all variables/dimensions and their possible values. Use this
    before ssb_query to understand what filters are available.
    """
    client = await _get_client()
    try:
        metadata = await client.get_table_metadata(table_id, language=language)
    except _TOOL_ERRORS as e:
        _fail(e, language)
    return format_table_info(table_id, metadata, language)


@mcp.tool()
async def ssb_query(
    table_id: Annotated[str, Field(description='Table ID, e.g. "07459"')],
    filters: Annotated[
        list[QueryFilter],
        Field(description="Variable filters. Each variable in the table should have a filter."),
    ],
    language: LanguageParam = "no",
    max_rows: Annotated[
        int,
        Field(
            description="Maximum rows to return (default: 50). Use smaller values for large tables.",
            ge=0,
        ),
    ] = DEFAULT_MAX_ROWS,
) -> str:
    """Query statistical data from an SSB table. Returns a formatted table.

    Use ssb_table_info first to see available variables and value codes.
    Filter types:
    - "item" with specific value codes
    - "top" with ["N"] for the last N time periods
    - "all" with ["*"] for all values
    """
    client = await _get_client()
    try:
        dataset = await client.query_table(table_id, filters, language=language)
    except _TOOL_ERRORS as e:
        _fail(e, language)
    decoded = decode_jsonstat2(dataset, max_rows, language)
    return render_table(decoded, language)


@mcp.tool()
async def ssb_query_builder(
    table_id: Annotated[str, Field(description='Table ID, e.g. "07459"')],
    language: LanguageParam = "no",
) -> str:
    """Generate a ready-to-use query template for an SSB table.

    Selects the last 5 time periods and the first value of every other
    variable. Useful as a starting point that you can modify.
    """
    client = await _get_client()
    try:
        metadata = await client.get_table_metadata(table_id, language=language)
    except _TOOL_ERRORS as e:
        _fail(e, language)
    return format_query_template(table_id, metadata, language)
