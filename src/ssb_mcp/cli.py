"""Command-line interface for ssb-mcp.

Provides these commands:
- ``ssb-mcp search``: Search for tables
- ``ssb-mcp browse``: Browse the table hierarchy
- ``ssb-mcp info``: Show a table's variables
- ``ssb-mcp template``: Print a starting query for a table
- ``ssb-mcp query``: Fetch data as a table
- ``ssb-mcp test``: Test connectivity
- ``ssb-mcp serve``: Start the MCP server
"""

from __future__ import annotations

import asyncio
import json
import sys
from typing import TYPE_CHECKING, Literal, cast, get_args

import click
import httpx
from loguru import logger

from ssb_mcp.client import SSBAPIError
from ssb_mcp.models import FilterType, QueryFilter

if TYPE_CHECKING:
    from ssb_mcp.models import JsonStat2Dataset, Language, SearchResult

_API_ERRORS = (SSBAPIError, httpx.HTTPError, json.JSONDecodeError)

_language_option = click.option(
    "--language",
    "-l",
    type=click.Choice(["no", "en"]),
    default="no",
    help="Response language (default: no).",
)


def _handle_api_error(e: Exception, prefix: str = "Error") -> None:
    """Print an API error message to stderr and exit with code 1."""
    click.echo(f"{prefix}: {e}", err=True)
    raise SystemExit(1) from None


def parse_filter(spec: str) -> QueryFilter:
    """Parse ``CODE:FILTER:V1,V2`` (or ``CODE:V1,V2`` for item) into a filter."""
    parts = spec.split(":", 2)
    if len(parts) == 2:
        code, raw_values = parts
        filter_type = "item"
    elif len(parts) == 3:
        code, filter_type, raw_values = parts
    else:
        raise click.BadParameter(f"expected CODE:FILTER:VALUES, got {spec!r}")

    if filter_type not in get_args(FilterType):
        raise click.BadParameter(
            f"unknown filter type {filter_type!r} in {spec!r} "
            f"(choose from {', '.join(get_args(FilterType))})"
        )
    values = [v.strip() for v in raw_values.split(",") if v.strip()]
    if not code or not values:
        raise click.BadParameter(f"expected CODE:FILTER:VALUES, got {spec!r}")
    return QueryFilter(code=code, filter=cast("FilterType", filter_type), values=values)


def _parse_filters(
    ctx: click.Context, param: click.Parameter, value: tuple[str, ...]
) -> list[QueryFilter]:
    return [parse_filter(v) for v in value]


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
def cli(verbose: bool) -> None:
    """SSB (Statistics Norway) API client and MCP server."""
    level = "DEBUG" if verbose else "INFO"
    logger.remove()
    logger.add(sys.stderr, level=level, format="{time:HH:mm:ss} | {level:<7} | {message}")


@cli.command()
@click.argument("query")
@_language_option
@click.option("--limit", "-n", default=20, help="Max results to show (default: 20).")
@click.option(
    "--format",
    "-f",
    "fmt",
    type=click.Choice(["table", "json"]),
    default="table",
    help="Output format.",
)
def search(query: str, language: Language, limit: int, fmt: str) -> None:
    """Search for tables by keyword.

    Examples:

        ssb-mcp search befolkning

        ssb-mcp search "unemployment rate" --language en --limit 5

        ssb-mcp search kpi --format json
    """
    from ssb_mcp.client import SSBClient

    async def _run() -> list[SearchResult]:
        async with SSBClient() as client:
            return await client.search(query, language=language)

    try:
        results = asyncio.run(_run())[:limit]
    except _API_ERRORS as e:
        _handle_api_error(e)

    if fmt == "json":
        click.echo(json.dumps([r.model_dump() for r in results], ensure_ascii=False, indent=2))
        return

    if not results:
        click.echo(f"No tables found for '{query}'")
        return

    click.echo(f"Found {len(results)} tables:\n")
    click.echo(f"{'ID':<8} {'Published':<12} Title")
    click.echo("-" * 80)
    for r in results:
        published = (r.published or "")[:10]
        click.echo(f"{r.id:<8} {published:<12} {r.title}")


@cli.command()
@click.argument("path", nargs=-1)
@_language_option
def browse(path: tuple[str, ...], language: Language) -> None:
    """Browse the table hierarchy.

    Examples:

        ssb-mcp browse

        ssb-mcp browse be be01
    """
    from ssb_mcp.client import SSBClient
    from ssb_mcp.formatting import format_browse

    async def _run() -> str:
        async with SSBClient() as client:
            nodes = await client.browse(list(path), language=language)
        return format_browse(nodes, list(path), language)

    try:
        click.echo(asyncio.run(_run()))
    except _API_ERRORS as e:
        _handle_api_error(e)


@cli.command()
@click.argument("table_id")
@_language_option
def info(table_id: str, language: Language) -> None:
    """Show variables and value codes of a table.

    Examples:

        ssb-mcp info 07459
    """
    from ssb_mcp.client import SSBClient
    from ssb_mcp.formatting import format_table_info

    async def _run() -> str:
        async with SSBClient() as client:
            metadata = await client.get_table_metadata(table_id, language=language)
        return format_table_info(table_id, metadata, language)

    try:
        click.echo(asyncio.run(_run()))
    except _API_ERRORS as e:
        _handle_api_error(e)


@cli.command()
@click.argument("table_id")
@_language_option
def template(table_id: str, language: Language) -> None:
    """Print a starting query for a table.

    Examples:

        ssb-mcp template 07459 --language en
    """
    from ssb_mcp.client import SSBClient
    from ssb_mcp.formatting import format_query_template

    async def _run() -> str:
        async with SSBClient() as client:
            metadata = await client.get_table_metadata(table_id, language=language)
        return format_query_template(table_id, metadata, language)

    try:
        click.echo(asyncio.run(_run()))
    except _API_ERRORS as e:
        _handle_api_error(e)


@cli.command()
@click.argument("table_id")
@click.option(
    "--filter",
    "-F",
    "filters",
    multiple=True,
    callback=_parse_filters,
    help="Variable filter CODE:FILTER:VALUES, e.g. Tid:top:5 or Region:item:0301,1103.",
)
@_language_option
@click.option("--max-rows", "-n", default=50, help="Max rows to show (default: 50).")
@click.option(
    "--format",
    "-f",
    "fmt",
    type=click.Choice(["table", "json"]),
    default="table",
    help="Output format.",
)
def query(
    table_id: str,
    filters: list[QueryFilter],
    language: Language,
    max_rows: int,
    fmt: str,
) -> None:
    """Fetch data from a table.

    Examples:

        ssb-mcp query 07459 -F Region:item:0301 -F Tid:top:3

        ssb-mcp query 07459 -F Region:0301 -F Tid:top:3 --format json
    """
    from ssb_mcp.client import SSBClient
    from ssb_mcp.jsonstat import decode_jsonstat2, render_table

    async def _run() -> JsonStat2Dataset:
        async with SSBClient() as client:
            return await client.query_table(table_id, filters, language=language)

    try:
        dataset = asyncio.run(_run())
    except _API_ERRORS as e:
        _handle_api_error(e)

    decoded = decode_jsonstat2(dataset, max_rows, language)
    if fmt == "json":
        click.echo(json.dumps(decoded.model_dump(), ensure_ascii=False, indent=2))
        return
    click.echo(render_table(decoded, language))


@cli.command("test")
def test_connection() -> None:
    """Test connectivity to the SSB API.

    Makes a lightweight search call and reports the result.

    Examples:

        ssb-mcp test
    """
    from ssb_mcp import __version__
    from ssb_mcp.client import SSBClient

    click.echo(f"ssb-mcp v{__version__}\n")
    click.echo("Testing API connectivity...")

    async def _test() -> str:
        async with SSBClient() as client:
            results = await client.search("befolkning")
            if results:
                return f"Found {len(results)} results (e.g. {results[0].title})"
            return "API responded but no results for test query"

    try:
        result = asyncio.run(_test())
        click.echo(f"[OK]   {result}")
    except _API_ERRORS as e:
        _handle_api_error(e, prefix="[FAIL] API error")

    click.echo("\nAll checks passed.")


@cli.command()
def version() -> None:
    """Show version information."""
    from ssb_mcp import __version__

    click.echo(f"ssb-mcp {__version__}")


@cli.command()
@click.option(
    "--transport",
    type=click.Choice(["stdio", "sse"]),
    default="stdio",
    help="MCP transport protocol.",
)
def serve(transport: str) -> None:
    """Start the SSB MCP server.

    For Claude Desktop, add this to your config:

        {"mcpServers": {"ssb": {"command": "uvx", "args": ["ssb-mcp", "serve"]}}}
    """
    from ssb_mcp.server import mcp

    logger.info(f"Starting SSB MCP server ({transport} transport)")
    mcp.run(transport=cast('Literal["stdio", "sse"]', transport))


if __name__ == "__main__":
    cli()
