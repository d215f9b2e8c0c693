"""ssb-mcp: SSB API client and MCP server for Statistics Norway.

Quick start::

    import asyncio
    from ssb_mcp import QueryFilter, SSBClient, decode_jsonstat2, render_table

    async def main():
        async with SSBClient() as client:
            # Search for tables
            hits = await client.search("befolkning")
            print(hits[0].title)

            # Get the table's variables
            meta = await client.get_table_metadata(hits[0].id)
            print([v.code for v in meta.variables])

            # Query data and print it as a table
            dataset = await client.query_table(
                "07459",
                [
                    QueryFilter(code="Region", filter="item", values=["0301"]),
                    QueryFilter(code="Tid", filter="top", values=["3"]),
                ],
            )
            print(render_table(decode_jsonstat2(dataset)))

    asyncio.run(main())
"""

from ssb_mcp.client import SSBAPIError, SSBClient
from ssb_mcp.jsonstat import decode_jsonstat2, render_table
from ssb_mcp.models import (
    DecodedTable,
    JsonStat2Dataset,
    NavigationNode,
    QueryFilter,
    SearchResult,
    TableMetadata,
    TableVariable,
)

__all__ = [
    "DecodedTable",
    "JsonStat2Dataset",
    "NavigationNode",
    "QueryFilter",
    "SSBAPIError",
    "SSBClient",
    "SearchResult",
    "TableMetadata",
    "TableVariable",
    "decode_jsonstat2",
    "render_table",
]

__version__ = "0.1.0"
