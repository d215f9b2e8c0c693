"""Quick start example for ssb-mcp.

No API key is needed; the SSB API is open.

Usage:
    uv run python examples/quickstart.py
"""

import asyncio

from ssb_mcp import SSBClient, decode_jsonstat2, render_table
from ssb_mcp.formatting import template_filters


async def main() -> None:
    async with SSBClient() as client:
        # 1. Search for population tables
        print("=== Search: befolkning ===")
        results = await client.search("befolkning")
        for r in results[:5]:
            print(f"  {r.id}  {r.title}")

        if not results:
            print("  No tables found.")
            return

        # 2. Inspect the first table
        table_id = results[0].id
        print(f"\n=== Metadata for {table_id} ===")
        meta = await client.get_table_metadata(table_id)
        print(f"  {meta.title}")
        for v in meta.variables:
            kind = " (time)" if v.time else ""
            print(f"    {v.code}: {v.text}{kind}, {len(v.values)} values")

        # 3. Query the last periods with the first value of every other variable
        print(f"\n=== Data for {table_id} ===")
        dataset = await client.query_table(table_id, template_filters(meta))
        decoded = decode_jsonstat2(dataset, max_rows=20)
        print(render_table(decoded))


if __name__ == "__main__":
    asyncio.run(main())
