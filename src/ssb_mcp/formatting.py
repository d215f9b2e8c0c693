"""Text rendering of browse listings, search hits, table metadata and query
templates returned by the MCP tools.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from ssb_mcp.models import QueryFilter

if TYPE_CHECKING:
    from collections.abc import Sequence

    from ssb_mcp.models import (
        Language,
        NavigationNode,
        SearchResult,
        TableMetadata,
        TableVariable,
    )

RULE = "─" * 50

# Variables with more values than this are shown as head ... tail
MAX_VALUES_SHOWN = 20
_HEAD_TAIL = 10

# Default number of periods selected for the time variable in templates
TEMPLATE_TOP_PERIODS = "5"

_TEXT: dict[str, dict[str, str]] = {
    "no": {
        "hierarchy": "SSB tabell-hierarki",
        "root": "(root)",
        "updated": "Oppdatert",
        "published": "Publisert",
        "path": "Sti",
        "no_hits": 'Ingen tabeller funnet for søk: "{query}"',
        "hits": 'Søkeresultater for "{query}" ({count} treff)',
        "table": "Tabell",
        "variables": "Variabler / dimensjoner:",
        "code": "kode",
        "time": " ⏱️ (tid)",
        "elimination": " (kan utelates)",
        "omitted": "    ... ({count} verdier utelatt) ...",
        "example": "Eksempel på spørring med ssb_query:",
        "template": "Mal for spørring mot tabell {table_id}: {title}",
        "use_template": "Bruk denne malen med ssb_query-verktøyet:",
        "explanation": "Forklaring:",
        "last_periods": 'Siste {n} perioder av "{text}"',
        "possible": "{count} mulige verdier",
        "tips": "Tips:",
        "tip_all": 'Endre filter til "all" med values ["*"] for å hente alle verdier i en dimensjon',
        "tip_top": 'Endre filter til "top" med values ["10"] for siste 10 perioder',
        "tip_more": "Legg til flere verdier i values-arrayen for å hente flere kombinasjoner",
        "error": "Feil",
    },
    "en": {
        "hierarchy": "SSB table hierarchy",
        "root": "(root)",
        "updated": "Updated",
        "published": "Published",
        "path": "Path",
        "no_hits": 'No tables found for query: "{query}"',
        "hits": 'Search results for "{query}" ({count} hits)',
        "table": "Table",
        "variables": "Variables / dimensions:",
        "code": "code",
        "time": " ⏱️ (time)",
        "elimination": " (may be omitted)",
        "omitted": "    ... ({count} values omitted) ...",
        "example": "Example query with ssb_query:",
        "template": "Query template for table {table_id}: {title}",
        "use_template": "Use this template with the ssb_query tool:",
        "explanation": "Explanation:",
        "last_periods": 'Last {n} periods of "{text}"',
        "possible": "{count} possible values",
        "tips": "Tips:",
        "tip_all": 'Change filter to "all" with values ["*"] to fetch every value of a dimension',
        "tip_top": 'Change filter to "top" with values ["10"] for the last 10 periods',
        "tip_more": "Add more codes to the values array to fetch more combinations",
        "error": "Error",
    },
}


def texts(language: Language) -> dict[str, str]:
    return _TEXT.get(language, _TEXT["no"])


def format_browse(
    nodes: Sequence[NavigationNode],
    path: Sequence[str] | None = None,
    language: Language = "no",
) -> str:
    """Render folders and tables under a hierarchy path."""
    t = texts(language)
    entries: list[str] = []
    for node in nodes:
        if not node.is_table:
            entries.append(f"📁 [{node.id}] {node.text}")
            continue
        variables = f" ({', '.join(node.variables)})" if node.variables else ""
        period = (
            f" | {node.first_period}–{node.last_period}"
            if node.first_period and node.last_period
            else ""
        )
        entry = f"📊 [{node.id}] {node.text}{period}{variables}"
        if node.updated:
            entry += f"\n   {t['updated']}: {node.updated}"
        entries.append(entry)

    path_str = "/".join(path) if path else t["root"]
    return f"{t['hierarchy']}: {path_str}\n{RULE}\n\n" + "\n\n".join(entries)


def format_search_results(
    results: Sequence[SearchResult],
    query: str,
    language: Language = "no",
) -> str:
    t = texts(language)
    if not results:
        return t["no_hits"].format(query=query)

    header = t["hits"].format(query=query, count=len(results))
    entries = [
        f"  📊 [{r.id}] {r.title}\n"
        f"     {t['published']}: {r.published or ''}\n"
        f"     {t['path']}: {r.path}"
        for r in results
    ]
    return f"{header}\n{RULE}\n\n" + "\n\n".join(entries)


def _format_values(variable: TableVariable, omitted_line: str) -> list[str]:
    # A code without a text is shown as itself
    value_texts = variable.value_texts
    pairs = [
        f'    "{code}" = {(value_texts[i] if i < len(value_texts) else "") or code}'
        for i, code in enumerate(variable.values)
    ]
    if len(pairs) <= MAX_VALUES_SHOWN:
        return pairs
    omitted = omitted_line.format(count=len(pairs) - 2 * _HEAD_TAIL)
    return [*pairs[:_HEAD_TAIL], omitted, *pairs[-_HEAD_TAIL:]]


def format_table_info(
    table_id: str,
    metadata: TableMetadata,
    language: Language = "no",
) -> str:
    """Render a table's variables, eliding long value lists, plus an example query."""
    t = texts(language)
    lines = [f"📊 {t['table']} {table_id}: {metadata.title}", RULE, "", t["variables"], ""]

    for v in metadata.variables:
        markers = (t["time"] if v.time else "") + (t["elimination"] if v.elimination else "")
        lines.append(f'▸ {v.text} ({t["code"]}: "{v.code}"){markers}')
        lines.extend(_format_values(v, t["omitted"]))
        lines.append("")

    lines.append(build_query_example(table_id, metadata.variables, language))
    return "\n".join(lines)


def build_query_example(
    table_id: str,
    variables: Sequence[TableVariable],
    language: Language = "no",
) -> str:
    """Return an example ``ssb_query`` call using up to two values per variable."""
    filters = []
    for v in variables:
        if v.time:
            f = {"code": v.code, "filter": "top", "values": [TEMPLATE_TOP_PERIODS]}
        else:
            f = {"code": v.code, "filter": "item", "values": v.values[:2]}
        filters.append("  " + json.dumps(f, ensure_ascii=False))

    return (
        f"{texts(language)['example']}\n\n"
        f'table_id: "{table_id}"\n'
        "filters:\n[\n" + ",\n".join(filters) + "\n]\n"
    )


def template_filters(metadata: TableMetadata) -> list[QueryFilter]:
    """Pick a starting selection: last periods for time, first value otherwise."""
    filters: list[QueryFilter] = []
    for v in metadata.variables:
        if v.time:
            filters.append(QueryFilter(code=v.code, filter="top", values=[TEMPLATE_TOP_PERIODS]))
        else:
            filters.append(QueryFilter(code=v.code, filter="item", values=v.values[:1]))
    return filters


def format_query_template(
    table_id: str,
    metadata: TableMetadata,
    language: Language = "no",
) -> str:
    """Render a ready-to-use JSON query for ``ssb_query`` with explanations."""
    t = texts(language)
    filters = template_filters(metadata)
    template: dict[str, Any] = {
        "table_id": table_id,
        "filters": [f.model_dump() for f in filters],
    }

    lines = [
        t["template"].format(table_id=table_id, title=metadata.title),
        RULE,
        "",
        t["use_template"],
        "",
        "```json",
        json.dumps(template, ensure_ascii=False, indent=2),
        "```",
        "",
        t["explanation"],
    ]
    for v in metadata.variables:
        if v.time:
            comment = t["last_periods"].format(n=TEMPLATE_TOP_PERIODS, text=v.text)
        else:
            first = v.value_texts[0] if v.value_texts else ""
            comment = f'"{v.text}": {first} ({t["possible"].format(count=len(v.values))})'
        lines.append(f"  • {v.code}: {comment}")

    lines += ["", t["tips"]]
    lines += [f"  • {t[key]}" for key in ("tip_all", "tip_top", "tip_more")]
    return "\n".join(lines) + "\n"
