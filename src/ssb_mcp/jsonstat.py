"""JSON-stat2 decoding and table rendering.

A JSON-stat2 dataset stores an N-dimensional cube as a flat ``value`` array
plus per-dimension category metadata. The position of a value in the array
encodes one category per dimension in row-major order (the last dimension
varies fastest), so position ``i`` is decoded by dividing through a table
of strides::

    id     = ["year", "region"]
    size   = [2, 3]
    stride = [3, 1]

    i = 4  ->  year = 4 // 3 = 1, region = 4 % 3 = 1  ->  ("2024", "B")

:func:`decode_jsonstat2` turns a dataset into a :class:`DecodedTable` of
flat rows and :func:`render_table` turns that into markdown text suitable
for an LLM.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING

from loguru import logger

from ssb_mcp.models import DecodedTable, JsonStat2Dataset, Language

if TYPE_CHECKING:
    from collections.abc import Sequence

DEFAULT_MAX_ROWS = 50

# Placeholder for a null value in rendered tables
MISSING_VALUE = "-"

_NBSP = "\u00a0"
_MINUS = "\u2212"
_HUNDREDTHS = Decimal("0.01")

_TEXT: dict[str, dict[str, str]] = {
    "no": {
        "value": "Verdi",
        "source": "Kilde",
        "updated": "Oppdatert",
        "no_data": "Ingen data funnet.",
        "truncated": "Viser {shown} av {total} rader. Bruk filtre for å begrense resultatet.",
    },
    "en": {
        "value": "Value",
        "source": "Source",
        "updated": "Updated",
        "no_data": "No data found.",
        "truncated": "Showing {shown} of {total} rows. Use filters to narrow the result.",
    },
}


@dataclass(frozen=True)
class Category:
    code: str
    label: str


@dataclass(frozen=True)
class UnresolvedCategory:
    """Stands in for a category index outside a dimension's category list."""

    index: int

    @property
    def label(self) -> str:
        return f"Unknown({self.index})"


@dataclass(frozen=True)
class _Dimension:
    id: str
    label: str
    categories: tuple[Category, ...]

    def category_at(self, index: int) -> Category | UnresolvedCategory:
        if 0 <= index < len(self.categories):
            return self.categories[index]
        return UnresolvedCategory(index)


def _texts(language: str) -> dict[str, str]:
    return _TEXT.get(language, _TEXT["no"])


def _resolve_dimensions(dataset: JsonStat2Dataset) -> list[_Dimension]:
    """Build the ordered category list of every dimension, in ``id`` order."""
    dimensions: list[_Dimension] = []
    for dim_id in dataset.id:
        dim = dataset.dimension[dim_id]
        labels = dim.category.label
        categories = tuple(
            Category(code=code, label=labels.get(code) or code)
            for code in dim.category.ordered_codes()
        )
        dimensions.append(_Dimension(id=dim_id, label=dim.label or dim_id, categories=categories))
    return dimensions


def _column_names(dimensions: Sequence[_Dimension], value_column: str) -> list[str]:
    """Return one unique column name per dimension plus the value column.

    A dimension whose label is already taken is disambiguated with its id,
    then with a counter if that name is taken too.
    """
    columns: list[str] = []
    taken = {value_column}
    for dim in dimensions:
        name = dim.label
        if name in taken:
            name = base = f"{dim.label} ({dim.id})"
            n = 2
            while name in taken:
                name = f"{base} #{n}"
                n += 1
        taken.add(name)
        columns.append(name)
    columns.append(value_column)
    return columns


def compute_strides(sizes: Sequence[int]) -> list[int]:
    """Return row-major strides: the last dimension has stride 1."""
    strides = [1] * len(sizes)
    for d in range(len(sizes) - 2, -1, -1):
        strides[d] = strides[d + 1] * sizes[d + 1]
    return strides


def decode_index(flat_index: int, strides: Sequence[int]) -> list[int]:
    """Split a flat value position into one category index per dimension."""
    indices: list[int] = []
    remaining = flat_index
    for stride in strides:
        indices.append(remaining // stride)
        remaining %= stride
    return indices


def decode_jsonstat2(
    dataset: JsonStat2Dataset,
    max_rows: int = DEFAULT_MAX_ROWS,
    language: Language = "no",
) -> DecodedTable:
    """Flatten a JSON-stat2 dataset into at most ``max_rows`` rows.

    Rows come out in ascending flat-index order, i.e. the cartesian product
    of the category lists with the last dimension varying fastest. A
    category index outside its dimension's list is rendered as
    ``Unknown(<index>)`` instead of failing the decode.

    Args:
        dataset: A validated dataset.
        max_rows: Maximum number of rows to decode. Zero or less yields no
            rows but still reports ``total_rows``.
        language: Selects the name of the value column.

    Returns:
        The decoded table. ``total_rows`` is always ``len(dataset.value)``.
    """
    dimensions = _resolve_dimensions(dataset)
    columns = _column_names(dimensions, _texts(language)["value"])
    value_column = columns[-1]
    strides = compute_strides(dataset.size)

    total_rows = len(dataset.value)
    limit = min(total_rows, max(max_rows, 0))

    rows: list[dict[str, str | int | float | None]] = []
    for flat_index in range(limit):
        row: dict[str, str | int | float | None] = {}
        for dim, column, cat_index in zip(dimensions, columns, decode_index(flat_index, strides)):
            row[column] = dim.category_at(cat_index).label
        row[value_column] = dataset.value[flat_index]
        rows.append(row)

    logger.debug(f"Decoded {len(rows)}/{total_rows} rows across {len(dimensions)} dimensions")

    return DecodedTable(
        title=dataset.label,
        source=dataset.source,
        updated=dataset.updated,
        columns=columns,
        rows=rows,
        total_rows=total_rows,
        truncated=total_rows > max_rows,
    )


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------


def format_number(value: int | float, language: Language = "no") -> str:
    """Format a number with thousands separators.

    Integral values get no decimals; others are rounded half away from zero
    to at most two. Norwegian output uses a non-breaking space for grouping,
    a decimal comma and a true minus sign.
    """
    if isinstance(value, int):
        text = f"{value:,}"
    elif value.is_integer():
        text = f"{value:,.0f}"
    else:
        rounded = Decimal(repr(value)).quantize(_HUNDREDTHS, rounding=ROUND_HALF_UP)
        text = f"{rounded:,.2f}".rstrip("0").rstrip(".")
    if text == "-0":
        text = "0"
    if language == "en":
        return text
    return (
        text.replace(",", _NBSP)
        .replace(".", ",")
        .replace("-", _MINUS)
    )


def _format_cell(value: str | int | float | None, language: Language) -> str:
    if value is None:
        return MISSING_VALUE
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return format_number(value, language)
    return str(value).replace("|", "\\|")


def render_table(table: DecodedTable, language: Language = "no") -> str:
    """Render a decoded table as a header block plus a markdown table."""
    texts = _texts(language)
    lines = [
        f"📊 {table.title}",
        f"{texts['source']}: {table.source}",
        f"{texts['updated']}: {table.updated}",
        "",
    ]

    if not table.rows:
        lines.append(texts["no_data"])
        return "\n".join(lines)

    headers = [h.replace("|", "\\|") for h in table.columns]
    lines.append("| " + " | ".join(headers) + " |")
    lines.append("| " + " | ".join("---" for _ in headers) + " |")
    for row in table.rows:
        cells = [_format_cell(row.get(col), language) for col in table.columns]
        lines.append("| " + " | ".join(cells) + " |")

    if table.truncated:
        lines.append("")
        notice = texts["truncated"].format(shown=len(table.rows), total=table.total_rows)
        lines.append(f"⚠️ {notice}")

    return "\n".join(lines)
