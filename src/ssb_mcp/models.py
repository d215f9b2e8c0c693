"""Domain models for the SSB (Statistics Norway) PxWeb API.

All public models use Pydantic v2 for validation and serialization.
"""

from __future__ import annotations

import math
from typing import Any, Literal

from pydantic import BaseModel, Field, model_validator

Language = Literal["no", "en"]
FilterType = Literal["item", "all", "top", "agg"]


# ---------------------------------------------------------------------------
# Navigation
# ---------------------------------------------------------------------------


class NavigationNode(BaseModel):
    """A node in the SSB table hierarchy.

    Folder nodes have ``type == "l"`` and only carry ``id`` and ``text``.
    Table nodes have ``type == "t"`` and also report when they were last
    updated, the period range they cover and their variable names.
    """

    type: str
    id: str
    text: str
    updated: str | None = None
    first_period: str | None = Field(default=None, alias="firstPeriod")
    last_period: str | None = Field(default=None, alias="lastPeriod")
    category: str | None = None
    variables: list[str] | None = None

    model_config = {"frozen": True, "populate_by_name": True}

    @property
    def is_table(self) -> bool:
        return self.type == "t"


class SearchResult(BaseModel):
    """A hit from the table search endpoint (a different shape than browse)."""

    id: str
    title: str
    path: str = ""
    score: float = 0.0
    published: str | None = None

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Table metadata
# ---------------------------------------------------------------------------


class TableVariable(BaseModel):
    """A variable (dimension) of a table with its admissible value codes.

    Attributes:
        code: Variable code used in queries (e.g. ``"Region"``).
        text: Display name.
        values: Value codes, parallel to ``value_texts``.
        value_texts: Display labels for ``values``.
        elimination: Whether the variable may be left out of a query.
        time: Whether this is the time variable.
    """

    code: str
    text: str
    values: list[str] = Field(default_factory=list)
    value_texts: list[str] = Field(default_factory=list, alias="valueTexts")
    elimination: bool = False
    time: bool = False

    model_config = {"frozen": True, "populate_by_name": True}


class TableMetadata(BaseModel):
    """Metadata for one table: its title and variables."""

    title: str
    variables: list[TableVariable] = Field(default_factory=list)

    model_config = {"frozen": True}

    def get_variable(self, code: str) -> TableVariable | None:
        for v in self.variables:
            if v.code == code:
                return v
        return None


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


class QueryFilter(BaseModel):
    """Selection of values for one variable in a data query."""

    code: str = Field(description="Variable code from table metadata")
    filter: FilterType = Field(
        default="item",
        description=(
            'Filter type: "item" for specific values, "all" for everything, '
            '"top" for last N, "agg" for aggregation'
        ),
    )
    values: list[str] = Field(
        default_factory=list,
        description=(
            'Value codes to include. For "item": specific codes. '
            'For "top": ["N"]. For "all": ["*"]'
        ),
    )

    model_config = {"frozen": True}

    def to_query(self) -> dict[str, Any]:
        """Return the PxWeb wire form ``{"code": ..., "selection": {...}}``."""
        return {
            "code": self.code,
            "selection": {"filter": self.filter, "values": list(self.values)},
        }


# ---------------------------------------------------------------------------
# JSON-stat2
# ---------------------------------------------------------------------------


class JsonStat2Category(BaseModel):
    """Categories of one dimension.

    ``index`` is either an ordered list of codes or a mapping from code to
    zero-based position.
    """

    index: list[str] | dict[str, int]
    label: dict[str, str] = Field(default_factory=dict)
    unit: dict[str, Any] | None = None

    model_config = {"frozen": True}

    def ordered_codes(self) -> list[str]:
        """Return category codes in position order."""
        if isinstance(self.index, list):
            return list(self.index)
        return [code for code, _ in sorted(self.index.items(), key=lambda kv: kv[1])]


class JsonStat2Dimension(BaseModel):
    label: str = ""
    category: JsonStat2Category

    model_config = {"frozen": True}


class JsonStat2Dataset(BaseModel):
    """A JSON-stat2 dataset as returned by a data query.

    The ``value`` array is the row-major linearization of the cube described
    by ``id`` and ``size``: the last dimension varies fastest.

    Construction validates the structure of the cube, so the decoder can
    rely on it:

    - ``id`` and ``size`` have the same length,
    - every dimension id has an entry in ``dimension``,
    - each dimension has exactly ``size[d]`` categories,
    - ``len(value) == prod(size)``.

    A sparse ``value`` object (``{"<flat index>": value}``) is expanded to a
    dense list with ``None`` for the missing positions.
    """

    version: str | None = None
    class_: str | None = Field(default=None, alias="class")
    label: str = ""
    source: str = ""
    updated: str = ""
    id: list[str]
    size: list[int]
    dimension: dict[str, JsonStat2Dimension]
    value: list[int | float | None] = Field(default_factory=list)
    status: Any = None
    role: dict[str, list[str]] | None = None
    note: list[str] | None = None

    model_config = {"frozen": True, "populate_by_name": True}

    @model_validator(mode="before")
    @classmethod
    def _densify_values(cls, data: Any) -> Any:
        if not isinstance(data, dict) or not isinstance(data.get("value"), dict):
            return data
        sizes = data.get("size") or []
        dense: list[Any] = [None] * math.prod(int(s) for s in sizes)
        for key, val in data["value"].items():
            pos = int(key)
            if 0 <= pos < len(dense):
                dense[pos] = val
        return {**data, "value": dense}

    @model_validator(mode="after")
    def _check_structure(self) -> JsonStat2Dataset:
        if len(self.id) != len(self.size):
            raise ValueError(
                f"id has {len(self.id)} dimensions but size has {len(self.size)}"
            )
        for dim_id, size in zip(self.id, self.size):
            dim = self.dimension.get(dim_id)
            if dim is None:
                raise ValueError(f"dimension {dim_id!r} is listed in id but not described")
            n_categories = len(dim.category.ordered_codes())
            if n_categories != size:
                raise ValueError(
                    f"dimension {dim_id!r} has {n_categories} categories but size {size}"
                )
        expected = math.prod(self.size)
        if len(self.value) != expected:
            raise ValueError(f"value has {len(self.value)} entries, expected {expected}")
        return self


# ---------------------------------------------------------------------------
# DecodedTable
# ---------------------------------------------------------------------------


class DecodedTable(BaseModel):
    """A JSON-stat2 dataset flattened into rows.

    Attributes:
        title: Dataset title.
        source: Data source attribution.
        updated: Last-updated timestamp as reported by the API.
        columns: One column per dimension (its display label) followed by
            the value column.
        rows: One mapping per decoded value, keyed by column name.
        total_rows: Number of values in the dataset before truncation.
        truncated: Whether fewer rows than ``total_rows`` were decoded.
    """

    title: str = ""
    source: str = ""
    updated: str = ""
    columns: list[str] = Field(default_factory=list)
    rows: list[dict[str, str | int | float | None]] = Field(default_factory=list)
    total_rows: int = 0
    truncated: bool = False

    model_config = {"frozen": True}

    def to_dicts(self) -> list[dict[str, Any]]:
        """Return a copy of the rows as plain dictionaries in column order."""
        return [{col: row.get(col) for col in self.columns} for row in self.rows]

    def to_polars(self) -> Any:
        """Convert the decoded rows to a Polars DataFrame.

        Requires polars to be installed (pip install ssb-mcp[polars]).

        Raises:
            ImportError: If polars is not installed.
        """
        try:
            import polars as pl
        except ImportError:
            raise ImportError(
                "polars is required for to_polars(). "
                "Install it with: pip install ssb-mcp[polars]"
            ) from None

        if not self.rows:
            return pl.DataFrame(schema=self.columns)

        return pl.DataFrame(self.to_dicts())
