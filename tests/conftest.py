"""Shared test fixtures for ssb-mcp."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import pytest

from ssb_mcp.models import (
    JsonStat2Dataset,
    NavigationNode,
    SearchResult,
    TableMetadata,
    TableVariable,
)


def make_dataset_payload(
    sizes: list[int],
    values: list[Any] | None = None,
) -> dict[str, Any]:
    """Build a JSON-stat2 payload with dimensions ``d0, d1, ...``.

    Category ``k`` of dimension ``d`` has code ``"d-k"`` and label ``"Dd K"``.
    """
    ids = [f"d{i}" for i in range(len(sizes))]
    dimension = {}
    for d, size in enumerate(sizes):
        codes = [f"{d}-{k}" for k in range(size)]
        dimension[ids[d]] = {
            "label": f"dim{d}",
            "category": {
                "index": {code: k for k, code in enumerate(codes)},
                "label": {code: f"D{d} {k}" for k, code in enumerate(codes)},
            },
        }
    total = 1
    for size in sizes:
        total *= size
    return {
        "label": "Synthetic",
        "source": "Test",
        "updated": "2024-01-01T00:00:00Z",
        "id": ids,
        "size": sizes,
        "dimension": dimension,
        "value": values if values is not None else list(range(total)),
    }


@pytest.fixture()
def make_payload() -> Callable[..., dict[str, Any]]:
    return make_dataset_payload


@pytest.fixture()
def year_region_payload() -> dict[str, Any]:
    """Two years by three regions, values 1..6."""
    return {
        "version": "2.0",
        "class": "dataset",
        "label": "Befolkning etter region og år",
        "source": "Statistisk sentralbyrå",
        "updated": "2024-02-21T07:00:00Z",
        "id": ["year", "region"],
        "size": [2, 3],
        "dimension": {
            "year": {
                "label": "year",
                "category": {
                    "index": {"2023": 0, "2024": 1},
                    "label": {"2023": "2023", "2024": "2024"},
                },
            },
            "region": {
                "label": "region",
                "category": {
                    "index": ["A", "B", "C"],
                    "label": {"A": "A", "B": "B", "C": "C"},
                },
            },
        },
        "value": [1, 2, 3, 4, 5, 6],
        "role": {"time": ["year"], "geo": ["region"]},
    }


@pytest.fixture()
def year_region(year_region_payload: dict[str, Any]) -> JsonStat2Dataset:
    return JsonStat2Dataset.model_validate(year_region_payload)


@pytest.fixture()
def sample_metadata() -> TableMetadata:
    """Metadata for a population table with region, contents and time."""
    return TableMetadata(
        title="07459: Befolkning, etter region, statistikkvariabel og år",
        variables=[
            TableVariable(
                code="Region",
                text="region",
                values=["0", "0301", "1103"],
                value_texts=["Hele landet", "Oslo", "Stavanger"],
                elimination=True,
            ),
            TableVariable(
                code="ContentsCode",
                text="statistikkvariabel",
                values=["Personer1"],
                value_texts=["Personer"],
            ),
            TableVariable(
                code="Tid",
                text="år",
                values=["2022", "2023", "2024"],
                value_texts=["2022", "2023", "2024"],
                time=True,
            ),
        ],
    )


@pytest.fixture()
def sample_nodes() -> list[NavigationNode]:
    return [
        NavigationNode(type="l", id="be", text="Befolkning"),
        NavigationNode.model_validate(
            {
                "type": "t",
                "id": "07459",
                "text": "Befolkning, etter region",
                "updated": "2024-02-21T07:00:00",
                "firstPeriod": "1986",
                "lastPeriod": "2024",
                "variables": ["region", "år"],
            }
        ),
    ]


@pytest.fixture()
def sample_search_results() -> list[SearchResult]:
    return [
        SearchResult(
            id="07459",
            title="Befolkning, etter region, statistikkvariabel og år",
            path="/be/be01/folkemengde/",
            score=12.5,
            published="2024-02-21T08:00:00",
        ),
    ]
