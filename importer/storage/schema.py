# ------------------------------------------------------------
# Module: importer/storage/schema.py
# Purpose: Engine-neutral column/type vocabulary shared by ingestion and inference.
# ------------------------------------------------------------

"""Logical column types and column specs.

Notes
-----
- `LogicalType` is the vocabulary of the type inference engine; ingestion
  destination tables use the same names so one sink mapping covers both.
- Engines map logical types to their own SQL in the sink.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Literal, get_args

LogicalType = Literal[
    "integer",
    "bigInteger",
    "decimal",
    "float",
    "boolean",
    "datetime",
    "date",
    "string",
    "text",
    "longText",
    "json",
]

LOGICAL_TYPES: frozenset[str] = frozenset(get_args(LogicalType))

STRING_MAX_LEN = 255

# Column names we avoid as-is (suffixed with `_value`).
RESERVED = {"default", "order", "group", "select", "from", "where", "table", "rowid"}


@dataclass(frozen=True)
class ColumnSpec:
    name: str
    type: LogicalType = "text"
    length: int | None = None
    nullable: bool = True
    primary_key: bool = False

    def __post_init__(self) -> None:
        if self.type not in LOGICAL_TYPES:
            raise ValueError(f"unknown logical type {self.type!r} for column {self.name!r}")


def text_columns(names: Iterable[str]) -> list[ColumnSpec]:
    """Untyped (text) specs in the given order."""
    return [ColumnSpec(n, "text") for n in names]


def norm_col(name: str) -> str:
    """Normalize a header/field name into a safe column name.

    Rules:
        - trim whitespace, casefold
        - spaces and non-alphanumerics → underscore (runs collapsed)
        - leading digit gets a `c_` prefix; empty becomes `column`
        - escape reserved words
    """
    n = name.strip().casefold()
    n = re.sub(r"[^0-9a-z_]+", "_", n, flags=re.ASCII).strip("_")
    if not n:
        n = "column"
    if n[0].isdigit():
        n = f"c_{n}"
    if n in RESERVED:
        n = f"{n}_value"
    return n


def unique_names(names: Iterable[str]) -> list[str]:
    """Normalize names and suffix duplicates `_2`, `_3`, ... keeping order."""
    out: list[str] = []
    seen: set[str] = set()
    for raw in names:
        base = norm_col(raw)
        cand, k = base, 1
        while cand in seen:
            k += 1
            cand = f"{base}_{k}"
        seen.add(cand)
        out.append(cand)
    return out
