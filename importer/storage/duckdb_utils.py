# ------------------------------------------------------------
# Module: importer/storage/duckdb_utils.py
# Purpose: Small SQL helpers for the DuckDB sink.
# ------------------------------------------------------------

"""DuckDB helpers: identifier quoting, WHERE building, catalog lookups.

Notes
-----
- Identifiers are always quoted with `_qi`; values always go through `?`
  parameters, never string interpolation.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import duckdb


def _qi(name: str) -> str:
    """Quote an identifier for DuckDB (escaping internal double quotes)."""
    return '"' + name.replace('"', '""') + '"'


def where_clause(conditions: Mapping[str, Any]) -> tuple[str, list[Any]]:
    """Build `WHERE a IS NULL AND b = ?` from a column → value mapping.

    String values compare against the column cast to VARCHAR so a text
    literal (including the empty string) is valid against typed columns.
    """
    if not conditions:
        return "", []
    parts: list[str] = []
    params: list[Any] = []
    for col, val in conditions.items():
        if val is None:
            parts.append(f"{_qi(col)} IS NULL")
        elif isinstance(val, str):
            parts.append(f"CAST({_qi(col)} AS VARCHAR) = ?")
            params.append(val)
        else:
            parts.append(f"{_qi(col)} = ?")
            params.append(val)
    return " WHERE " + " AND ".join(parts), params


def count_rows(con: duckdb.DuckDBPyConnection, table: str) -> int:
    """Return the total number of rows in a DuckDB table or view."""
    return int(con.execute(f"SELECT COUNT(*) FROM {_qi(table)};").fetchone()[0])


def table_exists(con: duckdb.DuckDBPyConnection, table: str) -> bool:
    row = con.execute(
        "SELECT 1 FROM information_schema.tables "
        "WHERE table_schema = current_schema() AND table_name = ? LIMIT 1",
        [table],
    ).fetchone()
    return row is not None


def column_info(con: duckdb.DuckDBPyConnection, table: str) -> list[tuple[str, str]]:
    """Ordered `(column_name, data_type)` pairs for `table`."""
    rows = con.execute(
        "SELECT column_name, data_type FROM information_schema.columns "
        "WHERE table_schema = current_schema() AND table_name = ? "
        "ORDER BY ordinal_position",
        [table],
    ).fetchall()
    return [(r[0], r[1]) for r in rows]
