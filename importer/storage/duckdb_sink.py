# ------------------------------------------------------------
# Module: importer/storage/duckdb_sink.py
# Purpose: DuckDB implementation of the Storage Sink contract.
# ------------------------------------------------------------

"""DuckDB-backed Storage Sink.

Responsibilities
----------------
- Create tables from logical column specs and evolve them additively.
- Insert row batches atomically (one transaction per call).
- Serve the statistics primitives used by type inference.

Notes
-----
- Logical → SQL: integer INTEGER, bigInteger BIGINT, decimal DECIMAL(18,4),
  float DOUBLE, boolean BOOLEAN, datetime TIMESTAMP, date DATE, json JSON,
  string/text/longText VARCHAR.
- Statistics compare values cast to VARCHAR and ignore NULL and '' so they
  behave the same on text and typed tables.
- Row order is insertion order (`rowid`), which keeps sampling deterministic.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any

import duckdb

from importer.core.config import Settings, settings as default_settings
from importer.ingest.errors import SchemaError, StorageError

from .duckdb_connection import open_duckdb
from .duckdb_utils import _qi, column_info, count_rows, table_exists, where_clause
from .schema import ColumnSpec

log = logging.getLogger("storage.duckdb")

SQL_TYPES: dict[str, str] = {
    "integer": "INTEGER",
    "bigInteger": "BIGINT",
    "decimal": "DECIMAL(18,4)",
    "float": "DOUBLE",
    "boolean": "BOOLEAN",
    "datetime": "TIMESTAMP",
    "date": "DATE",
    "string": "VARCHAR",
    "text": "VARCHAR",
    "longText": "VARCHAR",
    "json": "JSON",
}


def _column_sql(col: ColumnSpec) -> str:
    sql = f"{_qi(col.name)} {SQL_TYPES[col.type]}"
    if not col.nullable:
        sql += " NOT NULL"
    return sql


def _non_empty(column: str) -> str:
    c = _qi(column)
    return f"{c} IS NOT NULL AND CAST({c} AS VARCHAR) <> ''"


class DuckDBSink:
    """Storage Sink over one DuckDB connection (owned unless passed in)."""

    def __init__(self, con: duckdb.DuckDBPyConnection, owns_connection: bool = False) -> None:
        self.con = con
        self._owns = owns_connection

    @classmethod
    def open(cls, db_path: Path | str = ":memory:", cfg: Settings | None = None) -> "DuckDBSink":
        cfg = cfg or default_settings
        con = open_duckdb(db_path, threads=cfg.DUCKDB_THREADS, mem=cfg.DUCKDB_MEM)
        return cls(con, owns_connection=True)

    def close(self) -> None:
        if self._owns:
            self.con.close()

    def __enter__(self) -> "DuckDBSink":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    # ---- schema ----------------------------------------------------------
    def table_exists(self, name: str) -> bool:
        return table_exists(self.con, name)

    def create_table_from_schema(self, name: str, columns: Sequence[ColumnSpec]) -> None:
        if not columns:
            raise SchemaError(f"cannot create table '{name}' without columns")
        parts = [_column_sql(c) for c in columns]
        pk = [c.name for c in columns if c.primary_key]
        if pk:
            parts.append("PRIMARY KEY (" + ", ".join(_qi(c) for c in pk) + ")")
        sql = f"CREATE TABLE {_qi(name)} (" + ", ".join(parts) + ")"
        try:
            self.con.execute(sql)
        except duckdb.Error as e:
            raise SchemaError(f"create table failed table='{name}'") from e
        log.debug("created table=%s columns=%d", name, len(columns))

    def add_column(self, table: str, column: ColumnSpec) -> None:
        try:
            self.con.execute(f"ALTER TABLE {_qi(table)} ADD COLUMN {_column_sql(column)}")
        except duckdb.Error as e:
            raise SchemaError(f"add column failed table='{table}' column='{column.name}'") from e
        log.info("schema evolved table=%s added=%s", table, column.name)

    def get_columns(self, table: str) -> list[str]:
        return [name for name, _ in column_info(self.con, table)]

    def column_types(self, table: str) -> dict[str, str]:
        """Engine data types by column (diagnostics and tests)."""
        return dict(column_info(self.con, table))

    def drop_table(self, name: str) -> None:
        self.con.execute(f"DROP TABLE IF EXISTS {_qi(name)}")

    # ---- rows ------------------------------------------------------------
    def insert_batch(self, table: str, rows: Sequence[Mapping[str, Any]]) -> int:
        """Insert all rows in one transaction; raise `StorageError` on any failure."""
        if not rows:
            return 0
        cols: list[str] = []
        seen: set[str] = set()
        for r in rows:
            for k in r:
                if k not in seen:
                    seen.add(k)
                    cols.append(k)
        sql = (
            f"INSERT INTO {_qi(table)} ("
            + ", ".join(_qi(c) for c in cols)
            + ") VALUES ("
            + ", ".join("?" for _ in cols)
            + ")"
        )
        params = [[r.get(c) for c in cols] for r in rows]
        try:
            self.con.execute("BEGIN TRANSACTION")
            self.con.executemany(sql, params)
            self.con.execute("COMMIT")
        except duckdb.Error as e:
            try:
                self.con.execute("ROLLBACK")
            except duckdb.Error:
                log.debug("rollback after failed insert raised", exc_info=True)
            raise StorageError(f"insert failed table='{table}' rows={len(rows)}: {e}") from e
        return len(rows)

    def _fetch(self, sql: str, params: Sequence[Any] = (), what: str = "query") -> list[tuple]:
        try:
            return self.con.execute(sql, list(params)).fetchall()
        except duckdb.Error as e:
            raise StorageError(f"{what} failed: {e}") from e

    def select_rows(
        self, table: str, columns: Sequence[str], limit: int, offset: int = 0
    ) -> list[dict[str, Any]]:
        cols_sql = ", ".join(_qi(c) for c in columns)
        rows = self._fetch(
            f"SELECT {cols_sql} FROM {_qi(table)} ORDER BY rowid LIMIT ? OFFSET ?",
            [int(limit), int(offset)],
            what=f"select table='{table}'",
        )
        return [dict(zip(columns, row)) for row in rows]

    def delete_where(self, table: str, conditions: Mapping[str, Any]) -> int:
        where, params = where_clause(conditions)
        before = self.count(table)
        self._fetch(f"DELETE FROM {_qi(table)}{where}", params, what=f"delete table='{table}'")
        return before - self.count(table)

    # ---- statistics --------------------------------------------------------
    def count(self, table: str) -> int:
        try:
            return count_rows(self.con, table)
        except duckdb.Error as e:
            raise StorageError(f"count failed table='{table}': {e}") from e

    def count_where(self, table: str, conditions: Mapping[str, Any]) -> int:
        where, params = where_clause(conditions)
        rows = self._fetch(
            f"SELECT COUNT(*) FROM {_qi(table)}{where}", params, what=f"count table='{table}'"
        )
        return int(rows[0][0])

    def count_distinct(self, table: str, column: str) -> int:
        """Distinct values, ignoring NULL and empty string."""
        c = _qi(column)
        sql = f"SELECT COUNT(DISTINCT NULLIF(CAST({c} AS VARCHAR), '')) FROM {_qi(table)}"
        return int(self._fetch(sql, what=f"distinct {table}.{column}")[0][0])

    def min(self, table: str, column: str) -> str | None:
        return self._extreme("MIN", table, column)

    def max(self, table: str, column: str) -> str | None:
        return self._extreme("MAX", table, column)

    def max_length(self, table: str, column: str, pattern: str | None = None) -> int:
        """Longest non-empty value rendered as text.

        With `pattern`, only trimmed values fully matching that regular
        expression count, and their trimmed length is measured.
        """
        value = f"CAST({_qi(column)} AS VARCHAR)"
        where = _non_empty(column)
        if pattern is not None:
            value = f"TRIM({value})"
            literal = pattern.replace("'", "''")
            where += f" AND regexp_full_match({value}, '{literal}')"
        sql = f"SELECT MAX(LENGTH({value})) FROM {_qi(table)} WHERE {where}"
        return int(self._fetch(sql, what=f"max_length {table}.{column}")[0][0] or 0)

    def _extreme(self, fn: str, table: str, column: str) -> str | None:
        sql = (
            f"SELECT {fn}(CAST({_qi(column)} AS VARCHAR)) FROM {_qi(table)} "
            f"WHERE {_non_empty(column)}"
        )
        return self._fetch(sql, what=f"{fn.lower()} {table}.{column}")[0][0]

    def sample_non_null(self, table: str, column: str, n: int) -> list[str]:
        """First `n` non-null, non-empty values in insertion order."""
        sql = (
            f"SELECT CAST({_qi(column)} AS VARCHAR) FROM {_qi(table)} "
            f"WHERE {_non_empty(column)} ORDER BY rowid LIMIT ?"
        )
        return [r[0] for r in self._fetch(sql, [int(n)], what=f"sample {table}.{column}")]


__all__ = ["DuckDBSink", "SQL_TYPES"]
