# ------------------------------------------------------------
# Module: importer/storage/protocols.py
# Purpose: Storage Sink contract consumed by ingestion and type inference.
# ------------------------------------------------------------

"""The Storage Sink contract.

The import core is engine-agnostic behind this Protocol. `DuckDBSink` is the
shipped implementation; any object with these methods can be passed instead.

Notes
-----
- `insert_batch` is atomic per call: either every row lands or it raises.
  Row-level isolation is the caller's policy (`accumulator.write_isolated`).
- Statistics primitives treat NULL and empty string alike where noted, and
  compare values lexically as text.
- `conditions` map column → value; a `None` value means `IS NULL`.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any, Protocol, runtime_checkable

from .schema import ColumnSpec


@runtime_checkable
class StorageSink(Protocol):
    def table_exists(self, name: str) -> bool: ...

    def create_table_from_schema(self, name: str, columns: Sequence[ColumnSpec]) -> None: ...

    def add_column(self, table: str, column: ColumnSpec) -> None: ...

    def insert_batch(self, table: str, rows: Sequence[Mapping[str, Any]]) -> int: ...

    def get_columns(self, table: str) -> list[str]: ...

    def count(self, table: str) -> int: ...

    def count_where(self, table: str, conditions: Mapping[str, Any]) -> int: ...

    def count_distinct(self, table: str, column: str) -> int: ...

    def min(self, table: str, column: str) -> str | None: ...

    def max(self, table: str, column: str) -> str | None: ...

    def max_length(self, table: str, column: str, pattern: str | None = None) -> int: ...

    def sample_non_null(self, table: str, column: str, n: int) -> list[str]: ...

    def select_rows(
        self, table: str, columns: Sequence[str], limit: int, offset: int = 0
    ) -> list[dict[str, Any]]: ...

    def drop_table(self, name: str) -> None: ...

    def delete_where(self, table: str, conditions: Mapping[str, Any]) -> int: ...


__all__ = ["StorageSink"]
