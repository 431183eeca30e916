# ------------------------------------------------------------
# Module: importer/ingest/schema_sync.py
# Purpose: Create destination tables or evolve them additively.
# ------------------------------------------------------------

"""Destination schema setup shared by both ingestion paths.

Notes
-----
- Evolution is additive only: missing columns are appended, existing ones
  are never removed, renamed or retyped.
- Column names compare case-insensitively.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from importer.storage.protocols import StorageSink
from importer.storage.schema import ColumnSpec

log = logging.getLogger("ingest.schema")


def ensure_table(sink: StorageSink, table: str, columns: Sequence[ColumnSpec]) -> list[str]:
    """Create `table` if missing, else add any missing columns.

    Returns the names of columns added to an existing table.
    """
    if not sink.table_exists(table):
        sink.create_table_from_schema(table, columns)
        return []
    have = {c.casefold() for c in sink.get_columns(table)}
    added: list[str] = []
    for col in columns:
        if col.name.casefold() in have:
            continue
        # Added columns must accept the rows already stored.
        sink.add_column(table, ColumnSpec(col.name, col.type, col.length))
        added.append(col.name)
    if added:
        log.info("table=%s evolved added=%s", table, added)
    return added
