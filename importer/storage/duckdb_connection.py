# ------------------------------------------------------------
# Module: importer/storage/duckdb_connection.py
# Purpose: Open and configure a DuckDB connection with sensible defaults.
# ------------------------------------------------------------

"""Establish a DuckDB connection with basic configuration and safety handling.

Responsibilities
----------------
- Open a DuckDB connection from a file path (or `:memory:`).
- Apply thread and memory PRAGMAs for controlled resource usage.
- Wrap connection failures in `StorageError`.
"""

from __future__ import annotations

import logging
from pathlib import Path

import duckdb

from importer.ingest.errors import StorageError

log = logging.getLogger("storage.duckdb")


def open_duckdb(
    db_path: Path | str = ":memory:", threads: int = 4, mem: str = "1GB"
) -> duckdb.DuckDBPyConnection:
    """Open a DuckDB connection with tuned PRAGMAs.

    Notes
    -----
    - Applies `threads` and `memory_limit` settings.
    - A PRAGMA failure is logged and the connection kept with engine defaults.
    - Parent directories of a file-backed database are created.
    - Callers must close the returned connection when done.
    """
    if str(db_path) != ":memory:":
        try:
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"cannot create directory for db='{db_path}'") from e
    try:
        con = duckdb.connect(str(db_path))
    except duckdb.Error as e:
        raise StorageError(f"duckdb connect failed db='{db_path}'") from e
    try:
        con.execute(f"PRAGMA threads={int(threads)}")
        con.execute(f"PRAGMA memory_limit='{mem}'")
    except duckdb.Error:
        log.warning("duckdb PRAGMA setup failed db='%s'; using defaults", db_path, exc_info=True)
    return con
