# ------------------------------------------------------------
# Module: importer/inference/materialize.py
# Purpose: Infer column types for a text table and materialize a typed copy.
# ------------------------------------------------------------

"""Type inference engine.

Samples a text-typed table through the Storage Sink, decides one logical type
per column, creates `<table>_typed` with the same column order and copies
every row across in fixed-size batches, coercing each value.

Responsibilities
----------------
- Gather `ColumnStatistics` per column and apply the decision rule.
- Create the typed table and copy rows with per-value coercion; a value that
  cannot be coerced becomes NULL (logged) and the row is still inserted.
- Record a completion marker `(source_table, typed_table, column_types)` in
  `_typed_tables`; a second run on the same source (or on a typed table) is
  a no-op unless `force=True`.

Notes
-----
- Rows are read in insertion order with LIMIT/OFFSET paging.
- Insert failures while copying use the same batch-then-row isolation as
  ingestion and are reported as Failed Items with phase `materialize`.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime

from importer.core.config import Settings, settings as default_settings
from importer.ingest.accumulator import write_isolated
from importer.ingest.errors import InferenceError
from importer.ingest.failed_items import FailedItemLog
from importer.ingest.types import FailedItem
from importer.storage.protocols import StorageSink
from importer.storage.schema import ColumnSpec, LogicalType
from importer.utils.timing import log_timer

from .coerce import coerce_value
from .decide import infer_type
from .statistics import ColumnStatistics, collect_statistics

log = logging.getLogger("inference.materialize")

MARKER_TABLE = "_typed_tables"
MARKER_COLUMNS = [
    ColumnSpec("source_table", "string", 255, nullable=False, primary_key=True),
    ColumnSpec("typed_table", "string", 255, nullable=False),
    ColumnSpec("column_types", "json"),
    ColumnSpec("created_at", "datetime"),
]


@dataclass
class TypedTableResult:
    source_table: str
    typed_table: str
    column_types: dict[str, LogicalType]
    skipped: bool = False
    rows_copied: int = 0
    coercion_failures: int = 0
    statistics: dict[str, ColumnStatistics] = field(default_factory=dict)
    failed_items: list[FailedItem] = field(default_factory=list)
    elapsed_seconds: float = 0.0


class TypeInferenceEngine:
    """Infer and materialize typed copies of text tables in one sink.

    Usage:
        result = TypeInferenceEngine(sink).run("orders")
        result.column_types  # {"id": "bigInteger", "amount": "decimal"}
    """

    def __init__(self, sink: StorageSink, cfg: Settings | None = None) -> None:
        self.sink = sink
        self.cfg = cfg or default_settings

    # ---- marker ------------------------------------------------------------
    def _ensure_marker_table(self) -> None:
        if not self.sink.table_exists(MARKER_TABLE):
            self.sink.create_table_from_schema(MARKER_TABLE, MARKER_COLUMNS)

    def marker(self, table: str) -> dict | None:
        """The completion marker for `table` as a source, or None."""
        if not self.sink.table_exists(MARKER_TABLE):
            return None
        if not self.sink.count_where(MARKER_TABLE, {"source_table": table}):
            return None
        names = [c.name for c in MARKER_COLUMNS]
        total = self.sink.count(MARKER_TABLE)
        for row in self.sink.select_rows(MARKER_TABLE, names, limit=total):
            if row["source_table"] == table:
                types = row["column_types"]
                row["column_types"] = json.loads(types) if isinstance(types, str) else types
                return row
        return None

    def is_typed_table(self, table: str) -> bool:
        return self.sink.table_exists(MARKER_TABLE) and bool(
            self.sink.count_where(MARKER_TABLE, {"typed_table": table})
        )

    def _write_marker(self, source: str, typed: str, types: dict[str, str]) -> None:
        self._ensure_marker_table()
        self.sink.insert_batch(
            MARKER_TABLE,
            [
                {
                    "source_table": source,
                    "typed_table": typed,
                    "column_types": json.dumps(types),
                    "created_at": datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
                }
            ],
        )

    # ---- analysis ----------------------------------------------------------
    def analyze(self, table: str) -> dict[str, ColumnStatistics]:
        if not self.sink.table_exists(table):
            raise InferenceError(f"table not found: {table}")
        columns = self.sink.get_columns(table)
        if not columns:
            raise InferenceError(f"table has no columns: {table}")
        n = self.cfg.INFERENCE_SAMPLE_SIZE
        return {c: collect_statistics(self.sink, table, c, n) for c in columns}

    def infer(self, table: str) -> dict[str, LogicalType]:
        return {c: infer_type(s) for c, s in self.analyze(table).items()}

    # ---- materialization ---------------------------------------------------
    def run(self, table: str, force: bool = False) -> TypedTableResult:
        typed = f"{table}{self.cfg.TYPED_SUFFIX}"

        if self.is_typed_table(table):
            log.info("table=%s is itself a typed table; nothing to do", table)
            return TypedTableResult(table, table, {}, skipped=True)

        done = self.marker(table)
        if done is not None and not force:
            log.info("table=%s already typed as %s; skipping", table, done["typed_table"])
            return TypedTableResult(table, done["typed_table"], done["column_types"], skipped=True)

        if done is not None:
            self.sink.delete_where(MARKER_TABLE, {"source_table": table})
        if self.sink.table_exists(typed):
            if done is None:
                log.warning("typed table=%s exists without a marker; rebuilding", typed)
            self.sink.drop_table(typed)

        with log_timer("infer-types", logger=log, table=table):
            stats = self.analyze(table)
            types = {c: infer_type(s) for c, s in stats.items()}
            for c, t in types.items():
                s = stats[c]
                log.debug(
                    "column=%s type=%s sample=%d nulls=%d distinct=%d patterns=%s",
                    c, t, s.sample_size, s.null_count, s.distinct_count,
                    {k: v for k, v in s.pattern_counts.items() if v},
                )

        result = TypedTableResult(table, typed, types, statistics=stats)
        self.sink.create_table_from_schema(typed, [ColumnSpec(c, t) for c, t in types.items()])

        failed = FailedItemLog(log)
        with log_timer("materialize", logger=log, table=table, typed=typed) as timer:
            self._copy(table, typed, types, result, failed)
        result.elapsed_seconds = timer.elapsed

        self._write_marker(table, typed, types)
        result.failed_items = failed.items
        log.info(
            "typed table=%s rows=%d coercion_failures=%d insert_failures=%d",
            typed, result.rows_copied, result.coercion_failures, len(failed),
        )
        return result

    def _copy(
        self,
        table: str,
        typed: str,
        types: dict[str, LogicalType],
        result: TypedTableResult,
        failed: FailedItemLog,
    ) -> None:
        columns = list(types)
        size = self.cfg.COPY_BATCH_SIZE
        offset = 0
        while True:
            rows = self.sink.select_rows(table, columns, limit=size, offset=offset)
            if not rows:
                break
            out = []
            for row in rows:
                typed_row = {}
                for c in columns:
                    value, ok = coerce_value(row[c], types[c])
                    if not ok:
                        result.coercion_failures += 1
                        log.debug("coercion failed column=%s type=%s value=%r", c, types[c], row[c])
                    typed_row[c] = value
                out.append(typed_row)
            inserted, failures = write_isolated(self.sink, typed, out, phase="materialize")
            result.rows_copied += inserted
            for item in failures:
                failed.append(item, batch_size=size)
            offset += len(rows)
            if len(rows) < size:
                break


def infer_and_materialize(
    sink: StorageSink, table: str, cfg: Settings | None = None, force: bool = False
) -> TypedTableResult:
    """Convenience wrapper around `TypeInferenceEngine.run`."""
    return TypeInferenceEngine(sink, cfg).run(table, force=force)
