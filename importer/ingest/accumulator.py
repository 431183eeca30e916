# ------------------------------------------------------------
# Module: importer/ingest/accumulator.py
# Purpose: Per-table bounded buffers with one shared, adaptive flush threshold.
# ------------------------------------------------------------

"""Batch accumulator and the row-isolating write policy.

Responsibilities
----------------
- Buffer rows per destination table; auto-flush a table when its buffer
  reaches the current threshold.
- Keep the threshold within `[minimum, original]` under governor scaling.
- Write each batch with one isolation policy for every ingestion path: try
  the whole batch, and on failure retry row by row, recording each failing
  row as a `FailedItem` (phase `insert`).
- Count inserted rows per table.

Notes
-----
- The accumulator exclusively owns in-flight rows until they are flushed.
- Tables in `primary_tables` produce `primary=True` failed items, so record
  accounting stays exact even when dependent rows fail.
"""

from __future__ import annotations

import json
import logging
from collections import Counter
from collections.abc import Callable, Iterable, Sequence

from importer.storage.protocols import StorageSink

from .errors import StorageError
from .failed_items import FailedItemLog
from .types import FailedItem, Row

log = logging.getLogger("ingest.accumulator")


def row_payload(row: Row) -> str:
    return json.dumps(row, ensure_ascii=False, default=str)


def write_isolated(
    sink: StorageSink,
    table: str,
    rows: Sequence[Row],
    memory_snapshot: int = 0,
    primary: bool = True,
    phase: str = "insert",
) -> tuple[int, list[FailedItem]]:
    """Insert `rows`, isolating failures to single rows.

    Returns `(inserted, failures)`; never raises `StorageError`.
    """
    if not rows:
        return 0, []
    try:
        return sink.insert_batch(table, rows), []
    except StorageError as e:
        log.info("batch insert failed table=%s rows=%d; retrying per row (%s)", table, len(rows), e)

    inserted = 0
    failures: list[FailedItem] = []
    for row in rows:
        try:
            inserted += sink.insert_batch(table, [row])
        except StorageError as e:
            failures.append(
                FailedItem(
                    phase=phase,
                    raw_payload=row_payload(row),
                    error_message=str(e.__cause__ or e),
                    memory_snapshot=memory_snapshot,
                    table=table,
                    primary=primary,
                )
            )
    return inserted, failures


class BatchAccumulator:
    """Per-table buffers flushed to a sink at a shared threshold."""

    def __init__(
        self,
        sink: StorageSink,
        batch_size: int,
        min_batch_size: int,
        failed: FailedItemLog | None = None,
        primary_tables: Iterable[str] = (),
        memory_probe: Callable[[], int] | None = None,
    ) -> None:
        if min_batch_size < 1 or min_batch_size > batch_size:
            raise ValueError(f"invalid batch bounds min={min_batch_size} size={batch_size}")
        self.sink = sink
        self.original_threshold = batch_size
        self.minimum = min_batch_size
        self.threshold = batch_size
        self.failed = failed if failed is not None else FailedItemLog()
        self.primary_tables = frozenset(primary_tables)
        self._probe = memory_probe or (lambda: 0)
        self._buffers: dict[str, list[Row]] = {}
        self.inserted: Counter[str] = Counter()
        self.flushes = 0

    # ---- threshold ---------------------------------------------------------
    def set_threshold(self, value: int) -> int:
        self.threshold = max(self.minimum, min(self.original_threshold, int(value)))
        return self.threshold

    def scale_threshold(self, factor: float) -> int:
        # Round away float noise (100 * 0.7 == 70.00000000000001) before truncating.
        return self.set_threshold(int(round(self.threshold * factor, 6)))

    # ---- buffers -----------------------------------------------------------
    def add(self, table: str, row: Row) -> int:
        """Buffer one row; returns rows flushed as a side effect (0 if none)."""
        buf = self._buffers.setdefault(table, [])
        buf.append(row)
        if len(buf) >= self.threshold:
            return self.flush(table)
        return 0

    def pending(self, table: str) -> int:
        return len(self._buffers.get(table, ()))

    def pending_total(self) -> int:
        return sum(len(b) for b in self._buffers.values())

    def tables(self) -> list[str]:
        return list(self._buffers)

    def flush(self, table: str) -> int:
        rows = self._buffers.get(table)
        if not rows:
            return 0
        self._buffers[table] = []
        inserted, failures = write_isolated(
            self.sink,
            table,
            rows,
            memory_snapshot=self._probe(),
            primary=table in self.primary_tables,
        )
        self.inserted[table] += inserted
        self.flushes += 1
        for item in failures:
            self.failed.append(item, batch_size=self.threshold)
        log.debug("flushed table=%s rows=%d inserted=%d", table, len(rows), inserted)
        return len(rows)

    def flush_all(self) -> int:
        return sum(self.flush(t) for t in list(self._buffers))
