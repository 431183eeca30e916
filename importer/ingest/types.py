# ------------------------------------------------------------
# Module: importer/ingest/types.py
# Purpose: Shared value types passed between parsers, drivers and observers.
# ------------------------------------------------------------

"""Value types for one import run.

Responsibilities
----------------
- `FailedItem`: diagnostic record of a fragment/row that could not be stored.
- `ProgressCursor` / `MemorySnapshot`: payloads handed to observers.
- `ExtractOutcome`: result of one per-record step (rows or an error, never raised).
- `IngestReport`: counters returned by an ingestion driver.

Notes
-----
- Everything here is plain data; no I/O and no logging.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal

Phase = Literal["parse", "extract", "insert", "materialize"]
Row = dict[str, Any]
RoutedRow = tuple[str, Row]


def _utcnow() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


@dataclass(frozen=True)
class FailedItem:
    """One record/row that could not be processed.

    `primary` marks items that stand for a whole source record (a fragment or a
    CSV row). Dependent rows that fail to insert are recorded with
    `primary=False` so they do not skew record accounting.
    """

    phase: Phase
    raw_payload: str
    error_message: str
    memory_snapshot: int = 0
    table: str | None = None
    primary: bool = True
    timestamp: str = field(default_factory=_utcnow)

    def as_dict(self) -> dict[str, Any]:
        return {
            "phase": self.phase,
            "table": self.table,
            "primary": self.primary,
            "error_message": self.error_message,
            "timestamp": self.timestamp,
            "memory_snapshot": self.memory_snapshot,
            "raw_payload": self.raw_payload,
        }


@dataclass(frozen=True)
class ProgressCursor:
    processed: int
    estimated_total: int
    unit: str

    @property
    def fraction(self) -> float:
        if self.estimated_total <= 0:
            return 0.0
        return min(1.0, self.processed / self.estimated_total)


@dataclass(frozen=True)
class MemorySnapshot:
    current_bytes: int
    ceiling_bytes: int
    threshold: int

    @property
    def pressure(self) -> float:
        return self.current_bytes / self.ceiling_bytes if self.ceiling_bytes else 0.0


@dataclass(frozen=True)
class ExtractOutcome:
    """Rows produced by one extraction step, or the reason it produced none."""

    rows: tuple[RoutedRow, ...] = ()
    error: str | None = None
    phase: Phase = "extract"

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, rows: list[RoutedRow]) -> "ExtractOutcome":
        return cls(rows=tuple(rows))

    @classmethod
    def failure(cls, error: str, phase: Phase = "extract") -> "ExtractOutcome":
        return cls(error=error, phase=phase)


@dataclass
class IngestReport:
    """Counters for one ingestion run.

    `records_encountered` counts source records (fragments or data rows);
    `rows_inserted` counts the primary rows those records produced.
    """

    source: str
    unit: str
    records_encountered: int = 0
    rows_inserted: int = 0
    rows_by_table: dict[str, int] = field(default_factory=dict)
    failed_items: list[FailedItem] = field(default_factory=list)
    bytes_processed: int = 0
    memory_peak: int = 0
    final_batch_size: int = 0
    rows_normalized: int = 0
    elapsed_seconds: float = 0.0

    @property
    def record_failures(self) -> list[FailedItem]:
        return [f for f in self.failed_items if f.primary]

    def is_balanced(self) -> bool:
        return self.rows_inserted + len(self.record_failures) == self.records_encountered
