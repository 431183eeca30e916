# ------------------------------------------------------------
# Module: importer/ingest/observers.py
# Purpose: Observer protocol for progress/memory telemetry plus a throttled reporter.
# ------------------------------------------------------------

"""Progress and memory observers for ingestion runs.

Responsibilities
----------------
- Define the `IngestObserver` protocol (`on_progress`, `on_memory`).
- Provide `NullObserver` and `CallbackObserver` (plain callables adapter).
- Throttle progress reports to every `max(10, total // 100)` units, plus the
  first and the final report.

Notes
-----
- Observers are telemetry only. An exception raised by one is logged and
  swallowed so it can never change the control flow of an import.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Protocol, runtime_checkable

from .types import MemorySnapshot, ProgressCursor

log = logging.getLogger("ingest.observers")


@runtime_checkable
class IngestObserver(Protocol):
    def on_progress(self, cursor: ProgressCursor) -> None: ...

    def on_memory(self, snapshot: MemorySnapshot) -> None: ...


class NullObserver:
    def on_progress(self, cursor: ProgressCursor) -> None:
        return None

    def on_memory(self, snapshot: MemorySnapshot) -> None:
        return None


class CallbackObserver:
    """Adapt `(processed, total, unit)` and `(snapshot)` callables to the protocol."""

    def __init__(
        self,
        progress: Callable[[int, int, str], None] | None = None,
        memory: Callable[[MemorySnapshot], None] | None = None,
    ) -> None:
        self._progress = progress
        self._memory = memory

    def on_progress(self, cursor: ProgressCursor) -> None:
        if self._progress is not None:
            self._progress(cursor.processed, cursor.estimated_total, cursor.unit)

    def on_memory(self, snapshot: MemorySnapshot) -> None:
        if self._memory is not None:
            self._memory(snapshot)


def notify_memory(observer: IngestObserver, snapshot: MemorySnapshot) -> None:
    try:
        observer.on_memory(snapshot)
    except Exception:
        log.warning("memory observer raised; ignoring", exc_info=True)


def progress_interval(total: int) -> int:
    """Every 10 units or every 1% of the estimate, whichever is coarser."""
    return max(10, total // 100)


class ProgressReporter:
    """Monotonic, throttled progress reporting for one run."""

    def __init__(self, observer: IngestObserver, total: int, unit: str) -> None:
        self.observer = observer
        self.total = max(0, total)
        self.unit = unit
        self.processed = 0
        self.interval = progress_interval(self.total)
        self._last_reported = -1

    def start(self) -> None:
        self._emit()

    def advance(self, n: int = 1) -> None:
        self.processed += n
        # Estimates can undershoot; keep the total monotonic with the count.
        if self.processed > self.total:
            self.total = self.processed
        if self.processed % self.interval == 0:
            self._emit()

    def finish(self) -> None:
        if self._last_reported != self.processed:
            self.total = max(self.total, self.processed)
            self._emit()

    def _emit(self) -> None:
        self._last_reported = self.processed
        try:
            self.observer.on_progress(ProgressCursor(self.processed, self.total, self.unit))
        except Exception:
            log.warning("progress observer raised; ignoring", exc_info=True)
