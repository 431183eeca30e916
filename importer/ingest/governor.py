# ------------------------------------------------------------
# Module: importer/ingest/governor.py
# Purpose: Inline memory-pressure controller that sizes batches and forces flushes.
# ------------------------------------------------------------

"""Negative-feedback memory governor for one import run.

Responsibilities
----------------
- Read process memory through an injectable probe (default: psutil RSS).
- Compute `pressure = current / ceiling` and apply, in order:
  critical (> 0.9) flush every buffer and collect garbage;
  high (> 0.8) shrink the batch threshold ×0.7, flush every buffer, collect;
  low (< 0.4) grow the threshold ×1.3 up to its original value.
- Report every evaluation to the observer and track the peak reading.
- Parse memory ceilings written as value + unit suffix (`256M`, `1G`).

Notes
-----
- Runs inline on the hot path (every `check_interval` records); no threads.
- A critical flush drains every table, not only the one currently filling.
"""

from __future__ import annotations

import gc
import logging
import re
from collections.abc import Callable
from dataclasses import dataclass
from typing import Literal

import psutil

from .accumulator import BatchAccumulator
from .observers import IngestObserver, NullObserver, notify_memory
from .types import MemorySnapshot

log = logging.getLogger("ingest.governor")

CRITICAL = 0.9
HIGH = 0.8
LOW = 0.4
SHRINK_FACTOR = 0.7
GROW_FACTOR = 1.3

Level = Literal["critical", "high", "low", "normal"]

_UNITS = {"": 1, "K": 1024, "M": 1024**2, "G": 1024**3}
_LIMIT_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*([KMG]?)B?\s*$", re.IGNORECASE)


def parse_memory_limit(value: str | int) -> int:
    """`'256M'` → 268435456. A bare number is bytes."""
    if isinstance(value, int):
        if value <= 0:
            raise ValueError("memory limit must be positive")
        return value
    m = _LIMIT_RE.match(value)
    if not m:
        raise ValueError(f"invalid memory limit: {value!r}")
    n = int(float(m.group(1)) * _UNITS[m.group(2).upper()])
    if n <= 0:
        raise ValueError("memory limit must be positive")
    return n


def format_bytes(n: int | float, precision: int = 2) -> str:
    units = ("B", "KB", "MB", "GB", "TB")
    size = float(max(n, 0))
    i = 0
    while size >= 1024 and i < len(units) - 1:
        size /= 1024
        i += 1
    return f"{round(size, precision)} {units[i]}"


def rss_bytes() -> int:
    """Resident set size of the current process."""
    return psutil.Process().memory_info().rss


@dataclass(frozen=True)
class GovernorDecision:
    pressure: float
    level: Level
    threshold_before: int
    threshold_after: int
    flushed: bool
    rows_flushed: int = 0


class MemoryGovernor:
    """Evaluate memory pressure and steer one accumulator."""

    def __init__(
        self,
        ceiling_bytes: int,
        probe: Callable[[], int] | None = None,
        observer: IngestObserver | None = None,
        check_interval: int = 1,
        collect: Callable[[], object] = gc.collect,
    ) -> None:
        if ceiling_bytes <= 0:
            raise ValueError("ceiling_bytes must be positive")
        self.ceiling_bytes = ceiling_bytes
        self.probe = probe or rss_bytes
        self.observer = observer or NullObserver()
        self.check_interval = max(1, check_interval)
        self._collect = collect
        self._ticks = 0
        self.peak_bytes = 0
        self.evaluations = 0

    def current_bytes(self) -> int:
        n = int(self.probe())
        if n > self.peak_bytes:
            self.peak_bytes = n
        return n

    def tick(self, acc: BatchAccumulator) -> GovernorDecision | None:
        """Count one processed record; evaluate every `check_interval` records."""
        self._ticks += 1
        if self._ticks % self.check_interval:
            return None
        return self.evaluate(acc)

    def evaluate(self, acc: BatchAccumulator) -> GovernorDecision:
        current = self.current_bytes()
        pressure = current / self.ceiling_bytes
        before = acc.threshold
        flushed = False
        rows = 0

        if pressure > CRITICAL:
            level: Level = "critical"
            rows = acc.flush_all()
            self._collect()
            flushed = True
            log.warning(
                "memory critical pressure=%.2f used=%s rows_flushed=%d",
                pressure,
                format_bytes(current),
                rows,
            )
        elif pressure > HIGH:
            level = "high"
            acc.scale_threshold(SHRINK_FACTOR)
            rows = acc.flush_all()
            self._collect()
            flushed = True
            log.info(
                "memory high pressure=%.2f threshold %d->%d rows_flushed=%d",
                pressure,
                before,
                acc.threshold,
                rows,
            )
        elif pressure < LOW and acc.threshold < acc.original_threshold:
            level = "low"
            acc.scale_threshold(GROW_FACTOR)
            log.debug("memory low pressure=%.2f threshold %d->%d", pressure, before, acc.threshold)
        else:
            level = "low" if pressure < LOW else "normal"

        self.evaluations += 1
        notify_memory(self.observer, MemorySnapshot(current, self.ceiling_bytes, acc.threshold))
        return GovernorDecision(pressure, level, before, acc.threshold, flushed, rows)
