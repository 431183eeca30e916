# ------------------------------------------------------------
# Module: importer/utils/timing.py
# Purpose: Time a named step and log its start and outcome.
# ------------------------------------------------------------

"""Step timing for ingestion and inference runs.

`log_timer` yields a `StepTimer` so callers can copy the elapsed time into
their report once the block finishes. Context keyword arguments are rendered
as `key=value` pairs, matching the rest of the log lines.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field

_log = logging.getLogger("importer.timing")


@dataclass
class StepTimer:
    label: str
    started: float = field(default_factory=time.perf_counter)
    elapsed: float = 0.0

    def stop(self) -> float:
        self.elapsed = time.perf_counter() - self.started
        return self.elapsed


def _fmt(ctx: dict) -> str:
    return " ".join(f"{k}={v}" for k, v in ctx.items())


@contextmanager
def log_timer(
    label: str,
    logger: logging.Logger | logging.LoggerAdapter | None = None,
    **ctx,
) -> Iterator[StepTimer]:
    """Log `<label> start`, then `ok in` or `failed after` with seconds.

    Usage:
        with log_timer("ingest-csv", logger=log, table="orders") as t:
            ...
        report.elapsed_seconds = t.elapsed
    """
    log = logger or _log
    extra = _fmt(ctx)
    timer = StepTimer(label)
    log.info("%s start %s", label, extra)
    try:
        yield timer
    except Exception:
        log.error("%s failed after %.3fs %s", label, timer.stop(), extra, exc_info=True)
        raise
    log.info("%s ok in %.3fs %s", label, timer.stop(), extra)
