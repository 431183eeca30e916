# ------------------------------------------------------------
# Module: importer/ingest/failed_items.py
# Purpose: Append-only Failed Item log with per-table JSONL export.
# ------------------------------------------------------------

"""Collect Failed Items during a run and optionally export them as JSONL.

Responsibilities
----------------
- Keep an append-only, in-order list of `FailedItem` entries.
- Log each entry as it arrives (memory snapshot and batch size included).
- Write one JSONL file per destination table with a limited number of open
  handles; unrouted items (parse failures) go to `_unrouted.failed.jsonl`.
- Raise `FileWriteError` on write failures.

Notes
-----
- The log is diagnostic only; nothing in the import reads it back.
"""

from __future__ import annotations

import json
import logging
from collections import Counter, OrderedDict
from collections.abc import Iterator
from pathlib import Path

from .errors import FileWriteError
from .types import FailedItem

log = logging.getLogger("ingest.failed")

UNROUTED = "_unrouted"


class FailedItemLog:
    """Append-only list of Failed Items for one job."""

    def __init__(self, logger: logging.Logger | logging.LoggerAdapter | None = None) -> None:
        self._items: list[FailedItem] = []
        self._log = logger or log

    def append(self, item: FailedItem, batch_size: int | None = None) -> None:
        self._items.append(item)
        self._log.warning(
            "failed item phase=%s table=%s mem=%d batch_size=%s err=%s",
            item.phase,
            item.table or "-",
            item.memory_snapshot,
            batch_size if batch_size is not None else "-",
            item.error_message,
        )

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[FailedItem]:
        return iter(self._items)

    @property
    def items(self) -> list[FailedItem]:
        return list(self._items)

    def by_phase(self) -> dict[str, int]:
        return dict(Counter(i.phase for i in self._items))

    def write_jsonl(self, out_dir: Path, max_open: int | None = None) -> dict[str, Path]:
        """
        Write one JSONL file per table with a limited number of open handles.

        Oldest open handles are closed when the limit is exceeded.
        """
        out_dir.mkdir(parents=True, exist_ok=True)
        max_open = 16 if max_open is None else max_open
        handles: OrderedDict[str, object] = OrderedDict()
        paths: dict[str, Path] = {}

        def _open_handle(table: str):
            p = out_dir / f"{table}.failed.jsonl"
            f = p.open("a", encoding="utf-8")
            handles[table] = f
            paths.setdefault(table, p)
            if len(handles) > max_open:
                _, old_f = handles.popitem(last=False)
                old_f.close()
            return f

        try:
            for item in self._items:
                table = item.table or UNROUTED
                if table in handles:
                    f = handles[table]
                    handles.move_to_end(table)
                else:
                    try:
                        f = _open_handle(table)
                    except OSError as e:
                        raise FileWriteError(f"open failed table='{table}'") from e
                try:
                    f.write(json.dumps(item.as_dict(), ensure_ascii=False) + "\n")
                except (OSError, TypeError, ValueError) as e:
                    raise FileWriteError(
                        f"write failed table='{table}' path='{paths.get(table)}'"
                    ) from e
        finally:
            for f in list(handles.values()):
                f.close()

        return paths
