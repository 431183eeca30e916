# ------------------------------------------------------------
# Module: importer/ingest/wxr_loader.py
# Purpose: Stream a WXR export into destination tables under a memory ceiling.
# ------------------------------------------------------------

"""WXR → Storage Sink ingestion driver.

Responsibilities
----------------
- Validate the source before parsing; create/evolve destination tables.
- Drive the structural cursor, route extracted rows into the accumulator,
  and let the governor steer batch sizing after every record.
- Turn per-record failures into Failed Items carrying the verbatim fragment.
- Report progress (records) and return an `IngestReport`.

Notes
-----
- Records are `item` and `wp:author` fragments; primary rows are `posts`
  and `users`, so `rows_inserted + primary failures == records_encountered`.
- The progress estimate is a byte-level pre-scan for boundary tags.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path

from importer.core.config import Settings, settings as default_settings
from importer.storage.protocols import StorageSink
from importer.utils.logging_extras import log_adapter
from importer.utils.timing import log_timer

from .accumulator import BatchAccumulator
from .failed_items import FailedItemLog
from .governor import MemoryGovernor, parse_memory_limit
from .observers import IngestObserver, NullObserver, ProgressReporter
from .schema_sync import ensure_table
from .source_reader import SourceReader, check_source, count_token
from .types import FailedItem, IngestReport
from .wxr_extract import SeenTerms, extract_fragment
from .wxr_schema import PRIMARY_TABLES, WxrOptions, boundary_test, resolve_namespaces, tables_for
from .xml_cursor import XmlCursor, sniff_encoding

log = logging.getLogger("ingest.wxr")


def estimate_records(path: Path, include_authors: bool = True) -> int:
    """Rough record count from boundary tags (used for progress only)."""
    n = count_token(path, b"<item>") + count_token(path, b"<item ")
    if include_authors:
        n += count_token(path, b":author_login>") // 2
    return n


class WxrImporter:
    """One WXR import job against one sink.

    Usage:
        report = WxrImporter(sink, WxrOptions(extract_comments=False)).run(path)
    """

    def __init__(
        self,
        sink: StorageSink,
        options: WxrOptions | None = None,
        cfg: Settings | None = None,
        observer: IngestObserver | None = None,
        memory_probe: Callable[[], int] | None = None,
        job_id: str | None = None,
    ) -> None:
        self.sink = sink
        self.options = options or WxrOptions()
        self.cfg = cfg or default_settings
        self.observer = observer or NullObserver()
        self.memory_probe = memory_probe
        self.log = log_adapter(log, job_id)

    def run(self, path: str | Path) -> IngestReport:
        src = check_source(path)
        cfg = self.cfg
        opts = self.options
        report = IngestReport(source=str(src), unit="records")

        for name, cols in tables_for(opts).items():
            ensure_table(self.sink, name, cols)

        governor = MemoryGovernor(
            parse_memory_limit(cfg.MEMORY_LIMIT),
            probe=self.memory_probe,
            observer=self.observer,
            check_interval=cfg.GOVERNOR_CHECK_INTERVAL,
        )
        failed = FailedItemLog(self.log)
        acc = BatchAccumulator(
            self.sink,
            cfg.BATCH_SIZE,
            cfg.MIN_BATCH_SIZE,
            failed=failed,
            primary_tables=PRIMARY_TABLES,
            memory_probe=governor.current_bytes,
        )
        seen = SeenTerms()
        progress = ProgressReporter(
            self.observer, estimate_records(src, opts.extract_users), report.unit
        )

        with log_timer("ingest-wxr", logger=self.log, src=str(src)) as timer:
            with SourceReader(src, cfg.READ_CHUNK_SIZE) as reader:
                cursor = XmlCursor(
                    reader.text_chunks(sniff_encoding(src)), boundary_test(opts.extract_users)
                )
                ns_map: dict[str, str] | None = None
                progress.start()

                for fragment in cursor.fragments():
                    if ns_map is None:
                        ns_map = resolve_namespaces(cursor.namespaces)
                    report.records_encountered += 1

                    outcome = extract_fragment(fragment, ns_map, opts, seen)
                    if outcome.ok:
                        for table, row in outcome.rows:
                            acc.add(table, row)
                    else:
                        failed.append(
                            FailedItem(
                                phase=outcome.phase,
                                raw_payload=fragment.text,
                                error_message=outcome.error or "",
                                memory_snapshot=governor.current_bytes(),
                            ),
                            batch_size=acc.threshold,
                        )

                    governor.tick(acc)
                    progress.advance()

                acc.flush_all()
                progress.finish()
                report.bytes_processed = reader.bytes_read

        report.rows_by_table = dict(acc.inserted)
        report.rows_inserted = sum(acc.inserted[t] for t in PRIMARY_TABLES)
        report.failed_items = failed.items
        report.memory_peak = governor.peak_bytes
        report.final_batch_size = acc.threshold
        report.elapsed_seconds = timer.elapsed
        self.log.info(
            "wxr summary records=%d inserted=%d failed=%d terms=%d by_table=%s",
            report.records_encountered,
            report.rows_inserted,
            len(report.failed_items),
            len(seen),
            report.rows_by_table,
        )
        return report


def load_wxr(
    path: str | Path,
    sink: StorageSink,
    options: WxrOptions | None = None,
    cfg: Settings | None = None,
    observer: IngestObserver | None = None,
    job_id: str | None = None,
) -> IngestReport:
    """Convenience wrapper: run one WXR import."""
    return WxrImporter(sink, options, cfg, observer, job_id=job_id).run(path)
