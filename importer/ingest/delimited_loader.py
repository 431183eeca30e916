# ------------------------------------------------------------
# Module: importer/ingest/delimited_loader.py
# Purpose: Stream a delimited text file into one text-typed destination table.
# ------------------------------------------------------------

"""CSV/TSV → Storage Sink ingestion driver.

Responsibilities
----------------
- Validate the source before parsing; detect the delimiter when asked.
- Resolve column names (header row, explicit headers, or positional) and
  create the table or append missing columns to an existing one.
- Pad/truncate rows to the header width and buffer them through the
  accumulator under the memory governor.
- Record malformed rows (verbatim lines) and failed inserts as Failed Items.

Notes
-----
- All columns are stored as text; `importer.inference` recovers types later.
- Pad/truncate is silent per row; the total is logged as a data-loss risk
  and returned as `rows_normalized`.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path

from importer.core.config import Settings, settings as default_settings
from importer.storage.protocols import StorageSink
from importer.storage.schema import norm_col, text_columns, unique_names
from importer.utils.logging_extras import log_adapter
from importer.utils.timing import log_timer

from .accumulator import BatchAccumulator
from .delimited_parser import DelimitedOptions, align, iter_rows, positional_names
from .delimiter_detect import detect_delimiter
from .errors import SchemaError
from .failed_items import FailedItemLog
from .governor import MemoryGovernor, parse_memory_limit
from .observers import IngestObserver, NullObserver, ProgressReporter
from .schema_sync import ensure_table
from .source_reader import SourceReader, check_source, count_lines
from .types import FailedItem, IngestReport

log = logging.getLogger("ingest.csv")


def default_table_name(path: Path) -> str:
    return norm_col(path.stem)


class DelimitedImporter:
    """One delimited-file import job against one sink.

    Usage:
        report = DelimitedImporter(sink, DelimitedOptions(delimiter=";")).run(path)
    """

    def __init__(
        self,
        sink: StorageSink,
        options: DelimitedOptions | None = None,
        cfg: Settings | None = None,
        observer: IngestObserver | None = None,
        memory_probe: Callable[[], int] | None = None,
        job_id: str | None = None,
    ) -> None:
        self.sink = sink
        self.options = options or DelimitedOptions()
        self.cfg = cfg or default_settings
        self.observer = observer or NullObserver()
        self.memory_probe = memory_probe
        self.log = log_adapter(log, job_id)

    def run(self, path: str | Path) -> IngestReport:
        src = check_source(path)
        cfg = self.cfg
        opts = self.options
        table = opts.table or default_table_name(src)
        delimiter = opts.delimiter or detect_delimiter(src, opts.encoding, opts.quotechar)
        report = IngestReport(source=str(src), unit="rows")

        estimated = max(0, count_lines(src) - (1 if opts.has_header else 0))
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
            primary_tables=(table,),
            memory_probe=governor.current_bytes,
        )
        progress = ProgressReporter(self.observer, estimated, report.unit)
        names: list[str] | None = list(unique_names(opts.headers)) if opts.headers else None
        header_pending = opts.has_header

        with log_timer("ingest-csv", logger=self.log, src=str(src), table=table, delimiter=repr(delimiter)) as timer:
            with SourceReader(src, cfg.READ_CHUNK_SIZE) as reader:
                progress.start()
                for parsed in iter_rows(reader.lines(opts.encoding), opts, delimiter):
                    if header_pending:
                        header_pending = False
                        if not parsed.ok:
                            raise SchemaError(f"unreadable header row in {src}: {parsed.error}")
                        if names is None:
                            names = unique_names(parsed.values)
                        self._prepare_table(table, names)
                        continue

                    report.records_encountered += 1
                    if not parsed.ok:
                        failed.append(
                            FailedItem(
                                phase="parse",
                                raw_payload=parsed.raw,
                                error_message=parsed.error or "",
                                memory_snapshot=governor.current_bytes(),
                                table=table,
                            ),
                            batch_size=acc.threshold,
                        )
                    else:
                        if names is None:
                            names = positional_names(len(parsed.values))
                            self._prepare_table(table, names)
                        values, changed = align(parsed.values, len(names))
                        if changed:
                            report.rows_normalized += 1
                        acc.add(table, dict(zip(names, values)))

                    governor.tick(acc)
                    progress.advance()

                acc.flush_all()
                progress.finish()
                report.bytes_processed = reader.bytes_read

        if report.rows_normalized:
            self.log.warning(
                "rows padded/truncated to %d columns: %d (possible data loss)",
                len(names or ()),
                report.rows_normalized,
            )
        report.rows_by_table = dict(acc.inserted)
        report.rows_inserted = acc.inserted[table]
        report.failed_items = failed.items
        report.memory_peak = governor.peak_bytes
        report.final_batch_size = acc.threshold
        report.elapsed_seconds = timer.elapsed
        self.log.info(
            "csv summary table=%s rows=%d inserted=%d failed=%d",
            table,
            report.records_encountered,
            report.rows_inserted,
            len(report.failed_items),
        )
        return report

    def _prepare_table(self, table: str, names: list[str]) -> None:
        added = ensure_table(self.sink, table, text_columns(names))
        if added:
            self.log.info("existing table=%s gained columns=%s", table, added)


def load_delimited(
    path: str | Path,
    sink: StorageSink,
    options: DelimitedOptions | None = None,
    cfg: Settings | None = None,
    observer: IngestObserver | None = None,
    job_id: str | None = None,
) -> IngestReport:
    """Convenience wrapper: run one delimited import."""
    return DelimitedImporter(sink, options, cfg, observer, job_id=job_id).run(path)
