# ------------------------------------------------------------
# Module: importer/ingest/delimited_parser.py
# Purpose: Split streamed lines of delimited text into rows, keeping raw text.
# ------------------------------------------------------------

"""Delimited record parser over a line stream.

Physical lines come from the `SourceReader`; `csv.reader` joins them into
logical rows honouring the delimiter/quote/escape configuration, so quoted
fields may span lines. Each row carries the exact physical text it consumed,
which becomes the Failed Item payload when `csv` rejects the row.

Responsibilities
----------------
- Hold the per-format options (`DelimitedOptions`).
- Yield `ParsedRow` values; a malformed row is yielded with `error` set and
  parsing resumes at the next line.
- Header/column helpers: positional names and pad/truncate alignment.
"""

from __future__ import annotations

import csv
from collections.abc import Iterable, Iterator
from dataclasses import dataclass


@dataclass(frozen=True)
class DelimitedOptions:
    """Tabular format options.

    `delimiter=None` asks the loader to detect it from the file head.
    `escapechar=None` means RFC 4180 quoting (a doubled quote inside quotes).
    """

    delimiter: str | None = ","
    quotechar: str = '"'
    escapechar: str | None = None
    has_header: bool = True
    headers: tuple[str, ...] | None = None
    encoding: str = "utf-8"
    skip_empty_rows: bool = True
    trim_whitespace: bool = False
    table: str | None = None


@dataclass(frozen=True)
class ParsedRow:
    line_no: int  # first physical line of the row (1-based)
    values: list[str] | None
    raw: str
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class _LineTap:
    """Line iterator that remembers what the csv reader consumed."""

    def __init__(self, lines: Iterable[str]) -> None:
        self._it = iter(lines)
        self._taken: list[str] = []
        self.line_no = 0

    def __iter__(self) -> "_LineTap":
        return self

    def __next__(self) -> str:
        line = next(self._it)
        self._taken.append(line)
        self.line_no += 1
        return line

    def drain(self) -> str:
        raw = "".join(self._taken)
        self._taken = []
        return raw


def iter_rows(lines: Iterable[str], options: DelimitedOptions, delimiter: str) -> Iterator[ParsedRow]:
    tap = _LineTap(lines)
    reader = csv.reader(
        tap,
        delimiter=delimiter,
        quotechar=options.quotechar,
        escapechar=options.escapechar,
        doublequote=True,
        strict=True,
    )
    while True:
        start = tap.line_no + 1
        try:
            values = next(reader)
        except StopIteration:
            return
        except csv.Error as e:
            yield ParsedRow(start, None, tap.drain(), f"malformed row at line {start}: {e}")
            continue
        raw = tap.drain()
        if options.trim_whitespace:
            values = [v.strip() for v in values]
        if options.skip_empty_rows and not any(v.strip() for v in values):
            continue
        yield ParsedRow(start, values, raw)


def positional_names(n: int) -> list[str]:
    return [f"column_{i}" for i in range(1, n + 1)]


def align(values: list[str], width: int) -> tuple[list[str], bool]:
    """Pad with '' or truncate to `width`; second item tells whether it changed."""
    if len(values) == width:
        return values, False
    if len(values) < width:
        return values + [""] * (width - len(values)), True
    return values[:width], True
