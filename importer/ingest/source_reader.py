# ------------------------------------------------------------
# Module: importer/ingest/source_reader.py
# Purpose: Buffered, sequential file cursor with no structural knowledge.
# ------------------------------------------------------------

"""Read a source file in fixed-size chunks without loading it whole.

Responsibilities
----------------
- Fail fast (before any parsing) when the source is missing or unreadable.
- Yield raw byte chunks, incrementally decoded text chunks, or physical lines.
- Track bytes consumed for reporting.
- Provide cheap pre-scans (line count, token count) for progress estimates.

Notes
-----
- Decoding is incremental, so multi-byte characters split across chunk
  boundaries are handled; a UTF-8 BOM is dropped.
- The reader is single-pass; open a new reader for another scan.
"""

from __future__ import annotations

import codecs
import logging
from collections.abc import Iterator
from pathlib import Path

from .errors import SourceNotFoundError, SourceUnreadableError

log = logging.getLogger("ingest.source")

DEFAULT_CHUNK_SIZE = 64 * 1024


def check_source(path: str | Path) -> Path:
    """Return `path` as a Path, raising if it is missing or not a readable file."""
    p = Path(path)
    if not p.exists():
        raise SourceNotFoundError(f"source not found: {p}")
    if not p.is_file():
        raise SourceUnreadableError(f"source is not a regular file: {p}")
    try:
        with p.open("rb") as fh:
            fh.read(1)
    except OSError as e:
        raise SourceUnreadableError(f"source unreadable: {p}") from e
    return p


class SourceReader:
    """Sequential chunked reader over one file.

    Usage:
        with SourceReader(path) as reader:
            for line in reader.lines():
                ...
    """

    def __init__(self, path: str | Path, chunk_size: int = DEFAULT_CHUNK_SIZE) -> None:
        self.path = check_source(path)
        self.chunk_size = chunk_size
        self.bytes_read = 0
        self._fh = None

    @property
    def size(self) -> int:
        return self.path.stat().st_size

    def __enter__(self) -> "SourceReader":
        self.open()
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def open(self) -> None:
        if self._fh is None:
            try:
                self._fh = self.path.open("rb")
            except OSError as e:
                raise SourceUnreadableError(f"source unreadable: {self.path}") from e

    def close(self) -> None:
        if self._fh is not None:
            self._fh.close()
            self._fh = None

    def chunks(self) -> Iterator[bytes]:
        self.open()
        while True:
            try:
                chunk = self._fh.read(self.chunk_size)
            except OSError as e:
                raise SourceUnreadableError(f"read failed: {self.path}") from e
            if not chunk:
                return
            self.bytes_read += len(chunk)
            yield chunk

    def text_chunks(self, encoding: str = "utf-8", errors: str = "replace") -> Iterator[str]:
        """Yield decoded text; the first chunk has any UTF-8 BOM removed."""
        decoder = codecs.getincrementaldecoder(encoding)(errors=errors)
        first = True
        for chunk in self.chunks():
            if first:
                first = False
                if chunk.startswith(codecs.BOM_UTF8):
                    chunk = chunk[len(codecs.BOM_UTF8):]
            text = decoder.decode(chunk)
            if text:
                yield text
        tail = decoder.decode(b"", final=True)
        if tail:
            yield tail

    def lines(self, encoding: str = "utf-8", errors: str = "replace") -> Iterator[str]:
        """Yield physical lines split on '\\n' with their line endings preserved."""
        pending = ""
        for text in self.text_chunks(encoding, errors):
            pending += text
            start = 0
            while True:
                i = pending.find("\n", start)
                if i < 0:
                    break
                yield pending[start : i + 1]
                start = i + 1
            pending = pending[start:]
        if pending:
            yield pending


def count_lines(path: str | Path, chunk_size: int = DEFAULT_CHUNK_SIZE) -> int:
    """Count newline-terminated lines (plus a trailing unterminated one)."""
    n = 0
    last = b""
    with SourceReader(path, chunk_size) as reader:
        for chunk in reader.chunks():
            n += chunk.count(b"\n")
            last = chunk
    if last and not last.endswith(b"\n"):
        n += 1
    return n


def count_token(path: str | Path, token: bytes, chunk_size: int = DEFAULT_CHUNK_SIZE) -> int:
    """Count occurrences of `token`, including ones split across chunk boundaries."""
    n = 0
    carry = b""
    keep = len(token) - 1
    with SourceReader(path, chunk_size) as reader:
        for chunk in reader.chunks():
            buf = carry + chunk
            n += buf.count(token)
            # Keep a tail short enough that no match is counted twice.
            carry = buf[-keep:] if keep else b""
    return n
