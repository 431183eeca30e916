# ------------------------------------------------------------
# Module: importer/ingest/delimiter_detect.py
# Purpose: Guess the field delimiter of a delimited text file from its head.
# ------------------------------------------------------------

"""Delimiter detection by column-count consistency.

Each candidate is scored on the first lines of the file as
`avg_columns / (1 + variance)`: many columns that stay constant line to line
win. Candidates that never split a line score zero.
"""

from __future__ import annotations

import csv
import logging
from pathlib import Path

log = logging.getLogger("ingest.delimiter")

CANDIDATES = ("\t", ",", ";", "|")
SAMPLE_BYTES = 4096
SAMPLE_LINES = 10


def score_delimiter(lines: list[str], delimiter: str, quotechar: str = '"') -> float:
    counts = [
        len(fields)
        for fields in csv.reader(lines, delimiter=delimiter, quotechar=quotechar)
        if fields
    ]
    if not counts:
        return 0.0
    avg = sum(counts) / len(counts)
    if avg <= 1:
        return 0.0
    variance = sum((c - avg) ** 2 for c in counts) / len(counts)
    return avg / (1 + variance)


def detect_delimiter(
    path: str | Path, encoding: str = "utf-8", quotechar: str = '"', default: str = ","
) -> str:
    with Path(path).open("rb") as fh:
        head = fh.read(SAMPLE_BYTES)
    text = head.decode(encoding, errors="replace").lstrip("\ufeff")
    lines = text.splitlines()
    if len(head) == SAMPLE_BYTES and len(lines) > 1:
        lines = lines[:-1]  # last line is probably cut mid-way
    lines = lines[:SAMPLE_LINES]

    scores = {d: score_delimiter(lines, d, quotechar) for d in CANDIDATES}
    best = max(CANDIDATES, key=lambda d: scores[d])
    if scores[best] <= 0:
        log.debug("delimiter detection inconclusive; using %r", default)
        return default
    log.debug("delimiter detected %r scores=%s", best, scores)
    return best
