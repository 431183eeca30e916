# ------------------------------------------------------------
# Module: importer/utils/dates.py
# Purpose: Lenient date/datetime parsing with zero-date sentinel handling.
# ------------------------------------------------------------

"""Parse the date shapes seen in exports and spreadsheets.

Notes
-----
- Zero sentinels (`0000-00-00`, `0000-00-00 00:00:00`) are never dates; they
  parse to None.
- `dd/mm/yyyy` vs `mm/dd/yyyy` is ambiguous; US order is tried first, then
  day-first for values that cannot be US (e.g. `31/01/2024`).
- Datetimes carrying an offset are converted to UTC before the offset is
  dropped; naive values are kept as written.
"""

from __future__ import annotations

import re
from datetime import date, datetime, timezone

CANONICAL_DATETIME = "%Y-%m-%d %H:%M:%S"
CANONICAL_DATE = "%Y-%m-%d"

_ZERO_RE = re.compile(r"^0000-00-00(?:[ T]00:00:00)?$")

DATETIME_FORMATS = (
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%d %H:%M",
    "%m/%d/%Y %H:%M:%S",
    "%d/%m/%Y %H:%M:%S",
    "%m/%d/%Y %H:%M",
    "%d-%m-%Y %H:%M:%S",
    "%a, %d %b %Y %H:%M:%S %z",
    "%a, %d %b %Y %H:%M:%S",
)

DATE_FORMATS = (
    "%Y-%m-%d",
    "%m/%d/%Y",
    "%d/%m/%Y",
    "%d-%m-%Y",
    "%Y/%m/%d",
)


def is_zero_date(value: str) -> bool:
    return bool(_ZERO_RE.match(value.strip()))


def parse_datetime(value: str | None) -> datetime | None:
    """Parse a date+time (or bare date, at midnight); None when not a date."""
    if value is None:
        return None
    v = value.strip()
    if not v or is_zero_date(v):
        return None
    for fmt in DATETIME_FORMATS:
        try:
            return datetime.strptime(v, fmt)
        except ValueError:
            continue
    d = parse_date(v)
    if d is not None:
        return datetime(d.year, d.month, d.day)
    try:
        return datetime.fromisoformat(v)
    except ValueError:
        return None


def parse_date(value: str | None) -> date | None:
    if value is None:
        return None
    v = value.strip()
    if not v or is_zero_date(v):
        return None
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(v, fmt).date()
        except ValueError:
            continue
    return None


def canonical_datetime(value: str | None) -> str | None:
    dt = parse_datetime(value)
    if dt is None:
        return None
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt.strftime(CANONICAL_DATETIME)


def canonical_date(value: str | None) -> str | None:
    dt = parse_datetime(value)
    return dt.strftime(CANONICAL_DATE) if dt is not None else None
