# ------------------------------------------------------------
# Module: importer/inference/patterns.py
# Purpose: Classify single text values into pattern buckets.
# ------------------------------------------------------------

"""Value classification for type inference.

Tests run in a fixed order and the first match wins: integer, decimal
(currency / grouped / fractional), float, boolean, email, url, json, phone,
datetime, date, text.

Notes
-----
- `0` and `1` are integers, not booleans: the integer test runs first.
- Datetime and date shapes must also parse; `2024-02-31` is text.
- A value shaped like a date is never phone-like, so `0000-00-00` in a date
  column counts as text rather than as a phone number.
"""

from __future__ import annotations

import json
import re
from collections import Counter
from collections.abc import Iterable

from importer.ingest.sanitize import is_email, is_http_url
from importer.utils.dates import parse_date, parse_datetime

BUCKETS = (
    "integer",
    "decimal",
    "float",
    "boolean",
    "email",
    "url",
    "json",
    "phone",
    "datetime",
    "date",
    "text",
)

NUMERIC_BUCKETS = ("integer", "decimal", "float")

INTEGER_RE = re.compile(r"^-?\d+$")
DECIMAL_RE = re.compile(r"^[\$£€¥]?-?(?:\d{1,3}(?:[,\s]\d{3})+|\d+)(?:\.\d{1,4})?$")
FLOAT_RE = re.compile(r"^[+-]?(?:\d+\.\d*|\.\d+|\d+(?:\.\d*)?[eE][+-]?\d+)$")
BOOLEAN_RE = re.compile(r"^(true|false|yes|no|y|n|0|1|on|off|enabled|disabled)$", re.IGNORECASE)
PHONE_RE = re.compile(r"^\+?[\d\s\-()]{7,15}$")
DATETIME_RES = (
    re.compile(r"^\d{4}-\d{2}-\d{2}[ T]\d{2}:\d{2}(:\d{2})?$"),
    re.compile(r"^\d{2}/\d{2}/\d{4} \d{2}:\d{2}(:\d{2})?$"),
    re.compile(r"^\d{2}-\d{2}-\d{4} \d{2}:\d{2}(:\d{2})?$"),
)
DATE_RES = (
    re.compile(r"^\d{4}-\d{2}-\d{2}$"),
    re.compile(r"^\d{2}/\d{2}/\d{4}$"),
    re.compile(r"^\d{2}-\d{2}-\d{4}$"),
)


def _is_json(v: str) -> bool:
    if v[:1] not in ("{", "["):
        return False
    try:
        json.loads(v)
    except ValueError:
        return False
    return True


def classify_value(value: str) -> str:
    v = value.strip()
    if not v:
        return "text"
    if INTEGER_RE.match(v):
        return "integer"
    if DECIMAL_RE.match(v):
        return "decimal"
    if FLOAT_RE.match(v):
        return "float"
    if BOOLEAN_RE.match(v):
        return "boolean"
    if "@" in v and is_email(v):
        return "email"
    if "://" in v and is_http_url(v):
        return "url"
    if _is_json(v):
        return "json"
    # Date shapes such as 2024-01-15 also fit the phone alphabet.
    if PHONE_RE.match(v) and not any(p.match(v) for p in DATE_RES):
        return "phone"
    if any(p.match(v) for p in DATETIME_RES) and parse_datetime(v) is not None:
        return "datetime"
    if any(p.match(v) for p in DATE_RES) and parse_date(v) is not None:
        return "date"
    return "text"


def count_patterns(values: Iterable[str]) -> dict[str, int]:
    """Bucket counts for `values`; every bucket is present (possibly 0)."""
    counts = Counter(classify_value(v) for v in values)
    return {b: counts.get(b, 0) for b in BUCKETS}
