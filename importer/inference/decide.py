# ------------------------------------------------------------
# Module: importer/inference/decide.py
# Purpose: Turn column statistics into one inferred logical type.
# ------------------------------------------------------------

"""Type decision rule.

In order:
1. A bucket holding ≥ 90% of the sample decides the type. An integer
   column whose values are > 95% distinct and never empty is an identifier
   and becomes `bigInteger`. Integer width follows the longest integer
   value in the whole column: up to 9 characters is `integer`, up to 18
   is `bigInteger`, anything longer is kept as text.
2. Otherwise, if integer + decimal + float hold ≥ 75%, the most permissive
   numeric type present wins (decimal, then float, then the integer
   width above).
3. Otherwise by length: short strings, text, or long text.
4. An empty sample is text.

The rule reads only counts and lengths, so the row order of the sample
never changes the result.
"""

from __future__ import annotations

from importer.storage.schema import LogicalType, STRING_MAX_LEN

from .patterns import NUMERIC_BUCKETS
from .statistics import ColumnStatistics

DOMINANT_SHARE = 0.90
NUMERIC_SHARE = 0.75
ID_UNIQUE_RATIO = 0.95
SHORT_AVG_LEN = 50
LONG_TEXT_LEN = 65535
# Longest integer text (sign included) always inside INTEGER and BIGINT.
INT32_DIGITS = 9
INT64_DIGITS = 18

# Buckets that decide a type on their own; phone and text fall through to length.
BUCKET_TYPES: tuple[tuple[str, LogicalType], ...] = (
    ("integer", "integer"),
    ("decimal", "decimal"),
    ("float", "float"),
    ("boolean", "boolean"),
    ("email", "string"),
    ("url", "text"),
    ("json", "json"),
    ("datetime", "datetime"),
    ("date", "date"),
)


def by_length(stats: ColumnStatistics) -> LogicalType:
    if stats.max_len <= STRING_MAX_LEN and stats.avg_len <= SHORT_AVG_LEN:
        return "string"
    if stats.max_len > LONG_TEXT_LEN:
        return "longText"
    if stats.max_len > STRING_MAX_LEN:
        return "text"
    return "string"


def integer_type(stats: ColumnStatistics, identifier: bool = False) -> LogicalType:
    """Narrowest integer type holding every integer-shaped value, or text."""
    if stats.int_len > INT64_DIGITS:
        return "text"
    if identifier or stats.int_len > INT32_DIGITS:
        return "bigInteger"
    return "integer"


def infer_type(stats: ColumnStatistics) -> LogicalType:
    if stats.sample_size == 0:
        return "text"

    for bucket, logical in BUCKET_TYPES:
        if stats.share(bucket) >= DOMINANT_SHARE:
            if bucket == "integer":
                identifier = stats.unique_ratio > ID_UNIQUE_RATIO and stats.min_len > 0
                return integer_type(stats, identifier)
            return logical

    if stats.share(*NUMERIC_BUCKETS) >= NUMERIC_SHARE:
        if stats.pattern_counts.get("decimal", 0):
            return "decimal"
        if stats.pattern_counts.get("float", 0):
            return "float"
        return integer_type(stats)

    return by_length(stats)

