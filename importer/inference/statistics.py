# ------------------------------------------------------------
# Module: importer/inference/statistics.py
# Purpose: Per-column statistics gathered through Storage Sink primitives.
# ------------------------------------------------------------

"""Column statistics for one inference run.

`null_count` counts both NULL and empty string. `max_len` and `int_len`
(the longest integer-shaped value) cover the whole column. The sample holds
up to N non-null values taken from the front of the column in insertion
order, so a given table always yields the same sample.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace

from importer.storage.protocols import StorageSink

from .patterns import INTEGER_RE, count_patterns

# DuckDB (RE2) spelling of INTEGER_RE, matched against the trimmed value.
INTEGER_SQL_PATTERN = r"-?[0-9]+"


@dataclass(frozen=True)
class ColumnStatistics:
    column: str
    total: int
    null_count: int
    distinct_count: int
    min_value: str | None
    max_value: str | None
    min_len: int
    max_len: int
    avg_len: float
    sample_size: int
    pattern_counts: dict[str, int] = field(default_factory=dict)
    # Longest integer-shaped value (sign included) seen in the column.
    int_len: int = 0

    @property
    def non_null_count(self) -> int:
        return max(0, self.total - self.null_count)

    @property
    def unique_ratio(self) -> float:
        if self.non_null_count == 0:
            return 0.0
        return self.distinct_count / self.non_null_count

    def share(self, *buckets: str) -> float:
        """Fraction of the sample falling in `buckets`."""
        if self.sample_size == 0:
            return 0.0
        return sum(self.pattern_counts.get(b, 0) for b in buckets) / self.sample_size


def statistics_from_sample(
    column: str,
    sample: list[str],
    total: int | None = None,
    null_count: int = 0,
    distinct_count: int | None = None,
) -> ColumnStatistics:
    """Build statistics from an in-memory sample (defaults describe the sample)."""
    lengths = [len(v) for v in sample]
    int_lengths = [len(v.strip()) for v in sample if INTEGER_RE.match(v.strip())]
    return ColumnStatistics(
        column=column,
        total=len(sample) + null_count if total is None else total,
        null_count=null_count,
        distinct_count=len(set(sample)) if distinct_count is None else distinct_count,
        min_value=min(sample) if sample else None,
        max_value=max(sample) if sample else None,
        min_len=min(lengths) if lengths else 0,
        max_len=max(lengths) if lengths else 0,
        avg_len=(sum(lengths) / len(lengths)) if lengths else 0.0,
        sample_size=len(sample),
        pattern_counts=count_patterns(sample),
        int_len=max(int_lengths) if int_lengths else 0,
    )


def collect_statistics(
    sink: StorageSink, table: str, column: str, sample_size: int
) -> ColumnStatistics:
    total = sink.count(table)
    nulls = sink.count_where(table, {column: None}) + sink.count_where(table, {column: ""})
    sample = sink.sample_non_null(table, column, sample_size)
    stats = statistics_from_sample(
        column,
        sample,
        total=total,
        null_count=nulls,
        distinct_count=sink.count_distinct(table, column),
    )
    # Extremes and lengths over the whole column, not just the sample.
    return replace(
        stats,
        min_value=sink.min(table, column),
        max_value=sink.max(table, column),
        max_len=max(stats.max_len, sink.max_length(table, column)),
        int_len=max(stats.int_len, sink.max_length(table, column, pattern=INTEGER_SQL_PATTERN)),
    )
