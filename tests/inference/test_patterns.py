import pytest

from importer.inference.patterns import BUCKETS, classify_value, count_patterns


@pytest.mark.parametrize(
    "value,bucket",
    [
        ("42", "integer"),
        ("-7", "integer"),
        ("0", "integer"),
        ("19.99", "decimal"),
        ("$1,200.50", "decimal"),
        ("1 000 000", "decimal"),
        ("1.5e3", "float"),
        ("3.141592", "float"),
        ("yes", "boolean"),
        ("FALSE", "boolean"),
        ("jane@wordpress.org", "email"),
        ("https://wordpress.org/plugins/", "url"),
        ('{"a": [1, 2]}', "json"),
        ("(555) 123-4567", "phone"),
        ("2024-01-15 10:30:00", "datetime"),
        ("2024-01-15", "date"),
        ("15/01/2024", "date"),
        ("2024-02-31", "text"),
        ("0000-00-00", "text"),
        ("hello world", "text"),
        ("", "text"),
    ],
)
def test_classify_value(value, bucket):
    assert classify_value(value) == bucket


def test_count_patterns_reports_every_bucket():
    counts = count_patterns(["1", "2", "x"])
    assert set(counts) == set(BUCKETS)
    assert counts["integer"] == 2
    assert counts["text"] == 1
    assert counts["date"] == 0
