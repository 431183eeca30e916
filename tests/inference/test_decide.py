"""Type decision rule over sample statistics."""

import random

from importer.inference.decide import infer_type
from importer.inference.statistics import statistics_from_sample


def _infer(values, **kw):
    return infer_type(statistics_from_sample("c", list(values), **kw))


def test_unique_integers_are_identifiers():
    assert _infer(str(i) for i in range(1, 51)) == "bigInteger"


def test_repeating_integers_stay_integer():
    assert _infer(["1", "2", "3"] * 10) == "integer"


def test_dominant_bucket_needs_ninety_percent():
    assert _infer(["2024-01-15"] * 9 + ["soon"]) == "date"
    assert _infer(["2024-01-15"] * 8 + ["soon", "later"]) == "string"


def test_mixed_numeric_prefers_decimal():
    values = ["$1,200.50", "$30.00", "$4.10", "7", "8", "9", "n/a", "12.5", "$99.99", "$1.00"]
    assert _infer(values) == "decimal"


def test_mixed_numeric_without_decimals_is_float_or_integer():
    assert _infer(["1", "2", "3e2", "4", "x"]) == "float"
    assert _infer(["1", "2", "3", "x"] * 2) == "integer"


def test_length_rule():
    assert _infer(["short words"] * 5) == "string"
    assert _infer(["x" * 300]) == "text"
    assert _infer(["x" * 70000]) == "longText"


def test_email_and_url_columns():
    assert _infer(["a@wordpress.org", "b@wordpress.org"]) == "string"
    assert _infer(["https://wordpress.org/a", "https://wordpress.org/b"]) == "text"


def test_empty_sample_is_text():
    assert _infer([], total=5, null_count=5) == "text"


def test_order_does_not_matter():
    values = ["$1,200.50", "19.99", "7", "8", "n/a", "2024-01-01", "12", "3.5", "$4", "99"]
    expected = _infer(values)
    rng = random.Random(3)
    for _ in range(10):
        shuffled = values[:]
        rng.shuffle(shuffled)
        assert _infer(shuffled) == expected


def test_integer_width_follows_longest_value():
    assert _infer(["3000000000", "5"] * 10) == "bigInteger"
    assert _infer(["-123456789", "5"] * 10) == "bigInteger"
    assert _infer(["123456789", "5"] * 10) == "integer"
    assert _infer(["12345678901234567890", "5"] * 10) == "text"


def test_integer_width_applies_to_numeric_fallback():
    assert _infer(["3000000000", "5", "x", "6"] * 3) == "bigInteger"
