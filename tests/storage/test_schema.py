import pytest

from importer.ingest.errors import SchemaError
from importer.ingest.schema_sync import ensure_table
from importer.storage.schema import ColumnSpec, norm_col, text_columns, unique_names


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("  Post Title ", "post_title"),
        ("E-mail (work)", "e_mail_work"),
        ("2024 total", "c_2024_total"),
        ("order", "order_value"),
        ("!!!", "column"),
    ],
)
def test_norm_col(raw, expected):
    assert norm_col(raw) == expected


def test_unique_names_suffixes_duplicates():
    assert unique_names(["a", "A", "a ", "b"]) == ["a", "a_2", "a_3", "b"]


def test_unknown_logical_type_is_rejected():
    with pytest.raises(ValueError):
        ColumnSpec("x", "varchar")


def test_ensure_table_creates_then_adds(sink):
    assert ensure_table(sink, "t", text_columns(["a"])) == []
    sink.insert_batch("t", [{"a": "1"}])

    added = ensure_table(sink, "t", [ColumnSpec("A", "text"), ColumnSpec("b", "integer", nullable=False)])

    assert added == ["b"]
    assert sink.get_columns("t") == ["a", "b"]
    assert sink.count_where("t", {"b": None}) == 1


def test_create_failure_is_schema_error(sink):
    with pytest.raises(SchemaError):
        sink.create_table_from_schema("t", [ColumnSpec("a"), ColumnSpec("a")])
