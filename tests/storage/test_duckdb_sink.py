"""DuckDB sink: schema setup, atomic inserts and statistics primitives."""

from decimal import Decimal

import pytest

from importer.ingest.errors import SchemaError, StorageError
from importer.storage.duckdb_sink import DuckDBSink
from importer.storage.schema import ColumnSpec, text_columns


def test_create_insert_and_read_back_in_order(sink):
    sink.create_table_from_schema("t", text_columns(["a", "b"]))
    assert sink.table_exists("t")
    assert sink.get_columns("t") == ["a", "b"]

    sink.insert_batch("t", [{"a": "1", "b": "x"}, {"a": "2", "b": "y"}, {"a": "3"}])
    assert sink.count("t") == 3
    rows = sink.select_rows("t", ["a", "b"], limit=2, offset=1)
    assert rows == [{"a": "2", "b": "y"}, {"a": "3", "b": None}]


def test_logical_types_map_to_engine_types(sink):
    sink.create_table_from_schema(
        "typed",
        [
            ColumnSpec("id", "bigInteger", primary_key=True, nullable=False),
            ColumnSpec("price", "decimal"),
            ColumnSpec("when", "datetime"),
            ColumnSpec("flag", "boolean"),
        ],
    )
    types = sink.column_types("typed")
    assert types["id"] == "BIGINT"
    assert types["price"].startswith("DECIMAL")
    assert types["when"] == "TIMESTAMP"
    assert types["flag"] == "BOOLEAN"

    sink.insert_batch("typed", [{"id": 1, "price": Decimal("9.5"), "when": "2024-01-15 10:30:00", "flag": True}])
    assert sink.select_rows("typed", ["price"], limit=1) == [{"price": Decimal("9.5")}]


def test_insert_batch_is_atomic(sink):
    sink.create_table_from_schema("p", [ColumnSpec("id", "bigInteger", primary_key=True, nullable=False)])
    sink.insert_batch("p", [{"id": 1}])
    # One duplicate key poisons the whole batch; nothing from it lands.
    with pytest.raises(StorageError):
        sink.insert_batch("p", [{"id": 2}, {"id": 1}, {"id": 3}])
    assert sink.count("p") == 1
    # The connection is still usable afterwards.
    sink.insert_batch("p", [{"id": 2}])
    assert sink.count("p") == 2


def test_create_without_columns_is_a_schema_error(sink):
    with pytest.raises(SchemaError):
        sink.create_table_from_schema("empty", [])


def test_add_column_is_additive(sink):
    sink.create_table_from_schema("t", text_columns(["a"]))
    sink.insert_batch("t", [{"a": "1"}])
    sink.add_column("t", ColumnSpec("b"))
    assert sink.get_columns("t") == ["a", "b"]
    assert sink.select_rows("t", ["a", "b"], limit=10) == [{"a": "1", "b": None}]


def test_statistics_ignore_null_and_empty(sink):
    sink.create_table_from_schema("s", text_columns(["v"]))
    sink.insert_batch("s", [{"v": x} for x in ["b", "", None, "a", "b", "c"]])

    assert sink.count("s") == 6
    assert sink.count_where("s", {"v": None}) == 1
    assert sink.count_where("s", {"v": ""}) == 1
    assert sink.count_distinct("s", "v") == 3
    assert sink.min("s", "v") == "a"
    assert sink.max("s", "v") == "c"
    # First-N non-null in insertion order.
    assert sink.sample_non_null("s", "v", 3) == ["b", "a", "b"]


def test_delete_where_and_drop(sink):
    sink.create_table_from_schema("d", text_columns(["k"]))
    sink.insert_batch("d", [{"k": "x"}, {"k": "y"}, {"k": "x"}])
    assert sink.delete_where("d", {"k": "x"}) == 2
    assert sink.count("d") == 1
    sink.drop_table("d")
    assert not sink.table_exists("d")


def test_quoted_identifiers_survive_odd_names(sink):
    sink.create_table_from_schema('we"ird', text_columns(["select", "a b"]))
    sink.insert_batch('we"ird', [{"select": "1", "a b": "2"}])
    assert sink.get_columns('we"ird') == ["select", "a b"]


def test_file_backed_sink_creates_parent_dirs(tmp_path):
    path = tmp_path / "nested" / "dir" / "import.duckdb"
    with DuckDBSink.open(path) as s:
        s.create_table_from_schema("t", [ColumnSpec("a")])
        s.insert_batch("t", [{"a": "x"}])
    with DuckDBSink.open(path) as s:
        assert s.count("t") == 1


def test_statistics_on_typed_columns(sink):
    sink.create_table_from_schema("n", [ColumnSpec("id", "bigInteger"), ColumnSpec("when", "datetime")])
    sink.insert_batch("n", [{"id": 5, "when": "2024-01-15 10:30:00"}, {"id": None, "when": None}])

    # A text literal compares against the value's text form, never a cast of the literal.
    assert sink.count_where("n", {"id": ""}) == 0
    assert sink.count_where("n", {"id": "5"}) == 1
    assert sink.count_where("n", {"id": None}) == 1
    assert sink.count_where("n", {"when": ""}) == 0
    assert sink.count_distinct("n", "id") == 1
    assert sink.max_length("n", "id") == 1


def test_max_length_covers_every_row(sink):
    sink.create_table_from_schema("m", text_columns(["v"]))
    sink.insert_batch("m", [{"v": x} for x in ["1", " -3000000000 ", "abcdefghijklmnop", "", None]])

    assert sink.max_length("m", "v") == 16
    assert sink.max_length("m", "v", pattern=r"-?[0-9]+") == 11

    sink.create_table_from_schema("blank", text_columns(["v"]))
    sink.insert_batch("blank", [{"v": ""}, {"v": None}])
    assert sink.max_length("blank", "v") == 0


def test_query_errors_surface_as_storage_errors(sink):
    sink.create_table_from_schema("q", text_columns(["v"]))
    with pytest.raises(StorageError):
        sink.count_where("q", {"missing": ""})
    with pytest.raises(StorageError):
        sink.max_length("q", "missing")
    with pytest.raises(StorageError):
        sink.select_rows("nope", ["v"], limit=1)
