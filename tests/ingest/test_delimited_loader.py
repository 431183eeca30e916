"""End-to-end delimited ingestion into an in-memory DuckDB sink."""

import pytest

from importer.ingest.delimited_loader import DelimitedImporter, default_table_name
from importer.ingest.delimited_parser import DelimitedOptions
from importer.ingest.errors import SchemaError, SourceNotFoundError


def _run(sink, cfg, path, probe, options=None, **kw):
    return DelimitedImporter(sink, options, cfg=cfg, memory_probe=probe, **kw).run(path)


def test_header_and_text_columns(sink, cfg, calm_probe, write_csv):
    path = write_csv('id,amount\n1,19.99\n2,"$1,200.50"\n', "orders.csv")
    report = _run(sink, cfg, path, calm_probe)

    assert sink.get_columns("orders") == ["id", "amount"]
    assert set(sink.column_types("orders").values()) == {"VARCHAR"}
    rows = sink.select_rows("orders", ["id", "amount"], limit=10)
    assert rows == [{"id": "1", "amount": "19.99"}, {"id": "2", "amount": "$1,200.50"}]
    assert report.records_encountered == 2
    assert report.rows_inserted == 2
    assert report.is_balanced()


def test_header_names_are_normalized(sink, cfg, calm_probe, write_csv):
    path = write_csv("Order ID,Order ID,2nd Value,select\n1,2,3,4\n")
    _run(sink, cfg, path, calm_probe, DelimitedOptions(table="t"))
    assert sink.get_columns("t") == ["order_id", "order_id_2", "c_2nd_value", "select_value"]


def test_short_and_long_rows_are_aligned(sink, cfg, calm_probe, write_csv):
    path = write_csv("a,b,c\n1\n1,2,3,4,5\n1,2,3\n")
    report = _run(sink, cfg, path, calm_probe, DelimitedOptions(table="t"))

    rows = sink.select_rows("t", ["a", "b", "c"], limit=10)
    assert rows[0] == {"a": "1", "b": "", "c": ""}
    assert rows[1] == {"a": "1", "b": "2", "c": "3"}
    assert report.rows_normalized == 2
    assert report.rows_inserted == 3


def test_headerless_file_uses_positional_names(sink, cfg, calm_probe, write_csv):
    path = write_csv("x|y\nz|w\n")
    report = _run(sink, cfg, path, calm_probe, DelimitedOptions(delimiter=None, has_header=False, table="t"))
    assert sink.get_columns("t") == ["column_1", "column_2"]
    assert report.rows_inserted == 2


def test_explicit_headers_replace_header_row(sink, cfg, calm_probe, write_csv):
    path = write_csv("a,b\n1,2\n")
    _run(sink, cfg, path, calm_probe, DelimitedOptions(headers=("left", "right"), table="t"))
    assert sink.select_rows("t", ["left", "right"], limit=5) == [{"left": "1", "right": "2"}]


def test_existing_table_gains_missing_columns(sink, cfg, calm_probe, write_csv):
    _run(sink, cfg, write_csv("a,b\n1,2\n", "one.csv"), calm_probe, DelimitedOptions(table="t"))
    _run(sink, cfg, write_csv("a,c\n3,4\n", "two.csv"), calm_probe, DelimitedOptions(table="t"))

    assert sink.get_columns("t") == ["a", "b", "c"]
    rows = sink.select_rows("t", ["a", "b", "c"], limit=5)
    assert rows == [{"a": "1", "b": "2", "c": None}, {"a": "3", "b": None, "c": "4"}]


def test_malformed_row_is_a_failed_item(sink, cfg, calm_probe, write_csv):
    path = write_csv('a,b,c\n1,ok,2\n3,"bad"x,5\n6,fine,7\n')
    report = _run(sink, cfg, path, calm_probe, DelimitedOptions(table="t"))

    assert sink.count("t") == 2
    (item,) = report.failed_items
    assert item.phase == "parse"
    assert item.table == "t"
    assert item.raw_payload == '3,"bad"x,5\n'
    assert report.records_encountered == 3
    assert report.is_balanced()


def test_many_rows_flush_in_batches(sink, cfg, calm_probe, write_csv):
    body = "".join(f"{i},{i * 2}\n" for i in range(25))
    progress = []

    class Observer:
        def on_progress(self, cursor):
            progress.append(cursor.processed)

        def on_memory(self, snapshot):
            pass

    report = _run(sink, cfg, write_csv("n,m\n" + body), calm_probe, DelimitedOptions(table="t"), observer=Observer())
    assert sink.count("t") == 25
    assert report.rows_inserted == 25
    assert progress == [0, 10, 20, 25]


def test_unreadable_header_is_fatal(sink, cfg, calm_probe, write_csv):
    with pytest.raises(SchemaError):
        _run(sink, cfg, write_csv('"a"b,c\n1,2\n'), calm_probe)


def test_missing_source_is_fatal(sink, cfg, tmp_path):
    with pytest.raises(SourceNotFoundError):
        DelimitedImporter(sink, cfg=cfg).run(tmp_path / "nope.csv")


def test_default_table_name(tmp_path):
    assert default_table_name(tmp_path / "Sales Report 2024.csv") == "sales_report_2024"
