"""Delimited row parsing over physical lines."""

from importer.ingest.delimited_parser import DelimitedOptions, align, iter_rows, positional_names


def _lines(text: str) -> list[str]:
    return text.splitlines(keepends=True)


def test_quoted_field_spans_lines():
    rows = list(iter_rows(_lines('a,b\n1,"two\nlines"\n3,x\n'), DelimitedOptions(), ","))
    assert [r.values for r in rows] == [["a", "b"], ["1", "two\nlines"], ["3", "x"]]
    assert rows[1].line_no == 2
    assert rows[2].line_no == 4


def test_malformed_row_keeps_raw_text_and_parsing_resumes():
    rows = list(iter_rows(_lines('1,ok,2\n3,"bad"x,5\n6,fine,7\n'), DelimitedOptions(), ","))
    assert [r.ok for r in rows] == [True, False, True]
    bad = rows[1]
    assert bad.raw == '3,"bad"x,5\n'
    assert bad.values is None
    assert "line 2" in bad.error
    assert rows[2].values == ["6", "fine", "7"]


def test_doubled_quote_is_a_literal_quote():
    (row,) = iter_rows(_lines('"say ""hi"""\n'), DelimitedOptions(), ",")
    assert row.values == ['say "hi"']


def test_empty_rows_are_skipped_by_default():
    text = "a,b\n\n , \n1,2\n"
    assert len(list(iter_rows(_lines(text), DelimitedOptions(), ","))) == 2
    kept = list(iter_rows(_lines(text), DelimitedOptions(skip_empty_rows=False), ","))
    assert len(kept) == 4


def test_trim_whitespace():
    (row,) = iter_rows(_lines(" a ; b \n"), DelimitedOptions(trim_whitespace=True), ";")
    assert row.values == ["a", "b"]


def test_align_pads_and_truncates():
    assert align(["1"], 3) == (["1", "", ""], True)
    assert align(["1", "2", "3", "4"], 2) == (["1", "2"], True)
    assert align(["1", "2"], 2) == (["1", "2"], False)


def test_positional_names():
    assert positional_names(3) == ["column_1", "column_2", "column_3"]
