from importer.ingest.delimiter_detect import detect_delimiter, score_delimiter


def test_semicolon_file(write_csv):
    path = write_csv("name;city;zip\nAnn;Paris, FR;75001\nBob;Lyon;69001\n")
    assert detect_delimiter(path) == ";"


def test_tab_file_with_bom(write_csv):
    path = write_csv("\ufeffa\tb\tc\n1\t2\t3\n")
    assert detect_delimiter(path) == "\t"


def test_single_column_falls_back_to_default(write_csv):
    path = write_csv("value\n1\n2\n")
    assert detect_delimiter(path) == ","


def test_consistent_split_beats_ragged_split():
    lines = ["a,b;c", "d;e;f,g,h", "i;j;k"]
    assert score_delimiter(lines, ";") > score_delimiter(lines, ",")
