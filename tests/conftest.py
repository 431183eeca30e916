"""Shared pytest fixtures for the import core.

Purpose:
    Provide an in-memory DuckDB sink, small WXR/CSV file builders and a
    scripted memory probe so tests never depend on real process memory.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from importer.core.config import Settings
from importer.storage.duckdb_sink import DuckDBSink

WXR_HEAD = """<?xml version="1.0" encoding="UTF-8" ?>
<rss version="2.0"
\txmlns:excerpt="http://wordpress.org/export/1.2/excerpt/"
\txmlns:content="http://purl.org/rss/1.0/modules/content/"
\txmlns:wfw="http://wellformedweb.org/CommentAPI/"
\txmlns:dc="http://purl.org/dc/elements/1.1/"
\txmlns:wp="http://wordpress.org/export/1.2/"
>
<channel>
\t<title>Test Site</title>
\t<link>http://example.com</link>
\t<wp:wxr_version>1.2</wp:wxr_version>
"""

WXR_TAIL = "</channel>\n</rss>\n"


def _item(
    title: str,
    post_id: int | None = None,
    guid: str = "",
    link: str = "",
    date: str = "2024-01-15 10:30:00",
    content: str = "",
    post_type: str = "post",
    categories: tuple[tuple[str, str, str], ...] = (),
    extra: str = "",
) -> str:
    parts = [
        "\t<item>",
        f"\t\t<title>{title}</title>",
        f"\t\t<link>{link}</link>" if link else "",
        f'\t\t<guid isPermaLink="false">{guid}</guid>' if guid else "",
        "\t\t<dc:creator><![CDATA[admin]]></dc:creator>",
        f"\t\t<content:encoded><![CDATA[{content}]]></content:encoded>",
        "\t\t<excerpt:encoded><![CDATA[]]></excerpt:encoded>",
        f"\t\t<wp:post_id>{post_id}</wp:post_id>" if post_id is not None else "",
        f"\t\t<wp:post_date><![CDATA[{date}]]></wp:post_date>",
        "\t\t<wp:post_date_gmt><![CDATA[0000-00-00 00:00:00]]></wp:post_date_gmt>",
        f"\t\t<wp:post_name><![CDATA[{title.lower().replace(' ', '-')}]]></wp:post_name>",
        "\t\t<wp:status><![CDATA[publish]]></wp:status>",
        "\t\t<wp:post_parent>0</wp:post_parent>",
        "\t\t<wp:menu_order>0</wp:menu_order>",
        f"\t\t<wp:post_type><![CDATA[{post_type}]]></wp:post_type>",
    ]
    for domain, nicename, name in categories:
        parts.append(f'\t\t<category domain="{domain}" nicename="{nicename}"><![CDATA[{name}]]></category>')
    parts.append(extra)
    parts.append("\t</item>")
    return "\n".join(p for p in parts if p) + "\n"


def _author(login: str, author_id: int | None = None, email: str = "") -> str:
    id_line = f"<wp:author_id>{author_id}</wp:author_id>" if author_id is not None else ""
    return (
        f"\t<wp:author>{id_line}<wp:author_login><![CDATA[{login}]]></wp:author_login>"
        f"<wp:author_email><![CDATA[{email}]]></wp:author_email>"
        f"<wp:author_display_name><![CDATA[{login.title()}]]></wp:author_display_name>"
        "<wp:author_first_name><![CDATA[]]></wp:author_first_name>"
        "<wp:author_last_name><![CDATA[]]></wp:author_last_name></wp:author>\n"
    )


class ScriptedProbe:
    """Memory probe returning scripted readings, then repeating the last one."""

    def __init__(self, readings: list[int]) -> None:
        self.readings = list(readings)
        self.calls = 0

    def __call__(self) -> int:
        i = min(self.calls, len(self.readings) - 1)
        self.calls += 1
        return self.readings[i]


@pytest.fixture
def sink():
    s = DuckDBSink.open(":memory:", Settings(DUCKDB_THREADS=1, DUCKDB_MEM="256MB"))
    try:
        yield s
    finally:
        s.close()  # Always close the in-memory DB to free resources


@pytest.fixture
def cfg() -> Settings:
    # Small batches so flushing paths run even on tiny fixtures.
    return Settings(BATCH_SIZE=4, MIN_BATCH_SIZE=2, MEMORY_LIMIT="1G", LOG_LEVEL="DEBUG")


@pytest.fixture
def calm_probe():
    """Memory reading that always means low pressure."""
    return lambda: 0


@pytest.fixture
def make_item():
    return _item


@pytest.fixture
def make_author():
    return _author


@pytest.fixture
def scripted_probe():
    return ScriptedProbe


@pytest.fixture
def write_wxr(tmp_path: Path):
    def _write(body: str, name: str = "export.xml") -> Path:
        p = tmp_path / name
        p.write_text(WXR_HEAD + body + WXR_TAIL, encoding="utf-8")
        return p

    return _write


@pytest.fixture
def write_csv(tmp_path: Path):
    def _write(text: str, name: str = "data.csv") -> Path:
        p = tmp_path / name
        p.write_bytes(text.encode("utf-8"))
        return p

    return _write
