"""Record extraction: id derivation, dependent rows and term dedup."""

from lxml import etree

from importer.ingest.wxr_extract import (
    SeenTerms,
    derive_post_id,
    extract_fragment,
    is_structured_meta,
    normalize_approval,
)
from importer.ingest.wxr_schema import WxrOptions, resolve_namespaces
from importer.ingest.xml_cursor import Fragment
from importer.utils.hashing import stable_id

DECLS = {
    "wp": "http://wordpress.org/export/1.2/",
    "content": "http://purl.org/rss/1.0/modules/content/",
    "excerpt": "http://wordpress.org/export/1.2/excerpt/",
    "dc": "http://purl.org/dc/elements/1.1/",
}
NS = resolve_namespaces(DECLS)


def _el(body: str):
    decls = " ".join(f'xmlns:{p}="{u}"' for p, u in DECLS.items())
    return etree.fromstring(f"<item {decls}>{body}</item>")


def _frag(body: str, kind: str = "item") -> Fragment:
    tag = "item" if kind == "item" else "wp:author"
    return Fragment(kind, f"<{tag}>{body}</{tag}>", 0, DECLS)


def test_explicit_id_wins():
    el = _el("<wp:post_id>7</wp:post_id><guid>http://x.com/?p=42</guid>")
    assert derive_post_id(el, NS) == 7


def test_id_from_guid_then_link():
    assert derive_post_id(_el("<guid>http://x.com/?p=42</guid>"), NS) == 42
    assert derive_post_id(_el("<guid>http://x.com/a</guid><link>http://x.com/?cat=1&amp;p=9</link>"), NS) == 9


def test_hash_fallback_is_stable():
    body = "<title>Hello</title><wp:post_date>2024-01-15 10:30:00</wp:post_date>"
    first = derive_post_id(_el(body), NS)
    assert first == derive_post_id(_el(body), NS)
    assert first == stable_id("Hello", "2024-01-15 10:30:00")
    assert 0 < first < 2**63


def test_item_routes_dependent_rows():
    body = (
        "<title>Post</title><wp:post_id>3</wp:post_id>"
        "<wp:post_date>2024-01-15 10:30:00</wp:post_date>"
        "<wp:post_date_gmt>0000-00-00 00:00:00</wp:post_date_gmt>"
        "<wp:postmeta><wp:meta_key>_thumb</wp:meta_key><wp:meta_value>a:1:{i:0;s:1:\"x\";}</wp:meta_value></wp:postmeta>"
        "<wp:postmeta><wp:meta_key></wp:meta_key><wp:meta_value>skipped</wp:meta_value></wp:postmeta>"
        "<wp:comment><wp:comment_id>11</wp:comment_id><wp:comment_author>Ann</wp:comment_author>"
        "<wp:comment_author_email>ann@wordpress.org</wp:comment_author_email>"
        "<wp:comment_author_IP>10.0.0.1</wp:comment_author_IP>"
        "<wp:comment_approved>approve</wp:comment_approved></wp:comment>"
        '<category domain="category" nicename="news"><![CDATA[News]]></category>'
    )
    outcome = extract_fragment(_frag(body), NS, WxrOptions(), SeenTerms())
    assert outcome.ok
    tables = [t for t, _ in outcome.rows]
    assert tables == ["posts", "postmeta", "comments", "terms", "term_relationships"]

    post = outcome.rows[0][1]
    assert post["post_id"] == 3
    assert post["post_date"] == "2024-01-15 10:30:00"
    assert post["post_date_gmt"] is None
    assert outcome.rows[1][1]["meta_value"] == 'a:1:{i:0;s:1:"x";}'
    comment = outcome.rows[2][1]
    assert comment["comment_approved"] == "1"
    assert comment["comment_author_ip"] == "10.0.0.1"
    assert comment["comment_post_id"] == 3


def test_disabled_collections_are_not_extracted():
    body = "<wp:post_id>3</wp:post_id><wp:comment><wp:comment_id>1</wp:comment_id></wp:comment>"
    opts = WxrOptions(extract_comments=False, extract_meta=False, extract_terms=False)
    outcome = extract_fragment(_frag(body), NS, opts, SeenTerms())
    assert [t for t, _ in outcome.rows] == ["posts"]


def test_seen_terms_dedups_entities_but_not_relationships():
    seen = SeenTerms()
    cat = '<category domain="post_tag" nicename="py"><![CDATA[Python]]></category>'
    a = extract_fragment(_frag(f"<wp:post_id>1</wp:post_id>{cat}{cat}"), NS, WxrOptions(), seen)
    b = extract_fragment(_frag(f"<wp:post_id>2</wp:post_id>{cat}"), NS, WxrOptions(), seen)

    terms = [r for t, r in a.rows + b.rows if t == "terms"]
    rels = [r for t, r in a.rows + b.rows if t == "term_relationships"]
    assert len(terms) == 1
    assert [r["post_id"] for r in rels] == [1, 2]
    assert terms[0]["term_id"] == stable_id("post_tag", "py", "Python")
    assert len(seen) == 1


def test_author_fragment_and_fallback_id():
    body = "<wp:author_login>jane doe</wp:author_login><wp:author_email>jane@wordpress.org</wp:author_email>"
    outcome = extract_fragment(_frag(body, "author"), NS, WxrOptions(), SeenTerms())
    (table, user), = outcome.rows
    assert table == "users"
    assert user["user_login"] == "janedoe"
    assert user["user_id"] == stable_id("user", "janedoe")


def test_author_without_login_is_an_extract_failure():
    outcome = extract_fragment(_frag("<wp:author_id>3</wp:author_id>", "author"), NS, WxrOptions(), SeenTerms())
    assert not outcome.ok
    assert outcome.phase == "extract"


def test_malformed_fragment_is_a_parse_failure():
    frag = Fragment("item", "<item><title>x</titl></item>", 0, DECLS)
    outcome = extract_fragment(frag, NS, WxrOptions(), SeenTerms())
    assert not outcome.ok
    assert outcome.phase == "parse"


def test_approval_and_meta_helpers():
    assert [normalize_approval(v) for v in ("1", "approved", "TRUE", "spam", "trash", "hold", "")] == [
        "1", "1", "1", "spam", "trash", "0", "0",
    ]
    assert is_structured_meta('{"a": 1}')
    assert is_structured_meta("b:1;")
    assert not is_structured_meta("plain")


def test_attachment_mime_type_falls_back_to_file_name():
    body = (
        "<wp:post_id>9</wp:post_id><wp:post_type>attachment</wp:post_type>"
        "<wp:attachment_url>http://example.com/up/report.pdf?v=2</wp:attachment_url>"
    )
    outcome = extract_fragment(_frag(body), NS, WxrOptions(), SeenTerms())

    (attachment,) = [r for t, r in outcome.rows if t == "attachments"]
    assert attachment == {
        "post_id": 9,
        "attachment_url": "http://example.com/up/report.pdf?v=2",
        "file_name": "report.pdf",
        "mime_type": "application/pdf",
    }
