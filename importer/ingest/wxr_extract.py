# ------------------------------------------------------------
# Module: importer/ingest/wxr_extract.py
# Purpose: Map one parsed WXR fragment to routed, sanitized rows.
# ------------------------------------------------------------

"""Record extraction for WXR fragments.

One `item` fragment yields a `posts` row plus its dependent rows (postmeta,
comments, term references, attachment); one `wp:author` fragment yields a
`users` row. Each call returns an `ExtractOutcome`; nothing here raises for
bad input.

Responsibilities
----------------
- Derive a stable post id: explicit `wp:post_id`, else `?p=<n>` in `guid` or
  `link`, else a hash of title and date.
- Deduplicate shared terms through the per-job `SeenTerms` passed in, while
  emitting a relationship row for every record that references a term.
- Apply field sanitization (markup safelist, truncation, email/URL/IP, dates).

Notes
-----
- Serialized PHP and JSON meta values are stored verbatim.
- Field lookup is by namespace URI (resolved per document), never by the
  prefix text used in the file.
"""

from __future__ import annotations

import logging
import mimetypes
import re
from posixpath import basename
from urllib.parse import urlsplit

from lxml import etree

from importer.utils.hashing import stable_id

from . import sanitize as s
from .types import ExtractOutcome, RoutedRow
from .wxr_schema import AUTHOR, ITEM, WxrOptions, column_lengths
from .xml_cursor import Fragment, parse_fragment

log = logging.getLogger("ingest.extract")

_POST_ID_IN_URL = re.compile(r"[?&]p=(\d+)")
_SERIALIZED = re.compile(r"^(a:\d+:\{|s:\d+:|i:\d+;|d:\d+\.\d+;|b:[01];|N;)")

_APPROVED = {"1", "approve", "approved", "true"}
_KEPT_STATUSES = {"spam", "trash"}

_POSTS = column_lengths("posts")
_COMMENTS = column_lengths("comments")
_USERS = column_lengths("users")
_TERMS = column_lengths("terms")


class SeenTerms:
    """Term ids already emitted during one job."""

    def __init__(self) -> None:
        self._ids: set[int] = set()

    def add(self, term_id: int) -> bool:
        """Record `term_id`; True the first time it is seen."""
        if term_id in self._ids:
            return False
        self._ids.add(term_id)
        return True

    def __len__(self) -> int:
        return len(self._ids)

    def __contains__(self, term_id: object) -> bool:
        return term_id in self._ids


def _text(el: etree._Element, path: str, ns: dict[str, str]) -> str:
    """Text (CDATA included) of the first element at `path`, or ''."""
    found = el.find(path, namespaces=ns)
    if found is None:
        return ""
    return "".join(found.itertext())


def derive_post_id(el: etree._Element, ns: dict[str, str]) -> int:
    explicit = _text(el, "wp:post_id", ns).strip()
    if explicit.isdigit():
        return int(explicit)
    for field in ("guid", "link"):
        m = _POST_ID_IN_URL.search(_text(el, field, ns))
        if m:
            return int(m.group(1))
    return stable_id(_text(el, "title", ns).strip(), _text(el, "wp:post_date", ns).strip())


def normalize_approval(value: str) -> str:
    v = value.strip().lower()
    if v in _APPROVED:
        return "1"
    if v in _KEPT_STATUSES:
        return v
    return "0"


def is_structured_meta(value: str) -> bool:
    """True for serialized PHP or JSON object/array meta values."""
    v = value.strip()
    if _SERIALIZED.match(v):
        return True
    return v[:1] in ("{", "[") and v[-1:] in ("}", "]")


def _post_row(el: etree._Element, ns: dict[str, str], post_id: int) -> dict:
    post_date = s.clean_date(_text(el, "wp:post_date", ns)) or s.clean_date(_text(el, "pubDate", ns))
    return {
        "post_id": post_id,
        "post_title": s.clean_text(_text(el, "title", ns), _POSTS["post_title"]),
        "post_content": s.clean_text(_text(el, "content:encoded", ns)),
        "post_excerpt": s.clean_text(_text(el, "excerpt:encoded", ns)),
        "post_status": s.clean_text(_text(el, "wp:status", ns), _POSTS["post_status"], markup=False) or "publish",
        "post_type": s.clean_text(_text(el, "wp:post_type", ns), _POSTS["post_type"], markup=False) or "post",
        "post_author": s.clean_login(_text(el, "dc:creator", ns), _POSTS["post_author"]),
        "post_date": post_date,
        "post_date_gmt": s.clean_date(_text(el, "wp:post_date_gmt", ns)),
        "post_name": s.slugify(_text(el, "wp:post_name", ns), _POSTS["post_name"]),
        "post_parent": s.clean_int(_text(el, "wp:post_parent", ns)),
        "menu_order": s.clean_int(_text(el, "wp:menu_order", ns)),
        "comment_status": s.clean_text(_text(el, "wp:comment_status", ns), _POSTS["comment_status"], markup=False),
        "guid": s.truncate(_text(el, "guid", ns).strip(), _POSTS["guid"]),
        "link": s.clean_url(_text(el, "link", ns), _POSTS["link"]),
    }


def _meta_rows(el: etree._Element, ns: dict[str, str], post_id: int) -> list[RoutedRow]:
    rows: list[RoutedRow] = []
    for meta in el.iterfind("wp:postmeta", namespaces=ns):
        key = _text(meta, "wp:meta_key", ns).strip()
        if not key:
            continue
        value = _text(meta, "wp:meta_value", ns)
        if not is_structured_meta(value):
            value = value.strip()
        rows.append(("postmeta", {"post_id": post_id, "meta_key": s.truncate(key, 255), "meta_value": value}))
    return rows


def _comment_rows(el: etree._Element, ns: dict[str, str], post_id: int) -> list[RoutedRow]:
    rows: list[RoutedRow] = []
    for c in el.iterfind("wp:comment", namespaces=ns):
        author = _text(c, "wp:comment_author", ns)
        date = _text(c, "wp:comment_date", ns)
        content = _text(c, "wp:comment_content", ns)
        raw_id = _text(c, "wp:comment_id", ns).strip()
        comment_id = int(raw_id) if raw_id.isdigit() else stable_id(author, date, content[:100])
        rows.append(
            (
                "comments",
                {
                    "comment_id": comment_id,
                    "comment_post_id": post_id,
                    "comment_author": s.clean_text(author, _COMMENTS["comment_author"], markup=False),
                    "comment_author_email": s.clean_email(_text(c, "wp:comment_author_email", ns)),
                    "comment_author_url": s.clean_url(_text(c, "wp:comment_author_url", ns)),
                    "comment_author_ip": s.clean_ip(_text(c, "wp:comment_author_IP", ns)),
                    "comment_date": s.clean_date(date),
                    "comment_date_gmt": s.clean_date(_text(c, "wp:comment_date_gmt", ns)),
                    "comment_content": s.clean_text(content),
                    "comment_approved": normalize_approval(_text(c, "wp:comment_approved", ns)),
                    "comment_type": s.clean_text(_text(c, "wp:comment_type", ns), _COMMENTS["comment_type"], markup=False)
                    or "comment",
                    "comment_parent": s.clean_int(_text(c, "wp:comment_parent", ns)),
                    "user_id": s.clean_int(_text(c, "wp:comment_user_id", ns)),
                },
            )
        )
    return rows


def _term_rows(
    el: etree._Element, ns: dict[str, str], post_id: int, seen: SeenTerms
) -> list[RoutedRow]:
    rows: list[RoutedRow] = []
    linked: set[int] = set()
    for cat in el.iterfind("category", namespaces=ns):
        taxonomy = (cat.get("domain") or "").strip()
        name = s.clean_text("".join(cat.itertext()), _TERMS["name"], markup=False)
        if not taxonomy or not name:
            continue
        slug = s.slugify(cat.get("nicename") or name, _TERMS["slug"])
        term_id = stable_id(taxonomy, slug, name)
        if seen.add(term_id):
            rows.append(
                ("terms", {"term_id": term_id, "name": name, "slug": slug, "taxonomy": taxonomy[: _TERMS["taxonomy"]]})
            )
        if term_id not in linked:
            linked.add(term_id)
            rows.append(
                ("term_relationships", {"post_id": post_id, "term_id": term_id, "taxonomy": taxonomy[:32]})
            )
    return rows


def _attachment_rows(el: etree._Element, ns: dict[str, str], post_id: int, post_type: str) -> list[RoutedRow]:
    if post_type != "attachment":
        return []
    url = s.clean_url(_text(el, "wp:attachment_url", ns), 255)
    if not url:
        return []
    name = basename(urlsplit(url).path)
    # Without wp:post_mime_type, guess from the file name.
    mime = s.clean_text(_text(el, "wp:post_mime_type", ns), 100, markup=False)
    if not mime:
        mime = mimetypes.guess_type(name)[0] or ""
    row = {"post_id": post_id, "attachment_url": url, "file_name": name[:255], "mime_type": mime}
    return [("attachments", row)]


def extract_item(
    el: etree._Element, ns: dict[str, str], options: WxrOptions, seen: SeenTerms
) -> list[RoutedRow]:
    post_id = derive_post_id(el, ns)
    post = _post_row(el, ns, post_id)
    rows: list[RoutedRow] = [("posts", post)]
    if options.extract_meta:
        rows += _meta_rows(el, ns, post_id)
    if options.extract_comments:
        rows += _comment_rows(el, ns, post_id)
    if options.extract_terms:
        rows += _term_rows(el, ns, post_id, seen)
    if options.extract_attachments:
        rows += _attachment_rows(el, ns, post_id, post["post_type"])
    return rows


def extract_author(el: etree._Element, ns: dict[str, str]) -> list[RoutedRow]:
    login = s.clean_login(_text(el, "wp:author_login", ns), _USERS["user_login"])
    if not login:
        raise ValueError("author without a usable wp:author_login")
    raw_id = _text(el, "wp:author_id", ns).strip()
    user_id = int(raw_id) if raw_id.isdigit() else stable_id("user", login)
    return [
        (
            "users",
            {
                "user_id": user_id,
                "user_login": login,
                "user_email": s.clean_email(_text(el, "wp:author_email", ns)),
                "display_name": s.clean_text(_text(el, "wp:author_display_name", ns), _USERS["display_name"], markup=False),
                "first_name": s.clean_text(_text(el, "wp:author_first_name", ns), _USERS["first_name"], markup=False),
                "last_name": s.clean_text(_text(el, "wp:author_last_name", ns), _USERS["last_name"], markup=False),
            },
        )
    ]


def extract_fragment(
    fragment: Fragment, ns: dict[str, str], options: WxrOptions, seen: SeenTerms
) -> ExtractOutcome:
    """Parse and extract one fragment; failures come back as outcomes."""
    if not fragment.complete:
        return ExtractOutcome.failure(f"unterminated <{fragment.kind}> fragment", phase="parse")
    try:
        el = parse_fragment(fragment)
    except (etree.XMLSyntaxError, ValueError) as e:
        return ExtractOutcome.failure(f"malformed <{fragment.kind}> fragment: {e}", phase="parse")

    try:
        if fragment.kind == ITEM:
            rows = extract_item(el, ns, options, seen)
        elif fragment.kind == AUTHOR:
            rows = extract_author(el, ns)
        else:
            return ExtractOutcome.failure(f"unknown fragment kind '{fragment.kind}'")
    except (ValueError, TypeError) as e:
        return ExtractOutcome.failure(f"{fragment.kind} extraction failed: {e}")
    return ExtractOutcome.success(rows)
