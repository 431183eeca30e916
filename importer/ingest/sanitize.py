# ------------------------------------------------------------
# Module: importer/ingest/sanitize.py
# Purpose: Field-level cleanup for extracted text before it reaches storage.
# ------------------------------------------------------------

"""Sanitize extracted text fields.

Responsibilities
----------------
- Strip markup except a small safelist of formatting tags.
- Trim and truncate to the destination column length.
- Normalize email/URL/IP fields (invalid → empty string).
- Convert export dates to a canonical string, mapping zero dates to None.
- Normalize slugs and user logins.

Notes
-----
- Markup stripping uses `lxml.html` and only runs when the value looks like
  it contains a tag, so plain text keeps its characters untouched.
- Attributes are dropped from kept tags except `href` on links.
- Output with markup is an HTML fragment (entities escaped throughout);
  with markup removed entirely it is plain, unescaped text.
"""

from __future__ import annotations

import ipaddress
import logging
import re
from xml.sax.saxutils import escape

from lxml import etree, html
from pydantic import AnyHttpUrl, EmailStr, TypeAdapter, ValidationError

from importer.utils.dates import canonical_datetime

log = logging.getLogger("ingest.sanitize")

ALLOWED_TAGS = frozenset(
    {"p", "br", "strong", "em", "ul", "ol", "li", "a", "blockquote", "h1", "h2", "h3", "h4", "h5", "h6"}
)
_DROP_WITH_CONTENT = frozenset({"script", "style"})
_TAG_RE = re.compile(r"<[A-Za-z/!?]")

_email = TypeAdapter(EmailStr)
_url = TypeAdapter(AnyHttpUrl)


def truncate(value: str, max_len: int | None) -> str:
    if max_len is None or len(value) <= max_len:
        return value
    return value[:max_len]


def strip_markup(value: str, allowed: frozenset[str] = ALLOWED_TAGS) -> str:
    """Remove tags outside `allowed`, keeping their text content."""
    if not _TAG_RE.search(value):
        return value
    try:
        root = html.fragment_fromstring(value, create_parent="div")
    except (etree.ParserError, ValueError):
        log.debug("markup parse failed; returning tag-stripped text")
        return re.sub(r"<[^>]*>", "", value)

    for el in list(root.iter()):
        if el is root:
            continue
        if not isinstance(el.tag, str):
            # comments / processing instructions
            el.drop_tree()
        elif el.tag in _DROP_WITH_CONTENT:
            el.drop_tree()
        elif el.tag not in allowed:
            el.drop_tag()
        else:
            href = el.get("href") if el.tag == "a" else None
            el.attrib.clear()
            if href and not href.strip().lower().startswith("javascript:"):
                el.set("href", href)

    if not allowed:
        return root.text or ""
    # Serialized children keep entities escaped; the leading text must match.
    out = escape(root.text or "")
    for child in root:
        out += etree.tostring(child, encoding="unicode", method="html", with_tail=True)
    return out


def clean_text(value: str | None, max_len: int | None = None, markup: bool = True) -> str:
    """Strip disallowed markup (or all markup), trim, truncate."""
    if value is None:
        return ""
    v = strip_markup(value) if markup else strip_markup(value, frozenset())
    return truncate(v.strip(), max_len)


def clean_email(value: str | None) -> str:
    v = (value or "").strip()
    if not v:
        return ""
    try:
        return truncate(str(_email.validate_python(v)), 100)
    except ValidationError:
        return ""


def clean_url(value: str | None, max_len: int | None = 200) -> str:
    """Return the trimmed URL when it is a valid http(s) URL, else ''."""
    v = (value or "").strip()
    if not v:
        return ""
    try:
        _url.validate_python(v)
    except ValidationError:
        return ""
    return truncate(v, max_len)


def clean_ip(value: str | None) -> str:
    v = (value or "").strip()
    try:
        return str(ipaddress.ip_address(v))
    except ValueError:
        return ""


def clean_date(value: str | None) -> str | None:
    """Canonical `YYYY-MM-DD HH:MM:SS`, or None for empty/zero/unparseable."""
    return canonical_datetime(value)


def slugify(value: str | None, max_len: int = 200) -> str:
    v = (value or "").strip().lower()
    v = re.sub(r"[^a-z0-9\-_]", "-", v)
    v = re.sub(r"-+", "-", v).strip("-")
    return v[:max_len]


def clean_login(value: str | None, max_len: int = 60) -> str:
    v = re.sub(r"[^a-zA-Z0-9._\-@]", "", (value or "").strip())
    return v[:max_len]


def clean_int(value: str | None, default: int = 0) -> int:
    v = (value or "").strip()
    return int(v) if re.fullmatch(r"-?\d+", v) else default


def is_email(value: str) -> bool:
    return bool(clean_email(value))


def is_http_url(value: str) -> bool:
    return bool(clean_url(value, max_len=None))
