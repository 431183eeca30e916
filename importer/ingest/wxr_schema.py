# ------------------------------------------------------------
# Module: importer/ingest/wxr_schema.py
# Purpose: Structural configuration and destination schemas for WXR exports.
# ------------------------------------------------------------

"""WXR (WordPress eXtended RSS) structure: namespaces, boundaries, tables.

Responsibilities
----------------
- Resolve the document's namespace URIs (any WXR 1.x version) to the logical
  prefixes used for field lookup (`wp`, `content`, `excerpt`, `dc`).
- Decide which elements are record boundaries (`item`, `wp:author`).
- Define the destination tables and which of them hold primary rows.
- Carry per-job extraction toggles (`WxrOptions`).
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from importer.storage.schema import ColumnSpec

DEFAULT_WP_NS = "http://wordpress.org/export/1.2/"
CONTENT_NS = "http://purl.org/rss/1.0/modules/content/"
DC_NS = "http://purl.org/dc/elements/1.1/"

_WP_NS_RE = re.compile(r"^https?://wordpress\.org/export/\d+\.\d+/$")
_EXCERPT_NS_RE = re.compile(r"^https?://wordpress\.org/export/\d+\.\d+/excerpt/$")

ITEM = "item"
AUTHOR = "author"

PRIMARY_TABLES = ("posts", "users")


@dataclass(frozen=True)
class WxrOptions:
    """Which dependent collections to extract alongside each record."""

    extract_meta: bool = True
    extract_comments: bool = True
    extract_terms: bool = True
    extract_users: bool = True
    extract_attachments: bool = True


def resolve_namespaces(declared: dict[str, str]) -> dict[str, str]:
    """Map logical prefixes to the URIs this document actually uses."""
    uris = set(declared.values())
    wp = next((u for u in uris if _WP_NS_RE.match(u)), DEFAULT_WP_NS)
    excerpt = next((u for u in uris if _EXCERPT_NS_RE.match(u)), wp + "excerpt/")
    return {"wp": wp, "excerpt": excerpt, "content": CONTENT_NS, "dc": DC_NS}


def boundary_test(authors: bool = True):
    """Build the cursor's boundary predicate (any WXR 1.x namespace)."""

    def _is_boundary(uri: str | None, local: str) -> str | None:
        if local == ITEM and uri is None:
            return ITEM
        if authors and local == AUTHOR and uri is not None and _WP_NS_RE.match(uri):
            return AUTHOR
        return None

    return _is_boundary


TABLES: dict[str, list[ColumnSpec]] = {
    "posts": [
        ColumnSpec("post_id", "bigInteger", nullable=False, primary_key=True),
        ColumnSpec("post_title", "string", 255),
        ColumnSpec("post_content", "longText"),
        ColumnSpec("post_excerpt", "text"),
        ColumnSpec("post_status", "string", 20),
        ColumnSpec("post_type", "string", 50),
        ColumnSpec("post_author", "string", 60),
        ColumnSpec("post_date", "datetime"),
        ColumnSpec("post_date_gmt", "datetime"),
        ColumnSpec("post_name", "string", 200),
        ColumnSpec("post_parent", "bigInteger"),
        ColumnSpec("menu_order", "integer"),
        ColumnSpec("comment_status", "string", 20),
        ColumnSpec("guid", "string", 255),
        ColumnSpec("link", "string", 255),
    ],
    "postmeta": [
        ColumnSpec("post_id", "bigInteger", nullable=False),
        ColumnSpec("meta_key", "string", 255),
        ColumnSpec("meta_value", "longText"),
    ],
    "comments": [
        ColumnSpec("comment_id", "bigInteger", nullable=False),
        ColumnSpec("comment_post_id", "bigInteger", nullable=False),
        ColumnSpec("comment_author", "string", 255),
        ColumnSpec("comment_author_email", "string", 100),
        ColumnSpec("comment_author_url", "string", 200),
        ColumnSpec("comment_author_ip", "string", 100),
        ColumnSpec("comment_date", "datetime"),
        ColumnSpec("comment_date_gmt", "datetime"),
        ColumnSpec("comment_content", "text"),
        ColumnSpec("comment_approved", "string", 20),
        ColumnSpec("comment_type", "string", 20),
        ColumnSpec("comment_parent", "bigInteger"),
        ColumnSpec("user_id", "bigInteger"),
    ],
    "terms": [
        ColumnSpec("term_id", "bigInteger", nullable=False, primary_key=True),
        ColumnSpec("name", "string", 200),
        ColumnSpec("slug", "string", 200),
        ColumnSpec("taxonomy", "string", 32),
    ],
    "term_relationships": [
        ColumnSpec("post_id", "bigInteger", nullable=False),
        ColumnSpec("term_id", "bigInteger", nullable=False),
        ColumnSpec("taxonomy", "string", 32),
    ],
    "users": [
        ColumnSpec("user_id", "bigInteger", nullable=False, primary_key=True),
        ColumnSpec("user_login", "string", 60),
        ColumnSpec("user_email", "string", 100),
        ColumnSpec("display_name", "string", 250),
        ColumnSpec("first_name", "string", 255),
        ColumnSpec("last_name", "string", 255),
    ],
    "attachments": [
        ColumnSpec("post_id", "bigInteger", nullable=False),
        ColumnSpec("attachment_url", "string", 255),
        ColumnSpec("file_name", "string", 255),
        ColumnSpec("mime_type", "string", 100),
    ],
}


def column_lengths(table: str) -> dict[str, int | None]:
    return {c.name: c.length for c in TABLES[table]}


def tables_for(options: WxrOptions) -> dict[str, list[ColumnSpec]]:
    """Destination tables needed for the enabled extractions."""
    wanted = {"posts"}
    if options.extract_meta:
        wanted.add("postmeta")
    if options.extract_comments:
        wanted.add("comments")
    if options.extract_terms:
        wanted.update(("terms", "term_relationships"))
    if options.extract_users:
        wanted.add("users")
    if options.extract_attachments:
        wanted.add("attachments")
    return {name: cols for name, cols in TABLES.items() if name in wanted}
