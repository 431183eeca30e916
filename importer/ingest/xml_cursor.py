# ------------------------------------------------------------
# Module: importer/ingest/xml_cursor.py
# Purpose: Pull cursor over streamed XML text that cuts out record fragments.
# ------------------------------------------------------------

"""Constant-memory structural cursor for tag-delimited exports.

The cursor advances node by node over decoded text chunks (start/end/empty
tags, comments, CDATA, processing instructions, doctype). When it meets a
record-boundary start tag it keeps the element's verbatim source text until
the matching end tag and emits it as one `Fragment`. Only that fragment is
ever parsed into a tree (`parse_fragment`), so memory is bounded by the
largest record, not by the file.

Responsibilities
----------------
- Tokenize markup lexically, skipping comment/CDATA/PI/doctype bodies so
  their content can never open or close a fragment.
- Capture the root element's namespace declarations and resolve qualified
  names to `(namespace URI, local name)` for boundary tests.
- Treat a '<' that does not open well-formed markup as text, so stray
  characters in a record never stall the scan.
- Recover from broken records: a boundary end tag always closes the current
  fragment, and a boundary start tag while capturing closes the previous one.
- Parse fragments with a hardened lxml parser (no entity resolution, no DTD
  loading, no network); a rejected option is logged, never fatal.

Notes
-----
- The document DOCTYPE is skipped and never reaches the fragment parser.
- Offsets are character offsets into the decoded stream.
"""

from __future__ import annotations

import codecs
import logging
import re
from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from xml.sax.saxutils import quoteattr

from lxml import etree

log = logging.getLogger("ingest.xml")

_XML_ENC_RE = re.compile(rb'<\?xml[^>]*encoding=["\']([^"\']+)["\']', re.IGNORECASE)
_START_TAG_RE = re.compile(
    r"""<([^\s/>"'<=]+)(?:\s+[^\s=/>"'<]+\s*=\s*(?:"[^"<]*"|'[^'<]*'))*\s*/?>"""
)
_END_TAG_RE = re.compile(r"""</([^\s/>"'<=]+)\s*>""")
_XMLNS_RE = re.compile(r"""\sxmlns(?::([\w.\-]+))?\s*=\s*(?:"([^"]*)"|'([^']*)')""")

# Boundary test: (namespace uri or None, local name) -> fragment kind or None.
BoundaryTest = Callable[[str | None, str], str | None]


@dataclass(frozen=True)
class Fragment:
    kind: str
    text: str
    offset: int
    namespaces: dict[str, str] = field(default_factory=dict)
    complete: bool = True


def sniff_encoding(path: str | Path) -> str:
    """Encoding from BOM or XML declaration; UTF-8 when absent."""
    with Path(path).open("rb") as fh:
        head = fh.read(256)
    if head.startswith(codecs.BOM_UTF8):
        return "utf-8"
    if head.startswith(codecs.BOM_UTF16_LE) or head.startswith(codecs.BOM_UTF16_BE):
        return "utf-16"
    m = _XML_ENC_RE.search(head)
    enc = m.group(1).decode("ascii").strip().lower() if m else "utf-8"
    try:
        codecs.lookup(enc)
    except LookupError:
        log.warning("unknown declared encoding '%s'; decoding as utf-8", enc)
        return "utf-8"
    return enc


def parse_namespaces(start_tag: str) -> dict[str, str]:
    """`{prefix: uri}` declared on one start tag; default namespace under ''."""
    out: dict[str, str] = {}
    for m in _XMLNS_RE.finditer(start_tag):
        uri = m.group(2) if m.group(2) is not None else m.group(3)
        out[m.group(1) or ""] = uri
    return out


class XmlCursor:
    """Stream fragments out of an iterable of decoded text chunks."""

    def __init__(self, chunks: Iterable[str], is_boundary: BoundaryTest) -> None:
        self._chunks = iter(chunks)
        self._is_boundary = is_boundary
        self._buf = ""
        self._base = 0  # chars discarded before _buf[0]
        self._eof = False
        self.namespaces: dict[str, str] = {}
        self.root_seen = False
        self.nodes_seen = 0

    # ---- buffer management ------------------------------------------------
    def _fill(self) -> bool:
        """Append one chunk; False at end of input."""
        if self._eof:
            return False
        for chunk in self._chunks:
            if chunk:
                self._buf += chunk
                return True
        self._eof = True
        return False

    def _discard(self, upto: int) -> None:
        if upto > 0:
            self._base += upto
            self._buf = self._buf[upto:]

    def _find(self, needle: str, start: int) -> int:
        """Find `needle` at/after `start`, reading more input as needed."""
        while True:
            j = self._buf.find(needle, start)
            if j >= 0 or not self._fill():
                return j

    # ---- name resolution ---------------------------------------------------
    def resolve(self, qname: str, local_decls: dict[str, str] | None = None) -> tuple[str | None, str]:
        prefix, _, local = qname.rpartition(":")
        decls = {**self.namespaces, **(local_decls or {})}
        uri = decls.get(prefix) if prefix else decls.get("")
        return (uri or None), local

    # ---- main loop ---------------------------------------------------------
    def fragments(self) -> Iterator[Fragment]:
        pos = 0
        cap_start: int | None = None  # index in _buf where the open fragment starts
        cap_kind = ""
        cap_qname = ""

        while True:
            i = self._buf.find("<", pos)
            if i < 0:
                if cap_start is None:
                    self._discard(len(self._buf))
                    pos = 0
                if not self._fill():
                    break
                continue

            if cap_start is None:
                # Nothing before the '<' is needed any more.
                self._discard(i)
                pos, i = 0, 0

            while len(self._buf) - i < 9 and self._fill():
                pass
            head = self._buf[i : i + 9]

            if head.startswith("<!--"):
                j = self._find("-->", i + 4)
                if j < 0:
                    break
                pos = j + 3
            elif head.startswith("<![CDATA["):
                j = self._find("]]>", i + 9)
                if j < 0:
                    break
                pos = j + 3
            elif head.startswith("<?"):
                j = self._find("?>", i + 2)
                if j < 0:
                    break
                pos = j + 2
            elif head.startswith("<!"):
                j = self._skip_declaration(i)
                pos = i + 1 if j is None else j
            elif head.startswith("</"):
                m = self._match_tag(_END_TAG_RE, i)
                if m is None:
                    pos = i + 1
                    continue
                pos = m.end()
                self.nodes_seen += 1
                name = m.group(1)
                if cap_start is None:
                    continue
                if name == cap_qname:
                    text = self._buf[cap_start:pos]
                    yield Fragment(cap_kind, text, self._base + cap_start, self.namespaces)
                    self._discard(pos)
                    pos, cap_start = 0, None
            else:
                m = self._match_tag(_START_TAG_RE, i)
                if m is None:
                    pos = i + 1
                    continue
                pos = m.end()
                self.nodes_seen += 1
                raw = m.group(0)
                qname = m.group(1)
                empty = raw.endswith("/>")
                local_decls = parse_namespaces(raw)
                if not self.root_seen:
                    self.root_seen = True
                    self.namespaces = local_decls
                    log.debug("root=%s namespaces=%s", qname, self.namespaces)
                    continue

                kind = self._is_boundary(*self.resolve(qname, local_decls))
                if cap_start is not None and kind is not None and qname == cap_qname:
                    # A new record opened before the previous one closed.
                    text = self._buf[cap_start:i]
                    yield Fragment(cap_kind, text, self._base + cap_start, self.namespaces, complete=False)
                    self._discard(i)
                    pos, i, cap_start = pos - i, 0, None

                if cap_start is None:
                    if kind is None:
                        continue
                    if empty:
                        yield Fragment(kind, raw, self._base + i, self.namespaces)
                        self._discard(pos)
                        pos = 0
                        continue
                    cap_start, cap_kind, cap_qname = i, kind, qname

        if cap_start is not None:
            yield Fragment(
                cap_kind, self._buf[cap_start:], self._base + cap_start, self.namespaces, complete=False
            )
            self._buf = ""

    def _match_tag(self, pattern: re.Pattern[str], i: int) -> re.Match[str] | None:
        """Match a whole tag at `i`, reading more input until it can be decided.

        A tag never contains '<', so once a later '<' is buffered a failed
        match is final. At end of input it is final too.
        """
        while True:
            m = pattern.match(self._buf, i)
            if m is not None:
                return m
            if self._buf.find("<", i + 1) >= 0 or not self._fill():
                return None

    def _skip_declaration(self, i: int) -> int | None:
        """Skip `<!DOCTYPE ...>` including an internal `[...]` subset.

        None when the text at `i` is not a declaration after all.
        """
        depth = 0
        quote = ""
        k = i + 2
        while True:
            while k >= len(self._buf):
                if not self._fill():
                    return None
            ch = self._buf[k]
            if ch == "<" and depth <= 0:
                return None
            if quote:
                if ch == quote:
                    quote = ""
            elif ch in "\"'":
                quote = ch
            elif ch == "[":
                depth += 1
            elif ch == "]":
                depth -= 1
            elif ch == ">" and depth <= 0:
                return k + 1
            k += 1


# ---- fragment parsing -------------------------------------------------------
@lru_cache(maxsize=1)
def secure_parser() -> etree.XMLParser:
    """An lxml parser that will not resolve entities, load DTDs or touch the network."""
    opts = dict(resolve_entities=False, load_dtd=False, no_network=True, huge_tree=False)
    try:
        return etree.XMLParser(**opts)
    except TypeError:
        log.warning("lxml rejected parser hardening options %s; trying one by one", sorted(opts))
    accepted = {}
    for k, v in opts.items():
        try:
            etree.XMLParser(**{k: v})
        except TypeError:
            log.warning("lxml parser option '%s' unsupported; continuing without it", k)
            continue
        accepted[k] = v
    return etree.XMLParser(**accepted)


def parse_fragment(fragment: Fragment) -> etree._Element:
    """Parse one fragment under a synthetic root re-declaring document namespaces.

    Raises `etree.XMLSyntaxError` for malformed fragments and `ValueError`
    when the fragment is not exactly one element.
    """
    decls = " ".join(
        (f"xmlns:{p}={quoteattr(uri)}" if p else f"xmlns={quoteattr(uri)}")
        for p, uri in fragment.namespaces.items()
    )
    wrapped = f"<fragment-root {decls}>{fragment.text}</fragment-root>"
    root = etree.fromstring(wrapped, parser=secure_parser())
    children = [c for c in root if isinstance(c.tag, str)]
    if len(children) != 1:
        raise ValueError(f"expected one element in fragment, found {len(children)}")
    return children[0]
