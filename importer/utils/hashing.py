# ------------------------------------------------------------
# Module: importer/utils/hashing.py
# Purpose: SHA-256 helpers for content digests and stable integer ids.
# ------------------------------------------------------------

"""Lightweight helpers for computing SHA-256 checksums and derived ids.

Responsibilities
----------------
- Compute SHA-256 digests for in-memory byte sequences.
- Derive a stable integer id from an ordered tuple of text parts.

Notes
-----
- `stable_id` keeps 15 hex digits (60 bits), so every id fits a signed
  64-bit column and is stable across runs and processes.
"""

from __future__ import annotations

import hashlib

ID_HEX_DIGITS = 15


def compute_sha256(data: bytes) -> str:
    """Compute SHA-256 of a bytes payload (content-addressable key)."""
    return hashlib.sha256(data).hexdigest()


def stable_id(*parts: object) -> int:
    """Hash `parts` joined by '|' into a positive integer id.

    >>> stable_id("category", "news", "News") == stable_id("category", "news", "News")
    True
    """
    joined = "|".join("" if p is None else str(p) for p in parts)
    return int(compute_sha256(joined.encode("utf-8"))[:ID_HEX_DIGITS], 16)


__all__ = ["compute_sha256", "stable_id", "ID_HEX_DIGITS"]
