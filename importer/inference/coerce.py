# ------------------------------------------------------------
# Module: importer/inference/coerce.py
# Purpose: Convert stored text values to their inferred logical type.
# ------------------------------------------------------------

"""Per-value coercion used while materializing typed tables.

`coerce_value` returns `(value, ok)`. Empty input is a clean null
(`ok=True`); input that cannot be converted becomes `None` with `ok=False`
so the caller can log it and still insert the row.
"""

from __future__ import annotations

import json
import re
from decimal import Decimal, InvalidOperation
from typing import Any

from importer.storage.schema import STRING_MAX_LEN
from importer.utils.dates import canonical_date, canonical_datetime, is_zero_date

INT32 = (-(2**31), 2**31 - 1)
INT64 = (-(2**63), 2**63 - 1)
# DECIMAL(18,4) holds 14 integer digits.
DECIMAL_LIMIT = Decimal(10) ** 14

_TRUE = {"true", "yes", "y", "1", "on", "enabled", "t"}
_FALSE = {"false", "no", "n", "0", "off", "disabled", "f"}
_NOT_INT = re.compile(r"[^\d-]")
_CURRENCY = re.compile(r"[\$£€¥,\s]")


def _to_int(v: str, bounds: tuple[int, int]) -> tuple[int | None, bool]:
    digits = _NOT_INT.sub("", v)
    if not re.fullmatch(r"-?\d+", digits):
        return None, False
    n = int(digits)
    if not bounds[0] <= n <= bounds[1]:
        return None, False
    return n, True


def _to_decimal(v: str) -> tuple[Decimal | None, bool]:
    try:
        d = Decimal(_CURRENCY.sub("", v))
    except InvalidOperation:
        return None, False
    if not d.is_finite() or abs(d) >= DECIMAL_LIMIT:
        return None, False
    return d, True


def _to_float(v: str) -> tuple[float | None, bool]:
    try:
        f = float(_CURRENCY.sub("", v))
    except ValueError:
        return None, False
    if f != f or f in (float("inf"), float("-inf")):
        return None, False
    return f, True


def _to_bool(v: str) -> tuple[bool | None, bool]:
    t = v.lower()
    if t in _TRUE:
        return True, True
    if t in _FALSE:
        return False, True
    f, ok = _to_float(v)
    if ok:
        return f != 0, True
    return None, False


def _to_json(v: str) -> tuple[str | None, bool]:
    try:
        json.loads(v)
    except ValueError:
        return None, False
    return v, True


def coerce_value(value: Any, logical_type: str) -> tuple[Any, bool]:
    if value is None:
        return None, True
    v = str(value).strip()
    if v == "":
        return None, True

    if logical_type == "integer":
        return _to_int(v, INT32)
    if logical_type == "bigInteger":
        return _to_int(v, INT64)
    if logical_type == "decimal":
        return _to_decimal(v)
    if logical_type == "float":
        return _to_float(v)
    if logical_type == "boolean":
        return _to_bool(v)
    if logical_type in ("datetime", "date"):
        if is_zero_date(v):
            return None, True
        out = canonical_datetime(v) if logical_type == "datetime" else canonical_date(v)
        return out, out is not None
    if logical_type == "json":
        return _to_json(v)
    if logical_type == "string":
        return v[:STRING_MAX_LEN], True
    return str(value), True
