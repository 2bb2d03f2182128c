"""Normalization functions for measurement spreadsheet ingestion.

All functions accept raw cell values (str, number, or None) and return the
appropriate type or None.
"""

from __future__ import annotations

import math
import re
from typing import Any

_PHONE_STRIP_RE = re.compile(r"[^\d+]")


# ---------------------------------------------------------------------------
# Rule 1: trim
# ---------------------------------------------------------------------------

def trim(value: str | None) -> str | None:
    """Strip leading/trailing whitespace; treat empty string as None."""
    if value is None:
        return None
    v = value.strip()
    return v if v else None


# ---------------------------------------------------------------------------
# Rule 2: cell_text
# ---------------------------------------------------------------------------

def cell_text(value: Any) -> str | None:
    """Return a trimmed string for a CSV or XLSX cell, or None when blank.

    Spreadsheet cells holding phone numbers or entry ids come back from XLSX
    as floats ("2348012345678.0"); integral floats are rendered without the
    fractional part.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        return str(value)
    if isinstance(value, float):
        if math.isnan(value):
            return None
        if value.is_integer():
            return str(int(value))
        return repr(value)
    if isinstance(value, int):
        return str(value)
    return trim(str(value))


# ---------------------------------------------------------------------------
# Rule 3: normalize_space
# ---------------------------------------------------------------------------

def normalize_space(value: str | None) -> str | None:
    """Collapse internal runs of whitespace to single spaces, then trim."""
    v = trim(value)
    if v is None:
        return None
    return re.sub(r"\s+", " ", v)


# ---------------------------------------------------------------------------
# Rule 4: normalize_email
# ---------------------------------------------------------------------------

def normalize_email(value: str | None) -> str | None:
    """Trim an email address.  Case is kept as supplied by the shop."""
    return trim(value)


# ---------------------------------------------------------------------------
# Rule 5: normalize_import_phone
# ---------------------------------------------------------------------------

def normalize_import_phone(value: Any) -> str | None:
    """Keep digits and a leading '+'; return None when nothing is left.

    '+234 (801) 234-5678' → '+2348012345678'.  A '+' anywhere other than the
    first position is dropped.
    """
    v = cell_text(value)
    if v is None:
        return None
    cleaned = _PHONE_STRIP_RE.sub("", v)
    if not cleaned:
        return None
    head, rest = cleaned[0], cleaned[1:].replace("+", "")
    cleaned = head + rest
    if cleaned == "+":
        return None
    return cleaned


# ---------------------------------------------------------------------------
# Rule 6: parse_measurement
# ---------------------------------------------------------------------------

_LEADING_FLOAT_RE = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?")


def parse_float_prefix(text: str) -> float | None:
    """Parse the longest leading decimal number in text, like JS parseFloat.

    '100cm' → 100.0, '  9.5 ' → 9.5, 'abc' → None.
    """
    m = _LEADING_FLOAT_RE.match(text.strip())
    if not m:
        return None
    return float(m.group(0))


def parse_measurement(value: Any) -> float | None:
    """Tolerant measurement parse.

    - None / blank → None
    - numbers pass through (NaN and infinities → None)
    - 'a/b' (e.g. '9/24', a shop convention for "size 9 or 24") → parse 'a'
    - anything else → leading decimal number, or None
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        f = float(value)
        return f if math.isfinite(f) else None
    v = trim(str(value))
    if v is None:
        return None
    if "/" in v:
        v = v.split("/", 1)[0]
    parsed = parse_float_prefix(v)
    if parsed is None or not math.isfinite(parsed):
        return None
    return parsed


# ---------------------------------------------------------------------------
# Rule 7: normalize_unit
# ---------------------------------------------------------------------------

_INCH_TOKENS = frozenset({"in", "inch", "inches"})
_CM_TOKENS = frozenset({"cm", "cms", "centimeter", "centimeters", "centimetre", "centimetres"})


def normalize_unit(value: Any, default_unit: str = "cm") -> str:
    """Return 'in' or 'cm'; unrecognized or absent values fall back to default_unit."""
    v = cell_text(value)
    if v is None:
        return default_unit
    v = v.lower()
    if v in _INCH_TOKENS:
        return "in"
    if v in _CM_TOKENS:
        return "cm"
    return default_unit
