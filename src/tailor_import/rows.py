"""tailor_import.rows

Row-level stages of the measurement import pipeline:

  normalize_row   raw source row + column mapping → CanonicalMeasurementRow
  validate_row    CanonicalMeasurementRow → [FieldError, ...]  (never raises)
  process_rows    both of the above over a whole table
  build_preview   bounded, side-effect-free preview + whole-set statistics

Nothing in this module touches the database, so every stage can be re-run
freely, e.g. once for the preview and again at commit time.
"""

from __future__ import annotations

import math
import random
import string
import time
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Sequence

from tailor_import.column_map import CANONICAL_FIELDS, NUMERIC_FIELDS, map_columns
from tailor_import.decode import DecodedTable, decode_file
from tailor_import.normalize import (
    cell_text,
    normalize_email,
    normalize_import_phone,
    normalize_space,
    normalize_unit,
    parse_measurement,
)

CLIENT_INFO_MESSAGE = "Either client name or phone number is required"

# Reasons recorded by the normalizer for numeric cells it had to drop.
NOT_A_NUMBER = "not_a_number"
NEGATIVE = "negative"

# Plausible ranges per unit.  Range checking is switched off by default: the
# shop accepts any non-negative number.
MEASUREMENT_RANGES_CM: dict[str, tuple[float, float]] = {
    "across_back": (20, 80),
    "chest": (50, 200),
    "sleeve_length": (20, 100),
    "around_arm": (15, 80),
    "neck": (20, 60),
    "top_length": (30, 150),
    "wrist": (10, 40),
    "trouser_waist": (50, 200),
    "trouser_thigh": (30, 100),
    "trouser_knee": (20, 80),
    "trouser_length": (50, 150),
    "trouser_bars": (5, 30),
}

MEASUREMENT_RANGES_IN: dict[str, tuple[float, float]] = {
    "across_back": (8, 32),
    "chest": (20, 80),
    "sleeve_length": (8, 40),
    "around_arm": (6, 32),
    "neck": (8, 24),
    "top_length": (12, 60),
    "wrist": (4, 16),
    "trouser_waist": (20, 80),
    "trouser_thigh": (12, 40),
    "trouser_knee": (8, 32),
    "trouser_length": (20, 60),
    "trouser_bars": (2, 12),
}


# ---------------------------------------------------------------------------
# Types
# ---------------------------------------------------------------------------

@dataclass
class CanonicalMeasurementRow:
    """One source row after column mapping and normalization."""

    row_number: int = 0
    client_name: str | None = None
    client_phone: str | None = None
    client_email: str | None = None
    client_address: str | None = None
    units: str = "cm"
    across_back: float | None = None
    chest: float | None = None
    sleeve_length: float | None = None
    around_arm: float | None = None
    neck: float | None = None
    top_length: float | None = None
    wrist: float | None = None
    trouser_waist: float | None = None
    trouser_thigh: float | None = None
    trouser_knee: float | None = None
    trouser_length: float | None = None
    trouser_bars: float | None = None
    entry_id: str | None = None
    additional_info: str | None = None
    branch: str | None = None
    # numeric field → NOT_A_NUMBER | NEGATIVE, for cells the normalizer dropped
    invalid_numeric: dict[str, str] = field(default_factory=dict)

    def data(self) -> dict[str, Any]:
        """Present canonical fields, in canonical order.  row_number is excluded."""
        out: dict[str, Any] = {}
        for name in CANONICAL_FIELDS:
            value = getattr(self, name)
            if value is not None:
                out[name] = value
        return out


@dataclass(frozen=True)
class FieldError:
    field: str
    message: str

    def to_dict(self) -> dict[str, str]:
        return {"field": self.field, "message": self.message}


@dataclass
class ValidatedRow:
    row: CanonicalMeasurementRow
    errors: list[FieldError] = field(default_factory=list)

    @property
    def row_number(self) -> int:
        return self.row.row_number

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def error_messages(self) -> list[str]:
        return [e.message for e in self.errors]

    def to_dict(self) -> dict[str, Any]:
        return {
            "rowNumber": self.row_number,
            "data": self.row.data(),
            "errors": self.error_messages(),
            "isValid": self.is_valid,
        }


@dataclass
class ImportPreview:
    rows: list[ValidatedRow]
    headers: list[str]
    total_rows: int
    valid_rows: int
    invalid_rows: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "rows": [r.to_dict() for r in self.rows],
            "headers": self.headers,
            "totalRows": self.total_rows,
        }

    def statistics(self) -> dict[str, int]:
        return {
            "totalRows": self.total_rows,
            "validRows": self.valid_rows,
            "invalidRows": self.invalid_rows,
        }


# ---------------------------------------------------------------------------
# Normalizer
# ---------------------------------------------------------------------------

def _first_present(
    raw: Mapping[str, Any],
    mapping: Mapping[str, str],
) -> dict[str, Any]:
    """Collapse mapped source cells onto canonical fields.

    When several headers map to one field the first non-blank cell wins.
    """
    picked: dict[str, Any] = {}
    for source_header, canonical in mapping.items():
        if canonical in picked or canonical not in CANONICAL_FIELDS:
            continue
        value = raw.get(source_header)
        if value is None or (isinstance(value, str) and not value.strip()):
            continue
        picked[canonical] = value
    return picked


def normalize_row(
    raw: Mapping[str, Any],
    mapping: Mapping[str, str],
    default_unit: str = "cm",
    row_number: int = 0,
) -> CanonicalMeasurementRow:
    """Apply the column mapping to one raw row.

    Unmapped source columns are discarded.  Bad numeric cells become None
    and are recorded in invalid_numeric; the validator reports them.
    """
    picked = _first_present(raw, mapping)
    row = CanonicalMeasurementRow(
        row_number=row_number,
        client_name=normalize_space(cell_text(picked.get("client_name"))),
        client_phone=normalize_import_phone(picked.get("client_phone")),
        client_email=normalize_email(cell_text(picked.get("client_email"))),
        client_address=normalize_space(cell_text(picked.get("client_address"))),
        units=normalize_unit(picked.get("units"), default_unit),
        entry_id=cell_text(picked.get("entry_id")),
        additional_info=cell_text(picked.get("additional_info")),
        branch=cell_text(picked.get("branch")),
    )

    for name in NUMERIC_FIELDS:
        if name not in picked:
            continue
        value = parse_measurement(picked[name])
        if value is None:
            row.invalid_numeric[name] = NOT_A_NUMBER
        elif value < 0:
            row.invalid_numeric[name] = NEGATIVE
        else:
            setattr(row, name, value)
    return row


def normalize_rows(
    raw_rows: Iterable[Mapping[str, Any]],
    mapping: Mapping[str, str],
    default_unit: str = "cm",
) -> list[CanonicalMeasurementRow]:
    return [
        normalize_row(raw, mapping, default_unit, row_number=idx)
        for idx, raw in enumerate(raw_rows, start=1)
    ]


# ---------------------------------------------------------------------------
# Validator
# ---------------------------------------------------------------------------

def _numeric_error(name: str, value: Any) -> FieldError | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        return FieldError(name, f"{name} must be a valid number")
    if value < 0:
        return FieldError(name, f"{name} must be positive")
    return None


def validate_row(
    row: CanonicalMeasurementRow,
    unit: str | None = None,
    enforce_ranges: bool = False,
) -> list[FieldError]:
    """Check one canonical row against the import rules.

    Returns an empty list for a valid row.  Never raises.
    """
    errors: list[FieldError] = []

    name = (row.client_name or "").strip()
    phone = (row.client_phone or "").strip()
    if not name and not phone:
        errors.append(FieldError("client_info", CLIENT_INFO_MESSAGE))

    ranges = MEASUREMENT_RANGES_IN if (unit or row.units) == "in" else MEASUREMENT_RANGES_CM
    for field_name in NUMERIC_FIELDS:
        reason = row.invalid_numeric.get(field_name)
        if reason == NEGATIVE:
            errors.append(FieldError(field_name, f"{field_name} must be positive"))
            continue
        if reason == NOT_A_NUMBER:
            errors.append(FieldError(field_name, f"{field_name} must be a valid number"))
            continue

        value = getattr(row, field_name)
        error = _numeric_error(field_name, value)
        if error is not None:
            errors.append(error)
            continue
        if enforce_ranges and value is not None:
            low, high = ranges[field_name]
            if not low <= value <= high:
                errors.append(FieldError(
                    field_name,
                    f"{field_name} must be between {low} and {high} {unit or row.units}",
                ))

    return errors


def process_rows(
    raw_rows: Iterable[Mapping[str, Any]],
    mapping: Mapping[str, str],
    default_unit: str = "cm",
    enforce_ranges: bool = False,
) -> list[ValidatedRow]:
    """Normalize and validate every raw row, numbering rows from 1."""
    out: list[ValidatedRow] = []
    for row in normalize_rows(raw_rows, mapping, default_unit):
        out.append(ValidatedRow(row, validate_row(row, row.units, enforce_ranges)))
    return out


# ---------------------------------------------------------------------------
# Preview
# ---------------------------------------------------------------------------

def build_preview(rows: Sequence[ValidatedRow], limit: int = 10) -> ImportPreview:
    """First `limit` rows for display; statistics cover the whole set."""
    valid = sum(1 for r in rows if r.is_valid)
    return ImportPreview(
        rows=list(rows[:limit]),
        headers=list(rows[0].row.data().keys()) if rows else [],
        total_rows=len(rows),
        valid_rows=valid,
        invalid_rows=len(rows) - valid,
    )


def _random_suffix(length: int = 9) -> str:
    alphabet = string.ascii_lowercase + string.digits
    return "".join(random.choices(alphabet, k=length))


def new_import_id() -> str:
    """Transient id handed to the client between preview and commit."""
    return f"import-{int(time.time() * 1000)}-{_random_suffix()}"


def generate_entry_id() -> str:
    return f"ENT-{int(time.time() * 1000)}-{_random_suffix()}"


def preview_table(
    table: DecodedTable,
    default_unit: str = "cm",
    limit: int = 10,
) -> tuple[dict[str, str], list[ValidatedRow], ImportPreview]:
    """Map, normalize, validate and preview an already decoded table."""
    mapping = map_columns(table.headers)
    validated = process_rows(table.rows, mapping, default_unit)
    return mapping, validated, build_preview(validated, limit)


def preview_file(
    data: bytes,
    file_name: str | None,
    default_unit: str = "cm",
    limit: int = 10,
) -> dict[str, Any]:
    """Decode → map → validate → preview, shaped as the preview API response.

    Raises DecodeError for an empty or unparseable file.
    """
    table = decode_file(data, file_name)
    mapping, _, preview = preview_table(table, default_unit, limit)
    return {
        "importId": new_import_id(),
        "fileName": file_name,
        "preview": preview.to_dict(),
        "statistics": preview.statistics(),
        "columnMapping": mapping,
        "headers": table.headers,
    }
