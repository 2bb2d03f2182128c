"""tailor_import.decode

Turns uploaded file bytes (CSV or XLSX) into a header list plus row dicts.
Only the first worksheet of a workbook is read; formulas are taken at their
cached values.
"""

from __future__ import annotations

import base64
import binascii
import csv
import io
import zipfile
from dataclasses import dataclass, field
from typing import Any
from xml.etree.ElementTree import ParseError

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from tailor_import.shared import DecodeError

EXCEL_EXTENSIONS = {"xlsx", "xlsm"}
LEGACY_EXCEL_EXTENSIONS = {"xls"}
EXCEL_CONTENT_TYPES = {
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
}


@dataclass
class DecodedTable:
    headers: list[str]
    rows: list[dict[str, Any]] = field(default_factory=list)


def decode_base64(file_data: str) -> bytes:
    """Decode a base64 upload payload, tolerating a data-URL prefix."""
    payload = file_data
    if payload.startswith("data:") and "," in payload:
        payload = payload.split(",", 1)[1]
    try:
        return base64.b64decode(payload, validate=False)
    except (binascii.Error, ValueError) as exc:
        raise DecodeError(f"File data is not valid base64: {exc}") from exc


def detect_format(file_name: str | None, content_type: str | None = None) -> str:
    """Return 'xlsx', 'xls' or 'csv'.

    A known extension decides; otherwise an XLSX content type does.
    Anything else is treated as CSV.
    """
    ext = file_name.rsplit(".", 1)[-1].lower() if file_name and "." in file_name else ""
    if ext in EXCEL_EXTENSIONS:
        return "xlsx"
    if ext in LEGACY_EXCEL_EXTENSIONS:
        return "xls"
    if ext != "csv" and content_type and content_type.split(";")[0].strip().lower() in EXCEL_CONTENT_TYPES:
        return "xlsx"
    return "csv"


def decode_file(
    data: bytes,
    file_name: str | None = None,
    content_type: str | None = None,
) -> DecodedTable:
    """Decode file bytes into a DecodedTable.

    Raises DecodeError when the file is empty, unreadable, or yields zero
    data rows.  There is no partial decode.
    """
    if not data:
        raise DecodeError("File is empty or could not be parsed")
    file_format = detect_format(file_name, content_type)
    if file_format == "xls":
        raise DecodeError("Legacy .xls workbooks are not supported; save the sheet as .xlsx or .csv")
    if file_format == "xlsx":
        table = _decode_xlsx(data)
    else:
        table = _decode_csv(data)
    if not table.rows:
        raise DecodeError("File is empty or could not be parsed")
    return table


# ---------------------------------------------------------------------------
# CSV
# ---------------------------------------------------------------------------

def _decode_csv(data: bytes) -> DecodedTable:
    try:
        text = data.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise DecodeError(f"Failed to parse CSV: {exc}") from exc

    try:
        reader = csv.reader(io.StringIO(text, newline=""))
        header_row: list[str] | None = None
        rows: list[dict[str, Any]] = []
        for record in reader:
            # Only truly empty lines are skipped; ",," after the header stays a row.
            if not record or record == [""]:
                continue
            if header_row is None:
                if not any(cell.strip() for cell in record):
                    continue
                header_row = [cell.strip() for cell in record]
                continue
            row: dict[str, Any] = {}
            for idx, header in enumerate(header_row):
                if not header:
                    continue
                row[header] = record[idx] if idx < len(record) else None
            rows.append(row)
    except csv.Error as exc:
        raise DecodeError(f"Failed to parse CSV: {exc}") from exc

    headers = [h for h in (header_row or []) if h]
    return DecodedTable(headers=headers, rows=rows)


# ---------------------------------------------------------------------------
# XLSX
# ---------------------------------------------------------------------------

def _decode_xlsx(data: bytes) -> DecodedTable:
    try:
        workbook = load_workbook(io.BytesIO(data), read_only=True, data_only=True)
    except (InvalidFileException, zipfile.BadZipFile, ParseError, KeyError, OSError, ValueError) as exc:
        raise DecodeError(f"Could not read workbook: {exc}") from exc

    try:
        if not workbook.sheetnames:
            return DecodedTable(headers=[])
        worksheet = workbook[workbook.sheetnames[0]]

        header_row: list[str | None] | None = None
        rows: list[dict[str, Any]] = []
        for values in worksheet.iter_rows(values_only=True):
            if all(_blank_cell(v) for v in values):
                continue
            if header_row is None:
                header_row = [_header_text(v) for v in values]
                continue
            row: dict[str, Any] = {}
            for idx, header in enumerate(header_row):
                if header is None:
                    continue
                row[header] = values[idx] if idx < len(values) else None
            rows.append(row)
    except (ParseError, zipfile.BadZipFile, KeyError, ValueError) as exc:
        raise DecodeError(f"Could not read worksheet: {exc}") from exc
    finally:
        workbook.close()

    headers = [h for h in (header_row or []) if h is not None]
    return DecodedTable(headers=headers, rows=rows)


def _blank_cell(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _header_text(value: Any) -> str | None:
    if _blank_cell(value):
        return None
    return str(value).strip()
