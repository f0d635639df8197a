from __future__ import annotations

import io
import re
from collections.abc import Callable
from datetime import date, datetime
from enum import Enum
from pathlib import Path
from typing import Any, BinaryIO

import pandas as pd

from ..errors import ImportFatalError
from ..models.upload import ParseResult, UploadedRow

"""Tabular upload reader (CSV / XLSX / XLS).

- Row 0 is the header row; every following non-blank row becomes an UploadedRow.
- All values are handed downstream as trimmed strings; embedded line breaks are
  collapsed to a single space.
- Structural problems (unsupported format, undecodable text, broken quoting,
  no header, no data rows) raise UploadError. Row-level anomalies that still
  leave the columns aligned (extra cells, duplicate or blank headers) are
  returned as warnings and parsing continues.
"""

__all__ = [
    "SUPPORTED_EXTENSIONS",
    "UploadErrorKind",
    "UploadError",
    "parse_upload",
]

SUPPORTED_EXTENSIONS = ("csv", "xlsx", "xls")

_EXCEL_ENGINES = {
    "xlsx": "openpyxl",
    "xls": "xlrd",
}

_LINE_BREAKS = re.compile(r"[ \t]*(?:\r\n|\r|\n)+[ \t]*")


class UploadErrorKind(Enum):
    UNSUPPORTED_FORMAT = "unsupported_format"
    EMPTY_FILE = "empty_file"
    UNREADABLE_ENCODING = "unreadable_encoding"
    MALFORMED = "malformed"
    MISSING_HEADER = "missing_header"
    NO_DATA_ROWS = "no_data_rows"


class UploadError(ImportFatalError):
    """Raised when an upload cannot be turned into rows at all."""

    def __init__(self, kind: UploadErrorKind, message: str) -> None:
        super().__init__(message)
        self.kind = kind


def parse_upload(
    source: Path | str | bytes | BinaryIO,
    extension: str | None = None,
) -> ParseResult:
    """Parse an uploaded file into ordered UploadedRow objects.

    Parameters
    ----------
    source: path to the file, its raw bytes, or a binary file object
    extension: declared extension ("csv", ".XLSX", ...). Required for bytes /
        file objects; for paths the file suffix is used when omitted.
    """
    ext = _resolve_extension(source, extension)
    data = _read_bytes(source)
    if not data or not data.strip():
        raise UploadError(UploadErrorKind.EMPTY_FILE, "uploaded file is empty")

    warnings: list[str] = []
    if ext == "csv":
        table = _read_csv_table(data, warnings)
    else:
        table = _read_excel_table(data, ext)
    return _rows_from_table(table, warnings)


def _resolve_extension(source: Any, extension: str | None) -> str:
    ext = extension
    if ext is None and isinstance(source, (str, Path)):
        ext = Path(source).suffix
    ext = (ext or "").strip().lower().lstrip(".")
    if ext not in SUPPORTED_EXTENSIONS:
        shown = ext or "<none>"
        raise UploadError(
            UploadErrorKind.UNSUPPORTED_FORMAT,
            f"unsupported file format: {shown} (use CSV, XLSX or XLS)",
        )
    return ext


def _read_bytes(source: Any) -> bytes:
    if isinstance(source, bytes):
        return source
    if isinstance(source, (str, Path)):
        path = Path(source)
        try:
            return path.read_bytes()
        except OSError as e:
            raise UploadError(UploadErrorKind.EMPTY_FILE, f"cannot read file {path}: {e}") from e
    return source.read()


def _read_csv_table(data: bytes, warnings: list[str]) -> list[list[Any]]:
    try:
        text = data.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise UploadError(
            UploadErrorKind.UNREADABLE_ENCODING,
            f"CSV file is not valid UTF-8 (byte offset {e.start})",
        ) from e

    try:
        first = pd.read_csv(
            io.StringIO(text), header=None, nrows=1, dtype=str,
            keep_default_na=False, engine="python",
        )
    except pd.errors.EmptyDataError as e:
        raise UploadError(UploadErrorKind.EMPTY_FILE, "CSV file has no header row") from e
    except ValueError as e:
        raise UploadError(UploadErrorKind.MALFORMED, f"CSV parsing error: {e}") from e
    width = first.shape[1]

    try:
        df = pd.read_csv(
            io.StringIO(text),
            header=None,
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=False,
            engine="python",
            on_bad_lines=_bad_line_handler(width, warnings),
        )
    except ValueError as e:  # pandas ParserError: unbalanced quotes, bad delimiter
        raise UploadError(UploadErrorKind.MALFORMED, f"CSV parsing error: {e}") from e
    return df.values.tolist()


def _bad_line_handler(width: int, warnings: list[str]) -> Callable[[list[str]], list[str]]:
    def handle(fields: list[str]) -> list[str]:
        lead = fields[0] if fields else ""
        warnings.append(
            f"line starting with '{lead[:30]}' has {len(fields)} cells, expected {width}; "
            f"extra cells dropped"
        )
        return fields[:width]
    return handle


def _read_excel_table(data: bytes, ext: str) -> list[list[Any]]:
    try:
        df = pd.read_excel(
            io.BytesIO(data), sheet_name=0, header=None, dtype=object, engine=_EXCEL_ENGINES[ext]
        )
    except Exception as e:  # openpyxl / xlrd raise assorted types for corrupt workbooks
        raise UploadError(UploadErrorKind.MALFORMED, f"cannot read {ext.upper()} workbook: {e}") from e
    return df.values.tolist()


def _rows_from_table(table: list[list[Any]], warnings: list[str]) -> ParseResult:
    if not table:
        raise UploadError(UploadErrorKind.EMPTY_FILE, "file has no header row")

    header_cells = table[0]
    data_rows = table[1:]
    columns: list[tuple[int, str]] = []
    seen: set[str] = set()
    for idx, cell in enumerate(header_cells):
        name = _cell_text(cell)
        if not name:
            if any(idx < len(r) and _cell_text(r[idx]) for r in data_rows):
                warnings.append(f"column {idx + 1} has no header; its values are ignored")
            continue
        if name in seen:
            warnings.append(f"duplicate header '{name}' in column {idx + 1}; first occurrence is used")
            continue
        seen.add(name)
        columns.append((idx, name))

    if not columns:
        raise UploadError(UploadErrorKind.MISSING_HEADER, "header row contains no column names")

    rows: list[UploadedRow] = []
    for offset, cells in enumerate(data_rows, start=1):
        values = {
            name: (_cell_text(cells[idx]) if idx < len(cells) else "")
            for idx, name in columns
        }
        if not any(values.values()):
            continue  # blank row: skipped but still counted in numbering
        rows.append(UploadedRow(row_number=offset, values=values))

    if not rows:
        raise UploadError(
            UploadErrorKind.NO_DATA_ROWS,
            "file must contain at least one header row and one data row",
        )
    return ParseResult(rows=rows, headers=[name for _, name in columns], warnings=warnings)


def _cell_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return _LINE_BREAKS.sub(" ", value).strip()
    if pd.isna(value):
        return ""
    if isinstance(value, (pd.Timestamp, datetime)):
        if (value.hour, value.minute, value.second) == (0, 0, 0):
            return value.strftime("%Y-%m-%d")
        return value.strftime("%Y-%m-%d %H:%M:%S")
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return _LINE_BREAKS.sub(" ", str(value)).strip()
