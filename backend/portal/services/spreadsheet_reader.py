# Overview: Reads uploaded spreadsheets into a header row and ordered data rows.

"""
Spreadsheet Reader

Supports Excel (.xlsx family via openpyxl, legacy .xls via xlrd) and CSV.

Rules:
- Only the first worksheet is read.
- The first non-empty row is the header row; every later row is data.
- Rows whose cells are all None / blank strings are dropped.
- Data rows are padded or truncated to the header width.
- Any unreadable file, or a file without a single non-empty row, raises
  ParseError before anything is staged.
"""

from __future__ import annotations

import csv
import io
import zipfile
from dataclasses import dataclass, field
from typing import IO, Any, Iterable

import xlrd
from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from ..validation import ParseError


XLSX_EXTENSIONS = {"xlsx", "xlsm", "xltx", "xltm"}
XLS_EXTENSIONS = {"xls"}
CSV_EXTENSIONS = {"csv"}
SUPPORTED_EXTENSIONS = XLSX_EXTENSIONS | XLS_EXTENSIONS | CSV_EXTENSIONS


@dataclass
class SheetData:
    headers: list[str]
    rows: list[list[Any]] = field(default_factory=list)
    # 1-based sheet row number of each data row, for user-facing messages
    row_numbers: list[int] = field(default_factory=list)
    source_format: str = "XLSX"

    def records(self) -> list[dict[str, Any]]:
        """Data rows as header -> value dicts. Later duplicate headers win."""
        return [dict(zip(self.headers, row)) for row in self.rows]


def file_extension(filename: str | None) -> str:
    name = (filename or "").strip()
    if "." not in name:
        return ""
    return name.rsplit(".", 1)[-1].lower()


def is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    return False


def _header_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip()


def build_sheet(raw_rows: Iterable[Iterable[Any]], source_format: str) -> SheetData:
    """Apply the header/blank-row rules to raw cell rows."""
    headers: list[str] | None = None
    rows: list[list[Any]] = []
    row_numbers: list[int] = []

    for index, raw in enumerate(raw_rows, start=1):
        cells = list(raw) if raw is not None else []
        if all(is_blank(c) for c in cells):
            continue
        if headers is None:
            # Trailing empty header cells are layout noise, not columns
            while cells and is_blank(cells[-1]):
                cells.pop()
            headers = [_header_text(c) for c in cells]
            continue

        width = len(headers)
        row = cells[:width] + [None] * (width - len(cells))
        if all(is_blank(c) for c in row):
            continue
        rows.append(row)
        row_numbers.append(index)

    if headers is None:
        raise ParseError("Spreadsheet is empty")

    return SheetData(headers=headers, rows=rows, row_numbers=row_numbers, source_format=source_format)


def _read_xlsx(data: bytes) -> list[tuple]:
    try:
        wb = load_workbook(io.BytesIO(data), data_only=True)
    except (InvalidFileException, zipfile.BadZipFile, KeyError, OSError, ValueError) as exc:
        raise ParseError("File is not a valid Excel workbook") from exc
    try:
        if not wb.worksheets:
            raise ParseError("Workbook has no worksheets")
        sheet = wb.worksheets[0]
        return list(sheet.values)
    finally:
        wb.close()


def _xls_cell_value(cell, datemode: int) -> Any:
    if cell.ctype in (xlrd.XL_CELL_EMPTY, xlrd.XL_CELL_BLANK):
        return None
    if cell.ctype == xlrd.XL_CELL_DATE:
        return xlrd.xldate.xldate_as_datetime(cell.value, datemode)
    if cell.ctype == xlrd.XL_CELL_BOOLEAN:
        return bool(cell.value)
    if cell.ctype == xlrd.XL_CELL_ERROR:
        return None
    return cell.value


def _read_xls(data: bytes) -> list[list[Any]]:
    try:
        book = xlrd.open_workbook(file_contents=data)
    except xlrd.XLRDError as exc:
        raise ParseError("File is not a valid Excel workbook") from exc
    if book.nsheets == 0:
        raise ParseError("Workbook has no worksheets")
    sheet = book.sheet_by_index(0)
    return [
        [_xls_cell_value(cell, book.datemode) for cell in sheet.row(r)]
        for r in range(sheet.nrows)
    ]


def _read_csv(data: bytes) -> list[list[str]]:
    try:
        text = data.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise ParseError("CSV file must be UTF-8 encoded") from exc
    try:
        return list(csv.reader(io.StringIO(text)))
    except csv.Error as exc:
        raise ParseError("File is not a valid CSV document") from exc


def read_spreadsheet(stream: IO[bytes] | bytes, filename: str | None) -> SheetData:
    """
    Parse an uploaded file into headers and data rows.

    Raises ParseError for unsupported extensions, corrupt files and files
    without any non-empty row.
    """
    ext = file_extension(filename)
    if ext not in SUPPORTED_EXTENSIONS:
        raise ParseError("Unsupported file format; upload .xlsx, .xls or .csv")

    data = stream if isinstance(stream, (bytes, bytearray)) else stream.read()
    if not data:
        raise ParseError("Spreadsheet is empty")

    if ext in XLSX_EXTENSIONS:
        return build_sheet(_read_xlsx(bytes(data)), "XLSX")
    if ext in XLS_EXTENSIONS:
        return build_sheet(_read_xls(bytes(data)), "XLS")
    return build_sheet(_read_csv(bytes(data)), "CSV")
