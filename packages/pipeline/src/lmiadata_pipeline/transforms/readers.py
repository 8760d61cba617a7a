"""
transforms/readers.py — Turn local LMIA files into CSV text lines.

Every supported format is reduced to the same shape, a list of CSV lines,
so structure detection and extraction have one code path:

  .csv   decoded as UTF-8 (BOM stripped, undecodable bytes replaced)
  .xlsx  first worksheet transcoded in memory with openpyxl
  .xls   first worksheet transcoded in memory with xlrd

Transcoding happens in memory; the original file stays untouched and keeps
being the record's source_file.
"""

from __future__ import annotations

import csv
import io
from collections.abc import Iterable
from datetime import date, datetime
from pathlib import Path
from typing import Any

import openpyxl
import structlog
import xlrd

from lmiadata_shared.constants import SUPPORTED_FORMATS
from lmiadata_pipeline.errors import UnsupportedFileError

log = structlog.get_logger(__name__)


def is_supported(path: Path) -> bool:
    return path.suffix.lower().lstrip(".") in SUPPORTED_FORMATS


def cell_to_text(value: Any) -> str:
    """Render a spreadsheet cell the way it reads in the CSV exports."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, datetime):
        return value.date().isoformat() if value.time() == datetime.min.time() else value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return str(value)


def _used_width(cells: list[str]) -> int:
    for index in range(len(cells), 0, -1):
        if cells[index - 1].strip():
            return index
    return 0


def rows_to_lines(rows: Iterable[Iterable[Any]]) -> list[str]:
    """
    Serialize spreadsheet rows as CSV lines.

    Every row is padded or cut to the sheet's used width (up to the last
    column holding a value in any row), so a data row ending in blank cells
    keeps as many fields as a CSV export of it would. Rows without any value
    become empty lines.
    """
    table = [[cell_to_text(v) for v in row] for row in rows]
    width = max((_used_width(cells) for cells in table), default=0)

    lines: list[str] = []
    for cells in table:
        if not _used_width(cells):
            lines.append("")
            continue
        cells = (cells + [""] * width)[:width]
        buffer = io.StringIO()
        csv.writer(buffer, lineterminator="").writerow(cells)
        lines.append(buffer.getvalue())
    return lines


def xlsx_to_lines(path: Path) -> list[str]:
    workbook = openpyxl.load_workbook(path, read_only=True, data_only=True)
    try:
        sheet = workbook.worksheets[0]
        return rows_to_lines(sheet.iter_rows(values_only=True))
    finally:
        workbook.close()


def xls_to_lines(path: Path) -> list[str]:
    book = xlrd.open_workbook(str(path))
    sheet = book.sheet_by_index(0)
    rows: list[list[Any]] = []
    for r in range(sheet.nrows):
        row: list[Any] = []
        for c in range(sheet.ncols):
            cell = sheet.cell(r, c)
            if cell.ctype == xlrd.XL_CELL_DATE:
                row.append(xlrd.xldate.xldate_as_datetime(cell.value, book.datemode))
            else:
                row.append(cell.value)
        rows.append(row)
    return rows_to_lines(rows)


def load_lines(path: Path | str) -> list[str]:
    """
    Read a local file as CSV lines.

    Raises:
        UnsupportedFileError: the extension is not csv, xlsx or xls.
    """
    path = Path(path)
    suffix = path.suffix.lower()

    if suffix == ".csv":
        text = path.read_bytes().decode("utf-8-sig", errors="replace")
        return text.splitlines()
    if suffix == ".xlsx":
        lines = xlsx_to_lines(path)
    elif suffix == ".xls":
        lines = xls_to_lines(path)
    else:
        raise UnsupportedFileError(f"unsupported file type: {path.name}")

    log.debug("spreadsheet_transcoded", file=path.name, lines=len(lines))
    return lines
