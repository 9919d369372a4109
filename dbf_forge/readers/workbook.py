"""
DOM workbook reader for .xlsx/.xlsm (openpyxl) and .xls (xlrd).

The whole workbook is loaded up front. Each backend is wrapped in a small
sheet adapter so the reader itself only deals with zero-based coordinates,
merge resolution, and row assembly.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Iterator

from dbf_forge.errors import UnreadableSourceError
from dbf_forge.parsing import format_day_fraction, format_duration
from dbf_forge.readers.base import TableReader, is_blank

ERROR_SENTINEL = "#ERR"
SECONDS_PER_DAY = 86400


# ══════════════════════════════════════════════════════════════════════════════
# SHEET ADAPTERS
# ══════════════════════════════════════════════════════════════════════════════

class _OpenpyxlSheet:
    def __init__(self, worksheet) -> None:
        self.ws = worksheet
        self.name = worksheet.title
        self.epoch = worksheet.parent.epoch

    def merged_ranges(self) -> list[tuple[int, int, int, int]]:
        return [
            (rng.min_row - 1, rng.max_row - 1, rng.min_col - 1, rng.max_col - 1)
            for rng in self.ws.merged_cells.ranges
        ]

    @property
    def width(self) -> int:
        return self.ws.max_column

    def row_indices(self) -> Iterator[int]:
        return iter(range(self.ws.max_row))

    def value(self, row: int, col: int) -> Any:
        cell = self.ws.cell(row=row + 1, column=col + 1)
        value = cell.value
        if value is None:
            return ""
        if cell.data_type == "e":
            return ERROR_SENTINEL
        if isinstance(value, timedelta):
            return format_duration(int(round(value.total_seconds())))
        if isinstance(value, datetime) and value < self.epoch:
            # negative serial shown through a date/time format
            serial = (value - self.epoch).total_seconds() / SECONDS_PER_DAY
            return format_day_fraction(serial)
        return value

    def exists(self, row: int, col: int) -> bool:
        return (row + 1, col + 1) in self.ws._cells


class _XlrdSheet:
    def __init__(self, book, sheet) -> None:
        import xlrd

        self.xlrd = xlrd
        self.book = book
        self.sheet = sheet
        self.name = sheet.name

    def merged_ranges(self) -> list[tuple[int, int, int, int]]:
        return [(rlo, rhi - 1, clo, chi - 1) for rlo, rhi, clo, chi in self.sheet.merged_cells]

    @property
    def width(self) -> int:
        return self.sheet.ncols

    def row_indices(self) -> Iterator[int]:
        return iter(range(self.sheet.nrows))

    def value(self, row: int, col: int) -> Any:
        if row >= self.sheet.nrows or col >= self.sheet.row_len(row):
            return ""
        cell = self.sheet.cell(row, col)
        ctype = cell.ctype
        if ctype in (self.xlrd.XL_CELL_EMPTY, self.xlrd.XL_CELL_BLANK):
            return ""
        if ctype == self.xlrd.XL_CELL_ERROR:
            return ERROR_SENTINEL
        if ctype == self.xlrd.XL_CELL_BOOLEAN:
            return bool(cell.value)
        if ctype == self.xlrd.XL_CELL_DATE:
            if cell.value < 0:
                return format_day_fraction(cell.value)
            parsed = self.xlrd.xldate.xldate_as_datetime(cell.value, self.book.datemode)
            if cell.value < 1:
                return parsed.time()
            return parsed
        return cell.value

    def exists(self, row: int, col: int) -> bool:
        return row < self.sheet.nrows and col < self.sheet.row_len(row)


def _load_openpyxl(path: Path) -> list[_OpenpyxlSheet]:
    import openpyxl

    try:
        workbook = openpyxl.load_workbook(path, data_only=True)
    except Exception as exc:
        raise UnreadableSourceError(f"Workbook is corrupt or unreadable: {path} ({exc})") from exc
    return [_OpenpyxlSheet(ws) for ws in workbook.worksheets]


def _load_xlrd(path: Path) -> list[_XlrdSheet]:
    try:
        import xlrd
    except ImportError as exc:
        raise ImportError("Reading .xls files requires xlrd. Install it with: pip install xlrd") from exc

    try:
        book = xlrd.open_workbook(str(path), formatting_info=True)
    except Exception as exc:
        raise UnreadableSourceError(f"Workbook is corrupt or unreadable: {path} ({exc})") from exc
    return [_XlrdSheet(book, book.sheet_by_index(i)) for i in range(book.nsheets)]


# ══════════════════════════════════════════════════════════════════════════════
# READER
# ══════════════════════════════════════════════════════════════════════════════

class WorkbookReader(TableReader):
    """
    Every sheet of a workbook, merged regions resolved to their top-left value.

    Formula cells report their cached result (errors become "#ERR"); negative
    numbers under a date/time format and duration values come back as signed
    H:MM:SS text. Rows with no values at all are skipped.
    """

    def __init__(self, path: Path | str) -> None:
        super().__init__(path)
        if self.path.suffix.lower() == ".xls":
            self._sheets = _load_xlrd(self.path)
        else:
            self._sheets = _load_openpyxl(self.path)
        self._sheet_index = -1
        self._sheet = None
        self._rows: Iterator[int] = iter(())
        self._merge_map: dict[tuple[int, int], tuple[int, int]] = {}

    @property
    def sheet_names(self) -> list[str]:
        return [sheet.name for sheet in self._sheets]

    def advance_sheet(self) -> bool:
        self._sheet_index += 1
        if self._sheet_index >= len(self._sheets):
            self._sheet = None
            return False
        self._sheet = self._sheets[self._sheet_index]
        self._start_sheet(self._sheet.name)
        self._merge_map = self._build_merge_map(self._sheet)
        self._rows = self._sheet.row_indices()
        return True

    @staticmethod
    def _build_merge_map(sheet) -> dict[tuple[int, int], tuple[int, int]]:
        merge_map: dict[tuple[int, int], tuple[int, int]] = {}
        for top, bottom, left, right in sheet.merged_ranges():
            for row in range(top, bottom + 1):
                for col in range(left, right + 1):
                    if (row, col) != (top, left):
                        merge_map[(row, col)] = (top, left)
        return merge_map

    def _cell_value(self, row: int, col: int) -> Any:
        parent = self._merge_map.get((row, col))
        if parent is not None and self._sheet.exists(*parent):
            row, col = parent
        try:
            return self._sheet.value(row, col)
        except Exception:
            return ""

    def advance_row(self) -> bool:
        if self._sheet is None:
            return False
        for row in self._rows:
            values = [self._cell_value(row, col) for col in range(self._sheet.width)]
            while values and is_blank(values[-1]):
                values.pop()
            if not values:
                continue
            self._set_row(values)
            return True
        return False
