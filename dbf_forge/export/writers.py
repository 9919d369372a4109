"""
Format writers. Each one receives sanitized values row by row and writes
them to the locked output opened by `exclusive_output`:

    writer = make_writer(fmt, handle, columns, row_count, settings)
    notes = writer.write_row(values)   # FitNote per cell stored differently
    writer.close()

Spreadsheet and CSV output store every value as given and return no notes.
The legacy table writer hands the path to `dbf`, which opens its own file
while `handle` keeps holding the lock.
"""

from __future__ import annotations

import csv
import io
from datetime import date, datetime
from typing import Any, BinaryIO, Sequence

import openpyxl
from openpyxl.cell import WriteOnlyCell
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter

from dbf_forge.models import ColumnType, DetectedColumn, OutputFormat
from dbf_forge.parsing import duration_to_day_fraction, value_text
from dbf_forge.settings import ForgeSettings
from dbf_forge.xbase import FitNote, XBaseField, XBaseWriter

EXPORT_SHEET_TITLE = "Export"
DATE_STYLE = "yyyy-mm-dd"
DURATION_STYLE = "[h]:mm:ss"
HEADER_COLOR = "1F4E78"

XBASE_TYPES = {
    ColumnType.CHARACTER: "C",
    ColumnType.NUMERIC: "N",
    ColumnType.INTEGER: "N",
    ColumnType.DATE: "D",
    ColumnType.LOGICAL: "L",
    ColumnType.TIME: "C",
}


def xbase_field(column: DetectedColumn) -> XBaseField:
    bounded = column.bounded()
    return XBaseField(
        name=bounded.name,
        type=XBASE_TYPES[bounded.type],
        length=bounded.length,
        decimals=bounded.decimals if bounded.type == ColumnType.NUMERIC else 0,
    )


class TableFileWriter:
    def __init__(self, handle: BinaryIO, columns: Sequence[DetectedColumn]) -> None:
        self.fields = [xbase_field(column) for column in columns]
        self._writer = XBaseWriter(handle.name, self.fields)
        self._closed = False

    def write_row(self, values: Sequence[Any]) -> list[FitNote]:
        return self._writer.write_record(values)

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._writer.close()


# ══════════════════════════════════════════════════════════════════════════════
# SPREADSHEET
# ══════════════════════════════════════════════════════════════════════════════

def _cell_payload(column: DetectedColumn, value: Any) -> tuple[Any, str | None]:
    """Value to store in the sheet and the number format it needs, if any."""
    if column.type == ColumnType.DATE and isinstance(value, (date, datetime)):
        return value, DATE_STYLE
    if column.type == ColumnType.TIME and isinstance(value, str):
        fraction = duration_to_day_fraction(value)
        if fraction is not None:
            return fraction, DURATION_STYLE
        return value, None
    if column.type in (ColumnType.NUMERIC, ColumnType.INTEGER) and isinstance(value, (int, float)):
        return value, None
    return value_text(value), None


def _column_width(column: DetectedColumn) -> int:
    return max(10, min(60, max(len(column.name), column.length) + 2))


class SpreadsheetWriter:
    def __init__(
        self,
        handle: BinaryIO,
        columns: Sequence[DetectedColumn],
        settings: ForgeSettings,
        row_count: int = 0,
    ) -> None:
        self.handle = handle
        self.columns = list(columns)
        self.write_only = row_count > settings.write_only_threshold
        self.workbook = openpyxl.Workbook(write_only=self.write_only)
        if self.write_only:
            self.sheet = self.workbook.create_sheet(EXPORT_SHEET_TITLE)
        else:
            self.sheet = self.workbook.active
            self.sheet.title = EXPORT_SHEET_TITLE
        self._write_header()

    def _write_header(self) -> None:
        font = Font(bold=True, color="FFFFFF")
        fill = PatternFill("solid", fgColor=HEADER_COLOR)
        widths = [_column_width(column) for column in self.columns]
        if self.write_only:
            for index, width in enumerate(widths, start=1):
                self.sheet.column_dimensions[get_column_letter(index)].width = width
            cells = []
            for column in self.columns:
                cell = WriteOnlyCell(self.sheet, value=column.name)
                cell.font = font
                cell.fill = fill
                cells.append(cell)
            self.sheet.append(cells)
            return

        self.sheet.append([column.name for column in self.columns])
        for cell in self.sheet[1]:
            cell.font = font
            cell.fill = fill
            cell.alignment = Alignment(horizontal="center", vertical="center")
        self.sheet.freeze_panes = "A2"
        for index, width in enumerate(widths, start=1):
            self.sheet.column_dimensions[get_column_letter(index)].width = width

    def write_row(self, values: Sequence[Any]) -> list[FitNote]:
        payloads = [_cell_payload(column, value) for column, value in zip(self.columns, values)]
        if self.write_only:
            cells = []
            for value, number_format in payloads:
                cell = WriteOnlyCell(self.sheet, value=value)
                if number_format:
                    cell.number_format = number_format
                cells.append(cell)
            self.sheet.append(cells)
            return []

        self.sheet.append([value for value, _ in payloads])
        row_index = self.sheet.max_row
        for col_index, (_, number_format) in enumerate(payloads, start=1):
            if number_format:
                self.sheet.cell(row=row_index, column=col_index).number_format = number_format
        return []

    def close(self) -> None:
        self.workbook.save(self.handle)


# ══════════════════════════════════════════════════════════════════════════════
# CSV
# ══════════════════════════════════════════════════════════════════════════════

class DelimitedWriter:
    """UTF-8 (with BOM) CSV, CRLF line ends, fields quoted only when they contain a comma, quote, or line break."""

    def __init__(self, handle: BinaryIO, columns: Sequence[DetectedColumn]) -> None:
        self.stream = io.TextIOWrapper(handle, encoding="utf-8-sig", newline="")
        self.writer = csv.writer(self.stream, lineterminator="\r\n", quoting=csv.QUOTE_MINIMAL)
        self.writer.writerow([column.name for column in columns])

    def write_row(self, values: Sequence[Any]) -> list[FitNote]:
        self.writer.writerow([value_text(value) for value in values])
        return []

    def close(self) -> None:
        self.stream.flush()
        self.stream.detach()


def make_writer(
    output_format: OutputFormat,
    handle: BinaryIO,
    columns: Sequence[DetectedColumn],
    row_count: int,
    settings: ForgeSettings,
):
    if output_format == OutputFormat.DBF:
        return TableFileWriter(handle, columns)
    if output_format == OutputFormat.XLSX:
        return SpreadsheetWriter(handle, columns, settings, row_count=row_count)
    if output_format == OutputFormat.CSV:
        return DelimitedWriter(handle, columns)
    raise ValueError(f"Unsupported output format: {output_format}")
