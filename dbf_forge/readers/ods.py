"""
Streaming OpenDocument spreadsheet reader.

content.xml is walked with lxml.etree.iterparse; each row element is turned
into values when it closes and then cleared, together with its already
processed siblings, so memory stays flat regardless of sheet size.

Vertical merges (number-rows-spanned) are replayed through a span buffer
keyed by column index: the value is re-emitted at that column for each of
the following rows it covers. Covered cells themselves are skipped.
"""

from __future__ import annotations

import re
import zipfile
from datetime import datetime
from pathlib import Path
from typing import Any, Iterator, Optional

from lxml import etree

from dbf_forge.errors import UnreadableSourceError
from dbf_forge.readers.base import TableReader, is_blank
from dbf_forge.settings import MAX_COLUMN_REPEAT

TABLE_NS = "urn:oasis:names:tc:opendocument:xmlns:table:1.0"
OFFICE_NS = "urn:oasis:names:tc:opendocument:xmlns:office:1.0"

TABLE = f"{{{TABLE_NS}}}table"
TABLE_ROW = f"{{{TABLE_NS}}}table-row"
TABLE_CELL = f"{{{TABLE_NS}}}table-cell"
COVERED_CELL = f"{{{TABLE_NS}}}covered-table-cell"

ATTR_NAME = f"{{{TABLE_NS}}}name"
ATTR_COLS_REPEATED = f"{{{TABLE_NS}}}number-columns-repeated"
ATTR_ROWS_REPEATED = f"{{{TABLE_NS}}}number-rows-repeated"
ATTR_ROWS_SPANNED = f"{{{TABLE_NS}}}number-rows-spanned"
ATTR_COLS_SPANNED = f"{{{TABLE_NS}}}number-columns-spanned"
ATTR_VALUE_TYPE = f"{{{OFFICE_NS}}}value-type"
ATTR_VALUE = f"{{{OFFICE_NS}}}value"
ATTR_DATE_VALUE = f"{{{OFFICE_NS}}}date-value"
ATTR_TIME_VALUE = f"{{{OFFICE_NS}}}time-value"
ATTR_BOOLEAN_VALUE = f"{{{OFFICE_NS}}}boolean-value"

UNNAMED_SHEET = "UnnamedSheet"
ISO_DURATION = re.compile(
    r"^(-)?P(?:(\d+)D)?(?:T(?:(\d+)H)?(?:(\d+)M)?(?:(\d+(?:\.\d+)?)S)?)?$"
)


def _count(element, attribute: str) -> int:
    """Repeat/span attribute as a count; oversized values collapse to one."""
    raw = element.get(attribute)
    if not raw:
        return 1
    try:
        count = int(raw)
    except ValueError:
        return 1
    if count < 1 or count > MAX_COLUMN_REPEAT:
        return 1
    return count


def duration_to_clock(raw: str) -> str:
    """PT36H05M00S -> 36:05:00 (hours at least two digits)."""
    match = ISO_DURATION.match(raw.strip())
    if not match:
        return raw.replace("PT", "")
    sign, days, hours, minutes, seconds = match.groups()
    total = int(days or 0) * 86400 + int(hours or 0) * 3600 + int(minutes or 0) * 60 + int(float(seconds or 0))
    hh, rest = divmod(total, 3600)
    mm, ss = divmod(rest, 60)
    return f"{'-' if sign else ''}{hh:02d}:{mm:02d}:{ss:02d}"


def cell_value(cell) -> Any:
    value_type = cell.get(ATTR_VALUE_TYPE)
    time_value = cell.get(ATTR_TIME_VALUE)
    if value_type == "time" or time_value:
        if time_value:
            return duration_to_clock(time_value)
    if value_type == "date":
        raw = (cell.get(ATTR_DATE_VALUE) or "").replace("Z", "")
        try:
            return datetime.fromisoformat(raw)
        except ValueError:
            pass
    if value_type in ("float", "currency"):
        raw = cell.get(ATTR_VALUE)
        if raw is not None:
            try:
                return float(raw)
            except ValueError:
                pass
    if value_type == "boolean":
        return cell.get(ATTR_BOOLEAN_VALUE) == "true"
    return "".join(cell.itertext())


class OdsReader(TableReader):
    def __init__(self, path: Path | str) -> None:
        super().__init__(path)
        try:
            self._archive = zipfile.ZipFile(self.path)
        except (OSError, zipfile.BadZipFile) as exc:
            raise UnreadableSourceError(f"ODS file is corrupt or unreadable: {self.path} ({exc})") from exc
        try:
            self._content = self._archive.open("content.xml")
        except KeyError as exc:
            self._archive.close()
            raise UnreadableSourceError("Invalid ODS file: content.xml not found.") from exc
        self._events: Iterator = etree.iterparse(self._content, events=("start", "end"), huge_tree=True)
        self._in_table = False
        self._span_buffer: dict[int, list[Any]] = {}
        self._pending: list[list[Any]] = []

    # ── sheets ────────────────────────────────────────────────────────────────

    def _next_event(self) -> Optional[tuple[str, Any]]:
        try:
            return next(self._events)
        except StopIteration:
            return None
        except etree.XMLSyntaxError as exc:
            raise UnreadableSourceError(f"ODS content is malformed: {self.path} ({exc})") from exc

    def advance_sheet(self) -> bool:
        self._span_buffer.clear()
        self._pending.clear()
        while True:
            item = self._next_event()
            if item is None:
                return False
            event, element = item
            if event == "start" and element.tag == TABLE:
                self._in_table = True
                self._start_sheet(element.get(ATTR_NAME) or UNNAMED_SHEET)
                return True

    # ── rows ──────────────────────────────────────────────────────────────────

    def advance_row(self) -> bool:
        while True:
            if self._pending:
                self._set_row(self._pad(self._pending.pop(0)))
                return True
            if not self._in_table:
                return False
            item = self._next_event()
            if item is None:
                self._in_table = False
                return False
            event, element = item
            if event != "end":
                continue
            if element.tag == TABLE:
                self._in_table = False
                self._span_buffer.clear()
                element.clear()
                return False
            if element.tag == TABLE_ROW:
                for _ in range(_count(element, ATTR_ROWS_REPEATED)):
                    values = self._assemble_row(element)
                    if any(not is_blank(value) for value in values):
                        self._pending.append(values)
                self._release(element)

    def _pad(self, values: list[Any]) -> list[Any]:
        self.field_count = max(self.field_count, len(values))
        return values + [""] * (self.field_count - len(values))

    def _emit_spans(self, values: list[Any]) -> None:
        while len(values) in self._span_buffer:
            column = len(values)
            entry = self._span_buffer[column]
            values.append(entry[0])
            entry[1] -= 1
            if entry[1] <= 0:
                del self._span_buffer[column]

    def _assemble_row(self, row) -> list[Any]:
        values: list[Any] = []
        for cell in row:
            self._emit_spans(values)
            if cell.tag != TABLE_CELL:
                continue
            value = cell_value(cell)
            rows_spanned = _count(cell, ATTR_ROWS_SPANNED)
            width = _count(cell, ATTR_COLS_SPANNED) * _count(cell, ATTR_COLS_REPEATED)
            for _ in range(width):
                if rows_spanned > 1:
                    self._span_buffer[len(values)] = [value, rows_spanned - 1]
                values.append(value)
        self._emit_spans(values)
        return values

    @staticmethod
    def _release(element) -> None:
        element.clear()
        parent = element.getparent()
        if parent is not None:
            while element.getprevious() is not None:
                del parent[0]

    def close(self) -> None:
        self._content.close()
        self._archive.close()
