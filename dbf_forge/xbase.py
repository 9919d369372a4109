"""
xBase (dBase III) tables: written with `dbf`, read with `dbfread`.

Output tables are dBase III with the cp1252 language driver. Field types
used: C (text), N (ASCII decimal), D (YYYYMMDD), L (T/F/?). Integer columns
are N fields with no decimals.

The library refuses values that do not fit their field. `fit_value` shapes
each value first and reports what it had to change:

    TRUNCATED   text longer than the field, cut to the field length
    ENCODED     characters outside the code page, replaced by '?'
    ROUNDED     digits beyond the declared decimals
    OVERFLOW    integer part too wide; the field is left blank (reads back as None)
"""

from __future__ import annotations

import math
import re
import struct
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from pathlib import Path
from typing import Any, Iterator, NamedTuple, Optional, Sequence

import dbf
from dbfread import DBF

from dbf_forge.errors import UnreadableSourceError
from dbf_forge.settings import LEGACY_TEXT_ENCODING, MAX_CHARACTER_LENGTH, MAX_FIELD_NAME, MAX_NUMERIC_LENGTH

FIELD_NAME = re.compile(r"^[A-Z][A-Z0-9_]*$")
ISO_DATE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")
FIXED_LENGTHS = {"D": 8, "L": 1}


class CellFit(str, Enum):
    TRUNCATED = "truncated"
    ENCODED = "encoded"
    ROUNDED = "rounded"
    OVERFLOW = "overflow"


class FitNote(NamedTuple):
    index: int
    fit: CellFit
    stored: Any


@dataclass(frozen=True)
class XBaseField:
    name: str
    type: str
    length: int
    decimals: int = 0

    def __post_init__(self) -> None:
        if self.type not in {"C", "N", "D", "L"}:
            raise ValueError(f"Unsupported xBase field type {self.type!r} for {self.name}")
        if len(self.name) > MAX_FIELD_NAME or not FIELD_NAME.match(self.name):
            raise ValueError(f"Field name {self.name!r} is not a legal xBase name")
        if self.type == "C" and not 1 <= self.length <= MAX_CHARACTER_LENGTH:
            raise ValueError(f"Field {self.name} length {self.length} outside 1..{MAX_CHARACTER_LENGTH}")
        if self.type == "N":
            if not 1 <= self.length <= MAX_NUMERIC_LENGTH:
                raise ValueError(f"Field {self.name} length {self.length} outside 1..{MAX_NUMERIC_LENGTH}")
            if self.decimals and not 0 < self.decimals <= self.length - 2:
                raise ValueError(f"Field {self.name} decimals {self.decimals} must be at most length - 2")

    @property
    def width(self) -> int:
        return FIXED_LENGTHS.get(self.type, self.length)

    def spec(self) -> str:
        """Field definition in the `dbf` layout language, e.g. 'PRICE N(10,2)'."""
        if self.type == "C":
            return f"{self.name} C({self.length})"
        if self.type == "N":
            return f"{self.name} N({self.length},{self.decimals})"
        return f"{self.name} {self.type}"


# ══════════════════════════════════════════════════════════════════════════════
# VALUE FITTING
# ══════════════════════════════════════════════════════════════════════════════

def fit_value(field: XBaseField, value: Any, encoding: str = LEGACY_TEXT_ENCODING) -> tuple[Any, Optional[CellFit]]:
    """The value the table will hold for `value`, and how it differs from it (None when it does not)."""
    if field.type == "C":
        return _fit_text(field, value, encoding)
    if field.type == "N":
        return _fit_number(field, value)
    if field.type == "D":
        return _to_date(value), None
    return _to_logical(value), None


def _fit_text(field: XBaseField, value: Any, encoding: str) -> tuple[str, Optional[CellFit]]:
    text = "" if value is None else str(value).strip()
    raw = text.encode(encoding, errors="replace")
    fit = None
    if len(raw) > field.length:
        raw = raw[: field.length]
        fit = CellFit.TRUNCATED
    stored = raw.decode(encoding, errors="ignore").strip()
    if fit is None and stored != text:
        fit = CellFit.ENCODED
    return stored, fit


def _fit_number(field: XBaseField, value: Any) -> tuple[Any, Optional[CellFit]]:
    if value is None or value == "":
        return None, None
    number = float(value)
    if not math.isfinite(number):
        return None, CellFit.OVERFLOW
    text = f"{number:.{field.decimals}f}"
    integer_width = field.length - (field.decimals + 1 if field.decimals else 0)
    if len(text) > field.length or len(f"{math.floor(number):.0f}") > integer_width:
        return None, CellFit.OVERFLOW
    stored = float(text) if field.decimals else int(text)
    if stored != number:
        return stored, CellFit.ROUNDED
    return stored, None


def _to_date(value: Any) -> Optional[date]:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        match = ISO_DATE.match(value.strip())
        if match:
            try:
                return date(*(int(part) for part in match.groups()))
            except ValueError:
                return None
    return None


def _to_logical(value: Any) -> Optional[bool]:
    if value is True or (isinstance(value, str) and value.strip().upper() in {"T", "Y"}):
        return True
    if value is False or (isinstance(value, str) and value.strip().upper() in {"F", "N"}):
        return False
    return None


# ══════════════════════════════════════════════════════════════════════════════
# WRITER
# ══════════════════════════════════════════════════════════════════════════════

class XBaseWriter:
    """Appends records to a new dBase III table at `path`, replacing any file there."""

    def __init__(self, path: Path | str, fields: Sequence[XBaseField], encoding: str = LEGACY_TEXT_ENCODING) -> None:
        if not fields:
            raise ValueError("An xBase table needs at least one field")
        self.path = Path(path)
        self.fields = list(fields)
        self.encoding = encoding
        self.record_count = 0
        self.table = dbf.Table(
            str(self.path),
            [field.spec() for field in self.fields],
            codepage=encoding,
            dbf_type="db3",
            unicode_errors="replace",
        )
        self.table.open(dbf.READ_WRITE)

    def write_record(self, values: Sequence[Any]) -> list[FitNote]:
        """Append one record; returns a note for every field whose stored value differs from the given one."""
        if len(values) != len(self.fields):
            raise ValueError(f"Record has {len(values)} values, table has {len(self.fields)} fields")
        stored: list[Any] = []
        notes: list[FitNote] = []
        for index, (field, value) in enumerate(zip(self.fields, values)):
            fitted, fit = fit_value(field, value, self.encoding)
            if fit is not None:
                notes.append(FitNote(index, fit, fitted))
            stored.append(fitted)
        self.table.append(tuple(stored))
        self.record_count += 1
        return notes

    def close(self) -> None:
        self.table.close()

    def __enter__(self) -> "XBaseWriter":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


# ══════════════════════════════════════════════════════════════════════════════
# READER
# ══════════════════════════════════════════════════════════════════════════════

def open_table(path: Path | str, encoding: Optional[str] = None) -> DBF:
    """
    Open an existing table for reading. Without `encoding` the table's own
    language driver decides. Memo fields whose memo file is missing read as None.
    """
    try:
        return DBF(
            str(path),
            encoding=encoding,
            recfactory=None,
            ignore_missing_memofile=True,
            char_decode_errors="replace",
        )
    except (OSError, ValueError, struct.error) as exc:
        raise UnreadableSourceError(f"Not a readable xBase table: {path} ({exc})") from exc


def iter_records(table: DBF) -> Iterator[list[Any]]:
    """Values of every live record in field order; deleted records are skipped."""
    for items in table:
        yield [value for _, value in items]


def read_table(path: Path | str, encoding: Optional[str] = None, limit: Optional[int] = None) -> tuple[list[str], list[list[Any]]]:
    table = open_table(path, encoding=encoding)
    rows: list[list[Any]] = []
    records = iter_records(table)
    try:
        for record in records:
            if limit is not None and len(rows) >= limit:
                break
            rows.append(record)
    finally:
        records.close()
    return list(table.field_names), rows
