from __future__ import annotations

from pathlib import Path
from typing import Optional

from dbf_forge.errors import UnsupportedFormatError
from dbf_forge.readers.base import TableReader
from dbf_forge.readers.flat import FlatTextReader
from dbf_forge.readers.legacy import LegacyTableReader
from dbf_forge.readers.ods import OdsReader
from dbf_forge.readers.workbook import WorkbookReader

# ── Format groups ──────────────────────────────────────────────────────────────
WORKBOOK_FORMATS = {".xlsx", ".xlsm", ".xls"}
STREAMING_FORMATS = {".ods"}
TEXT_FORMATS = {".csv", ".txt"}
LEGACY_FORMATS = {".dbf"}
ALL_FORMATS = WORKBOOK_FORMATS | STREAMING_FORMATS | TEXT_FORMATS | LEGACY_FORMATS


def is_supported(path: Path | str) -> bool:
    return Path(path).suffix.lower() in ALL_FORMATS


def open_reader(path: Path | str, encoding: Optional[str] = None) -> TableReader:
    """Pick the reader for `path` by extension. `encoding` applies to text and legacy tables."""
    path = Path(path)
    suffix = path.suffix.lower()
    if suffix in WORKBOOK_FORMATS:
        return WorkbookReader(path)
    if suffix in STREAMING_FORMATS:
        return OdsReader(path)
    if suffix in TEXT_FORMATS:
        return FlatTextReader(path, encoding=encoding)
    if suffix in LEGACY_FORMATS:
        return LegacyTableReader(path, encoding=None if encoding in (None, "auto") else encoding)
    raise UnsupportedFormatError(path)


__all__ = [
    "ALL_FORMATS",
    "FlatTextReader",
    "LegacyTableReader",
    "OdsReader",
    "TableReader",
    "WorkbookReader",
    "is_supported",
    "open_reader",
]
