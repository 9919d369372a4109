from __future__ import annotations

import csv
import re
from pathlib import Path
from typing import Iterator, Optional

from dbf_forge.readers.base import TableReader
from dbf_forge.settings import LEGACY_TEXT_ENCODING

TEXT_SHEET_NAME = "Text"
TXT_DELIMITERS = re.compile(r"[\t;]")


def detect_encoding(raw: bytes) -> str:
    """chardet guess for `raw`; the legacy code page when chardet has no answer."""
    import chardet

    result = chardet.detect(raw)
    detected = result.get("encoding")
    if not detected:
        return LEGACY_TEXT_ENCODING
    return detected


def decode_text(raw: bytes, encoding: str) -> str:
    if encoding.lower() == "auto":
        encoding = detect_encoding(raw)
    try:
        return raw.decode(encoding)
    except UnicodeDecodeError:
        return raw.decode(encoding, errors="replace")
    except LookupError as exc:
        raise ValueError(f"Unknown text encoding: {encoding}") from exc


def split_line(line: str, suffix: str) -> list[str]:
    if suffix == ".csv":
        return next(csv.reader([line]), [])
    return TXT_DELIMITERS.split(line)


class FlatTextReader(TableReader):
    """
    Delimited text as a single sheet named "Text".

    .csv lines split on commas outside double quotes; .txt lines split on tab
    or semicolon. Blank lines are skipped. Each line is one row; quoted
    fields do not span lines.
    """

    def __init__(self, path: Path | str, encoding: Optional[str] = None) -> None:
        super().__init__(path)
        self.encoding = encoding or LEGACY_TEXT_ENCODING
        self._suffix = self.path.suffix.lower()
        self._lines: Optional[Iterator[str]] = None
        self._sheet_done = False

    def advance_sheet(self) -> bool:
        if self._sheet_done:
            return False
        self._sheet_done = True
        text = decode_text(self.path.read_bytes(), self.encoding)
        if text.startswith("\ufeff"):
            text = text[1:]
        self._lines = iter(text.splitlines())
        self._start_sheet(TEXT_SHEET_NAME)
        return True

    def advance_row(self) -> bool:
        if self._lines is None:
            return False
        for line in self._lines:
            if not line.strip():
                continue
            self._set_row(split_line(line, self._suffix))
            return True
        self._lines = None
        return False
