"""
Identifier rules.

Two different name passes exist:

* `correct_name` cleans spreadsheet headers when a source is analyzed
  (long, readable names are kept).
* `export_identifier` / `resolve_export_names` produce names the legacy table
  format accepts: upper-case, [A-Z0-9_] starting with a letter, at most 10
  characters, unique without regard to case.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Iterable, Optional

from dbf_forge.settings import (
    DEFAULT_FIELD_NAME,
    EMPTY_HEADER_NAME,
    MAX_FIELD_NAME,
    MAX_HEADER_LENGTH,
)

HEADER_NOISE = re.compile(r"[^a-zA-Z0-9_]")
IDENTIFIER_NOISE = re.compile(r"[^A-Z0-9_]")
SHEET_NOISE = re.compile(r"[^A-Za-z0-9_\-]+")
GENERIC_SHEET_NAMES = {"sheet1", "hoja1"}

FIELD_PREFIX = "F"
SPLIT_HEAD = 5
SPLIT_TAIL = 4


def correct_name(raw: Optional[str]) -> str:
    if raw is None or not str(raw).strip():
        return EMPTY_HEADER_NAME
    cleaned = HEADER_NOISE.sub("_", str(raw).strip())
    if cleaned[0].isdigit():
        cleaned = "_" + cleaned
    return cleaned[:MAX_HEADER_LENGTH].upper()


def export_identifier(name: Optional[str]) -> str:
    """
    Single-name normalization for the legacy table format.

    Over-long names keep their first five and last four characters so that
    sibling columns differing only in a suffix stay distinct:
    DEPARTAMENTO_A -> DEPARTO_A.
    """
    base = IDENTIFIER_NOISE.sub("_", (name or "").strip().upper())
    if not base:
        return DEFAULT_FIELD_NAME
    if not base[0].isalpha():
        base = FIELD_PREFIX + base
    if len(base) > MAX_FIELD_NAME:
        base = base[:SPLIT_HEAD] + base[-SPLIT_TAIL:]
    return base


def resolve_export_names(names: Iterable[Optional[str]]) -> list[str]:
    """Normalize every name and de-duplicate case-insensitively with _1, _2, ... suffixes."""
    taken: set[str] = set()
    resolved: list[str] = []
    for name in names:
        candidate = export_identifier(name)
        base = candidate
        counter = 1
        while candidate.upper() in taken:
            suffix = f"_{counter}"
            candidate = base[: MAX_FIELD_NAME - len(suffix)] + suffix
            counter += 1
        taken.add(candidate.upper())
        resolved.append(candidate)
    return resolved


def suggest_output_name(source_path: Path, sheet_name: Optional[str]) -> str:
    """Default output stem for one record set: the file stem, plus the sheet unless it is the default sheet."""
    stem = Path(source_path).stem
    if not sheet_name:
        return stem
    clean_sheet = SHEET_NOISE.sub("_", sheet_name.strip()).strip("_")
    if not clean_sheet or clean_sheet.lower() in GENERIC_SHEET_NAMES:
        return stem
    return f"{stem}_{clean_sheet}"
