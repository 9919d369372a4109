from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum, IntEnum
from pathlib import Path
from typing import Any, NamedTuple, Optional

from dbf_forge.settings import (
    DATE_LENGTH,
    INTEGER_LENGTH,
    LOGICAL_LENGTH,
    MAX_CHARACTER_LENGTH,
    MAX_DECIMALS,
    MAX_NUMERIC_LENGTH,
    MAX_TIME_LENGTH,
    MIN_TIME_LENGTH,
)


class ColumnType(IntEnum):
    CHARACTER = 0
    NUMERIC = 1
    INTEGER = 2
    DATE = 3
    LOGICAL = 4
    TIME = 5

    @property
    def label(self) -> str:
        return self.name.capitalize()

    @classmethod
    def parse(cls, text: str) -> "ColumnType":
        key = text.strip().upper()
        if key.isdigit():
            return cls(int(key))
        try:
            return cls[key]
        except KeyError as exc:
            raise ValueError(f"Unknown column type: {text!r}") from exc


class OutputFormat(Enum):
    DBF = ".dbf"
    XLSX = ".xlsx"
    CSV = ".csv"

    @property
    def extension(self) -> str:
        return self.value

    @classmethod
    def parse(cls, text: str) -> "OutputFormat":
        key = text.strip().lower().lstrip(".")
        for member in cls:
            if member.value == f".{key}":
                return member
        raise ValueError(f"Unknown output format: {text!r} (expected dbf, xlsx or csv)")


class OutcomeStatus(str, Enum):
    SUCCEEDED = "succeeded"
    SUCCEEDED_WITH_WARNINGS = "succeeded-with-warnings"
    FAILED = "failed"


class SanitizationResult(NamedTuple):
    value: Any
    lossy: bool


@dataclass
class DetectedColumn:
    name: str
    type: ColumnType = ColumnType.CHARACTER
    length: int = 1
    decimals: int = 0
    ghost: bool = False

    def retype(self, new_type: ColumnType) -> "DetectedColumn":
        """
        Change the type the way the schema editor does: fixed widths for the
        fixed-width types, decimals only survive on Numeric, and lengths are
        pulled into the new type's range.
        """
        column = replace(self, type=ColumnType(new_type))
        if column.type != ColumnType.NUMERIC:
            column.decimals = 0
        if column.type == ColumnType.INTEGER:
            column.length = INTEGER_LENGTH
        elif column.type == ColumnType.DATE:
            column.length = DATE_LENGTH
        elif column.type == ColumnType.LOGICAL:
            column.length = LOGICAL_LENGTH
        return column.bounded()

    def bounded(self) -> "DetectedColumn":
        column = replace(self)
        if column.type == ColumnType.CHARACTER:
            column.length = min(max(column.length, 1), MAX_CHARACTER_LENGTH)
            column.decimals = 0
        elif column.type == ColumnType.NUMERIC:
            column.length = min(max(column.length, 1), MAX_NUMERIC_LENGTH)
            column.decimals = min(max(column.decimals, 0), MAX_DECIMALS)
            if column.decimals >= column.length - 1:
                column.decimals = max(0, column.length - 2)
        elif column.type == ColumnType.INTEGER:
            column.length = INTEGER_LENGTH
            column.decimals = 0
        elif column.type == ColumnType.DATE:
            column.length = DATE_LENGTH
            column.decimals = 0
        elif column.type == ColumnType.LOGICAL:
            column.length = LOGICAL_LENGTH
            column.decimals = 0
        elif column.type == ColumnType.TIME:
            column.length = min(max(column.length, MIN_TIME_LENGTH), MAX_TIME_LENGTH)
            column.decimals = 0
        return column

    def describe(self) -> str:
        if self.type == ColumnType.NUMERIC:
            return f"{self.name} {self.type.label}({self.length},{self.decimals})"
        return f"{self.name} {self.type.label}({self.length})"

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "type": self.type.label,
            "type_id": int(self.type),
            "length": self.length,
            "decimals": self.decimals,
            "ghost": self.ghost,
        }


@dataclass
class SourceRecordSet:
    source_path: Path
    sheet_name: str
    headers: list[str]
    rows: list[list[Any]]
    schema: list[DetectedColumn]
    debug_sample: list[list[Any]] = field(default_factory=list)

    @property
    def source_name(self) -> str:
        return self.source_path.name

    @property
    def label(self) -> str:
        return f"{self.source_path.stem}/{self.sheet_name}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "source": str(self.source_path),
            "sheet": self.sheet_name,
            "rows": len(self.rows),
            "columns": [column.to_dict() for column in self.schema],
        }


@dataclass
class ForgeTicket:
    """One unit of export work: a target path, a resolved schema, and the rows to write."""

    base_path: Path
    columns: list[DetectedColumn]
    rows: list[list[Any]]
    raw_rows: list[list[Any]]
    output_format: OutputFormat
    label: str


@dataclass
class ExportOutcome:
    status: OutcomeStatus
    requested_path: Path
    written_path: Optional[Path] = None
    rows_written: int = 0
    lossy_cells: int = 0
    overflow_cells: int = 0
    error: Optional[str] = None
    log: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.status != OutcomeStatus.FAILED

    @property
    def summary(self) -> str:
        if self.status == OutcomeStatus.SUCCEEDED:
            return "OK"
        if self.status == OutcomeStatus.SUCCEEDED_WITH_WARNINGS:
            return "WARN"
        return self.error or "failed"

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "requested_path": str(self.requested_path),
            "written_path": str(self.written_path) if self.written_path else None,
            "rows_written": self.rows_written,
            "lossy_cells": self.lossy_cells,
            "overflow_cells": self.overflow_cells,
            "error": self.error,
        }
