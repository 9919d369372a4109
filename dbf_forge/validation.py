"""
Live schema checks against the debug sample.

Validation is a read-only projection of a `SourceSelection`: it never
changes the selection, it only reports which fields would lose data or
cannot be exported as configured. `DebouncedValidator` coalesces bursts of
edits into one pass per time window.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional

from dbf_forge.models import ColumnType
from dbf_forge.parsing import value_text
from dbf_forge.settings import VALIDATION_WINDOW_SECONDS
from dbf_forge.tickets import FieldSelection, SourceSelection

LENGTH_CHECKED_TYPES = {ColumnType.CHARACTER, ColumnType.NUMERIC}


class CheckLevel(str, Enum):
    OK = "ok"
    RISK = "risk"
    ERROR = "error"


@dataclass
class FieldCheck:
    name: str
    level: CheckLevel
    message: str = ""


@dataclass
class ValidationReport:
    label: str
    checks: list[FieldCheck] = field(default_factory=list)

    @property
    def state(self) -> CheckLevel:
        levels = {check.level for check in self.checks}
        if CheckLevel.ERROR in levels:
            return CheckLevel.ERROR
        if CheckLevel.RISK in levels:
            return CheckLevel.RISK
        return CheckLevel.OK

    @property
    def problems(self) -> list[FieldCheck]:
        return [check for check in self.checks if check.level != CheckLevel.OK]


def check_field(selection: FieldSelection, sample: list[list]) -> FieldCheck:
    column = selection.column
    if not column.name.strip():
        return FieldCheck(name=column.name, level=CheckLevel.ERROR, message="Field name is empty")
    if selection.is_manual or column.type not in LENGTH_CHECKED_TYPES:
        return FieldCheck(name=column.name, level=CheckLevel.OK)

    longest = ""
    for row in sample:
        if selection.source_index < len(row):
            text = value_text(row[selection.source_index]).strip()
            if len(text) > len(longest):
                longest = text
    if len(longest) > column.length:
        return FieldCheck(
            name=column.name,
            level=CheckLevel.RISK,
            message=f"Sample value {longest[:30]!r} has {len(longest)} characters, field length is {column.length}",
        )
    return FieldCheck(name=column.name, level=CheckLevel.OK)


def validate_selection(selection: SourceSelection) -> ValidationReport:
    sample = selection.record_set.debug_sample
    report = ValidationReport(label=selection.label)
    for field_selection in selection.active_fields():
        report.checks.append(check_field(field_selection, sample))
    return report


class DebouncedValidator:
    def __init__(
        self,
        selection: SourceSelection,
        callback: Callable[[ValidationReport], None],
        window: float = VALIDATION_WINDOW_SECONDS,
    ) -> None:
        self.selection = selection
        self.callback = callback
        self.window = window
        self._timer: Optional[threading.Timer] = None
        self._lock = threading.Lock()

    def request(self) -> None:
        """Schedule a pass; a request arriving before the window closes replaces the pending one."""
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._timer = threading.Timer(self.window, self._run)
            self._timer.daemon = True
            self._timer.start()

    def flush(self) -> ValidationReport:
        self.cancel()
        return self._run()

    def cancel(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None

    def _run(self) -> ValidationReport:
        with self._lock:
            self._timer = None
        report = validate_selection(self.selection)
        self.callback(report)
        return report
