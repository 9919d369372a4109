"""
Ticket Builder.

A `SourceSelection` is the user's editable view of one analyzed record set:
which columns are exported, under which names and types, and where the
output goes. `build_tickets` turns a list of selections into export tickets,
either one ticket per selection or one merged ticket for all of them.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Optional, Sequence

from dbf_forge.models import ColumnType, DetectedColumn, ForgeTicket, OutputFormat, SourceRecordSet
from dbf_forge.naming import resolve_export_names, suggest_output_name
from dbf_forge.sanitizer import sanitize
from dbf_forge.settings import (
    DEFAULT_MERGE_NAME,
    DEFAULT_OUTPUT_NAME,
    MANUAL_FIELD_LENGTH,
    MANUAL_FIELD_NAME,
)

MANUAL_SOURCE_INDEX = -1


@dataclass
class FieldSelection:
    column: DetectedColumn
    source_index: int
    enabled: bool = True

    @property
    def is_manual(self) -> bool:
        return self.source_index < 0


@dataclass
class SourceSelection:
    record_set: SourceRecordSet
    fields: list[FieldSelection]
    output_name: str = ""
    output_dir: Optional[Path] = None
    output_format: OutputFormat = OutputFormat.DBF
    enabled: bool = True

    @classmethod
    def from_record_set(
        cls,
        record_set: SourceRecordSet,
        output_format: OutputFormat = OutputFormat.DBF,
        output_dir: Optional[Path] = None,
    ) -> "SourceSelection":
        """Every column selected except ghost columns, named after the source file and sheet."""
        fields = [
            FieldSelection(column=replace(column), source_index=index, enabled=not column.ghost)
            for index, column in enumerate(record_set.schema)
        ]
        return cls(
            record_set=record_set,
            fields=fields,
            output_name=suggest_output_name(record_set.source_path, record_set.sheet_name),
            output_dir=output_dir,
            output_format=output_format,
        )

    @property
    def directory(self) -> Path:
        if self.output_dir is not None:
            return Path(self.output_dir)
        return self.record_set.source_path.parent

    @property
    def label(self) -> str:
        return self.record_set.label

    def active_fields(self) -> list[FieldSelection]:
        return [selection for selection in self.fields if selection.enabled]

    def active_columns(self) -> list[DetectedColumn]:
        return [selection.column for selection in self.active_fields()]

    def active_indices(self) -> list[int]:
        return [selection.source_index for selection in self.active_fields()]

    def add_manual_field(self, name: str = MANUAL_FIELD_NAME) -> FieldSelection:
        selection = FieldSelection(
            column=DetectedColumn(name=name, type=ColumnType.CHARACTER, length=MANUAL_FIELD_LENGTH),
            source_index=MANUAL_SOURCE_INDEX,
        )
        self.fields.append(selection)
        return selection

    def set_enabled(self, name: str, enabled: bool) -> None:
        for selection in self.fields:
            if selection.column.name.upper() == name.upper():
                selection.enabled = enabled
                return
        raise KeyError(f"No field named {name!r} in {self.label}")

    def retype(self, name: str, new_type: ColumnType) -> None:
        for selection in self.fields:
            if selection.column.name.upper() == name.upper():
                selection.column = selection.column.retype(new_type)
                return
        raise KeyError(f"No field named {name!r} in {self.label}")


def map_row(row: Sequence[Any], indices: Sequence[int]) -> list[Any]:
    """Project a source row onto the active columns; missing or manual positions become None."""
    return [row[index] if 0 <= index < len(row) else None for index in indices]


def _ticket(
    base_path: Path,
    columns: list[DetectedColumn],
    raw_rows: list[list[Any]],
    output_format: OutputFormat,
    label: str,
    dayfirst: bool,
) -> ForgeTicket:
    names = resolve_export_names(column.name for column in columns)
    resolved = [replace(column, name=name) for column, name in zip(columns, names)]
    rows = [
        [sanitize(value, column.type, dayfirst=dayfirst).value for value, column in zip(raw, resolved)]
        for raw in raw_rows
    ]
    return ForgeTicket(
        base_path=base_path,
        columns=resolved,
        rows=rows,
        raw_rows=raw_rows,
        output_format=output_format,
        label=label,
    )


def _with_extension(directory: Path, name: str, output_format: OutputFormat) -> Path:
    stem = Path(name).stem if Path(name).suffix.lower() in {f.extension for f in OutputFormat} else name
    return directory / f"{stem}{output_format.extension}"


def build_tickets(
    selections: Sequence[SourceSelection],
    merge: bool = False,
    merge_name: Optional[str] = None,
    output_format: Optional[OutputFormat] = None,
    output_dir: Optional[Path] = None,
    dayfirst: bool = True,
) -> list[ForgeTicket]:
    """
    Independent mode: one ticket per enabled selection, each with its own
    schema, name and format.

    Merge mode: a single ticket whose schema is the first enabled selection's
    active columns; every enabled selection contributes its rows, mapped
    positionally through its own active column indices, in selection order.
    """
    enabled = [selection for selection in selections if selection.enabled]
    if not enabled:
        return []

    if merge:
        master = enabled[0]
        fmt = output_format or master.output_format
        directory = Path(output_dir) if output_dir is not None else master.directory
        columns = [replace(column) for column in master.active_columns()]
        raw_rows: list[list[Any]] = []
        for selection in enabled:
            indices = selection.active_indices()[: len(columns)]
            indices += [MANUAL_SOURCE_INDEX] * (len(columns) - len(indices))
            raw_rows.extend(map_row(row, indices) for row in selection.record_set.rows)
        name = (merge_name or "").strip() or DEFAULT_MERGE_NAME
        return [_ticket(_with_extension(directory, name, fmt), columns, raw_rows, fmt, f"merge:{name}", dayfirst)]

    tickets: list[ForgeTicket] = []
    for selection in enabled:
        fmt = output_format or selection.output_format
        directory = Path(output_dir) if output_dir is not None else selection.directory
        indices = selection.active_indices()
        raw_rows = [map_row(row, indices) for row in selection.record_set.rows]
        name = selection.output_name.strip() or DEFAULT_OUTPUT_NAME
        tickets.append(
            _ticket(
                _with_extension(directory, name, fmt),
                [replace(column) for column in selection.active_columns()],
                raw_rows,
                fmt,
                selection.label,
                dayfirst,
            )
        )
    return tickets
