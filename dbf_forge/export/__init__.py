"""
Export Engine.

`export_ticket` writes one ticket and never raises: every problem ends up in
the returned `ExportOutcome`. Each cell is sanitized again from its raw input
and traced after the writer has stored it, so OUT is the stored value:

    LOSSY       the sanitizer could not reproduce the input
    TRUNCATED   text cut to the field length        (legacy tables)
    ENCODED     characters outside the code page    (legacy tables)
    ROUNDED     digits beyond the field's decimals  (legacy tables)
    OVERFLOW    number too wide; field left blank   (legacy tables)

OVERFLOW cells count as `overflow_cells`, every other tagged cell once as
`lossy_cells`. Either one makes the outcome SUCCEEDED_WITH_WARNINGS.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Any, Optional

from dbf_forge.export.paths import exclusive_output, is_locked, resolve_write_path
from dbf_forge.export.writers import make_writer
from dbf_forge.forge_log import ForgeLog, null_log
from dbf_forge.models import DetectedColumn, ExportOutcome, ForgeTicket, OutcomeStatus
from dbf_forge.naming import resolve_export_names
from dbf_forge.parsing import value_text
from dbf_forge.sanitizer import sanitize
from dbf_forge.settings import ForgeSettings
from dbf_forge.xbase import CellFit


def trace_line(row: int, col: int, column: DetectedColumn, raw: Any, final: Any) -> str:
    shown_raw = "NULL" if raw is None else value_text(raw)
    return (
        f"R{row:04d}:C{col:03d} [{column.name}] | TypeID:{int(column.type)} | "
        f"IN: '{shown_raw}' ({type(raw).__name__}) >>> OUT: '{value_text(final)}'"
    )


def export_ticket(
    ticket: ForgeTicket,
    log: Optional[ForgeLog] = None,
    settings: Optional[ForgeSettings] = None,
) -> ExportOutcome:
    log = log or null_log()
    settings = settings or ForgeSettings()
    outcome = ExportOutcome(status=OutcomeStatus.FAILED, requested_path=ticket.base_path)

    def note(level: str, message: str) -> None:
        outcome.log.append(f"[{level}] {message}")
        getattr(log, {"SYS": "system", "WARN": "warn", "ERROR": "error"}[level])(f"[{ticket.label}] {message}")

    columns = [
        replace(column, name=name)
        for column, name in zip(ticket.columns, resolve_export_names(c.name for c in ticket.columns))
    ]
    try:
        path = resolve_write_path(ticket.base_path, settings.max_path_suffix)
        if path != ticket.base_path:
            note("WARN", f"{ticket.base_path.name} is locked, writing to {path.name}")
        path.parent.mkdir(parents=True, exist_ok=True)
        note("SYS", f"Writing {len(ticket.raw_rows)} rows to {path} ({ticket.output_format.name})")
        for column in columns:
            log.trace(ticket.label, f"DEF {column.describe()}")

        with exclusive_output(path) as handle:
            writer = make_writer(ticket.output_format, handle, columns, len(ticket.raw_rows), settings)
            try:
                for row_number, raw_row in enumerate(ticket.raw_rows, start=1):
                    results = [
                        sanitize(raw, column.type, dayfirst=settings.dayfirst)
                        for column, raw in zip(columns, raw_row)
                    ]
                    fits = {fitted.index: fitted for fitted in writer.write_row([r.value for r in results])}
                    for col_number, (column, raw, result) in enumerate(zip(columns, raw_row, results)):
                        fitted = fits.get(col_number)
                        written = fitted.stored if fitted else result.value
                        line = trace_line(row_number, col_number, column, raw, written)
                        tags = ["LOSSY"] if result.lossy else []
                        if fitted is not None:
                            tags.append(fitted.fit.name)
                        if not tags:
                            log.trace(ticket.label, line)
                            continue
                        if fitted is not None and fitted.fit == CellFit.OVERFLOW:
                            outcome.overflow_cells += 1
                        else:
                            outcome.lossy_cells += 1
                        note("WARN", f"{line} | {' | '.join(tags)}")
                    outcome.rows_written += 1
            finally:
                writer.close()
    except Exception as exc:
        outcome.error = str(exc) or type(exc).__name__
        note("ERROR", f"Export failed: {outcome.error}")
        return outcome

    outcome.written_path = path
    if outcome.lossy_cells or outcome.overflow_cells:
        outcome.status = OutcomeStatus.SUCCEEDED_WITH_WARNINGS
        note("WARN", f"Finished with {outcome.lossy_cells} lossy and {outcome.overflow_cells} overflowed cells: {path.name}")
    else:
        outcome.status = OutcomeStatus.SUCCEEDED
        note("SYS", f"Finished: {path.name}")
    return outcome


__all__ = ["export_ticket", "exclusive_output", "is_locked", "resolve_write_path", "trace_line"]
