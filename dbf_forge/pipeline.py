"""
Orchestration: files -> record sets -> tickets -> outcomes.

All heavy work runs on one background thread (`ForgeWorker`), strictly in
submission order. Progress and status are reported through the event
channel; the log handle is passed in explicitly.
"""

from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import Iterable, Optional, Sequence

from dbf_forge.events import AnalysisEvent, EventChannel, ProgressEvent, StatusEvent, TicketStatus
from dbf_forge.export import export_ticket
from dbf_forge.forge_log import ForgeLog, null_log
from dbf_forge.inference import infer_schema
from dbf_forge.models import ExportOutcome, ForgeTicket, OutcomeStatus, SourceRecordSet
from dbf_forge.parsing import value_text
from dbf_forge.readers import TableReader, is_supported, open_reader
from dbf_forge.settings import DEBUG_SAMPLE_ROWS, ForgeSettings

TERMINAL_STATUS = {
    OutcomeStatus.SUCCEEDED: TicketStatus.SUCCEEDED,
    OutcomeStatus.SUCCEEDED_WITH_WARNINGS: TicketStatus.SUCCEEDED_WITH_WARNINGS,
    OutcomeStatus.FAILED: TicketStatus.FAILED,
}


def read_record_set(reader: TableReader, path: Path) -> Optional[SourceRecordSet]:
    """Drain the reader's current sheet into a record set; None when the sheet has no rows at all."""
    if reader.embedded_header:
        if not reader.advance_row():
            return None
        headers = [f"C{i}" if value is None else value_text(value) for i, value in enumerate(reader.current_row())]
    else:
        headers = list(reader.field_names or [])

    rows = []
    while reader.advance_row():
        rows.append(reader.current_row())

    return SourceRecordSet(
        source_path=path,
        sheet_name=reader.sheet_name,
        headers=headers,
        rows=rows,
        schema=infer_schema(headers, rows),
        debug_sample=rows[:DEBUG_SAMPLE_ROWS],
    )


def analyze_file(
    path: Path | str,
    log: Optional[ForgeLog] = None,
    settings: Optional[ForgeSettings] = None,
) -> list[SourceRecordSet]:
    log = log or null_log()
    settings = settings or ForgeSettings()
    path = Path(path)
    record_sets: list[SourceRecordSet] = []
    try:
        with open_reader(path, encoding=settings.text_encoding) as reader:
            while reader.advance_sheet():
                record_set = read_record_set(reader, path)
                if record_set is None:
                    log.system(f"{path.name} [{reader.sheet_name}]: empty sheet skipped")
                    continue
                ghosts = sum(1 for column in record_set.schema if column.ghost)
                log.system(
                    f"{path.name} [{record_set.sheet_name}]: {len(record_set.rows)} rows, "
                    f"{len(record_set.schema)} columns ({ghosts} empty)"
                )
                record_sets.append(record_set)
    except Exception as exc:
        log.warn(f"Could not read {path.name}: {exc}")
        raise
    return record_sets


def analyze_files(
    paths: Iterable[Path | str],
    log: Optional[ForgeLog] = None,
    channel: Optional[EventChannel] = None,
    settings: Optional[ForgeSettings] = None,
) -> list[SourceRecordSet]:
    """Analyze each file in turn. Unsupported or unreadable files are logged and skipped."""
    log = log or null_log()
    settings = settings or ForgeSettings()
    collected: list[SourceRecordSet] = []
    for raw_path in paths:
        path = Path(raw_path)
        if not is_supported(path):
            log.warn(f"Skipping {path.name}: unsupported file type {path.suffix or '(none)'}")
            if channel is not None:
                channel.publish(AnalysisEvent(path=str(path), record_sets=0, error="unsupported format"))
            continue
        log.user(f"Analyzing {path.name}")
        try:
            record_sets = analyze_file(path, log=log, settings=settings)
        except Exception as exc:
            if channel is not None:
                channel.publish(AnalysisEvent(path=str(path), record_sets=0, error=str(exc)))
            continue
        collected.extend(record_sets)
        if channel is not None:
            channel.publish(AnalysisEvent(path=str(path), record_sets=len(record_sets)))
    return collected


def run_export(
    tickets: Sequence[ForgeTicket],
    log: Optional[ForgeLog] = None,
    channel: Optional[EventChannel] = None,
    settings: Optional[ForgeSettings] = None,
) -> list[ExportOutcome]:
    """Export tickets one after another; a failed ticket never stops the rest."""
    log = log or null_log()
    settings = settings or ForgeSettings()
    total = len(tickets)
    log.user(f"Export started: {total} ticket(s)")

    def publish(event) -> None:
        if channel is not None:
            channel.publish(event)

    for index, ticket in enumerate(tickets):
        publish(StatusEvent(ticket_index=index, label=ticket.label, status=TicketStatus.QUEUED))

    outcomes: list[ExportOutcome] = []
    for index, ticket in enumerate(tickets):
        publish(StatusEvent(ticket_index=index, label=ticket.label, status=TicketStatus.PROCESSING))
        outcome = export_ticket(ticket, log=log, settings=settings)
        outcomes.append(outcome)
        publish(
            StatusEvent(
                ticket_index=index,
                label=ticket.label,
                status=TERMINAL_STATUS[outcome.status],
                path=str(outcome.written_path) if outcome.written_path else None,
                error=outcome.error,
            )
        )
        publish(ProgressEvent(completed=index + 1, total=total))

    failed = sum(1 for outcome in outcomes if outcome.status == OutcomeStatus.FAILED)
    warned = sum(1 for outcome in outcomes if outcome.status == OutcomeStatus.SUCCEEDED_WITH_WARNINGS)
    log.system(f"Export finished: {total - failed} written ({warned} with warnings), {failed} failed")
    return outcomes


class ForgeWorker:
    """Single background worker; analysis and export jobs run one at a time in submission order."""

    def __init__(
        self,
        log: Optional[ForgeLog] = None,
        channel: Optional[EventChannel] = None,
        settings: Optional[ForgeSettings] = None,
    ) -> None:
        self.log = log or null_log()
        self.channel = channel
        self.settings = settings or ForgeSettings()
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="dbf-forge")

    def submit_analysis(self, paths: Iterable[Path | str]) -> "Future[list[SourceRecordSet]]":
        return self._executor.submit(analyze_files, list(paths), self.log, self.channel, self.settings)

    def submit_export(self, tickets: Sequence[ForgeTicket]) -> "Future[list[ExportOutcome]]":
        return self._executor.submit(run_export, list(tickets), self.log, self.channel, self.settings)

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

    def __enter__(self) -> "ForgeWorker":
        return self

    def __exit__(self, *exc_info) -> None:
        self.shutdown()
