import tempfile
import unittest
from pathlib import Path
from unittest import mock

from openpyxl import Workbook

from dbf_forge.events import AnalysisEvent, EventChannel, EventRecorder, LogEvent, ProgressEvent, StatusEvent, TicketStatus
from dbf_forge.errors import UnreadableSourceError
from dbf_forge.export import export_ticket
from dbf_forge.forge_log import ForgeLog
from dbf_forge.models import ColumnType, ExportOutcome, OutcomeStatus, OutputFormat
from dbf_forge.pipeline import ForgeWorker, analyze_file, analyze_files, run_export
from dbf_forge.tickets import SourceSelection, build_tickets

from forge_fixtures import write_ods, write_text


def write_workbook(path: Path) -> Path:
    wb = Workbook()
    ws = wb.active
    ws.title = "Sheet1"
    ws.append(["Code", "Amount", "Notes"])
    ws.append(["A1", 10.5, None])
    ws.append(["B2", 20, None])
    wb.create_sheet("Blank")
    wb.save(path)
    return path


class AnalysisTests(unittest.TestCase):
    def test_workbook_sheets_become_record_sets(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = write_workbook(Path(tmpdir) / "sales.xlsx")
            record_sets = analyze_file(path)

        self.assertEqual(len(record_sets), 1)
        record_set = record_sets[0]
        self.assertEqual(record_set.label, "sales/Sheet1")
        self.assertEqual(record_set.headers, ["Code", "Amount", "Notes"])
        self.assertEqual(record_set.rows, [["A1", 10.5, ""], ["B2", 20, ""]])
        self.assertEqual([c.type for c in record_set.schema], [ColumnType.CHARACTER, ColumnType.NUMERIC, ColumnType.CHARACTER])
        self.assertTrue(record_set.schema[2].ghost)
        self.assertEqual(record_set.debug_sample, record_set.rows)

    def test_ods_sheets_in_document_order(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = write_ods(Path(tmpdir) / "book.ods")
            record_sets = analyze_file(path)
        self.assertEqual([rs.sheet_name for rs in record_sets], ["Data", "Repeat"])
        self.assertEqual(len(record_sets[0].rows), 3)
        self.assertEqual(record_sets[1].rows, [])

    def test_mixed_batch_reports_each_file(self):
        channel = EventChannel()
        recorder = EventRecorder(channel)
        with tempfile.TemporaryDirectory() as tmpdir:
            good = write_text(Path(tmpdir) / "good.csv", "id,name\n1,ann\n")
            broken = Path(tmpdir) / "broken.ods"
            broken.write_text("nope", encoding="utf-8")
            unsupported = Path(tmpdir) / "notes.json"
            unsupported.write_text("{}", encoding="utf-8")

            record_sets = analyze_files([good, broken, unsupported], log=ForgeLog(channel=channel), channel=channel)

        self.assertEqual([rs.label for rs in record_sets], ["good/Text"])
        events = recorder.of_type(AnalysisEvent)
        self.assertEqual([(Path(e.path).name, e.record_sets) for e in events], [("good.csv", 1), ("broken.ods", 0), ("notes.json", 0)])
        self.assertIsNone(events[0].error)
        self.assertIn("corrupt", events[1].error)
        self.assertEqual(events[2].error, "unsupported format")
        log_events = recorder.of_type(LogEvent)
        self.assertNotIn("ERROR", [e.level for e in log_events])
        warnings = [e.message for e in log_events if e.level == "WARN"]
        self.assertTrue(any(m.startswith("Could not read broken.ods") for m in warnings))
        self.assertTrue(any(m.startswith("Skipping notes.json") for m in warnings))

    def test_single_file_errors_propagate(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            broken = Path(tmpdir) / "broken.xlsx"
            broken.write_bytes(b"not a workbook")
            with self.assertRaises(UnreadableSourceError):
                analyze_file(broken)

    def test_empty_text_file_has_no_record_sets(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            empty = write_text(Path(tmpdir) / "empty.csv", "\n\n")
            self.assertEqual(analyze_file(empty), [])


class ExportRunTests(unittest.TestCase):
    def build(self, tmpdir: str):
        source = write_text(Path(tmpdir) / "people.csv", "name,qty\nann,3\nbob,x\n")
        first = SourceSelection.from_record_set(analyze_file(source)[0])
        first.output_name = "clean"
        second = SourceSelection.from_record_set(analyze_file(source)[0])
        second.output_name = "dirty"
        second.retype("qty", ColumnType.INTEGER)
        return build_tickets([first, second], output_format=OutputFormat.CSV)

    def test_event_order(self):
        channel = EventChannel()
        recorder = EventRecorder(channel)
        with tempfile.TemporaryDirectory() as tmpdir:
            tickets = self.build(tmpdir)
            outcomes = run_export(tickets, channel=channel)

        self.assertEqual([o.status for o in outcomes], [OutcomeStatus.SUCCEEDED, OutcomeStatus.SUCCEEDED_WITH_WARNINGS])
        flow = [
            (e.ticket_index, e.status) if isinstance(e, StatusEvent) else ("progress", e.completed)
            for e in recorder.events
            if isinstance(e, (StatusEvent, ProgressEvent))
        ]
        self.assertEqual(
            flow,
            [
                (0, TicketStatus.QUEUED),
                (1, TicketStatus.QUEUED),
                (0, TicketStatus.PROCESSING),
                (0, TicketStatus.SUCCEEDED),
                ("progress", 1),
                (1, TicketStatus.PROCESSING),
                (1, TicketStatus.SUCCEEDED_WITH_WARNINGS),
                ("progress", 2),
            ],
        )
        self.assertEqual(recorder.of_type(ProgressEvent)[-1].percent, 100)

    def test_failed_ticket_does_not_stop_the_batch(self):
        channel = EventChannel()
        recorder = EventRecorder(channel)
        real_export = export_ticket

        def flaky(ticket, log=None, settings=None):
            if ticket.base_path.stem == "clean":
                return ExportOutcome(status=OutcomeStatus.FAILED, requested_path=ticket.base_path, error="locked")
            return real_export(ticket, log=log, settings=settings)

        with tempfile.TemporaryDirectory() as tmpdir:
            tickets = self.build(tmpdir)
            with mock.patch("dbf_forge.pipeline.export_ticket", side_effect=flaky):
                outcomes = run_export(tickets, channel=channel)
            self.assertTrue(Path(tmpdir, "dirty.csv").exists())

        self.assertEqual([o.status for o in outcomes], [OutcomeStatus.FAILED, OutcomeStatus.SUCCEEDED_WITH_WARNINGS])
        terminal = [e for e in recorder.of_type(StatusEvent) if e.status not in (TicketStatus.QUEUED, TicketStatus.PROCESSING)]
        self.assertEqual(terminal[0].status, TicketStatus.FAILED)
        self.assertEqual(terminal[0].error, "locked")
        self.assertIsNone(terminal[0].path)
        self.assertTrue(terminal[1].path.endswith("dirty.csv"))


class WorkerTests(unittest.TestCase):
    def test_jobs_run_in_submission_order(self):
        channel = EventChannel()
        recorder = EventRecorder(channel)
        with tempfile.TemporaryDirectory() as tmpdir:
            source = write_text(Path(tmpdir) / "people.csv", "name\nann\n")
            with ForgeWorker(channel=channel) as worker:
                analysis = worker.submit_analysis([source])
                record_sets = analysis.result(timeout=30)
                selection = SourceSelection.from_record_set(record_sets[0])
                export = worker.submit_export(build_tickets([selection], output_format=OutputFormat.DBF))
                outcomes = export.result(timeout=30)
            self.assertTrue(Path(tmpdir, "people_Text.dbf").exists())

        self.assertEqual(outcomes[0].status, OutcomeStatus.SUCCEEDED)
        kinds = [type(e).__name__ for e in recorder.events if not isinstance(e, LogEvent)]
        self.assertEqual(kinds[0], "AnalysisEvent")
        self.assertEqual(kinds[-1], "ProgressEvent")


if __name__ == "__main__":
    unittest.main()
