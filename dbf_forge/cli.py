from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Optional

from dbf_forge import __version__ as TOOL_VERSION
from dbf_forge.events import EventChannel, StatusEvent
from dbf_forge.forge_log import SYS, ForgeLog
from dbf_forge.models import ColumnType, OutcomeStatus, OutputFormat
from dbf_forge.pipeline import ForgeWorker
from dbf_forge.preview import preview_output
from dbf_forge.settings import PREVIEW_ROWS, ForgeSettings
from dbf_forge.tickets import SourceSelection, build_tickets
from dbf_forge.validation import CheckLevel, validate_selection

EXIT_SUCCESS = 0
EXIT_COMMAND_ERROR = 1
EXIT_PARSE_FAILED = 2
EXIT_EXPORT_WARNINGS = 3
EXIT_EXPORT_FAILED = 4


class CliError(Exception):
    def __init__(self, message: str, code: int = EXIT_COMMAND_ERROR) -> None:
        super().__init__(message)
        self.code = code


class ForgeArgumentParser(argparse.ArgumentParser):
    def error(self, message: str) -> None:
        raise CliError(message, EXIT_COMMAND_ERROR)


def eprint(message: str) -> None:
    print(message, file=sys.stderr)


def emit_human(message: str, *, quiet: bool = False) -> None:
    if not quiet:
        eprint(message)


def json_dumps(payload: Any) -> str:
    return json.dumps(payload, indent=2, ensure_ascii=False, sort_keys=True)


def build_log(args: argparse.Namespace, settings: ForgeSettings, channel: Optional[EventChannel] = None) -> ForgeLog:
    log_dir = Path(args.log_dir) if getattr(args, "log_dir", None) else settings.log_dir
    if getattr(args, "quiet", False):
        console_level = None
    elif getattr(args, "verbose", False):
        console_level = SYS
    else:
        console_level = logging.WARNING
    return ForgeLog(log_dir=log_dir, channel=channel, console_level=console_level)


def parse_type_overrides(items: list[str]) -> dict[str, ColumnType]:
    overrides: dict[str, ColumnType] = {}
    for item in items:
        if "=" not in item:
            raise CliError(f"--type expects NAME=TYPE, got {item!r}")
        name, type_name = item.split("=", 1)
        try:
            overrides[name.strip().upper()] = ColumnType.parse(type_name)
        except ValueError as exc:
            raise CliError(str(exc)) from exc
    return overrides


# ══════════════════════════════════════════════════════════════════════════════
# COMMANDS
# ══════════════════════════════════════════════════════════════════════════════

def print_status(event) -> None:
    if isinstance(event, StatusEvent):
        eprint(f"[{event.ticket_index + 1}] {event.label}: {event.status.value}")


def analyze_inputs(args: argparse.Namespace, settings: ForgeSettings, log: ForgeLog):
    missing = [path for path in args.inputs if not Path(path).exists()]
    if missing:
        raise CliError(f"Input file not found: {missing[0]}")
    with ForgeWorker(log=log, settings=settings) as worker:
        record_sets = worker.submit_analysis(args.inputs).result()
    if not record_sets:
        raise CliError("No readable tables found in the given inputs.", EXIT_PARSE_FAILED)
    return record_sets


def run_inspect(args: argparse.Namespace) -> int:
    settings = ForgeSettings.from_env()
    log = build_log(args, settings)
    try:
        record_sets = analyze_inputs(args, settings, log)
    finally:
        log.close()
    if args.json:
        print(json_dumps([record_set.to_dict() for record_set in record_sets]))
        return EXIT_SUCCESS
    for record_set in record_sets:
        print(f"{record_set.source_name} [{record_set.sheet_name}] {len(record_set.rows)} rows")
        for index, column in enumerate(record_set.schema):
            marker = "  (empty)" if column.ghost else ""
            print(f"  {index:>3}  {column.describe()}{marker}")
    return EXIT_SUCCESS


def run_convert(args: argparse.Namespace) -> int:
    settings = ForgeSettings.from_env()
    channel = EventChannel()
    log = build_log(args, settings, channel)
    quiet = args.quiet or args.json
    if not quiet:
        channel.subscribe(print_status)
    try:
        output_format = OutputFormat.parse(args.format)
        record_sets = analyze_inputs(args, settings, log)
        selections = [
            SourceSelection.from_record_set(record_set, output_format=output_format, output_dir=args.out_dir)
            for record_set in record_sets
        ]
        if args.name:
            if args.merge or len(selections) > 1:
                raise CliError("--name needs a single input table; use --merge-name with --merge")
            selections[0].output_name = args.name

        overrides = parse_type_overrides(args.type or [])
        excluded = {name.strip().upper() for name in args.exclude or []}
        for selection in selections:
            for field_selection in selection.fields:
                key = field_selection.column.name.upper()
                if key in overrides:
                    field_selection.column = field_selection.column.retype(overrides[key])
                if key in excluded:
                    field_selection.enabled = False
                elif args.include_empty and field_selection.column.ghost:
                    field_selection.enabled = True
            for problem in validate_selection(selection).problems:
                level = "error" if problem.level == CheckLevel.ERROR else "warning"
                emit_human(f"{selection.label}: {level}: {problem.name}: {problem.message}", quiet=quiet)

        tickets = build_tickets(
            selections,
            merge=args.merge,
            merge_name=args.merge_name,
            output_format=output_format,
            dayfirst=settings.dayfirst,
        )
        with ForgeWorker(log=log, channel=channel, settings=settings) as worker:
            outcomes = worker.submit_export(tickets).result()
    except ValueError as exc:
        raise CliError(str(exc)) from exc
    finally:
        log.close()

    if args.json:
        print(json_dumps([outcome.to_dict() for outcome in outcomes]))
    else:
        for outcome in outcomes:
            target = outcome.written_path or outcome.requested_path
            print(f"{outcome.summary:<5} {target}")

    statuses = {outcome.status for outcome in outcomes}
    if OutcomeStatus.FAILED in statuses:
        return EXIT_EXPORT_FAILED
    if OutcomeStatus.SUCCEEDED_WITH_WARNINGS in statuses:
        return EXIT_EXPORT_WARNINGS
    return EXIT_SUCCESS


def run_preview(args: argparse.Namespace) -> int:
    path = Path(args.input)
    if not path.exists():
        raise CliError(f"Input file not found: {path}")
    try:
        frame = preview_output(path, limit=args.rows)
    except (ValueError, OSError) as exc:
        raise CliError(f"Could not preview {path.name}: {exc}", EXIT_PARSE_FAILED) from exc
    if args.json:
        print(frame.to_json(orient="records", date_format="iso", force_ascii=False))
    else:
        print(frame.to_string(index=False))
    return EXIT_SUCCESS


def run_version() -> int:
    print(TOOL_VERSION)
    return EXIT_SUCCESS


def build_parser() -> argparse.ArgumentParser:
    parser = ForgeArgumentParser(prog="dbf-forge", description="Convert spreadsheets and delimited text into typed DBF, XLSX or CSV tables.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    inspect = subparsers.add_parser("inspect", help="Analyze inputs and print the inferred schema.")
    inspect.add_argument("inputs", nargs="+", help="Input files (.xlsx .xls .ods .csv .txt .dbf)")
    inspect.add_argument("--json", action="store_true", help="Write machine JSON to stdout")
    inspect.add_argument("--log-dir", dest="log_dir", help="Directory for the session log")
    inspect.add_argument("-q", "--quiet", action="store_true", help="No log output on stderr")
    inspect.add_argument("-v", "--verbose", action="store_true", help="More log output on stderr")

    convert = subparsers.add_parser("convert", help="Convert inputs into typed output tables.")
    convert.add_argument("inputs", nargs="+", help="Input files (.xlsx .xls .ods .csv .txt .dbf)")
    convert.add_argument("--format", choices=["dbf", "xlsx", "csv"], default="dbf", help="Output format")
    convert.add_argument("-o", "--out", dest="out_dir", help="Output directory (default: next to each input)")
    convert.add_argument("--name", help="Output file name for a single input table")
    convert.add_argument("--merge", action="store_true", help="Merge every table into one output")
    convert.add_argument("--merge-name", dest="merge_name", help="Output name for --merge")
    convert.add_argument("--type", action="append", metavar="NAME=TYPE", help="Override a column type (character, numeric, integer, date, logical, time)")
    convert.add_argument("--exclude", action="append", metavar="NAME", help="Leave a column out")
    convert.add_argument("--include-empty", dest="include_empty", action="store_true", help="Keep columns that have no values")
    convert.add_argument("--json", action="store_true", help="Write machine JSON to stdout")
    convert.add_argument("--log-dir", dest="log_dir", help="Directory for the session log")
    convert.add_argument("-q", "--quiet", action="store_true", help="No log output on stderr")
    convert.add_argument("-v", "--verbose", action="store_true", help="More log output on stderr")

    preview = subparsers.add_parser("preview", help="Show the first rows of a produced file.")
    preview.add_argument("input", help="File to preview")
    preview.add_argument("--rows", type=int, default=PREVIEW_ROWS, help="Number of rows")
    preview.add_argument("--json", action="store_true", help="Write machine JSON to stdout")

    subparsers.add_parser("version", help="Print version")
    return parser


def main(argv: list[str] | None = None) -> int:
    try:
        parser = build_parser()
        args = parser.parse_args(argv)
        if args.command == "inspect":
            return run_inspect(args)
        if args.command == "convert":
            return run_convert(args)
        if args.command == "preview":
            return run_preview(args)
        if args.command == "version":
            return run_version()
        raise CliError(f"Unknown command: {args.command}", EXIT_COMMAND_ERROR)
    except CliError as exc:
        eprint(str(exc))
        return exc.code


if __name__ == "__main__":
    raise SystemExit(main())
