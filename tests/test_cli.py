from __future__ import annotations

import json
import os
import subprocess
import sys
import tempfile
import unittest
from pathlib import Path

from dbf_forge import __version__
from dbf_forge.xbase import read_table

ROOT = Path(__file__).resolve().parents[1]
CLI = [sys.executable, "-m", "dbf_forge.cli"]


def run_cli(*args: str, env: dict[str, str] | None = None) -> subprocess.CompletedProcess[str]:
    merged_env = {key: value for key, value in os.environ.items() if not key.startswith("DBF_FORGE_")}
    if env:
        merged_env.update(env)
    return subprocess.run(
        [*CLI, *args],
        cwd=ROOT,
        capture_output=True,
        text=True,
        env=merged_env,
    )


def write_csv(directory: str, name: str, text: str) -> Path:
    path = Path(directory) / name
    path.write_text(text, encoding="cp1252")
    return path


class DbfForgeCliTests(unittest.TestCase):
    def test_version(self):
        proc = run_cli("version")
        self.assertEqual(proc.returncode, 0, proc.stderr)
        self.assertEqual(proc.stdout.strip(), __version__)

    def test_inspect_json_lists_inferred_columns(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            source = write_csv(tmpdir, "people.csv", "name,qty,joined\nann,3,2023-01-05\nbob,4,2023-02-10\n")
            proc = run_cli("inspect", str(source), "--json")
        self.assertEqual(proc.returncode, 0, proc.stderr)
        payload = json.loads(proc.stdout)
        self.assertEqual(len(payload), 1)
        self.assertEqual(payload[0]["sheet"], "Text")
        self.assertEqual(payload[0]["rows"], 2)
        self.assertEqual([c["type"] for c in payload[0]["columns"]], ["Character", "Integer", "Date"])

    def test_inspect_text_output(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            source = write_csv(tmpdir, "people.csv", "name,blank\nann,\n")
            proc = run_cli("inspect", str(source))
        self.assertEqual(proc.returncode, 0, proc.stderr)
        self.assertIn("people.csv [Text] 1 rows", proc.stdout)
        self.assertIn("BLANK Character(1)  (empty)", proc.stdout)

    def test_clean_convert_returns_exit_0(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            source = write_csv(tmpdir, "people.csv", "name,qty\nann,3\nbob,4\n")
            out_dir = Path(tmpdir) / "out"
            proc = run_cli("convert", str(source), "--out", str(out_dir), "--name", "people")
            self.assertEqual(proc.returncode, 0, proc.stderr)
            target = out_dir / "people.dbf"
            self.assertTrue(target.exists())
            names, rows = read_table(target)
        self.assertIn(f"OK    {target}", proc.stdout)
        self.assertIn("succeeded", proc.stderr)
        self.assertEqual(names, ["NAME", "QTY"])
        self.assertEqual(rows, [["ann", 3], ["bob", 4]])

    def test_lossy_convert_returns_exit_3(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            source = write_csv(tmpdir, "people.csv", "name,qty\nann,3\nbob,x\n")
            proc = run_cli("convert", str(source), "--format", "csv", "--type", "qty=integer", "--json")
            self.assertEqual(proc.returncode, 3, proc.stderr)
            outcomes = json.loads(proc.stdout)
            written = Path(outcomes[0]["written_path"])
            self.assertEqual(written.name, "people_Text.csv")
            self.assertEqual(written.read_bytes()[3:].decode("utf-8"), "NAME,QTY\r\nann,3\r\nbob,0\r\n")
        self.assertEqual(outcomes[0]["status"], "succeeded-with-warnings")
        self.assertEqual(outcomes[0]["lossy_cells"], 1)

    def test_merge_into_one_output(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            first = write_csv(tmpdir, "a.csv", "name,qty\nann,3\n")
            second = write_csv(tmpdir, "b.csv", "who,count\nbob,4\n")
            proc = run_cli("convert", str(first), str(second), "--merge", "--merge-name", "everyone", "-q")
            self.assertEqual(proc.returncode, 0, proc.stderr)
            names, rows = read_table(Path(tmpdir) / "everyone.dbf")
        self.assertEqual(names, ["NAME", "QTY"])
        self.assertEqual(rows, [["ann", 3], ["bob", 4]])

    def test_excluded_and_empty_columns(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            source = write_csv(tmpdir, "people.csv", "name,secret,blank\nann,xyz,\n")
            proc = run_cli("convert", str(source), "--exclude", "secret", "--include-empty", "--name", "out", "-q")
            self.assertEqual(proc.returncode, 0, proc.stderr)
            names, _ = read_table(Path(tmpdir) / "out.dbf")
        self.assertEqual(names, ["NAME", "BLANK"])

    def test_session_log_written_when_requested(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            source = write_csv(tmpdir, "people.csv", "name\nann\n")
            log_dir = Path(tmpdir) / "logs"
            proc = run_cli("convert", str(source), "-q", env={"DBF_FORGE_LOG_DIR": str(log_dir)})
            self.assertEqual(proc.returncode, 0, proc.stderr)
            logs = list(log_dir.glob("Forge_Session_*.log"))
            self.assertEqual(len(logs), 1)
            text = logs[0].read_text(encoding="utf-8")
        self.assertTrue(text.startswith("=== DBF FORGE SESSION LOG ==="))
        self.assertIn("[TRACE]", text)
        self.assertIn("[USER ] Analyzing people.csv", text)

    def test_missing_input_returns_exit_1(self):
        proc = run_cli("convert", "does/not/exist.csv")
        self.assertEqual(proc.returncode, 1)
        self.assertIn("Input file not found", proc.stderr)

    def test_unreadable_inputs_return_exit_2(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            broken = Path(tmpdir) / "broken.xlsx"
            broken.write_bytes(b"not a workbook")
            proc = run_cli("inspect", str(broken))
        self.assertEqual(proc.returncode, 2)
        self.assertIn("No readable tables", proc.stderr)

    def test_name_with_merge_is_rejected(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            source = write_csv(tmpdir, "people.csv", "name\nann\n")
            proc = run_cli("convert", str(source), "--merge", "--name", "x")
        self.assertEqual(proc.returncode, 1)
        self.assertIn("--name needs a single input table", proc.stderr)

    def test_bad_type_override(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            source = write_csv(tmpdir, "people.csv", "name\nann\n")
            proc = run_cli("convert", str(source), "--type", "name=money")
        self.assertEqual(proc.returncode, 1)
        self.assertIn("Unknown column type", proc.stderr)

    def test_preview_json(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            source = write_csv(tmpdir, "people.csv", "name,qty\nann,3\nbob,4\ncid,5\n")
            proc = run_cli("convert", str(source), "--format", "csv", "--name", "done", "-q")
            self.assertEqual(proc.returncode, 0, proc.stderr)
            preview = run_cli("preview", str(Path(tmpdir) / "done.csv"), "--rows", "2", "--json")
        self.assertEqual(preview.returncode, 0, preview.stderr)
        self.assertEqual(json.loads(preview.stdout), [{"NAME": "ann", "QTY": "3"}, {"NAME": "bob", "QTY": "4"}])

    def test_unknown_command_returns_exit_1(self):
        proc = run_cli("explode")
        self.assertEqual(proc.returncode, 1)


if __name__ == "__main__":
    unittest.main()
