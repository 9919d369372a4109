import unittest
from pathlib import Path

from dbf_forge.events import ProgressEvent
from dbf_forge.models import ColumnType, DetectedColumn, ExportOutcome, OutcomeStatus, OutputFormat
from dbf_forge.settings import MAX_PATH_SUFFIX, WRITE_ONLY_THRESHOLD, ForgeSettings


class SettingsTests(unittest.TestCase):
    def test_defaults_without_environment(self):
        settings = ForgeSettings.from_env({})
        self.assertEqual(settings.text_encoding, "cp1252")
        self.assertTrue(settings.dayfirst)
        self.assertIsNone(settings.log_dir)
        self.assertEqual(settings.write_only_threshold, WRITE_ONLY_THRESHOLD)
        self.assertEqual(settings.max_path_suffix, MAX_PATH_SUFFIX)

    def test_environment_overrides(self):
        settings = ForgeSettings.from_env(
            {
                "DBF_FORGE_TEXT_ENCODING": "auto",
                "DBF_FORGE_DAYFIRST": "0",
                "DBF_FORGE_LOG_DIR": "/var/log/forge",
                "DBF_FORGE_WRITE_ONLY_THRESHOLD": "100",
                "DBF_FORGE_MAX_PATH_SUFFIX": "5",
            }
        )
        self.assertEqual(settings.text_encoding, "auto")
        self.assertFalse(settings.dayfirst)
        self.assertEqual(settings.resolved_log_dir(), Path("/var/log/forge"))
        self.assertEqual(settings.write_only_threshold, 100)
        self.assertEqual(settings.max_path_suffix, 5)

    def test_bad_integer_is_rejected(self):
        with self.assertRaisesRegex(ValueError, "DBF_FORGE_WRITE_ONLY_THRESHOLD"):
            ForgeSettings.from_env({"DBF_FORGE_WRITE_ONLY_THRESHOLD": "lots"})


class ColumnTypeTests(unittest.TestCase):
    def test_parse_by_name_or_id(self):
        self.assertEqual(ColumnType.parse("numeric"), ColumnType.NUMERIC)
        self.assertEqual(ColumnType.parse(" 5 "), ColumnType.TIME)
        with self.assertRaises(ValueError):
            ColumnType.parse("money")

    def test_output_format_parse(self):
        self.assertEqual(OutputFormat.parse("XLSX"), OutputFormat.XLSX)
        self.assertEqual(OutputFormat.parse(".csv"), OutputFormat.CSV)
        with self.assertRaises(ValueError):
            OutputFormat.parse("pdf")


class DetectedColumnTests(unittest.TestCase):
    def test_retype_sets_fixed_widths_and_clears_decimals(self):
        numeric = DetectedColumn("AMOUNT", ColumnType.NUMERIC, 12, 2)
        self.assertEqual(numeric.retype(ColumnType.INTEGER), DetectedColumn("AMOUNT", ColumnType.INTEGER, 11, 0))
        self.assertEqual(numeric.retype(ColumnType.LOGICAL).length, 1)
        self.assertEqual(numeric.retype(ColumnType.CHARACTER), DetectedColumn("AMOUNT", ColumnType.CHARACTER, 12, 0))
        self.assertEqual(numeric.retype(ColumnType.TIME).length, 12)

    def test_bounds(self):
        self.assertEqual(DetectedColumn("C", ColumnType.CHARACTER, 900).bounded().length, 254)
        self.assertEqual(DetectedColumn("T", ColumnType.TIME, 3).bounded().length, 8)
        wide = DetectedColumn("N", ColumnType.NUMERIC, 40, 30).bounded()
        self.assertEqual((wide.length, wide.decimals), (20, 18))
        tight = DetectedColumn("N", ColumnType.NUMERIC, 4, 3).bounded()
        self.assertEqual((tight.length, tight.decimals), (4, 2))

    def test_describe(self):
        self.assertEqual(DetectedColumn("N", ColumnType.NUMERIC, 10, 2).describe(), "N Numeric(10,2)")
        self.assertEqual(DetectedColumn("D", ColumnType.DATE, 8).describe(), "D Date(8)")


class OutcomeTests(unittest.TestCase):
    def test_summary_and_dict(self):
        outcome = ExportOutcome(status=OutcomeStatus.FAILED, requested_path=Path("/x/a.dbf"), error="locked")
        self.assertFalse(outcome.ok)
        self.assertEqual(outcome.summary, "locked")
        self.assertEqual(outcome.to_dict()["status"], "failed")
        self.assertIsNone(outcome.to_dict()["written_path"])

    def test_progress_percent(self):
        self.assertEqual(ProgressEvent(1, 3).percent, 33)
        self.assertEqual(ProgressEvent(0, 0).percent, 100)


if __name__ == "__main__":
    unittest.main()
