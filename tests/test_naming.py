import re
import unittest
from pathlib import Path

from dbf_forge.naming import correct_name, export_identifier, resolve_export_names, suggest_output_name

IDENTIFIER = re.compile(r"^[A-Z][A-Z0-9_]{0,9}$")


class ExportIdentifierTests(unittest.TestCase):
    def test_split_truncation_keeps_suffixes_apart(self):
        self.assertEqual(export_identifier("DEPARTAMENTO_A"), "DEPARTO_A")
        self.assertEqual(export_identifier("DEPARTAMENTO_B"), "DEPARTO_B")
        self.assertEqual(resolve_export_names(["DEPARTAMENTO_A", "DEPARTAMENTO_B"]), ["DEPARTO_A", "DEPARTO_B"])

    def test_cleanup_rules(self):
        self.assertEqual(export_identifier("first name"), "FIRST_NAME")
        self.assertEqual(export_identifier("1total"), "F1TOTAL")
        self.assertEqual(export_identifier("_2023"), "F_2023")
        self.assertEqual(export_identifier("año"), "A_O")

    def test_blank_names_get_a_default(self):
        self.assertEqual(export_identifier(""), "FIELD")
        self.assertEqual(export_identifier(None), "FIELD")

    def test_case_insensitive_collisions_get_numbered(self):
        self.assertEqual(resolve_export_names(["name", "Name", "NAME"]), ["NAME", "NAME_1", "NAME_2"])

    def test_suffix_fits_inside_ten_characters(self):
        self.assertEqual(resolve_export_names(["ABCDEFGHIJ", "abcdefghij"]), ["ABCDEFGHIJ", "ABCDEFGH_1"])

    def test_every_resolved_name_is_legal(self):
        names = resolve_export_names(["", "", "9 lives", "a very long header indeed", "a very long header indeed", "ñ"])
        self.assertEqual(len(set(names)), len(names))
        for name in names:
            self.assertRegex(name, IDENTIFIER)


class HeaderCorrectionTests(unittest.TestCase):
    def test_blank_header(self):
        self.assertEqual(correct_name("  "), "EMPTY_FIELD")
        self.assertEqual(correct_name(None), "EMPTY_FIELD")

    def test_long_headers_are_capped(self):
        self.assertEqual(len(correct_name("a" * 200)), 128)

    def test_header_characters(self):
        self.assertEqual(correct_name("Unit Price ($)"), "UNIT_PRICE____")


class OutputNameTests(unittest.TestCase):
    def test_default_sheets_are_not_appended(self):
        self.assertEqual(suggest_output_name(Path("/x/sales.xlsx"), "Sheet1"), "sales")
        self.assertEqual(suggest_output_name(Path("/x/ventas.xls"), "Hoja1"), "ventas")
        self.assertEqual(suggest_output_name(Path("/x/sales.csv"), None), "sales")

    def test_named_sheets_are_appended(self):
        self.assertEqual(suggest_output_name(Path("/x/sales.xlsx"), "Q1 Data"), "sales_Q1_Data")


if __name__ == "__main__":
    unittest.main()
