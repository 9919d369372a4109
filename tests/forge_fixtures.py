"""Builders for the small input files the tests read."""

from __future__ import annotations

import zipfile
from pathlib import Path

from dbf_forge.inference import infer_schema
from dbf_forge.models import SourceRecordSet

ODS_HEAD = (
    '<?xml version="1.0" encoding="UTF-8"?>\n'
    '<office:document-content '
    'xmlns:office="urn:oasis:names:tc:opendocument:xmlns:office:1.0" '
    'xmlns:table="urn:oasis:names:tc:opendocument:xmlns:table:1.0" '
    'xmlns:text="urn:oasis:names:tc:opendocument:xmlns:text:1.0" office:version="1.2">'
    "<office:body><office:spreadsheet>"
)
ODS_TAIL = "</office:spreadsheet></office:body></office:document-content>"

ODS_SAMPLE_TABLES = """
<table:table table:name="Data">
  <table:table-row>
    <table:table-cell office:value-type="string"><text:p>Name</text:p></table:table-cell>
    <table:table-cell office:value-type="string"><text:p>Qty</text:p></table:table-cell>
    <table:table-cell office:value-type="string"><text:p>Flag</text:p></table:table-cell>
  </table:table-row>
  <table:table-row>
    <table:table-cell office:value-type="string" table:number-rows-spanned="3"><text:p>Group A</text:p></table:table-cell>
    <table:table-cell office:value-type="float" office:value="5"><text:p>5</text:p></table:table-cell>
    <table:table-cell office:value-type="boolean" office:boolean-value="true"><text:p>TRUE</text:p></table:table-cell>
  </table:table-row>
  <table:table-row>
    <table:covered-table-cell/>
    <table:table-cell office:value-type="float" office:value="6.5"><text:p>6,5</text:p></table:table-cell>
    <table:table-cell office:value-type="time" office:time-value="PT36H05M00S"><text:p>36:05:00</text:p></table:table-cell>
  </table:table-row>
  <table:table-row>
    <table:covered-table-cell/>
    <table:table-cell office:value-type="date" office:date-value="2023-01-05"><text:p>05/01/2023</text:p></table:table-cell>
  </table:table-row>
  <table:table-row table:number-rows-repeated="1048570">
    <table:table-cell table:number-columns-repeated="1024"/>
  </table:table-row>
</table:table>
<table:table table:name="Repeat">
  <table:table-row>
    <table:table-cell office:value-type="string" table:number-columns-repeated="5"><text:p>x</text:p></table:table-cell>
  </table:table-row>
</table:table>
"""


def write_ods(path: Path, tables_xml: str = ODS_SAMPLE_TABLES) -> Path:
    with zipfile.ZipFile(path, "w") as archive:
        archive.writestr("mimetype", "application/vnd.oasis.opendocument.spreadsheet")
        archive.writestr("content.xml", ODS_HEAD + tables_xml + ODS_TAIL)
    return path


def write_text(path: Path, text: str, encoding: str = "cp1252") -> Path:
    path.write_bytes(text.encode(encoding))
    return path


def record_set(headers: list[str], rows: list[list], path: Path = Path("/data/source.xlsx"), sheet: str = "Sheet1") -> SourceRecordSet:
    return SourceRecordSet(
        source_path=path,
        sheet_name=sheet,
        headers=headers,
        rows=rows,
        schema=infer_schema(headers, rows),
        debug_sample=rows[:50],
    )
