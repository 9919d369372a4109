from __future__ import annotations

from pathlib import Path
from typing import Any, Iterator, Optional

from dbf_forge.readers.base import TableReader
from dbf_forge.xbase import iter_records, open_table

LEGACY_SHEET_NAME = "DBFTable"


class LegacyTableReader(TableReader):
    """An xBase table as a single sheet; column names come from the table's field descriptors."""

    embedded_header = False

    def __init__(self, path: Path | str, encoding: Optional[str] = None) -> None:
        super().__init__(path)
        self._table = open_table(self.path, encoding=encoding)
        self._records: Optional[Iterator[list[Any]]] = None
        self._sheet_done = False

    @property
    def field_names(self) -> list[str]:
        return list(self._table.field_names)

    def advance_sheet(self) -> bool:
        if self._sheet_done:
            return False
        self._sheet_done = True
        self._start_sheet(LEGACY_SHEET_NAME)
        self.field_count = len(self._table.fields)
        self._records = iter_records(self._table)
        return True

    def advance_row(self) -> bool:
        if self._records is None:
            return False
        for record in self._records:
            self._set_row(record)
            return True
        self._records = None
        return False

    def record(self) -> list[tuple[str, Any]]:
        return list(zip(self.field_names, self._row))

    def close(self) -> None:
        if self._records is not None:
            self._records.close()
            self._records = None
