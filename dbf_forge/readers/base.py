from __future__ import annotations

from pathlib import Path
from typing import Any, Optional


class TableReader:
    """
    Forward-only cursor over the sheets and rows of one source file.

        with open_reader(path) as reader:
            while reader.advance_sheet():
                while reader.advance_row():
                    values = [reader.value_at(i) for i in range(reader.field_count)]

    `field_count` is the widest row seen so far in the current sheet and is
    reset by `advance_sheet()`. `value_at()` past the end of the current row
    returns "".

    Readers whose format carries its own column names (legacy tables) set
    `embedded_header = False` and expose them as `field_names`; every other
    reader delivers the header as the first row of each sheet.
    """

    embedded_header = True

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        self.sheet_name = ""
        self.field_count = 0
        self._row: list[Any] = []

    @property
    def field_names(self) -> Optional[list[str]]:
        return None

    def advance_sheet(self) -> bool:
        raise NotImplementedError

    def advance_row(self) -> bool:
        raise NotImplementedError

    def value_at(self, index: int) -> Any:
        if 0 <= index < len(self._row):
            return self._row[index]
        return ""

    def current_row(self) -> list[Any]:
        return [self.value_at(index) for index in range(self.field_count)]

    def _set_row(self, values: list[Any]) -> None:
        self._row = values
        self.field_count = max(self.field_count, len(values))

    def _start_sheet(self, name: str) -> None:
        self.sheet_name = name
        self.field_count = 0
        self._row = []

    def close(self) -> None:
        pass

    def __enter__(self) -> "TableReader":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


def is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())
