from __future__ import annotations

from pathlib import Path

import pandas as pd

from dbf_forge.parsing import value_text
from dbf_forge.readers import open_reader
from dbf_forge.settings import PREVIEW_ROWS


def preview_output(path: Path | str, limit: int = PREVIEW_ROWS) -> pd.DataFrame:
    """First `limit` data rows of a produced file (first sheet only), headers as columns."""
    path = Path(path)
    encoding = "utf-8-sig" if path.suffix.lower() == ".csv" else None
    with open_reader(path, encoding=encoding) as reader:
        if not reader.advance_sheet():
            return pd.DataFrame()
        if reader.embedded_header:
            if not reader.advance_row():
                return pd.DataFrame()
            headers = [value_text(value) for value in reader.current_row()]
        else:
            headers = list(reader.field_names or [])
        rows = []
        while len(rows) < limit and reader.advance_row():
            rows.append(reader.current_row())

    width = max([len(headers)] + [len(row) for row in rows])
    headers = headers + [f"C{i}" for i in range(len(headers), width)]
    rows = [row + [""] * (width - len(row)) for row in rows]
    return pd.DataFrame(rows, columns=headers)
