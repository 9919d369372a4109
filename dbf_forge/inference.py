"""
Column type inference by stride sampling and majority vote.

For each column, about INFERENCE_SAMPLE_TARGET rows are visited at a fixed
stride. Each non-empty sample votes for the first matching category in the
order Time, Date, Numeric, Logical; a category wins when its votes exceed
half of the non-empty samples. Otherwise the column is Character.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Sequence

from dbf_forge.models import ColumnType, DetectedColumn
from dbf_forge.naming import correct_name
from dbf_forge.parsing import TIME_PATTERN, parse_invariant_date, parse_invariant_number, value_text
from dbf_forge.settings import (
    CHARACTER_PADDING,
    INFERENCE_SAMPLE_TARGET,
    MAJORITY_THRESHOLD,
    MAX_CHARACTER_LENGTH,
    MIN_NUMERIC_LENGTH,
    MIN_TIME_LENGTH,
)

LOGICAL_WORDS = {"TRUE", "FALSE", "T", "F", "YES", "NO", "SI", "Y", "N", "1", "0"}
MIN_DATE_YEAR = 1900


@dataclass
class ColumnVotes:
    valid: int = 0
    time: int = 0
    date: int = 0
    numeric: int = 0
    logical: int = 0
    has_decimal_point: bool = False
    max_length: int = 1
    max_decimals: int = 0

    def majority(self, votes: int) -> bool:
        return votes > self.valid * MAJORITY_THRESHOLD


def sample_step(total_rows: int) -> int:
    return max(1, total_rows // INFERENCE_SAMPLE_TARGET)


def looks_like_date(text: str) -> bool:
    if "/" not in text and "-" not in text:
        return False
    parsed = parse_invariant_date(text)
    return parsed is not None and parsed.year >= MIN_DATE_YEAR


def tally_column(rows: Sequence[Sequence[Any]], index: int) -> ColumnVotes:
    votes = ColumnVotes()
    step = sample_step(len(rows))
    for row_index in range(0, len(rows), step):
        row = rows[row_index]
        if index >= len(row):
            continue
        text = value_text(row[index]).strip()
        if not text:
            continue
        votes.valid += 1
        votes.max_length = max(votes.max_length, len(text))

        if TIME_PATTERN.match(text):
            votes.time += 1
        elif looks_like_date(text):
            votes.date += 1
        elif parse_invariant_number(text) is not None:
            votes.numeric += 1
            separator = max(text.rfind("."), text.rfind(","))
            if separator >= 0:
                votes.has_decimal_point = True
                votes.max_decimals = max(votes.max_decimals, len(text) - separator - 1)
        elif text.upper() in LOGICAL_WORDS:
            votes.logical += 1
    return votes


def infer_column(name: str, rows: Sequence[Sequence[Any]], index: int) -> DetectedColumn:
    votes = tally_column(rows, index)
    if votes.valid == 0:
        return DetectedColumn(name=name, type=ColumnType.CHARACTER, length=1, ghost=True)
    if votes.majority(votes.time):
        return DetectedColumn(name=name, type=ColumnType.TIME, length=max(MIN_TIME_LENGTH, votes.max_length))
    if votes.majority(votes.date):
        return DetectedColumn(name=name, type=ColumnType.DATE, length=8)
    if votes.majority(votes.numeric):
        length = max(MIN_NUMERIC_LENGTH, votes.max_length)
        if votes.has_decimal_point:
            return DetectedColumn(name=name, type=ColumnType.NUMERIC, length=length, decimals=votes.max_decimals)
        return DetectedColumn(name=name, type=ColumnType.INTEGER, length=length)
    if votes.majority(votes.logical):
        return DetectedColumn(name=name, type=ColumnType.LOGICAL, length=1)
    return DetectedColumn(
        name=name,
        type=ColumnType.CHARACTER,
        length=min(MAX_CHARACTER_LENGTH, votes.max_length + CHARACTER_PADDING),
    )


def infer_schema(headers: Sequence[str], rows: Sequence[Sequence[Any]]) -> list[DetectedColumn]:
    return [infer_column(correct_name(header), rows, index) for index, header in enumerate(headers)]
