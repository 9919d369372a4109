"""
Pure value coercion: sanitize(raw, column_type) -> SanitizationResult(value, lossy).

`lossy` is True whenever the normalized value cannot reproduce the input:
truncated integers, unparseable numbers, dates outside the representable
range, time text that had to be cut. Sanitizing an already-normalized value
returns it unchanged.
"""

from __future__ import annotations

import math
import re
from datetime import date, datetime, time, timedelta
from typing import Any

from dbf_forge.models import ColumnType, SanitizationResult
from dbf_forge.parsing import (
    TIME_PATTERN,
    format_day_fraction,
    format_duration,
    parse_invariant_date,
    parse_locale_date,
    parse_plain_float,
    serial_to_datetime,
    value_text,
)
from dbf_forge.settings import TIME_FALLBACK_LENGTH

EPOCH_DATE = date(1900, 1, 1)
MIN_DATE_YEAR = 1900
ZERO_DATE_MARKER = "0000"
NUMERIC_NOISE = re.compile(r"[^\d.,\-+eE]")
TRUTHY = {"TRUE", "T", "Y", "S", "1", "SI", "YES"}


def null_value(column_type: ColumnType) -> SanitizationResult:
    if column_type == ColumnType.NUMERIC:
        return SanitizationResult(0.0, False)
    if column_type == ColumnType.INTEGER:
        return SanitizationResult(0, False)
    if column_type == ColumnType.LOGICAL:
        return SanitizationResult("F", False)
    if column_type == ColumnType.DATE:
        return SanitizationResult(EPOCH_DATE, False)
    return SanitizationResult("", False)


def sanitize(raw: Any, column_type: ColumnType, *, dayfirst: bool = True) -> SanitizationResult:
    column_type = ColumnType(column_type)
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        return null_value(column_type)
    if column_type == ColumnType.TIME:
        return _sanitize_time(raw)
    if column_type == ColumnType.DATE:
        return _sanitize_date(raw, dayfirst)
    if column_type in (ColumnType.NUMERIC, ColumnType.INTEGER):
        return _sanitize_number(raw, column_type)
    if column_type == ColumnType.LOGICAL:
        return _sanitize_logical(raw)
    return SanitizationResult(value_text(raw).strip(), False)


# ══════════════════════════════════════════════════════════════════════════════
# TIME
# ══════════════════════════════════════════════════════════════════════════════

def _sanitize_time(raw: Any) -> SanitizationResult:
    if isinstance(raw, datetime):
        return SanitizationResult(raw.strftime("%H:%M:%S"), False)
    if isinstance(raw, time):
        return SanitizationResult(raw.strftime("%H:%M:%S"), False)
    if isinstance(raw, timedelta):
        return SanitizationResult(format_duration(int(round(raw.total_seconds()))), False)

    text = value_text(raw).strip()
    if not text:
        return SanitizationResult("", False)
    if TIME_PATTERN.match(text):
        return SanitizationResult(text, False)

    days = parse_plain_float(text.replace(",", "."))
    if days is not None:
        try:
            return SanitizationResult(format_day_fraction(days), False)
        except (OverflowError, ValueError):
            pass
    return SanitizationResult(text[:TIME_FALLBACK_LENGTH], True)


# ══════════════════════════════════════════════════════════════════════════════
# DATE
# ══════════════════════════════════════════════════════════════════════════════

def _date_result(parsed: datetime | date) -> SanitizationResult:
    day = parsed.date() if isinstance(parsed, datetime) else parsed
    if day.year < MIN_DATE_YEAR:
        return SanitizationResult(day.strftime("%Y-%m-%d"), True)
    return SanitizationResult(day, False)


def _sanitize_date(raw: Any, dayfirst: bool) -> SanitizationResult:
    if isinstance(raw, (datetime, date)):
        return _date_result(raw)

    text = value_text(raw).strip()
    if not text or ZERO_DATE_MARKER in text:
        return SanitizationResult(EPOCH_DATE, False)

    parsed = parse_invariant_date(text)
    if parsed is None:
        parsed = parse_locale_date(text, dayfirst=dayfirst)
    if parsed is None:
        serial = parse_plain_float(text.replace(",", "."))
        if serial is not None:
            parsed = serial_to_datetime(serial)
    if parsed is None:
        return SanitizationResult(EPOCH_DATE, True)
    return _date_result(parsed)


# ══════════════════════════════════════════════════════════════════════════════
# NUMBERS
# ══════════════════════════════════════════════════════════════════════════════

def resolve_separators(text: str) -> str:
    """
    Decide which of ',' and '.' is the decimal separator.

    When both appear, the later one is the decimal point and the other is
    grouping. When only commas appear, the comma is the decimal point.
    """
    last_comma = text.rfind(",")
    last_dot = text.rfind(".")
    if last_comma >= 0 and last_dot >= 0:
        if last_comma > last_dot:
            return text.replace(".", "").replace(",", ".")
        return text.replace(",", "")
    if last_comma >= 0:
        return text.replace(",", ".")
    return text


def _sanitize_number(raw: Any, column_type: ColumnType) -> SanitizationResult:
    if isinstance(raw, bool):
        raw = int(raw)
    if isinstance(raw, (int, float)) and not (isinstance(raw, float) and not math.isfinite(raw)):
        number = float(raw)
        text = value_text(raw)
    else:
        text = value_text(raw).strip()
        number = parse_plain_float(resolve_separators(NUMERIC_NOISE.sub("", text)))
    if number is None:
        return null_value(column_type)._replace(lossy=True)

    if column_type == ColumnType.INTEGER:
        whole = int(number)
        return SanitizationResult(whole, text != str(whole))
    return SanitizationResult(number, False)


# ══════════════════════════════════════════════════════════════════════════════
# LOGICAL
# ══════════════════════════════════════════════════════════════════════════════

def _sanitize_logical(raw: Any) -> SanitizationResult:
    text = value_text(raw).strip().upper()
    return SanitizationResult("T" if text in TRUTHY else "F", False)
