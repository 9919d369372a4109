"""
Culture-aware scalar parsing shared by inference, the sanitizer, and readers.

"Invariant" parsing accepts ISO and month-first forms with '.' as the decimal
point; the locale pass accepts day-first forms. Serial dates count days from
1899-12-30, the spreadsheet epoch.
"""

from __future__ import annotations

import math
import re
from datetime import date, datetime, time, timedelta
from typing import Any, Optional

import pandas as pd

TIME_PATTERN = re.compile(r"^[+-]?\d+:\d{2}(:\d{2})?$")
DURATION_PARTS = re.compile(r"^([+-]?)(\d+):(\d{2})(?::(\d{2}))?$")
INVARIANT_NUMBER = re.compile(r"^[+-]?(\d[\d,]*)?(\.\d*)?([eE][+-]?\d+)?$")
HAS_LETTER = re.compile(r"[A-Za-z]")

SERIAL_EPOCH = "1899-12-30"
MIN_SERIAL = -657435.0
MAX_SERIAL = 2958465.99999999
SECONDS_PER_DAY = 86400

INVARIANT_DATE_FORMATS = [
    "%Y/%m/%d",
    "%Y/%m/%d %H:%M:%S",
    "%Y/%m/%d %H:%M",
    "%m/%d/%Y",
    "%m/%d/%Y %H:%M:%S",
    "%m/%d/%Y %H:%M",
    "%m/%d/%Y %I:%M:%S %p",
    "%m-%d-%Y",
    "%m/%d/%y",
]

DAYFIRST_DATE_FORMATS = [
    "%d/%m/%Y",
    "%d/%m/%Y %H:%M:%S",
    "%d/%m/%Y %H:%M",
    "%d-%m-%Y",
    "%d-%m-%Y %H:%M:%S",
    "%d.%m.%Y",
    "%d/%m/%y",
    "%d-%m-%y",
]


# ══════════════════════════════════════════════════════════════════════════════
# TEXT RENDERING
# ══════════════════════════════════════════════════════════════════════════════

def format_duration(total_seconds: int) -> str:
    sign = "-" if total_seconds < 0 else ""
    remaining = abs(int(total_seconds))
    hours, remaining = divmod(remaining, 3600)
    minutes, seconds = divmod(remaining, 60)
    return f"{sign}{hours}:{minutes:02d}:{seconds:02d}"


def format_day_fraction(days: float) -> str:
    """Render a signed day count as H:MM:SS, hours unbounded."""
    if not math.isfinite(days):
        raise ValueError(f"Not a finite day fraction: {days!r}")
    seconds = int(round(abs(days) * SECONDS_PER_DAY))
    return format_duration(-seconds if days < 0 else seconds)


def duration_to_day_fraction(text: str) -> Optional[float]:
    match = DURATION_PARTS.match(text.strip())
    if not match:
        return None
    sign, hours, minutes, seconds = match.groups()
    total = int(hours) * 3600 + int(minutes) * 60 + int(seconds or 0)
    fraction = total / SECONDS_PER_DAY
    return -fraction if sign == "-" else fraction


def value_text(value: Any) -> str:
    """Stable text form of any reader value; integral floats drop the trailing .0."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "True" if value else "False"
    if isinstance(value, float):
        if math.isfinite(value) and value.is_integer() and abs(value) < 1e16:
            return str(int(value))
        return repr(value)
    if isinstance(value, datetime):
        if value.time() == time(0, 0):
            return value.strftime("%Y-%m-%d")
        return value.strftime("%Y-%m-%d %H:%M:%S")
    if isinstance(value, date):
        return value.strftime("%Y-%m-%d")
    if isinstance(value, time):
        return value.strftime("%H:%M:%S")
    if isinstance(value, timedelta):
        return format_duration(int(round(value.total_seconds())))
    return str(value)


# ══════════════════════════════════════════════════════════════════════════════
# NUMBERS
# ══════════════════════════════════════════════════════════════════════════════

def parse_invariant_number(text: str) -> Optional[float]:
    """
    Parse with '.' as decimal point and ',' as group separator.

    Group separators are tolerated anywhere in the integer part, and a value
    wrapped in parentheses is negative. Returns None for anything else,
    including inf/nan spellings.
    """
    candidate = text.strip()
    negative = False
    if candidate.startswith("(") and candidate.endswith(")"):
        negative = True
        candidate = candidate[1:-1].strip()
    if not candidate or not any(ch.isdigit() for ch in candidate):
        return None
    if not INVARIANT_NUMBER.match(candidate):
        return None
    try:
        number = float(candidate.replace(",", ""))
    except ValueError:
        return None
    if not math.isfinite(number):
        return None
    return -number if negative else number


def parse_plain_float(text: str) -> Optional[float]:
    """float() restricted to finite values written with digits."""
    candidate = text.strip()
    if not candidate or not any(ch.isdigit() for ch in candidate) or "_" in candidate:
        return None
    try:
        number = float(candidate)
    except ValueError:
        return None
    if not math.isfinite(number):
        return None
    return number


# ══════════════════════════════════════════════════════════════════════════════
# DATES
# ══════════════════════════════════════════════════════════════════════════════

def _strptime_any(text: str, formats: list[str]) -> Optional[datetime]:
    for fmt in formats:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    return None


def _pandas_parse(text: str, dayfirst: bool) -> Optional[datetime]:
    try:
        parsed = pd.to_datetime(text, errors="coerce", dayfirst=dayfirst)
    except (ValueError, OverflowError, TypeError):
        return None
    if parsed is None or pd.isna(parsed):
        return None
    return parsed.to_pydatetime().replace(tzinfo=None)


def parse_invariant_date(text: str) -> Optional[datetime]:
    candidate = text.strip()
    if not candidate:
        return None
    if candidate[:4].isdigit() and "-" in candidate:
        try:
            return datetime.fromisoformat(candidate.rstrip("Zz")).replace(tzinfo=None)
        except ValueError:
            pass
    parsed = _strptime_any(candidate, INVARIANT_DATE_FORMATS)
    if parsed is not None:
        return parsed
    if HAS_LETTER.search(candidate):
        return _pandas_parse(candidate, dayfirst=False)
    return None


def parse_locale_date(text: str, dayfirst: bool = True) -> Optional[datetime]:
    candidate = text.strip()
    if not candidate:
        return None
    formats = DAYFIRST_DATE_FORMATS if dayfirst else INVARIANT_DATE_FORMATS
    parsed = _strptime_any(candidate, formats)
    if parsed is not None:
        return parsed
    if HAS_LETTER.search(candidate):
        return _pandas_parse(candidate, dayfirst=dayfirst)
    return None


def serial_to_datetime(serial: float) -> Optional[datetime]:
    if not math.isfinite(serial) or not MIN_SERIAL <= serial <= MAX_SERIAL:
        return None
    try:
        parsed = pd.to_datetime(serial, unit="D", origin=SERIAL_EPOCH, errors="coerce")
    except (ValueError, OverflowError):
        return None
    if pd.isna(parsed):
        return None
    return parsed.to_pydatetime()
