from __future__ import annotations

import calendar
import re
from datetime import date, datetime
from typing import Union

from dateutil import parser as date_parser
from dateutil.relativedelta import relativedelta


# Literal calendar components only; a trailing time part is tolerated and ignored.
_ISO_DATE_RE = re.compile(r"^\s*(\d{4})-(\d{1,2})-(\d{1,2})(?:[T ].*)?$")

DateLike = Union[str, date]


def parse_us_date(value: str) -> date:
    """
    Parse dates like:
    - "12/26/2025"
    - "1/5/2026"
    """
    if value is None:
        raise ValueError("parse_us_date: value is None")
    s = value.strip()
    if not s:
        raise ValueError("parse_us_date: empty string")
    dt = date_parser.parse(s, dayfirst=False, yearfirst=False)
    return dt.date()


def _iso_components(value: str) -> tuple[int, int, int] | None:
    m = _ISO_DATE_RE.match(value)
    if not m:
        return None
    return int(m.group(1)), int(m.group(2)), int(m.group(3))


def parse_calendar_date(value: DateLike) -> date:
    """
    Turn user input into a calendar date without ever going through a timestamp.

    ISO strings are split into (year, month, day) directly, so "2025-01-15" is the 15th
    no matter what timezone the process runs in. US-style strings go through dateutil.
    """
    if value is None:
        raise ValueError("parse_calendar_date: value is None")
    if isinstance(value, datetime):
        raise ValueError("parse_calendar_date: expected a calendar date, got a datetime")
    if isinstance(value, date):
        return value

    s = str(value).strip()
    if not s:
        raise ValueError("parse_calendar_date: empty string")

    parts = _iso_components(s)
    if parts is not None:
        year, month, day = parts
        return date(year, month, day)

    if "/" in s:
        return parse_us_date(s)

    raise ValueError(f"parse_calendar_date: unrecognized date {s!r}")


def day_of_month(value: DateLike) -> int:
    if isinstance(value, str):
        parts = _iso_components(value.strip())
        if parts is not None:
            # Validate the whole date, but report the literal day component.
            date(*parts)
            return parts[2]
    return parse_calendar_date(value).day


def clamp_day(year: int, month: int, day: int) -> date:
    last = calendar.monthrange(year, month)[1]
    return date(year, month, min(day, last))


def add_months(d: date, months: int, *, day: int | None = None) -> date:
    """Shift by calendar months, keeping `day` (or d.day) clamped to the target month."""
    shifted = d.replace(day=1) + relativedelta(months=months)
    return clamp_day(shifted.year, shifted.month, day if day is not None else d.day)
