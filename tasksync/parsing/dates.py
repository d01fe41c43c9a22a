from __future__ import annotations

import re
import warnings
from collections.abc import Callable
from datetime import UTC, date, datetime, time
from typing import Any
from zoneinfo import ZoneInfo

import pandas as pd

from .cells import is_blank

"""Date coercion for heterogeneous workbook cells.

Cells may hold native datetimes (Excel dates), ISO strings, or locale
strings typed by hand. coerce_date() turns any of them into a naive
wall-clock datetime in the workbook timezone, or None when the value is not
a usable calendar date. It never raises.

ISO-like strings (yyyy-MM-dd) are parsed strictly so that "2026-01-20" is
never reinterpreted by the generic parser.
"""

__all__ = [
    "ISO_DATE_FMT",
    "Clock",
    "utc_now",
    "is_date_value",
    "to_wall_clock",
    "coerce_date",
    "format_iso_date",
    "local_now",
]

ISO_DATE_FMT = "%Y-%m-%d"
ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(UTC)


def is_date_value(value: Any) -> bool:
    """True for date-typed cells (date, datetime, pandas Timestamp)."""
    if value is None or value is pd.NaT:
        return False
    return isinstance(value, (date, datetime))


def to_wall_clock(value: datetime, tz: str | None = None) -> datetime:
    """Return a naive datetime; aware values are converted to ``tz`` first.

    Excel cells cannot hold timezone-aware values, so everything written to
    the workbook goes through here.
    """
    if isinstance(value, pd.Timestamp):
        value = value.to_pydatetime()
    if value.tzinfo is not None:
        if tz:
            value = value.astimezone(ZoneInfo(tz))
        value = value.replace(tzinfo=None)
    return value


def _parse_iso_date(text: str) -> datetime | None:
    try:
        return datetime.strptime(text, ISO_DATE_FMT)
    except ValueError:
        # 2026-13-45 / 0000-00-00 など
        return None


def coerce_date(raw: Any, tz: str | None = None) -> datetime | None:
    """Coerce a cell value into a comparable datetime, or None.

    - datetime / Timestamp: passed through (aware values moved into ``tz``)
    - date: midnight of that day
    - "yyyy-MM-dd": strict calendar parse
    - other strings: pandas generic parser, NaT -> None
    - blanks, booleans and other types: None
    """
    if isinstance(raw, bool) or is_blank(raw):
        return None
    if isinstance(raw, datetime):
        return to_wall_clock(raw, tz)
    if isinstance(raw, date):
        return datetime.combine(raw, time())
    if not isinstance(raw, str):
        return None

    text = raw.strip()
    if ISO_DATE_RE.match(text):
        return _parse_iso_date(text)
    try:
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", UserWarning)
            parsed = pd.to_datetime(text, errors="coerce")
    except (ValueError, TypeError, OverflowError):
        return None
    if parsed is pd.NaT or pd.isna(parsed):
        return None
    return to_wall_clock(parsed, tz)


def format_iso_date(value: date | datetime, tz: str | None = None) -> str:
    """Canonical yyyy-MM-dd text used for archived dates and identity keys."""
    if isinstance(value, datetime):
        return to_wall_clock(value, tz).strftime(ISO_DATE_FMT)
    return value.strftime(ISO_DATE_FMT)


def local_now(tz: str, clock: Clock | None = None) -> datetime:
    """Current wall-clock time in the workbook timezone (naive)."""
    now = (clock or utc_now)()
    if now.tzinfo is None:
        return now
    return to_wall_clock(now, tz)
