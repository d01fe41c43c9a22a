from __future__ import annotations

import re
from typing import Any

from .cells import is_blank

"""Duration parsing for ECT / TimeSpent cells.

Cells hold either a plain number of minutes or short-hand text such as
"30m", "1.5 hours" or "2 days". A day counts as an 8-hour workday.

A leading minus sign in text is ignored ("-45m" -> 45). Numeric cells are
returned unchanged, so a negative number stays negative and can be reported
by archive validation.
"""

__all__ = [
    "MINUTES_PER_HOUR",
    "MINUTES_PER_DAY",
    "parse_time_value",
    "format_time_value",
]

MINUTES_PER_HOUR = 60
MINUTES_PER_DAY = 480  # 8h workday

_WHITESPACE_RE = re.compile(r"\s+")
_NUMBER_RE = re.compile(r"\d*\.?\d+")
_SHORTHAND_RE = re.compile(r"^(\d*\.?\d+)\s*([a-z]*)$", re.IGNORECASE)

_HOUR_UNITS = frozenset({"h", "hr", "hrs", "hour", "hours"})

# 入力補助: 省略表記 -> 正規表記
_SHORTHAND_UNITS = {
    "h": "hours",
    "hr": "hours",
    "hrs": "hours",
    "hours": "hours",
    "m": "mins",
    "min": "mins",
    "mins": "mins",
}


def _unit_factor(unit: str) -> int:
    if unit.startswith("day"):
        return MINUTES_PER_DAY
    if unit in _HOUR_UNITS or unit.startswith("hour"):
        return MINUTES_PER_HOUR
    return 1


def parse_time_value(raw: Any) -> float:
    """Convert a duration cell into minutes.

    Parameters
    ----------
    raw: cell value (number of minutes or text like "2.5 hours")

    Returns
    -------
    float | int: minutes; 0 when no number can be found

    Examples
    --------
    >>> parse_time_value("2.5 hours")
    150
    >>> parse_time_value("1 day")
    480
    >>> parse_time_value("abc")
    0
    """
    if isinstance(raw, bool) or is_blank(raw):
        return 0
    if isinstance(raw, (int, float)):
        return raw
    text = _WHITESPACE_RE.sub("", str(raw).lower())
    match = _NUMBER_RE.search(text)
    if match is None:
        return 0
    number = float(match.group(0))
    unit = text[match.end():]
    factor = _unit_factor(unit)
    value = number * factor
    # 整数で表せる値は int で返す (60.0 -> 60)
    return int(value) if value == int(value) else value


def format_time_value(raw: Any) -> str | None:
    """Normalize short-hand duration input ("5h" -> "5 hours").

    Returns None when the text is not a recognized short-hand, in which case
    the cell should be left as the user typed it.
    """
    if is_blank(raw):
        return None
    match = _SHORTHAND_RE.match(str(raw).strip())
    if match is None:
        return None
    number = float(match.group(1))
    unit = match.group(2).lower()
    number_text = f"{number:g}"
    if unit == "":
        return f"{number_text} mins"
    canonical = _SHORTHAND_UNITS.get(unit)
    if canonical is None:
        return None
    return f"{number_text} {canonical}"
