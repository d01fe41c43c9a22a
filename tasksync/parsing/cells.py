from __future__ import annotations

import math
from typing import Any

import pandas as pd

"""Cell value helpers shared by the sync, dedupe and cleanup services.

Workbook cells arrive as str / int / float / bool / datetime / None.
pandas hands empty cells over as NaN (or NaT for date columns), so every
"is this cell empty" check goes through is_blank().
"""

__all__ = [
    "is_blank",
    "cell_text",
    "is_marked",
]

# オーナー列で「担当あり」とみなす文字列 (小文字比較)
_MARKED_TEXT = frozenset({"yes", "true"})


def is_blank(value: Any) -> bool:
    """True for None, NaN/NaT and whitespace-only strings."""
    if value is None or value is pd.NaT:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    if isinstance(value, str) and value.strip() == "":
        return True
    return False


def cell_text(value: Any) -> str:
    """Trimmed string form of a cell, empty string for blank cells."""
    if is_blank(value):
        return ""
    return str(value).strip()


def is_marked(value: Any) -> bool:
    """Checkbox-style cell: a real True or the text yes/true."""
    if isinstance(value, bool):
        return value
    return cell_text(value).lower() in _MARKED_TEXT
