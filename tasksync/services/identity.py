from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from ..mapping.column_mapper import COMPLETION_DATE, DUE_DATE, TASK, ColumnMap
from ..models.config_models import EligibilityMode, IdentityKeyMode
from ..parsing.cells import cell_text, is_blank
from ..parsing.dates import format_iso_date, is_date_value

"""Identity keys and sync eligibility.

The identity key recognizes "the same task occurrence" across archive rows
and between the live sheet and the archive:

    task_completion: "<task>|<completion date>"  (default)
    task_due:        "<task>|<due date>"
    task:            "<task>"

The task part is trimmed and lower-cased. Date values become yyyy-MM-dd;
text is only trimmed, since archived dates are already stored as
yyyy-MM-dd strings.
"""

__all__ = [
    "KEY_SEPARATOR",
    "task_part",
    "date_part",
    "completion_value",
    "identity_key",
    "is_row_eligible",
]

KEY_SEPARATOR = "|"


def task_part(value: Any) -> str:
    return cell_text(value).lower()


def date_part(value: Any, tz: str | None = None) -> str:
    if is_date_value(value):
        return format_iso_date(value, tz)
    return cell_text(value)


def completion_value(row: Sequence[Any], column_map: ColumnMap) -> Any:
    """First non-blank completion-date cell (owner columns included), else None."""
    for value in column_map.values(row, COMPLETION_DATE):
        if not is_blank(value):
            return value
    return None


def identity_key(
    row: Sequence[Any],
    column_map: ColumnMap,
    mode: IdentityKeyMode = IdentityKeyMode.TASK_COMPLETION,
    tz: str | None = None,
) -> str:
    task = task_part(column_map.value(row, TASK))
    if mode is IdentityKeyMode.TASK:
        return task
    if mode is IdentityKeyMode.TASK_DUE:
        return task + KEY_SEPARATOR + date_part(column_map.value(row, DUE_DATE), tz)
    return task + KEY_SEPARATOR + date_part(completion_value(row, column_map), tz)


def is_row_eligible(
    row: Sequence[Any],
    column_map: ColumnMap,
    mode: EligibilityMode = EligibilityMode.COMPLETED,
) -> bool:
    """Whether a live row should be archived.

    COMPLETED: Task set AND (no completion column in the schema OR any
    completion column filled). TASK_ONLY: Task set.
    """
    if task_part(column_map.value(row, TASK)) == "":
        return False
    if mode is EligibilityMode.TASK_ONLY:
        return True
    if not column_map.has(COMPLETION_DATE):
        return True
    return completion_value(row, column_map) is not None
