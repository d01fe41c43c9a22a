from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from typing import Any

from ..mapping.column_mapper import (
    CATEGORY,
    COMPLETION_DATE,
    INCIDENT_DATE,
    INCIDENT_OWNER,
    SYNC_TIMESTAMP,
    TASK,
    TIME_SPENT,
    ColumnMap,
    owner_field,
)
from ..models.config_models import DEFAULT_OWNERS, OwnerConfig
from ..models.validation_issue import ValidationIssue
from ..parsing.cells import cell_text, is_blank, is_marked
from ..parsing.dates import ISO_DATE_FMT, coerce_date
from ..parsing.time_value import parse_time_value
from .identity import completion_value

"""Archive record validation.

Checks each archived row for data quality problems that would distort the
analytics built on the archive. Findings are returned as ValidationIssue
objects; nothing here modifies or deletes rows.

A rule only applies when its column exists in the archive (except the Task
rule, which always applies).
"""

__all__ = [
    "MISSING_TASK",
    "MISSING_CATEGORY",
    "INVALID_COMPLETION_DATE",
    "COMPLETION_IN_FUTURE",
    "INVALID_SYNC_TIMESTAMP",
    "INVALID_INCIDENT_DATE",
    "INCIDENT_AFTER_COMPLETION",
    "INCIDENT_WITHOUT_OWNER",
    "NO_OWNER",
    "NEGATIVE_DURATION",
    "validate_archive_record",
]

MISSING_TASK = "MISSING_TASK"
MISSING_CATEGORY = "MISSING_CATEGORY"
INVALID_COMPLETION_DATE = "INVALID_COMPLETION_DATE"
COMPLETION_IN_FUTURE = "COMPLETION_IN_FUTURE"
INVALID_SYNC_TIMESTAMP = "INVALID_SYNC_TIMESTAMP"
INVALID_INCIDENT_DATE = "INVALID_INCIDENT_DATE"
INCIDENT_AFTER_COMPLETION = "INCIDENT_AFTER_COMPLETION"
INCIDENT_WITHOUT_OWNER = "INCIDENT_WITHOUT_OWNER"
NO_OWNER = "NO_OWNER"
NEGATIVE_DURATION = "NEGATIVE_DURATION"


def validate_archive_record(
    row: Sequence[Any],
    column_map: ColumnMap,
    row_number: int,
    now: datetime,
    tz: str | None = None,
    owners: Sequence[OwnerConfig] = DEFAULT_OWNERS,
) -> list[ValidationIssue]:
    """Validate one archive row.

    Args:
        row: Archive row values (Sync Timestamp first)
        column_map: ColumnMap built from the archive header row
        row_number: Sheet row number used in the report (header = 1)
        now: Current wall-clock time in the workbook timezone (naive)
        tz: Workbook timezone
        owners: Configured owners, for the "nobody assigned" rule

    Returns:
        List of issues, empty when the row is clean
    """
    task = cell_text(column_map.value(row, TASK))
    issues: list[ValidationIssue] = []

    def add(code: str, message: str) -> None:
        issues.append(ValidationIssue(row=row_number, task=task, code=code, message=message))

    if not task:
        add(MISSING_TASK, "Missing task name")

    if column_map.has(CATEGORY) and not cell_text(column_map.value(row, CATEGORY)):
        add(MISSING_CATEGORY, "Missing category")

    completion = None
    if column_map.has(COMPLETION_DATE):
        raw_completion = completion_value(row, column_map)
        completion = coerce_date(raw_completion, tz)
        if completion is None:
            add(INVALID_COMPLETION_DATE, "Missing or invalid CompletionDate")
        elif completion > now:
            add(COMPLETION_IN_FUTURE, f"CompletionDate in future: {completion.strftime(ISO_DATE_FMT)}")

    # 列が無い旧アーカイブは先頭列を Sync Timestamp とみなす
    if column_map.has(SYNC_TIMESTAMP):
        sync_value = column_map.value(row, SYNC_TIMESTAMP)
    else:
        sync_value = row[0] if row else None
    if coerce_date(sync_value, tz) is None:
        add(INVALID_SYNC_TIMESTAMP, "Invalid Sync Timestamp")

    incident_raw = column_map.value(row, INCIDENT_DATE)
    if column_map.has(INCIDENT_DATE) and not is_blank(incident_raw):
        incident = coerce_date(incident_raw, tz)
        if incident is None:
            add(INVALID_INCIDENT_DATE, "Invalid IncidentDate format")
        elif completion is not None and incident > completion:
            add(INCIDENT_AFTER_COMPLETION, "IncidentDate after CompletionDate")
        if column_map.has(INCIDENT_OWNER) and not cell_text(column_map.value(row, INCIDENT_OWNER)):
            add(INCIDENT_WITHOUT_OWNER, "IncidentDate present but missing IncidentOwner")

    owner_fields = [owner_field(o) for o in owners if column_map.has(owner_field(o))]
    if owner_fields and not any(is_marked(column_map.value(row, f)) for f in owner_fields):
        markers = " nor ".join(o.marker for o in owners)
        add(NO_OWNER, f"No owner assigned (neither {markers})")

    duration_raw = column_map.value(row, TIME_SPENT)
    if column_map.has(TIME_SPENT) and not is_blank(duration_raw):
        if parse_time_value(duration_raw) < 0:
            add(NEGATIVE_DURATION, "Negative ECT value")

    return issues
