from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

import pandas as pd

from ..mapping.column_mapper import (
    CATEGORY,
    DUE_DATE,
    RECURRENCE,
    REFERENCE_DUE_DATE,
    TASK,
    WEEKDAY_OK,
    build_column_map,
    field_specs_for,
    owner_field,
)
from ..models.config_models import AppConfig
from ..models.processing_result import FlaggedTask, RollResult, WeekdayReport
from ..models.sheet_table import SheetTable
from ..parsing.cells import cell_text, is_blank, is_marked
from ..parsing.dates import Clock, coerce_date, local_now
from ..repository.tables import TableRepository

logger = logging.getLogger(__name__)

"""Recurring task maintenance for the live sheet.

Recurrence cells are free text: "Weekly", "2 weeks", "3 days", "1 month",
"Yearly". A bare number ("2") means weeks and a unit without a number means
one of that unit.

- roll_due_dates(): moves DueDate forward from ReferenceDueDate, one
  recurrence step at a time, until it is no longer before today
- weekday_recurring_report(): lists weekly-or-longer recurring tasks whose
  DueDate is a Monday to Friday (rows with WeekdayOK checked are skipped)
"""

__all__ = [
    "Recurrence",
    "RollOutcome",
    "RECURRENCE_TEXT_RE",
    "parse_recurrence",
    "format_recurrence",
    "is_standard_recurrence",
    "roll_due_dates",
    "weekday_recurring_report",
    "run_roll_dates",
    "run_weekday_report",
]

DAY = "day"
WEEK = "week"
MONTH = "month"
YEAR = "year"

_NUMBER_RE = re.compile(r"\d*\.?\d+")
_BARE_NUMBER_RE = re.compile(r"^\d*\.?\d+$")
# 正規表記: "2 weeks", "1 month", "3days"
RECURRENCE_TEXT_RE = re.compile(r"^\d+\s*(day|week|month|year)s?$", re.IGNORECASE)
_DAY_NAMES = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")
# おおよその日数 (レポート表示用)
_APPROX_DAYS = {DAY: 1, WEEK: 7, MONTH: 30, YEAR: 365}


@dataclass(frozen=True)
class Recurrence:
    count: int
    unit: str

    @property
    def approx_days(self) -> int:
        return self.count * _APPROX_DAYS[self.unit]

    def step(self, start: datetime, times: int) -> datetime:
        """``start`` advanced by ``times`` recurrences.

        Months and years are always computed from ``start`` so that a
        month-end reference date does not drift (Jan 31 -> Feb 28 -> Mar 31).
        """
        n = self.count * times
        if self.unit == DAY:
            return start + timedelta(days=n)
        if self.unit == WEEK:
            return start + timedelta(weeks=n)
        if self.unit == MONTH:
            return (pd.Timestamp(start) + pd.DateOffset(months=n)).to_pydatetime()
        return (pd.Timestamp(start) + pd.DateOffset(years=n)).to_pydatetime()


@dataclass(frozen=True)
class RollOutcome:
    table: SheetTable
    result: RollResult


def _unit_of(text: str) -> str | None:
    for unit in (DAY, WEEK, MONTH, YEAR):
        if unit in text:
            return unit
    if "daily" in text:
        return DAY
    if "annual" in text:
        return YEAR
    return None


def parse_recurrence(value: Any) -> Recurrence | None:
    """Parse a Recurrence cell; None when it is blank or not understood.

    >>> parse_recurrence("Weekly")
    Recurrence(count=1, unit='week')
    >>> parse_recurrence("2")
    Recurrence(count=2, unit='week')
    >>> parse_recurrence("3 Months")
    Recurrence(count=3, unit='month')
    """
    text = cell_text(value).lower()
    if not text:
        return None
    match = _NUMBER_RE.search(text)
    unit = _unit_of(text)
    if match is None:
        return Recurrence(count=1, unit=unit) if unit else None
    count = int(float(match.group()))
    if count <= 0:
        return None
    return Recurrence(count=count, unit=unit or WEEK)


def format_recurrence(raw: Any) -> str | None:
    """Rewrite a bare number of weeks as text ("2" -> "2 week").

    None when the cell is anything other than a plain number.
    """
    if isinstance(raw, bool) or is_blank(raw):
        return None
    if isinstance(raw, (int, float)):
        return f"{raw:g} week"
    text = str(raw).strip()
    if not _BARE_NUMBER_RE.match(text):
        return None
    return f"{float(text):g} week"


def is_standard_recurrence(value: Any) -> bool:
    return RECURRENCE_TEXT_RE.match(cell_text(value)) is not None


def _next_due(reference: datetime, recurrence: Recurrence, today: datetime) -> datetime:
    times = 0
    due = reference
    while due < today:
        times += 1
        due = recurrence.step(reference, times)
    return due


def roll_due_dates(table: SheetTable, today: datetime, config: AppConfig | None = None) -> RollOutcome:
    """Recompute DueDate for every recurring row with a ReferenceDueDate.

    Args:
        table: Live task table
        today: Wall-clock date to roll up to (time of day is ignored)
        config: Settings

    Returns:
        RollOutcome; ``result.error`` is set when a required column is missing
    """
    config = config or AppConfig()
    column_map = build_column_map(table.headers, field_specs_for(config))
    required = (TASK, DUE_DATE, REFERENCE_DUE_DATE, RECURRENCE)
    if not all(column_map.has(name) for name in required):
        return RollOutcome(table=table, result=RollResult(scanned=0, updated=0, error="Error: Mapping failed."))

    today = today.replace(hour=0, minute=0, second=0, microsecond=0)
    due_idx = column_map.index(DUE_DATE)
    rows = [list(r) for r in table.rows]
    updated = 0
    for row in rows:
        reference = coerce_date(column_map.value(row, REFERENCE_DUE_DATE), config.timezone)
        recurrence = parse_recurrence(column_map.value(row, RECURRENCE))
        if reference is None or recurrence is None:
            continue
        due = _next_due(reference, recurrence, today)
        if due_idx >= len(row):
            row.extend([None] * (due_idx + 1 - len(row)))
        if coerce_date(row[due_idx], config.timezone) != due:
            row[due_idx] = due
            updated += 1

    logger.debug("roll_due_dates rows=%d updated=%d", len(rows), updated)
    result = RollResult(
        scanned=len(rows),
        updated=updated,
        status=f"Due dates refreshed: {updated} row(s) updated.",
    )
    return RollOutcome(table=SheetTable(headers=list(table.headers), rows=rows), result=result)


def _owner_markers(row: list[Any], column_map: Any, config: AppConfig) -> str:
    markers = "".join(
        o.marker for o in config.owners if is_marked(column_map.value(row, owner_field(o)))
    )
    return markers or "-"


def weekday_recurring_report(table: SheetTable, config: AppConfig | None = None) -> WeekdayReport:
    """Recurring tasks (a week or longer) that are due on a weekday."""
    config = config or AppConfig()
    logs = ["Starting weekday recurring task scan..."]
    column_map = build_column_map(table.headers, field_specs_for(config))
    if column_map.has(WEEKDAY_OK):
        logs.append("Whitelist column found: WeekdayOK (tasks marked TRUE will be skipped)")
    else:
        logs.append("No whitelist column found (add 'WeekdayOK' column to whitelist tasks)")
    if not all(column_map.has(name) for name in (TASK, DUE_DATE, RECURRENCE)):
        logs.append("ERROR: Required columns not found")
        return WeekdayReport(
            logs=logs,
            error=f"Required columns (Task, DueDate, Recurrence) not found in {config.sheets.live} sheet.",
        )

    flagged: list[FlaggedTask] = []
    for i, row in enumerate(table.rows):
        task = cell_text(column_map.value(row, TASK))
        recurrence_text = cell_text(column_map.value(row, RECURRENCE))
        if not task or not recurrence_text:
            continue
        if is_marked(column_map.value(row, WEEKDAY_OK)):
            continue
        recurrence = parse_recurrence(recurrence_text)
        if recurrence is None or recurrence.approx_days < 7:
            continue
        due = coerce_date(column_map.value(row, DUE_DATE), config.timezone)
        if due is None or due.weekday() >= 5:
            continue
        flagged.append(
            FlaggedTask(
                row_number=i + 2,
                task=task,
                category=cell_text(column_map.value(row, CATEGORY)) or "None",
                due_date=due.strftime("%Y-%m-%d (%a)"),
                day_of_week=_DAY_NAMES[due.weekday()],
                recurrence=recurrence_text,
                recurrence_days=recurrence.approx_days,
                owner=_owner_markers(row, column_map, config),
            )
        )

    flagged.sort(key=lambda t: t.due_date)
    logs.append(f"Scan complete. Found {len(flagged)} tasks with weekly+ recurrence on weekdays.")
    return WeekdayReport(flagged=flagged, logs=logs)


def run_roll_dates(source_repo: TableRepository, config: AppConfig | None = None, clock: Clock | None = None) -> RollResult:
    """Roll due dates in the stored live sheet; never raises."""
    config = config or AppConfig()
    try:
        table = source_repo.load()
        if table is None:
            return RollResult(scanned=0, updated=0, error=f"Error: {source_repo.name} sheet not found.")
        outcome = roll_due_dates(table, local_now(config.timezone, clock), config)
        if outcome.result.error is None and outcome.result.updated > 0:
            source_repo.save(outcome.table)
        return outcome.result
    except Exception as e:
        logger.exception("roll-dates failed")
        return RollResult(scanned=0, updated=0, error=f"Error: {e}")


def run_weekday_report(source_repo: TableRepository, config: AppConfig | None = None) -> WeekdayReport:
    """Weekday report for the stored live sheet; never raises."""
    config = config or AppConfig()
    try:
        table = source_repo.load()
        if table is None:
            return WeekdayReport(error=f"{source_repo.name} sheet not found.")
        return weekday_recurring_report(table, config)
    except Exception as e:
        logger.exception("weekday report failed")
        return WeekdayReport(error=f"Error: {e}")
