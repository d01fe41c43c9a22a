from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from ..mapping.column_mapper import (
    CATEGORY,
    DAYS_TILL_DUE,
    DUE_DATE,
    IMPORTANCE,
    PRIORITY_SCORE,
    REFERENCE_DUE_DATE,
    TASK,
    TIME_SPENT,
    build_column_map,
    field_specs_for,
    owner_field,
)
from ..models.config_models import AppConfig, OwnerConfig
from ..models.processing_result import DayPlan, FieldUpdateResult, PlannedTask
from ..models.sheet_table import SheetTable
from ..parsing.cells import cell_text, is_marked
from ..parsing.dates import Clock, coerce_date, format_iso_date, local_now
from ..parsing.time_value import format_time_value, parse_time_value
from ..repository.tables import TableRepository

logger = logging.getLogger(__name__)

"""Day planner view over the live sheet.

planned_tasks() lists one owner's tasks that fall inside the planning
horizon (today plus ``days_to_plan - 1`` days), highest PriorityScore first.
Rows whose DaysTillDue cell reads "DONE" count as completed.

update_task_field() edits a single planner field of one row. Row numbers are
sheet row numbers (the header is row 1).
"""

__all__ = [
    "PLANNER_FIELDS",
    "FieldUpdateOutcome",
    "resolve_owner",
    "planned_tasks",
    "update_task_field",
    "run_plan",
    "run_update_task_field",
]

# planner 上の短縮名 -> 意味フィールド
PLANNER_FIELDS: dict[str, str] = {
    "due": REFERENCE_DUE_DATE,
    "ect": TIME_SPENT,
    "imp": IMPORTANCE,
    "cat": CATEGORY,
}

_DONE_TEXT = "DONE"
_DAY_ABBR = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")


@dataclass(frozen=True)
class FieldUpdateOutcome:
    table: SheetTable
    result: FieldUpdateResult


def resolve_owner(owner: str, config: AppConfig) -> OwnerConfig | None:
    """Owner by key, name (case-insensitive) or marker."""
    text = owner.strip()
    for o in config.owners:
        if text == o.marker or text.lower() in (o.key.lower(), o.name.lower()):
            return o
    return None


def _score(value: Any) -> float:
    if isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return float(value) if value == value else 0.0  # NaN
    try:
        return float(cell_text(value))
    except ValueError:
        return 0.0


def planned_tasks(
    table: SheetTable,
    owner: str,
    days_to_plan: int,
    include_overdue: bool,
    show_completed: bool,
    today: datetime,
    config: AppConfig | None = None,
) -> DayPlan:
    """Tasks owned by ``owner`` that are due within the planning horizon.

    Args:
        table: Live task table
        owner: Owner key, name or marker
        days_to_plan: Horizon length in days, today included
        include_overdue: Keep open tasks whose DueDate is before today
        show_completed: Keep rows marked DONE (their DueDate is not checked)
        today: Wall-clock date (time of day is ignored)
        config: Settings

    Returns:
        DayPlan sorted by PriorityScore, highest first
    """
    config = config or AppConfig()
    who = resolve_owner(owner, config)
    if who is None:
        return DayPlan(owner=owner, error=f"Error: Unknown owner '{owner}'.")
    column_map = build_column_map(table.headers, field_specs_for(config))
    if not (column_map.has(TASK) and column_map.has(DUE_DATE)):
        return DayPlan(
            owner=who.name,
            error=f"Required columns (Task, DueDate) not found in {config.sheets.live} sheet.",
        )
    if not column_map.has(owner_field(who)):
        return DayPlan(owner=who.name, error=f"Error: Ownership column for {who.name} not found.")

    start = today.replace(hour=0, minute=0, second=0, microsecond=0)
    horizon = start + timedelta(days=max(days_to_plan, 1) - 1)
    tasks: list[PlannedTask] = []
    for i, row in enumerate(table.rows):
        if not is_marked(column_map.value(row, owner_field(who))):
            continue
        is_done = cell_text(column_map.value(row, DAYS_TILL_DUE)).upper() == _DONE_TEXT
        if is_done and not show_completed:
            continue
        due = coerce_date(column_map.value(row, DUE_DATE), config.timezone)
        if not is_done:
            # 期日なし / 解釈不能な期日は計画対象外
            if due is None:
                continue
            if due < start and not include_overdue:
                continue
            if due > horizon:
                continue
        ect_raw = cell_text(column_map.value(row, TIME_SPENT)) or "0 mins"
        tasks.append(
            PlannedTask(
                row_number=i + 2,
                task=cell_text(column_map.value(row, TASK)) or "Unnamed Task",
                score=_score(column_map.value(row, PRIORITY_SCORE)),
                importance=cell_text(column_map.value(row, IMPORTANCE)) or "Normal",
                category=cell_text(column_map.value(row, CATEGORY)) or "None",
                ect_raw=ect_raw,
                ect_minutes=round(parse_time_value(column_map.value(row, TIME_SPENT))),
                due_date=format_iso_date(due) if due is not None else "",
                day=_DAY_ABBR[due.weekday()] if due is not None else "-",
                is_done=is_done,
            )
        )

    tasks.sort(key=lambda t: t.score, reverse=True)
    logger.debug("planned_tasks owner=%s rows=%d planned=%d", who.key, len(table.rows), len(tasks))
    return DayPlan(owner=who.name, tasks=tasks)


def update_task_field(
    table: SheetTable,
    row_number: int,
    field_key: str,
    value: Any,
    config: AppConfig | None = None,
) -> FieldUpdateOutcome:
    """Write one planner field ("due", "ect", "imp" or "cat") of a row.

    "due" writes ReferenceDueDate as a date; "ect" is normalized through
    format_time_value() when it is short-hand.
    """
    config = config or AppConfig()

    def failed(message: str) -> FieldUpdateOutcome:
        return FieldUpdateOutcome(
            table=table,
            result=FieldUpdateResult(row_number=row_number, field_name=field_key, error=message),
        )

    name = PLANNER_FIELDS.get(field_key)
    if name is None:
        return failed(f"Error: Invalid field '{field_key}'.")
    column_map = build_column_map(table.headers, field_specs_for(config))
    if not column_map.has(name):
        return failed(f"Error: Column not found for '{field_key}'.")
    if not 2 <= row_number <= len(table.rows) + 1:
        return failed(f"Error: Row {row_number} is out of range.")

    if field_key == "due":
        new_value: Any = coerce_date(value, config.timezone)
        if new_value is None:
            return failed(f"Error: Invalid date '{value}'.")
        shown = format_iso_date(new_value)
    elif field_key == "ect":
        new_value = format_time_value(value) or cell_text(value)
        shown = new_value
    else:
        new_value = cell_text(value)
        shown = new_value

    idx = column_map.index(name)
    rows = [list(r) for r in table.rows]
    row = rows[row_number - 2]
    if idx >= len(row):
        row.extend([None] * (idx + 1 - len(row)))
    row[idx] = new_value
    header = column_map.headers[idx]
    result = FieldUpdateResult(
        row_number=row_number,
        field_name=field_key,
        updated=True,
        status=f"Row {row_number}: {header} set to {shown}.",
    )
    return FieldUpdateOutcome(table=SheetTable(headers=list(table.headers), rows=rows), result=result)


def run_plan(
    source_repo: TableRepository,
    owner: str,
    config: AppConfig | None = None,
    clock: Clock | None = None,
    days_to_plan: int | None = None,
    include_overdue: bool | None = None,
    show_completed: bool | None = None,
) -> DayPlan:
    """Day plan for the stored live sheet; never raises.

    Options left as None fall back to ``config.planner``.
    """
    config = config or AppConfig()
    settings = config.planner
    try:
        table = source_repo.load()
        if table is None:
            return DayPlan(owner=owner, error=f"Error: {source_repo.name} sheet not found.")
        return planned_tasks(
            table,
            owner,
            settings.days_to_plan if days_to_plan is None else days_to_plan,
            settings.include_overdue if include_overdue is None else include_overdue,
            settings.show_completed if show_completed is None else show_completed,
            local_now(config.timezone, clock),
            config,
        )
    except Exception as e:
        logger.exception("plan failed")
        return DayPlan(owner=owner, error=f"Error: {e}")


def run_update_task_field(
    source_repo: TableRepository,
    row_number: int,
    field_key: str,
    value: Any,
    config: AppConfig | None = None,
) -> FieldUpdateResult:
    """Edit one planner field in the stored live sheet; never raises."""
    config = config or AppConfig()
    try:
        table = source_repo.load()
        if table is None:
            return FieldUpdateResult(
                row_number=row_number, field_name=field_key, error=f"Error: {source_repo.name} sheet not found."
            )
        outcome = update_task_field(table, row_number, field_key, value, config)
        if outcome.result.updated:
            source_repo.save(outcome.table)
        return outcome.result
    except Exception as e:
        logger.exception("set-field failed")
        return FieldUpdateResult(row_number=row_number, field_name=field_key, error=f"Error: {e}")
