from __future__ import annotations

import logging
from dataclasses import dataclass

from ..mapping.column_mapper import RECURRENCE, TIME_SPENT, build_column_map, field_specs_for
from ..models.config_models import AppConfig
from ..models.processing_result import FlaggedCell, FormatResult
from ..models.sheet_table import SheetTable
from ..parsing.cells import cell_text
from ..parsing.time_value import format_time_value
from ..repository.tables import TableRepository
from .recurrence import format_recurrence, is_standard_recurrence

logger = logging.getLogger(__name__)

"""Sweep that normalizes hand-typed ECT and Recurrence cells.

- ECT text in short-hand ("5h", "20m", "30") becomes "5 hours" / "20 mins"
  / "30 mins". Numeric cells are already minutes and stay as they are.
- A Recurrence cell holding a bare number becomes "N week".
- Recurrence text that still does not read "<number> <day|week|month|year>"
  is reported for review, never rewritten.
"""

__all__ = [
    "FormatOutcome",
    "format_cells",
    "run_format_cells",
]


@dataclass(frozen=True)
class FormatOutcome:
    table: SheetTable
    result: FormatResult


def format_cells(table: SheetTable, config: AppConfig | None = None) -> FormatOutcome:
    """Normalize ECT / Recurrence cells of the live table (pure)."""
    config = config or AppConfig()
    column_map = build_column_map(table.headers, field_specs_for(config))
    ect_idx = column_map.index(TIME_SPENT)
    rec_idx = column_map.index(RECURRENCE)
    if ect_idx == -1 and rec_idx == -1:
        return FormatOutcome(
            table=table,
            result=FormatResult(scanned=0, updated=0, error="Error: Neither ECT nor Recurrence column found."),
        )

    rows = [list(r) for r in table.rows]
    updated = 0
    flagged: list[FlaggedCell] = []
    for i, row in enumerate(rows):
        if 0 <= ect_idx < len(row) and isinstance(row[ect_idx], str):
            text = format_time_value(row[ect_idx])
            if text is not None and text != row[ect_idx]:
                row[ect_idx] = text
                updated += 1
        if not 0 <= rec_idx < len(row):
            continue
        text = format_recurrence(row[rec_idx])
        if text is not None:
            row[rec_idx] = text
            updated += 1
            continue
        value = cell_text(row[rec_idx])
        if value and not is_standard_recurrence(value):
            flagged.append(FlaggedCell(row_number=i + 2, header=column_map.headers[rec_idx], value=value))

    logger.debug("format_cells rows=%d updated=%d flagged=%d", len(rows), updated, len(flagged))
    result = FormatResult(
        scanned=len(rows),
        updated=updated,
        flagged=flagged,
        status=f"Formatted {updated} cell(s); {len(flagged)} recurrence value(s) need review.",
    )
    return FormatOutcome(table=SheetTable(headers=list(table.headers), rows=rows), result=result)


def run_format_cells(source_repo: TableRepository, config: AppConfig | None = None) -> FormatResult:
    """Format the stored live sheet; saves only when a cell changed. Never raises."""
    config = config or AppConfig()
    try:
        table = source_repo.load()
        if table is None:
            return FormatResult(scanned=0, updated=0, error=f"Error: {source_repo.name} sheet not found.")
        outcome = format_cells(table, config)
        if outcome.result.error is None and outcome.result.updated > 0:
            source_repo.save(outcome.table)
        return outcome.result
    except Exception as e:
        logger.exception("format-cells failed")
        return FormatResult(scanned=0, updated=0, error=f"Error: {e}")
