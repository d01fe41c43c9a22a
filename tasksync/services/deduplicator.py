from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import UTC, datetime
from typing import Any

from ..mapping.column_mapper import SYNC_TIMESTAMP, TASK, build_column_map, field_specs_for
from ..models.config_models import AppConfig
from ..models.processing_result import DedupeResult
from ..models.sheet_table import SheetTable
from ..models.validation_issue import ValidationIssue
from ..parsing.cells import is_blank
from ..parsing.dates import Clock, coerce_date, local_now
from ..repository.tables import TableRepository
from .identity import identity_key
from .progress import ProgressTracker
from .summary import render_archive_status
from .validation import validate_archive_record

logger = logging.getLogger(__name__)

"""Archive deduplication.

Two passes over the archive snapshot:

1. Validate every row (issues are collected, never acted on)
2. Group rows by identity key and keep the row with the greatest Sync
   Timestamp in each group. Unparseable timestamps count as 0, so they never
   win against a real one; on ties the earlier row is kept.

The archive is rewritten as [header, *kept rows] in first-seen group order.
Running it again without new data removes nothing (idempotent), which is
what lets an interrupted sync recover on the next run.
"""

__all__ = [
    "DedupeOutcome",
    "sync_time_value",
    "validate_table",
    "dedupe_table",
    "run_dedupe",
]


@dataclass(frozen=True)
class DedupeOutcome:
    table: SheetTable
    result: DedupeResult


def sync_time_value(value: Any) -> float:
    """Sortable number for a Sync Timestamp cell (0 when unparseable)."""
    if isinstance(value, bool) or is_blank(value):
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)
    parsed = coerce_date(value)
    if parsed is None:
        return 0.0
    # wall-clock 値同士の比較なので UTC として数値化
    return parsed.replace(tzinfo=UTC).timestamp()


def validate_table(archive: SheetTable, config: AppConfig, now: datetime) -> list[ValidationIssue]:
    """Validate every archive row; sheet row numbers start at 2."""
    column_map = build_column_map(archive.headers, field_specs_for(config))
    issues: list[ValidationIssue] = []
    with ProgressTracker(len(archive.rows), description="Validating archive") as progress:
        for i, row in enumerate(archive.rows):
            issues.extend(
                validate_archive_record(row, column_map, i + 2, now, config.timezone, config.owners)
            )
            progress.advance()
    return issues


def dedupe_table(
    archive: SheetTable,
    config: AppConfig | None = None,
    now: datetime | None = None,
) -> DedupeOutcome:
    """Validate and deduplicate an archive snapshot (pure).

    Args:
        archive: Archive table (header row + data rows)
        config: Settings (identity key mode, timezone, owners)
        now: Wall-clock "now" for the future-date rule (defaults to the current time)

    Returns:
        DedupeOutcome with the rewritten table and a DedupeResult
    """
    config = config or AppConfig()
    if archive.is_empty:
        result = DedupeResult(kept_count=0, removed_count=0, status="Sync complete.")
        return DedupeOutcome(table=archive, result=result)

    column_map = build_column_map(archive.headers, field_specs_for(config))
    if not column_map.has(TASK):
        logger.warning("archive has no Task column; deduplication skipped")
        result = DedupeResult(
            kept_count=len(archive.rows),
            removed_count=0,
            status="Sync Complete (Warning: 'Task' column not found for deduplication).",
        )
        return DedupeOutcome(table=archive, result=result)

    now = now or local_now(config.timezone)
    issues = validate_table(archive, config, now)
    if issues:
        logger.warning("archive validation found %d issue(s) (records preserved)", len(issues))

    mode = config.dedupe.identity_key
    sync_idx = column_map.index(SYNC_TIMESTAMP)
    if sync_idx == -1:
        sync_idx = 0
    kept: dict[str, tuple[float, list[Any]]] = {}
    for row in archive.rows:
        key = identity_key(row, column_map, mode, config.timezone)
        stamp = sync_time_value(row[sync_idx] if sync_idx < len(row) else None)
        current = kept.get(key)
        if current is None or stamp > current[0]:
            kept[key] = (stamp, row)

    rows = [list(row) for _, row in kept.values()]
    removed = len(archive.rows) - len(rows)
    logger.debug("dedupe mode=%s rows=%d kept=%d removed=%d", mode.value, len(archive.rows), len(rows), removed)
    result = DedupeResult(kept_count=len(rows), removed_count=removed, issues=issues)
    result = replace(result, status=render_archive_status(result))
    return DedupeOutcome(table=SheetTable(headers=list(archive.headers), rows=rows), result=result)


def run_dedupe(archive_repo: TableRepository, config: AppConfig | None = None, clock: Clock | None = None) -> DedupeResult:
    """Deduplicate the stored archive in place; never raises."""
    config = config or AppConfig()
    try:
        archive = archive_repo.load()
        if archive is None:
            return DedupeResult(
                kept_count=0,
                removed_count=0,
                error=f"Error: sheet '{archive_repo.name}' not found.",
            )
        outcome = dedupe_table(archive, config, local_now(config.timezone, clock))
        if outcome.table is not archive:
            archive_repo.save(outcome.table)
        return outcome.result
    except Exception as e:
        logger.exception("dedupe failed")
        return DedupeResult(kept_count=0, removed_count=0, error=f"Error: {e}")
