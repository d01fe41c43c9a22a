from __future__ import annotations

import logging
import time
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any

from ..mapping.column_mapper import TASK, TIME_SPENT, build_column_map, field_specs_for
from ..models.config_models import AppConfig
from ..models.processing_result import MigrationResult, SyncResult
from ..models.sheet_table import SheetTable, archive_headers_for
from ..parsing.dates import Clock, format_iso_date, is_date_value, local_now
from ..parsing.time_value import parse_time_value
from ..repository.tables import TableRepository
from .cleanup import cleanup_rows
from .deduplicator import dedupe_table
from .identity import is_row_eligible
from .progress import PhaseIndicator, ProgressTracker
from .schema_migrator import migrate_table
from .summary import render_sync_status

logger = logging.getLogger(__name__)

"""Live sheet -> archive synchronization.

sync_tables() is the pure core: it takes both snapshots and a timestamp and
returns the new archive, the new live table and a SyncResult. run_sync()
loads the snapshots from repositories, calls it, and writes the archive
first and the live sheet second.

Steps of a sync:
1. Map live headers (a missing Task column aborts without writes)
2. Migrate the archive when its header row is out of date
3. Append one stamped record per eligible live row, in sheet order
4. Validate and deduplicate the whole archive
5. Delete or reset the archived live rows (cleanup policy)
"""

__all__ = [
    "SyncError",
    "SyncOutcome",
    "archive_record",
    "sync_tables",
    "run_sync",
]

TASK_COLUMN_MISSING = "Could not find 'Task' column."


class SyncError(Exception):
    """Raised by sync_tables when the live sheet cannot be synchronized."""


@dataclass(frozen=True)
class SyncOutcome:
    archive: SheetTable
    source: SheetTable
    result: SyncResult
    source_changed: bool = False


def archive_record(row: list[Any], positions: list[int], timestamp: datetime, tz: str) -> list[Any]:
    """[timestamp, *values] with date cells stored as yyyy-MM-dd text."""
    values: list[Any] = [timestamp]
    for pos in positions:
        value = row[pos] if pos < len(row) else None
        if is_date_value(value):
            value = format_iso_date(value, tz)
        values.append(value)
    return values


def sync_tables(
    source: SheetTable,
    archive: SheetTable | None,
    timestamp: datetime,
    config: AppConfig | None = None,
) -> SyncOutcome:
    """Archive eligible live rows, deduplicate, then clean the live sheet.

    Args:
        source: Live task table (must not be empty)
        archive: Current archive table, None when the sheet does not exist yet
        timestamp: Naive wall-clock Sync Timestamp for the appended records
        config: Settings

    Returns:
        SyncOutcome (archive to write, live table to write, result)

    Raises:
        SyncError: Live headers have no Task column
    """
    config = config or AppConfig()
    column_map = build_column_map(source.headers, field_specs_for(config))
    if not column_map.has(TASK):
        raise SyncError(TASK_COLUMN_MISSING)

    target_headers = archive_headers_for(source.headers)
    positions = [i for i, h in enumerate(source.headers) if str(h).strip() != ""]

    migration = MigrationResult(migrated=False, rows=0)
    if archive is None or (not archive.headers and archive.is_empty):
        logger.info("archive sheet missing or blank; creating header row")
        archive = SheetTable(headers=list(target_headers), rows=[])
    else:
        archive, migration = migrate_table(archive, target_headers)
        if migration.migrated:
            logger.warning(
                "archive schema migrated rows=%d added=%s dropped=%s",
                migration.rows,
                list(migration.added_columns),
                list(migration.dropped_columns),
            )

    eligible: list[int] = []
    appended: list[list[Any]] = []
    minutes = 0.0
    with ProgressTracker(len(source.rows), description="Scanning tasks") as progress:
        for i, row in enumerate(source.rows):
            if is_row_eligible(row, column_map, config.sync.eligibility):
                eligible.append(i)
                appended.append(archive_record(row, positions, timestamp, config.timezone))
                minutes += parse_time_value(column_map.value(row, TIME_SPENT))
            progress.advance()
    logger.debug("scanned=%d eligible=%d", len(source.rows), len(eligible))

    combined = SheetTable(headers=list(archive.headers), rows=[*archive.rows, *appended])
    dedupe = dedupe_table(combined, config, timestamp)

    cleanup = None
    new_source = source
    source_changed = False
    if config.cleanup.enabled and eligible:
        cleaned = cleanup_rows(source, eligible, config)
        cleanup = cleaned.result
        new_source = cleaned.table
        source_changed = cleaned.changed

    status = render_sync_status(
        len(source.rows),
        len(appended),
        dedupe.result.status,
        cleanup.status if cleanup else "",
    )
    result = SyncResult(
        scanned=len(source.rows),
        appended=len(appended),
        migrated=migration.migrated,
        minutes_archived=minutes,
        dedupe=dedupe.result,
        cleanup=cleanup,
        status=status,
    )
    return SyncOutcome(archive=dedupe.table, source=new_source, result=result, source_changed=source_changed)


def run_sync(
    source_repo: TableRepository,
    archive_repo: TableRepository,
    config: AppConfig | None = None,
    clock: Clock | None = None,
) -> SyncResult:
    """Full sync against repositories; never raises.

    The archive is written once (appended + deduplicated snapshot) and the
    live sheet once afterwards, only when cleanup changed it.
    """
    config = config or AppConfig()
    started = time.perf_counter()
    phases = PhaseIndicator(total_phases=3)
    try:
        phases.start_phase("Loading sheets")
        source = source_repo.load()
        if source is None:
            phases.finish_phase(success=False)
            return SyncResult(scanned=0, appended=0, error=f"Error: sheet '{source_repo.name}' not found.")
        if source.is_empty:
            phases.finish_phase()
            return SyncResult(scanned=0, appended=0, status=f"{source_repo.name} sheet is empty.")
        archive = archive_repo.load()
        phases.finish_phase(rows=len(source.rows))

        phases.start_phase("Archiving")
        timestamp = local_now(config.timezone, clock)
        outcome = sync_tables(source, archive, timestamp, config)
        archive_repo.save(outcome.archive)
        phases.finish_phase(rows=outcome.result.appended)

        phases.start_phase("Cleaning up")
        if outcome.source_changed:
            source_repo.save(outcome.source)
        phases.finish_phase(rows=outcome.result.cleanup.deleted if outcome.result.cleanup else 0)

        elapsed = time.perf_counter() - started
        logger.info(
            "sync completed scanned=%d appended=%d elapsed=%.3fs",
            outcome.result.scanned,
            outcome.result.appended,
            elapsed,
        )
        return replace(outcome.result, elapsed_seconds=elapsed)
    except SyncError as e:
        phases.finish_phase(success=False)
        logger.error("sync aborted: %s", e)
        return SyncResult(scanned=0, appended=0, error=f"Error: {e}", elapsed_seconds=time.perf_counter() - started)
    except Exception as e:
        phases.finish_phase(success=False)
        logger.exception("sync failed")
        return SyncResult(scanned=0, appended=0, error=f"Error: {e}", elapsed_seconds=time.perf_counter() - started)
