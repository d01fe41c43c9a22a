from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, replace

from ..mapping.column_mapper import (
    COMPLETION_DATE,
    INCIDENT_DATE,
    INCIDENT_OWNER,
    RECURRENCE,
    TASK,
    build_column_map,
    field_specs_for,
)
from ..models.config_models import AppConfig
from ..models.processing_result import CleanupResult
from ..models.sheet_table import SheetTable
from ..parsing.cells import is_blank
from ..repository.tables import TableRepository
from .identity import identity_key, is_row_eligible
from .summary import render_cleanup_status

logger = logging.getLogger(__name__)

"""Live sheet cleanup after archiving.

For every archived (eligible) live row:

- IncidentDate filled  -> untouched, whatever the recurrence says
- Recurrence filled    -> kept; completion-date columns cleared so the task
                          is pending again (IncidentOwner too when
                          clear_incident_fields_on_reset is set)
- otherwise            -> row deleted

Deletions are applied from the highest row index down so earlier indices
stay valid.
"""

__all__ = [
    "CleanupOutcome",
    "cleanup_rows",
    "cleanup_against_archive",
    "run_cleanup",
]


@dataclass(frozen=True)
class CleanupOutcome:
    table: SheetTable
    result: CleanupResult

    @property
    def changed(self) -> bool:
        return self.result.deleted > 0 or self.result.fields_cleared > 0


def cleanup_rows(source: SheetTable, eligible_indices: Iterable[int], config: AppConfig | None = None) -> CleanupOutcome:
    """Apply the cleanup policy to the given 0-based row indices of ``source``."""
    config = config or AppConfig()
    column_map = build_column_map(source.headers, field_specs_for(config))
    clear_columns = list(column_map.indices(COMPLETION_DATE))
    incident_owner_idx = column_map.index(INCIDENT_OWNER)
    if config.cleanup.clear_incident_fields_on_reset and incident_owner_idx != -1:
        clear_columns.append(incident_owner_idx)

    rows = [list(r) for r in source.rows]
    to_delete: list[int] = []
    fields_cleared = 0
    reset_rows = 0
    preserved_rows = 0

    for i in sorted(set(eligible_indices)):
        if not 0 <= i < len(rows):
            logger.warning("cleanup: row index %d out of range (rows=%d)", i, len(rows))
            continue
        row = rows[i]
        if not is_blank(column_map.value(row, INCIDENT_DATE)):
            preserved_rows += 1
            continue
        if not is_blank(column_map.value(row, RECURRENCE)):
            for col in clear_columns:
                if col < len(row) and not is_blank(row[col]):
                    row[col] = None
                    fields_cleared += 1
            reset_rows += 1
            continue
        to_delete.append(i)

    for i in sorted(to_delete, reverse=True):
        del rows[i]

    result = CleanupResult(
        deleted=len(to_delete),
        fields_cleared=fields_cleared,
        reset_rows=reset_rows,
        preserved_rows=preserved_rows,
    )
    result = replace(result, status=render_cleanup_status(result))
    logger.debug(
        "cleanup deleted=%d cleared=%d reset=%d preserved=%d",
        result.deleted,
        result.fields_cleared,
        reset_rows,
        preserved_rows,
    )
    return CleanupOutcome(table=SheetTable(headers=list(source.headers), rows=rows), result=result)


def cleanup_against_archive(source: SheetTable, archive: SheetTable, config: AppConfig | None = None) -> CleanupOutcome:
    """Clean live rows whose identity key is already in the archive.

    Used by the standalone (daily) cleanup: only completed rows that made it
    into the archive are touched.
    """
    config = config or AppConfig()
    specs = field_specs_for(config)
    mode = config.dedupe.identity_key
    archive_map = build_column_map(archive.headers, specs)
    archived_keys = {identity_key(row, archive_map, mode, config.timezone) for row in archive.rows}

    source_map = build_column_map(source.headers, specs)
    eligible = [
        i
        for i, row in enumerate(source.rows)
        if is_row_eligible(row, source_map, config.sync.eligibility)
        and identity_key(row, source_map, mode, config.timezone) in archived_keys
    ]
    return cleanup_rows(source, eligible, config)


def run_cleanup(
    source_repo: TableRepository,
    archive_repo: TableRepository,
    config: AppConfig | None = None,
) -> CleanupResult:
    """Standalone cleanup of the live sheet against the stored archive; never raises."""
    config = config or AppConfig()
    try:
        source = source_repo.load()
        archive = archive_repo.load()
        if source is None or archive is None:
            return CleanupResult(deleted=0, fields_cleared=0, error="Error: Required sheets not found.")
        if archive.is_empty:
            return CleanupResult(deleted=0, fields_cleared=0, status="Cleanup: No archive data to check against.")
        if source.is_empty:
            return CleanupResult(deleted=0, fields_cleared=0, status=f"Cleanup: {source_repo.name} sheet is empty.")
        specs = field_specs_for(config)
        if not build_column_map(archive.headers, specs).has(TASK):
            return CleanupResult(deleted=0, fields_cleared=0, error="Cleanup: Cannot find Task column in archive.")
        if not build_column_map(source.headers, specs).has(TASK):
            return CleanupResult(
                deleted=0,
                fields_cleared=0,
                error=f"Cleanup: Cannot find Task column in {source_repo.name}.",
            )
        outcome = cleanup_against_archive(source, archive, config)
        if outcome.changed:
            source_repo.save(outcome.table)
        logger.info("cleanup completed: %s", outcome.result.status)
        return outcome.result
    except Exception as e:
        logger.exception("cleanup failed")
        return CleanupResult(deleted=0, fields_cleared=0, error=f"Error: {e}")
