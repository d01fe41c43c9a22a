from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from ..models.processing_result import MigrationResult
from ..models.sheet_table import LEGACY_SYNC_HEADERS, SYNC_TIMESTAMP_HEADER, SheetTable

"""Archive schema migration.

When the live sheet gains, loses or reorders columns, the archive header row
no longer equals ["Sync Timestamp", *live headers]. Every archived row is
then re-projected onto the new header order:

- columns present in both schemas keep their values
- new columns are filled with None
- columns missing from the new schema are dropped (lossy)

The header row and all data rows are replaced together; callers write the
returned table back as one snapshot.
"""

__all__ = [
    "DEFAULT_RENAMES",
    "needs_migration",
    "migrate_rows",
    "migrate_table",
]

# 新列名 -> 旧列名候補
DEFAULT_RENAMES: dict[str, tuple[str, ...]] = {SYNC_TIMESTAMP_HEADER: LEGACY_SYNC_HEADERS}


def needs_migration(archive_headers: Sequence[str], target_headers: Sequence[str]) -> bool:
    """Order-sensitive comparison of the stored and expected header rows."""
    return [str(h).strip() for h in archive_headers] != [str(h).strip() for h in target_headers]


def _source_positions(
    archive_headers: Sequence[str],
    target_headers: Sequence[str],
    renames: Mapping[str, Sequence[str]],
) -> list[int | None]:
    old_index: dict[str, int] = {}
    for i, h in enumerate(archive_headers):
        old_index.setdefault(str(h).strip(), i)  # 重複列は先頭を採用
    positions: list[int | None] = []
    for target in target_headers:
        key = str(target).strip()
        pos = old_index.get(key)
        if pos is None:
            for legacy in renames.get(key, ()):
                if legacy in old_index:
                    pos = old_index[legacy]
                    break
        positions.append(pos)
    return positions


def migrate_rows(
    archive_headers: Sequence[str],
    archive_rows: Sequence[Sequence[Any]],
    target_headers: Sequence[str],
    renames: Mapping[str, Sequence[str]] | None = None,
) -> list[list[Any]]:
    """Re-project archive rows onto ``target_headers``."""
    positions = _source_positions(
        archive_headers, target_headers, DEFAULT_RENAMES if renames is None else renames
    )
    migrated: list[list[Any]] = []
    for row in archive_rows:
        migrated.append([row[p] if p is not None and p < len(row) else None for p in positions])
    return migrated


def migrate_table(
    archive: SheetTable,
    target_headers: Sequence[str],
    renames: Mapping[str, Sequence[str]] | None = None,
) -> tuple[SheetTable, MigrationResult]:
    """Return the archive rewritten under ``target_headers`` and a summary."""
    if not needs_migration(archive.headers, target_headers):
        return archive, MigrationResult(migrated=False, rows=len(archive.rows))
    rows = migrate_rows(archive.headers, archive.rows, target_headers, renames)
    old = {str(h).strip() for h in archive.headers}
    new = {str(h).strip() for h in target_headers}
    effective_renames = DEFAULT_RENAMES if renames is None else renames
    renamed_targets = {t for t in new if any(legacy in old for legacy in effective_renames.get(t, ()))}
    carried = {legacy for t in renamed_targets for legacy in effective_renames[t] if legacy in old}
    result = MigrationResult(
        migrated=True,
        rows=len(rows),
        added_columns=tuple(
            h for h in target_headers if str(h).strip() not in old | renamed_targets
        ),
        dropped_columns=tuple(h for h in archive.headers if str(h).strip() not in new | carried),
    )
    return SheetTable(headers=list(target_headers), rows=rows), result
