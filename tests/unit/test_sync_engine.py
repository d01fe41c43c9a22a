from __future__ import annotations

from datetime import UTC, datetime
from unittest.mock import patch

import pytest

from tasksync.models.config_models import AppConfig, CleanupSettings, EligibilityMode, SyncSettings
from tasksync.models.sheet_table import SheetTable, archive_headers_for
from tasksync.repository.tables import InMemoryTableRepository
from tasksync.services.sync_engine import SyncError, archive_record, run_sync, sync_tables

T1 = datetime(2026, 1, 21, 9, 30)
T2 = datetime(2026, 1, 22, 9, 30)


def test_sync_tables_appends_completed_rows(live_table, live_headers):
    outcome = sync_tables(live_table, None, T1, AppConfig())

    assert outcome.archive.headers == archive_headers_for(live_headers)
    assert outcome.archive.rows[0] == [
        T1, "Clean Kitchen", "Home", True, False, "1 hour", None, None, None, "2026-01-20", None, None, None,
    ]
    assert outcome.archive.rows[1][1] == "Water Plants"
    assert outcome.archive.rows[1][10] == "2026-01-20"

    result = outcome.result
    assert result.scanned == 3
    assert result.appended == 2
    assert result.minutes_archived == 75
    assert not result.migrated
    assert result.dedupe.kept_count == 2
    assert result.dedupe.issues == []
    assert result.status == (
        "Scanned 3 rows. Found 2 completed tasks. \n"
        "✅ Sync Complete. 2 records maintained.\n"
        "Cleanup: Cleared 1 field(s), deleted 1 row(s)."
    )


def test_sync_tables_cleans_live_rows(live_table):
    outcome = sync_tables(live_table, None, T1, AppConfig())
    assert outcome.source_changed
    assert [r[0] for r in outcome.source.rows] == ["Water Plants", "Pay Rent"]
    assert outcome.result.cleanup.deleted == 1
    assert outcome.result.cleanup.fields_cleared == 1


def test_second_sync_adds_nothing(live_table):
    first = sync_tables(live_table, None, T1, AppConfig())
    second = sync_tables(first.source, first.archive, T2, AppConfig())
    assert second.result.appended == 0
    assert second.archive.rows == first.archive.rows
    assert second.result.cleanup is None
    assert not second.source_changed


def test_resync_keeps_latest_stamp(live_table):
    """Same live rows synced at T1 then T2: one record per key, stamped T2."""
    config = AppConfig(cleanup=CleanupSettings(enabled=False))
    first = sync_tables(live_table, None, T1, config)
    second = sync_tables(live_table, first.archive, T2, config)
    assert len(second.archive.rows) == 2
    assert [r[0] for r in second.archive.rows] == [T2, T2]
    assert second.result.dedupe.removed_count == 2
    assert second.source is live_table


def test_task_only_eligibility(live_table):
    config = AppConfig(sync=SyncSettings(eligibility=EligibilityMode.TASK_ONLY))
    outcome = sync_tables(live_table, None, T1, config)
    assert outcome.result.appended == 3
    assert outcome.result.cleanup.deleted == 2


def test_legacy_archive_is_migrated(live_table, live_headers):
    legacy = SheetTable(headers=["Sync Date", "Task", "Category"], rows=[[datetime(2025, 12, 1), "Old Task", "Misc"]])
    outcome = sync_tables(live_table, legacy, T1, AppConfig())
    assert outcome.result.migrated
    assert outcome.archive.headers == archive_headers_for(live_headers)
    old = outcome.archive.rows[0]
    assert old[0] == datetime(2025, 12, 1)
    assert old[1:3] == ["Old Task", "Misc"]
    assert old[3:] == [None] * (len(live_headers) - 2)
    assert len(outcome.archive.rows) == 3


def test_missing_task_column_raises():
    source = SheetTable(headers=["Name", "CompletionDate"], rows=[["A", datetime(2026, 1, 20)]])
    with pytest.raises(SyncError, match="Could not find 'Task' column."):
        sync_tables(source, None, T1, AppConfig())


def test_archive_record_formats_dates():
    row = ["A", datetime(2026, 1, 20, 18, 0), 5]
    assert archive_record(row, [0, 1, 2], T1, "UTC") == [T1, "A", "2026-01-20", 5]
    assert archive_record(["A"], [0, 1], T1, "UTC") == [T1, "A", None]


def test_run_sync_writes_archive_then_source(live_table):
    source = InMemoryTableRepository("Prioritization", live_table)
    archive = InMemoryTableRepository("TaskArchive")
    result = run_sync(source, archive, AppConfig(), clock=lambda: T1)

    assert result.error is None
    assert result.appended == 2
    assert result.elapsed_seconds >= 0
    assert archive.save_count == 1
    assert source.save_count == 1
    assert [r[0] for r in archive.table.rows] == [T1, T1]
    assert len(source.table) == 2


def test_run_sync_stamps_wall_clock_in_configured_timezone(live_table):
    source = InMemoryTableRepository("Prioritization", live_table)
    archive = InMemoryTableRepository("TaskArchive")
    clock = lambda: datetime(2026, 1, 20, 23, 0, tzinfo=UTC)  # noqa: E731
    run_sync(source, archive, AppConfig(timezone="Asia/Tokyo"), clock=clock)
    assert archive.table.rows[0][0] == datetime(2026, 1, 21, 8, 0)


def test_run_sync_missing_task_column_writes_nothing():
    source = InMemoryTableRepository("Prioritization", SheetTable(headers=["Name"], rows=[["A"]]))
    archive = InMemoryTableRepository("TaskArchive")
    result = run_sync(source, archive, AppConfig(), clock=lambda: T1)
    assert result.error == "Error: Could not find 'Task' column."
    assert source.save_count == 0
    assert archive.save_count == 0


def test_run_sync_empty_live_sheet(live_headers):
    source = InMemoryTableRepository("Prioritization", SheetTable(headers=live_headers))
    archive = InMemoryTableRepository("TaskArchive")
    result = run_sync(source, archive, AppConfig())
    assert result.error is None
    assert result.status == "Prioritization sheet is empty."
    assert archive.save_count == 0
    assert archive.table is None


def test_run_sync_missing_live_sheet():
    result = run_sync(InMemoryTableRepository("Prioritization"), InMemoryTableRepository("TaskArchive"))
    assert result.error == "Error: sheet 'Prioritization' not found."


def test_run_sync_reports_unexpected_errors(live_table):
    source = InMemoryTableRepository("Prioritization", live_table)
    archive = InMemoryTableRepository("TaskArchive")
    with patch("tasksync.services.sync_engine.dedupe_table", side_effect=RuntimeError("boom")):
        result = run_sync(source, archive, AppConfig(), clock=lambda: T1)
    assert result.error == "Error: boom"
    assert archive.save_count == 0
    assert source.save_count == 0
