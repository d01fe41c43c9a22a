from __future__ import annotations

from datetime import datetime

from tasksync.models.config_models import AppConfig, CleanupSettings
from tasksync.models.sheet_table import SheetTable, archive_headers_for
from tasksync.repository.tables import InMemoryTableRepository
from tasksync.services.cleanup import cleanup_against_archive, cleanup_rows, run_cleanup

STAMP = datetime(2026, 1, 21, 9, 30)


def test_one_off_row_is_deleted_and_recurring_row_is_reset(live_table):
    outcome = cleanup_rows(live_table, [0, 1], AppConfig())

    assert [r[0] for r in outcome.table.rows] == ["Water Plants", "Pay Rent"]
    water = outcome.table.rows[0]
    assert water[8] is None and water[9] is None  # 完了日はクリア
    assert water[7] == "Weekly"
    assert outcome.result.deleted == 1
    assert outcome.result.fields_cleared == 1
    assert outcome.result.reset_rows == 1
    assert outcome.result.status == "Cleanup: Cleared 1 field(s), deleted 1 row(s)."
    assert outcome.changed


def test_incident_rows_are_never_touched(live_headers, row_factory):
    row = row_factory(
        "Fix Leak",
        recurrence="Weekly",
        done_pig=datetime(2026, 1, 20),
        incident=datetime(2026, 1, 19),
        incident_owner="🐷",
    )
    table = SheetTable(headers=live_headers, rows=[row])
    outcome = cleanup_rows(table, [0], AppConfig())
    assert outcome.table.rows == [row]
    assert outcome.result.preserved_rows == 1
    assert not outcome.changed


def test_incident_owner_is_cleared_only_when_configured(live_headers, row_factory):
    row = row_factory("Feed Cat", recurrence="Daily", done_cat=datetime(2026, 1, 20), incident_owner="🐱")
    table = SheetTable(headers=live_headers, rows=[row])

    default = cleanup_rows(table, [0], AppConfig())
    assert default.table.rows[0][11] == "🐱"
    assert default.result.fields_cleared == 1

    config = AppConfig(cleanup=CleanupSettings(clear_incident_fields_on_reset=True))
    cleared = cleanup_rows(table, [0], config)
    assert cleared.table.rows[0][11] is None
    assert cleared.result.fields_cleared == 2


def test_deletions_keep_remaining_rows_in_order(live_headers, row_factory):
    rows = [row_factory(name, done_pig=datetime(2026, 1, 20)) for name in ("A", "B", "C", "D")]
    table = SheetTable(headers=live_headers, rows=rows)
    outcome = cleanup_rows(table, [3, 0, 2], AppConfig())
    assert [r[0] for r in outcome.table.rows] == ["B"]
    assert outcome.result.deleted == 3


def test_out_of_range_indices_are_ignored(live_table):
    outcome = cleanup_rows(live_table, [7], AppConfig())
    assert outcome.table.rows == live_table.rows
    assert outcome.result.deleted == 0


def test_input_table_is_not_modified(live_table):
    before = live_table.copy()
    cleanup_rows(live_table, [0, 1], AppConfig())
    assert live_table.rows == before.rows


def _archive_from(live_headers, *live_rows):
    rows = []
    for row in live_rows:
        rows.append([STAMP, *[v.strftime("%Y-%m-%d") if isinstance(v, datetime) else v for v in row]])
    return SheetTable(headers=archive_headers_for(live_headers), rows=rows)


def test_cleanup_against_archive_only_touches_archived_rows(live_table, live_headers):
    archive = _archive_from(live_headers, live_table.rows[0])
    outcome = cleanup_against_archive(live_table, archive, AppConfig())
    assert [r[0] for r in outcome.table.rows] == ["Water Plants", "Pay Rent"]
    # Water Plants is completed but not archived yet
    assert outcome.table.rows[0][9] == datetime(2026, 1, 20)
    assert outcome.result.deleted == 1
    assert outcome.result.fields_cleared == 0


def test_run_cleanup_saves_live_sheet(live_table, live_headers):
    source = InMemoryTableRepository("Prioritization", live_table)
    archive = InMemoryTableRepository("TaskArchive", _archive_from(live_headers, *live_table.rows[:2]))
    result = run_cleanup(source, archive, AppConfig())
    assert result.error is None
    assert result.deleted == 1
    assert result.fields_cleared == 1
    assert source.save_count == 1
    assert archive.save_count == 0
    assert len(source.table) == 2


def test_run_cleanup_edge_cases(live_table, live_headers):
    source = InMemoryTableRepository("Prioritization", live_table)

    missing = run_cleanup(source, InMemoryTableRepository("TaskArchive"), AppConfig())
    assert missing.error == "Error: Required sheets not found."

    empty_archive = InMemoryTableRepository("TaskArchive", SheetTable(headers=archive_headers_for(live_headers)))
    assert run_cleanup(source, empty_archive, AppConfig()).status == "Cleanup: No archive data to check against."

    empty_source = InMemoryTableRepository("Prioritization", SheetTable(headers=live_headers))
    archive = InMemoryTableRepository("TaskArchive", _archive_from(live_headers, live_table.rows[0]))
    assert run_cleanup(empty_source, archive, AppConfig()).status == "Cleanup: Prioritization sheet is empty."

    no_task = InMemoryTableRepository("TaskArchive", SheetTable(headers=["Sync Timestamp", "Name"], rows=[[STAMP, "x"]]))
    assert run_cleanup(source, no_task, AppConfig()).error == "Cleanup: Cannot find Task column in archive."
    assert source.save_count == 0
