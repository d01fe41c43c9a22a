from __future__ import annotations

from datetime import datetime

from tasksync.models.sheet_table import SheetTable, archive_headers_for
from tasksync.services.schema_migrator import migrate_rows, migrate_table, needs_migration

TS = datetime(2026, 1, 20, 10, 0)


def test_needs_migration_is_order_sensitive():
    assert not needs_migration(["Sync Timestamp", "Task"], ["Sync Timestamp", "Task"])
    assert needs_migration(["Task", "Sync Timestamp"], ["Sync Timestamp", "Task"])
    assert needs_migration(["Sync Timestamp"], ["Sync Timestamp", "Task"])


def test_migrate_rows_keeps_common_columns_and_fills_new_ones():
    rows = migrate_rows(
        ["Sync Timestamp", "Task", "Old"],
        [[TS, "A", "x"]],
        ["Sync Timestamp", "Task", "New"],
    )
    assert rows == [[TS, "A", None]]


def test_migrate_rows_reorders_and_pads_short_rows():
    rows = migrate_rows(["A", "B"], [["x"]], ["B", "A"])
    assert rows == [[None, "x"]]


def test_duplicate_old_header_uses_first_occurrence():
    assert migrate_rows(["Task", "Task"], [["a", "b"]], ["Task"]) == [["a"]]


def test_legacy_sync_date_is_carried_into_sync_timestamp():
    archive = SheetTable(headers=["Sync Date", "Task"], rows=[[TS, "A"]])
    table, result = migrate_table(archive, ["Sync Timestamp", "Task", "Category"])
    assert table.headers == ["Sync Timestamp", "Task", "Category"]
    assert table.rows == [[TS, "A", None]]
    assert result.migrated
    assert result.rows == 1
    assert result.added_columns == ("Category",)
    assert result.dropped_columns == ()


def test_dropped_columns_are_reported():
    archive = SheetTable(headers=["Sync Timestamp", "Task", "Notes"], rows=[[TS, "A", "n"]])
    table, result = migrate_table(archive, ["Sync Timestamp", "Task"])
    assert table.rows == [[TS, "A"]]
    assert result.dropped_columns == ("Notes",)
    assert result.added_columns == ()


def test_no_migration_returns_same_table():
    archive = SheetTable(headers=["Sync Timestamp", "Task"], rows=[[TS, "A"]])
    table, result = migrate_table(archive, ["Sync Timestamp", "Task"])
    assert table is archive
    assert not result.migrated


def test_archive_headers_for_skips_blank_headers():
    assert archive_headers_for(["Task", "", "  ", "Category"]) == ["Sync Timestamp", "Task", "Category"]


def test_round_trip_restores_common_columns():
    """A -> B -> A keeps the shared columns; columns only A had come back empty."""
    a = ["Sync Timestamp", "Task", "Category", "Notes"]
    b = ["Sync Timestamp", "Category", "Task", "ECT"]
    rows = [[TS, "A", "Home", "call first"], [TS, "B", None, None]]

    there = migrate_rows(a, rows, b)
    assert there == [[TS, "Home", "A", None], [TS, None, "B", None]]
    back = migrate_rows(b, there, a)
    assert back == [[TS, "A", "Home", None], [TS, "B", None, None]]

    table, result = migrate_table(SheetTable(headers=b, rows=there), a)
    assert table.rows == back
    assert result.added_columns == ("Notes",)
    assert result.dropped_columns == ("ECT",)
