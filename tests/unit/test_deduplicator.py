from __future__ import annotations

from datetime import UTC, datetime
from unittest.mock import patch

from tasksync.models.config_models import AppConfig, DedupeSettings, IdentityKeyMode
from tasksync.models.sheet_table import SheetTable
from tasksync.repository.tables import InMemoryTableRepository
from tasksync.services.deduplicator import dedupe_table, run_dedupe, sync_time_value

HEADERS = ["Sync Timestamp", "Task", "Category", "Ownership🐷", "CompletionDate"]
NOW = datetime(2026, 1, 22, 8, 0)
T1 = datetime(2026, 1, 20, 10, 0)
T2 = datetime(2026, 1, 21, 10, 0)


def _archive(*rows):
    return SheetTable(headers=list(HEADERS), rows=[list(r) for r in rows])


def test_latest_sync_timestamp_wins():
    """Two rows with the same identity key: the T2 row survives."""
    first = [T1, "Clean Kitchen", "Home", True, "2026-01-20"]
    second = [T2, "clean kitchen ", "Home (edited)", True, "2026-01-20"]
    other = [T1, "Pay Rent", "Bills", True, "2026-01-19"]
    outcome = dedupe_table(_archive(first, other, second), AppConfig(), NOW)

    assert outcome.table.headers == HEADERS
    # group order = first-seen order
    assert outcome.table.rows == [second, other]
    assert outcome.result.kept_count == 2
    assert outcome.result.removed_count == 1
    assert outcome.result.issues == []
    assert outcome.result.status == "📋 Deduplication: 1 duplicate(s) removed.\n✅ Sync Complete. 2 records maintained."


def test_tie_keeps_earlier_row():
    a = [T1, "A", "Home", True, "2026-01-20"]
    b = [T1, "A", "Other", True, "2026-01-20"]
    outcome = dedupe_table(_archive(a, b), AppConfig(), NOW)
    assert outcome.table.rows == [a]


def test_unparseable_timestamp_never_wins():
    real = [T1, "A", "Home", True, "2026-01-20"]
    broken = ["garbage", "A", "Home", True, "2026-01-20"]
    outcome = dedupe_table(_archive(real, broken), AppConfig(), NOW)
    assert outcome.table.rows == [real]
    assert [i.code for i in outcome.result.issues] == ["INVALID_SYNC_TIMESTAMP"]
    assert outcome.result.status.startswith("🔍 Validation: 1 issue(s) found (records preserved).")


def test_different_completion_dates_are_different_occurrences():
    a = [T1, "Water Plants", "Home", True, "2026-01-13"]
    b = [T2, "Water Plants", "Home", True, "2026-01-20"]
    outcome = dedupe_table(_archive(a, b), AppConfig(), NOW)
    assert outcome.result.removed_count == 0


def test_task_only_key_mode_collapses_occurrences():
    a = [T1, "Water Plants", "Home", True, "2026-01-13"]
    b = [T2, "Water Plants", "Home", True, "2026-01-20"]
    config = AppConfig(dedupe=DedupeSettings(identity_key=IdentityKeyMode.TASK))
    outcome = dedupe_table(_archive(a, b), config, NOW)
    assert outcome.table.rows == [b]


def test_dedupe_is_idempotent():
    rows = [
        [T1, "A", "Home", True, "2026-01-20"],
        [T2, "A", "Home", True, "2026-01-20"],
        [T1, "B", "Home", True, "2026-01-20"],
    ]
    once = dedupe_table(_archive(*rows), AppConfig(), NOW)
    twice = dedupe_table(once.table, AppConfig(), NOW)
    assert twice.table.rows == once.table.rows
    assert twice.result.removed_count == 0


def test_issues_never_remove_rows():
    bad = [T1, "", None, False, "not a date"]
    outcome = dedupe_table(_archive(bad), AppConfig(), NOW)
    assert outcome.table.rows == [bad]
    assert outcome.result.issue_rows == 1
    assert len(outcome.result.issues) == 4


def test_empty_archive():
    archive = _archive()
    outcome = dedupe_table(archive, AppConfig(), NOW)
    assert outcome.table is archive
    assert outcome.result.status == "Sync complete."


def test_archive_without_task_column_is_left_alone():
    archive = SheetTable(headers=["Sync Timestamp", "Name"], rows=[[T1, "A"], [T2, "A"]])
    outcome = dedupe_table(archive, AppConfig(), NOW)
    assert outcome.table is archive
    assert outcome.result.removed_count == 0
    assert outcome.result.status == "Sync Complete (Warning: 'Task' column not found for deduplication)."


def test_sync_time_value():
    assert sync_time_value(None) == 0
    assert sync_time_value(True) == 0
    assert sync_time_value("garbage") == 0
    assert sync_time_value(5) == 5.0
    assert sync_time_value("2026-01-20") == datetime(2026, 1, 20, tzinfo=UTC).timestamp()
    assert sync_time_value(T2) > sync_time_value(T1)


def test_run_dedupe_saves_rewritten_archive():
    repo = InMemoryTableRepository(
        "TaskArchive",
        _archive([T1, "A", "Home", True, "2026-01-20"], [T2, "A", "Home", True, "2026-01-20"]),
    )
    result = run_dedupe(repo, AppConfig(), clock=lambda: NOW)
    assert result.error is None
    assert result.removed_count == 1
    assert repo.save_count == 1
    assert repo.table.rows == [[T2, "A", "Home", True, "2026-01-20"]]


def test_run_dedupe_missing_sheet():
    result = run_dedupe(InMemoryTableRepository("TaskArchive"), AppConfig())
    assert result.error == "Error: sheet 'TaskArchive' not found."


def test_run_dedupe_does_not_write_when_nothing_to_do():
    repo = InMemoryTableRepository("TaskArchive", _archive())
    result = run_dedupe(repo, AppConfig())
    assert result.error is None
    assert repo.save_count == 0


def test_run_dedupe_reports_unexpected_errors():
    repo = InMemoryTableRepository("TaskArchive", _archive([T1, "A", "Home", True, "2026-01-20"]))
    with patch("tasksync.services.deduplicator.dedupe_table", side_effect=RuntimeError("boom")):
        result = run_dedupe(repo, AppConfig())
    assert result.error == "Error: boom"
    assert repo.save_count == 0


def test_ragged_row_does_not_abort_the_archive():
    archive = SheetTable(
        headers=["Task", "CompletionDate", "Sync Timestamp"],
        rows=[["A", "2026-01-01"], ["B", "2026-01-02", T1]],
    )
    outcome = dedupe_table(archive, AppConfig(), NOW)
    assert outcome.result.kept_count == 2
    assert [(i.row, i.code) for i in outcome.result.issues] == [(2, "INVALID_SYNC_TIMESTAMP")]
