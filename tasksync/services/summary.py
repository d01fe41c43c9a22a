from __future__ import annotations

from collections.abc import Sequence

from ..models.processing_result import CleanupResult, DedupeResult, SyncResult
from ..models.validation_issue import ValidationIssue

"""Status text and SUMMARY line rendering.

Status strings are what the user sees after each operation; the SUMMARY
line is the single machine-greppable line logged at the end of a CLI run:

SUMMARY scanned={n} appended={n} kept={n} duplicates_removed={n}
issues={n} deleted={n} cleared={n} minutes={m} elapsed_sec={s}
"""

__all__ = [
    "render_issue_report",
    "render_archive_status",
    "render_sync_status",
    "render_cleanup_status",
    "render_summary_line",
]


def _format_number(value: float) -> str:
    # 指数表記を避けつつ整数値は小数点なしで出力
    if value == 0:
        return "0"
    if value == int(value):
        return str(int(value))
    if abs(value) < 0.01:
        return f"{value:.6f}".rstrip("0").rstrip(".")
    return str(round(value, 3))


def _issue_lines(issues: Sequence[ValidationIssue]) -> list[str]:
    """One line per archive row: "Row 5 [task]: issue; issue"."""
    by_row: dict[int, list[ValidationIssue]] = {}
    for issue in issues:
        by_row.setdefault(issue.row, []).append(issue)
    lines = []
    for row, row_issues in by_row.items():
        task = row_issues[0].task or "NO TASK"
        lines.append(f"Row {row} [{task}]: " + "; ".join(i.message for i in row_issues))
    return lines


def render_issue_report(issues: Sequence[ValidationIssue], limit: int = 10) -> str:
    """Capped preview of validation issues for the user.

    Shows the first ``limit`` affected rows and counts the rest. Returns an
    empty string when there is nothing to report.
    """
    if not issues:
        return ""
    lines = _issue_lines(issues)
    report = (
        f"⚠️ DATA INTEGRITY ALERT: Found {len(lines)} record(s) with validation issues in the archive.\n\n"
        "PLEASE REVIEW:\n\n" + "\n".join(lines[:limit])
    )
    if len(lines) > limit:
        report += f"\n\n...and {len(lines) - limit} more issues."
    report += "\n\nNOTE: Records have been preserved. Please review and fix manually if needed."
    return report


def render_archive_status(result: DedupeResult) -> str:
    parts = []
    if result.issues:
        parts.append(f"🔍 Validation: {result.issue_rows} issue(s) found (records preserved).")
    if result.removed_count > 0:
        parts.append(f"📋 Deduplication: {result.removed_count} duplicate(s) removed.")
    parts.append(f"✅ Sync Complete. {result.kept_count} records maintained.")
    return "\n".join(parts)


def render_cleanup_status(result: CleanupResult) -> str:
    return f"Cleanup: Cleared {result.fields_cleared} field(s), deleted {result.deleted} row(s)."


def render_sync_status(scanned: int, appended: int, archive_status: str, cleanup_status: str = "") -> str:
    """User-facing status returned by a sync run."""
    text = f"Scanned {scanned} rows. Found {appended} completed tasks. \n{archive_status}"
    if cleanup_status:
        text += f"\n{cleanup_status}"
    return text


def render_summary_line(result: SyncResult) -> str:
    """Render the SUMMARY line for a sync result.

    Examples:
        >>> r = SyncResult(scanned=4, appended=2, elapsed_seconds=0.5)
        >>> render_summary_line(r)  # doctest: +ELLIPSIS
        'SUMMARY scanned=4 appended=2 kept=0 duplicates_removed=0 issues=0 ...'
    """
    dedupe = result.dedupe
    cleanup = result.cleanup
    return (
        f"SUMMARY scanned={result.scanned} "
        f"appended={result.appended} "
        f"kept={dedupe.kept_count if dedupe else 0} "
        f"duplicates_removed={dedupe.removed_count if dedupe else 0} "
        f"issues={dedupe.issue_rows if dedupe else 0} "
        f"deleted={cleanup.deleted if cleanup else 0} "
        f"cleared={cleanup.fields_cleared if cleanup else 0} "
        f"minutes={_format_number(result.minutes_archived)} "
        f"elapsed_sec={_format_number(result.elapsed_seconds)}"
    )
