from __future__ import annotations

from dataclasses import dataclass, field

from .validation_issue import ValidationIssue

"""Result models returned by the public sync / dedupe / cleanup operations.

Every result carries ``status`` (text for the user) and ``error``. Public
operations never raise: when something goes wrong ``error`` is set and the
counters describe whatever was completed before the failure (usually zero).
"""


@dataclass(frozen=True)
class MigrationResult:
    """Outcome of an archive schema migration."""
    migrated: bool
    rows: int  # 移行した行数
    added_columns: tuple[str, ...] = ()
    dropped_columns: tuple[str, ...] = ()


@dataclass(frozen=True)
class DedupeResult:
    """Archive validation + deduplication summary."""
    kept_count: int
    removed_count: int
    issues: list[ValidationIssue] = field(default_factory=list)
    status: str = ""
    error: str | None = None

    @property
    def issue_rows(self) -> int:
        """Number of distinct archive rows with at least one issue."""
        return len({i.row for i in self.issues})


@dataclass(frozen=True)
class CleanupResult:
    """Live sheet cleanup summary."""
    deleted: int
    fields_cleared: int
    reset_rows: int = 0  # 繰り返しタスクとして残した行
    preserved_rows: int = 0  # インシデントにより保護した行
    status: str = ""
    error: str | None = None


@dataclass(frozen=True)
class SyncResult:
    """Aggregated result of one sync invocation."""
    scanned: int
    appended: int
    migrated: bool = False
    minutes_archived: float = 0.0
    dedupe: DedupeResult | None = None
    cleanup: CleanupResult | None = None
    elapsed_seconds: float = 0.0
    status: str = ""
    error: str | None = None


@dataclass(frozen=True)
class RollResult:
    """Due-date roll-forward summary for recurring tasks."""
    scanned: int
    updated: int
    status: str = ""
    error: str | None = None


@dataclass(frozen=True)
class FlaggedTask:
    """A weekly-or-longer recurring task whose due date falls on a weekday."""
    row_number: int
    task: str
    category: str
    due_date: str
    day_of_week: str
    recurrence: str
    recurrence_days: int
    owner: str


@dataclass(frozen=True)
class WeekdayReport:
    flagged: list[FlaggedTask] = field(default_factory=list)
    logs: list[str] = field(default_factory=list)
    error: str | None = None


@dataclass(frozen=True)
class PlannedTask:
    """One row of the day planner view."""
    row_number: int
    task: str
    score: float
    importance: str
    category: str
    ect_raw: str
    ect_minutes: int
    due_date: str  # yyyy-MM-dd, "" when unknown
    day: str  # Mon..Sun, "-" when unknown
    is_done: bool = False


@dataclass(frozen=True)
class DayPlan:
    owner: str = ""
    tasks: list[PlannedTask] = field(default_factory=list)
    error: str | None = None

    @property
    def total_minutes(self) -> int:
        return sum(t.ect_minutes for t in self.tasks)


@dataclass(frozen=True)
class FieldUpdateResult:
    """Outcome of a single-cell edit from the planner."""
    row_number: int
    field_name: str
    updated: bool = False
    status: str = ""
    error: str | None = None


@dataclass(frozen=True)
class FlaggedCell:
    """A live cell whose text does not follow the expected format."""
    row_number: int
    header: str
    value: str


@dataclass(frozen=True)
class FormatResult:
    """ECT / Recurrence normalization summary."""
    scanned: int
    updated: int
    flagged: list[FlaggedCell] = field(default_factory=list)
    status: str = ""
    error: str | None = None
