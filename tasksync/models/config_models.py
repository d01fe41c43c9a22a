from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

"""Config dataclasses for the task archive sync tool.

These are the typed settings handed to every service. The YAML loader in
tasksync/config/loader.py builds them; tests construct them directly, so
every field has a default.
"""


class EligibilityMode(Enum):
    """Which live rows are copied into the archive.

    - COMPLETED: Task is set and (no completion column exists, or any
      completion column is filled)
    - TASK_ONLY: Task is set
    """
    COMPLETED = "completed"
    TASK_ONLY = "task_only"


class IdentityKeyMode(Enum):
    """Composition of the archive identity key (joined with "|")."""
    TASK_COMPLETION = "task_completion"
    TASK_DUE = "task_due"
    TASK = "task"


@dataclass(frozen=True)
class OwnerConfig:
    """One of the people sharing the task list.

    The marker is the icon used in column headers (e.g. "Ownership🐷",
    "CompletionDate🐷").
    """
    key: str
    name: str
    marker: str


DEFAULT_OWNERS: tuple[OwnerConfig, ...] = (
    OwnerConfig(key="pig", name="Billy", marker="🐷"),
    OwnerConfig(key="cat", name="Karen", marker="🐱"),
)


@dataclass(frozen=True)
class SheetNames:
    live: str = "Prioritization"
    archive: str = "TaskArchive"


@dataclass(frozen=True)
class SyncSettings:
    eligibility: EligibilityMode = EligibilityMode.COMPLETED


@dataclass(frozen=True)
class DedupeSettings:
    identity_key: IdentityKeyMode = IdentityKeyMode.TASK_COMPLETION
    issue_preview_limit: int = 10  # 通知に表示する最大件数


@dataclass(frozen=True)
class CleanupSettings:
    enabled: bool = True
    # 繰り返しタスクのリセット時に IncidentOwner も空にするか
    clear_incident_fields_on_reset: bool = False


@dataclass(frozen=True)
class PlannerSettings:
    """Defaults for the day planner view."""
    days_to_plan: int = 7  # 今日を含む日数
    include_overdue: bool = True
    show_completed: bool = False


@dataclass(frozen=True)
class AppConfig:
    """Root configuration object."""
    workbook: str = "./data/tasks.xlsx"
    sheets: SheetNames = field(default_factory=SheetNames)
    timezone: str = "UTC"
    sync: SyncSettings = field(default_factory=SyncSettings)
    dedupe: DedupeSettings = field(default_factory=DedupeSettings)
    cleanup: CleanupSettings = field(default_factory=CleanupSettings)
    planner: PlannerSettings = field(default_factory=PlannerSettings)
    owners: tuple[OwnerConfig, ...] = DEFAULT_OWNERS
    field_aliases: dict[str, tuple[str, ...]] = field(default_factory=dict)  # 列別名の上書き
