"""Domain models for the task archive sync tool.

This package contains the configuration, table and result models used
throughout the application.
"""

from .config_models import (
    AppConfig,
    CleanupSettings,
    DedupeSettings,
    EligibilityMode,
    IdentityKeyMode,
    OwnerConfig,
    PlannerSettings,
    SheetNames,
    SyncSettings,
)
from .processing_result import (
    CleanupResult,
    DayPlan,
    DedupeResult,
    FieldUpdateResult,
    FlaggedCell,
    FlaggedTask,
    FormatResult,
    MigrationResult,
    PlannedTask,
    RollResult,
    SyncResult,
    WeekdayReport,
)
from .sheet_table import SheetTable
from .validation_issue import ValidationIssue

__all__ = [
    # Configuration models
    "AppConfig",
    "CleanupSettings",
    "DedupeSettings",
    "EligibilityMode",
    "IdentityKeyMode",
    "OwnerConfig",
    "PlannerSettings",
    "SheetNames",
    "SyncSettings",
    # Table / issue models
    "SheetTable",
    "ValidationIssue",
    # Result models
    "CleanupResult",
    "DayPlan",
    "DedupeResult",
    "FieldUpdateResult",
    "FlaggedCell",
    "FlaggedTask",
    "FormatResult",
    "MigrationResult",
    "PlannedTask",
    "RollResult",
    "SyncResult",
    "WeekdayReport",
]
