from __future__ import annotations

import json
import os
from collections.abc import Mapping
from dataclasses import replace
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from ..models.config_models import (
    DEFAULT_OWNERS,
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

"""Config loader.

Responsibilities:
- Load YAML config/tasksync.yml
- Validate against the bundled JSON schema (config_schema.json)
- Apply defaults (every key is optional, timezone=UTC)
- Apply environment overrides (TASKSYNC_WORKBOOK, TASKSYNC_TIMEZONE)
"""

__all__ = [
    "ConfigError",
    "DEFAULT_CONFIG_PATH",
    "SCHEMA_PATH",
    "ENV_CONFIG",
    "ENV_WORKBOOK",
    "ENV_TIMEZONE",
    "config_path_from_env",
    "load_config",
    "build_config",
    "apply_env_overrides",
]

# tasksync/config/loader.py -> tasksync/config/config_schema.json
SCHEMA_PATH = Path(__file__).parent / "config_schema.json"
DEFAULT_CONFIG_PATH = Path("config/tasksync.yml")

ENV_CONFIG = "TASKSYNC_CONFIG"
ENV_WORKBOOK = "TASKSYNC_WORKBOOK"
ENV_TIMEZONE = "TASKSYNC_TIMEZONE"


class ConfigError(Exception):
    pass


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against the JSON schema.

    Raises:
        ConfigError: schema file missing or broken, or the data violates it
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")
    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        location = "/".join(str(p) for p in e.absolute_path)
        where = f" at '{location}'" if location else ""
        raise ConfigError(f"config validation failed{where}: {e.message}") from e


def _check_timezone(tz: str) -> str:
    try:
        ZoneInfo(tz)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ConfigError(f"unknown timezone: {tz}") from e
    return tz


def build_config(data: Mapping[str, Any]) -> AppConfig:
    """Build AppConfig from already-validated mapping data."""
    sheets_raw = data.get("sheets") or {}
    sync_raw = data.get("sync") or {}
    dedupe_raw = data.get("dedupe") or {}
    cleanup_raw = data.get("cleanup") or {}
    planner_raw = data.get("planner") or {}
    defaults = AppConfig()

    owners_raw = data.get("owners")
    owners = (
        tuple(OwnerConfig(key=o["key"], name=o["name"], marker=o["marker"]) for o in owners_raw)
        if owners_raw
        else DEFAULT_OWNERS
    )
    keys = [o.key for o in owners]
    if len(set(keys)) != len(keys):
        raise ConfigError(f"duplicate owner keys: {keys}")

    return AppConfig(
        workbook=data.get("workbook", defaults.workbook),
        sheets=SheetNames(
            live=sheets_raw.get("live", defaults.sheets.live),
            archive=sheets_raw.get("archive", defaults.sheets.archive),
        ),
        timezone=_check_timezone(data.get("timezone", "UTC")),
        sync=SyncSettings(
            eligibility=EligibilityMode(sync_raw.get("eligibility", EligibilityMode.COMPLETED.value)),
        ),
        dedupe=DedupeSettings(
            identity_key=IdentityKeyMode(dedupe_raw.get("identity_key", IdentityKeyMode.TASK_COMPLETION.value)),
            issue_preview_limit=dedupe_raw.get("issue_preview_limit", defaults.dedupe.issue_preview_limit),
        ),
        cleanup=CleanupSettings(
            enabled=cleanup_raw.get("enabled", True),
            clear_incident_fields_on_reset=cleanup_raw.get("clear_incident_fields_on_reset", False),
        ),
        planner=PlannerSettings(
            days_to_plan=planner_raw.get("days_to_plan", defaults.planner.days_to_plan),
            include_overdue=planner_raw.get("include_overdue", defaults.planner.include_overdue),
            show_completed=planner_raw.get("show_completed", defaults.planner.show_completed),
        ),
        owners=owners,
        field_aliases={k: tuple(v) for k, v in (data.get("field_aliases") or {}).items()},
    )


def apply_env_overrides(config: AppConfig, environ: Mapping[str, str] | None = None) -> AppConfig:
    """Workbook path and timezone from the environment win over the file."""
    env = os.environ if environ is None else environ
    workbook = env.get(ENV_WORKBOOK)
    if workbook:
        config = replace(config, workbook=workbook)
    tz = env.get(ENV_TIMEZONE)
    if tz:
        config = replace(config, timezone=_check_timezone(tz))
    return config


def config_path_from_env(default: Path = DEFAULT_CONFIG_PATH) -> Path:
    value = os.environ.get(ENV_CONFIG)
    return Path(value) if value else default


def load_config(path: Path) -> AppConfig:
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"config root must be a mapping: {path}")

    _validate_config_schema(data)
    return apply_env_overrides(build_config(data))
