# Shared pytest fixtures
from __future__ import annotations

import tempfile
from collections.abc import Callable
from datetime import datetime
from pathlib import Path
from typing import Any

import pandas as pd
import pytest

from tasksync.logging.init import reset_logging
from tasksync.models.config_models import AppConfig
from tasksync.models.sheet_table import SheetTable

LIVE_HEADERS = [
    "Task",
    "Category",
    "Ownership🐷",
    "Ownership🐱",
    "ECT",
    "DueDate",
    "ReferenceDueDate",
    "Recurrence",
    "CompletionDate🐷",
    "CompletionDate🐱",
    "IncidentDate",
    "IncidentOwner",
]


def live_row(
    task: Any,
    *,
    category: Any = "Home",
    pig: Any = True,
    cat: Any = False,
    ect: Any = 30,
    due: Any = None,
    ref_due: Any = None,
    recurrence: Any = None,
    done_pig: Any = None,
    done_cat: Any = None,
    incident: Any = None,
    incident_owner: Any = None,
) -> list[Any]:
    """Row in LIVE_HEADERS order."""
    return [task, category, pig, cat, ect, due, ref_due, recurrence, done_pig, done_cat, incident, incident_owner]


@pytest.fixture(autouse=True)
def _fresh_logging():
    # capsys 差し替え後の stdout にハンドラを結び直す
    reset_logging()
    yield
    reset_logging()


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        monkeypatch.delenv("TASKSYNC_CONFIG", raising=False)
        monkeypatch.delenv("TASKSYNC_WORKBOOK", raising=False)
        monkeypatch.delenv("TASKSYNC_TIMEZONE", raising=False)
        yield p


@pytest.fixture()
def sample_config_yaml() -> str:
    return """workbook: ./data/tasks.xlsx
timezone: UTC
sheets:
  live: Prioritization
  archive: TaskArchive
sync:
  eligibility: completed
dedupe:
  identity_key: task_completion
  issue_preview_limit: 10
cleanup:
  enabled: true
  clear_incident_fields_on_reset: false
owners:
  - key: pig
    name: Billy
    marker: "🐷"
  - key: cat
    name: Karen
    marker: "🐱"
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "tasksync.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


@pytest.fixture()
def make_workbook(temp_workdir: Path) -> Callable[..., Path]:
    """Write sheets ({name: [header, *rows]}) to data/tasks.xlsx."""

    def _make(sheets: dict[str, list[list[Any]]], name: str = "tasks.xlsx") -> Path:
        path = temp_workdir / "data" / name
        with pd.ExcelWriter(path, engine="openpyxl") as writer:
            for sheet_name, grid in sheets.items():
                pd.DataFrame(grid).to_excel(writer, sheet_name=sheet_name, header=False, index=False)
        return path

    return _make


@pytest.fixture()
def config() -> AppConfig:
    return AppConfig()


@pytest.fixture()
def fixed_clock() -> Callable[[], datetime]:
    return lambda: datetime(2026, 1, 21, 9, 30, 0)


@pytest.fixture()
def live_table() -> SheetTable:
    """Live sheet with one finished one-off, one finished weekly, one open task."""
    return SheetTable(
        headers=list(LIVE_HEADERS),
        rows=[
            live_row("Clean Kitchen", done_pig=datetime(2026, 1, 20), ect="1 hour"),
            live_row(
                "Water Plants",
                cat=True,
                pig=False,
                recurrence="Weekly",
                due=datetime(2026, 1, 20),
                ref_due=datetime(2026, 1, 13),
                done_cat=datetime(2026, 1, 20),
                ect=15,
            ),
            live_row("Pay Rent", due=datetime(2026, 2, 1)),
        ],
    )


@pytest.fixture()
def live_headers() -> list[str]:
    return list(LIVE_HEADERS)


@pytest.fixture()
def row_factory() -> Callable[..., list[Any]]:
    return live_row
