from __future__ import annotations

from collections.abc import Iterable
from datetime import UTC, datetime
from pathlib import Path

from ..models.validation_issue import ValidationIssue

"""Validation issue log (JSON Lines).

- Fixed schema per line: {"row", "task", "code", "message"}
- One file per run: `logs/issues-YYYYMMDD-HHMMSS.log` (UTC)
- Issues are buffered and written in one go by flush(); nothing is created
  when there is nothing to write
"""

__all__ = [
    "ValidationIssue",
    "IssueLogBuffer",
    "LOGS_DIR",
    "TIMESTAMP_FMT",
]

LOGS_DIR = Path("./logs")
TIMESTAMP_FMT = "%Y%m%d-%H%M%S"


class IssueLogBuffer:
    """In-memory buffer for validation issues. Flush writes JSON Lines.

    - ファイルパスは初回アクセスで決定
    - スレッド安全性不要 (シリアル実行)
    """
    def __init__(self, logs_dir: Path | None = None) -> None:
        self._issues: list[ValidationIssue] = []
        self._file_path: Path | None = None
        self._logs_dir = logs_dir if logs_dir is not None else LOGS_DIR

    @property
    def file_path(self) -> Path:
        if self._file_path is None:
            self._logs_dir.mkdir(parents=True, exist_ok=True)
            stamp = datetime.now(UTC).strftime(TIMESTAMP_FMT)
            self._file_path = self._logs_dir / f"issues-{stamp}.log"
        return self._file_path

    def append(self, issue: ValidationIssue) -> None:
        self._issues.append(issue)

    def extend(self, issues: Iterable[ValidationIssue]) -> None:
        self._issues.extend(issues)

    def __len__(self) -> int:  # pragma: no cover (trivial)
        return len(self._issues)

    def flush(self) -> Path | None:
        """Append buffered issues to the log file; None when the buffer is empty."""
        if not self._issues:
            return None
        fp = self.file_path
        with fp.open("a", encoding="utf-8") as f:
            for issue in self._issues:
                f.write(issue.to_json_line() + "\n")
        self._issues.clear()
        return fp
