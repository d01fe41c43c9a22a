from __future__ import annotations

import json
from dataclasses import asdict, dataclass

"""ValidationIssue model for archive integrity reporting.

Issues are informational only: they are collected while the archive is
deduplicated, shown to the user and written to the JSON Lines issue log,
but a row is never deleted or corrected because of them.
"""

__all__ = [
    "ValidationIssue",
]


@dataclass(frozen=True)
class ValidationIssue:
    """One integrity finding on one archive row.

    Attributes:
        row: Sheet row number (1-based, header is row 1)
        task: Task name of the row ("" when missing)
        code: Issue classification in UPPER_SNAKE_CASE format
        message: Human-readable description
    """
    row: int
    task: str
    code: str
    message: str

    def to_json_line(self) -> str:
        """Serialize to a single JSON Lines record (fixed keys)."""
        return json.dumps(asdict(self), ensure_ascii=False)
