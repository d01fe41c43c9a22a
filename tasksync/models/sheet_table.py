from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

"""SheetTable model: one worksheet as a header row plus data rows.

Both the live task list and the archive are handled as full snapshots of
this shape. Services never edit a table in place; they return new tables
that the caller writes back in one go.
"""

__all__ = [
    "SYNC_TIMESTAMP_HEADER",
    "LEGACY_SYNC_HEADERS",
    "SheetTable",
    "archive_headers_for",
]

# アーカイブ先頭列 (旧名 "Sync Date" からの移行に対応)
SYNC_TIMESTAMP_HEADER = "Sync Timestamp"
LEGACY_SYNC_HEADERS: tuple[str, ...] = ("Sync Date",)


@dataclass
class SheetTable:
    """Header row plus data rows of a single sheet.

    Row positions are 0-based here; the sheet row number of ``rows[i]`` is
    ``i + 2`` (row 1 holds the headers).
    """
    headers: list[str] = field(default_factory=list)
    rows: list[list[Any]] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.rows)

    @property
    def is_empty(self) -> bool:
        return not self.rows

    @property
    def width(self) -> int:
        return max([len(self.headers), *(len(r) for r in self.rows)], default=0)

    def copy(self) -> SheetTable:
        return SheetTable(headers=list(self.headers), rows=[list(r) for r in self.rows])


def archive_headers_for(source_headers: list[str]) -> list[str]:
    """Expected archive header row for the given live headers."""
    return [SYNC_TIMESTAMP_HEADER, *(h for h in source_headers if str(h).strip() != "")]
