from __future__ import annotations

from typing import Protocol

from ..models.sheet_table import SheetTable

"""Table repository interface.

Services never touch the workbook directly. They receive repositories that
load and save full sheet snapshots:

- load() returns None when the sheet does not exist (no exception)
- save() replaces the whole sheet with the given table

InMemoryTableRepository backs the tests and dry runs; the workbook adapter
lives in tasksync/excel/workbook.py.
"""

__all__ = [
    "TableRepository",
    "InMemoryTableRepository",
]


class TableRepository(Protocol):
    name: str

    def load(self) -> SheetTable | None: ...

    def save(self, table: SheetTable) -> None: ...


class InMemoryTableRepository:
    """In-memory sheet. Loads and saves copies."""

    def __init__(self, name: str, table: SheetTable | None = None) -> None:
        self.name = name
        self._table = table.copy() if table is not None else None
        self.save_count = 0

    @property
    def table(self) -> SheetTable | None:
        return self._table

    def load(self) -> SheetTable | None:
        return self._table.copy() if self._table is not None else None

    def save(self, table: SheetTable) -> None:
        self._table = table.copy()
        self.save_count += 1
