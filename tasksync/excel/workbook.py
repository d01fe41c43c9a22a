from __future__ import annotations

import zipfile
from collections.abc import Iterable
from datetime import datetime
from pathlib import Path
from typing import Any

import pandas as pd

from ..models.sheet_table import SheetTable
from ..parsing.cells import is_blank

"""Workbook (.xlsx) adapter for the live and archive sheets.

Row 1 of every sheet is the header row; data rows start at row 2.

Reads use pandas with header=None / dtype=object so cell values keep their
Python types (bool stays bool, dates stay datetimes). Writes replace the
whole sheet through openpyxl (mode="a", if_sheet_exists="replace"), which
matches the "read full snapshot, write full snapshot" model of the services.
A replaced sheet moves to the end of the workbook tab order.
"""

__all__ = [
    "WorkbookError",
    "read_workbook_sheets",
    "frame_to_table",
    "table_to_frame",
    "write_sheet",
    "ExcelSheetRepository",
]


class WorkbookError(Exception):
    """Raised when the workbook cannot be read or written."""


def read_workbook_sheets(path: Path, target_sheets: Iterable[str] | None = None) -> dict[str, pd.DataFrame]:
    """Read a workbook returning raw DataFrames keyed by sheet name.

    Parameters
    ----------
    path: workbook path
    target_sheets: sheet names to read (None = all sheets)
    """
    wanted = set(target_sheets) if target_sheets is not None else None
    frames: dict[str, pd.DataFrame] = {}
    try:
        with pd.ExcelFile(path, engine="openpyxl") as xls:
            for name in xls.sheet_names:
                if wanted is not None and str(name) not in wanted:
                    continue
                # ヘッダなしで生読み (1行目をヘッダとして後で適用)
                frames[str(name)] = xls.parse(name, header=None, dtype=object)
    except (OSError, ValueError, zipfile.BadZipFile) as e:
        raise WorkbookError(f"cannot read workbook {path}: {e}") from e
    return frames


def _clean_cell(value: Any) -> Any:
    if is_blank(value) and not isinstance(value, str):
        return None
    if isinstance(value, pd.Timestamp):
        return value.to_pydatetime()
    return value


def frame_to_table(df: pd.DataFrame) -> SheetTable:
    """Convert a raw DataFrame (row 1 = headers) into a SheetTable.

    Steps:
    1. Empty frame -> empty table
    2. First row becomes the header row (stripped strings, blanks -> "")
    3. Remaining rows become data rows; NaN -> None
    4. Fully blank rows are skipped
    """
    if df.shape[0] == 0:
        return SheetTable()
    headers = ["" if is_blank(h) else str(h).strip() for h in df.iloc[0].tolist()]
    rows: list[list[Any]] = []
    for _, raw in df.iloc[1:].iterrows():
        values = [_clean_cell(v) for v in raw.tolist()]
        if all(is_blank(v) for v in values):
            continue
        rows.append(values)
    return SheetTable(headers=headers, rows=rows)


def _excel_cell(value: Any) -> Any:
    # Excel はタイムゾーン付き日時を保持できない
    if isinstance(value, datetime) and value.tzinfo is not None:
        return value.replace(tzinfo=None)
    return value


def table_to_frame(table: SheetTable) -> pd.DataFrame:
    """Header row + data rows as a header-less DataFrame ready for to_excel."""
    width = table.width
    grid = [list(table.headers) + [None] * (width - len(table.headers))]
    for row in table.rows:
        grid.append([_excel_cell(v) for v in row] + [None] * (width - len(row)))
    return pd.DataFrame(grid, dtype=object)


def write_sheet(path: Path, sheet_name: str, table: SheetTable) -> None:
    """Replace ``sheet_name`` in the workbook with ``table`` (creates the file if needed)."""
    frame = table_to_frame(table)
    try:
        if path.exists():
            with pd.ExcelWriter(path, engine="openpyxl", mode="a", if_sheet_exists="replace") as writer:
                frame.to_excel(writer, sheet_name=sheet_name, header=False, index=False)
        else:
            path.parent.mkdir(parents=True, exist_ok=True)
            with pd.ExcelWriter(path, engine="openpyxl") as writer:
                frame.to_excel(writer, sheet_name=sheet_name, header=False, index=False)
    except (OSError, ValueError) as e:
        raise WorkbookError(f"cannot write sheet '{sheet_name}' to {path}: {e}") from e


class ExcelSheetRepository:
    """TableRepository backed by one sheet of a workbook file."""

    def __init__(self, path: Path, sheet_name: str) -> None:
        self.path = Path(path)
        self.name = sheet_name

    def load(self) -> SheetTable | None:
        if not self.path.exists():
            return None
        frames = read_workbook_sheets(self.path, target_sheets=[self.name])
        if self.name not in frames:
            return None
        return frame_to_table(frames[self.name])

    def save(self, table: SheetTable) -> None:
        write_sheet(self.path, self.name, table)

    def __repr__(self) -> str:  # pragma: no cover (trivial)
        return f"ExcelSheetRepository(path={self.path!s}, sheet={self.name!r})"
