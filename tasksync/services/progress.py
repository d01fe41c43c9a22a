from __future__ import annotations

import sys
from typing import Any

from tqdm import tqdm
from tqdm.std import tqdm as TqdmType

"""Progress display service with tqdm (TTY only).

Archive validation and deduplication scan every row in one pass. For large
archives a progress bar keeps the user informed; in non-TTY environments
(CI, scheduled runs) the bar is disabled to avoid ANSI control sequence
spam.

The display shows:
- Row progress for long scans (ProgressTracker)
- Phase indicators for the steps of a sync (PhaseIndicator)
"""

__all__ = [
    "ProgressTracker",
    "is_tty_enabled",
    "PhaseIndicator",
]


def is_tty_enabled() -> bool:
    """Check if TTY output is enabled.

    Returns:
        True if stdout is a TTY and progress should be displayed, False otherwise
    """
    return sys.stdout.isatty()


class ProgressTracker:
    """Row progress bar for table scans."""

    def __init__(self, total_rows: int, *, description: str = "Scanning rows") -> None:
        """Initialize progress tracker.

        Args:
            total_rows: Total number of rows to scan
            description: Description for the progress bar
        """
        self.total_rows = total_rows
        self.description = description
        self.current_row = 0

        # Create tqdm instance only if TTY is enabled
        self.enabled = is_tty_enabled()
        self.pbar: TqdmType[Any] | None
        if self.enabled:
            self.pbar = tqdm(
                total=total_rows,
                desc=description,
                unit="row",
                disable=False,
                leave=False,
                position=0,
                ncols=80,
                ascii=True,
            )
        else:
            self.pbar = None

    def advance(self, rows: int = 1) -> None:
        self.current_row += rows
        if self.enabled and self.pbar is not None:
            self.pbar.update(rows)

    def set_postfix(self, **kwargs: Any) -> None:
        """Set postfix information (stats) on the progress bar."""
        if self.enabled and self.pbar is not None:
            self.pbar.set_postfix(**kwargs)

    def close(self) -> None:
        """Close the progress bar."""
        if self.enabled and self.pbar is not None:
            self.pbar.close()
            self.pbar = None

    def __enter__(self) -> ProgressTracker:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()


class PhaseIndicator:
    """Simple step indicator for the phases of a sync run.

    Phases are short, so a one-line print per phase is enough.
    """

    def __init__(self, total_phases: int) -> None:
        self.total_phases = total_phases
        self.current_phase = 0
        self.enabled = is_tty_enabled()

    def start_phase(self, name: str) -> None:
        self.current_phase += 1
        if self.enabled:
            print(f"  Step {self.current_phase}/{self.total_phases}: {name}", end="", flush=True)

    def finish_phase(self, success: bool = True, rows: int = 0) -> None:
        if self.enabled:
            status = "✓" if success else "✗"
            if rows > 0:
                print(f" - {rows} rows {status}")
            else:
                print(f" {status}")
