from __future__ import annotations

import sys
from collections.abc import Callable
from typing import Any

from tqdm import tqdm
from tqdm.std import tqdm as TqdmType

"""Progress reporting.

Two channels:
- an optional callback ``(completed, total)`` invoked after each unit of
  work, for embedding the stages in another front end
- a tqdm bar, shown only when stdout is a TTY so CI logs stay free of
  control sequences
"""

__all__ = [
    "ProgressCallback",
    "ProgressTracker",
    "is_tty_enabled",
    "percent",
]

ProgressCallback = Callable[[int, int], None]


def is_tty_enabled() -> bool:
    """True if stdout is a TTY and a progress bar should be displayed."""
    return sys.stdout.isatty()


def percent(completed: int, total: int) -> int:
    """Completed share as a whole percentage (0 for an empty workload)."""
    if total <= 0:
        return 0
    return int(completed * 100 / total)


class ProgressTracker:
    """Tracks completed units of work for one stage."""

    def __init__(
        self,
        total: int,
        *,
        description: str = "Processing",
        unit: str = "group",
        callback: ProgressCallback | None = None,
    ) -> None:
        self.total = total
        self.description = description
        self.completed = 0
        self.callback = callback

        self.enabled = is_tty_enabled()
        self.pbar: TqdmType[Any] | None
        if self.enabled:
            self.pbar = tqdm(
                total=total,
                desc=description,
                unit=unit,
                disable=False,
                leave=True,
                position=0,
                ncols=80,
                ascii=True,
            )
        else:
            self.pbar = None

    def start(self, label: str) -> None:
        """Show which unit is being processed."""
        if self.enabled and self.pbar is not None:
            self.pbar.set_description(f"{self.description} ({label})")

    def advance(self) -> None:
        """Mark one unit finished and notify the callback."""
        self.completed += 1
        if self.enabled and self.pbar is not None:
            self.pbar.update(1)
            self.pbar.set_description(self.description)
        if self.callback is not None:
            self.callback(self.completed, self.total)

    @property
    def percent(self) -> int:
        return percent(self.completed, self.total)

    def set_postfix(self, **kwargs: Any) -> None:
        if self.enabled and self.pbar is not None:
            self.pbar.set_postfix(**kwargs)

    def close(self) -> None:
        if self.enabled and self.pbar is not None:
            self.pbar.close()
            self.pbar = None

    def __enter__(self) -> ProgressTracker:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
