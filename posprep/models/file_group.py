from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

"""FileGroup: files sharing the number embedded in their names."""

__all__ = [
    "FileGroup",
    "group_sort_key",
]


def group_sort_key(key: str) -> tuple[int, str]:
    """Numeric order; "01" and "1" stay distinct and sort by their text."""
    return int(key), key


@dataclass
class FileGroup:
    """Files to be combined into one artifact.

    ``key`` is the extracted number exactly as written in the file name;
    keys are compared numerically. ``files`` keeps scan order, with the
    override file (if any) already in first position.
    """
    key: str
    files: list[Path] = field(default_factory=list)
    override_file: Path | None = None

    @property
    def sort_key(self) -> tuple[int, str]:
        return group_sort_key(self.key)

    def __len__(self) -> int:
        return len(self.files)
