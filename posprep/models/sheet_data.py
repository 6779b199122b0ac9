from __future__ import annotations

from dataclasses import dataclass, field

"""Row-level data model.

A SpreadsheetRow is a plain ``dict[str, str]``: keys are column names in
column order (dict insertion order), values are cell text. Empty cells are
``""``, never missing keys.
"""

__all__ = [
    "BLANK_MARKER",
    "SpreadsheetRow",
    "SheetData",
    "make_blank_row",
    "project_row",
    "positional_columns",
]

BLANK_MARKER = "BLANK"

SpreadsheetRow = dict[str, str]


@dataclass
class SheetData:
    """Imported rows of one spreadsheet together with their column order."""
    columns: list[str]
    rows: list[SpreadsheetRow] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.rows)


def make_blank_row(columns: list[str]) -> SpreadsheetRow:
    """Synthetic separator row with every column set to ``BLANK``."""
    return {col: BLANK_MARKER for col in columns}


def project_row(row: SpreadsheetRow, columns: list[str]) -> SpreadsheetRow:
    """Copy ``row`` onto ``columns``; absent columns become empty, extra ones are dropped."""
    return {col: row.get(col, "") for col in columns}


def positional_columns(width: int) -> list[str]:
    return [f"Column{i}" for i in range(1, width + 1)]
