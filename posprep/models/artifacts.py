from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from .sheet_data import SpreadsheetRow

"""Combined artifact model and the file naming rules for every output."""

__all__ = [
    "CombinedArtifact",
    "COMBINED_PREFIX",
    "MATCHED_PREFIX",
    "MISSING_REPORT_NAME",
    "combined_name",
    "matched_name",
]

COMBINED_PREFIX = "Combined_Spreadsheet_"
MATCHED_PREFIX = "GS"
MISSING_REPORT_NAME = "GS_Missing"


def combined_name(key: str) -> str:
    return f"{COMBINED_PREFIX}{key}"


def matched_name(key: str) -> str:
    return f"{MATCHED_PREFIX}{key}"


@dataclass
class CombinedArtifact:
    """Merged rows of one group, identified by the group key."""
    key: str
    columns: list[str]
    rows: list[SpreadsheetRow] = field(default_factory=list)
    path: Path | None = None  # set once written to / read from disk

    @property
    def name(self) -> str:
        return combined_name(self.key)
