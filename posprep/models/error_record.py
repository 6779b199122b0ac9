from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime

"""ErrorRecord model for the structured error log.

Each record describes one recovered failure: a file that could not be
imported, a group that failed to combine, a report that could not be
exported. ``row`` is -1 for file- or group-level errors where no single row
is to blame.
"""

__all__ = [
    "ErrorRecord",
]


@dataclass(frozen=True)
class ErrorRecord:
    """Structured error record for JSON Lines logging.

    Attributes:
        timestamp: ISO8601 UTC timestamp with 'Z' suffix
        stage: Pipeline stage (backup, combine, match, labels)
        file: File name involved, or "" when not file-specific
        group: Group key involved, or "" when not group-specific
        row: Row number (1-based) or -1 when unknown
        error_type: Error classification in UPPER_SNAKE_CASE format
        message: Human readable description
    """
    timestamp: str  # ISO8601 UTC
    stage: str
    file: str
    group: str
    row: int
    error_type: str  # UPPER_SNAKE
    message: str

    @staticmethod
    def create(
        stage: str,
        error_type: str,
        message: str,
        *,
        file: str = "",
        group: str = "",
        row: int = -1,
    ) -> ErrorRecord:
        """Create a new ErrorRecord stamped with the current UTC time."""
        ts = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        return ErrorRecord(
            timestamp=ts,
            stage=stage,
            file=file,
            group=group,
            row=row,
            error_type=error_type,
            message=message,
        )

    def to_json_line(self) -> str:
        """Serialize to a single JSON line with exactly the dataclass keys."""
        return json.dumps(asdict(self), ensure_ascii=False)
