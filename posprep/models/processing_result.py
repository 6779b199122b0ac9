from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path

"""Result models for each stage and for the whole pipeline run."""

__all__ = [
    "StageStatus",
    "GroupStat",
    "CombineResult",
    "MatchCounts",
    "MatchResult",
    "BackupResult",
    "LabelResult",
    "StageOutcome",
    "PipelineResult",
]


class StageStatus(Enum):
    """Outcome of one pipeline stage.

    - SKIPPED: disabled in config or on the command line
    - SUCCESS: every unit of work succeeded
    - PARTIAL: completed, but some groups/files/folders failed
    - FAILED: aborted (configuration error) or nothing succeeded
    """
    SKIPPED = "skipped"
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"


@dataclass(frozen=True)
class GroupStat:
    """Per-group combine statistics."""
    key: str
    status: str  # success/failed
    source_files: int
    rows: int
    elapsed_seconds: float
    output_path: Path | None = None
    error: str | None = None


@dataclass
class CombineResult:
    succeeded_groups: list[str] = field(default_factory=list)
    failed_groups: list[str] = field(default_factory=list)
    group_stats: list[GroupStat] = field(default_factory=list)
    start_time: datetime | None = None
    end_time: datetime | None = None

    @property
    def total_groups(self) -> int:
        return len(self.succeeded_groups) + len(self.failed_groups)

    @property
    def total_rows(self) -> int:
        return sum(s.rows for s in self.group_stats if s.status == "success")

    @property
    def output_paths(self) -> list[Path]:
        return [s.output_path for s in self.group_stats if s.output_path is not None]

    @property
    def elapsed_seconds(self) -> float:
        if self.start_time is None or self.end_time is None:
            return 0.0
        return (self.end_time - self.start_time).total_seconds()


@dataclass
class MatchCounts:
    matched: int = 0
    unmatched: int = 0
    blank: int = 0
    missing_id: int = 0
    groups_with_matches: int = 0
    groups_without_matches: int = 0


@dataclass
class MatchResult:
    counts: MatchCounts = field(default_factory=MatchCounts)
    matched_paths: list[Path] = field(default_factory=list)
    missing_report_path: Path | None = None
    failed_exports: list[str] = field(default_factory=list)
    groups: int = 0


@dataclass
class BackupResult:
    created: list[Path] = field(default_factory=list)
    failed_sources: list[Path] = field(default_factory=list)


@dataclass
class LabelResult:
    packages: list[Path] = field(default_factory=list)
    failed_sources: list[Path] = field(default_factory=list)


@dataclass(frozen=True)
class StageOutcome:
    name: str
    status: StageStatus
    detail: str = ""


@dataclass
class PipelineResult:
    stages: list[StageOutcome] = field(default_factory=list)
    combine: CombineResult | None = None
    match: MatchResult | None = None
    backup: BackupResult | None = None
    labels: LabelResult | None = None
    error_log_path: Path | None = None

    def status_of(self, name: str) -> StageStatus | None:
        for stage in self.stages:
            if stage.name == name:
                return stage.status
        return None
