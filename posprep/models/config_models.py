from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

"""Configuration dataclasses.

``PipelineConfig`` is the session object for one run: it replaces what
would otherwise be ambient state (current config file, template paths, log
location) and is passed explicitly to the orchestrator and the stages.
"""

__all__ = [
    "ALL_SUPPORTED",
    "SUPPORTED_EXTENSIONS",
    "CombineOptions",
    "BackupConfig",
    "CombineConfig",
    "MatchConfig",
    "LabelConfig",
    "PipelineConfig",
]

ALL_SUPPORTED = "all"
# Order matters: with "all", the first extension wins for duplicated base names
SUPPORTED_EXTENSIONS = (".xlsx", ".xls", ".csv")


@dataclass(frozen=True)
class CombineOptions:
    """Transformations applied while combining one group."""
    exclude_headers: bool = False
    insert_blank_rows: bool = False
    duplicate_by_quantity: bool = False
    normalize_quantity: bool = False
    reverse_rows: bool = False


@dataclass(frozen=True)
class BackupConfig:
    enabled: bool = False
    sources: list[Path] = field(default_factory=list)
    destination: Path | None = None


@dataclass(frozen=True)
class CombineConfig:
    enabled: bool = True
    input_folders: list[Path] = field(default_factory=list)
    destination: Path | None = None
    extension: str = ALL_SUPPORTED  # "all" or one of SUPPORTED_EXTENSIONS
    output_format: str = "xlsx"  # xlsx | csv
    options: CombineOptions = field(default_factory=CombineOptions)


@dataclass(frozen=True)
class MatchConfig:
    enabled: bool = True
    price_list: Path | None = None
    combined_directory: Path | None = None  # defaults to combine.destination
    output_directory: Path | None = None
    output_format: str = "xlsx"


@dataclass(frozen=True)
class LabelConfig:
    enabled: bool = False
    templates: list[Path] = field(default_factory=list)
    output_directory: Path | None = None


@dataclass(frozen=True)
class PipelineConfig:
    """Root configuration object for one run."""
    log_directory: Path = Path("./logs")
    backup: BackupConfig = field(default_factory=BackupConfig)
    combine: CombineConfig = field(default_factory=CombineConfig)
    match: MatchConfig = field(default_factory=MatchConfig)
    labels: LabelConfig = field(default_factory=LabelConfig)
    source_path: Path | None = None  # config file the values came from
