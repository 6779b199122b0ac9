"""Domain models for posprep.

Rows, file groups, combined artifacts, price list records, configuration
and per-stage results.
"""

from .artifacts import CombinedArtifact
from .config_models import (
    BackupConfig,
    CombineConfig,
    CombineOptions,
    LabelConfig,
    MatchConfig,
    PipelineConfig,
)
from .error_record import ErrorRecord
from .file_group import FileGroup
from .sheet_data import SheetData, SpreadsheetRow
from .sku_record import MatchedOutputRow, SkuRecord

__all__ = [
    # Configuration models
    "BackupConfig",
    "CombineConfig",
    "CombineOptions",
    "LabelConfig",
    "MatchConfig",
    "PipelineConfig",
    # Processing models
    "CombinedArtifact",
    "ErrorRecord",
    "FileGroup",
    "MatchedOutputRow",
    "SheetData",
    "SkuRecord",
    "SpreadsheetRow",
]
