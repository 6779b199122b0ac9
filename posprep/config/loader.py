from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from ..models.config_models import (
    ALL_SUPPORTED,
    BackupConfig,
    CombineConfig,
    CombineOptions,
    LabelConfig,
    MatchConfig,
    PipelineConfig,
)

"""Config loader.

Responsibilities:
- Load the YAML config file
- Validate it against ``config_schema.json`` (shipped next to this module)
- Apply defaults for missing sections and keys
- Resolve relative paths against the working directory, as given
"""

__all__ = [
    "ConfigError",
    "DEFAULT_CONFIG_PATH",
    "SCHEMA_PATH",
    "load_config",
    "parse_config",
]

SCHEMA_PATH = Path(__file__).with_name("config_schema.json")
DEFAULT_CONFIG_PATH = Path("config/posprep.yml")


class ConfigError(Exception):
    pass


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against the JSON schema.

    Raises:
        ConfigError: schema file missing/invalid, or the data violates it
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")

    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        raise ConfigError(f"config validation failed: {e.message}") from e


def _path(value: str | None) -> Path | None:
    return Path(value) if value else None


def _paths(values: list[str] | None) -> list[Path]:
    return [Path(v) for v in values or []]


def _normalize_extension(value: str) -> str:
    value = value.lower()
    if value == ALL_SUPPORTED or value.startswith("."):
        return value
    return f".{value}"


def parse_config(data: dict[str, Any], source_path: Path | None = None) -> PipelineConfig:
    """Build a PipelineConfig from already parsed (and validated) data."""
    backup_raw = data.get("backup", {})
    combine_raw = data.get("combine", {})
    match_raw = data.get("match", {})
    labels_raw = data.get("labels", {})
    options_raw = combine_raw.get("options", {})

    backup = BackupConfig(
        enabled=backup_raw.get("enabled", bool(backup_raw.get("sources"))),
        sources=_paths(backup_raw.get("sources")),
        destination=_path(backup_raw.get("destination")),
    )
    combine = CombineConfig(
        enabled=combine_raw.get("enabled", True),
        input_folders=_paths(combine_raw.get("input_folders")),
        destination=_path(combine_raw.get("destination")),
        extension=_normalize_extension(combine_raw.get("extension", ALL_SUPPORTED)),
        output_format=combine_raw.get("output_format", "xlsx"),
        options=CombineOptions(
            exclude_headers=options_raw.get("exclude_headers", False),
            insert_blank_rows=options_raw.get("insert_blank_rows", False),
            duplicate_by_quantity=options_raw.get("duplicate_by_quantity", False),
            normalize_quantity=options_raw.get("normalize_quantity", False),
            reverse_rows=options_raw.get("reverse_rows", False),
        ),
    )
    match = MatchConfig(
        enabled=match_raw.get("enabled", True),
        price_list=_path(match_raw.get("price_list")),
        # matcher reads what the combiner wrote unless told otherwise
        combined_directory=_path(match_raw.get("combined_directory")) or combine.destination,
        output_directory=_path(match_raw.get("output_directory")),
        output_format=match_raw.get("output_format", "xlsx"),
    )
    labels = LabelConfig(
        enabled=labels_raw.get("enabled", False),
        templates=_paths(labels_raw.get("templates")),
        output_directory=_path(labels_raw.get("output_directory")),
    )
    return PipelineConfig(
        log_directory=Path(data.get("log_directory", "./logs")),
        backup=backup,
        combine=combine,
        match=match,
        labels=labels,
        source_path=source_path,
    )


def load_config(path: Path) -> PipelineConfig:
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError("config validation failed: top level must be a mapping")

    _validate_config_schema(data)
    return parse_config(data, source_path=path)
