from __future__ import annotations

import logging
import re
from collections.abc import Callable, Iterable
from pathlib import Path

from ..logging.error_log import ErrorLogBuffer
from ..logging.init import log_summary
from ..models.config_models import PipelineConfig
from ..models.processing_result import PipelineResult, StageOutcome, StageStatus
from .backup import run_backups
from .combiner import combine_folders
from .labels import run_labels
from .matcher import SkuMatcher, load_combined_artifacts
from .progress import ProgressCallback
from .sku_index import PriceListError, load_price_list
from .summary import render_combine_summary, render_match_summary

"""Pipeline orchestration: backup -> combine -> match -> labels.

Every stage can be skipped. A stage that cannot start because of its
configuration fails on its own; the following stages still run. The error
log is flushed once at the end of the run.
"""

__all__ = [
    "STAGES",
    "StageConfigError",
    "run_pipeline",
]

logger = logging.getLogger(__name__)

STAGES = ("backup", "combine", "match", "labels")
_MATCHED_STEM = re.compile(r"^GS\d+$")


class StageConfigError(Exception):
    """A stage is enabled but its configuration is incomplete."""


def _require(value: Path | None, stage: str, key: str) -> Path:
    if value is None:
        raise StageConfigError(f"{stage}: '{key}' is not configured")
    return value


def _status(succeeded: int, failed: int) -> StageStatus:
    if failed == 0:
        return StageStatus.SUCCESS
    if succeeded == 0:
        return StageStatus.FAILED
    return StageStatus.PARTIAL


def _run_backup(config: PipelineConfig, result: PipelineResult, error_log: ErrorLogBuffer) -> StageOutcome:
    cfg = config.backup
    if not cfg.sources:
        raise StageConfigError("backup: 'sources' is empty")
    destination = _require(cfg.destination, "backup", "destination")
    result.backup = run_backups(cfg.sources, destination, error_log=error_log)
    detail = f"created={len(result.backup.created)} failed={len(result.backup.failed_sources)}"
    return StageOutcome("backup", _status(len(result.backup.created), len(result.backup.failed_sources)), detail)


def _run_combine(
    config: PipelineConfig,
    result: PipelineResult,
    error_log: ErrorLogBuffer,
    progress_callback: ProgressCallback | None,
) -> StageOutcome:
    cfg = config.combine
    if not cfg.input_folders:
        raise StageConfigError("combine: 'input_folders' is empty")
    destination = _require(cfg.destination, "combine", "destination")
    combined = combine_folders(
        cfg.input_folders,
        destination,
        cfg.options,
        extension_filter=cfg.extension,
        output_format=cfg.output_format,
        error_log=error_log,
        progress_callback=progress_callback,
    )
    result.combine = combined
    log_summary(render_combine_summary(combined)[len("SUMMARY "):])
    detail = f"success={len(combined.succeeded_groups)} failed={len(combined.failed_groups)}"
    return StageOutcome("combine", _status(len(combined.succeeded_groups), len(combined.failed_groups)), detail)


def _run_match(config: PipelineConfig, result: PipelineResult, error_log: ErrorLogBuffer) -> StageOutcome:
    cfg = config.match
    price_list = _require(cfg.price_list, "match", "price_list")
    combined_dir = _require(cfg.combined_directory, "match", "combined_directory")
    output_dir = _require(cfg.output_directory, "match", "output_directory")

    try:
        index = load_price_list(price_list)
    except PriceListError as e:
        raise StageConfigError(f"match: {e}") from e
    try:
        artifacts = load_combined_artifacts(combined_dir, error_log=error_log)
    except FileNotFoundError as e:
        raise StageConfigError(f"match: {e}") from e

    matcher = SkuMatcher(index, output_format=cfg.output_format, error_log=error_log)
    matched = matcher.run(artifacts, output_dir)
    result.match = matched
    log_summary(render_match_summary(matched)[len("SUMMARY "):])
    detail = f"files={len(matched.matched_paths)} failed_exports={len(matched.failed_exports)}"
    written = len(matched.matched_paths) + (1 if matched.missing_report_path is not None else 0)
    return StageOutcome("match", _status(written, len(matched.failed_exports)), detail)


def _run_labels(config: PipelineConfig, result: PipelineResult, error_log: ErrorLogBuffer) -> StageOutcome:
    cfg = config.labels
    output_dir = _require(cfg.output_directory, "labels", "output_directory")
    if not cfg.templates:
        raise StageConfigError("labels: 'templates' is empty")
    if result.match is not None:
        sources = list(result.match.matched_paths)
    else:
        match_dir = _require(config.match.output_directory, "labels", "match.output_directory")
        sources = sorted(p for p in match_dir.glob("GS*.*") if _MATCHED_STEM.match(p.stem))
    result.labels = run_labels(sources, cfg.templates, output_dir, error_log=error_log)
    detail = f"packages={len(result.labels.packages)} failed={len(result.labels.failed_sources)}"
    return StageOutcome(
        "labels", _status(len(result.labels.packages), len(result.labels.failed_sources)), detail
    )


def run_pipeline(
    config: PipelineConfig,
    skip: Iterable[str] = (),
    *,
    progress_callback: ProgressCallback | None = None,
) -> PipelineResult:
    """Run every enabled, non-skipped stage in order.

    Args:
        config: Session configuration
        skip: Stage names to skip in addition to disabled ones
        progress_callback: Receives (completed, total) while combining

    Returns:
        PipelineResult with one StageOutcome per stage
    """
    skipped = set(skip)
    error_log = ErrorLogBuffer(config.log_directory)
    result = PipelineResult()

    enabled = {
        "backup": config.backup.enabled,
        "combine": config.combine.enabled,
        "match": config.match.enabled,
        "labels": config.labels.enabled,
    }
    runners: dict[str, Callable[[], StageOutcome]] = {
        "backup": lambda: _run_backup(config, result, error_log),
        "combine": lambda: _run_combine(config, result, error_log, progress_callback),
        "match": lambda: _run_match(config, result, error_log),
        "labels": lambda: _run_labels(config, result, error_log),
    }

    for stage in STAGES:
        if stage in skipped or not enabled[stage]:
            logger.info("stage=%s skipped", stage)
            result.stages.append(StageOutcome(stage, StageStatus.SKIPPED))
            continue
        logger.info("stage=%s started", stage)
        try:
            outcome = runners[stage]()
        except StageConfigError as e:
            logger.error("stage=%s aborted: %s", stage, e)
            error_log.record(stage, "STAGE_CONFIG_ERROR", str(e))
            outcome = StageOutcome(stage, StageStatus.FAILED, str(e))
        except OSError as e:
            logger.error("stage=%s aborted: %s", stage, e)
            error_log.record(stage, "STAGE_IO_ERROR", str(e))
            outcome = StageOutcome(stage, StageStatus.FAILED, str(e))
        logger.info("stage=%s %s %s", stage, outcome.status.value, outcome.detail)
        result.stages.append(outcome)

    try:
        result.error_log_path = error_log.flush()
    except OSError as e:
        logger.error("error log could not be written: %s", e)
    return result
