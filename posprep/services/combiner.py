from __future__ import annotations

import logging
from datetime import UTC, datetime
from pathlib import Path

from ..logging.error_log import ErrorLogBuffer
from ..models.artifacts import CombinedArtifact
from ..models.config_models import ALL_SUPPORTED, CombineOptions
from ..models.file_group import FileGroup
from ..models.processing_result import CombineResult, GroupStat
from ..sheets.writer import export_rows, output_path
from .grouper import find_override_file, group_files
from .progress import ProgressCallback, ProgressTracker
from .transform import RowTransformPipeline

"""Spreadsheet combining stage.

Each discovered group is combined and written as
``Combined_Spreadsheet_<key>`` into the destination folder. A group that
fails is logged, recorded in the error log and counted; the remaining groups
still run.
"""

__all__ = [
    "SpreadsheetCombiner",
    "combine_folders",
]

logger = logging.getLogger(__name__)


class SpreadsheetCombiner:
    def __init__(
        self,
        options: CombineOptions | None = None,
        *,
        output_format: str = "xlsx",
        error_log: ErrorLogBuffer | None = None,
        progress_callback: ProgressCallback | None = None,
    ) -> None:
        self.options = options or CombineOptions()
        self.output_format = output_format
        self.error_log = error_log if error_log is not None else ErrorLogBuffer()
        self.progress_callback = progress_callback

    def combine_group(self, group: FileGroup, pipeline: RowTransformPipeline) -> CombinedArtifact:
        """Combine one group in memory."""
        sheet = pipeline.combine(group.files, group.key)
        return CombinedArtifact(key=group.key, columns=sheet.columns, rows=sheet.rows)

    def run(self, groups: dict[str, FileGroup], destination: Path) -> CombineResult:
        """Combine every group and write one artifact per group.

        Args:
            groups: Output of ``group_files``; processed in its order
            destination: Output folder (created if missing)

        Returns:
            CombineResult listing succeeded and failed group keys
        """
        result = CombineResult(start_time=datetime.now(UTC))
        destination.mkdir(parents=True, exist_ok=True)

        # one pipeline per run: canonical headers carry over between groups
        pipeline = RowTransformPipeline(self.options, error_log=self.error_log)

        with ProgressTracker(
            len(groups), description="Combining", unit="group", callback=self.progress_callback
        ) as progress:
            for key, group in groups.items():
                progress.start(f"group {key}")
                group_start = datetime.now(UTC)
                try:
                    artifact = self.combine_group(group, pipeline)
                    target = output_path(destination, artifact.name, self.output_format)
                    export_rows(target, artifact.columns, artifact.rows)
                    artifact.path = target
                except Exception as e:
                    logger.error("group=%s combine failed: %s", key, e)
                    self.error_log.record("combine", "GROUP_COMBINE_ERROR", str(e), group=key)
                    result.failed_groups.append(key)
                    result.group_stats.append(
                        GroupStat(
                            key=key,
                            status="failed",
                            source_files=len(group.files),
                            rows=0,
                            elapsed_seconds=(datetime.now(UTC) - group_start).total_seconds(),
                            error=str(e),
                        )
                    )
                else:
                    logger.info(
                        "group=%s files=%d rows=%d -> %s",
                        key,
                        len(group.files),
                        len(artifact.rows),
                        target.name,
                    )
                    result.succeeded_groups.append(key)
                    result.group_stats.append(
                        GroupStat(
                            key=key,
                            status="success",
                            source_files=len(group.files),
                            rows=len(artifact.rows),
                            elapsed_seconds=(datetime.now(UTC) - group_start).total_seconds(),
                            output_path=target,
                        )
                    )
                progress.advance()
                progress.set_postfix(success=len(result.succeeded_groups), failed=len(result.failed_groups))
                logger.debug("combine progress %d%%", progress.percent)

        result.end_time = datetime.now(UTC)
        if result.failed_groups:
            logger.warning(
                "%d of %d group(s) failed: %s",
                len(result.failed_groups),
                result.total_groups,
                ", ".join(result.failed_groups),
            )
        return result


def combine_folders(
    folders: list[Path],
    destination: Path,
    options: CombineOptions | None = None,
    *,
    extension_filter: str = ALL_SUPPORTED,
    output_format: str = "xlsx",
    error_log: ErrorLogBuffer | None = None,
    progress_callback: ProgressCallback | None = None,
) -> CombineResult:
    """Discover groups in ``folders`` and combine them into ``destination``."""
    combiner = SpreadsheetCombiner(
        options,
        output_format=output_format,
        error_log=error_log,
        progress_callback=progress_callback,
    )
    override = find_override_file(folders, extension_filter)
    groups = group_files(folders, extension_filter, override=override, error_log=combiner.error_log)
    if not groups:
        logger.warning("no groups to combine in %d folder(s)", len(folders))
    return combiner.run(groups, destination)
