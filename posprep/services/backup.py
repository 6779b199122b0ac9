from __future__ import annotations

import logging
import shutil
from datetime import datetime
from pathlib import Path

from ..logging.error_log import ErrorLogBuffer
from ..models.processing_result import BackupResult

"""Folder backups to ``<folderName>-<yyyy-MM-dd_HH-mm-ss>``."""

__all__ = [
    "BACKUP_TIMESTAMP_FMT",
    "BackupError",
    "backup_folder",
    "backup_name",
    "run_backups",
]

logger = logging.getLogger(__name__)

BACKUP_TIMESTAMP_FMT = "%Y-%m-%d_%H-%M-%S"


class BackupError(Exception):
    """Raised when a folder cannot be backed up."""


def backup_name(source: Path, now: datetime) -> str:
    return f"{source.name}-{now.strftime(BACKUP_TIMESTAMP_FMT)}"


def backup_folder(source: Path, destination_root: Path, now: datetime | None = None) -> Path:
    """Copy ``source`` recursively below ``destination_root``.

    Raises:
        BackupError: source missing, target already present, or copy failure
    """
    if not source.is_dir():
        raise BackupError(f"backup source not found: {source}")
    stamp = now or datetime.now()
    target = destination_root / backup_name(source, stamp)
    if target.exists():
        raise BackupError(f"backup target already exists: {target}")
    destination_root.mkdir(parents=True, exist_ok=True)
    try:
        shutil.copytree(source, target)
    except (OSError, shutil.Error) as e:
        raise BackupError(f"backup of {source} failed: {e}") from e
    logger.info("backup %s -> %s", source, target)
    return target


def run_backups(
    sources: list[Path],
    destination_root: Path,
    error_log: ErrorLogBuffer | None = None,
    now: datetime | None = None,
) -> BackupResult:
    """Back up every folder; a failing folder does not stop the others."""
    result = BackupResult()
    stamp = now or datetime.now()
    for source in sources:
        try:
            result.created.append(backup_folder(source, destination_root, stamp))
        except BackupError as e:
            logger.error("%s", e)
            if error_log is not None:
                error_log.record("backup", "BACKUP_ERROR", str(e), file=str(source))
            result.failed_sources.append(source)
    return result
