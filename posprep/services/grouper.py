from __future__ import annotations

import logging
import re
from pathlib import Path

from ..logging.error_log import ErrorLogBuffer
from ..models.config_models import ALL_SUPPORTED, SUPPORTED_EXTENSIONS
from ..models.file_group import FileGroup

"""File discovery and grouping.

Files from one or more input folders are grouped by the number at the end of
their names, so that ``Sheet(1).xlsx`` in folder A and ``Sheet(1).xlsx`` in
folder B end up in group "1". A folder named ``handbuilt`` holding exactly
one spreadsheet supplies a file that is prepended to every group.
"""

__all__ = [
    "OVERRIDE_FOLDER_NAME",
    "GroupingError",
    "extract_group_key",
    "normalize_extension_filter",
    "scan_folder",
    "find_override_file",
    "group_files",
]

logger = logging.getLogger(__name__)

OVERRIDE_FOLDER_NAME = "handbuilt"

# Tried in order against the file name without extension; first match wins.
_KEY_PATTERNS = (
    re.compile(r"[(\[_ \-](\d+)[)\] ]?$"),
    re.compile(r"(\d+)$"),
)


class GroupingError(Exception):
    """Raised for an invalid extension filter."""


def extract_group_key(filename: str) -> str | None:
    """Return the group number embedded at the end of ``filename``.

    >>> extract_group_key("name(3).xlsx")
    '3'
    >>> extract_group_key("export_007.csv")
    '007'
    >>> extract_group_key("notes.xlsx") is None
    True
    """
    stem = Path(filename).stem
    for pattern in _KEY_PATTERNS:
        m = pattern.search(stem)
        if m:
            return m.group(1)
    return None


def normalize_extension_filter(extension_filter: str) -> tuple[str, ...]:
    """Turn ``"all"`` / ``"xlsx"`` / ``".XLSX"`` into a tuple of lowercase suffixes."""
    value = extension_filter.strip().lower()
    if value == ALL_SUPPORTED:
        return SUPPORTED_EXTENSIONS
    if not value.startswith("."):
        value = f".{value}"
    if value not in SUPPORTED_EXTENSIONS:
        raise GroupingError(f"unsupported extension filter: {extension_filter}")
    return (value,)


def scan_folder(folder: Path, extension_filter: str = ALL_SUPPORTED) -> list[Path]:
    """List qualifying spreadsheet files in ``folder`` (non-recursive).

    Files are returned sorted by name. With the "all" filter, files sharing a
    base name are reduced to the first one, preferring .xlsx, then .xls,
    then .csv.

    Raises:
        OSError: folder missing or unreadable
    """
    extensions = normalize_extension_filter(extension_filter)
    if not folder.is_dir():
        raise NotADirectoryError(f"not a directory: {folder}")

    candidates = sorted(
        (p for p in folder.iterdir() if p.is_file() and p.suffix.lower() in extensions),
        key=lambda p: (p.stem.lower(), extensions.index(p.suffix.lower()), p.name),
    )
    if len(extensions) == 1:
        return candidates

    kept: list[Path] = []
    seen: set[str] = set()
    for path in candidates:
        base = path.stem.lower()
        if base in seen:
            logger.info("duplicate base name skipped: %s", path)
            continue
        seen.add(base)
        kept.append(path)
    return kept


def find_override_file(
    folders: list[Path], extension_filter: str = ALL_SUPPORTED
) -> tuple[Path, Path] | None:
    """Locate the single-file override folder.

    Returns ``(folder, file)`` when exactly one of ``folders`` is named
    ``handbuilt`` (any case) and it holds exactly one qualifying file.
    """
    matches = [f for f in folders if f.name.lower() == OVERRIDE_FOLDER_NAME]
    if len(matches) != 1:
        if len(matches) > 1:
            logger.warning("%d '%s' folders given; override not applied", len(matches), OVERRIDE_FOLDER_NAME)
        return None
    folder = matches[0]
    try:
        files = scan_folder(folder, extension_filter)
    except OSError as e:
        logger.warning("cannot read override folder %s: %s", folder, e)
        return None
    if len(files) != 1:
        logger.info(
            "override folder %s holds %d spreadsheets; override not applied", folder, len(files)
        )
        return None
    logger.info("override file: %s", files[0])
    return folder, files[0]


def group_files(
    folders: list[Path],
    extension_filter: str = ALL_SUPPORTED,
    override: tuple[Path, Path] | None = None,
    error_log: ErrorLogBuffer | None = None,
) -> dict[str, FileGroup]:
    """Partition the files of ``folders`` by their group key.

    Args:
        folders: Input folders, scanned in the given order
        extension_filter: "all" or a single extension
        override: Result of ``find_override_file``; its folder is not
            scanned and its file is prepended to every group
        error_log: Receives a record for each unreadable folder

    Returns:
        Groups keyed by group key, in ascending numeric key order. Groups
        with fewer than two files are dropped unless an override file exists.
    """
    override_folder, override_file = override if override is not None else (None, None)

    groups: dict[str, FileGroup] = {}
    for folder in folders:
        if override_folder is not None and folder == override_folder:
            continue
        try:
            files = scan_folder(folder, extension_filter)
        except OSError as e:
            logger.error("cannot read folder %s: %s", folder, e)
            if error_log is not None:
                error_log.record("combine", "FOLDER_READ_ERROR", str(e), file=str(folder))
            continue

        for path in files:
            key = extract_group_key(path.name)
            if key is None:
                logger.info("no group number in file name, excluded: %s", path.name)
                continue
            group = groups.get(key)
            if group is None:
                group = FileGroup(key=key, override_file=override_file)
                if override_file is not None:
                    group.files.append(override_file)
                groups[key] = group
            group.files.append(path)

    result: dict[str, FileGroup] = {}
    for group in sorted(groups.values(), key=lambda g: g.sort_key):
        key = group.key
        if group.override_file is None and len(group.files) < 2:
            logger.info("group %s has a single file, skipped: %s", key, group.files[0].name)
            continue
        result[key] = group
    logger.info("discovered %d group(s) in %d folder(s)", len(result), len(folders))
    return result
