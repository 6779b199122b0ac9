from __future__ import annotations

import logging
import zipfile
from pathlib import Path

from ..logging.error_log import ErrorLogBuffer
from ..models.processing_result import LabelResult
from ..models.sheet_data import SpreadsheetRow
from ..sheets.reader import ImportFailure, import_rows

"""Label file generation.

Label templates are plain text files (printer command files) containing
marker phrases. The first row of a matched ``GS<key>`` artifact is
substituted into every template and the filled files are packaged as
``Labels_<artifact>.zip``.
"""

__all__ = [
    "LABEL_MARKERS",
    "LabelError",
    "emit_labels",
    "fill_template",
    "run_labels",
]

logger = logging.getLogger(__name__)

# matched output column -> marker phrase in the templates
LABEL_MARKERS = {
    "SKU": "Change SKU Data Here",
    "Barcode": "Change Barcode Data Here",
    "Card Name": "Change Card Name Data Here",
    "Condition": "Change Condition Data Here",
    "Cost": "Change Cost Data Here",
    "Price (Rounded)": "Change Price (Rounded) Data Here",
    "Price": "Change Price Data Here",
}


class LabelError(Exception):
    """Raised when labels cannot be produced for an artifact."""


def fill_template(text: str, row: SpreadsheetRow) -> str:
    """Replace every marker phrase with the value of its column."""
    for column, marker in LABEL_MARKERS.items():
        text = text.replace(marker, row.get(column, ""))
    return text


def emit_labels(matched_file: Path, templates: list[Path], output_dir: Path) -> Path:
    """Fill ``templates`` from the first row of ``matched_file`` and zip them.

    Returns:
        Path of the created zip package

    Raises:
        LabelError: unreadable artifact, artifact without rows, or missing template
    """
    try:
        sheet = import_rows(matched_file, has_header=True)
    except ImportFailure as e:
        raise LabelError(str(e)) from e
    if not sheet.rows:
        raise LabelError(f"{matched_file.name} has no rows")
    if not templates:
        raise LabelError("no label templates configured")
    first = sheet.rows[0]

    work_dir = output_dir / matched_file.stem
    work_dir.mkdir(parents=True, exist_ok=True)
    filled: list[Path] = []
    for template in templates:
        if not template.is_file():
            raise LabelError(f"label template not found: {template}")
        target = work_dir / template.name
        target.write_text(fill_template(template.read_text(encoding="utf-8"), first), encoding="utf-8")
        filled.append(target)

    package = output_dir / f"Labels_{matched_file.stem}.zip"
    with zipfile.ZipFile(package, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        for path in filled:
            zf.write(path, arcname=path.name)
    logger.info("labels %s -> %s (%d file(s))", matched_file.name, package.name, len(filled))
    return package


def run_labels(
    matched_files: list[Path],
    templates: list[Path],
    output_dir: Path,
    error_log: ErrorLogBuffer | None = None,
) -> LabelResult:
    result = LabelResult()
    output_dir.mkdir(parents=True, exist_ok=True)
    for path in matched_files:
        try:
            result.packages.append(emit_labels(path, templates, output_dir))
        except (LabelError, OSError) as e:
            logger.error("labels for %s failed: %s", path.name, e)
            if error_log is not None:
                error_log.record("labels", "LABEL_ERROR", str(e), file=path.name)
            result.failed_sources.append(path)
    return result
