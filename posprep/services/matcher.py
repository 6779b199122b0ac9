from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass, field
from pathlib import Path

from ..logging.error_log import ErrorLogBuffer
from ..models.artifacts import (
    COMBINED_PREFIX,
    MISSING_REPORT_NAME,
    CombinedArtifact,
    matched_name,
)
from ..models.file_group import group_sort_key
from ..models.processing_result import MatchCounts, MatchResult
from ..models.sheet_data import BLANK_MARKER, SpreadsheetRow
from ..models.sku_record import MATCHED_COLUMNS, MatchedOutputRow, SkuRecord
from ..sheets.reader import ImportFailure, import_rows
from ..sheets.writer import ExportFailure, export_delimited, export_rows, output_path
from .sku_index import SkuLookupIndex, normalize_key, resolve_column, strip_currency

"""SKU matching stage.

Every row of every combined artifact is looked up in the SKU index by its
TCGplayer Id. Hits become POS rows (``GS<key>``), misses are copied verbatim
into one cross-group report (``GS_Missing``) with a separator row between the
contributions of consecutive groups.
"""

__all__ = [
    "ID_COLUMN",
    "GroupMatch",
    "MatchOutcome",
    "SkuMatcher",
    "build_matched_row",
    "is_blank_row",
    "load_combined_artifacts",
    "make_barcode",
]

logger = logging.getLogger(__name__)

ID_COLUMN = "TCGplayer Id"

_COMBINED_STEM = re.compile(rf"^{re.escape(COMBINED_PREFIX)}(\d+)$")
_ARTIFACT_SUFFIXES = (".xlsx", ".csv", ".xls")


def is_blank_row(row: SpreadsheetRow) -> bool:
    """True if every cell is empty or the BLANK separator marker."""
    return all(str(v).strip() in ("", BLANK_MARKER) for v in row.values())


def make_barcode(sku: str, price_rounded: str) -> str:
    """``SKU + "P" + floor(price)``; an empty or unparseable price counts as 0.

    >>> make_barcode("ABC1", "$12.99")
    'ABC1P12'
    >>> make_barcode("ABC1", "")
    'ABC1P0'
    """
    text = strip_currency(price_rounded)
    whole = 0
    try:
        value = float(text)
    except ValueError:
        logger.warning("sku=%s unparseable rounded price %r; barcode uses 0", sku, price_rounded)
    else:
        if math.isfinite(value):
            whole = math.floor(value)
        else:
            logger.warning("sku=%s non-finite rounded price %r; barcode uses 0", sku, price_rounded)
    return f"{sku}P{whole}"


def build_matched_row(record: SkuRecord) -> MatchedOutputRow:
    price_rounded = strip_currency(record.price_rounded)
    return MatchedOutputRow(
        sku=record.sku,
        barcode=make_barcode(record.sku, record.price_rounded),
        card_name=record.name,
        condition=record.condition,
        cost=strip_currency(record.cost),
        price_rounded=price_rounded,
        price=strip_currency(record.price),
    )


@dataclass
class GroupMatch:
    """Match results of one combined artifact."""
    key: str
    matched: list[MatchedOutputRow] = field(default_factory=list)
    unmatched: list[SpreadsheetRow] = field(default_factory=list)
    id_column: str | None = None


@dataclass
class MatchOutcome:
    groups: list[GroupMatch] = field(default_factory=list)
    missing_columns: list[str] = field(default_factory=list)
    missing_rows: list[SpreadsheetRow] = field(default_factory=list)
    counts: MatchCounts = field(default_factory=MatchCounts)


def _missing_report(groups: list[GroupMatch]) -> tuple[list[str], list[SpreadsheetRow]]:
    """Assemble unmatched rows of all groups, separated per group.

    A separator follows a group's rows only if that group contributed rows
    and is not the last group processed. It carries the group key in the id
    column and nothing else.
    """
    columns: list[str] = []
    for group in groups:
        for row in group.unmatched:
            for col in row:
                if col not in columns:
                    columns.append(col)

    rows: list[SpreadsheetRow] = []
    for idx, group in enumerate(groups):
        if not group.unmatched:
            continue
        rows.extend({col: row.get(col, "") for col in columns} for row in group.unmatched)
        if idx < len(groups) - 1:
            separator = {col: "" for col in columns}
            separator[group.id_column or ID_COLUMN] = group.key
            rows.append(separator)
    return columns, rows


class SkuMatcher:
    """Match combined artifacts against a SKU index.

    The matcher keeps no state between calls; ``match`` on the same input
    always produces the same outcome.
    """

    def __init__(
        self,
        index: SkuLookupIndex,
        *,
        output_format: str = "xlsx",
        error_log: ErrorLogBuffer | None = None,
    ) -> None:
        self.index = index
        self.output_format = output_format
        self.error_log = error_log if error_log is not None else ErrorLogBuffer()

    def match_artifact(self, artifact: CombinedArtifact, counts: MatchCounts) -> GroupMatch:
        group = GroupMatch(key=artifact.key)
        group.id_column = resolve_column(ID_COLUMN, artifact.columns)
        if group.id_column is None:
            logger.warning("group=%s has no '%s' column; rows cannot be matched", artifact.key, ID_COLUMN)

        for row_number, row in enumerate(artifact.rows, start=1):
            if is_blank_row(row):
                counts.blank += 1
                continue
            raw_id = row.get(group.id_column, "") if group.id_column is not None else ""
            key = normalize_key(raw_id)
            if not key:
                logger.warning("group=%s row=%d has no %s; skipped", artifact.key, row_number, ID_COLUMN)
                counts.missing_id += 1
                continue
            record = self.index.lookup(key)
            if record is None:
                group.unmatched.append(dict(row))
                counts.unmatched += 1
                continue
            group.matched.append(build_matched_row(record))
            counts.matched += 1

        if group.matched:
            counts.groups_with_matches += 1
        else:
            counts.groups_without_matches += 1
        logger.debug(
            "group=%s matched=%d unmatched=%d", artifact.key, len(group.matched), len(group.unmatched)
        )
        return group

    def match(self, artifacts: list[CombinedArtifact]) -> MatchOutcome:
        """Classify every row of ``artifacts`` without touching the file system."""
        outcome = MatchOutcome()
        for artifact in artifacts:
            outcome.groups.append(self.match_artifact(artifact, outcome.counts))
        outcome.missing_columns, outcome.missing_rows = _missing_report(outcome.groups)
        return outcome

    def _write_missing_report(self, outcome: MatchOutcome, output_dir: Path, result: MatchResult) -> None:
        target = output_path(output_dir, MISSING_REPORT_NAME, self.output_format)
        try:
            result.missing_report_path = export_rows(target, outcome.missing_columns, outcome.missing_rows)
        except ExportFailure as e:
            logger.warning("missing report export failed, falling back to text: %s", e)
            fallback = output_dir / f"{MISSING_REPORT_NAME}.txt"
            try:
                result.missing_report_path = export_delimited(
                    fallback, outcome.missing_columns, outcome.missing_rows
                )
            except ExportFailure as e2:
                logger.error("missing report could not be written: %s", e2)
                self.error_log.record("match", "MISSING_REPORT_EXPORT_ERROR", str(e2), file=fallback.name)
                result.failed_exports.append(MISSING_REPORT_NAME)
                return
        logger.info(
            "missing report: %d row(s) -> %s", outcome.counts.unmatched, result.missing_report_path.name
        )

    def run(self, artifacts: list[CombinedArtifact], output_dir: Path) -> MatchResult:
        """Match and write ``GS<key>`` files plus the ``GS_Missing`` report."""
        output_dir.mkdir(parents=True, exist_ok=True)
        outcome = self.match(artifacts)
        result = MatchResult(counts=outcome.counts, groups=len(artifacts))

        for group in outcome.groups:
            if not group.matched:
                logger.info("group=%s has no matched rows; no output written", group.key)
                continue
            target = output_path(output_dir, matched_name(group.key), self.output_format)
            try:
                export_rows(target, list(MATCHED_COLUMNS), [row.as_row() for row in group.matched])
            except ExportFailure as e:
                logger.error("group=%s export failed: %s", group.key, e)
                self.error_log.record("match", "MATCHED_EXPORT_ERROR", str(e), file=target.name, group=group.key)
                result.failed_exports.append(group.key)
                continue
            result.matched_paths.append(target)
            logger.info("group=%s matched=%d -> %s", group.key, len(group.matched), target.name)

        if outcome.missing_rows:
            self._write_missing_report(outcome, output_dir, result)
        return result


def load_combined_artifacts(
    directory: Path, error_log: ErrorLogBuffer | None = None
) -> list[CombinedArtifact]:
    """Read ``Combined_Spreadsheet_<key>`` files from ``directory`` in numeric key order.

    If a key exists in several formats the .xlsx file wins. Unreadable files
    are logged and skipped.

    Raises:
        FileNotFoundError: ``directory`` does not exist
    """
    if not directory.is_dir():
        raise FileNotFoundError(f"combined directory not found: {directory}")

    found: dict[str, Path] = {}
    for path in sorted(directory.iterdir(), key=lambda p: p.name):
        suffix = path.suffix.lower()
        if not path.is_file() or suffix not in _ARTIFACT_SUFFIXES:
            continue
        m = _COMBINED_STEM.match(path.stem)
        if not m:
            continue
        key = m.group(1)
        current = found.get(key)
        if current is None or _ARTIFACT_SUFFIXES.index(suffix) < _ARTIFACT_SUFFIXES.index(current.suffix.lower()):
            found[key] = path

    artifacts: list[CombinedArtifact] = []
    for key in sorted(found, key=group_sort_key):
        path = found[key]
        try:
            sheet = import_rows(path, has_header=True)
        except ImportFailure as e:
            logger.error("combined artifact skipped: %s", e)
            if error_log is not None:
                error_log.record("match", "FILE_IMPORT_ERROR", str(e), file=path.name, group=key)
            continue
        artifacts.append(CombinedArtifact(key=key, columns=sheet.columns, rows=sheet.rows, path=path))
    logger.info("loaded %d combined artifact(s) from %s", len(artifacts), directory)
    return artifacts
