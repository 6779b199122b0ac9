from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path

from ..logging.error_log import ErrorLogBuffer
from ..models.config_models import CombineOptions
from ..models.sheet_data import (
    BLANK_MARKER,
    SheetData,
    SpreadsheetRow,
    make_blank_row,
    positional_columns,
    project_row,
)
from ..sheets.reader import ImportFailure, import_rows

"""Row transformation pipeline for one file group.

Order of operations for a group:
1. import every file (failed files are logged and skipped)
2. concatenate, with a BLANK row between consecutive files if requested
3. duplicate rows by their ``Add to Quantity`` value
4. reset ``Add to Quantity`` to "1"
5. reverse the row order

With headers, the header set of the first file of the first group combined
by a pipeline instance is canonical for every later group of that run.
"""

__all__ = [
    "QUANTITY_COLUMN",
    "EmptyGroupError",
    "RowTransformPipeline",
    "duplicate_by_quantity",
    "normalize_quantity",
    "parse_quantity",
]

logger = logging.getLogger(__name__)

QUANTITY_COLUMN = "Add to Quantity"

Importer = Callable[[Path, bool], SheetData]


class EmptyGroupError(Exception):
    """Raised when no file of a group produced any row."""


def parse_quantity(value: str) -> int | None:
    try:
        return int(str(value).strip())
    except ValueError:
        return None


def _is_synthetic_blank(row: SpreadsheetRow) -> bool:
    return bool(row) and all(v == BLANK_MARKER for v in row.values())


def duplicate_by_quantity(rows: list[SpreadsheetRow], column: str = QUANTITY_COLUMN) -> list[SpreadsheetRow]:
    """Repeat each row so it occurs ``quantity`` times; copies follow the original.

    Values that are not integers, or are <= 1, leave the row as is.
    """
    result: list[SpreadsheetRow] = []
    for row in rows:
        result.append(row)
        quantity = parse_quantity(row.get(column, ""))
        if quantity is not None and quantity > 1:
            result.extend(dict(row) for _ in range(quantity - 1))
    return result


def normalize_quantity(rows: list[SpreadsheetRow], column: str = QUANTITY_COLUMN) -> list[SpreadsheetRow]:
    """Set ``column`` to "1" on every data row. Separator rows stay all-BLANK."""
    for row in rows:
        if column in row and not _is_synthetic_blank(row):
            row[column] = "1"
    return rows


class RowTransformPipeline:
    """Combine the files of one group into a single ordered row list."""

    def __init__(
        self,
        options: CombineOptions | None = None,
        importer: Importer = import_rows,
        error_log: ErrorLogBuffer | None = None,
    ) -> None:
        self.options = options or CombineOptions()
        self._importer = importer
        self._error_log = error_log
        self.canonical_columns: list[str] | None = None

    def _import_all(self, files: list[Path], group_key: str) -> list[SheetData]:
        has_header = not self.options.exclude_headers
        sheets: list[SheetData] = []
        for path in files:
            try:
                sheet = self._importer(path, has_header)
            except ImportFailure as e:
                logger.error("group=%s import failed, file skipped: %s", group_key, e)
                if self._error_log is not None:
                    self._error_log.record(
                        "combine", "FILE_IMPORT_ERROR", str(e), file=path.name, group=group_key
                    )
                continue

            if has_header:
                if self.canonical_columns is None and sheet.columns:
                    self.canonical_columns = list(sheet.columns)
                    logger.debug("canonical columns from %s: %s", path.name, sheet.columns)
            elif len(sheet.rows) == 1:
                logger.info("group=%s %s holds a single row (header only), skipped", group_key, path.name)
                continue

            if not sheet.columns:
                logger.warning("group=%s %s is empty, skipped", group_key, path.name)
                continue
            sheets.append(sheet)
        return sheets

    def _columns_for(self, sheets: list[SheetData]) -> list[str]:
        if self.options.exclude_headers:
            return positional_columns(max(len(s.columns) for s in sheets))
        if self.canonical_columns is None:
            raise EmptyGroupError("no header row has been read in this run")
        return self.canonical_columns

    def combine(self, files: list[Path], group_key: str = "") -> SheetData:
        """Run every enabled transformation over ``files``.

        Raises:
            EmptyGroupError: no file could be imported
        """
        sheets = self._import_all(files, group_key)
        if not sheets:
            raise EmptyGroupError(f"group {group_key or '?'}: no readable files")

        columns = self._columns_for(sheets)
        rows: list[SpreadsheetRow] = []
        for idx, sheet in enumerate(sheets):
            rows.extend(project_row(row, columns) for row in sheet.rows)
            if self.options.insert_blank_rows and idx < len(sheets) - 1:
                rows.append(make_blank_row(columns))

        has_quantity = QUANTITY_COLUMN in columns
        if self.options.duplicate_by_quantity:
            if has_quantity:
                before = len(rows)
                rows = duplicate_by_quantity(rows)
                logger.debug("group=%s duplicated %d -> %d rows", group_key, before, len(rows))
            else:
                logger.warning("group=%s has no '%s' column; duplication skipped", group_key, QUANTITY_COLUMN)

        if self.options.normalize_quantity and has_quantity:
            normalize_quantity(rows)

        if self.options.reverse_rows:
            rows.reverse()

        return SheetData(columns=list(columns), rows=rows)
