from __future__ import annotations

import math
from pathlib import Path
from typing import Any

import pandas as pd

from ..models.sheet_data import SheetData, positional_columns

"""Spreadsheet reader.

Every supported format is read without header inference and with object
dtype, then each cell is turned into text. Doing the header handling here
(rather than letting pandas do it) keeps the first row available as data
when headers are excluded, and keeps ids such as ``12345`` from turning into
``12345.0``.
"""

__all__ = [
    "ImportFailure",
    "read_raw_rows",
    "import_rows",
    "cell_text",
]


class ImportFailure(Exception):
    """Raised when a spreadsheet cannot be read."""


def cell_text(value: Any) -> str:
    """Normalize a raw cell to text: empty/NaN -> "", integral float -> integer text."""
    if value is None:
        return ""
    if isinstance(value, float):
        if math.isnan(value):
            return ""
        if value.is_integer():
            return str(int(value))
        return str(value)
    if isinstance(value, pd.Timestamp):
        return value.isoformat()
    return str(value)


def _read_frame(path: Path) -> pd.DataFrame:
    suffix = path.suffix.lower()
    if suffix == ".csv":
        return pd.read_csv(
            path,
            header=None,
            dtype=object,
            keep_default_na=False,
            skip_blank_lines=True,
            encoding="utf-8-sig",
        )
    if suffix in (".xlsx", ".xls"):
        # first sheet only
        return pd.read_excel(path, sheet_name=0, header=None, dtype=object)
    raise ImportFailure(f"unsupported spreadsheet type: {path.name}")


def read_raw_rows(path: Path) -> list[list[str]]:
    """Read the first sheet of ``path`` as a list of text rows.

    Fully empty rows are dropped and trailing fully empty columns trimmed.

    Raises:
        ImportFailure: file missing, unsupported or unparseable
    """
    if not path.exists():
        raise ImportFailure(f"file not found: {path}")
    try:
        df = _read_frame(path)
    except ImportFailure:
        raise
    except Exception as e:
        raise ImportFailure(f"cannot read {path.name}: {e}") from e

    rows: list[list[str]] = []
    for raw in df.itertuples(index=False, name=None):
        cells = [cell_text(v) for v in raw]
        if all(c == "" for c in cells):
            continue
        rows.append(cells)

    width = 0
    for cells in rows:
        for idx in range(len(cells) - 1, -1, -1):
            if cells[idx] != "":
                width = max(width, idx + 1)
                break
    return [cells[:width] + [""] * (width - len(cells)) for cells in rows]


def _header_names(header: list[str]) -> list[str]:
    columns: list[str] = []
    seen: dict[str, int] = {}
    for idx, raw in enumerate(header, start=1):
        name = raw.strip() or f"Column{idx}"
        if name in seen:
            seen[name] += 1
            name = f"{name} ({seen[name]})"
        else:
            seen[name] = 1
        columns.append(name)
    return columns


def import_rows(path: Path, has_header: bool = True) -> SheetData:
    """Import a spreadsheet as ordered rows.

    Args:
        path: .xlsx, .xls or .csv file
        has_header: Use the first row as column names; otherwise every row
            is data and columns are named Column1..ColumnN

    Returns:
        SheetData whose rows all carry every column
    """
    raw_rows = read_raw_rows(path)
    if not raw_rows:
        return SheetData(columns=[], rows=[])

    if has_header:
        columns = _header_names(raw_rows[0])
        body = raw_rows[1:]
    else:
        columns = positional_columns(len(raw_rows[0]))
        body = raw_rows

    rows = [dict(zip(columns, cells, strict=True)) for cells in body]
    return SheetData(columns=columns, rows=rows)
