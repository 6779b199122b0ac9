from __future__ import annotations

import io
import zipfile
from datetime import datetime
from pathlib import Path

import pandas as pd
from openpyxl.packaging.core import DocumentProperties
from openpyxl.xml.constants import ARC_CORE
from openpyxl.xml.functions import fromstring, tostring

from ..models.sheet_data import SpreadsheetRow

"""Spreadsheet writer. Column order and row order are preserved as given.

xlsx files are written byte-for-byte reproducibly: openpyxl stamps the save
time into the core document properties and every zip entry header, so the
saved archive is repacked with fixed timestamps.
"""

__all__ = [
    "FIXED_TIMESTAMP",
    "ExportFailure",
    "export_rows",
    "export_delimited",
    "output_path",
]

OUTPUT_FORMATS = ("xlsx", "csv")

FIXED_TIMESTAMP = datetime(2000, 1, 1)
_ZIP_DATE_TIME = (2000, 1, 1, 0, 0, 0)


class ExportFailure(Exception):
    """Raised when an artifact cannot be written."""


def output_path(directory: Path, stem: str, output_format: str) -> Path:
    if output_format not in OUTPUT_FORMATS:
        raise ExportFailure(f"unsupported output format: {output_format}")
    return directory / f"{stem}.{output_format}"


def _frame(columns: list[str], rows: list[SpreadsheetRow]) -> pd.DataFrame:
    return pd.DataFrame([[row.get(c, "") for c in columns] for row in rows], columns=columns)


def _repack_xlsx(data: bytes, path: Path) -> None:
    with zipfile.ZipFile(io.BytesIO(data)) as src, zipfile.ZipFile(path, "w", zipfile.ZIP_DEFLATED) as dst:
        for info in src.infolist():
            payload = src.read(info.filename)
            if info.filename == ARC_CORE:
                props = DocumentProperties.from_tree(fromstring(payload))
                props.created = FIXED_TIMESTAMP
                props.modified = FIXED_TIMESTAMP
                payload = tostring(props.to_tree())
            entry = zipfile.ZipInfo(info.filename, date_time=_ZIP_DATE_TIME)
            entry.compress_type = zipfile.ZIP_DEFLATED
            entry.external_attr = info.external_attr
            dst.writestr(entry, payload)


def _write_xlsx(df: pd.DataFrame, path: Path) -> None:
    buffer = io.BytesIO()
    with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
        df.to_excel(writer, index=False)
    _repack_xlsx(buffer.getvalue(), path)


def export_rows(path: Path, columns: list[str], rows: list[SpreadsheetRow]) -> Path:
    """Write ``rows`` to ``path``; the format follows the suffix (.xlsx or .csv).

    Raises:
        ExportFailure: unsupported suffix or write error
    """
    suffix = path.suffix.lower()
    df = _frame(columns, rows)
    try:
        if suffix == ".xlsx":
            _write_xlsx(df, path)
        elif suffix == ".csv":
            df.to_csv(path, index=False, encoding="utf-8")
        else:
            raise ExportFailure(f"unsupported output type: {path.name}")
    except ExportFailure:
        raise
    except Exception as e:
        raise ExportFailure(f"cannot write {path.name}: {e}") from e
    return path


def export_delimited(
    path: Path, columns: list[str], rows: list[SpreadsheetRow], sep: str = "\t"
) -> Path:
    """Plain delimited text export, used as the fallback format."""
    df = _frame(columns, rows)
    try:
        df.to_csv(path, index=False, sep=sep, encoding="utf-8")
    except Exception as e:
        raise ExportFailure(f"cannot write {path.name}: {e}") from e
    return path
