"""Spreadsheet import/export collaborators (xlsx, xls, csv via pandas)."""

from .reader import ImportFailure, import_rows, read_raw_rows
from .writer import ExportFailure, export_delimited, export_rows, output_path

__all__ = [
    "ExportFailure",
    "ImportFailure",
    "export_delimited",
    "export_rows",
    "import_rows",
    "output_path",
    "read_raw_rows",
]
