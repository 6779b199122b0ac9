# Shared pytest fixtures
from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pandas as pd
import pytest

from posprep.logging.init import reset_logging

PRICE_LIST_HEADER = [
    "TID",
    "GME SKU",
    "GME POS Name (36 Character Limit)",
    "Condition Abbreviated",
    "Cost",
    "Price (Rounded)",
    "Price",
]


@pytest.fixture(autouse=True)
def _fresh_logger():
    reset_logging()
    yield
    reset_logging()


@pytest.fixture()
def temp_workdir(tmp_path: Path, monkeypatch) -> Path:
    (tmp_path / "config").mkdir()
    (tmp_path / "logs").mkdir()
    monkeypatch.chdir(tmp_path)
    return tmp_path


def _write_sheet(path: Path, rows: list[list[object]]) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    df = pd.DataFrame(rows)
    if path.suffix.lower() == ".csv":
        df.to_csv(path, header=False, index=False)
    else:
        with pd.ExcelWriter(path, engine="openpyxl") as writer:
            df.to_excel(writer, sheet_name="Sheet1", header=False, index=False)
    return path


@pytest.fixture()
def make_sheet() -> Callable[[Path, list[list[object]]], Path]:
    """Write raw rows (first row is whatever the test wants) to .xlsx or .csv."""
    return _write_sheet


@pytest.fixture()
def price_list(tmp_path: Path) -> Path:
    rows = [
        PRICE_LIST_HEADER,
        ["12345", "ABC1", "Black Lotus", "NM", "$1,000.00", "$12.99", "$13.49"],
        ["777", "XYZ9", "Mox Pearl", "LP", "$5.00", "", "$6.10"],
        ["888", "QQ8", "Sol Ring", "MP", "$0.50", "n/a", "$1.00"],
    ]
    path = tmp_path / "prices.csv"
    pd.DataFrame(rows[1:], columns=rows[0]).to_csv(path, index=False)
    return path


@pytest.fixture()
def sample_config_yaml() -> str:
    return """log_directory: ./logs
combine:
  input_folders: [./in/a, ./in/b]
  destination: ./combined
  extension: all
  output_format: csv
match:
  price_list: ./prices.csv
  output_directory: ./out
  output_format: csv
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "posprep.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


@pytest.fixture()
def two_folder_input(temp_workdir: Path) -> Path:
    """in/a and in/b each holding Sheet(1).csv and Sheet(2).csv."""
    header = ["TCGplayer Id", "Name"]
    _write_sheet(temp_workdir / "in" / "a" / "Sheet(1).csv", [header, ["12345", "Lotus"], ["999", "Unknown"]])
    _write_sheet(temp_workdir / "in" / "b" / "Sheet(1).csv", [header, ["777", "Pearl"]])
    _write_sheet(temp_workdir / "in" / "a" / "Sheet(2).csv", [header, ["888", "Sol Ring"]])
    _write_sheet(temp_workdir / "in" / "b" / "Sheet(2).csv", [header, ["424242", "Nobody"]])
    return temp_workdir / "in"
