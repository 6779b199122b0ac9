from __future__ import annotations

import zipfile
from pathlib import Path

import pytest

from posprep.logging.error_log import ErrorLogBuffer
from posprep.models.sku_record import MATCHED_COLUMNS
from posprep.services.labels import LabelError, emit_labels, fill_template, run_labels
from posprep.sheets.writer import export_rows

ROW = {
    "SKU": "ABC1",
    "Barcode": "ABC1P12",
    "Card Name": "Black Lotus",
    "Condition": "NM",
    "Cost": "1000.00",
    "Price (Rounded)": "12.99",
    "Price": "13.49",
}


def _matched(tmp_path: Path, rows: list[dict[str, str]]) -> Path:
    return export_rows(tmp_path / "GS1.csv", list(MATCHED_COLUMNS), rows)


def _template(tmp_path: Path, name: str, text: str) -> Path:
    path = tmp_path / "templates" / name
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


def test_fill_template_replaces_all_markers():
    text = "^FD Change Card Name Data Here ^FS ^BC Change Barcode Data Here ^FS $Change Price (Rounded) Data Here"
    assert fill_template(text, ROW) == "^FD Black Lotus ^FS ^BC ABC1P12 ^FS $12.99"


def test_fill_template_price_markers_do_not_collide():
    text = "Change Price Data Here / Change Price (Rounded) Data Here"
    assert fill_template(text, ROW) == "13.49 / 12.99"


def test_emit_labels_uses_first_row(tmp_path: Path):
    matched = _matched(tmp_path, [ROW, {**ROW, "Card Name": "Second"}])
    template = _template(tmp_path, "label.prn", "NAME=Change Card Name Data Here SKU=Change SKU Data Here")
    package = emit_labels(matched, [template], tmp_path / "labels")

    assert package == tmp_path / "labels" / "Labels_GS1.zip"
    with zipfile.ZipFile(package) as zf:
        assert zf.namelist() == ["label.prn"]
        assert zf.read("label.prn").decode("utf-8") == "NAME=Black Lotus SKU=ABC1"


def test_emit_labels_empty_artifact(tmp_path: Path):
    matched = _matched(tmp_path, [])
    template = _template(tmp_path, "label.prn", "x")
    with pytest.raises(LabelError):
        emit_labels(matched, [template], tmp_path / "labels")


def test_emit_labels_missing_template(tmp_path: Path):
    matched = _matched(tmp_path, [ROW])
    with pytest.raises(LabelError):
        emit_labels(matched, [tmp_path / "missing.prn"], tmp_path / "labels")


def test_run_labels_records_failures(tmp_path: Path):
    good = _matched(tmp_path, [ROW])
    template = _template(tmp_path, "label.prn", "Change SKU Data Here")
    log = ErrorLogBuffer(tmp_path / "logs")
    result = run_labels([tmp_path / "GS9.csv", good], [template], tmp_path / "labels", error_log=log)
    assert result.failed_sources == [tmp_path / "GS9.csv"]
    assert len(result.packages) == 1
    assert log.records[0].error_type == "LABEL_ERROR"
