from __future__ import annotations

import time
from pathlib import Path
from unittest.mock import patch

import pytest

from posprep.logging.error_log import ErrorLogBuffer
from posprep.models.artifacts import CombinedArtifact
from posprep.services.matcher import (
    SkuMatcher,
    build_matched_row,
    is_blank_row,
    load_combined_artifacts,
    make_barcode,
)
from posprep.services.sku_index import REQUIRED_COLUMNS, SkuLookupIndex
from posprep.sheets.reader import import_rows
from posprep.sheets.writer import ExportFailure, export_rows

COLUMNS = ["TCGplayer Id", "Name"]


@pytest.fixture()
def index() -> SkuLookupIndex:
    rows = [
        ("12345", "ABC1", "Black Lotus", "NM", "$1,000.00", "$12.99", "$13.49"),
        ("777", "XYZ9", "Mox Pearl", "LP", "$5.00", "", "$6.10"),
    ]
    return SkuLookupIndex.build(
        [dict(zip(REQUIRED_COLUMNS, r, strict=True)) for r in rows], list(REQUIRED_COLUMNS)
    )


def _artifact(key: str, *rows: tuple[str, str]) -> CombinedArtifact:
    return CombinedArtifact(key=key, columns=list(COLUMNS), rows=[dict(zip(COLUMNS, r)) for r in rows])


@pytest.mark.parametrize(
    "price, expected",
    [
        ("$12.99", "ABC1P12"),
        ("12", "ABC1P12"),
        ("$1,234.50", "ABC1P1234"),
        ("", "ABC1P0"),
        ("n/a", "ABC1P0"),
        ("nan", "ABC1P0"),
    ],
)
def test_make_barcode(price: str, expected: str):
    assert make_barcode("ABC1", price) == expected


def test_is_blank_row():
    assert is_blank_row({"A": "", "B": "BLANK"})
    assert is_blank_row({"A": "BLANK", "B": "BLANK"})
    assert not is_blank_row({"A": "BLANK", "B": "1"})


def test_build_matched_row_strips_currency(index: SkuLookupIndex):
    row = build_matched_row(index.lookup("12345")).as_row()
    assert row == {
        "SKU": "ABC1",
        "Barcode": "ABC1P12",
        "Card Name": "Black Lotus",
        "Condition": "NM",
        "Cost": "1000.00",
        "Price (Rounded)": "12.99",
        "Price": "13.49",
    }


def test_match_classifies_rows(index: SkuLookupIndex):
    artifact = _artifact(
        "1",
        ("12345", "Lotus"),
        ("BLANK", "BLANK"),
        ("", "No id"),
        ("999", "Unknown"),
        (" 777 ", "Mox"),
    )
    outcome = SkuMatcher(index).match([artifact])
    counts = outcome.counts
    assert (counts.matched, counts.unmatched, counts.blank, counts.missing_id) == (2, 1, 1, 1)
    assert [m.sku for m in outcome.groups[0].matched] == ["ABC1", "XYZ9"]
    assert outcome.groups[0].matched[1].barcode == "XYZ9P0"
    assert outcome.missing_rows == [{"TCGplayer Id": "999", "Name": "Unknown"}]


def test_missing_report_separators(index: SkuLookupIndex):
    artifacts = [
        _artifact("1", ("999", "a")),
        _artifact("2", ("12345", "ok")),
        _artifact("3", ("998", "b"), ("997", "c")),
        _artifact("4", ("996", "d")),
    ]
    outcome = SkuMatcher(index).match(artifacts)
    assert outcome.missing_rows == [
        {"TCGplayer Id": "999", "Name": "a"},
        {"TCGplayer Id": "1", "Name": ""},
        {"TCGplayer Id": "998", "Name": "b"},
        {"TCGplayer Id": "997", "Name": "c"},
        {"TCGplayer Id": "3", "Name": ""},
        {"TCGplayer Id": "996", "Name": "d"},
    ]


def test_no_separator_after_last_group(index: SkuLookupIndex):
    outcome = SkuMatcher(index).match([_artifact("1", ("12345", "ok")), _artifact("2", ("999", "x"))])
    assert outcome.missing_rows == [{"TCGplayer Id": "999", "Name": "x"}]


def test_separator_kept_when_later_groups_have_no_misses(index: SkuLookupIndex):
    outcome = SkuMatcher(index).match([_artifact("1", ("999", "x")), _artifact("2", ("12345", "ok"))])
    assert outcome.missing_rows == [
        {"TCGplayer Id": "999", "Name": "x"},
        {"TCGplayer Id": "1", "Name": ""},
    ]


def test_missing_rows_are_verbatim_copies(index: SkuLookupIndex):
    artifact = CombinedArtifact(
        key="1",
        columns=["TCGplayer Id", "Name", "Add to Quantity"],
        rows=[{"TCGplayer Id": "999", "Name": "x", "Add to Quantity": "3"}],
    )
    outcome = SkuMatcher(index).match([artifact])
    assert outcome.missing_rows == [{"TCGplayer Id": "999", "Name": "x", "Add to Quantity": "3"}]
    assert outcome.missing_rows[0] is not artifact.rows[0]


def test_artifact_without_id_column(index: SkuLookupIndex):
    artifact = CombinedArtifact(key="1", columns=["Name"], rows=[{"Name": "x"}, {"Name": "BLANK"}])
    outcome = SkuMatcher(index).match([artifact])
    assert outcome.counts.missing_id == 1
    assert outcome.counts.blank == 1
    assert outcome.counts.groups_without_matches == 1


def test_id_column_resolved_loosely(index: SkuLookupIndex):
    artifact = CombinedArtifact(key="1", columns=["tcgplayer id"], rows=[{"tcgplayer id": "12345"}])
    assert SkuMatcher(index).match([artifact]).counts.matched == 1


def test_run_writes_outputs(tmp_path: Path, index: SkuLookupIndex):
    artifacts = [
        _artifact("1", ("12345", "ok"), ("999", "missing")),
        _artifact("2", ("998", "missing too")),
    ]
    result = SkuMatcher(index, output_format="csv").run(artifacts, tmp_path / "out")

    assert result.matched_paths == [tmp_path / "out" / "GS1.csv"]
    assert not (tmp_path / "out" / "GS2.csv").exists()
    assert result.missing_report_path == tmp_path / "out" / "GS_Missing.csv"
    matched = import_rows(result.matched_paths[0])
    assert matched.columns == ["SKU", "Barcode", "Card Name", "Condition", "Cost", "Price (Rounded)", "Price"]
    assert matched.rows[0]["Barcode"] == "ABC1P12"
    missing = import_rows(result.missing_report_path)
    assert [r["TCGplayer Id"] for r in missing.rows] == ["999", "1", "998"]
    assert result.counts.unmatched == 2


def test_run_without_misses_writes_no_report(tmp_path: Path, index: SkuLookupIndex):
    result = SkuMatcher(index, output_format="csv").run([_artifact("1", ("12345", "ok"))], tmp_path)
    assert result.missing_report_path is None
    assert not (tmp_path / "GS_Missing.csv").exists()


def test_missing_report_falls_back_to_text(tmp_path: Path, index: SkuLookupIndex):
    def flaky_export(path: Path, columns, rows):
        if path.stem == "GS_Missing":
            raise ExportFailure("locked")
        return export_rows(path, columns, rows)

    with patch("posprep.services.matcher.export_rows", side_effect=flaky_export):
        result = SkuMatcher(index, output_format="csv").run([_artifact("1", ("999", "x"))], tmp_path)
    assert result.missing_report_path == tmp_path / "GS_Missing.txt"
    assert result.missing_report_path.read_text(encoding="utf-8").splitlines()[0] == "TCGplayer Id\tName"


def test_missing_report_double_failure_is_recorded(tmp_path: Path, index: SkuLookupIndex):
    log = ErrorLogBuffer(tmp_path / "logs")
    with patch("posprep.services.matcher.export_rows", side_effect=ExportFailure("locked")), \
         patch("posprep.services.matcher.export_delimited", side_effect=ExportFailure("locked too")):
        result = SkuMatcher(index, output_format="csv", error_log=log).run(
            [_artifact("1", ("999", "x"))], tmp_path
        )
    assert result.missing_report_path is None
    assert "GS_Missing" in result.failed_exports
    assert log.records[-1].error_type == "MISSING_REPORT_EXPORT_ERROR"


@pytest.mark.parametrize("fmt", ["csv", "xlsx"])
def test_match_is_idempotent(tmp_path: Path, index: SkuLookupIndex, fmt: str):
    artifacts = [_artifact("1", ("12345", "ok"), ("999", "missing"), ("777", "mox"))]
    matcher = SkuMatcher(index, output_format=fmt)
    first = matcher.run(artifacts, tmp_path / "one")
    # save times differ by at least a second between the two runs
    time.sleep(1.1)
    second = matcher.run(artifacts, tmp_path / "two")
    assert first.counts == second.counts
    for name in (f"GS1.{fmt}", f"GS_Missing.{fmt}"):
        assert (tmp_path / "one" / name).read_bytes() == (tmp_path / "two" / name).read_bytes()


def test_load_combined_artifacts(tmp_path: Path, make_sheet):
    make_sheet(tmp_path / "Combined_Spreadsheet_10.csv", [["TCGplayer Id"], ["1"]])
    make_sheet(tmp_path / "Combined_Spreadsheet_2.csv", [["TCGplayer Id"], ["2"]])
    make_sheet(tmp_path / "Combined_Spreadsheet_2.xlsx", [["TCGplayer Id"], ["22"]])
    make_sheet(tmp_path / "unrelated.csv", [["x"], ["y"]])
    artifacts = load_combined_artifacts(tmp_path)
    assert [a.key for a in artifacts] == ["2", "10"]
    assert artifacts[0].rows == [{"TCGplayer Id": "22"}]
    assert artifacts[0].path == tmp_path / "Combined_Spreadsheet_2.xlsx"


def test_load_combined_artifacts_skips_unreadable(tmp_path: Path, make_sheet):
    (tmp_path / "Combined_Spreadsheet_1.xlsx").write_bytes(b"junk")
    make_sheet(tmp_path / "Combined_Spreadsheet_2.csv", [["TCGplayer Id"], ["2"]])
    log = ErrorLogBuffer(tmp_path / "logs")
    artifacts = load_combined_artifacts(tmp_path, error_log=log)
    assert [a.key for a in artifacts] == ["2"]
    assert len(log) == 1


def test_load_combined_artifacts_missing_dir(tmp_path: Path):
    with pytest.raises(FileNotFoundError):
        load_combined_artifacts(tmp_path / "nope")


def test_zero_padded_keys_round_trip(tmp_path: Path, make_sheet, index: SkuLookupIndex):
    make_sheet(tmp_path / "combined" / "Combined_Spreadsheet_01.csv", [["TCGplayer Id"], ["12345"]])
    make_sheet(tmp_path / "combined" / "Combined_Spreadsheet_1.csv", [["TCGplayer Id"], ["777"]])
    artifacts = load_combined_artifacts(tmp_path / "combined")
    assert [a.key for a in artifacts] == ["01", "1"]
    result = SkuMatcher(index, output_format="csv").run(artifacts, tmp_path / "out")
    assert result.matched_paths == [tmp_path / "out" / "GS01.csv", tmp_path / "out" / "GS1.csv"]
