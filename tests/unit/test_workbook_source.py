from __future__ import annotations

from pathlib import Path

import pandas as pd
import pytest

from sheet_sync.sheets.workbook import SheetHeaderError, WorkbookSheetSource, normalize_sheet


@pytest.fixture()
def workbook(tmp_path: Path) -> Path:
    path = tmp_path / "tour.xlsx"
    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        pd.DataFrame(
            [["예약번호", "고객명", "성인"], ["R1", "김", 2], [None, None, None], ["R2", None, 1]]
        ).to_excel(writer, sheet_name="S_Reservation", header=False, index=False)
        pd.DataFrame([["id", "name"], ["P1", "Tour"]]).to_excel(
            writer, sheet_name="s_products", header=False, index=False
        )
        pd.DataFrame([["memo"], ["x"]]).to_excel(writer, sheet_name="Notes", header=False, index=False)
    return path


def test_fetch_sheets_filters_by_prefix(workbook: Path):
    sheets = WorkbookSheetSource(workbook, sample_size=1).fetch_sheets()
    assert [s.name for s in sheets] == ["S_Reservation", "s_products"]
    res = sheets[0]
    assert res.columns == ["예약번호", "고객명", "성인"]
    assert res.row_count == 2  # blank row skipped
    assert res.sample_data == [{"예약번호": "R1", "고객명": "김", "성인": 2}]
    assert res.error is None


def test_read_rows_turns_nan_into_none(workbook: Path):
    rows = WorkbookSheetSource(workbook).read_rows("S_Reservation")
    assert rows[1] == {"예약번호": "R2", "고객명": None, "성인": 1}


def test_read_rows_unknown_sheet(workbook: Path):
    with pytest.raises(ValueError):
        WorkbookSheetSource(workbook).read_rows("S_Missing")


def test_normalize_sheet_requires_header():
    with pytest.raises(SheetHeaderError):
        normalize_sheet(pd.DataFrame(), "S_Empty")


def test_normalize_sheet_drops_unnamed_columns():
    df = pd.DataFrame([["id", None], ["1", "stray"]])
    data = normalize_sheet(df, "S_X")
    assert data.columns == ["id"]
    assert data.rows == [{"id": "1"}]
