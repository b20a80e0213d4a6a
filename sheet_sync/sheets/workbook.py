from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import pandas as pd

from ..models.sheet_info import SheetInfo
from .remote import matches_prefix

"""Local workbook sheet source.

An .xlsx export of the spreadsheet can stand in for the sync service:
row 1 is the header and data starts at row 2. Completely empty rows are skipped and
NaN cells become None so rows serialise to JSON / SQL NULL unchanged.
"""

logger = logging.getLogger(__name__)

DEFAULT_SAMPLE_SIZE = 5


class SheetHeaderError(Exception):
    """Raised when a sheet has no header row."""


@dataclass
class SheetData:
    sheet_name: str
    columns: list[str]
    rows: list[dict[str, Any]]


def normalize_sheet(df: pd.DataFrame, sheet_name: str) -> SheetData:
    """Apply the first row as header and return the remaining rows as dicts."""
    if df.shape[0] < 1:
        raise SheetHeaderError(f"sheet '{sheet_name}' has no header row")
    columns = ["" if pd.isna(c) else str(c).strip() for c in df.iloc[0].tolist()]
    rows: list[dict[str, Any]] = []
    for _, raw in df.iloc[1:].iterrows():
        if raw.isna().all():
            continue
        row: dict[str, Any] = {}
        for col, val in zip(columns, raw.tolist(), strict=False):
            if not col:
                continue
            row[col] = None if pd.isna(val) else val
        rows.append(row)
    return SheetData(sheet_name=sheet_name, columns=[c for c in columns if c], rows=rows)


class WorkbookSheetSource:
    def __init__(
        self,
        path: Path,
        *,
        prefix: str = "S",
        sample_size: int = DEFAULT_SAMPLE_SIZE,
    ) -> None:
        self.path = Path(path)
        self.prefix = prefix
        self.sample_size = sample_size
        self._cache: dict[str, SheetData] = {}

    def _load(self, xls: pd.ExcelFile, name: str) -> SheetData:
        if name not in self._cache:
            df = xls.parse(name, header=None)
            self._cache[name] = normalize_sheet(df, name)
        return self._cache[name]

    def fetch_sheets(self, spreadsheet_id: str | None = None) -> list[SheetInfo]:
        """Same contract as RemoteSheetSource.fetch_sheets; ``spreadsheet_id`` is ignored."""
        sheets: list[SheetInfo] = []
        with pd.ExcelFile(self.path) as xls:
            for raw_name in xls.sheet_names:
                name = str(raw_name)
                if not matches_prefix(name, self.prefix):
                    continue
                try:
                    data = self._load(xls, name)
                except Exception as exc:
                    logger.warning("failed to read sheet %s: %s", name, exc)
                    sheets.append(SheetInfo(name=name, error=str(exc)))
                    continue
                sheets.append(
                    SheetInfo(
                        name=name,
                        row_count=len(data.rows),
                        sample_data=data.rows[: self.sample_size],
                        columns=list(data.columns),
                    )
                )
        return sheets

    def read_rows(self, sheet_name: str) -> list[dict[str, Any]]:
        """All data rows of ``sheet_name``. Unknown sheet names raise ValueError."""
        if sheet_name in self._cache:
            return list(self._cache[sheet_name].rows)
        with pd.ExcelFile(self.path) as xls:
            if sheet_name not in [str(n) for n in xls.sheet_names]:
                raise ValueError(f"sheet '{sheet_name}' not found in {self.path.name}")
            return list(self._load(xls, sheet_name).rows)
