from __future__ import annotations

import logging
from typing import Any

from ..api.client import SyncApiClient
from ..models.sheet_info import SheetInfo
from .errors import SheetFetchError, classify_sheet_error

"""Sheet list over the sync service (POST /sync/sheets)."""

logger = logging.getLogger(__name__)

SHEETS_TIMEOUT = 35.0


def matches_prefix(name: str, prefix: str) -> bool:
    # 첫 글자만 대문자로 비교 (s_tours 도 통과)
    return bool(name) and name[0].upper() == prefix.upper()


class RemoteSheetSource:
    def __init__(
        self,
        client: SyncApiClient,
        *,
        prefix: str = "S",
        timeout: float = SHEETS_TIMEOUT,
    ) -> None:
        self.client = client
        self.prefix = prefix
        self.timeout = timeout

    def fetch_sheets(self, spreadsheet_id: str) -> list[SheetInfo]:
        """Return the prefix-filtered worksheets of ``spreadsheet_id`` in server order.

        Raises:
            SheetFetchError: the request failed as a whole (see classify_sheet_error)
                or the service answered ``success: false``.
        """
        try:
            body = self.client.fetch_sheets(spreadsheet_id, timeout=self.timeout)
        except Exception as exc:
            err = classify_sheet_error(exc)
            logger.warning("sheet list fetch failed kind=%s detail=%s", err.kind, err.detail)
            raise err from exc

        if not body.get("success"):
            message = str(body.get("message") or body.get("error") or "failed to read the sheet list.")
            raise SheetFetchError("application", message)

        raw_sheets: list[dict[str, Any]] = (body.get("data") or {}).get("sheets") or []
        sheets = [SheetInfo.from_dict(s) for s in raw_sheets]
        filtered = [s for s in sheets if matches_prefix(s.name, self.prefix)]
        for sheet in filtered:
            if sheet.error:
                logger.warning("sheet %s reported error: %s", sheet.name, sheet.error)
        logger.debug("sheets total=%d matched=%d prefix=%s", len(sheets), len(filtered), self.prefix)
        return filtered

    def load_sheet_columns(self, spreadsheet_id: str, sheet: SheetInfo | str) -> SheetInfo:
        """Fill columns/sample data of a sheet that was listed without them."""
        base = sheet if isinstance(sheet, SheetInfo) else SheetInfo(name=sheet)
        if base.columns:
            return base
        try:
            body = self.client.fetch_sheet_columns(spreadsheet_id, base.name, timeout=self.timeout)
        except Exception as exc:
            raise classify_sheet_error(exc) from exc
        if not body.get("success"):
            raise SheetFetchError("application", str(body.get("message") or "failed to read sheet columns."))
        data = body.get("data") or {}
        return base.with_columns(
            [str(c) for c in (data.get("columns") or [])],
            list(data.get("sampleData") or []),
        )
