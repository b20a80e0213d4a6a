from __future__ import annotations

import logging
from typing import Any

import requests

from ..models.sheet_info import TableInfo
from ..models.sync_models import SyncRequest

"""HTTP client for the sync service endpoints.

    POST /sync/sheets            {spreadsheetId}            -> {success, data:{sheets}}
    POST /sync/sheet-columns     {spreadsheetId, sheetName} -> {success, data:{columns, sampleData}}
    GET  /sync/schema?table=                                -> {success, data:{columns, source}}
    GET  /sync/all-tables                                   -> {success, data:{tables}}
    GET  /sync/tables?sheetColumns=&tableName=              -> server-side mapping suggestions
    GET  /sync/history?table=&spreadsheetId=                -> {success, data:{lastSyncTime}}
    POST /sync/flexible/stream   SyncRequest                -> NDJSON event stream

The client only moves JSON; interpreting failures is left to the callers
(sheet reader, schema inspector, orchestrator).
"""

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0


class ApiError(Exception):
    """Non-2xx response from the sync service."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class SyncApiClient:
    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        session: requests.Session | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.session = session or requests.Session()

    def _url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    def _headers(self, auth: bool = False) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if auth and self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def _json(
        self,
        method: str,
        path: str,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        params: dict[str, Any] | None = None,
        body: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        resp = self.session.request(
            method,
            self._url(path),
            headers=self._headers(),
            params=params,
            json=body,
            timeout=timeout,
        )
        if not resp.ok:
            raise ApiError(
                f"HTTP {resp.status_code}: {resp.reason} - {resp.text}",
                status_code=resp.status_code,
            )
        data = resp.json()
        if not isinstance(data, dict):
            raise ApiError(f"unexpected response body from {path}: {type(data).__name__}")
        return data

    # -- sheets -------------------------------------------------------------
    def fetch_sheets(self, spreadsheet_id: str, timeout: float = DEFAULT_TIMEOUT) -> dict[str, Any]:
        return self._json("POST", "/sync/sheets", timeout=timeout, body={"spreadsheetId": spreadsheet_id})

    def fetch_sheet_columns(
        self, spreadsheet_id: str, sheet_name: str, timeout: float = DEFAULT_TIMEOUT
    ) -> dict[str, Any]:
        return self._json(
            "POST",
            "/sync/sheet-columns",
            timeout=timeout,
            body={"spreadsheetId": spreadsheet_id, "sheetName": sheet_name},
        )

    # -- tables / schema ----------------------------------------------------
    def fetch_schema(self, table: str, timeout: float = DEFAULT_TIMEOUT) -> dict[str, Any]:
        return self._json("GET", "/sync/schema", timeout=timeout, params={"table": table})

    def list_tables(self, timeout: float = DEFAULT_TIMEOUT) -> list[TableInfo]:
        body = self._json("GET", "/sync/all-tables", timeout=timeout)
        if not body.get("success"):
            raise ApiError(str(body.get("message") or "failed to list tables"))
        tables = (body.get("data") or {}).get("tables") or []
        return [TableInfo.from_dict(t) for t in tables]

    def suggest_mapping(
        self, sheet_columns: list[str], table: str, timeout: float = DEFAULT_TIMEOUT
    ) -> dict[str, Any]:
        """Server-side mirror of the column mapper. The answer is logged, not applied."""
        body = self._json(
            "GET",
            "/sync/tables",
            timeout=timeout,
            params={"sheetColumns": ",".join(sheet_columns), "tableName": table},
        )
        logger.debug("server mapping suggestion table=%s body=%s", table, body)
        return body

    def last_sync_time(
        self, table: str, spreadsheet_id: str, timeout: float = DEFAULT_TIMEOUT
    ) -> str | None:
        body = self._json(
            "GET",
            "/sync/history",
            timeout=timeout,
            params={"table": table, "spreadsheetId": spreadsheet_id},
        )
        if body.get("success"):
            return (body.get("data") or {}).get("lastSyncTime") or None
        return None

    # -- streaming sync -----------------------------------------------------
    def open_sync_stream(
        self, request: SyncRequest, connect_timeout: float = DEFAULT_TIMEOUT
    ) -> requests.Response:
        """POST the sync request and return the open streaming response.

        Only the connect phase is bounded; once rows are flowing the stream
        runs until the server closes it.
        """
        resp = self.session.post(
            self._url("/sync/flexible/stream"),
            headers=self._headers(auth=True),
            json=request.to_payload(),
            stream=True,
            timeout=(connect_timeout, None),
        )
        if not resp.ok:
            text = resp.text
            resp.close()
            raise ApiError(
                f"HTTP {resp.status_code}: {resp.reason} - {text}",
                status_code=resp.status_code,
            )
        return resp

    def close(self) -> None:
        self.session.close()
