from __future__ import annotations

import requests

"""Sheet fetch failure taxonomy.

The sheet list request can fail in several ways that the operator has to act on
differently (share the spreadsheet, fix the id, wait for quota...). Each failure
is reduced to one ``kind`` with a fixed user-facing message. An empty sheet list
is NOT a failure and never reaches this module.
"""

__all__ = [
    "SheetFetchError",
    "USER_MESSAGES",
    "classify_sheet_error",
]

USER_MESSAGES: dict[str, str] = {
    "timeout": "request timed out. The spreadsheet may be too large or the network slow; try again.",
    "aborted": "request was aborted before the sheet list arrived.",
    "permission": "permission denied. Check the spreadsheet sharing settings.",
    "not_found": "spreadsheet not found. Check the spreadsheet id.",
    "quota": "API quota exceeded. Try again later.",
    "rate_limit": "rate limit reached. Wait a moment and try again.",
    "api_not_enabled": "Google Sheets API is not enabled for the service account project.",
    "network": "network error while contacting the sync service.",
    "unknown": "failed to read the sheet list.",
}


class SheetFetchError(Exception):
    """Whole-operation failure of a sheet list / sheet column fetch.

    ``kind`` is one of USER_MESSAGES' keys or ``application`` (server said
    ``success: false``; ``message`` is then the server text verbatim).
    """

    def __init__(self, kind: str, message: str, detail: str | None = None) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.detail = detail

    def __str__(self) -> str:  # pragma: no cover - trivial
        return self.message


def _status_code(exc: BaseException) -> int | None:
    status = getattr(exc, "status_code", None)
    if status is None:
        response = getattr(exc, "response", None)
        status = getattr(response, "status_code", None)
    return status if isinstance(status, int) else None


def classify_sheet_error(exc: BaseException) -> SheetFetchError:
    """Map an exception raised while fetching sheets to a SheetFetchError.

    Order matters: HTTP status first, then the exception class, then message
    substrings (the service wraps Google API errors as plain text and the body
    may echo ids, so substrings never override a status).
    """
    if isinstance(exc, SheetFetchError):
        return exc
    text = str(exc)
    lowered = text.lower()
    status = _status_code(exc)

    if status == 403:
        kind = "permission"
    elif status == 404:
        kind = "not_found"
    elif isinstance(exc, requests.Timeout) or "timeout" in lowered or "timed out" in lowered:
        kind = "timeout"
    elif "abort" in lowered:
        kind = "aborted"
    elif "permission" in lowered or (status is None and "403" in lowered):
        kind = "permission"
    elif "not found" in lowered or (status is None and "404" in lowered):
        kind = "not_found"
    elif "quota" in lowered:
        kind = "quota"
    elif "rate limit" in lowered:
        kind = "rate_limit"
    elif "api not enabled" in lowered or "has not been used" in lowered:
        kind = "api_not_enabled"
    elif isinstance(exc, requests.ConnectionError):
        kind = "network"
    else:
        kind = "unknown"
    return SheetFetchError(kind, USER_MESSAGES[kind], detail=text or type(exc).__name__)
