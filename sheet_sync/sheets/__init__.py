"""Sheet readers: the sync service (remote) and local workbook exports."""

from .errors import USER_MESSAGES, SheetFetchError, classify_sheet_error
from .remote import RemoteSheetSource, matches_prefix
from .workbook import SheetHeaderError, WorkbookSheetSource, normalize_sheet

__all__ = [
    "SheetFetchError",
    "USER_MESSAGES",
    "classify_sheet_error",
    "RemoteSheetSource",
    "matches_prefix",
    "WorkbookSheetSource",
    "SheetHeaderError",
    "normalize_sheet",
]
