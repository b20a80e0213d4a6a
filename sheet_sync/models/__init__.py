"""Domain models for the sheet -> database sync tool."""

from .error_record import ErrorRecord
from .sheet_info import ColumnInfo, SheetInfo, TableInfo
from .sync_models import (
    ColumnMapping,
    LogEvent,
    ProgressEvent,
    ResultEvent,
    StartEvent,
    SyncEvent,
    SyncRequest,
    SyncResult,
    SyncStats,
    UnknownEventError,
    parse_event,
)

__all__ = [
    # Description models
    "ColumnInfo",
    "SheetInfo",
    "TableInfo",
    # Sync models
    "ColumnMapping",
    "SyncRequest",
    "StartEvent",
    "ProgressEvent",
    "LogEvent",
    "ResultEvent",
    "SyncEvent",
    "UnknownEventError",
    "parse_event",
    "SyncStats",
    "SyncResult",
    # Error log
    "ErrorRecord",
]
