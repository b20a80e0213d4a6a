from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Union

"""Sync request / event / result models.

The streamed sync endpoint speaks newline-delimited JSON; every line is one
event object tagged by ``type``:

    {"type": "start", "total": 10}
    {"type": "progress", "processed": 5, "total": 10, "inserted": 3, "updated": 2, "errors": 0}
    {"type": "info" | "warn" | "error", "message": "..."}
    {"type": "result", "success": true, "message": "...", "details": {...}}

Events are consumed strictly in arrival order; nothing is replayed.
"""

__all__ = [
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
]

# source sheet column -> destination table column
ColumnMapping = dict[str, str]

LOG_LEVELS = ("info", "warn", "error")


class UnknownEventError(ValueError):
    """Raised for a well-formed JSON object that is not a known sync event."""


@dataclass(frozen=True)
class SyncRequest:
    spreadsheet_id: str
    sheet_name: str
    target_table: str
    column_mapping: ColumnMapping
    truncate_table: bool = False
    enable_incremental_sync: bool = False

    def to_payload(self) -> dict[str, Any]:
        """Request body of POST /sync/flexible/stream."""
        return {
            "spreadsheetId": self.spreadsheet_id,
            "sheetName": self.sheet_name,
            "targetTable": self.target_table,
            "columnMapping": dict(self.column_mapping),
            "truncateTable": self.truncate_table,
            "enableIncrementalSync": self.enable_incremental_sync,
        }

    @classmethod
    def from_payload(cls, raw: dict[str, Any]) -> SyncRequest:
        return cls(
            spreadsheet_id=str(raw["spreadsheetId"]),
            sheet_name=str(raw["sheetName"]),
            target_table=str(raw["targetTable"]),
            column_mapping=dict(raw.get("columnMapping") or {}),
            truncate_table=bool(raw.get("truncateTable", False)),
            enable_incremental_sync=bool(raw.get("enableIncrementalSync", False)),
        )


@dataclass(frozen=True)
class StartEvent:
    total: int
    type: str = field(default="start", init=False)

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "total": self.total}


@dataclass(frozen=True)
class ProgressEvent:
    processed: int
    total: int
    inserted: int = 0
    updated: int = 0
    errors: int = 0
    type: str = field(default="progress", init=False)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "processed": self.processed,
            "total": self.total,
            "inserted": self.inserted,
            "updated": self.updated,
            "errors": self.errors,
        }


@dataclass(frozen=True)
class LogEvent:
    level: str  # info | warn | error
    message: str

    @property
    def type(self) -> str:
        return self.level

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.level, "message": self.message}


@dataclass(frozen=True)
class ResultEvent:
    success: bool
    message: str = ""
    details: dict[str, Any] = field(default_factory=dict)
    type: str = field(default="result", init=False)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "success": self.success,
            "message": self.message,
            "details": dict(self.details),
        }


SyncEvent = Union[StartEvent, ProgressEvent, LogEvent, ResultEvent]


def _int(raw: dict[str, Any], key: str) -> int:
    value = raw.get(key)
    return int(value) if value else 0


def parse_event(raw: dict[str, Any]) -> SyncEvent:
    """Build a SyncEvent from one decoded NDJSON object.

    Raises:
        UnknownEventError: ``type`` missing or not one of the known tags.
    """
    if not isinstance(raw, dict):
        raise UnknownEventError(f"event is not an object: {type(raw).__name__}")
    kind = raw.get("type")
    if kind == "start":
        return StartEvent(total=_int(raw, "total"))
    if kind == "progress":
        return ProgressEvent(
            processed=_int(raw, "processed"),
            total=_int(raw, "total"),
            inserted=_int(raw, "inserted"),
            updated=_int(raw, "updated"),
            errors=_int(raw, "errors"),
        )
    if kind in LOG_LEVELS:
        return LogEvent(level=kind, message=str(raw.get("message", "")))
    if kind == "result":
        details = raw.get("details")
        return ResultEvent(
            success=bool(raw.get("success")),
            message=str(raw.get("message") or ""),
            details=details if isinstance(details, dict) else {},
        )
    raise UnknownEventError(f"unknown event type: {kind!r}")


@dataclass
class SyncStats:
    """Running row counts, copied verbatim from the latest progress event."""
    processed: int = 0
    inserted: int = 0
    updated: int = 0
    errors: int = 0

    def as_dict(self) -> dict[str, int]:
        return {
            "processed": self.processed,
            "inserted": self.inserted,
            "updated": self.updated,
            "errors": self.errors,
        }


@dataclass(frozen=True)
class SyncResult:
    success: bool
    message: str
    details: dict[str, Any] = field(default_factory=dict)
    sync_time: datetime | None = None

    @property
    def inserted(self) -> int:
        return int(self.details.get("inserted") or 0)

    @property
    def updated(self) -> int:
        return int(self.details.get("updated") or 0)

    @property
    def errors(self) -> int:
        return int(self.details.get("errors") or 0)
