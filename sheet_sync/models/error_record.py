from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime

"""ErrorRecord model for the per-run error log.

One record per failed row or batch of a sync run; ``row=-1`` marks errors
that are not tied to a single row (schema lookup, truncate, transport).
Serialised as JSON Lines with a fixed key set.
"""

__all__ = [
    "ErrorRecord",
]


@dataclass(frozen=True)
class ErrorRecord:
    """Structured error record for JSON Lines logging.

    Attributes:
        timestamp: ISO8601 UTC timestamp with 'Z' suffix
        sheet: Source sheet name
        table: Destination table name
        row: 1-based data row number, -1 when unknown
        error_type: Error classification in UPPER_SNAKE_CASE format
        message: Database or transport error message
    """
    timestamp: str
    sheet: str
    table: str
    row: int
    error_type: str
    message: str

    @staticmethod
    def create(sheet: str, table: str, row: int, error_type: str, message: str) -> ErrorRecord:
        ts = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        return ErrorRecord(
            timestamp=ts,
            sheet=sheet,
            table=table,
            row=row,
            error_type=error_type,
            message=message,
        )

    def to_json_line(self) -> str:
        return json.dumps(asdict(self), ensure_ascii=False)
