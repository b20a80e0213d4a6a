from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

"""Sheet / table description models.

SheetInfo  - one worksheet of the source spreadsheet (header + bounded sample)
ColumnInfo - one destination table column
TableInfo  - one selectable destination table
"""

__all__ = [
    "SheetInfo",
    "ColumnInfo",
    "TableInfo",
]


@dataclass(frozen=True)
class SheetInfo:
    """A worksheet as reported by the sheet reader.

    ``error`` is set instead of raising when this one sheet could not be read,
    so other sheets of the same spreadsheet stay usable.
    """
    name: str
    row_count: int = 0
    sample_data: list[dict[str, Any]] = field(default_factory=list)
    columns: list[str] = field(default_factory=list)
    error: str | None = None

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> SheetInfo:
        """Build from the service's camelCase payload (name, rowCount, sampleData, columns)."""
        return cls(
            name=str(raw.get("name", "")),
            row_count=int(raw.get("rowCount") or 0),
            sample_data=list(raw.get("sampleData") or []),
            columns=[str(c) for c in (raw.get("columns") or [])],
            error=raw.get("error"),
        )

    def with_columns(self, columns: list[str], sample_data: list[dict[str, Any]]) -> SheetInfo:
        return SheetInfo(
            name=self.name,
            row_count=self.row_count,
            sample_data=list(sample_data),
            columns=list(columns),
            error=self.error,
        )


@dataclass(frozen=True)
class ColumnInfo:
    name: str
    type: str  # SQL type descriptor, e.g. "text", "timestamp with time zone"
    nullable: bool = True
    default: str | None = None

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> ColumnInfo:
        default = raw.get("default")
        return cls(
            name=str(raw["name"]),
            type=str(raw.get("type", "text")),
            nullable=bool(raw.get("nullable", True)),
            # 빈 문자열 기본값은 "없음"으로 취급
            default=str(default) if default not in (None, "") else None,
        )


@dataclass(frozen=True)
class TableInfo:
    name: str
    display_name: str

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> TableInfo:
        name = str(raw["name"])
        return cls(name=name, display_name=str(raw.get("displayName") or name))
