from __future__ import annotations

import json
import logging
import re
from collections.abc import Mapping
from datetime import date, datetime
from typing import Any

import pandas as pd

from ..models.sync_models import ColumnMapping

"""Sheet row -> destination row conversion.

1. apply the column mapping (missing / empty cells are left out so the
   destination default applies)
2. coerce well-known fields (numbers, ids, flags, dates, arrays, jsonb)
3. fill per-table defaults

Field lists are shared by every table; only the date fields differ for
tour_hotel_bookings.
"""

__all__ = [
    "NUMBER_FIELDS",
    "TEXT_FIELDS",
    "BOOLEAN_FIELDS",
    "ARRAY_FIELDS",
    "JSONB_FIELDS",
    "TABLE_DEFAULTS",
    "REQUIRED_FIELDS",
    "apply_mapping",
    "convert_data_types",
    "transform_row",
    "validate_row",
    "to_array",
    "optimal_batch_size",
]

logger = logging.getLogger(__name__)

NUMBER_FIELDS = (
    "adults",
    "child",
    "infant",
    "total_people",
    "price",
    "rooms",
    "unit_price",
    "total_price",
    "base_price",
    "commission_amount",
    "commission_percent",
)
TEXT_FIELDS = ("product_id", "customer_id", "tour_id", "id")
BOOLEAN_FIELDS = ("is_private_tour",)
DEFAULT_DATE_FIELDS = ("tour_date",)
TABLE_DATE_FIELDS = {
    "tour_hotel_bookings": ("event_date", "check_in_date", "check_out_date"),
}
ARRAY_FIELDS = ("reservation_ids", "reservations_ids", "languages")
JSONB_FIELDS = ("selected_options", "selected_option_prices")

TABLE_DEFAULTS: dict[str, dict[str, Any]] = {
    "reservations": {"status": "pending"},
    "tours": {"tour_status": "Recruiting"},
    "customers": {"language": "ko"},
}

# 검증 실패 행은 upsert 전에 오류로 집계
REQUIRED_FIELDS: dict[str, tuple[str, ...]] = {
    "tour_expenses": ("id",),
    "team": ("email",),
    "reservation_pricing": ("id", "reservation_id"),
    "reservation_expenses": ("id",),
    "company_expenses": ("id",),
}

_LEADING_NUMBER = re.compile(r"^\s*[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?")
_TRUE_STRINGS = {"true", "1"}
_ARRAY_PART_STRIP = re.compile(r"^[\[\"']+|[\]\\\"']+$")


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value == "")


def apply_mapping(row: Mapping[str, Any], mapping: ColumnMapping) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for source, dest in mapping.items():
        value = row.get(source)
        if _is_blank(value):
            continue
        out[dest] = value
    return out


def _to_number(value: Any) -> int | float:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        match = _LEADING_NUMBER.match(str(value).replace(",", ""))
        if not match:
            return 0
        number = float(match.group(0))
    if number != number:  # NaN
        return 0
    return int(number) if number.is_integer() else number


def _to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in _TRUE_STRINGS


def _to_text(value: Any) -> str:
    # 엑셀에서 숫자로 읽힌 ID (예: 1024.0) 는 정수 문자열로
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _to_iso_date(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    try:
        parsed = pd.to_datetime(str(value))
    except (ValueError, TypeError, OverflowError):
        logger.warning("invalid date value kept as-is: %r", value)
        return value
    if pd.isna(parsed):
        return None
    return parsed.date().isoformat()


def to_array(value: Any) -> list[str] | None:
    """JSON array text or a comma separated list -> list of non-empty strings."""
    if value is None or value == "" or value == []:
        return None
    if isinstance(value, (list, tuple)):
        return [str(v) for v in value if str(v)]
    text = str(value).strip()
    if text.startswith("[") and text.endswith("]"):
        try:
            parsed = json.loads(text)
        except json.JSONDecodeError:
            parsed = None
        if isinstance(parsed, list):
            return [str(v) for v in parsed if str(v)]
    parts = (_ARRAY_PART_STRIP.sub("", part.strip()) for part in text.split(","))
    return [p for p in parts if p]


def _to_jsonb(value: Any) -> Any:
    if not isinstance(value, str):
        return value
    try:
        return json.loads(value)
    except json.JSONDecodeError:
        logger.warning("invalid json value replaced with {}: %r", value[:80])
        return {}


def convert_data_types(data: Mapping[str, Any], table: str) -> dict[str, Any]:
    converted = dict(data)

    for name in NUMBER_FIELDS:
        if name in converted and not _is_blank(converted[name]):
            converted[name] = _to_number(converted[name])

    for name in TEXT_FIELDS:
        if name in converted and not _is_blank(converted[name]):
            converted[name] = _to_text(converted[name])

    for name in BOOLEAN_FIELDS:
        if name in converted and not _is_blank(converted[name]):
            converted[name] = _to_bool(converted[name])

    for name in TABLE_DATE_FIELDS.get(table, DEFAULT_DATE_FIELDS):
        if converted.get(name):
            converted[name] = _to_iso_date(converted[name])

    if converted.get("tour_id") is not None:
        tour_id = str(converted["tour_id"]).strip()
        converted["tour_id"] = tour_id or None

    for name in ARRAY_FIELDS:
        if converted.get(name) is not None:
            converted[name] = to_array(converted[name])

    if converted.get("reservations_ids") and not converted.get("reservation_ids"):
        converted["reservation_ids"] = converted.pop("reservations_ids")

    for name in JSONB_FIELDS:
        if converted.get(name) is not None:
            converted[name] = _to_jsonb(converted[name])

    for name, default in TABLE_DEFAULTS.get(table, {}).items():
        if not converted.get(name):
            converted[name] = default

    return converted


def transform_row(row: Mapping[str, Any], mapping: ColumnMapping, table: str) -> dict[str, Any]:
    return convert_data_types(apply_mapping(row, mapping), table)


def validate_row(row: Mapping[str, Any], table: str) -> list[str]:
    """Names of required fields that are missing or blank (empty list == valid)."""
    return [name for name in REQUIRED_FIELDS.get(table, ()) if _is_blank(row.get(name))]


def optimal_batch_size(total: int) -> int:
    if total > 50000:
        return 1000
    if total > 20000:
        return 800
    if total > 10000:
        return 500
    if total > 5000:
        return 400
    return 200
