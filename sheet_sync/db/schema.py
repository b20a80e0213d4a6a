from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from ..models.sheet_info import ColumnInfo

"""Destination table introspection through information_schema."""

logger = logging.getLogger(__name__)

_COLUMNS_SQL = (
    "SELECT column_name, data_type, is_nullable, column_default "
    "FROM information_schema.columns "
    "WHERE table_schema = %s AND table_name = %s "
    "ORDER BY ordinal_position"
)


def introspect_columns(cursor: Any, table: str, schema: str = "public") -> list[ColumnInfo]:
    """Return the columns of ``schema.table`` in ordinal order ([] if the table does not exist)."""
    cursor.execute(_COLUMNS_SQL, (schema, table))
    columns = [
        ColumnInfo(
            name=name,
            type=data_type,
            nullable=(str(is_nullable).upper() == "YES"),
            default=default,
        )
        for name, data_type, is_nullable, default in cursor.fetchall()
    ]
    logger.debug("introspected table=%s columns=%d", table, len(columns))
    return columns


def db_schema_fetcher(cursor: Any, schema: str = "public") -> Callable[[str, float], dict[str, Any]]:
    """Adapt introspect_columns to the SchemaInspector fetch signature.

    The response mimics GET /sync/schema. The timeout argument is accepted for
    signature compatibility only; the connection's own statement_timeout applies.
    """

    def fetch(table: str, timeout: float) -> dict[str, Any]:
        columns = introspect_columns(cursor, table, schema)
        if not columns:
            return {"success": False, "message": f"table not found: {table}"}
        return {
            "success": True,
            "data": {
                "columns": [
                    {"name": c.name, "type": c.type, "nullable": c.nullable, "default": c.default}
                    for c in columns
                ],
                "source": "database",
            },
        }

    return fetch
