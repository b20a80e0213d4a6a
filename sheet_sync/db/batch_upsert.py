from __future__ import annotations

import re
import time
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from typing import Any

from psycopg2.extras import execute_values

"""Batched INSERT ... ON CONFLICT DO UPDATE.

One execute_values call per batch. ``RETURNING (xmax = 0)`` tells freshly
inserted rows (true) apart from rows that hit the conflict target (false), which
is how the inserted / updated counts of a sync run are obtained.

Rows sharing a conflict key inside one batch are collapsed to the last one;
PostgreSQL refuses to update the same row twice in a single statement.
"""

__all__ = [
    "BatchUpsertError",
    "BatchMetrics",
    "UpsertResult",
    "batch_upsert",
    "quote_ident",
]

_IDENT_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class BatchUpsertError(Exception):
    pass


@dataclass(frozen=True)
class BatchMetrics:
    """Timing of a single execute_values call."""
    batch_size: int
    elapsed_seconds: float
    start_time: float
    end_time: float


@dataclass(frozen=True)
class UpsertResult:
    inserted: int
    updated: int

    @property
    def total(self) -> int:
        return self.inserted + self.updated


def quote_ident(name: str) -> str:
    if not _IDENT_RE.match(name):
        raise BatchUpsertError(f"invalid identifier: {name!r}")
    return f'"{name}"'


def _dedupe(rows: list[Sequence[Any]], key_index: int) -> list[Sequence[Any]]:
    seen: dict[Any, int] = {}
    out: list[Sequence[Any]] = []
    for row in rows:
        key = row[key_index]
        if key in seen:
            out[seen[key]] = row
        else:
            seen[key] = len(out)
            out.append(row)
    return out


def batch_upsert(
    cursor: Any,
    table: str,
    columns: Sequence[str],
    rows: Iterable[Sequence[Any]],
    conflict_column: str = "id",
    page_size: int = 1000,
    metrics_callback: Callable[[BatchMetrics], None] | None = None,
) -> UpsertResult:
    """Upsert ``rows`` (value sequences ordered like ``columns``) into ``table``.

    Parameters
    ----------
    cursor: psycopg2 cursor
    table: 대상 테이블 (식별자 형식 검증 후 인용)
    columns: 삽입 열. ``conflict_column`` 을 반드시 포함
    rows: 행 값 시퀀스
    conflict_column: ON CONFLICT 대상 (team 은 email, 그 외 id)
    page_size: execute_values page_size
    metrics_callback: 호출 1회마다 BatchMetrics 전달 (빈 rows 면 호출 안 함)
    """
    if conflict_column not in columns:
        raise BatchUpsertError(f"conflict column {conflict_column!r} not in insert columns")

    rows_list = _dedupe(list(rows), list(columns).index(conflict_column))
    if not rows_list:
        return UpsertResult(inserted=0, updated=0)

    cols_sql = ",".join(quote_ident(c) for c in columns)
    target = quote_ident(conflict_column)
    updates = [f"{quote_ident(c)}=EXCLUDED.{quote_ident(c)}" for c in columns if c != conflict_column]
    if updates:
        on_conflict = f"ON CONFLICT ({target}) DO UPDATE SET {','.join(updates)}"
    else:
        on_conflict = f"ON CONFLICT ({target}) DO NOTHING"
    sql = f"INSERT INTO {quote_ident(table)} ({cols_sql}) VALUES %s {on_conflict} RETURNING (xmax = 0)"

    start_time = time.time()
    try:
        returned = execute_values(cursor, sql, rows_list, page_size=page_size, fetch=True)
    except Exception as e:
        raise BatchUpsertError(str(e)) from e
    finally:
        end_time = time.time()
        if metrics_callback is not None:
            metrics_callback(
                BatchMetrics(
                    batch_size=len(rows_list),
                    elapsed_seconds=end_time - start_time,
                    start_time=start_time,
                    end_time=end_time,
                )
            )

    flags = [bool(r[0]) for r in (returned or [])]
    inserted = sum(1 for f in flags if f)
    return UpsertResult(inserted=inserted, updated=len(flags) - inserted)
