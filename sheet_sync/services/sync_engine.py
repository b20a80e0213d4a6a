from __future__ import annotations

import logging
import uuid
from collections.abc import Callable, Iterable, Iterator, Mapping
from datetime import UTC, datetime
from typing import Any

import pandas as pd
from psycopg2.extras import Json

from ..db.batch_upsert import BatchUpsertError, batch_upsert, quote_ident
from ..db.schema import introspect_columns
from ..models.sync_models import (
    LogEvent,
    ProgressEvent,
    ResultEvent,
    StartEvent,
    SyncEvent,
    SyncRequest,
)
from .transform import optimal_batch_size, transform_row, validate_row

"""Producer side of the sync stream: rows in, SyncEvents out.

Event order of one run:

    info* -> start{total} -> (progress | warn | error)* -> result

``start`` always precedes the first ``progress`` and ``result`` is always the
last event. Each batch runs inside a savepoint; a failing batch is rolled back
and counted as errors while the run continues. Committing the surrounding
transaction is the caller's job.
"""

__all__ = [
    "SyncEngineError",
    "CONFLICT_COLUMNS",
    "SyncEngine",
]

logger = logging.getLogger(__name__)

CONFLICT_COLUMNS = {"team": "email"}
MAX_ERROR_DETAILS = 100
HEADER_ROWS = 1
SAVEPOINT = "sheet_sync_batch"


class SyncEngineError(Exception):
    """A sync run cannot start (missing token, sheet, table or mapping) or cannot proceed."""


def _sheet_row(index: int) -> int:
    # 1행은 헤더, 데이터는 2행부터
    return index + HEADER_ROWS + 1


def _parse_ts(value: Any) -> pd.Timestamp | None:
    if value is None or value == "":
        return None
    try:
        ts = pd.to_datetime(value, utc=True)
    except (ValueError, TypeError, OverflowError):
        return None
    return None if pd.isna(ts) else ts


def _adapt(value: Any) -> Any:
    if isinstance(value, dict):
        return Json(value)
    return value


class SyncEngine:
    def __init__(
        self,
        cursor: Any,
        *,
        batch_size: int | None = None,
        schema: str = "public",
        now: Callable[[], datetime] = lambda: datetime.now(UTC),
    ) -> None:
        self.cursor = cursor
        self.batch_size = batch_size
        self.schema = schema
        self.now = now

    # -- helpers ------------------------------------------------------------
    def _filter_incremental(
        self, rows: list[tuple[int, dict[str, Any]]], last_sync_time: str | None
    ) -> list[tuple[int, dict[str, Any]]]:
        since = _parse_ts(last_sync_time)
        if since is None:
            return rows
        kept = []
        for row_no, row in rows:
            ts = _parse_ts(row.get("updated_at"))
            if ts is None or ts > since:
                kept.append((row_no, row))
        return kept

    def _prepare(self, row: dict[str, Any], table: str, known: set[str], stamp: str) -> dict[str, Any]:
        prepared = {k: v for k, v in row.items() if k in known}
        if table not in CONFLICT_COLUMNS and not prepared.get("id"):
            prepared["id"] = str(uuid.uuid4())
        if "updated_at" in known:
            prepared["updated_at"] = stamp
        return prepared

    def _upsert_batch(
        self,
        table: str,
        batch: list[tuple[int, dict[str, Any]]],
        column_order: list[str],
        conflict: str,
    ) -> tuple[int, int]:
        """Upsert one batch, grouping rows by the set of columns they carry."""
        groups: dict[tuple[str, ...], list[list[Any]]] = {}
        for _, row in batch:
            cols = tuple(c for c in column_order if c in row)
            groups.setdefault(cols, []).append([_adapt(row[c]) for c in cols])
        inserted = updated = 0
        for cols, values in groups.items():
            result = batch_upsert(self.cursor, table, cols, values, conflict_column=conflict)
            inserted += result.inserted
            updated += result.updated
        return inserted, updated

    # -- main ---------------------------------------------------------------
    def run(
        self,
        request: SyncRequest,
        rows: Iterable[Mapping[str, Any]],
        last_sync_time: str | None = None,
    ) -> Iterator[SyncEvent]:
        table = request.target_table
        yield LogEvent("info", f"sync started - {request.sheet_name} -> {table}")

        columns = introspect_columns(self.cursor, table, self.schema)
        if not columns:
            yield LogEvent("error", f"table {table} not found")
            yield ResultEvent(False, f"table {table} not found", {"inserted": 0, "updated": 0, "errors": 0})
            return
        column_order = [c.name for c in columns]
        known = set(column_order)
        conflict = CONFLICT_COLUMNS.get(table, "id")
        if conflict not in known:
            yield ResultEvent(False, f"table {table} has no {conflict} column", {"inserted": 0, "updated": 0, "errors": 0})
            return

        unknown = sorted(set(request.column_mapping.values()) - known)
        if unknown:
            yield LogEvent("warn", f"mapped columns not in {table} are ignored: {', '.join(unknown)}")

        source = list(rows)
        yield LogEvent("info", f"read {len(source)} rows from sheet {request.sheet_name}")
        transformed = [
            (_sheet_row(i), transform_row(row, request.column_mapping, table)) for i, row in enumerate(source)
        ]
        if request.enable_incremental_sync:
            before = len(transformed)
            transformed = self._filter_incremental(transformed, last_sync_time)
            yield LogEvent("info", f"incremental sync: {before - len(transformed)} unchanged rows skipped")

        if not transformed:
            yield LogEvent("warn", "no rows to sync")
            yield ResultEvent(True, "No data to sync", {"inserted": 0, "updated": 0, "errors": 0, "errorDetails": []})
            return

        error_details: list[dict[str, Any]] = []
        valid: list[tuple[int, dict[str, Any]]] = []
        for row_no, row in transformed:
            missing = validate_row(row, table)
            if missing:
                error_details.append({"row": row_no, "message": f"missing required field(s): {', '.join(missing)}"})
            else:
                valid.append((row_no, row))
        if error_details:
            yield LogEvent("warn", f"{len(error_details)} rows failed validation and are skipped")

        batch_size = self.batch_size or optimal_batch_size(len(valid))
        yield LogEvent("info", f"batch size: {batch_size}")

        if request.truncate_table:
            try:
                self.cursor.execute(f"DELETE FROM {quote_ident(table)}")
            except Exception as e:
                yield LogEvent("error", f"failed to empty table {table}: {e}")
                yield ResultEvent(False, f"failed to empty table {table}: {e}", {"inserted": 0, "updated": 0, "errors": 0})
                return
            yield LogEvent("warn", f"table {table} emptied ({getattr(self.cursor, 'rowcount', -1)} rows deleted)")

        total = len(transformed)
        errors = len(error_details)
        inserted = updated = 0
        processed = errors
        yield StartEvent(total=total)

        stamp = self.now().isoformat()
        for offset in range(0, len(valid), batch_size):
            chunk = valid[offset : offset + batch_size]
            prepared = [(row_no, self._prepare(row, table, known, stamp)) for row_no, row in chunk]
            self.cursor.execute(f"SAVEPOINT {SAVEPOINT}")
            try:
                ins, upd = self._upsert_batch(table, prepared, column_order, conflict)
            except BatchUpsertError as e:
                self.cursor.execute(f"ROLLBACK TO SAVEPOINT {SAVEPOINT}")
                errors += len(chunk)
                first, last = chunk[0][0], chunk[-1][0]
                error_details.append({"row": first, "message": f"rows {first}-{last}: {e}"})
                logger.warning("batch rows %d-%d failed: %s", first, last, e)
                yield LogEvent("error", f"batch rows {first}-{last} failed: {e}")
            else:
                self.cursor.execute(f"RELEASE SAVEPOINT {SAVEPOINT}")
                inserted += ins
                updated += upd
            processed += len(chunk)
            yield ProgressEvent(processed=processed, total=total, inserted=inserted, updated=updated, errors=errors)
        if not valid:
            yield ProgressEvent(processed=processed, total=total, inserted=0, updated=0, errors=errors)

        message = f"sync complete: {inserted} inserted, {updated} updated, {errors} errors"
        yield ResultEvent(
            errors == 0,
            message,
            {
                "inserted": inserted,
                "updated": updated,
                "errors": errors,
                "errorDetails": error_details[:MAX_ERROR_DETAILS],
            },
        )
