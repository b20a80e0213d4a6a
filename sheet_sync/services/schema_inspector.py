from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from ..db.fallback_columns import FallbackColumns
from ..models.sheet_info import ColumnInfo

"""Destination schema lookup with a two-attempt retry policy.

attempt 1 (short timeout) -> pause -> attempt 2 (long timeout) -> static
fallback -> []. There is never a third live attempt. An attempt fails when the
fetch raises or answers ``success`` falsy.
"""

__all__ = [
    "RetryPolicy",
    "SchemaLookup",
    "SchemaFetchError",
    "SchemaInspector",
]

logger = logging.getLogger(__name__)

SchemaFetch = Callable[[str, float], dict[str, Any]]


class SchemaFetchError(Exception):
    """A single live schema attempt failed (raised by fetchers, absorbed by the inspector)."""


@dataclass(frozen=True)
class RetryPolicy:
    timeouts: tuple[float, ...] = (15.0, 25.0)
    delay: float = 0.5

    @property
    def attempts(self) -> int:
        return len(self.timeouts)


@dataclass(frozen=True)
class SchemaLookup:
    columns: list[ColumnInfo] = field(default_factory=list)
    source: str = "none"  # live | fallback | none

    @property
    def names(self) -> list[str]:
        return [c.name for c in self.columns]


class SchemaInspector:
    def __init__(
        self,
        fetch: SchemaFetch,
        policy: RetryPolicy | None = None,
        fallback: Callable[[str], list[ColumnInfo]] | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.fetch = fetch
        self.policy = policy or RetryPolicy()
        self.fallback = fallback if fallback is not None else FallbackColumns()
        self.sleep = sleep

    def _attempt(self, table: str, timeout: float) -> list[ColumnInfo]:
        body = self.fetch(table, timeout)
        if not body.get("success"):
            raise SchemaFetchError(str(body.get("message") or body.get("error") or "schema fetch reported failure"))
        raw_columns = (body.get("data") or {}).get("columns") or []
        return [ColumnInfo.from_dict(c) for c in raw_columns]

    def get_columns(self, table: str) -> SchemaLookup:
        for attempt, timeout in enumerate(self.policy.timeouts, start=1):
            if attempt > 1:
                self.sleep(self.policy.delay)
            try:
                columns = self._attempt(table, timeout)
            except Exception as exc:
                logger.warning(
                    "schema fetch failed table=%s attempt=%d/%d timeout=%ss: %s",
                    table,
                    attempt,
                    self.policy.attempts,
                    timeout,
                    exc,
                )
                continue
            return SchemaLookup(columns=columns, source="live")

        columns = self.fallback(table)
        if columns:
            logger.warning("using fallback columns for table=%s (%d columns)", table, len(columns))
            return SchemaLookup(columns=columns, source="fallback")
        logger.warning("no schema available for table=%s", table)
        return SchemaLookup(columns=[], source="none")
