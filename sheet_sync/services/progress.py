from __future__ import annotations

import logging
import math
import sys
import time
from collections.abc import Callable
from typing import Any

from tqdm import tqdm
from tqdm.std import tqdm as TqdmType

from ..models.sync_models import (
    LogEvent,
    ProgressEvent,
    ResultEvent,
    StartEvent,
    SyncEvent,
    SyncStats,
)
from .sync_log import SyncLog

"""Sync progress: ETA estimation, event presentation and the terminal bar.

The percentage shown to the operator only ever grows. Until the terminal
``result`` event it is capped at 99 (95 while driven by the timer alone);
the result event sets it to exactly 100, whether the run succeeded or not.

ETA / learned rate:
- initial ETA  = max(estimated_rows * ms_per_row, 1500 ms)
- remaining    = (total - processed) * round(elapsed / processed)
                 (learned rate while nothing has been processed yet)
- learned rate = clamp(round(duration / max(inserted+updated or estimated, 1)), 3, 200)
"""

__all__ = [
    "DEFAULT_MS_PER_ROW",
    "DEFAULT_ESTIMATED_ROWS",
    "is_tty_enabled",
    "initial_eta_ms",
    "remaining_ms",
    "learned_ms_per_row",
    "rate_performance",
    "RowProgressBar",
    "ProgressPresenter",
]

logger = logging.getLogger(__name__)

DEFAULT_MS_PER_ROW = 10.0
DEFAULT_ESTIMATED_ROWS = 200
MIN_ETA_MS = 1500
MIN_MS_PER_ROW = 3
MAX_MS_PER_ROW = 200
TIMER_CAP = 95.0
STREAM_CAP = 99.0
TICK_INTERVAL = 0.2


def is_tty_enabled() -> bool:
    return sys.stdout.isatty()


def initial_eta_ms(estimated_rows: int, ms_per_row: float) -> float:
    return max(estimated_rows * ms_per_row, MIN_ETA_MS)


def remaining_ms(total: int, processed: int, elapsed_ms: float, ms_per_row: float) -> float:
    left = max(total - processed, 0)
    if processed > 0:
        return left * round(elapsed_ms / processed)
    return left * ms_per_row


def learned_ms_per_row(duration_ms: float, rows_written: int, estimated_rows: int) -> int:
    rows = max(rows_written if rows_written > 0 else estimated_rows, 1)
    return min(max(round(duration_ms / rows), MIN_MS_PER_ROW), MAX_MS_PER_ROW)


def rate_performance(ms_per_row: float) -> str:
    if ms_per_row < 10:
        return "excellent"
    if ms_per_row < 50:
        return "good"
    return "needs improvement"


class RowProgressBar:
    """tqdm bar over rows, created only when stdout is a TTY.

    In non-TTY environments (CI, pipes) every method is a no-op so logs are
    not polluted with control sequences.
    """

    def __init__(self, total: int, *, description: str = "Syncing rows") -> None:
        self.total = total
        self.description = description
        self.enabled = is_tty_enabled()
        self.pbar: TqdmType[Any] | None
        if self.enabled:
            self.pbar = tqdm(
                total=total,
                desc=description,
                unit="row",
                leave=True,
                position=0,
                ncols=80,
                ascii=True,
            )
        else:
            self.pbar = None

    def set_total(self, total: int) -> None:
        self.total = total
        if self.pbar is not None:
            self.pbar.total = total
            self.pbar.refresh()

    def update_to(self, processed: int) -> None:
        if self.pbar is not None and processed > self.pbar.n:
            self.pbar.update(processed - self.pbar.n)

    def set_postfix(self, **kwargs: Any) -> None:
        if self.pbar is not None:
            self.pbar.set_postfix(**kwargs)

    def close(self) -> None:
        if self.pbar is not None:
            self.pbar.close()
            self.pbar = None

    def __enter__(self) -> RowProgressBar:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()


_LOG_LEVEL_FOR_TAG = {
    "WARN": logging.WARNING,
    "ERROR": logging.ERROR,
}


class ProgressPresenter:
    """Consumes SyncEvents in arrival order and keeps what the operator sees."""

    def __init__(
        self,
        *,
        ms_per_row: float | None = None,
        bar: RowProgressBar | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ms_per_row = ms_per_row or DEFAULT_MS_PER_ROW
        self.bar = bar
        self.clock = clock
        self.log = SyncLog()
        self.stats = SyncStats()
        self.percentage = 0.0
        self.total: int | None = None
        self.eta_ms = 0.0
        self.result: ResultEvent | None = None
        self._started: float | None = None

    # -- lifecycle ----------------------------------------------------------
    def begin(self, estimated_rows: int | None) -> None:
        rows = estimated_rows or DEFAULT_ESTIMATED_ROWS
        self._started = self.clock()
        self.eta_ms = initial_eta_ms(rows, self.ms_per_row)
        self.note("INFO", f"sync requested (estimated {rows} rows, ETA {self.eta_ms / 1000:.1f}s)")

    @property
    def elapsed_ms(self) -> float:
        if self._started is None:
            return 0.0
        return (self.clock() - self._started) * 1000

    @property
    def finished(self) -> bool:
        return self.result is not None

    def _raise_to(self, value: float, cap: float) -> None:
        if self.finished:
            return
        self.percentage = max(self.percentage, min(cap, value))

    def tick(self) -> float:
        """Timer-driven advance toward 95 % at the pace implied by the ETA."""
        if self._started is not None and self.eta_ms > 0:
            self._raise_to(math.floor(self.elapsed_ms / self.eta_ms * TIMER_CAP), TIMER_CAP)
        return self.percentage

    # -- events -------------------------------------------------------------
    def handle(self, event: SyncEvent) -> None:
        if isinstance(event, StartEvent):
            self._on_start(event)
        elif isinstance(event, ProgressEvent):
            self._on_progress(event)
        elif isinstance(event, LogEvent):
            self.note(event.level.upper(), event.message)
        elif isinstance(event, ResultEvent):
            self._on_result(event)

    def _on_start(self, event: StartEvent) -> None:
        self.total = event.total
        self.eta_ms = initial_eta_ms(event.total, self.ms_per_row)
        if self.bar is not None:
            self.bar.set_total(event.total)
        self.note("START", f"syncing {event.total} rows")

    def _on_progress(self, event: ProgressEvent) -> None:
        self.stats = SyncStats(
            processed=event.processed,
            inserted=event.inserted,
            updated=event.updated,
            errors=event.errors,
        )
        total = event.total or self.total or 0
        if total > 0:
            self._raise_to(math.floor(event.processed / total * 100), STREAM_CAP)
            self.eta_ms = remaining_ms(total, event.processed, self.elapsed_ms, self.ms_per_row)
        if self.bar is not None:
            self.bar.update_to(event.processed)
            self.bar.set_postfix(ins=event.inserted, upd=event.updated, err=event.errors)
        if total <= 0:
            return
        step = max(1, total // 10)
        if event.processed > 0 and event.processed % step == 0:
            self.note(
                "PROGRESS",
                f"{event.processed}/{total} rows (inserted {event.inserted}, "
                f"updated {event.updated}, errors {event.errors})",
            )

    def _on_result(self, event: ResultEvent) -> None:
        self.result = event
        self.percentage = 100.0
        self.eta_ms = 0.0
        details = event.details or {}
        summary = (
            f"inserted {details.get('inserted', self.stats.inserted)}, "
            f"updated {details.get('updated', self.stats.updated)}, "
            f"errors {details.get('errors', self.stats.errors)}"
        )
        status = "completed" if event.success else "failed"
        message = f"{status}: {event.message} ({summary})" if event.message else f"{status} ({summary})"
        self.note("RESULT", message)
        if self.bar is not None:
            self.bar.update_to(self.total or self.stats.processed)

    def note(self, tag: str, message: str) -> None:
        self.log.append(tag, message)
        logger.log(_LOG_LEVEL_FOR_TAG.get(tag, logging.INFO), "[%s] %s", tag, message)
