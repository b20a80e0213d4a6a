from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Iterable
from datetime import UTC, datetime
from enum import Enum
from typing import Any

import requests

from ..api.client import ApiError, SyncApiClient
from ..logging.error_log import ErrorLogBuffer
from ..models.error_record import ErrorRecord
from ..models.sync_models import (
    ResultEvent,
    SyncEvent,
    SyncRequest,
    SyncResult,
    UnknownEventError,
    parse_event,
)
from .ndjson import NdjsonDecoder
from .progress import (
    DEFAULT_ESTIMATED_ROWS,
    TICK_INTERVAL,
    ProgressPresenter,
    learned_ms_per_row,
    rate_performance,
)
from .state_store import StateStore
from .sync_engine import SyncEngineError

"""Client side of one streamed sync run.

    IDLE -> REQUESTING -> STREAMING -> COMPLETED
               |              |
               +--------------+------> FAILED

COMPLETED requires a ``result`` event with ``success: true``. A stream that
ends without any result event is a failure ("sync result not received").
Rows written before a failure stay written; nothing is rolled back here.
"""

__all__ = [
    "SyncState",
    "IllegalTransitionError",
    "StreamProtocolError",
    "SyncEngineError",
    "SyncOrchestrator",
]

logger = logging.getLogger(__name__)

NO_RESULT_MESSAGE = "sync result not received"


class SyncState(Enum):
    IDLE = "idle"
    REQUESTING = "requesting"
    STREAMING = "streaming"
    COMPLETED = "completed"
    FAILED = "failed"


_TRANSITIONS: dict[SyncState, set[SyncState]] = {
    SyncState.IDLE: {SyncState.REQUESTING, SyncState.FAILED},
    SyncState.REQUESTING: {SyncState.STREAMING, SyncState.FAILED},
    SyncState.STREAMING: {SyncState.COMPLETED, SyncState.FAILED},
    SyncState.COMPLETED: set(),
    SyncState.FAILED: set(),
}


class IllegalTransitionError(RuntimeError):
    pass


class StreamProtocolError(Exception):
    """The stream closed without a result event."""


def transport_message(exc: BaseException) -> str:
    if isinstance(exc, requests.Timeout):
        return "request timed out. Check the network and try again."
    status = getattr(exc, "status_code", None)
    if status == 401:
        return "authentication failed. Log in again and retry."
    if status == 403:
        return "permission denied. Check the spreadsheet sharing settings."
    if status == 404:
        return "not found. Check the spreadsheet id and the sync endpoint."
    if isinstance(exc, requests.ConnectionError):
        return f"network error: {exc}"
    return str(exc) or type(exc).__name__


class _Ticker:
    """Background timer that nudges the presenter between events."""

    def __init__(self, presenter: ProgressPresenter, lock: threading.Lock, interval: float) -> None:
        self._presenter = presenter
        self._lock = lock
        self._interval = interval
        self._stop = threading.Event()
        self._thread = threading.Thread(target=self._run, name="sync-progress-ticker", daemon=True)

    def _run(self) -> None:
        while not self._stop.wait(self._interval):
            with self._lock:
                self._presenter.tick()

    def start(self) -> None:
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        self._thread.join(timeout=1.0)


class SyncOrchestrator:
    """Runs one SyncRequest against POST /sync/flexible/stream.

    One orchestrator instance drives exactly one run.
    """

    def __init__(
        self,
        client: SyncApiClient,
        presenter: ProgressPresenter,
        *,
        state: StateStore | None = None,
        error_log: ErrorLogBuffer | None = None,
        connect_timeout: float = 30.0,
        tick_interval: float | None = TICK_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.client = client
        self.presenter = presenter
        self.state_store = state
        self.error_log = error_log
        self.connect_timeout = connect_timeout
        self.tick_interval = tick_interval
        self.clock = clock
        self.state = SyncState.IDLE
        self.failure_kind: str | None = None  # transport | no_result | server
        self.decoder = NdjsonDecoder()
        self._lock = threading.Lock()
        self._request: SyncRequest | None = None

    def _transition(self, new: SyncState) -> None:
        if new not in _TRANSITIONS[self.state]:
            raise IllegalTransitionError(f"{self.state.value} -> {new.value}")
        logger.debug("sync state %s -> %s", self.state.value, new.value)
        self.state = new

    def _validate(self, request: SyncRequest) -> None:
        if not self.client.token:
            raise SyncEngineError("no access token; set SHEET_SYNC_TOKEN or api.token")
        missing = [
            name
            for name, value in (
                ("spreadsheet id", request.spreadsheet_id),
                ("sheet", request.sheet_name),
                ("target table", request.target_table),
            )
            if not value
        ]
        if missing:
            raise SyncEngineError(f"missing {', '.join(missing)}")
        if not request.column_mapping:
            raise SyncEngineError("column mapping is empty; map at least one column")

    def _record_error(self, row: int, error_type: str, message: str) -> None:
        if self.error_log is None or self._request is None:
            return
        self.error_log.append(
            ErrorRecord.create(
                sheet=self._request.sheet_name,
                table=self._request.target_table,
                row=row,
                error_type=error_type,
                message=message,
            )
        )

    def _fail(self, kind: str, message: str, details: dict[str, Any] | None = None) -> SyncResult:
        self.failure_kind = kind
        self._transition(SyncState.FAILED)
        logger.error("sync failed: %s", message)
        return SyncResult(success=False, message=message, details=details or {}, sync_time=datetime.now(UTC))

    def _dispatch(self, objects: Iterable[dict[str, Any]]) -> ResultEvent | None:
        result: ResultEvent | None = None
        for obj in objects:
            try:
                event: SyncEvent = parse_event(obj)
            except (UnknownEventError, TypeError, ValueError) as e:
                logger.warning("ignoring stream event: %s", e)
                continue
            with self._lock:
                self.presenter.handle(event)
            if isinstance(event, ResultEvent):
                result = event
        return result

    def _consume(self, chunks: Iterable[bytes]) -> ResultEvent | None:
        result: ResultEvent | None = None
        for chunk in chunks:
            if not chunk:
                continue
            got = self._dispatch(self.decoder.feed(chunk))
            result = got or result
        got = self._dispatch(self.decoder.close())
        return got or result

    def run(self, request: SyncRequest, estimated_rows: int | None = None) -> SyncResult:
        """Execute the request and return its outcome.

        Raises:
            SyncEngineError: pre-flight checks failed; nothing was sent.
            IllegalTransitionError: the orchestrator was already used.
        """
        if self.state is not SyncState.IDLE:
            raise IllegalTransitionError(f"orchestrator already {self.state.value}")
        self._validate(request)
        self._request = request
        estimated = estimated_rows or DEFAULT_ESTIMATED_ROWS

        self._transition(SyncState.REQUESTING)
        if request.truncate_table:
            logger.warning("table %s will be emptied before import (truncate requested)", request.target_table)
        self.presenter.begin(estimated)
        started = self.clock()

        ticker: _Ticker | None = None
        if self.tick_interval:
            ticker = _Ticker(self.presenter, self._lock, self.tick_interval)
            ticker.start()
        try:
            try:
                response = self.client.open_sync_stream(request, connect_timeout=self.connect_timeout)
            except (requests.RequestException, ApiError) as e:
                message = transport_message(e)
                self._record_error(-1, "TRANSPORT_ERROR", message)
                return self._fail("transport", message)

            self._transition(SyncState.STREAMING)
            try:
                with response:
                    result = self._consume(response.iter_content(chunk_size=None))
                if result is None:
                    raise StreamProtocolError(NO_RESULT_MESSAGE)
            except requests.RequestException as e:
                message = transport_message(e)
                self._record_error(-1, "STREAM_ERROR", message)
                return self._fail("transport", message)
            except StreamProtocolError as e:
                self._record_error(-1, "STREAM_INCOMPLETE", str(e))
                return self._fail("no_result", str(e))
        finally:
            if ticker is not None:
                ticker.stop()
            if self.error_log is not None:
                self._flush_error_log()

        duration_ms = (self.clock() - started) * 1000
        return self._finish(result, estimated, duration_ms)

    def _finish(self, result: ResultEvent, estimated: int, duration_ms: float) -> SyncResult:
        for detail in result.details.get("errorDetails") or []:
            if isinstance(detail, dict):
                self._record_error(int(detail.get("row", -1)), "ROW_ERROR", str(detail.get("message", "")))
            else:
                self._record_error(-1, "ROW_ERROR", str(detail))
        self._flush_error_log()

        if not result.success:
            return self._fail("server", result.message or "sync failed", result.details)

        self._transition(SyncState.COMPLETED)
        written = int(result.details.get("inserted") or 0) + int(result.details.get("updated") or 0)
        rate = learned_ms_per_row(duration_ms, written, estimated)
        if self.state_store is not None:
            self.state_store.set_ms_per_row(rate)
            self.state_store.save()
        rows = max(written, 1)
        per_second = rows / (duration_ms / 1000) if duration_ms > 0 else 0.0
        with self._lock:
            self.presenter.note(
                "INFO",
                f"performance: {duration_ms / rows:.1f} ms/row, {per_second:.0f} rows/s "
                f"({rate_performance(duration_ms / rows)})",
            )
        return SyncResult(
            success=True,
            message=result.message,
            details=dict(result.details),
            sync_time=datetime.now(UTC),
        )

    def _flush_error_log(self) -> None:
        if self.error_log is None:
            return
        try:
            path = self.error_log.flush()
        except OSError as e:
            logger.warning("failed to write error log: %s", e)
            return
        if path is not None:
            logger.debug("error log: %s", path)
