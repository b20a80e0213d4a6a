from __future__ import annotations

import json
from pathlib import Path

import pytest
import requests

from conftest import FakeClient, FakeStreamResponse, ndjson_chunks
from sheet_sync.logging.error_log import ErrorLogBuffer
from sheet_sync.models.sync_models import SyncRequest
from sheet_sync.services.orchestrator import (
    IllegalTransitionError,
    SyncEngineError,
    SyncOrchestrator,
    SyncState,
    transport_message,
)
from sheet_sync.services.progress import ProgressPresenter
from sheet_sync.services.state_store import StateStore


def _request(**overrides) -> SyncRequest:
    values = dict(
        spreadsheet_id="sheet-123",
        sheet_name="S_Reservation",
        target_table="reservations",
        column_mapping={"예약번호": "id", "고객명": "customer_name"},
    )
    values.update(overrides)
    return SyncRequest(**values)


def _orchestrator(client, tmp_path: Path, clock_values=(10.0, 14.0)):
    state = StateStore(tmp_path / "state.json")
    ticks = iter(clock_values)
    orch = SyncOrchestrator(
        client,
        ProgressPresenter(),
        state=state,
        error_log=ErrorLogBuffer(tmp_path / "logs"),
        tick_interval=None,
        clock=lambda: next(ticks),
    )
    return orch, state


def _error_lines(tmp_path: Path) -> list[dict]:
    files = list((tmp_path / "logs").glob("errors-*.log"))
    if not files:
        return []
    return [json.loads(line) for line in files[0].read_text(encoding="utf-8").splitlines()]


def test_successful_run_learns_rate(tmp_path: Path):
    client = FakeClient()
    client.stream = FakeStreamResponse(
        ndjson_chunks(
            '{"type":"info","message":"sync started"}',
            '{"type":"start","total":200}',
            '{"type":"progress","processed":200,"total":200,"inserted":150,"updated":50,"errors":0}',
            '{"type":"result","success":true,"message":"done","details":{"inserted":150,"updated":50,"errors":0}}',
            split_at=37,
        )
    )
    orch, state = _orchestrator(client, tmp_path)
    result = orch.run(_request(), estimated_rows=180)

    assert result.success
    assert (result.inserted, result.updated, result.errors) == (150, 50, 0)
    assert result.sync_time is not None
    assert orch.state is SyncState.COMPLETED
    assert orch.failure_kind is None
    assert orch.presenter.percentage == 100
    assert client.stream.closed
    # 4000 ms / 200 rows
    assert StateStore(tmp_path / "state.json").ms_per_row == 20
    assert state.ms_per_row == 20
    assert any(e.message.startswith("performance:") for e in orch.presenter.log.filter("INFO"))
    assert _error_lines(tmp_path) == []


def test_stream_without_result_fails(tmp_path: Path):
    client = FakeClient()
    client.stream = FakeStreamResponse(
        ndjson_chunks(
            '{"type":"start","total":10}',
            '{"type":"progress","processed":10,"total":10,"inserted":10,"updated":0,"errors":0}',
        )
    )
    orch, state = _orchestrator(client, tmp_path)
    result = orch.run(_request())
    assert not result.success
    assert result.message == "sync result not received"
    assert orch.state is SyncState.FAILED
    assert orch.failure_kind == "no_result"
    assert orch.presenter.percentage <= 99
    assert state.ms_per_row is None
    assert [r["error_type"] for r in _error_lines(tmp_path)] == ["STREAM_INCOMPLETE"]


def test_failed_result_is_server_failure(tmp_path: Path):
    client = FakeClient()
    client.stream = FakeStreamResponse(
        ndjson_chunks(
            '{"type":"error","message":"table reservations not found"}',
            '{"type":"result","success":false,"message":"table reservations not found","details":{}}',
        )
    )
    orch, _ = _orchestrator(client, tmp_path)
    result = orch.run(_request())
    assert not result.success
    assert orch.failure_kind == "server"
    assert orch.presenter.percentage == 100
    assert orch.presenter.log.counts()["ERROR"] == 1


def test_row_errors_go_to_error_log(tmp_path: Path):
    details = {
        "inserted": 1,
        "updated": 0,
        "errors": 2,
        "errorDetails": [{"row": 3, "message": "missing id"}, "batch failed"],
    }
    client = FakeClient()
    client.stream = FakeStreamResponse(
        ndjson_chunks(
            '{"type":"start","total":3}',
            json.dumps({"type": "result", "success": True, "message": "partial", "details": details}),
        )
    )
    orch, _ = _orchestrator(client, tmp_path)
    result = orch.run(_request())
    assert result.success and result.errors == 2
    lines = _error_lines(tmp_path)
    assert [(r["row"], r["error_type"]) for r in lines] == [(3, "ROW_ERROR"), (-1, "ROW_ERROR")]
    assert lines[0]["sheet"] == "S_Reservation" and lines[0]["table"] == "reservations"


def test_malformed_lines_do_not_stop_the_stream(tmp_path: Path):
    client = FakeClient()
    client.stream = FakeStreamResponse(
        ndjson_chunks(
            '{"type":"start","total":1}',
            "<html>gateway</html>",
            '{"type":"mystery"}',
            '{"type":"result","success":true,"message":"ok","details":{"inserted":1}}',
        )
    )
    orch, _ = _orchestrator(client, tmp_path)
    assert orch.run(_request()).success
    assert len(orch.decoder.malformed) == 1


def test_connect_failure_is_transport(tmp_path: Path):
    client = FakeClient()
    client.stream = requests.ConnectionError("connection refused")
    orch, _ = _orchestrator(client, tmp_path, clock_values=(0.0,))
    result = orch.run(_request())
    assert not result.success
    assert orch.failure_kind == "transport"
    assert orch.state is SyncState.FAILED
    assert "network error" in result.message
    assert [r["error_type"] for r in _error_lines(tmp_path)] == ["TRANSPORT_ERROR"]


def test_mid_stream_failure_is_transport(tmp_path: Path):
    client = FakeClient()
    client.stream = FakeStreamResponse(
        ndjson_chunks('{"type":"start","total":5}'),
        error=requests.exceptions.ChunkedEncodingError("connection broken"),
    )
    orch, _ = _orchestrator(client, tmp_path, clock_values=(0.0,))
    result = orch.run(_request())
    assert orch.failure_kind == "transport"
    assert not result.success
    assert orch.presenter.total == 5


@pytest.mark.parametrize(
    "client, request_kwargs",
    [
        (FakeClient(token=None), {}),
        (FakeClient(), {"column_mapping": {}}),
        (FakeClient(), {"sheet_name": ""}),
    ],
)
def test_preflight_errors_send_nothing(tmp_path: Path, client, request_kwargs):
    orch, _ = _orchestrator(client, tmp_path)
    with pytest.raises(SyncEngineError):
        orch.run(_request(**request_kwargs))
    assert client.calls == []
    assert orch.state is SyncState.IDLE


def test_orchestrator_runs_only_once(tmp_path: Path):
    client = FakeClient()
    client.stream = FakeStreamResponse(ndjson_chunks('{"type":"result","success":true}'))
    orch, _ = _orchestrator(client, tmp_path)
    orch.run(_request())
    with pytest.raises(IllegalTransitionError):
        orch.run(_request())


def test_transport_message_by_status():
    class Err(Exception):
        def __init__(self, status):
            super().__init__("x")
            self.status_code = status

    assert "authentication" in transport_message(Err(401))
    assert "permission" in transport_message(Err(403))
    assert "timed out" in transport_message(requests.Timeout())
