# Shared pytest fixtures
from __future__ import annotations
import tempfile
from pathlib import Path
from typing import Any

import pytest

from sheet_sync.logging.init import reset_logging


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        yield p


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    # 개발자 환경의 토큰 / DSN 이 테스트에 섞이지 않도록
    for name in ("SHEET_SYNC_TOKEN", "DATABASE_URL", "PGDSN", "PGHOST", "PGPORT", "PGUSER", "PGPASSWORD", "PGDATABASE"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture()
def sample_config_yaml() -> str:
    return """api:
  base_url: https://api.example.test/api/
  token: test-token
spreadsheet_id: sheet-123
sheet_prefix: S
timeouts:
  schema_retry_delay: 0
state_file: ./state.json
log_dir: ./logs
database:
  host: localhost
  port: 5432
  user: appuser
  password: secret
  database: appdb
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "sync.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


@pytest.fixture()
def fresh_logging():
    reset_logging()
    yield
    reset_logging()


class FakeStreamResponse:
    """Minimal stand-in for a streaming requests.Response."""

    def __init__(self, chunks: list[bytes], error: Exception | None = None) -> None:
        self.chunks = chunks
        self.error = error
        self.closed = False

    def iter_content(self, chunk_size=None):
        for chunk in self.chunks:
            yield chunk
        if self.error is not None:
            raise self.error

    def __enter__(self):
        return self

    def __exit__(self, *exc: Any) -> None:
        self.closed = True


class FakeClient:
    """SyncApiClient double: canned JSON bodies keyed by method name."""

    def __init__(self, token: str | None = "test-token", **bodies: Any) -> None:
        self.token = token
        self.bodies = bodies
        self.calls: list[tuple[str, tuple]] = []
        self.stream: FakeStreamResponse | Exception | None = None

    def _answer(self, name: str, *args: Any) -> Any:
        self.calls.append((name, args))
        body = self.bodies.get(name)
        if isinstance(body, Exception):
            raise body
        if isinstance(body, list) and body and all(isinstance(b, (dict, Exception)) for b in body):
            nxt = body.pop(0)
            if isinstance(nxt, Exception):
                raise nxt
            return nxt
        return body

    def fetch_sheets(self, spreadsheet_id, timeout=30.0):
        return self._answer("fetch_sheets", spreadsheet_id)

    def fetch_sheet_columns(self, spreadsheet_id, sheet_name, timeout=30.0):
        return self._answer("fetch_sheet_columns", spreadsheet_id, sheet_name)

    def fetch_schema(self, table, timeout=30.0):
        return self._answer("fetch_schema", table, timeout)

    def list_tables(self, timeout=30.0):
        return self._answer("list_tables")

    def suggest_mapping(self, sheet_columns, table, timeout=30.0):
        return self._answer("suggest_mapping", table)

    def last_sync_time(self, table, spreadsheet_id, timeout=30.0):
        return self._answer("last_sync_time", table, spreadsheet_id)

    def open_sync_stream(self, request, connect_timeout=30.0):
        self.calls.append(("open_sync_stream", (request,)))
        if isinstance(self.stream, Exception):
            raise self.stream
        return self.stream

    def close(self) -> None:
        self.calls.append(("close", ()))


@pytest.fixture()
def fake_client() -> FakeClient:
    return FakeClient()


def ndjson_chunks(*lines: str, split_at: int | None = None) -> list[bytes]:
    """Join lines into one NDJSON payload, optionally cut into two chunks."""
    data = ("\n".join(lines) + "\n").encode("utf-8")
    if split_at is None:
        return [data]
    return [data[:split_at], data[split_at:]]
