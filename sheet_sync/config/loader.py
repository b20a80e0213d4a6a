from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

"""Config loader for the sheet -> database sync tool.

Responsibilities:
- Load YAML config (default config/sync.yml)
- Validate against the bundled JSON schema (sync_config_schema.json)
- Apply defaults (sheet prefix "S", request timeouts, state file location)
- Environment overrides: SHEET_SYNC_TOKEN for the API bearer token
"""

SCHEMA_PATH = Path(__file__).with_name("sync_config_schema.json")
DEFAULT_CONFIG_PATH = Path("config/sync.yml")

DEFAULT_SHEET_PREFIX = "S"
DEFAULT_SAMPLE_SIZE = 5


class ConfigError(Exception):
    pass


@dataclass(frozen=True)
class DatabaseConfig:
    host: str | None = None
    port: int | None = None
    user: str | None = None
    password: str | None = None
    database: str | None = None
    dsn: str | None = None


@dataclass(frozen=True)
class TimeoutConfig:
    """Request timeouts in seconds.

    schema_first / schema_retry are the two attempts of the schema lookup,
    schema_retry_delay the pause between them.
    """
    sheets: float = 35.0
    schema_first: float = 15.0
    schema_retry: float = 25.0
    schema_retry_delay: float = 0.5
    stream_connect: float = 30.0


@dataclass(frozen=True)
class SyncConfig:
    base_url: str
    token: str | None = None
    spreadsheet_id: str | None = None
    sheet_prefix: str = DEFAULT_SHEET_PREFIX
    sample_size: int = DEFAULT_SAMPLE_SIZE
    timeouts: TimeoutConfig = field(default_factory=TimeoutConfig)
    state_file: str = ".sync_state.json"
    log_dir: str = "./logs"
    batch_size: int | None = None  # None -> derived from row count
    database: DatabaseConfig = field(default_factory=DatabaseConfig)


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against the bundled JSON schema.

    Raises:
        ConfigError: schema file missing or unreadable, or the data violates it
            (missing required keys, wrong types, unknown keys).
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")
    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        raise ConfigError(f"config validation failed: {e.message}") from e


def load_config(path: Path = DEFAULT_CONFIG_PATH) -> SyncConfig:
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError("config validation failed: top level must be a mapping")

    _validate_config_schema(data)

    api = data["api"]
    # 환경변수 토큰이 설정 파일보다 우선
    token = os.getenv("SHEET_SYNC_TOKEN") or api.get("token")

    timeouts_raw = data.get("timeouts") or {}
    defaults = TimeoutConfig()
    timeouts = TimeoutConfig(
        sheets=float(timeouts_raw.get("sheets", defaults.sheets)),
        schema_first=float(timeouts_raw.get("schema_first", defaults.schema_first)),
        schema_retry=float(timeouts_raw.get("schema_retry", defaults.schema_retry)),
        schema_retry_delay=float(timeouts_raw.get("schema_retry_delay", defaults.schema_retry_delay)),
        stream_connect=float(timeouts_raw.get("stream_connect", defaults.stream_connect)),
    )

    db_raw = data.get("database") or {}
    db = DatabaseConfig(
        host=db_raw.get("host"),
        port=db_raw.get("port"),
        user=db_raw.get("user"),
        password=db_raw.get("password"),
        database=db_raw.get("database"),
        dsn=db_raw.get("dsn"),
    )
    return SyncConfig(
        base_url=api["base_url"].rstrip("/"),
        token=token,
        spreadsheet_id=data.get("spreadsheet_id"),
        sheet_prefix=data.get("sheet_prefix", DEFAULT_SHEET_PREFIX),
        sample_size=data.get("sample_size", DEFAULT_SAMPLE_SIZE),
        timeouts=timeouts,
        state_file=data.get("state_file", ".sync_state.json"),
        log_dir=data.get("log_dir", "./logs"),
        batch_size=data.get("batch_size"),
        database=db,
    )


def resolve_dsn(db_cfg: DatabaseConfig) -> str:
    """Build a libpq DSN.

    Precedence: DATABASE_URL / PGDSN, then the config dsn, then individual
    PGHOST / PGPORT / PGUSER / PGPASSWORD / PGDATABASE with the config block as
    fallback for whatever is unset.
    """
    dsn = os.getenv("DATABASE_URL") or os.getenv("PGDSN") or db_cfg.dsn
    if dsn:
        return dsn
    host = os.getenv("PGHOST", db_cfg.host or "localhost")
    port = os.getenv("PGPORT", str(db_cfg.port) if db_cfg.port else "5432")
    user = os.getenv("PGUSER", db_cfg.user or "postgres")
    password = os.getenv("PGPASSWORD", db_cfg.password or "")
    database = os.getenv("PGDATABASE", db_cfg.database or "postgres")
    dsn = f"host={host} port={port} user={user} dbname={database}"
    if password:
        dsn += f" password={password}"
    return dsn
