from .loader import (
    ConfigError,
    DatabaseConfig,
    SyncConfig,
    TimeoutConfig,
    load_config,
    resolve_dsn,
)

__all__ = [
    "ConfigError",
    "DatabaseConfig",
    "SyncConfig",
    "TimeoutConfig",
    "load_config",
    "resolve_dsn",
]
