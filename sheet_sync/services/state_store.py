from __future__ import annotations

import json
import logging
import os
import tempfile
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from ..models.sync_models import ColumnMapping
from .column_mapper import auto_map

"""Persisted client state (column mappings, learned sync rate, UI selections).

Stored as one versioned JSON document:

    {
      "version": 2,
      "column_mappings": {"reservations": {"예약번호": "id"}},
      "ms_per_row": 12.0,
      "selections": {"products": [], "team_members": []}
    }

Version 1 was a flat string->string key/value dump (``column-mapping-<table>``,
``flex-sync-ms-per-row``, ``selected-products``, ``selected-team-members``,
values JSON-encoded as strings); it is migrated on load and rewritten as v2
on the next save. Malformed files or values are logged and treated as absent.
"""

__all__ = [
    "STATE_VERSION",
    "StateStoreError",
    "StateStore",
    "MappingStore",
    "ResolvedMapping",
]

logger = logging.getLogger(__name__)

STATE_VERSION = 2

V1_MAPPING_PREFIX = "column-mapping-"
V1_RATE_KEY = "flex-sync-ms-per-row"
V1_SELECTION_KEYS = {
    "selected-products": "products",
    "selected-team-members": "team_members",
}


class StateStoreError(Exception):
    """State file written by a newer version, or not writable."""


def _defaults() -> dict[str, Any]:
    return {
        "version": STATE_VERSION,
        "column_mappings": {},
        "ms_per_row": None,
        "selections": {"products": [], "team_members": []},
    }


def _clean_mapping(raw: Any) -> ColumnMapping | None:
    if not isinstance(raw, dict):
        return None
    return {str(k): str(v) for k, v in raw.items() if isinstance(v, str) and v}


def _clean_rate(raw: Any) -> float | None:
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return None
    return value if value > 0 else None


def _clean_selection(raw: Any) -> list[str] | None:
    if not isinstance(raw, list):
        return None
    return [str(x) for x in raw]


def _loads_value(key: str, raw: Any) -> Any:
    """Decode one v1 string value; None (with a warning) when it is not JSON."""
    if not isinstance(raw, str):
        return raw
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("ignoring malformed stored value key=%s", key)
        return None


def migrate_v1(flat: dict[str, Any]) -> dict[str, Any]:
    data = _defaults()
    for key, raw in flat.items():
        if key.startswith(V1_MAPPING_PREFIX):
            table = key[len(V1_MAPPING_PREFIX):]
            mapping = _clean_mapping(_loads_value(key, raw))
            if mapping is None:
                logger.warning("ignoring malformed stored mapping table=%s", table)
                continue
            data["column_mappings"][table] = mapping
        elif key == V1_RATE_KEY:
            rate = _clean_rate(_loads_value(key, raw))
            if rate is None:
                logger.warning("ignoring malformed stored sync rate: %r", raw)
            data["ms_per_row"] = rate
        elif key in V1_SELECTION_KEYS:
            selection = _clean_selection(_loads_value(key, raw))
            if selection is None:
                logger.warning("ignoring malformed stored selection key=%s", key)
                continue
            data["selections"][V1_SELECTION_KEYS[key]] = selection
    logger.info("migrated state file from version 1 (%d keys)", len(flat))
    return data


def _sanitize_v2(raw: dict[str, Any]) -> dict[str, Any]:
    data = _defaults()
    mappings = raw.get("column_mappings")
    if isinstance(mappings, dict):
        for table, mapping in mappings.items():
            cleaned = _clean_mapping(mapping)
            if cleaned is None:
                logger.warning("ignoring malformed stored mapping table=%s", table)
                continue
            data["column_mappings"][str(table)] = cleaned
    elif mappings is not None:
        logger.warning("ignoring malformed column_mappings section")

    if raw.get("ms_per_row") is not None:
        data["ms_per_row"] = _clean_rate(raw["ms_per_row"])
        if data["ms_per_row"] is None:
            logger.warning("ignoring malformed stored sync rate: %r", raw["ms_per_row"])

    selections = raw.get("selections")
    if isinstance(selections, dict):
        for name in ("products", "team_members"):
            if name in selections:
                cleaned_sel = _clean_selection(selections[name])
                if cleaned_sel is None:
                    logger.warning("ignoring malformed selection %s", name)
                    continue
                data["selections"][name] = cleaned_sel
    return data


class StateStore:
    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        self._data = self._load()

    def _load(self) -> dict[str, Any]:
        if not self.path.exists():
            return _defaults()
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.warning("state file %s unreadable, using defaults: %s", self.path, e)
            return _defaults()
        if not isinstance(raw, dict):
            logger.warning("state file %s is not an object, using defaults", self.path)
            return _defaults()

        version = raw.get("version")
        if version is None or version == 1:
            return migrate_v1({k: v for k, v in raw.items() if k != "version"})
        if version == STATE_VERSION:
            return _sanitize_v2(raw)
        if isinstance(version, int) and version > STATE_VERSION:
            raise StateStoreError(
                f"state file {self.path} has version {version}; this tool understands up to {STATE_VERSION}"
            )
        logger.warning("state file %s has unknown version %r, using defaults", self.path, version)
        return _defaults()

    # -- column mappings ----------------------------------------------------
    def get_mapping(self, table: str) -> ColumnMapping:
        return dict(self._data["column_mappings"].get(table, {}))

    def set_mapping(self, table: str, mapping: ColumnMapping) -> None:
        self._data["column_mappings"][table] = dict(mapping)

    # -- learned rate -------------------------------------------------------
    @property
    def ms_per_row(self) -> float | None:
        return self._data["ms_per_row"]

    def set_ms_per_row(self, value: float) -> None:
        self._data["ms_per_row"] = float(value)

    # -- scheduling grid selections -----------------------------------------
    def get_selection(self, name: str) -> list[str]:
        return list(self._data["selections"].get(name, []))

    def set_selection(self, name: str, values: Sequence[str]) -> None:
        self._data["selections"][name] = [str(v) for v in values]

    def as_dict(self) -> dict[str, Any]:
        return json.loads(json.dumps(self._data))

    def save(self) -> Path:
        """Atomically replace the state file (temp file in the same directory + os.replace)."""
        directory = self.path.parent
        directory.mkdir(parents=True, exist_ok=True)
        payload = json.dumps(self._data, ensure_ascii=False, indent=2)
        try:
            fd, tmp_name = tempfile.mkstemp(prefix=f".{self.path.name}.", dir=directory)
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
            os.replace(tmp_name, self.path)
        except OSError as e:
            raise StateStoreError(f"failed to write state file {self.path}: {e}") from e
        return self.path


@dataclass(frozen=True)
class ResolvedMapping:
    mapping: ColumnMapping
    origin: str  # stored | auto | empty


class MappingStore:
    """Per-table column mappings on top of StateStore."""

    def __init__(self, state: StateStore) -> None:
        self.state = state

    def save(self, table: str, mapping: ColumnMapping) -> None:
        self.state.set_mapping(table, mapping)
        self.state.save()

    def load(self, table: str) -> ColumnMapping:
        return self.state.get_mapping(table)

    def resolve(
        self,
        table: str,
        destination_columns: Sequence[str],
        source_columns: Sequence[str],
    ) -> ResolvedMapping:
        """Stored mapping first; else auto-map when both column lists are known."""
        stored = self.load(table)
        if stored:
            return ResolvedMapping(stored, "stored")
        if destination_columns and source_columns:
            return ResolvedMapping(auto_map(destination_columns, source_columns), "auto")
        return ResolvedMapping({}, "empty")
