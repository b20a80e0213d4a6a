from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

"""Append-only, tagged log of one sync run (what the operator sees and exports)."""

__all__ = ["TAGS", "LogEntry", "SyncLog"]

TAGS = ("INFO", "WARN", "ERROR", "START", "PROGRESS", "RESULT")

EXPORT_STAMP_FMT = "%Y-%m-%dT%H-%M-%S"


@dataclass(frozen=True)
class LogEntry:
    timestamp: datetime
    tag: str
    message: str

    def render(self) -> str:
        return f"[{self.timestamp.strftime('%H:%M:%S')}] [{self.tag}] {self.message}"


class SyncLog:
    def __init__(self) -> None:
        self._entries: list[LogEntry] = []

    def append(self, tag: str, message: str) -> LogEntry:
        if tag not in TAGS:
            raise ValueError(f"unknown log tag: {tag}")
        entry = LogEntry(timestamp=datetime.now(), tag=tag, message=message)
        self._entries.append(entry)
        return entry

    @property
    def entries(self) -> list[LogEntry]:
        return list(self._entries)

    def filter(self, tag: str | None = None) -> list[LogEntry]:
        if tag is None or tag == "ALL":
            return self.entries
        return [e for e in self._entries if e.tag == tag]

    def counts(self) -> dict[str, int]:
        counter = Counter(e.tag for e in self._entries)
        return {tag: counter.get(tag, 0) for tag in TAGS}

    def as_text(self, tag: str | None = None) -> str:
        """Plain-text payload for copying to the clipboard."""
        return "\n".join(e.render() for e in self.filter(tag))

    def export(self, directory: Path, tag: str | None = None) -> Path:
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / f"sync-log-{datetime.now().strftime(EXPORT_STAMP_FMT)}.txt"
        path.write_text(self.as_text(tag) + "\n", encoding="utf-8")
        return path

    def __len__(self) -> int:
        return len(self._entries)
