from __future__ import annotations

import codecs
import json
import logging
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from typing import Any

from ..models.sync_models import SyncEvent

"""Incremental newline-delimited JSON decoding (and encoding) of sync events.

Chunks from the network do not respect line boundaries. The decoder keeps the
unterminated tail between ``feed`` calls and only parses complete lines, so a
split line is never lost. A complete line that is not valid JSON is reported
as a MalformedLine and skipped; the stream keeps going.
"""

__all__ = [
    "MalformedLine",
    "NdjsonDecoder",
    "iter_ndjson",
]

logger = logging.getLogger(__name__)

EXCERPT_LEN = 80


@dataclass(frozen=True)
class MalformedLine:
    line_number: int
    excerpt: str
    error: str
    incomplete: bool = False  # unterminated tail at end of stream


@dataclass
class NdjsonDecoder:
    encoding: str = "utf-8"
    malformed: list[MalformedLine] = field(default_factory=list)
    _buffer: str = ""
    _line_number: int = 0
    _decoder: codecs.IncrementalDecoder = field(init=False, repr=False)

    def __post_init__(self) -> None:
        # 청크 경계에서 잘린 멀티바이트 문자는 디코더가 보관
        self._decoder = codecs.getincrementaldecoder(self.encoding)(errors="replace")

    def _decode(self, chunk: bytes | str) -> str:
        if isinstance(chunk, str):
            return chunk
        return self._decoder.decode(chunk)

    def _parse(self, line: str, *, incomplete: bool = False) -> dict[str, Any] | None:
        self._line_number += 1
        stripped = line.strip()
        if not stripped:
            return None
        try:
            obj = json.loads(stripped)
        except json.JSONDecodeError as e:
            self._report(stripped, str(e), incomplete)
            return None
        if not isinstance(obj, dict):
            self._report(stripped, f"expected object, got {type(obj).__name__}", incomplete)
            return None
        return obj

    def _report(self, text: str, error: str, incomplete: bool) -> None:
        bad = MalformedLine(
            line_number=self._line_number,
            excerpt=text[:EXCERPT_LEN],
            error=error,
            incomplete=incomplete,
        )
        self.malformed.append(bad)
        logger.warning(
            "skipping %s stream line %d: %s (%s)",
            "incomplete" if incomplete else "malformed",
            bad.line_number,
            bad.excerpt,
            error,
        )

    def feed(self, chunk: bytes | str) -> list[dict[str, Any]]:
        """Consume one chunk; return the objects of every line it completed."""
        self._buffer += self._decode(chunk)
        *lines, self._buffer = self._buffer.split("\n")
        out: list[dict[str, Any]] = []
        for line in lines:
            obj = self._parse(line)
            if obj is not None:
                out.append(obj)
        return out

    def close(self) -> list[dict[str, Any]]:
        """Flush the final unterminated line, if any."""
        tail = self._buffer + self._decoder.decode(b"", final=True)
        self._buffer = ""
        if not tail.strip():
            return []
        obj = self._parse(tail, incomplete=True)
        return [obj] if obj is not None else []


def iter_ndjson(events: Iterable[SyncEvent]) -> Iterator[bytes]:
    """Render events as the wire stream: one JSON object per line."""
    for event in events:
        yield (json.dumps(event.to_dict(), ensure_ascii=False) + "\n").encode("utf-8")
