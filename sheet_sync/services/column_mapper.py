from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence

from ..models.sync_models import ColumnMapping
from .synonyms import COLUMN_SYNONYMS

"""Sheet header -> destination column matching.

Each source header is classified against a destination column by the first
tier it satisfies:

    1 EXACT      case-insensitive equality (always surfaced first)
    2 SUBSTRING  either name contains the other
    3 UNDERSCORE equality once underscores are removed
    4 SYNONYM    header contains a bilingual alias of the destination column

``auto_map`` resolves all destinations in one pass so that a source header is
never claimed twice; ``greedy_auto_map`` is the older per-destination variant
kept for comparison (later destinations may steal an earlier one's header).
"""

__all__ = [
    "EXACT",
    "SUBSTRING",
    "UNDERSCORE",
    "SYNONYM",
    "MAX_SUGGESTIONS",
    "rank_sources",
    "suggest",
    "auto_map",
    "greedy_auto_map",
    "MappingEditor",
]

logger = logging.getLogger(__name__)

EXACT = 1
SUBSTRING = 2
UNDERSCORE = 3
SYNONYM = 4

MAX_SUGGESTIONS = 5


def _tier(destination: str, source: str, synonyms: Mapping[str, Sequence[str]]) -> int | None:
    dest = destination.lower()
    src = source.lower()
    if src == dest:
        return EXACT
    if dest in src or src in dest:
        return SUBSTRING
    if src.replace("_", "") == dest.replace("_", ""):
        return UNDERSCORE
    aliases = synonyms.get(destination)
    if aliases and any(alias.lower() in src for alias in aliases):
        return SYNONYM
    return None


def rank_sources(
    destination: str,
    sources: Sequence[str],
    synonyms: Mapping[str, Sequence[str]] = COLUMN_SYNONYMS,
) -> list[tuple[str, int]]:
    """Matching sources with their tier, best first, de-duplicated, capped at MAX_SUGGESTIONS.

    Exact matches are moved to the front; everything else keeps sheet order.
    Blank headers never match.
    """
    front: list[tuple[str, int]] = []
    rest: list[tuple[str, int]] = []
    for source in sources:
        if not source or not source.strip():
            continue
        tier = _tier(destination, source, synonyms)
        if tier is None:
            continue
        if tier == EXACT:
            front.insert(0, (source, tier))
        else:
            rest.append((source, tier))

    ranked: list[tuple[str, int]] = []
    seen: set[str] = set()
    for source, tier in front + rest:
        if source in seen:
            continue
        seen.add(source)
        ranked.append((source, tier))
    return ranked[:MAX_SUGGESTIONS]


def suggest(
    destination: str,
    sources: Sequence[str],
    synonyms: Mapping[str, Sequence[str]] = COLUMN_SYNONYMS,
) -> list[str]:
    """Up to five source headers for ``destination``, most confident first."""
    return [source for source, _ in rank_sources(destination, sources, synonyms)]


def auto_map(
    destinations: Sequence[str],
    sources: Sequence[str],
    synonyms: Mapping[str, Sequence[str]] = COLUMN_SYNONYMS,
) -> ColumnMapping:
    """Default mapping with unique keys and unique values.

    Destinations are visited by the tier of their best suggestion (exact first,
    synonym last); equal tiers keep schema order. Each takes its best-ranked
    header that no earlier destination claimed.
    """
    ranked = {dest: rank_sources(dest, sources, synonyms) for dest in destinations}
    order = sorted(
        (i for i, dest in enumerate(destinations) if ranked[dest]),
        key=lambda i: (ranked[destinations[i]][0][1], i),
    )
    mapping: ColumnMapping = {}
    claimed_dest: set[str] = set()
    for i in order:
        dest = destinations[i]
        if dest in claimed_dest:
            continue
        for source, _ in ranked[dest]:
            if source not in mapping:
                mapping[source] = dest
                claimed_dest.add(dest)
                break
        else:
            logger.debug("no unclaimed source left for destination=%s", dest)
    return mapping


def greedy_auto_map(
    destinations: Sequence[str],
    sources: Sequence[str],
    synonyms: Mapping[str, Sequence[str]] = COLUMN_SYNONYMS,
) -> ColumnMapping:
    """mapping[top_suggestion] = destination, in schema order (last writer wins)."""
    mapping: ColumnMapping = {}
    for dest in destinations:
        suggestions = suggest(dest, sources, synonyms)
        if suggestions:
            mapping[suggestions[0]] = dest
    return mapping


class MappingEditor:
    """Interactive edits that keep every destination column used at most once."""

    def __init__(self, mapping: Mapping[str, str] | None = None) -> None:
        self._mapping: ColumnMapping = {}
        for source, dest in (mapping or {}).items():
            self.assign(source, dest)

    @property
    def mapping(self) -> ColumnMapping:
        return dict(self._mapping)

    def assign(self, source: str, destination: str | None) -> None:
        """Point ``source`` at ``destination``; an empty destination unassigns."""
        if not destination:
            self.unassign(source)
            return
        self.clear_destination(destination)
        self._mapping[source] = destination

    def unassign(self, source: str) -> None:
        self._mapping.pop(source, None)

    def clear_destination(self, destination: str) -> None:
        for source in [s for s, d in self._mapping.items() if d == destination]:
            del self._mapping[source]

    def __len__(self) -> int:
        return len(self._mapping)
