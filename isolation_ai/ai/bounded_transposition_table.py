"""Bounded transposition table with LRU eviction for memory-limited search."""

from __future__ import annotations

from collections import OrderedDict
from enum import Enum
from typing import NamedTuple, Optional

from .move_generation import Turn


class TTFlag(str, Enum):
    EXACT = "exact"
    LOWER = "lower"
    UPPER = "upper"


class TTEntry(NamedTuple):
    depth: int
    score: float
    flag: TTFlag
    best_turn: Optional[Turn]


class BoundedTranspositionTable:
    """LRU-evicting transposition table keyed by Zobrist hash."""

    def __init__(self, max_entries: int = 100_000) -> None:
        """Initialize the transposition table.

        Args:
            max_entries: Maximum number of entries before eviction
        """
        self._table: OrderedDict[int, TTEntry] = OrderedDict()
        self.max_entries = max_entries
        self.hits = 0
        self.misses = 0
        self.evictions = 0

    def get(self, key: int) -> Optional[TTEntry]:
        """Get entry, moving it to the end if found (LRU)."""
        entry = self._table.get(key)
        if entry is None:
            self.misses += 1
            return None
        self._table.move_to_end(key)
        self.hits += 1
        return entry

    def put(self, key: int, entry: TTEntry) -> None:
        """Add entry, evicting the oldest if at capacity."""
        if key in self._table:
            self._table.move_to_end(key)
        elif len(self._table) >= self.max_entries:
            self._table.popitem(last=False)
            self.evictions += 1
        self._table[key] = entry

    def store(
        self,
        key: int,
        depth: int,
        score: float,
        flag: TTFlag,
        best_turn: Optional[Turn],
    ) -> None:
        """Store a search result unless a deeper one is already held."""
        existing = self._table.get(key)
        if existing is not None and existing.depth > depth:
            return
        self.put(key, TTEntry(depth, score, flag, best_turn))

    def probe(
        self, key: int, depth: int, alpha: float, beta: float
    ) -> tuple[Optional[float], Optional[Turn]]:
        """Look up a position.

        Returns:
            ``(score, best_turn)``. ``score`` is set only when the stored
            entry is deep enough and its bound settles the window;
            ``best_turn`` is returned whenever an entry exists, for ordering.
        """
        entry = self.get(key)
        if entry is None:
            return None, None
        if entry.depth >= depth:
            if entry.flag is TTFlag.EXACT:
                return entry.score, entry.best_turn
            if entry.flag is TTFlag.LOWER and entry.score >= beta:
                return entry.score, entry.best_turn
            if entry.flag is TTFlag.UPPER and entry.score <= alpha:
                return entry.score, entry.best_turn
        return None, entry.best_turn

    def __contains__(self, key: int) -> bool:
        """Check if key exists in table."""
        return key in self._table

    def __len__(self) -> int:
        """Return number of entries in table."""
        return len(self._table)

    def clear(self) -> None:
        """Clear all entries and reset stats."""
        self._table.clear()
        self.hits = 0
        self.misses = 0
        self.evictions = 0

    def stats(self) -> dict:
        """Return usage statistics.

        Returns:
            Dictionary with entries, max_entries, hits, misses, evictions
            and hit_rate.
        """
        total_lookups = self.hits + self.misses
        hit_rate = self.hits / total_lookups if total_lookups > 0 else 0.0
        return {
            "entries": len(self._table),
            "max_entries": self.max_entries,
            "hits": self.hits,
            "misses": self.misses,
            "evictions": self.evictions,
            "hit_rate": hit_rate,
        }
