"""Request-scoped state for one top-level search.

Every table a search mutates (transposition, killer, history, evaluation
cache) hangs off a :class:`SearchContext` built fresh for each call, so no
state leaks from one game or request into another.
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Optional

from .. import config
from .bounded_transposition_table import BoundedTranspositionTable
from .evaluation import evaluate, evaluate_terminal
from .move_ordering import HistoryTable, KillerMoveTable
from .move_generation import Snapshot
from .zobrist import ZobristHash, get_zobrist

if TYPE_CHECKING:
    from .factory import DifficultyProfile

# Evaluation cache entries kept before the cache is reset.
EVAL_CACHE_LIMIT = 200_000


class SearchContext:
    """Deadline, node counter and per-search caches."""

    def __init__(
        self,
        profile: "DifficultyProfile",
        time_limit_ms: float,
        num_cells: int,
        turn_count: Optional[int] = None,
    ) -> None:
        self.profile = profile
        self.turn_count = turn_count
        self.start_time = time.monotonic()
        self.time_limit_ms = time_limit_ms
        self.deadline = self.start_time + time_limit_ms / 1000.0
        self.nodes = 0
        self.timed_out = False

        self.zobrist: ZobristHash = get_zobrist(num_cells)
        self.tt: Optional[BoundedTranspositionTable] = (
            BoundedTranspositionTable(max_entries=config.TT_MAX_ENTRIES)
            if profile.use_transposition_table
            else None
        )
        self.killers: Optional[KillerMoveTable] = (
            KillerMoveTable() if profile.use_killer_moves else None
        )
        self.history: Optional[HistoryTable] = (
            HistoryTable(num_cells) if profile.use_history_heuristic else None
        )
        self._eval_cache: dict[Snapshot, float] = {}

    def time_up(self) -> bool:
        if self.timed_out:
            return True
        if time.monotonic() >= self.deadline:
            self.timed_out = True
        return self.timed_out

    def elapsed_ms(self) -> int:
        return int((time.monotonic() - self.start_time) * 1000)

    def remaining_ms(self) -> float:
        return max(0.0, (self.deadline - time.monotonic()) * 1000)

    def static_eval(self, snap: Snapshot, ply: int = 0) -> float:
        """Cached AI-perspective evaluation of a position ``ply`` plies deep.

        Finished games depend on ``ply`` and are scored outside the cache.
        """
        terminal = evaluate_terminal(snap, ply)
        if terminal is not None:
            return terminal
        cached = self._eval_cache.get(snap)
        if cached is not None:
            return cached
        if len(self._eval_cache) >= EVAL_CACHE_LIMIT:
            self._eval_cache.clear()
        score = evaluate(
            snap,
            self.profile.weights,
            advanced=self.profile.use_voronoi,
            turn_count=self.turn_count,
        )
        self._eval_cache[snap] = score
        return score
