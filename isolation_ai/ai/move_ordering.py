"""
Move Ordering Heuristics for the Isolation AI.

Good move ordering improves alpha-beta pruning by examining likely-best
turns first.

The module provides:
- `OrderingBonus` - Fixed priority bonuses stacked on top of the static score
- `KillerMoveTable` - Tracks killer moves (refutation moves) at each ply
- `HistoryTable` - from->to counters rewarded on beta cutoffs
- `rank_destroys()` - Heuristic pre-filter for destroy candidates
- `order_turns()` - Main function to order turns for search

Usage Example:
```python
from isolation_ai.ai.move_ordering import KillerMoveTable, HistoryTable, order_turns

killers = KillerMoveTable()
history = HistoryTable(num_cells=49)

ordered = order_turns(
    scored_turns,
    ply=2,
    tt_turn=tt_best,
    killer_table=killers,
    history=history,
)

# After finding a cutoff
killers.store(turn, ply)
history.reward(turn, depth)
```
"""

from __future__ import annotations

from enum import IntEnum
from typing import Optional

import numpy as np

from .bitboard import sliding_moves
from .move_generation import Side, Snapshot, Turn, destroy_targets


class OrderingBonus(IntEnum):
    """Priority bonuses added to a turn's ordering score.

    Higher values are searched first. The transposition/PV turn always
    leads, then turns that leave the opponent without a move, then the two
    killer slots.
    """

    TT_MOVE = 100_000
    IMMEDIATE_WIN = 50_000
    KILLER_PRIMARY = 9_000
    KILLER_SECONDARY = 8_000


# Share of the child's static evaluation mixed into the ordering score.
STATIC_EVAL_WEIGHT = 0.1


class KillerMoveTable:
    """Tracks killer moves at each search ply.

    Killer moves are moves that caused beta cutoffs at sibling nodes.
    They are tried early in move ordering because they often cause
    cutoffs at the current node too. Two turns match when they slide to
    the same cell; the destroy is not compared.

    Attributes
    ----------
    max_killers : int
        Maximum killer moves to store per ply.
    max_depth : int
        Maximum ply to track (to bound memory usage).
    """

    def __init__(self, max_killers: int = 2, max_depth: int = 64) -> None:
        self.max_killers = max_killers
        self.max_depth = max_depth
        self._table: dict[int, list[Turn]] = {}

    def get(self, ply: int) -> list[Turn]:
        """Get killer moves at a ply, primary first."""
        return self._table.get(ply, [])

    def store(self, turn: Turn, ply: int) -> None:
        """Store a killer move at a ply.

        The move is added to the front of the list. If the list
        exceeds max_killers, the oldest move is removed.

        Parameters
        ----------
        turn : Turn
            Turn that caused a cutoff.
        ply : int
            Distance from the root where the cutoff occurred.
        """
        if ply > self.max_depth:
            return

        killers = self._table.get(ply, [])
        for k in killers:
            if k.to_idx == turn.to_idx:
                return

        killers.insert(0, turn)
        if len(killers) > self.max_killers:
            killers.pop()
        self._table[ply] = killers

    def bonus(self, turn: Turn, ply: int) -> int:
        """Ordering bonus for a turn that matches a killer slot."""
        for slot, k in enumerate(self.get(ply)):
            if k.to_idx == turn.to_idx:
                return OrderingBonus.KILLER_PRIMARY if slot == 0 else OrderingBonus.KILLER_SECONDARY
        return 0

    def clear(self) -> None:
        """Clear all killer moves."""
        self._table.clear()


class HistoryTable:
    """History heuristic: how often sliding from one cell to another cut off.

    Parameters
    ----------
    num_cells : int
        Cells on the board; the table is ``num_cells x num_cells``.
    """

    def __init__(self, num_cells: int = 49) -> None:
        self.scores = np.zeros((num_cells, num_cells), dtype=np.float64)

    def reward(self, turn: Turn, depth: int) -> None:
        self.scores[turn.from_idx, turn.to_idx] += depth * depth

    def score(self, turn: Turn) -> float:
        return float(self.scores[turn.from_idx, turn.to_idx])

    def clear(self) -> None:
        self.scores.fill(0.0)


def rank_destroys(
    snap: Snapshot,
    side: Side,
    to_idx: int,
    limit: Optional[int] = None,
) -> list[int]:
    """Legal destroys after sliding to ``to_idx``, best first.

    Ties keep row-major order. ``limit`` truncates the list.
    """
    cells = destroy_targets(snap, side, to_idx)
    g = snap.geometry
    opponent = snap.position(side.opponent)
    blocked = snap.with_slide(side, to_idx).blocked()
    opp_targets = sliding_moves(g, opponent, blocked)
    own_targets = sliding_moves(g, to_idx, blocked)

    def priority(cell: int) -> float:
        score = 0.0
        dist = g.manhattan(cell, opponent)
        if dist == 1:
            score += 30
        elif dist == 2:
            score += 15
        if opp_targets >> cell & 1:
            score += 25
        if own_targets >> cell & 1:
            score -= 20
        return score + (6 - g.center_distance[cell]) * 0.5

    cells.sort(key=priority, reverse=True)
    if limit is not None:
        return cells[:limit]
    return cells


def order_turns(
    scored_turns: list[tuple[Turn, float, bool]],
    ply: int,
    tt_turn: Optional[Turn] = None,
    killer_table: Optional[KillerMoveTable] = None,
    history: Optional[HistoryTable] = None,
) -> list[Turn]:
    """Order turns for alpha-beta search.

    Parameters
    ----------
    scored_turns : list of (Turn, float, bool)
        Each turn with the mover-perspective static evaluation of the
        resulting position and whether it leaves the opponent stuck.
    ply : int
        Distance from the root, for killer lookup.
    tt_turn : Turn, optional
        Best turn recorded for this position by the transposition table.
    killer_table : KillerMoveTable, optional
    history : HistoryTable, optional

    Returns
    -------
    list of Turn
        Turns sorted by descending ordering score.
    """
    keyed = []
    for turn, static_eval, wins in scored_turns:
        score = static_eval * STATIC_EVAL_WEIGHT
        if tt_turn is not None and turn == tt_turn:
            score += OrderingBonus.TT_MOVE
        if wins:
            score += OrderingBonus.IMMEDIATE_WIN
        if killer_table is not None:
            score += killer_table.bonus(turn, ply)
        if history is not None:
            score += history.score(turn)
        keyed.append((score, turn))
    keyed.sort(key=lambda item: item[0], reverse=True)
    return [turn for _, turn in keyed]
