"""Voronoi territory: which side reaches each empty cell first.

Both pieces expand one slide per round at the same time. A cell first
reached by exactly one side belongs to that side; a cell both sides reach
in the same round is contested. Both pieces block sliding for both sides.
"""

from __future__ import annotations

from typing import NamedTuple

from .bitboard import BoardGeometry, slide_set


class Territory(NamedTuple):
    player: int
    ai: int
    contested: int

    @property
    def player_count(self) -> int:
        return self.player.bit_count()

    @property
    def ai_count(self) -> int:
        return self.ai.bit_count()

    @property
    def contested_count(self) -> int:
        return self.contested.bit_count()

    @property
    def total(self) -> int:
        return self.player_count + self.ai_count + self.contested_count


def voronoi(
    geometry: BoardGeometry,
    player_idx: int,
    ai_idx: int,
    destroyed: int,
) -> Territory:
    """Run the layered race from both pieces and split the empty cells."""
    blocked = destroyed | (1 << player_idx) | (1 << ai_idx)
    empty = geometry.full_mask & ~blocked

    # Each side runs its own BFS; a cell goes to whichever side reaches it
    # at the smaller depth.
    player_frontier = player_seen = 1 << player_idx
    ai_frontier = ai_seen = 1 << ai_idx
    assigned = 0
    player_cells = 0
    ai_cells = 0
    contested = 0

    while player_frontier or ai_frontier:
        if player_frontier:
            player_frontier = slide_set(geometry, player_frontier, empty) & ~player_seen
            player_seen |= player_frontier
        if ai_frontier:
            ai_frontier = slide_set(geometry, ai_frontier, empty) & ~ai_seen
            ai_seen |= ai_frontier
        p_new = player_frontier & ~assigned
        a_new = ai_frontier & ~assigned
        contested |= p_new & a_new
        player_cells |= p_new & ~a_new
        ai_cells |= a_new & ~p_new
        assigned |= p_new | a_new

    return Territory(player_cells, ai_cells, contested)


def normalized_share(territory: Territory) -> float:
    """AI share of the reachable cells in [0, 1]; 0.5 when nothing is reachable."""
    total = territory.total
    if total == 0:
        return 0.5
    diff = territory.ai_count - territory.player_count
    return min(1.0, max(0.0, (diff + total) / (2 * total)))
