"""Static position evaluation.

All scores are from the AI's point of view: positive favours the AI.

Two evaluators are provided. The basic one (lowest tier) looks at
mobility, reachable area and piece placement. The advanced one adds a
Voronoi territory race, two-slide mobility, partition threats and control
of the cells whose loss would split the board. :func:`evaluate` picks one
according to the difficulty profile, checks for finished games first and
adds the opening bonus early in the game.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Dict, NamedTuple, Optional

from .bitboard import flood_fill, open_ray_lengths, slide_set, sliding_moves
from .move_generation import Side, Snapshot
from .opening_book import opening_bonus
from .partition import best_partition_advantage, detect_partition, find_critical_cells
from .territory import voronoi

if TYPE_CHECKING:
    from .factory import EvalWeights

logger = logging.getLogger(__name__)

WIN_SCORE = 10000

# Below this many reachable cells a side is treated as being walled in.
ISOLATION_AREA_THRESHOLD = 8

# Contested Voronoi cells count partly for the AI, which moves second.
CONTESTED_SHARE = 0.4


class AdvancedEvalResult(NamedTuple):
    score: float
    components: Dict[str, float]


def terminal_score(ply: int) -> float:
    """Score of a lost position for the side to move, ``ply`` plies deep.

    Faster wins and slower losses are preferred.
    """
    return -(WIN_SCORE - ply)


def evaluate_terminal(snap: Snapshot, ply: int = 0) -> Optional[float]:
    """Score a finished position without knowing whose turn it is.

    Both pieces stuck scores 0. A stuck AI scores ``-(WIN_SCORE - ply)``
    and a stuck player ``WIN_SCORE - ply``. Returns None for a game in
    progress.
    """
    g = snap.geometry
    blocked = snap.blocked()
    ai_stuck = sliding_moves(g, snap.ai, blocked) == 0
    player_stuck = sliding_moves(g, snap.player, blocked) == 0
    if ai_stuck and player_stuck:
        return 0.0
    if ai_stuck:
        return float(-(WIN_SCORE - ply))
    if player_stuck:
        return float(WIN_SCORE - ply)
    return None


def reachable_area(snap: Snapshot, side: Side) -> int:
    """Cells the side could ever reach, with the opposing piece as a wall."""
    g = snap.geometry
    own = snap.position(side)
    other = snap.position(side.opponent)
    return (flood_fill(g, own, snap.destroyed | (1 << other)) & ~(1 << own)).bit_count()


def evaluate_basic(snap: Snapshot, weights: "EvalWeights") -> float:
    g = snap.geometry
    blocked = snap.blocked()

    player_moves = sliding_moves(g, snap.player, blocked).bit_count()
    ai_moves = sliding_moves(g, snap.ai, blocked).bit_count()
    score = (ai_moves - player_moves) * weights.immediate_mobility

    player_area = reachable_area(snap, Side.PLAYER)
    ai_area = reachable_area(snap, Side.AI)
    score += (ai_area - player_area) * weights.voronoi_territory

    score += (g.center_distance[snap.player] - g.center_distance[snap.ai]) * weights.center_control
    score += (g.corner_proximity[snap.ai] - g.corner_proximity[snap.player]) * weights.corner_avoidance

    if ai_area < ISOLATION_AREA_THRESHOLD:
        score -= (ISOLATION_AREA_THRESHOLD - ai_area) * weights.isolation_penalty
    if player_area < ISOLATION_AREA_THRESHOLD:
        score += (ISOLATION_AREA_THRESHOLD - player_area) * weights.isolation_penalty
    return score


def _mobility_potential(snap: Snapshot, idx: int, blocked: int) -> float:
    g = snap.geometry
    empty = g.full_mask & ~blocked
    first = sliding_moves(g, idx, blocked)
    second = slide_set(g, first, empty) & ~first
    return first.bit_count() + second.bit_count() * 0.5


def evaluate_advanced(snap: Snapshot, weights: "EvalWeights") -> AdvancedEvalResult:
    g = snap.geometry
    blocked = snap.blocked()

    territory = voronoi(g, snap.player, snap.ai, snap.destroyed)
    territory_score = (territory.ai_count - territory.player_count) + (
        territory.contested_count * CONTESTED_SHARE
    )

    player_moves = sliding_moves(g, snap.player, blocked).bit_count()
    ai_moves = sliding_moves(g, snap.ai, blocked).bit_count()
    mobility_score = ai_moves - player_moves

    potential_score = _mobility_potential(snap, snap.ai, blocked) - _mobility_potential(
        snap, snap.player, blocked
    )

    center_score = g.center_distance[snap.player] - g.center_distance[snap.ai]
    corner_score = g.corner_proximity[snap.ai] - g.corner_proximity[snap.player]

    partition = detect_partition(snap)
    critical = []
    if partition.is_partitioned:
        partition_score = (partition.ai_region_size - partition.player_region_size) * 3.0
    else:
        critical = find_critical_cells(snap, near_pieces=True)
        partition_score = 0.0
        if 0 < len(critical) <= 3:
            partition_score = best_partition_advantage(snap, critical) * 0.5

    ai_held = sum(1 for idx in critical if territory.ai >> idx & 1)
    player_held = sum(1 for idx in critical if territory.player >> idx & 1)
    critical_score = (ai_held - player_held) * 2.0

    openness_score = (
        open_ray_lengths(g, snap.ai, blocked) - open_ray_lengths(g, snap.player, blocked)
    ) * 0.3

    components = {
        "territory": float(territory_score),
        "mobility": float(mobility_score),
        "mobility_potential": float(potential_score),
        "center_control": float(center_score),
        "corner_avoidance": float(corner_score),
        "partition_advantage": float(partition_score),
        "critical_cells": float(critical_score),
        "openness": float(openness_score),
    }
    score = (
        components["territory"] * weights.territory
        + components["mobility"] * weights.mobility
        + components["mobility_potential"] * weights.mobility_potential
        + components["center_control"] * weights.center_control
        + components["corner_avoidance"] * weights.corner_avoidance
        + components["partition_advantage"] * weights.partition_advantage
        + components["critical_cells"] * weights.critical_cells
        + components["openness"] * weights.openness
    )
    return AdvancedEvalResult(score, components)


def evaluate(
    snap: Snapshot,
    weights: "EvalWeights",
    *,
    advanced: bool,
    turn_count: Optional[int] = None,
    ply: int = 0,
) -> float:
    """Route to the basic or advanced evaluator, terminal check first.

    ``ply`` is the search depth of ``snap``; finished games score
    ``WIN_SCORE - ply`` so nearer wins rank higher.
    """
    terminal = evaluate_terminal(snap, ply)
    if terminal is not None:
        return terminal
    if advanced:
        score = evaluate_advanced(snap, weights).score
    else:
        score = evaluate_basic(snap, weights)
    if turn_count is not None:
        score += opening_bonus(snap, turn_count)
    return score


def evaluate_breakdown(
    snap: Snapshot,
    weights: "EvalWeights",
    *,
    advanced: bool,
    turn_count: Optional[int] = None,
) -> AdvancedEvalResult:
    """Like :func:`evaluate` but also returns the components."""
    terminal = evaluate_terminal(snap)
    if terminal is not None:
        return AdvancedEvalResult(terminal, {"terminal": terminal})
    if advanced:
        score, components = evaluate_advanced(snap, weights)
    else:
        score = evaluate_basic(snap, weights)
        components = {"basic": score}
    if turn_count is not None:
        bonus = opening_bonus(snap, turn_count)
        components = {**components, "opening_bonus": bonus}
        score += bonus
    return AdvancedEvalResult(score, components)
