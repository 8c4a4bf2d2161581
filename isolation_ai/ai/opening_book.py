"""Opening heuristic for the first turns of a game.

Early on the board is wide open and deep search buys little, so the AI
plays by principle instead: head for the centre, keep mobility, stay off
the rim and chip away at the opponent's options.
"""

from __future__ import annotations

import logging
from typing import Optional

from .bitboard import sliding_moves
from .move_generation import Side, Snapshot, Turn, destroy_targets, move_targets

logger = logging.getLogger(__name__)

OPENING_TURN_LIMIT = 12
OPENING_DESTROY_LIMIT = 8

# Move scoring
CENTER_WEIGHT = 10
CENTER_AREA_BONUS = 20
MOBILITY_WEIGHT = 5
OPPONENT_RESTRICTION_WEIGHT = 8
CORNER_PENALTY = 15
EDGE_PENALTY = 5


def is_opening_phase(turn_count: int, destroyed_count: int) -> bool:
    return turn_count <= OPENING_TURN_LIMIT and destroyed_count <= OPENING_DESTROY_LIMIT


def opening_bonus(snap: Snapshot, turn_count: int) -> float:
    """Placement bonus for the AI piece, used by evaluation early on."""
    if turn_count > OPENING_TURN_LIMIT:
        return 0.0
    g = snap.geometry
    idx = snap.ai
    bonus = (6 - g.center_distance[idx]) * 2.0
    if g.center_cells_mask >> idx & 1:
        bonus += 10
    if g.is_corner(idx):
        bonus -= 20
    elif g.is_edge(idx):
        bonus -= 8
    return bonus


def score_opening_move(snap: Snapshot, to_idx: int, turn_count: int) -> float:
    g = snap.geometry
    score = -g.center_distance[to_idx] * CENTER_WEIGHT
    if g.center_cells_mask >> to_idx & 1:
        score += CENTER_AREA_BONUS

    if g.is_corner(to_idx):
        score -= CORNER_PENALTY * 3
    elif g.is_edge(to_idx):
        score -= EDGE_PENALTY

    after = snap.with_slide(Side.AI, to_idx)
    blocked = after.blocked()
    score += sliding_moves(g, to_idx, blocked).bit_count() * MOBILITY_WEIGHT

    opponent_moves = sliding_moves(g, snap.player, blocked).bit_count()
    score += (20 - opponent_moves) * OPPONENT_RESTRICTION_WEIGHT * 0.3

    dist = g.manhattan(to_idx, snap.player)
    if turn_count <= 6:
        if dist < 2:
            score -= 10
        elif 3 <= dist <= 5:
            score += 5
    elif dist <= 4:
        score += 3

    fr, fc = g.cell_position(snap.ai)
    tr, tc = g.cell_position(to_idx)
    if tr != fr and tc != fc:
        score += 3
    if tr == tc or tr + tc == g.cols - 1:
        score += 5
    return score


def score_opening_destroy(snap: Snapshot, to_idx: int, cell: int) -> float:
    g = snap.geometry
    after = snap.with_slide(Side.AI, to_idx)
    blocked = after.blocked()
    score = 0.0

    dist_to_player = g.manhattan(cell, snap.player)
    if dist_to_player == 1:
        score += 50
    elif dist_to_player == 2:
        score += 25

    if g.center_distance[cell] < g.center_distance[snap.player] and dist_to_player <= 3:
        score += 30

    if sliding_moves(g, snap.player, blocked) >> cell & 1:
        score += 35
    if sliding_moves(g, to_idx, blocked) >> cell & 1:
        score -= 20

    if g.center_cells_mask >> cell & 1 and g.manhattan(cell, to_idx) <= 2:
        score -= 15

    if g.is_corner(cell):
        score += 5
    elif g.is_edge(cell):
        score += 2
    return score


def get_opening_move(snap: Snapshot, turn_count: int) -> Optional[Turn]:
    """Pick an AI turn by opening principles.

    Returns None outside the opening window, when the AI cannot move, or
    when the chosen turn would leave the AI without a follow-up move.
    """
    if not is_opening_phase(turn_count, snap.destroyed.bit_count()):
        return None
    targets = move_targets(snap, Side.AI)
    if not targets:
        return None

    best_to = max(targets, key=lambda t: score_opening_move(snap, t, turn_count))
    destroys = destroy_targets(snap, Side.AI, best_to)
    best_destroy = max(destroys, key=lambda d: score_opening_destroy(snap, best_to, d))

    after = snap.with_move(Side.AI, best_to, best_destroy)
    if not sliding_moves(after.geometry, best_to, after.blocked()):
        logger.debug("Opening move would leave no mobility, deferring to search")
        return None
    return Turn(snap.ai, best_to, best_destroy)
