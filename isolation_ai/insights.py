"""Insight identifiers attached to every AI move.

Game clients turn these opaque keys into localized commentary; this module
only decides which key applies. Psychology keys describe the opponent's
last move, strategy keys describe how the AI chose its own.
"""

from __future__ import annotations

from typing import Optional

from .models import BoardState, PlayerMove

INITIALIZING = "isolation.initializing"
MOVE_EXECUTED = "isolation.moveExecuted"

STRATEGY_OPENING_BOOK = "isolation.strategy.openingBook"
STRATEGY_ENDGAME_SOLVED = "isolation.strategy.endgameSolved"
STRATEGY_MCTS = "isolation.strategy.mcts"
STRATEGY_ALPHABETA = "isolation.strategy.alphabeta"
STRATEGY_WINNING = "isolation.strategy.winningPosition"
STRATEGY_AI_DOMINANT = "isolation.strategy.aiDominant"
STRATEGY_PLAYER_DOMINANT = "isolation.strategy.playerDominant"
AI_ADVANTAGE = "isolation.aiAdvantage"
PLAYER_ADVANTAGE = "isolation.playerAdvantage"
BALANCED = "isolation.balanced"

# Move scores above this mean the search sees a forced or near-forced win.
WINNING_SCORE = 5000

QUICK_MOVE_SECONDS = 3.0
LONG_THINK_SECONDS = 10.0
HESITATION_HOVERS = 3
AGGRESSIVE_DISTANCE = 3


def _variants(stem: str) -> list[str]:
    return [f"isolation.psychology.{stem}{i}" for i in (1, 2, 3)]


def classify_opponent_move(board: BoardState, move: PlayerMove, turn_count: int) -> list[str]:
    """Candidate psychology keys for the opponent's last move."""
    dr = move.to.r - move.from_pos.r
    dc = move.to.c - move.from_pos.c
    distance = max(abs(dr), abs(dc))

    # Sign of the projection onto the direction towards the AI piece.
    toward = dr * (board.ai_pos.r - move.from_pos.r) + dc * (board.ai_pos.c - move.from_pos.c)

    seconds = move.move_time_seconds
    is_quick = seconds is not None and seconds <= QUICK_MOVE_SECONDS
    is_long = seconds is not None and seconds >= LONG_THINK_SECONDS
    hesitated = (move.hover_count or 0) >= HESITATION_HOVERS
    aggressive = toward > 0 and distance >= AGGRESSIVE_DISTANCE
    defensive = toward < 0 or distance <= 2

    if is_long and hesitated:
        return _variants("longHesitation")
    if is_quick and aggressive:
        return _variants("quickAggressiveOptimal")
    if is_long:
        return _variants("longThink")
    if hesitated:
        return _variants("hesitation")
    if is_quick:
        return _variants("quickMove")
    if aggressive:
        return _variants("aggressive")
    if defensive:
        return _variants("defensive")
    if turn_count <= 5:
        return _variants("earlyBalanced")
    if turn_count <= 15:
        return _variants("midBalanced")
    return ["isolation.playerBalanced"]


def psychology_insight(
    board: BoardState,
    move: Optional[PlayerMove],
    turn_count: Optional[int] = None,
) -> str:
    """One psychology key, picked deterministically among the variants."""
    if move is None:
        return INITIALIZING
    turn = turn_count or 0
    options = classify_opponent_move(board, move, turn)
    pick = len(board.destroyed) + move.from_pos.r + move.from_pos.c + turn
    return options[pick % len(options)]


def strategy_insight(score: Optional[float], area_diff: int) -> str:
    """Strategic summary from the chosen move's score and the Voronoi balance."""
    if score is not None and score > WINNING_SCORE:
        return STRATEGY_WINNING
    if area_diff > 10:
        return STRATEGY_AI_DOMINANT
    if area_diff > 5:
        return AI_ADVANTAGE
    if area_diff < -10:
        return STRATEGY_PLAYER_DOMINANT
    if area_diff < -5:
        return PLAYER_ADVANTAGE
    return BALANCED


def method_insight(method: str) -> str:
    return {
        "openingBook": STRATEGY_OPENING_BOOK,
        "endgameSolved": STRATEGY_ENDGAME_SOLVED,
        "mcts": STRATEGY_MCTS,
    }.get(method, STRATEGY_ALPHABETA)
