"""Search engines for Isolation.

Most callers only need the orchestrator:

    from isolation_ai.ai import compute_move

    result = compute_move(board, difficulty="NEXUS-7", turn_count=4)

For direct access to the engines:

    from isolation_ai.ai import AIFactory, get_difficulty_profile

    ai = AIFactory.create(get_difficulty_profile("NEXUS-5"), seed=7)

Architecture:
- bitboard.py: geometry tables, sliding moves, flood fill
- move_generation.py: snapshots, legal slides and destroys
- territory.py / partition.py: Voronoi split and region detection
- evaluation.py: basic and advanced static evaluation
- opening_book.py / endgame_solver.py: special-phase play
- minimax_ai.py: iterative-deepening alpha-beta
- mcts_ai.py: UCT+RAVE hybrid for the top tier
- factory.py: difficulty profiles and engine creation
- orchestrator.py: the move pipeline
"""

from isolation_ai.ai.base import BaseAI, SearchResult
from isolation_ai.ai.factory import (
    CANONICAL_DIFFICULTY_PROFILES,
    AIFactory,
    DifficultyProfile,
    EvalWeights,
    get_difficulty_profile,
)
from isolation_ai.ai.orchestrator import MoveResult, compute_move, would_cause_repetition

__all__ = [
    "AIFactory",
    "BaseAI",
    "CANONICAL_DIFFICULTY_PROFILES",
    "DifficultyProfile",
    "EvalWeights",
    "MoveResult",
    "SearchResult",
    "compute_move",
    "get_difficulty_profile",
    "would_cause_repetition",
]
