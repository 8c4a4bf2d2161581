"""Move orchestration: the single entry point that turns a board into a move.

Pipeline, first stage to produce a move wins:

1. opening heuristic (tiers with an opening book, early game only)
2. exact endgame solver (partitioned board, small AI region)
3. the tier's search engine (alpha-beta, or the MCTS hybrid on top)
4. randomization and blunder policy over the ranked candidates
5. repetition avoidance and destroy re-validation

Any exception raised inside the pipeline is logged, counted and converted
into the defensive fallback (first legal slide, first legal destroy). Only
:class:`InvalidBoardStateError` and :class:`NoLegalMovesError` reach the
caller.
"""

from __future__ import annotations

import logging
import random
import time
import zlib
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple, Union

from .. import metrics
from ..errors import AIError, AIFallbackError, DestroySelectionError, NoLegalMovesError
from ..insights import (
    MOVE_EXECUTED,
    method_insight,
    psychology_insight,
    strategy_insight,
)
from ..models import (
    BoardState,
    Difficulty,
    Move,
    PlayerMove,
    SearchStats,
    serialize_board,
)
from .base import derive_seed
from .endgame_solver import should_solve_exactly, solve_endgame
from .factory import (
    AIFactory,
    DifficultyProfile,
    effective_time_limit_ms,
    get_difficulty_profile,
    select_move_index,
)
from .move_generation import (
    Side,
    Snapshot,
    Turn,
    destroy_targets,
    is_legal_turn_snapshot,
    mobility,
    move_targets,
    nearest_empty_index,
    turn_to_move,
)
from .opening_book import get_opening_move, is_opening_phase
from .partition import detect_partition
from .territory import voronoi

logger = logging.getLogger(__name__)

# The endgame solver never gets more than this, whatever the tier budget.
ENDGAME_TIME_CAP_MS = 4000
ENDGAME_TIME_SHARE = 0.5
# Share of the budget handed to the MCTS hybrid.
HYBRID_TIME_SHARE = 0.8

# A post-move state seen this often already would be a third repetition.
REPETITION_LIMIT = 2


@dataclass
class MoveResult:
    """The chosen move plus insight identifiers and search diagnostics."""
    move: Optional[Move]
    logs: List[str] = field(default_factory=list)
    stats: SearchStats = field(default_factory=SearchStats)


@dataclass
class _Choice:
    ranked: List[Tuple[Turn, float]]
    method: str
    depth: int = 0
    nodes: int = 0
    confidence: Optional[float] = None


def would_cause_repetition(board: BoardState, move: Move, history: Sequence[str]) -> bool:
    """True when the position after ``move`` already occurs twice in ``history``.

    The moving piece is whichever one stands on ``move.from``. The destroy
    is applied only when it names an in-bounds cell that is not already
    destroyed.
    """
    if not history:
        return False
    player_pos, ai_pos = board.player_pos, board.ai_pos
    if move.from_pos == player_pos:
        player_pos = move.to
    elif move.from_pos == ai_pos:
        ai_pos = move.to

    destroyed = list(board.destroyed)
    d = move.destroy
    rows, cols = board.board_size.rows, board.board_size.cols
    if 0 <= d.r < rows and 0 <= d.c < cols and d not in destroyed:
        destroyed.append(d)

    after = BoardState(
        boardSize=board.board_size,
        playerPos=player_pos,
        aiPos=ai_pos,
        destroyed=destroyed,
    )
    key = serialize_board(after)
    return sum(1 for entry in history if entry == key) >= REPETITION_LIMIT


def _request_seed(board: BoardState, profile: DifficultyProfile, turn_count: int) -> int:
    digest = zlib.crc32(serialize_board(board).encode("utf-8"))
    return (derive_seed(profile) ^ digest ^ turn_count) & 0xFFFFFFFF


def _opening_choice(snap: Snapshot, profile: DifficultyProfile, turn_count: int) -> Optional[_Choice]:
    if not profile.use_opening_book:
        return None
    if not is_opening_phase(turn_count, snap.destroyed.bit_count()):
        return None
    turn = get_opening_move(snap, turn_count)
    if turn is None:
        return None
    return _Choice(ranked=[(turn, 0.0)], method="openingBook")


def _endgame_choice(snap: Snapshot, profile: DifficultyProfile, time_limit_ms: int) -> Optional[_Choice]:
    if not (profile.use_endgame_solver and profile.use_partition_detection):
        return None
    partition = detect_partition(snap)
    if not partition.is_partitioned or not should_solve_exactly(partition.ai_region):
        return None
    budget = min(time_limit_ms * ENDGAME_TIME_SHARE, ENDGAME_TIME_CAP_MS)
    solved = solve_endgame(snap, Side.AI, partition.ai_region, budget)
    if solved.turn is None or not solved.exact:
        return None
    return _Choice(
        ranked=[(solved.turn, float(solved.longest_path))],
        method="endgameSolved",
        depth=solved.longest_path,
        confidence=1.0,
    )


def _engine_choice(
    snap: Snapshot,
    profile: DifficultyProfile,
    time_limit_ms: int,
    turn_count: int,
    seed: int,
) -> _Choice:
    engine = AIFactory.create(profile, seed=seed)
    budget = time_limit_ms * HYBRID_TIME_SHARE if profile.use_mcts else time_limit_ms
    result = engine.search(snap, budget, turn_count)
    return _Choice(
        ranked=result.ranked,
        method=result.method,
        depth=result.depth,
        nodes=result.nodes,
        confidence=result.confidence,
    )


def _avoid_repetition(
    board: BoardState,
    snap: Snapshot,
    ranked: List[Tuple[Turn, float]],
    index: int,
    history: Sequence[str],
) -> int:
    """Swap a repeating pick for a non-repeating candidate with the same score."""
    turn, score = ranked[index]
    if not would_cause_repetition(board, turn_to_move(snap.geometry, turn), history):
        return index
    for i, (other, other_score) in enumerate(ranked):
        if i == index or other_score != score:
            continue
        if not would_cause_repetition(board, turn_to_move(snap.geometry, other), history):
            logger.debug(f"Avoided repetition: candidate {index} -> {i}")
            return i
    return index


def _validated(snap: Snapshot, turn: Turn) -> Optional[Turn]:
    """The turn itself, or with its destroy replaced by the nearest empty cell."""
    if is_legal_turn_snapshot(snap, Side.AI, turn):
        return turn
    if turn.from_idx != snap.ai or turn.to_idx not in move_targets(snap, Side.AI):
        return None
    replacement = nearest_empty_index(snap, Side.AI, turn.to_idx)
    if replacement is None:
        raise DestroySelectionError(
            "No empty cell left to destroy",
            context={"to": turn.to_idx},
        )
    logger.warning(f"Replaced invalid destroy {turn.destroy_idx} with {replacement}")
    return turn._replace(destroy_idx=replacement)


def fallback_turn(snap: Snapshot) -> Optional[Turn]:
    """First legal slide with its first legal destroy, row-major."""
    targets = move_targets(snap, Side.AI)
    if not targets:
        return None
    to_idx = targets[0]
    return Turn(snap.ai, to_idx, destroy_targets(snap, Side.AI, to_idx)[0])


def compute_move(
    board: BoardState,
    last_opponent_move: Optional[PlayerMove] = None,
    difficulty: Union[str, Difficulty] = Difficulty.NEXUS_5,
    turn_count: int = 0,
    board_history: Optional[Sequence[str]] = None,
    seed: Optional[int] = None,
) -> MoveResult:
    """Compute the AI's move for ``board``.

    Args:
        board: Current position; the AI is to move
        last_opponent_move: Opponent's previous move, for insight keys
        difficulty: Tier identifier; unknown values fall back to NEXUS-5
        turn_count: Turns played so far
        board_history: Serialized boards seen earlier in the game
        seed: RNG seed for move randomization; derived from the board
            when omitted

    Raises:
        InvalidBoardStateError: if the board violates its invariants
        NoLegalMovesError: if the AI has no legal slide
    """
    start = time.monotonic()
    profile = get_difficulty_profile(difficulty)
    snap = Snapshot.from_board(board)

    ai_mobility = mobility(snap, Side.AI)
    if ai_mobility == 0:
        metrics.observe_move(profile.name, "no_moves", time.monotonic() - start)
        raise NoLegalMovesError(
            "AI has no legal moves",
            context={"aiPos": board.ai_pos.to_key()},
        )

    if seed is None:
        seed = _request_seed(board, profile, turn_count)
    rng = random.Random(seed)
    history = list(board_history or [])
    time_limit_ms = effective_time_limit_ms(profile, ai_mobility)
    psychology = psychology_insight(board, last_opponent_move, turn_count)

    try:
        choice = (
            _opening_choice(snap, profile, turn_count)
            or _endgame_choice(snap, profile, time_limit_ms)
            or _engine_choice(snap, profile, time_limit_ms, turn_count, seed)
        )
        if not choice.ranked:
            raise AIError(f"{choice.method} search returned no candidates")

        index = select_move_index([score for _, score in choice.ranked], profile, rng)
        if history:
            index = _avoid_repetition(board, snap, choice.ranked, index, history)
        turn, score = choice.ranked[index]

        checked = _validated(snap, turn)
        if checked is None:
            raise AIError(
                "Selected turn is not a legal slide",
                context={"from": turn.from_idx, "to": turn.to_idx},
            )
        turn = checked

        if choice.method == "alphabeta":
            territory = voronoi(snap.geometry, snap.player, snap.ai, snap.destroyed)
            strategic = strategy_insight(score, territory.ai_count - territory.player_count)
        else:
            strategic = method_insight(choice.method)

        elapsed = time.monotonic() - start
        stats = SearchStats(
            depth=choice.depth,
            elapsedMs=int(elapsed * 1000),
            nodes=choice.nodes,
            method=choice.method,
            score=score,
            confidence=choice.confidence,
        )
        metrics.observe_search(profile.name, choice.method, choice.nodes, choice.depth)
        metrics.observe_move(profile.name, "success", elapsed)
        logger.info(
            f"{profile.name} move via {choice.method}: depth={choice.depth} "
            f"elapsed={stats.elapsed_ms}ms nodes={choice.nodes}"
        )
        return MoveResult(
            move=turn_to_move(snap.geometry, turn),
            logs=[psychology, strategic],
            stats=stats,
        )

    except Exception as e:
        fallback_error = AIFallbackError("Move search failed", original_error=e)
        logger.error(f"{fallback_error}", exc_info=True)
        metrics.FALLBACKS.labels(type(e).__name__).inc()

    turn = fallback_turn(snap)
    elapsed = time.monotonic() - start
    metrics.observe_move(profile.name, "fallback", elapsed)
    logger.warning(f"{profile.name} fallback move after {int(elapsed * 1000)}ms")
    return MoveResult(
        move=turn_to_move(snap.geometry, turn),
        logs=[MOVE_EXECUTED],
        stats=SearchStats(elapsedMs=int(elapsed * 1000), method="fallback"),
    )
