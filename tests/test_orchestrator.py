"""Tests for the move pipeline and the insight identifiers."""

import pytest

from isolation_ai import insights
from isolation_ai.ai import orchestrator
from isolation_ai.ai.factory import effective_time_limit_ms, get_difficulty_profile
from isolation_ai.ai.move_generation import (
    Side,
    Snapshot,
    Turn,
    apply_move,
    apply_move_unchecked,
    is_legal_turn,
    mobility,
)
from isolation_ai.ai.orchestrator import _Choice, compute_move, would_cause_repetition
from isolation_ai.errors import InvalidBoardStateError, NoLegalMovesError
from isolation_ai.models import Move, PlayerMove, Position, serialize_board

from conftest import idx, make_board


def _move(frm, to, destroy) -> Move:
    return Move(**{
        "from": Position(r=frm[0], c=frm[1]),
        "to": Position(r=to[0], c=to[1]),
        "destroy": Position(r=destroy[0], c=destroy[1]),
    })


def _stub_engine(ranked, method="alphabeta"):
    def choice(snap, profile, time_limit_ms, turn_count, seed):
        return _Choice(ranked=list(ranked), method=method, depth=1, nodes=1)
    return choice


class TestRepetition:
    def test_third_occurrence_detected(self) -> None:
        board = make_board(player=(6, 0), ai=(0, 6))
        move = _move((0, 6), (0, 3), (5, 5))
        after = serialize_board(apply_move_unchecked(board, move, Side.AI))
        assert not would_cause_repetition(board, move, [])
        assert not would_cause_repetition(board, move, [after])
        assert would_cause_repetition(board, move, [after, after])

    def test_moving_piece_found_by_origin(self) -> None:
        board = make_board(player=(6, 0), ai=(0, 6))
        move = _move((6, 0), (6, 3), (5, 5))
        after = serialize_board(apply_move_unchecked(board, move, Side.PLAYER))
        assert would_cause_repetition(board, move, [after, after])

    def test_existing_destroy_not_duplicated(self) -> None:
        board = make_board(player=(6, 0), ai=(0, 6), destroyed=[(5, 5)])
        move = _move((0, 6), (0, 3), (5, 5))
        after = make_board(player=(6, 0), ai=(0, 3), destroyed=[(5, 5)])
        key = serialize_board(after)
        assert would_cause_repetition(board, move, [key, key])


class TestComputeMove:
    """End-to-end pipeline behaviour."""

    def test_opening_book_on_empty_board(self, initial_board) -> None:
        result = compute_move(initial_board, difficulty="NEXUS-7", turn_count=0, seed=3)
        assert result.stats.method == "openingBook"
        assert is_legal_turn(initial_board, result.move, Side.AI)
        assert result.logs == [insights.INITIALIZING, insights.STRATEGY_OPENING_BOOK]

    def test_weak_tier_searches(self, initial_board, fast_time) -> None:
        result = compute_move(initial_board, difficulty="NEXUS-3", turn_count=4, seed=3)
        assert result.stats.method == "alphabeta"
        assert is_legal_turn(initial_board, result.move, Side.AI)
        assert len(result.logs) == 2

    def test_top_tier_runs_hybrid_within_budget(self, initial_board, fast_time) -> None:
        result = compute_move(initial_board, difficulty="NEXUS-7", turn_count=20, seed=9)
        assert result.stats.method == "mcts"
        assert result.logs[1] == insights.STRATEGY_MCTS
        assert is_legal_turn(initial_board, result.move, Side.AI)
        budget = effective_time_limit_ms(
            get_difficulty_profile("NEXUS-7"), mobility(Snapshot.from_board(initial_board), Side.AI)
        )
        assert result.stats.elapsed_ms <= budget + 150

    def test_partitioned_endgame_is_solved(self, corridor_board) -> None:
        result = compute_move(corridor_board, difficulty="NEXUS-5", turn_count=30)
        assert result.stats.method == "endgameSolved"
        assert result.stats.confidence == 1.0
        assert result.logs[1] == insights.STRATEGY_ENDGAME_SOLVED
        after = apply_move(corridor_board, result.move, Side.AI)
        assert mobility(Snapshot.from_board(after), Side.AI) > 0

    def test_stuck_ai_raises(self) -> None:
        board = make_board(player=(6, 6), ai=(0, 0), destroyed=[(0, 1), (1, 0), (1, 1)])
        with pytest.raises(NoLegalMovesError):
            compute_move(board, difficulty="NEXUS-5")

    def test_invalid_board_raises(self) -> None:
        with pytest.raises(InvalidBoardStateError):
            compute_move(make_board(player=(2, 2), ai=(2, 2)))

    def test_psychology_log_uses_last_move(self, initial_board, monkeypatch) -> None:
        monkeypatch.setattr(
            orchestrator, "_engine_choice",
            _stub_engine([(Turn(idx(0, 6), idx(0, 5), idx(3, 3)), 1.0)]),
        )
        last = PlayerMove(**{
            "from": Position(r=6, c=3),
            "to": Position(r=6, c=0),
            "moveTimeSeconds": 1.5,
        })
        result = compute_move(
            initial_board, last_opponent_move=last, difficulty="NEXUS-3", turn_count=20
        )
        assert result.logs[0] == insights.psychology_insight(initial_board, last, 20)
        assert result.logs[0].startswith("isolation.psychology.quickMove")


class TestSafetyNets:
    """Fallback, destroy re-validation and repetition avoidance."""

    def test_engine_failure_falls_back(self, initial_board, monkeypatch) -> None:
        def boom(*args, **kwargs):
            raise RuntimeError("engine exploded")

        monkeypatch.setattr(orchestrator, "_engine_choice", boom)
        result = compute_move(initial_board, difficulty="NEXUS-3", turn_count=20)
        assert result.stats.method == "fallback"
        assert result.logs == [insights.MOVE_EXECUTED]
        assert result.move == _move((0, 6), (0, 0), (0, 1))

    def test_illegal_slide_falls_back(self, initial_board, monkeypatch) -> None:
        monkeypatch.setattr(
            orchestrator, "_engine_choice",
            _stub_engine([(Turn(idx(0, 6), idx(4, 3), idx(3, 3)), 1.0)]),
        )
        result = compute_move(initial_board, difficulty="NEXUS-5", turn_count=20)
        assert result.stats.method == "fallback"
        assert is_legal_turn(initial_board, result.move, Side.AI)

    def test_empty_ranking_falls_back(self, initial_board, monkeypatch) -> None:
        monkeypatch.setattr(orchestrator, "_engine_choice", _stub_engine([]))
        result = compute_move(initial_board, difficulty="NEXUS-5", turn_count=20)
        assert result.stats.method == "fallback"

    def test_illegal_destroy_replaced_with_nearest(self, initial_board, monkeypatch) -> None:
        # Destroying the opponent's cell is never legal.
        monkeypatch.setattr(
            orchestrator, "_engine_choice",
            _stub_engine([(Turn(idx(0, 6), idx(0, 5), idx(6, 0)), 1.0)]),
        )
        result = compute_move(initial_board, difficulty="NEXUS-5", turn_count=20)
        assert result.stats.method == "alphabeta"
        assert result.move == _move((0, 6), (0, 5), (0, 4))

    def test_repetition_avoided_among_equal_scores(self, initial_board, monkeypatch) -> None:
        repeating = Turn(idx(0, 6), idx(0, 5), idx(3, 3))
        fresh = Turn(idx(0, 6), idx(1, 6), idx(3, 3))
        monkeypatch.setattr(
            orchestrator, "_engine_choice",
            _stub_engine([(repeating, 5.0), (fresh, 5.0)]),
        )
        seen = serialize_board(
            apply_move_unchecked(initial_board, _move((0, 6), (0, 5), (3, 3)), Side.AI)
        )
        result = compute_move(
            initial_board, difficulty="NEXUS-5", turn_count=20, board_history=[seen, seen]
        )
        assert result.move == _move((0, 6), (1, 6), (3, 3))

    def test_repetition_kept_when_no_equal_alternative(self, initial_board, monkeypatch) -> None:
        repeating = Turn(idx(0, 6), idx(0, 5), idx(3, 3))
        worse = Turn(idx(0, 6), idx(1, 6), idx(3, 3))
        monkeypatch.setattr(
            orchestrator, "_engine_choice",
            _stub_engine([(repeating, 5.0), (worse, 1.0)]),
        )
        seen = serialize_board(
            apply_move_unchecked(initial_board, _move((0, 6), (0, 5), (3, 3)), Side.AI)
        )
        result = compute_move(
            initial_board, difficulty="NEXUS-5", turn_count=20, board_history=[seen, seen]
        )
        assert result.move == _move((0, 6), (0, 5), (3, 3))


class TestInsights:
    def test_strategy_thresholds(self) -> None:
        assert insights.strategy_insight(9000.0, 0) == insights.STRATEGY_WINNING
        assert insights.strategy_insight(0.0, 11) == insights.STRATEGY_AI_DOMINANT
        assert insights.strategy_insight(0.0, 6) == insights.AI_ADVANTAGE
        assert insights.strategy_insight(0.0, -6) == insights.PLAYER_ADVANTAGE
        assert insights.strategy_insight(0.0, -11) == insights.STRATEGY_PLAYER_DOMINANT
        assert insights.strategy_insight(None, 0) == insights.BALANCED

    def test_method_insight(self) -> None:
        assert insights.method_insight("mcts") == insights.STRATEGY_MCTS
        assert insights.method_insight("alphabeta") == insights.STRATEGY_ALPHABETA

    def test_long_hesitation_wins_over_other_signals(self, initial_board) -> None:
        move = PlayerMove(**{
            "from": Position(r=6, c=0),
            "to": Position(r=3, c=3),
            "moveTimeSeconds": 12.0,
            "hoverCount": 4,
        })
        options = insights.classify_opponent_move(initial_board, move, 3)
        assert options[0] == "isolation.psychology.longHesitation1"
        assert len(options) == 3

    def test_quick_aggressive(self, initial_board) -> None:
        move = PlayerMove(**{
            "from": Position(r=6, c=0),
            "to": Position(r=3, c=3),
            "moveTimeSeconds": 2.0,
        })
        assert insights.classify_opponent_move(initial_board, move, 3)[0].endswith(
            "quickAggressiveOptimal1"
        )

    def test_untimed_moves(self) -> None:
        move = PlayerMove(**{"from": Position(r=6, c=0), "to": Position(r=3, c=3)})
        board = make_board(player=(3, 3), ai=(6, 6))
        assert insights.classify_opponent_move(board, move, 3)[0].endswith(".aggressive1")

        # Long slide perpendicular to the AI direction: neither side of the line.
        sideways = PlayerMove(**{"from": Position(r=3, c=0), "to": Position(r=3, c=3)})
        board = make_board(player=(3, 3), ai=(0, 0))
        assert insights.classify_opponent_move(board, sideways, 20) == ["isolation.playerBalanced"]
        assert insights.classify_opponent_move(board, sideways, 4)[0].endswith("earlyBalanced1")

    def test_no_previous_move(self, initial_board) -> None:
        assert insights.psychology_insight(initial_board, None, 0) == insights.INITIALIZING
