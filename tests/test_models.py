"""Tests for the board models, serialization and the error hierarchy."""

import random

import pytest

from isolation_ai.errors import (
    AIError,
    AIFallbackError,
    ConfigurationError,
    InvalidBoardStateError,
    InvalidMoveError,
    IsolationError,
    SearchTimeoutError,
    ValidationError,
)
from isolation_ai.models import (
    BoardSize,
    BoardState,
    Move,
    Position,
    create_initial_board,
    parse_board,
    serialize_board,
    validate_board,
)

from conftest import make_board


class TestSerialization:
    """Canonical compact JSON for boards."""

    def test_wire_format(self) -> None:
        board = make_board(player=(0, 0), ai=(6, 6), destroyed=[(1, 2)])
        assert serialize_board(board) == (
            '{"boardSize":{"rows":7,"cols":7},"playerPos":{"r":0,"c":0},'
            '"aiPos":{"r":6,"c":6},"destroyed":[{"r":1,"c":2}]}'
        )

    def test_round_trip(self) -> None:
        board = make_board(player=(2, 5), ai=(4, 1), destroyed=[(0, 0), (3, 3), (6, 2)])
        text = serialize_board(board)
        parsed = parse_board(text)
        assert parsed == board
        assert serialize_board(parsed) == text

    def test_destroy_order_does_not_matter(self) -> None:
        a = make_board(destroyed=[(3, 3), (0, 1), (2, 6)])
        b = make_board(destroyed=[(0, 1), (2, 6), (3, 3)])
        assert serialize_board(a) == serialize_board(b)

    def test_parse_rejects_garbage(self) -> None:
        with pytest.raises(InvalidBoardStateError):
            parse_board("not a board")
        with pytest.raises(InvalidBoardStateError):
            parse_board('{"boardSize":{"rows":7,"cols":7},"aiPos":{"r":0,"c":0}}')

    def test_parse_validates_invariants(self) -> None:
        text = serialize_board(make_board(player=(1, 1), ai=(1, 1)))
        with pytest.raises(InvalidBoardStateError):
            parse_board(text)


class TestValidateBoard:
    @pytest.mark.parametrize(
        "board",
        [
            make_board(rows=8, cols=9),
            make_board(player=(0, 0), ai=(0, 1), rows=0, cols=7),
            make_board(player=(7, 0)),
            make_board(ai=(0, -1)),
            make_board(player=(2, 2), ai=(2, 2)),
            make_board(destroyed=[(0, 7)]),
            make_board(destroyed=[(3, 3), (3, 3)]),
            make_board(player=(1, 1), destroyed=[(1, 1)]),
        ],
        ids=[
            "too-many-cells",
            "zero-rows",
            "player-out-of-bounds",
            "ai-out-of-bounds",
            "same-cell",
            "destroyed-out-of-bounds",
            "duplicate-destroyed",
            "piece-on-destroyed",
        ],
    )
    def test_rejects(self, board: BoardState) -> None:
        with pytest.raises(InvalidBoardStateError):
            validate_board(board)

    def test_accepts_rectangular_board(self) -> None:
        board = make_board(player=(0, 0), ai=(4, 7), rows=5, cols=8)
        assert validate_board(board) is board

    def test_error_context(self) -> None:
        with pytest.raises(InvalidBoardStateError) as excinfo:
            validate_board(make_board(player=(7, 0)))
        assert excinfo.value.context["piece"] == "playerPos"


class TestModels:
    def test_move_uses_from_alias(self) -> None:
        move = Move.model_validate({
            "from": {"r": 0, "c": 6},
            "to": {"r": 3, "c": 3},
            "destroy": {"r": 5, "c": 5},
        })
        assert move.from_pos == Position(r=0, c=6)
        assert move.model_dump(by_alias=True)["from"] == {"r": 0, "c": 6}

    def test_board_defaults_to_seven_by_seven(self) -> None:
        board = BoardState(playerPos=Position(r=0, c=0), aiPos=Position(r=1, c=2))
        assert board.board_size == BoardSize(rows=7, cols=7)
        assert board.destroyed == []

    def test_position_key(self) -> None:
        assert Position(r=3, c=4).to_key() == "3,4"

    @pytest.mark.parametrize("seed", range(10))
    def test_initial_board(self, seed: int) -> None:
        board = create_initial_board(random.Random(seed))
        validate_board(board)
        assert board.destroyed == []
        distance = abs(board.player_pos.r - board.ai_pos.r) + abs(board.player_pos.c - board.ai_pos.c)
        assert distance >= 2


class TestErrors:
    """Error codes, formatting and hierarchy."""

    def test_str_without_context(self) -> None:
        assert str(IsolationError("boom")) == "[ISOLATION_ERROR] boom"

    def test_str_with_context(self) -> None:
        err = InvalidMoveError("Illegal turn", side="ai")
        assert str(err) == "[INVALID_MOVE] Illegal turn (side=ai)"
        assert err.side == "ai"

    def test_to_dict(self) -> None:
        err = InvalidBoardStateError("bad", context={"position": "7,0"})
        assert err.to_dict() == {
            "code": "INVALID_BOARD_STATE",
            "message": "bad",
            "context": {"position": "7,0"},
        }

    def test_code_override(self) -> None:
        assert IsolationError("x", code="CUSTOM").code == "CUSTOM"

    def test_fallback_records_cause(self) -> None:
        err = AIFallbackError("failed", original_error=ValueError("nope"))
        assert err.context == {"fallback_method": "first_legal", "original_error": "nope"}
        assert isinstance(err, AIError)

    def test_timeout_context(self) -> None:
        err = SearchTimeoutError("slow", time_limit_ms=100, actual_time_ms=150)
        assert err.context == {"time_limit_ms": 100, "actual_time_ms": 150}
        assert err.code == "SEARCH_TIMEOUT"

    def test_configuration_is_validation(self) -> None:
        assert issubclass(ConfigurationError, ValidationError)
        assert issubclass(ValidationError, IsolationError)
