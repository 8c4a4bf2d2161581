"""
Pydantic Models for the Isolation board and AI service
Field aliases mirror the camelCase wire format used by game clients.
"""

from __future__ import annotations

import random
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from .errors import InvalidBoardStateError

# One bit per cell, so the grid must fit in a 64-bit board.
MAX_BOARD_CELLS = 64
DEFAULT_ROWS = 7
DEFAULT_COLS = 7


class Difficulty(str, Enum):
    """Strength tiers, weakest first"""
    NEXUS_3 = "NEXUS-3"
    NEXUS_5 = "NEXUS-5"
    NEXUS_7 = "NEXUS-7"


class Position(BaseModel):
    """Board cell coordinates"""
    r: int
    c: int

    class Config:
        frozen = True

    def to_key(self) -> str:
        """Convert position to string key"""
        return f"{self.r},{self.c}"


class BoardSize(BaseModel):
    """Grid dimensions"""
    rows: int = DEFAULT_ROWS
    cols: int = DEFAULT_COLS

    class Config:
        frozen = True


class BoardState(BaseModel):
    """Board snapshot: grid size, both pieces and the destroyed cells.

    ``destroyed`` is kept in row-major order so that two equal boards always
    serialize to the same string regardless of the order cells were
    destroyed in.
    """
    board_size: BoardSize = Field(default_factory=BoardSize, alias="boardSize")
    player_pos: Position = Field(alias="playerPos")
    ai_pos: Position = Field(alias="aiPos")
    destroyed: List[Position] = Field(default_factory=list)

    class Config:
        populate_by_name = True
        frozen = True

    @field_validator("destroyed")
    @classmethod
    def _sort_destroyed(cls, value: List[Position]) -> List[Position]:
        return sorted(value, key=lambda p: (p.r, p.c))


class Move(BaseModel):
    """A full turn: slide ``from`` -> ``to`` then destroy one empty cell."""
    from_pos: Position = Field(alias="from")
    to: Position
    destroy: Position

    class Config:
        populate_by_name = True
        frozen = True


class PlayerMove(BaseModel):
    """The opponent's most recent move, with optional interaction telemetry."""
    from_pos: Position = Field(alias="from")
    to: Position
    move_time_seconds: Optional[float] = Field(None, alias="moveTimeSeconds")
    hover_count: Optional[int] = Field(None, alias="hoverCount")

    class Config:
        populate_by_name = True


class SearchStats(BaseModel):
    """Diagnostics for one move computation"""
    depth: int = 0
    elapsed_ms: int = Field(0, alias="elapsedMs")
    nodes: int = 0
    method: str = "none"
    score: Optional[float] = None
    confidence: Optional[float] = None

    class Config:
        populate_by_name = True


class MoveRequest(BaseModel):
    """Request body for /ai/move"""
    board: BoardState
    difficulty: Difficulty = Difficulty.NEXUS_5
    turn_count: int = Field(0, alias="turnCount", ge=0)
    board_history: List[str] = Field(default_factory=list, alias="boardHistory")
    last_opponent_move: Optional[PlayerMove] = Field(
        None, alias="lastOpponentMove"
    )
    game_id: Optional[str] = Field(None, alias="gameId")
    seed: Optional[int] = None

    class Config:
        populate_by_name = True


class MoveResponse(BaseModel):
    """Response body for /ai/move"""
    move: Optional[Move]
    logs: List[str] = Field(default_factory=list)
    stats: SearchStats
    difficulty: Difficulty

    class Config:
        populate_by_name = True


class EvaluationRequest(BaseModel):
    """Request body for /ai/evaluate"""
    board: BoardState
    difficulty: Difficulty = Difficulty.NEXUS_5
    turn_count: Optional[int] = Field(None, alias="turnCount", ge=0)

    class Config:
        populate_by_name = True


class EvaluationResponse(BaseModel):
    """Response body for /ai/evaluate"""
    score: float
    breakdown: Dict[str, float]
    partitioned: bool


def validate_board(board: BoardState) -> BoardState:
    """Check the structural invariants of a board.

    Raises:
        InvalidBoardStateError: if any invariant is violated.
    """
    rows, cols = board.board_size.rows, board.board_size.cols
    if rows <= 0 or cols <= 0 or rows * cols > MAX_BOARD_CELLS:
        raise InvalidBoardStateError(
            "Board dimensions out of range",
            context={"rows": rows, "cols": cols},
        )

    def in_bounds(p: Position) -> bool:
        return 0 <= p.r < rows and 0 <= p.c < cols

    for label, pos in (("playerPos", board.player_pos), ("aiPos", board.ai_pos)):
        if not in_bounds(pos):
            raise InvalidBoardStateError(
                "Piece position out of bounds",
                context={"piece": label, "position": pos.to_key()},
            )
    if board.player_pos == board.ai_pos:
        raise InvalidBoardStateError(
            "Both pieces occupy the same cell",
            context={"position": board.ai_pos.to_key()},
        )

    seen: set[tuple[int, int]] = set()
    for cell in board.destroyed:
        if not in_bounds(cell):
            raise InvalidBoardStateError(
                "Destroyed cell out of bounds",
                context={"position": cell.to_key()},
            )
        key = (cell.r, cell.c)
        if key in seen:
            raise InvalidBoardStateError(
                "Duplicate destroyed cell",
                context={"position": cell.to_key()},
            )
        seen.add(key)
    for label, pos in (("playerPos", board.player_pos), ("aiPos", board.ai_pos)):
        if (pos.r, pos.c) in seen:
            raise InvalidBoardStateError(
                "Piece stands on a destroyed cell",
                context={"piece": label, "position": pos.to_key()},
            )
    return board


def serialize_board(board: BoardState) -> str:
    """Encode a board as compact JSON.

    Equal boards give byte-identical strings and :func:`parse_board`
    reproduces the same structure.
    """
    return board.model_dump_json(by_alias=True)


def parse_board(text: str) -> BoardState:
    """Decode a string produced by :func:`serialize_board`.

    Raises:
        InvalidBoardStateError: if the text is not a valid board.
    """
    try:
        board = BoardState.model_validate_json(text)
    except ValidationError as e:
        raise InvalidBoardStateError(
            "Unparseable board state",
            context={"errors": e.error_count()},
        ) from e
    return validate_board(board)


def create_initial_board(
    rng: Optional[random.Random] = None,
    rows: int = DEFAULT_ROWS,
    cols: int = DEFAULT_COLS,
) -> BoardState:
    """Random start position with the pieces at least two cells apart."""
    rng = rng or random.Random()
    total = rows * cols
    while True:
        player_idx = rng.randrange(total)
        ai_idx = rng.randrange(total)
        player = Position(r=player_idx // cols, c=player_idx % cols)
        ai = Position(r=ai_idx // cols, c=ai_idx % cols)
        if abs(player.r - ai.r) + abs(player.c - ai.c) >= 2:
            return BoardState(
                boardSize=BoardSize(rows=rows, cols=cols),
                playerPos=player,
                aiPos=ai,
                destroyed=[],
            )
