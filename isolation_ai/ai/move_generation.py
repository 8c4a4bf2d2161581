"""Move and destroy generation, legality checks and move application.

Two views of the same rules live here:

- a :class:`Snapshot` (bitboards and cell indices) that the search engines
  copy on every move, and
- :class:`~isolation_ai.models.BoardState` helpers used at the service
  boundary and by tests.

Pieces slide like a chess queen: any distance along a row, column or
diagonal, stopping before the first destroyed or occupied cell. After
moving, the mover destroys one empty cell other than its new position and
the opponent's cell. The vacated cell is empty, so a legal destroy always
exists when a legal move does.
"""

from __future__ import annotations

from enum import Enum
from typing import List, NamedTuple, Optional

from ..errors import InvalidMoveError
from ..models import BoardSize, BoardState, Move, Position, validate_board
from .bitboard import BoardGeometry, get_geometry, iter_bits, sliding_moves


class Side(str, Enum):
    PLAYER = "player"
    AI = "ai"

    @property
    def opponent(self) -> "Side":
        return Side.AI if self is Side.PLAYER else Side.PLAYER


class Turn(NamedTuple):
    """One full turn as cell indices."""
    from_idx: int
    to_idx: int
    destroy_idx: int


class Snapshot(NamedTuple):
    """Immutable search-time view of a board.

    Hashable, so it can key caches. ``destroyed`` is a bitboard.
    """
    geometry: BoardGeometry
    player: int
    ai: int
    destroyed: int

    @classmethod
    def from_board(cls, board: BoardState) -> "Snapshot":
        validate_board(board)
        geometry = get_geometry(board.board_size.rows, board.board_size.cols)
        destroyed = 0
        for cell in board.destroyed:
            destroyed |= 1 << geometry.cell_index(cell.r, cell.c)
        return cls(
            geometry,
            geometry.cell_index(board.player_pos.r, board.player_pos.c),
            geometry.cell_index(board.ai_pos.r, board.ai_pos.c),
            destroyed,
        )

    def to_board(self) -> BoardState:
        g = self.geometry
        return BoardState(
            boardSize=BoardSize(rows=g.rows, cols=g.cols),
            playerPos=index_to_position(g, self.player),
            aiPos=index_to_position(g, self.ai),
            destroyed=[index_to_position(g, i) for i in iter_bits(self.destroyed)],
        )

    def position(self, side: Side) -> int:
        return self.ai if side is Side.AI else self.player

    def blocked(self) -> int:
        return self.destroyed | (1 << self.player) | (1 << self.ai)

    def empty(self) -> int:
        return self.geometry.full_mask & ~self.blocked()

    def with_move(self, side: Side, to_idx: int, destroy_idx: int) -> "Snapshot":
        destroyed = self.destroyed | (1 << destroy_idx)
        if side is Side.AI:
            return self._replace(ai=to_idx, destroyed=destroyed)
        return self._replace(player=to_idx, destroyed=destroyed)

    def with_slide(self, side: Side, to_idx: int) -> "Snapshot":
        """The board after a slide but before the destroy."""
        if side is Side.AI:
            return self._replace(ai=to_idx)
        return self._replace(player=to_idx)


def index_to_position(geometry: BoardGeometry, idx: int) -> Position:
    r, c = divmod(idx, geometry.cols)
    return Position(r=r, c=c)


# =============================================================================
# Snapshot-level generation (search engines)
# =============================================================================


def move_mask(snap: Snapshot, side: Side) -> int:
    return sliding_moves(snap.geometry, snap.position(side), snap.blocked())


def mobility(snap: Snapshot, side: Side) -> int:
    return move_mask(snap, side).bit_count()


def move_targets(snap: Snapshot, side: Side) -> List[int]:
    """Destination cells in row-major order."""
    return list(iter_bits(move_mask(snap, side)))


def destroy_mask(snap: Snapshot, side: Side, to_idx: int) -> int:
    """Cells ``side`` may destroy after sliding to ``to_idx``."""
    after = snap.with_slide(side, to_idx)
    return after.empty()


def destroy_targets(snap: Snapshot, side: Side, to_idx: int) -> List[int]:
    return list(iter_bits(destroy_mask(snap, side, to_idx)))


def generate_turns(snap: Snapshot, side: Side) -> List[Turn]:
    """Every (move, destroy) pair, moves then destroys in row-major order."""
    origin = snap.position(side)
    turns = []
    for to_idx in move_targets(snap, side):
        for destroy_idx in destroy_targets(snap, side, to_idx):
            turns.append(Turn(origin, to_idx, destroy_idx))
    return turns


def is_legal_turn_snapshot(snap: Snapshot, side: Side, turn: Turn) -> bool:
    if turn.from_idx != snap.position(side):
        return False
    if not move_mask(snap, side) >> turn.to_idx & 1:
        return False
    return bool(destroy_mask(snap, side, turn.to_idx) >> turn.destroy_idx & 1)


def nearest_empty_index(snap: Snapshot, side: Side, to_idx: int) -> Optional[int]:
    """Closest legal destroy to ``to_idx`` by Manhattan distance.

    Ties go to the first cell in row-major order.
    """
    best = None
    best_dist = None
    for idx in iter_bits(destroy_mask(snap, side, to_idx)):
        dist = snap.geometry.manhattan(idx, to_idx)
        if best_dist is None or dist < best_dist:
            best, best_dist = idx, dist
    return best


# =============================================================================
# BoardState-level API
# =============================================================================


def _piece(board: BoardState, side: Side) -> Position:
    return board.ai_pos if side is Side.AI else board.player_pos


def is_legal_move(board: BoardState, from_pos: Position, to: Position, side: Side) -> bool:
    """True when ``side`` can slide from ``from_pos`` to ``to``."""
    rows, cols = board.board_size.rows, board.board_size.cols
    for p in (from_pos, to):
        if not (0 <= p.r < rows and 0 <= p.c < cols):
            return False
    if from_pos != _piece(board, side):
        return False
    snap = Snapshot.from_board(board)
    to_idx = snap.geometry.cell_index(to.r, to.c)
    return bool(move_mask(snap, side) >> to_idx & 1)


def legal_moves(board: BoardState, pos: Position, side: Side) -> List[Position]:
    """Destinations for ``side`` in row-major order.

    Empty when ``pos`` is not the side's piece.
    """
    if pos != _piece(board, side):
        return []
    snap = Snapshot.from_board(board)
    return [index_to_position(snap.geometry, i) for i in move_targets(snap, side)]


def legal_destroys(board: BoardState, post_move_pos: Position, side: Side) -> List[Position]:
    """Cells ``side`` may destroy after moving to ``post_move_pos``."""
    snap = Snapshot.from_board(board)
    to_idx = snap.geometry.cell_index(post_move_pos.r, post_move_pos.c)
    return [
        index_to_position(snap.geometry, i)
        for i in destroy_targets(snap, side, to_idx)
    ]


def is_legal_turn(board: BoardState, move: Move, side: Side) -> bool:
    if not is_legal_move(board, move.from_pos, move.to, side):
        return False
    return move.destroy in legal_destroys(board, move.to, side)


def nearest_empty_cell(board: BoardState, post_move_pos: Position, side: Side) -> Optional[Position]:
    snap = Snapshot.from_board(board)
    g = snap.geometry
    idx = nearest_empty_index(snap, side, g.cell_index(post_move_pos.r, post_move_pos.c))
    return None if idx is None else index_to_position(g, idx)


def apply_move(board: BoardState, move: Move, side: Side) -> BoardState:
    """Return the board after ``side`` plays ``move``.

    Raises:
        InvalidMoveError: if the turn is not legal.
    """
    if not is_legal_turn(board, move, side):
        raise InvalidMoveError(
            "Illegal turn",
            side=side.value,
            context={
                "from": move.from_pos.to_key(),
                "to": move.to.to_key(),
                "destroy": move.destroy.to_key(),
            },
        )
    return apply_move_unchecked(board, move, side)


def apply_move_unchecked(board: BoardState, move: Move, side: Side) -> BoardState:
    update = {"destroyed": [*board.destroyed, move.destroy]}
    if side is Side.AI:
        update["ai_pos"] = move.to
    else:
        update["player_pos"] = move.to
    # model_copy skips validators, so re-sort through the constructor.
    data = board.model_copy(update=update).model_dump()
    return BoardState.model_validate(data)


def turn_to_move(geometry: BoardGeometry, turn: Turn) -> Move:
    return Move(
        **{
            "from": index_to_position(geometry, turn.from_idx),
            "to": index_to_position(geometry, turn.to_idx),
            "destroy": index_to_position(geometry, turn.destroy_idx),
        }
    )


def move_to_turn(geometry: BoardGeometry, move: Move) -> Turn:
    return Turn(
        geometry.cell_index(move.from_pos.r, move.from_pos.c),
        geometry.cell_index(move.to.r, move.to.c),
        geometry.cell_index(move.destroy.r, move.destroy.c),
    )
