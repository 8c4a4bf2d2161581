"""Exact endgame solving for partitioned boards.

Once the pieces are walled off from each other nothing one side does can
affect the other, and the game reduces to who can keep moving longer. Each
side's best play is then the longest simple path through its own region,
which is computed exactly here for small regions.

The path model treats cells already visited on the path as blocked for
sliding. The solver runs an explicit-stack depth-first search memoized on
``(cell, visited)`` and gives up at a wall-clock deadline, in which case it
reports the region size as a heuristic path length.
"""

from __future__ import annotations

import logging
import time
from typing import NamedTuple, Optional

from ..errors import SearchTimeoutError
from .bitboard import BoardGeometry, flood_fill, iter_bits, sliding_moves
from .move_generation import Side, Snapshot, Turn, destroy_targets
from .partition import PartitionResult, detect_partition

logger = logging.getLogger(__name__)

SOLVABLE_REGION_SIZE = 15

# Nodes between deadline checks.
_POLL_INTERVAL = 512


class EndgameResult(NamedTuple):
    turn: Optional[Turn]
    longest_path: int
    exact: bool

    @property
    def confidence(self) -> str:
        return "exact" if self.exact else "heuristic"


def should_solve_exactly(region: int) -> bool:
    return region.bit_count() <= SOLVABLE_REGION_SIZE


def estimate_longest_path(region: int) -> int:
    """Cheap upper-bound estimate: one move per cell in the region."""
    return region.bit_count()


def _longest_path(
    geometry: BoardGeometry,
    start: int,
    region: int,
    deadline: float,
) -> tuple[int, Optional[int]]:
    """Length of the longest simple slide path from ``start`` within ``region``.

    Returns the length and the first step of one such path.

    Raises:
        SearchTimeoutError: when ``deadline`` passes mid-search.
    """
    full = geometry.full_mask

    def moves_from(cell: int, visited: int) -> int:
        return sliding_moves(geometry, cell, full & ~(region & ~visited))

    memo: dict[tuple[int, int], int] = {}
    # Frame: [cell, visited, pending moves, best length, best first step]
    stack = [[start, 0, moves_from(start, 0), 0, None]]
    nodes = 0

    while True:
        frame = stack[-1]
        pending = frame[2]
        if pending:
            nodes += 1
            if nodes % _POLL_INTERVAL == 0 and time.monotonic() > deadline:
                raise SearchTimeoutError(
                    "Endgame solver deadline passed",
                    context={"nodes": nodes, "memo": len(memo)},
                )
            low = pending & -pending
            frame[2] = pending ^ low
            nxt = low.bit_length() - 1
            visited = frame[1] | low
            cached = memo.get((nxt, visited))
            if cached is None:
                stack.append([nxt, visited, moves_from(nxt, visited), 0, None])
            elif cached + 1 > frame[3]:
                frame[3] = cached + 1
                frame[4] = nxt
            continue

        stack.pop()
        if not stack:
            return frame[3], frame[4]
        memo[(frame[0], frame[1])] = frame[3]
        parent = stack[-1]
        if frame[3] + 1 > parent[3]:
            parent[3] = frame[3] + 1
            parent[4] = frame[0]


def side_region(snap: Snapshot, side: Side) -> int:
    """Cells ``side`` can reach with the opposing piece as a wall."""
    own = snap.position(side)
    other = snap.position(side.opponent)
    return flood_fill(snap.geometry, own, snap.destroyed | (1 << other)) & ~(1 << own)


def choose_endgame_destroy(snap: Snapshot, side: Side, to_idx: int) -> int:
    """Destroy that costs the mover nothing: outside its region, far away."""
    g = snap.geometry
    own_from = snap.position(side)
    other = snap.position(side.opponent)
    region_after = flood_fill(
        g, to_idx, snap.destroyed | (1 << other) | (1 << own_from)
    ) & ~(1 << to_idx)

    best = None
    best_score = None
    for cell in destroy_targets(snap, side, to_idx):
        score = 0
        if not region_after >> cell & 1:
            score += 100
        score += g.manhattan(cell, to_idx) * 2
        score += 10 - g.manhattan(cell, other)
        if best_score is None or score > best_score:
            best, best_score = cell, score
    return best


def solve_endgame(
    snap: Snapshot,
    side: Side,
    region: Optional[int] = None,
    time_limit_ms: float = 3000,
) -> EndgameResult:
    """Best turn for ``side`` inside its region and its longest path.

    ``region`` defaults to the cells the side can reach with the opposing
    piece as a wall. On timeout the result is marked heuristic and the
    region size stands in for the path length.
    """
    g = snap.geometry
    start = snap.position(side)
    if region is None:
        region = side_region(snap, side)

    first_moves = sliding_moves(g, start, snap.blocked()) & region
    if not first_moves:
        return EndgameResult(None, 0, True)

    deadline = time.monotonic() + time_limit_ms / 1000.0
    try:
        length, first_step = _longest_path(g, start, region, deadline)
        exact = True
    except SearchTimeoutError as e:
        logger.debug(f"Endgame solve for {side.value} fell back to heuristic: {e}")
        length = estimate_longest_path(region)
        exact = False
        # Head for the destination that keeps the most of the region in reach.
        first_step = max(
            iter_bits(first_moves),
            key=lambda cell: (sliding_moves(g, cell, g.full_mask & ~region) & region).bit_count(),
        )

    if first_step is None:
        first_step = next(iter_bits(first_moves))
    destroy = choose_endgame_destroy(snap, side, first_step)
    return EndgameResult(Turn(start, first_step, destroy), length, exact)


def _path_lengths(
    snap: Snapshot,
    partition: PartitionResult,
    time_limit_ms: float,
) -> tuple[int, int, bool]:
    """(player length, ai length, both exact)."""
    player_region = partition.player_region
    ai_region = partition.ai_region
    if not (should_solve_exactly(player_region) and should_solve_exactly(ai_region)):
        return estimate_longest_path(player_region), estimate_longest_path(ai_region), False
    half = time_limit_ms / 2
    player = solve_endgame(snap, Side.PLAYER, player_region, half)
    ai = solve_endgame(snap, Side.AI, ai_region, half)
    if player.exact and ai.exact:
        return player.longest_path, ai.longest_path, True
    return estimate_longest_path(player_region), estimate_longest_path(ai_region), False


def endgame_advantage(
    snap: Snapshot,
    partition: Optional[PartitionResult] = None,
    time_limit_ms: float = 2000,
) -> int:
    """AI path length minus the player's; region sizes when not solvable."""
    partition = partition or detect_partition(snap)
    if not partition.is_partitioned:
        return 0
    player_len, ai_len, _ = _path_lengths(snap, partition, time_limit_ms)
    return ai_len - player_len


def predict_partitioned_outcome(
    snap: Snapshot,
    side_to_move: Side,
    time_limit_ms: float = 2000,
) -> Optional[Side]:
    """Winner of a partitioned position under best play, or None if connected.

    Both sides alternate moves, so with equal path lengths the side to move
    runs out first: it wins only with a strictly longer path.
    """
    partition = detect_partition(snap)
    if not partition.is_partitioned:
        return None
    player_len, ai_len, _ = _path_lengths(snap, partition, time_limit_ms)
    mover_len = ai_len if side_to_move is Side.AI else player_len
    other_len = player_len if side_to_move is Side.AI else ai_len
    return side_to_move if mover_len > other_len else side_to_move.opponent
