"""Partition detection.

The board is partitioned once neither piece can reach the other's cell by
any sequence of slides. Destroyed cells never come back, so a partitioned
board stays partitioned for the rest of the game; results are memoized per
snapshot.
"""

from __future__ import annotations

from functools import lru_cache
from typing import List, NamedTuple, Optional

from .bitboard import flood_fill, iter_bits
from .move_generation import Side, Snapshot


class PartitionResult(NamedTuple):
    is_partitioned: bool
    # Cells each side can reach, excluding its own cell. Zero when connected.
    player_region: int
    ai_region: int

    @property
    def player_region_size(self) -> int:
        return self.player_region.bit_count()

    @property
    def ai_region_size(self) -> int:
        return self.ai_region.bit_count()

    @property
    def predicted_winner(self) -> str:
        """Region-size prediction: ``player``, ``ai``, ``tie`` or ``unknown``."""
        if not self.is_partitioned:
            return "unknown"
        if self.player_region_size > self.ai_region_size:
            return "player"
        if self.ai_region_size > self.player_region_size:
            return "ai"
        return "tie"

    def region(self, side: Side) -> int:
        return self.ai_region if side is Side.AI else self.player_region


_CONNECTED = PartitionResult(False, 0, 0)


def _connected(snap: Snapshot) -> bool:
    reach = flood_fill(snap.geometry, snap.player, snap.destroyed)
    return bool(reach >> snap.ai & 1)


@lru_cache(maxsize=65536)
def detect_partition(snap: Snapshot) -> PartitionResult:
    """Classify a board as connected or partitioned.

    When partitioned, each region is the flood fill from that side's piece
    with the other piece treated as blocked.
    """
    if _connected(snap):
        return _CONNECTED
    g = snap.geometry
    player_bit = 1 << snap.player
    ai_bit = 1 << snap.ai
    player_region = flood_fill(g, snap.player, snap.destroyed | ai_bit) & ~player_bit
    ai_region = flood_fill(g, snap.ai, snap.destroyed | player_bit) & ~ai_bit
    return PartitionResult(True, player_region, ai_region)


def would_cause_partition(snap: Snapshot, destroy_idx: int) -> bool:
    return detect_partition(snap._replace(destroyed=snap.destroyed | (1 << destroy_idx))).is_partitioned


def _candidate_cells(snap: Snapshot, near_pieces: bool) -> int:
    candidates = snap.empty()
    if not near_pieces:
        return candidates
    g = snap.geometry
    pr, pc = g.cell_position(snap.player)
    ar, ac = g.cell_position(snap.ai)
    min_r, max_r = max(0, min(pr, ar) - 1), min(g.rows - 1, max(pr, ar) + 1)
    min_c, max_c = max(0, min(pc, ac) - 1), min(g.cols - 1, max(pc, ac) + 1)
    box = 0
    for r in range(min_r, max_r + 1):
        for c in range(min_c, max_c + 1):
            box |= 1 << g.cell_index(r, c)
    return candidates & box


def find_critical_cells(snap: Snapshot, near_pieces: bool = False) -> List[int]:
    """Empty cells whose destruction would partition a connected board.

    With ``near_pieces`` only the pieces' bounding box grown by one cell is
    searched. Returns an empty list when the board is already partitioned.
    """
    if detect_partition(snap).is_partitioned:
        return []
    return [
        idx
        for idx in iter_bits(_candidate_cells(snap, near_pieces))
        if would_cause_partition(snap, idx)
    ]


def partition_potential(snap: Snapshot) -> float:
    """Share of empty cells whose destruction would partition the board."""
    if detect_partition(snap).is_partitioned:
        return 1.0
    empty = snap.empty()
    total = empty.bit_count()
    if total == 0:
        return 1.0
    hits = sum(1 for idx in iter_bits(empty) if would_cause_partition(snap, idx))
    return hits / total


def find_best_partition_destroy(
    snap: Snapshot,
    side: Side,
    candidates: Optional[List[int]] = None,
) -> Optional[int]:
    """Best single destroy that partitions in ``side``'s favour, or None.

    Advantage is the side's region size minus the opponent's; only a
    strictly positive advantage is returned.
    """
    best_idx = None
    best_adv = 0
    cells = candidates if candidates is not None else list(iter_bits(snap.empty()))
    for idx in cells:
        after = detect_partition(snap._replace(destroyed=snap.destroyed | (1 << idx)))
        if not after.is_partitioned:
            continue
        adv = after.ai_region_size - after.player_region_size
        if side is Side.PLAYER:
            adv = -adv
        if adv > best_adv:
            best_idx, best_adv = idx, adv
    return best_idx


def best_partition_advantage(snap: Snapshot, critical: List[int]) -> float:
    """Largest AI-minus-player region difference any single critical destroy yields."""
    best = None
    for idx in critical:
        after = detect_partition(snap._replace(destroyed=snap.destroyed | (1 << idx)))
        if after.is_partitioned:
            adv = after.ai_region_size - after.player_region_size
            if best is None or adv > best:
                best = adv
    return 0.0 if best is None else float(best)
