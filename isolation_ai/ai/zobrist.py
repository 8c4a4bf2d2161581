"""Zobrist hashing for Isolation positions.

A position hash XORs one random key per (piece, cell), one per destroyed
cell and one for the side to move. Keys come from a seeded generator, so
hashes are stable across runs for the same grid size.
"""

from __future__ import annotations

import random
from functools import lru_cache

from .bitboard import iter_bits
from .move_generation import Side, Snapshot

_SEED = 0x15017A7E


class ZobristHash:
    """Random key tables for one grid size."""

    def __init__(self, num_cells: int = 49, seed: int = _SEED) -> None:
        rng = random.Random(seed)
        self.num_cells = num_cells
        self.player_keys = [rng.getrandbits(64) for _ in range(num_cells)]
        self.ai_keys = [rng.getrandbits(64) for _ in range(num_cells)]
        self.destroyed_keys = [rng.getrandbits(64) for _ in range(num_cells)]
        self.ai_to_move_key = rng.getrandbits(64)

    def compute_hash(self, snap: Snapshot, side_to_move: Side) -> int:
        h = self.player_keys[snap.player] ^ self.ai_keys[snap.ai]
        for idx in iter_bits(snap.destroyed):
            h ^= self.destroyed_keys[idx]
        if side_to_move is Side.AI:
            h ^= self.ai_to_move_key
        return h

    def update_hash(
        self,
        h: int,
        side: Side,
        from_idx: int,
        to_idx: int,
        destroy_idx: int,
    ) -> int:
        """Hash after ``side`` plays a turn; the side to move flips."""
        keys = self.ai_keys if side is Side.AI else self.player_keys
        h ^= keys[from_idx] ^ keys[to_idx]
        h ^= self.destroyed_keys[destroy_idx]
        return h ^ self.ai_to_move_key


@lru_cache(maxsize=16)
def get_zobrist(num_cells: int) -> ZobristHash:
    return ZobristHash(num_cells)
