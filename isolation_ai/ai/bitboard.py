"""Bitboard primitives for queen-style sliding on a small grid.

A board is a plain ``int`` with bit ``r * cols + c`` set for each cell in
the set. Geometry tables (per-direction ray masks, shift masks, centre and
corner distances) are computed once per grid size and cached.

Two ways of sliding are provided:

- :func:`sliding_moves` answers "where can the piece on this cell go" with
  one ray lookup and one blocker isolation per direction.
- :func:`slide_set` pushes a whole set of cells one direction at a time and
  returns every cell reachable in one slide from any of them. Flood fill and
  the Voronoi race use it so that their cost depends on board diameter, not
  on how many cells are in the frontier.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Iterator

# (dr, dc) in the fixed order NW, N, NE, W, E, SW, S, SE.
DIRECTIONS: tuple[tuple[int, int], ...] = (
    (-1, -1), (-1, 0), (-1, 1),
    (0, -1), (0, 1),
    (1, -1), (1, 0), (1, 1),
)


class BoardGeometry:
    """Precomputed lookup tables for one grid size.

    Instances are shared through :func:`get_geometry` and must be treated
    as read-only.
    """

    def __init__(self, rows: int, cols: int) -> None:
        self.rows = rows
        self.cols = cols
        self.num_cells = rows * cols
        self.full_mask = (1 << self.num_cells) - 1

        center_r, center_c = rows // 2, cols // 2
        self.center = (center_r, center_c)

        # rays[idx][d] holds every cell strictly beyond idx in direction d.
        self.rays: list[tuple[int, ...]] = []
        # True when cell indices grow along direction d.
        self.ray_increasing: tuple[bool, ...] = tuple(
            dr * cols + dc > 0 for dr, dc in DIRECTIONS
        )
        for idx in range(self.num_cells):
            r, c = divmod(idx, cols)
            per_dir = []
            for dr, dc in DIRECTIONS:
                mask = 0
                rr, cc = r + dr, c + dc
                while 0 <= rr < rows and 0 <= cc < cols:
                    mask |= 1 << (rr * cols + cc)
                    rr += dr
                    cc += dc
                per_dir.append(mask)
            self.rays.append(tuple(per_dir))

        # For set-wise shifting: (shift, destination mask) per direction.
        # The destination mask drops cells that wrapped around a row edge.
        first_col = 0
        last_col = 0
        for r in range(rows):
            first_col |= 1 << (r * cols)
            last_col |= 1 << (r * cols + cols - 1)
        self.shifts: list[tuple[int, int]] = []
        for dr, dc in DIRECTIONS:
            dest = self.full_mask
            if dc == 1:
                dest &= ~first_col
            elif dc == -1:
                dest &= ~last_col
            self.shifts.append((dr * cols + dc, dest))

        self.center_distance: tuple[int, ...] = tuple(
            abs(i // cols - center_r) + abs(i % cols - center_c)
            for i in range(self.num_cells)
        )
        self.corner_proximity: tuple[int, ...] = tuple(
            min(
                i // cols + i % cols,
                i // cols + (cols - 1 - i % cols),
                (rows - 1 - i // cols) + i % cols,
                (rows - 1 - i // cols) + (cols - 1 - i % cols),
            )
            for i in range(self.num_cells)
        )

        self.edge_mask = 0
        self.corner_mask = 0
        self.center_cells_mask = 0
        for idx in range(self.num_cells):
            r, c = divmod(idx, cols)
            on_row_edge = r in (0, rows - 1)
            on_col_edge = c in (0, cols - 1)
            if on_row_edge or on_col_edge:
                self.edge_mask |= 1 << idx
            if on_row_edge and on_col_edge:
                self.corner_mask |= 1 << idx
            if abs(r - center_r) <= 1 and abs(c - center_c) <= 1:
                self.center_cells_mask |= 1 << idx

    def __repr__(self) -> str:
        return f"BoardGeometry(rows={self.rows}, cols={self.cols})"

    def cell_index(self, r: int, c: int) -> int:
        return r * self.cols + c

    def cell_position(self, idx: int) -> tuple[int, int]:
        return divmod(idx, self.cols)

    def in_bounds(self, r: int, c: int) -> bool:
        return 0 <= r < self.rows and 0 <= c < self.cols

    def manhattan(self, a: int, b: int) -> int:
        ar, ac = divmod(a, self.cols)
        br, bc = divmod(b, self.cols)
        return abs(ar - br) + abs(ac - bc)

    def is_edge(self, idx: int) -> bool:
        return bool(self.edge_mask >> idx & 1)

    def is_corner(self, idx: int) -> bool:
        return bool(self.corner_mask >> idx & 1)


@lru_cache(maxsize=16)
def get_geometry(rows: int = 7, cols: int = 7) -> BoardGeometry:
    """Return the shared geometry tables for a grid size."""
    return BoardGeometry(rows, cols)


def cell_index(r: int, c: int, cols: int = 7) -> int:
    return r * cols + c


def popcount(bb: int) -> int:
    return bb.bit_count()


def iter_bits(bb: int) -> Iterator[int]:
    """Yield set bit indices, lowest first."""
    while bb:
        low = bb & -bb
        yield low.bit_length() - 1
        bb ^= low


def sliding_moves(geometry: BoardGeometry, idx: int, blocked: int) -> int:
    """Cells reachable in one slide from ``idx``.

    Each ray stops just before its nearest blocked cell. Along rays whose
    indices grow the nearest blocker is the lowest set bit; along the other
    four it is the highest.
    """
    moves = 0
    rays = geometry.rays[idx]
    increasing = geometry.ray_increasing
    for d in range(8):
        ray = rays[d]
        blockers = ray & blocked
        if not blockers:
            moves |= ray
        elif increasing[d]:
            first = blockers & -blockers
            moves |= ray & (first - 1)
        else:
            first = 1 << (blockers.bit_length() - 1)
            moves |= ray & ~((first << 1) - 1)
    return moves


def slide_set(geometry: BoardGeometry, sources: int, empty: int) -> int:
    """Union of :func:`sliding_moves` over every cell in ``sources``.

    ``empty`` is the set of cells a slide may pass through and stop on.
    """
    reached = 0
    for shift, dest in geometry.shifts:
        mask = dest & empty
        x = sources
        if shift > 0:
            while x:
                x = (x << shift) & mask
                reached |= x
        else:
            shift = -shift
            while x:
                x = (x >> shift) & mask
                reached |= x
    return reached


def flood_fill(geometry: BoardGeometry, start: int, blocked: int) -> int:
    """Every cell reachable from ``start`` by any sequence of slides.

    The start cell is included in the result. Cells already reached are
    not expanded twice; the fill stops when a round adds nothing new.
    """
    empty = geometry.full_mask & ~blocked
    reached = 1 << start
    frontier = reached
    while frontier:
        frontier = slide_set(geometry, frontier, empty) & ~reached
        reached |= frontier
    return reached


def open_ray_lengths(geometry: BoardGeometry, idx: int, blocked: int) -> int:
    """Sum of the unobstructed ray lengths from ``idx``.

    Every cell on an open ray is a slide target, so this is the size of
    the slide set.
    """
    return sliding_moves(geometry, idx, blocked).bit_count()


def bitboard_to_cells(geometry: BoardGeometry, bb: int) -> list[tuple[int, int]]:
    return [geometry.cell_position(i) for i in iter_bits(bb)]


def cells_to_bitboard(geometry: BoardGeometry, cells) -> int:
    bb = 0
    for r, c in cells:
        bb |= 1 << geometry.cell_index(r, c)
    return bb
