"""
Shared pytest fixtures for isolation_ai tests.

Board factories build positions from plain ``(r, c)`` tuples so individual
tests stay short. Game state fixtures are function-scoped to keep tests
isolated.
"""

from pathlib import Path
import sys
from typing import Iterable, Optional, Tuple

import pytest


# =============================================================================
# PROMETHEUS REGISTRY FIX
# =============================================================================
# Fix for "Duplicated timeseries in CollectorRegistry" errors during test
# collection when isolation_ai.metrics is imported through different paths.


def _patch_prometheus_registry():
    """Make re-registration of identical metrics a no-op instead of an error."""
    try:
        from prometheus_client.registry import CollectorRegistry

        _original_register = CollectorRegistry.register

        def _safe_register(self, collector):
            """Register collector, ignoring duplicates."""
            try:
                return _original_register(self, collector)
            except ValueError as e:
                if "Duplicated timeseries" in str(e):
                    # Already registered, ignore
                    pass
                else:
                    raise

        # Only patch once
        if not getattr(CollectorRegistry, '_patched_for_tests', False):
            CollectorRegistry.register = _safe_register
            CollectorRegistry._patched_for_tests = True

    except ImportError:
        # prometheus_client not installed, no patching needed
        pass


# Apply patch immediately at conftest load time (before test collection)
_patch_prometheus_registry()

# Ensure the repository root is on sys.path so `import isolation_ai` works
# without an editable install.
REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from isolation_ai import config  # noqa: E402
from isolation_ai.ai.move_generation import Snapshot  # noqa: E402
from isolation_ai.models import BoardSize, BoardState, Position  # noqa: E402

Cell = Tuple[int, int]


# =============================================================================
# BOARD FACTORIES
# =============================================================================


def make_board(
    player: Cell = (0, 0),
    ai: Cell = (6, 6),
    destroyed: Iterable[Cell] = (),
    rows: int = 7,
    cols: int = 7,
) -> BoardState:
    """Board with the given pieces and destroyed cells."""
    return BoardState(
        boardSize=BoardSize(rows=rows, cols=cols),
        playerPos=Position(r=player[0], c=player[1]),
        aiPos=Position(r=ai[0], c=ai[1]),
        destroyed=[Position(r=r, c=c) for r, c in destroyed],
    )


def make_open_board(
    player: Cell,
    ai: Cell,
    open_cells: Iterable[Cell],
    rows: int = 7,
    cols: int = 7,
) -> BoardState:
    """Board where every cell except the pieces and ``open_cells`` is destroyed."""
    keep = set(open_cells) | {player, ai}
    destroyed = [
        (r, c) for r in range(rows) for c in range(cols) if (r, c) not in keep
    ]
    return make_board(player, ai, destroyed, rows, cols)


def make_snap(
    player: Cell = (0, 0),
    ai: Cell = (6, 6),
    destroyed: Iterable[Cell] = (),
    rows: int = 7,
    cols: int = 7,
) -> Snapshot:
    return Snapshot.from_board(make_board(player, ai, destroyed, rows, cols))


def idx(r: int, c: int, cols: int = 7) -> int:
    return r * cols + c


def column_wall(col: int = 3, rows: int = 7, gap: Optional[int] = None) -> list:
    """Destroyed cells forming a full column, optionally leaving one row open."""
    return [(r, col) for r in range(rows) if r != gap]


@pytest.fixture
def fast_time(monkeypatch):
    """Shrink every tier's budget so full move computations stay quick."""
    monkeypatch.setattr(config, "TIME_SCALE", 0.02)
    return 0.02


@pytest.fixture
def initial_board() -> BoardState:
    """Standard opening: AI top-right, opponent bottom-left, nothing destroyed."""
    return make_board(player=(6, 0), ai=(0, 6))


@pytest.fixture
def corridor_board() -> BoardState:
    """AI in a three-cell corridor, opponent walled into its own cell."""
    return make_open_board(player=(6, 6), ai=(0, 0), open_cells=[(0, 1), (0, 2)])
