"""MCTS hybrid search for the top Isolation tier.

The hybrid runs three stages in order:

1. If the board is partitioned and the AI's region is small enough, the
   exact endgame solver answers directly.
2. Otherwise UCT with RAVE searches until its share of the budget is spent
   and the most-visited root child is chosen.
3. If MCTS produced nothing, alpha-beta gets the remaining time.

Rewards are in ``[0, 1]`` from the AI's point of view. Each node stores its
statistics from the perspective of the side that moved *into* it, so a
parent always maximises over its children's own means.
"""

from __future__ import annotations

import logging
import math
import time
from typing import List, Optional, Tuple

from .base import BaseAI, SearchResult
from .endgame_solver import should_solve_exactly, solve_endgame
from .factory import DifficultyProfile, with_time_limit
from .minimax_ai import MinimaxAI
from .move_generation import Side, Snapshot, Turn, destroy_targets, move_targets
from .move_ordering import rank_destroys
from .partition import detect_partition
from .territory import normalized_share, voronoi

logger = logging.getLogger(__name__)

UCB_CONSTANT = 1.414
RAVE_K = 300
MAX_ROLLOUT_PLIES = 30
EXPANSION_DESTROYS = 3

# Budget shares for each hybrid stage.
ENDGAME_TIME_SHARE = 0.4
MCTS_TIME_SHARE = 0.7

# (side, turn) pairs played below a node during one iteration.
PlayedTurns = List[Tuple[Side, Turn]]


def expansion_turns(snap: Snapshot, side: Side) -> List[Turn]:
    """All (slide, destroy) pairs with the heuristic top destroys per slide."""
    origin = snap.position(side)
    return [
        Turn(origin, to_idx, destroy_idx)
        for to_idx in move_targets(snap, side)
        for destroy_idx in rank_destroys(snap, side, to_idx, EXPANSION_DESTROYS)
    ]


class MCTSNode:
    """MCTS tree node.

    ``wins`` and ``amaf_wins`` are from the perspective of the side that
    played ``turn``, i.e. the opponent of ``side_to_move``.
    """

    __slots__ = [
        'snap', 'parent', 'turn', 'side_to_move', 'children', 'wins',
        'visits', 'amaf_wins', 'amaf_visits', 'untried_turns', 'is_terminal',
    ]

    def __init__(
        self,
        snap: Snapshot,
        side_to_move: Side,
        parent: Optional["MCTSNode"] = None,
        turn: Optional[Turn] = None,
    ) -> None:
        self.snap = snap
        self.side_to_move = side_to_move
        self.parent = parent
        self.turn = turn
        self.children: List["MCTSNode"] = []
        self.wins = 0.0
        self.visits = 0
        self.amaf_wins = 0.0
        self.amaf_visits = 0
        self.untried_turns: List[Turn] = expansion_turns(snap, side_to_move)
        self.is_terminal = not self.untried_turns

    def is_fully_expanded(self) -> bool:
        return len(self.untried_turns) == 0

    def uct_select_child(self) -> "MCTSNode":
        """Select child using UCB1 blended with RAVE."""
        log_n = math.log(max(1, self.visits))

        def ucb_value(child: "MCTSNode") -> float:
            if child.visits == 0:
                return math.inf
            mean = child.wins / child.visits
            amaf = child.amaf_wins / child.amaf_visits if child.amaf_visits else 0.0
            beta = child.amaf_visits / (
                child.visits
                + child.amaf_visits
                + 4 * RAVE_K * child.visits * child.amaf_visits
            )
            exploration = UCB_CONSTANT * math.sqrt(log_n / child.visits)
            return (1 - beta) * mean + beta * amaf + exploration

        return max(self.children, key=ucb_value)

    def add_child(self, turn: Turn) -> "MCTSNode":
        """Expand ``turn`` into a new child node."""
        mover = self.side_to_move
        child = MCTSNode(
            self.snap.with_move(mover, turn.to_idx, turn.destroy_idx),
            mover.opponent,
            parent=self,
            turn=turn,
        )
        self.untried_turns.remove(turn)
        self.children.append(child)
        return child

    def update(self, ai_reward: float, played: PlayedTurns) -> None:
        """Record one visit and refresh the AMAF statistics of the children.

        ``played`` holds every turn made after this node in the iteration.
        A child's AMAF counters move when the side to move here slid to the
        same cell somewhere later in the iteration.
        """
        mover = self.side_to_move
        # The side that moved into this node is the opponent of the mover.
        self.visits += 1
        self.wins += ai_reward if mover is Side.PLAYER else 1.0 - ai_reward

        if not self.children:
            return
        mover_reward = ai_reward if mover is Side.AI else 1.0 - ai_reward
        destinations = {turn.to_idx for side, turn in played if side is mover}
        for child in self.children:
            if child.turn.to_idx in destinations:
                child.amaf_visits += 1
                child.amaf_wins += mover_reward


class MCTSAI(BaseAI):
    """Hybrid MCTS engine: endgame solver, UCT with RAVE, alpha-beta fallback."""

    def __init__(self, profile: DifficultyProfile, seed: Optional[int] = None) -> None:
        super().__init__(profile, seed=seed)
        self.iterations = 0

    def search(
        self,
        snap: Snapshot,
        time_limit_ms: float,
        turn_count: Optional[int] = None,
    ) -> SearchResult:
        start = time.monotonic()
        self.move_count += 1

        if self.profile.use_partition_detection and self.profile.use_endgame_solver:
            partition = detect_partition(snap)
            if partition.is_partitioned and should_solve_exactly(partition.ai_region):
                solved = solve_endgame(
                    snap, Side.AI, partition.ai_region, time_limit_ms * ENDGAME_TIME_SHARE
                )
                if solved.turn is not None and solved.exact:
                    logger.debug(f"Endgame solved: longest path {solved.longest_path}")
                    return SearchResult(
                        ranked=[(solved.turn, float(solved.longest_path))],
                        method="endgameSolved",
                        elapsed_ms=_elapsed_ms(start),
                        confidence=1.0,
                    )

        result = self.run_mcts(snap, time_limit_ms * MCTS_TIME_SHARE)
        if result.ranked:
            result.elapsed_ms = _elapsed_ms(start)
            return result

        remaining = max(1.0, time_limit_ms - (time.monotonic() - start) * 1000)
        logger.info(f"MCTS produced no move, falling back to alpha-beta ({remaining:.0f}ms)")
        fallback = MinimaxAI(with_time_limit(self.profile, int(remaining)), seed=self.rng_seed)
        result = fallback.search(snap, remaining, turn_count)
        result.elapsed_ms = _elapsed_ms(start)
        return result

    def run_mcts(self, snap: Snapshot, time_limit_ms: float) -> SearchResult:
        """Plain UCT/RAVE search; ranks root turns by visit count."""
        start = time.monotonic()
        deadline = start + time_limit_ms / 1000.0
        root = MCTSNode(snap, Side.AI)
        if root.is_terminal:
            return SearchResult(method="mcts", elapsed_ms=_elapsed_ms(start))

        iterations = 0
        while True:
            node = root
            depth = 0
            played: PlayedTurns = []

            # Selection
            while node.is_fully_expanded() and node.children:
                node = node.uct_select_child()
                played.append((node.parent.side_to_move, node.turn))
                depth += 1

            # Expansion
            if node.untried_turns:
                turn = node.untried_turns[self.rng.randrange(len(node.untried_turns))]
                played.append((node.side_to_move, turn))
                node = node.add_child(turn)
                depth += 1

            # Simulation
            if node.is_terminal:
                reward = 0.0 if node.side_to_move is Side.AI else 1.0
            else:
                reward = self._rollout(node.snap, node.side_to_move, played)

            # Backpropagation
            while node is not None:
                node.update(reward, played[depth:])
                node = node.parent
                depth -= 1

            iterations += 1
            if time.monotonic() >= deadline:
                break

        self.iterations = iterations
        total_visits = sum(child.visits for child in root.children)
        children = sorted(root.children, key=lambda c: c.visits, reverse=True)
        ranked = [(child.turn, child.wins / child.visits) for child in children if child.visits]
        confidence = children[0].visits / total_visits if total_visits else 0.0
        logger.debug(
            f"MCTS: {iterations} iterations, best visits {children[0].visits}/{total_visits}"
        )
        return SearchResult(
            ranked=ranked,
            nodes=iterations,
            method="mcts",
            elapsed_ms=_elapsed_ms(start),
            confidence=confidence,
        )

    def _rollout(self, snap: Snapshot, side: Side, played: PlayedTurns) -> float:
        """Heuristic playout; returns the AI's reward."""
        g = snap.geometry
        for _ in range(MAX_ROLLOUT_PLIES):
            targets = move_targets(snap, side)
            if not targets:
                return 0.0 if side is Side.AI else 1.0

            to_idx = max(
                targets,
                key=lambda cell: -g.center_distance[cell]
                - (3 if g.is_edge(cell) else 0)
                + self.rng.random() * 2,
            )
            opponent = snap.position(side.opponent)
            destroy_idx = max(
                destroy_targets(snap, side, to_idx),
                key=lambda cell: -g.manhattan(cell, opponent) + self.rng.random(),
            )
            played.append((side, Turn(snap.position(side), to_idx, destroy_idx)))
            snap = snap.with_move(side, to_idx, destroy_idx)
            side = side.opponent

        return normalized_share(voronoi(g, snap.player, snap.ai, snap.destroyed))


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)
