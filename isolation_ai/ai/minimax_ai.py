"""Minimax AI implementation for the Isolation engine.

This agent runs iterative-deepening negamax with alpha-beta pruning over
immutable :class:`Snapshot` positions. Each top-level call builds a fresh
:class:`SearchContext` holding the transposition, killer and history
tables, so nothing carries over between requests.

The time budget is cooperative: the deadline is polled on entry to every
node and an expired node returns its static evaluation. An iteration that
runs out of time is thrown away and the last completed iteration's ranking
stands. Before the first iteration the root turns are ranked by static
evaluation, so a result exists even when no iteration completes.

Iterations run from depth 1 upward. The shallow ones are cheap and seed
the ordering for the deeper ones; ``min_depth`` is the depth below which a
non-decisive early termination is not accepted.
"""

from __future__ import annotations

import logging
from typing import Optional

from .base import BaseAI, SearchResult
from .bitboard import sliding_moves
from .bounded_transposition_table import TTFlag
from .evaluation import WIN_SCORE, terminal_score
from .factory import DifficultyProfile
from .move_generation import Side, Snapshot, Turn, move_targets
from .move_ordering import order_turns, rank_destroys
from .search_context import SearchContext

logger = logging.getLogger(__name__)

# No new iteration starts once this share of the budget is spent.
ITERATION_START_CUTOFF = 0.75

# Scores this close to WIN_SCORE are proven wins or losses.
MATE_MARGIN = 1000

INF = float("inf")


class MinimaxAI(BaseAI):
    """AI that uses negamax with alpha-beta pruning.

    Difficulty and depth:
        The profile's ``min_depth``/``max_depth`` bound the iterative
        deepening and ``time_limit_ms`` (possibly scaled by the caller)
        bounds the wall-clock time. ``destroy_candidate_count`` caps the
        destroys searched per destination.
    """

    def __init__(self, profile: DifficultyProfile, seed: Optional[int] = None) -> None:
        super().__init__(profile, seed=seed)
        self.nodes_visited: int = 0

    def search(
        self,
        snap: Snapshot,
        time_limit_ms: float,
        turn_count: Optional[int] = None,
    ) -> SearchResult:
        ctx = SearchContext(self.profile, time_limit_ms, snap.geometry.num_cells, turn_count)
        result = self.search_with_context(snap, ctx)
        self.move_count += 1
        return result

    def search_with_context(self, snap: Snapshot, ctx: SearchContext) -> SearchResult:
        root_turns = self._candidate_turns(snap, Side.AI)
        if not root_turns:
            return SearchResult(method="alphabeta", elapsed_ms=ctx.elapsed_ms())

        # Static ranking first so an answer exists whatever happens next.
        ranked = [
            (turn, ctx.static_eval(snap.with_move(Side.AI, turn.to_idx, turn.destroy_idx), 1))
            for turn in root_turns
        ]
        ranked.sort(key=lambda item: item[1], reverse=True)
        depth_reached = 0

        root_hash = ctx.zobrist.compute_hash(snap, Side.AI)
        # Sampling among the top moves needs real scores for all of them.
        full_window = self.profile.move_selection_range > 0

        for depth in range(1, self.profile.max_depth + 1):
            if ctx.elapsed_ms() > ctx.time_limit_ms * ITERATION_START_CUTOFF:
                break

            iteration = []
            alpha = -INF
            for turn, _ in ranked:
                child = snap.with_move(Side.AI, turn.to_idx, turn.destroy_idx)
                child_hash = ctx.zobrist.update_hash(
                    root_hash, Side.AI, turn.from_idx, turn.to_idx, turn.destroy_idx
                )
                window_alpha = -INF if full_window else alpha
                score = -self._negamax(
                    child, Side.PLAYER, depth - 1, 1, -INF, -window_alpha, ctx, child_hash
                )
                iteration.append((turn, score))
                alpha = max(alpha, score)
                if ctx.timed_out:
                    break

            if ctx.timed_out:
                logger.debug(f"Depth {depth} cut short after {len(iteration)}/{len(ranked)} root turns")
                break

            iteration.sort(key=lambda item: item[1], reverse=True)
            ranked = iteration
            depth_reached = depth
            best_score = ranked[0][1]
            logger.debug(
                f"Depth {depth} complete: best={best_score:.1f} nodes={ctx.nodes} "
                f"elapsed={ctx.elapsed_ms()}ms"
            )

            if best_score >= WIN_SCORE - MATE_MARGIN:
                break
            if depth >= self.profile.min_depth and best_score > self.profile.early_termination_threshold:
                break
            # Every turn loses by force: deeper search cannot help.
            if all(score <= -(WIN_SCORE - MATE_MARGIN) for _, score in ranked):
                break

        self.nodes_visited = ctx.nodes
        return SearchResult(
            ranked=ranked,
            depth=depth_reached,
            nodes=ctx.nodes,
            method="alphabeta",
            elapsed_ms=ctx.elapsed_ms(),
        )

    # ------------------------------------------------------------------
    # Tree search
    # ------------------------------------------------------------------

    def _candidate_turns(self, snap: Snapshot, side: Side) -> list[Turn]:
        origin = snap.position(side)
        limit = self.profile.destroy_candidate_count
        turns = []
        for to_idx in move_targets(snap, side):
            for destroy_idx in rank_destroys(snap, side, to_idx, limit):
                turns.append(Turn(origin, to_idx, destroy_idx))
        return turns

    def _static(self, snap: Snapshot, side: Side, ply: int, ctx: SearchContext) -> float:
        score = ctx.static_eval(snap, ply)
        return score if side is Side.AI else -score

    def _order(
        self,
        snap: Snapshot,
        side: Side,
        turns: list[Turn],
        ply: int,
        tt_turn: Optional[Turn],
        ctx: SearchContext,
    ) -> list[Turn]:
        scored = []
        g = snap.geometry
        for turn in turns:
            child = snap.with_move(side, turn.to_idx, turn.destroy_idx)
            opponent_stuck = sliding_moves(g, child.position(side.opponent), child.blocked()) == 0
            scored.append((turn, self._static(child, side, ply + 1, ctx), opponent_stuck))
        return order_turns(
            scored,
            ply,
            tt_turn=tt_turn,
            killer_table=ctx.killers,
            history=ctx.history,
        )

    def _negamax(
        self,
        snap: Snapshot,
        side: Side,
        depth: int,
        ply: int,
        alpha: float,
        beta: float,
        ctx: SearchContext,
        key: int,
    ) -> float:
        """Score of ``snap`` for ``side`` (the side to move)."""
        ctx.nodes += 1
        if ctx.time_up():
            return self._static(snap, side, ply, ctx)

        if not sliding_moves(snap.geometry, snap.position(side), snap.blocked()):
            return terminal_score(ply)
        if depth <= 0:
            return self._static(snap, side, ply, ctx)

        alpha_orig = alpha
        tt_turn = None
        if ctx.tt is not None:
            cached, tt_turn = ctx.tt.probe(key, depth, alpha, beta)
            if cached is not None:
                return cached

        turns = self._candidate_turns(snap, side)
        ordered = self._order(snap, side, turns, ply, tt_turn, ctx)

        best = -INF
        best_turn = None
        for turn in ordered:
            child = snap.with_move(side, turn.to_idx, turn.destroy_idx)
            child_key = ctx.zobrist.update_hash(key, side, turn.from_idx, turn.to_idx, turn.destroy_idx)
            score = -self._negamax(child, side.opponent, depth - 1, ply + 1, -beta, -alpha, ctx, child_key)
            if score > best:
                best = score
                best_turn = turn
            if score > alpha:
                alpha = score
            if alpha >= beta:
                if ctx.killers is not None:
                    ctx.killers.store(turn, ply)
                if ctx.history is not None:
                    ctx.history.reward(turn, depth)
                break
            if ctx.timed_out:
                break

        if ctx.tt is not None and not ctx.timed_out:
            if best <= alpha_orig:
                flag = TTFlag.UPPER
            elif best >= beta:
                flag = TTFlag.LOWER
            else:
                flag = TTFlag.EXACT
            ctx.tt.store(key, depth, best, flag, best_turn)
        return best
