"""Tests for difficulty profiles, the engine factory and both search engines."""

import dataclasses
import random

import pytest

from isolation_ai import config
from isolation_ai.ai.base import SearchResult, derive_seed
from isolation_ai.ai.evaluation import WIN_SCORE, terminal_score
from isolation_ai.ai.factory import (
    CANONICAL_DIFFICULTY_PROFILES,
    AIFactory,
    effective_time_limit_ms,
    get_all_difficulties,
    get_difficulty_profile,
    select_move_index,
)
from isolation_ai.ai.mcts_ai import MCTSAI, MCTSNode
from isolation_ai.ai.minimax_ai import MinimaxAI
from isolation_ai.ai.move_generation import (
    Side,
    Snapshot,
    Turn,
    is_legal_turn_snapshot,
    mobility,
)
from isolation_ai.ai.search_context import SearchContext
from isolation_ai.errors import ConfigurationError
from isolation_ai.models import Difficulty

from conftest import idx, make_snap

TIER_ORDER = ["NEXUS-3", "NEXUS-5", "NEXUS-7"]
FEATURE_FLAGS = [
    "use_voronoi",
    "use_partition_detection",
    "use_endgame_solver",
    "use_transposition_table",
    "use_opening_book",
    "use_mcts",
    "use_killer_moves",
    "use_history_heuristic",
]


def _trapped_ai_snap() -> Snapshot:
    return make_snap(player=(6, 6), ai=(0, 0), destroyed=[(0, 1), (1, 0), (1, 1)])


def _win_in_one_snap() -> Snapshot:
    # The player's only slide is to (1, 1).
    return make_snap(player=(0, 0), ai=(3, 3), destroyed=[(0, 1), (1, 0)])


class TestDifficultyProfiles:
    """Tier table and lookups."""

    def test_all_tiers_present(self) -> None:
        assert set(get_all_difficulties()) == set(TIER_ORDER)

    def test_unknown_tier_falls_back(self) -> None:
        assert get_difficulty_profile("NEXUS-9").name == "NEXUS-5"
        assert get_difficulty_profile(Difficulty.NEXUS_7).name == "NEXUS-7"

    @pytest.mark.parametrize("flag", FEATURE_FLAGS)
    def test_features_grow_with_strength(self, flag: str) -> None:
        enabled = [getattr(CANONICAL_DIFFICULTY_PROFILES[t], flag) for t in TIER_ORDER]
        for weaker, stronger in zip(enabled, enabled[1:]):
            assert not weaker or stronger

    def test_only_top_tier_uses_mcts(self) -> None:
        assert [CANONICAL_DIFFICULTY_PROFILES[t].use_mcts for t in TIER_ORDER] == [False, False, True]

    def test_crisis_mode_doubles_top_tier_budget(self, monkeypatch) -> None:
        monkeypatch.setattr(config, "TIME_SCALE", 1.0)
        top = get_difficulty_profile("NEXUS-7")
        expert = get_difficulty_profile("NEXUS-5")
        assert effective_time_limit_ms(top, 3) == 20000
        assert effective_time_limit_ms(top, 5) == 10000
        assert effective_time_limit_ms(expert, 3) == 12000

    def test_time_scale_applies(self, fast_time) -> None:
        assert effective_time_limit_ms(get_difficulty_profile("NEXUS-5"), 10) == 240


class TestMoveSelection:
    SCORES = [10.0, 9.0, 8.0, 7.5, 7.0, 1.0, 0.0, -5.0, -6.0, -7.0]

    def test_zero_range_always_best(self) -> None:
        profile = get_difficulty_profile("NEXUS-5")
        rng = random.Random(1)
        assert all(select_move_index(self.SCORES, profile, rng) == 0 for _ in range(20))

    def test_mistake_picks_first_band_move_within_threshold(self) -> None:
        profile = dataclasses.replace(get_difficulty_profile("NEXUS-3"), mistake_rate=1.0)
        assert select_move_index(self.SCORES, profile, random.Random(0)) == 3

    def test_blunder_threshold_limits_mistakes(self) -> None:
        profile = dataclasses.replace(
            get_difficulty_profile("NEXUS-3"), mistake_rate=1.0, blunder_threshold=0.1
        )
        rng = random.Random(5)
        picks = {select_move_index(self.SCORES, profile, rng) for _ in range(50)}
        assert picks <= {0, 1, 2, 3}

    def test_samples_from_top_range(self) -> None:
        profile = dataclasses.replace(get_difficulty_profile("NEXUS-3"), mistake_rate=0.0)
        rng = random.Random(3)
        picks = {select_move_index(self.SCORES, profile, rng) for _ in range(100)}
        assert picks == {0, 1, 2, 3}

    def test_forced_win_never_thrown(self) -> None:
        scores = [9999.0] + [-9999.0] * 9
        profile = get_difficulty_profile("NEXUS-3")
        rng = random.Random(0)
        assert all(select_move_index(scores, profile, rng) == 0 for _ in range(200))

    def test_top_range_stops_at_blunder_threshold(self) -> None:
        scores = [10.0, 8.0, -20.0, -30.0, -40.0, -50.0, -60.0, -70.0, -80.0, -90.0]
        profile = dataclasses.replace(get_difficulty_profile("NEXUS-3"), mistake_rate=0.0)
        rng = random.Random(7)
        picks = {select_move_index(scores, profile, rng) for _ in range(100)}
        assert picks == {0, 1}

    def test_empty_scores(self) -> None:
        assert select_move_index([], get_difficulty_profile("NEXUS-3"), random.Random(0)) == 0


class TestAIFactory:
    def test_engine_follows_profile(self) -> None:
        assert isinstance(AIFactory.create(get_difficulty_profile("NEXUS-7")), MCTSAI)
        assert isinstance(AIFactory.create(get_difficulty_profile("NEXUS-5")), MinimaxAI)
        assert isinstance(AIFactory.create_from_difficulty("NEXUS-3"), MinimaxAI)

    def test_unknown_game_type(self) -> None:
        with pytest.raises(ConfigurationError) as excinfo:
            AIFactory.create(get_difficulty_profile("NEXUS-5"), game_type="chess")
        assert excinfo.value.code == "CONFIGURATION_ERROR"

    def test_unknown_engine(self) -> None:
        with pytest.raises(ConfigurationError):
            AIFactory.create(get_difficulty_profile("NEXUS-5"), engine="missing")

    def test_register_custom_engine(self) -> None:
        AIFactory.register("plain", lambda profile, seed=None: MinimaxAI(profile, seed=seed))
        try:
            ai = AIFactory.create(get_difficulty_profile("NEXUS-7"), seed=11, engine="plain")
            assert isinstance(ai, MinimaxAI)
            assert ai.rng_seed == 11
        finally:
            assert AIFactory.unregister("plain")
        assert not AIFactory.unregister("plain")

    def test_seed_derivation_is_stable(self) -> None:
        profile = get_difficulty_profile("NEXUS-5")
        assert derive_seed(profile) == derive_seed(profile)
        assert derive_seed(profile) != derive_seed(get_difficulty_profile("NEXUS-3"))
        assert MinimaxAI(profile).rng_seed == derive_seed(profile)


class TestSearchContext:
    def test_tables_follow_profile(self) -> None:
        ctx = SearchContext(get_difficulty_profile("NEXUS-3"), 1000, 49)
        assert ctx.tt is None
        assert ctx.history is None
        assert ctx.killers is not None

        ctx = SearchContext(get_difficulty_profile("NEXUS-5"), 1000, 49)
        assert ctx.tt is not None
        assert ctx.history is not None

    def test_deadline_is_sticky(self) -> None:
        ctx = SearchContext(get_difficulty_profile("NEXUS-3"), 0, 49)
        assert ctx.time_up()
        assert ctx.timed_out
        assert ctx.remaining_ms() == 0.0

    def test_static_eval_scores_won_leaves_by_ply(self) -> None:
        ctx = SearchContext(get_difficulty_profile("NEXUS-5"), 1000, 49)
        won = make_snap(player=(0, 0), ai=(6, 6), destroyed=[(0, 1), (1, 0), (1, 1)])
        assert ctx.static_eval(won, 5) == WIN_SCORE - 5
        assert ctx.static_eval(won, 1) == WIN_SCORE - 1
        assert ctx.static_eval(won, 5) < -terminal_score(3)


class TestMinimax:
    """Iterative-deepening alpha-beta."""

    @pytest.mark.parametrize("tier", ["NEXUS-3", "NEXUS-5"])
    def test_finds_win_in_one(self, tier: str) -> None:
        snap = _win_in_one_snap()
        ai = MinimaxAI(get_difficulty_profile(tier), seed=1)
        result = ai.search(snap, 3000)
        assert ai.nodes_visited == result.nodes
        best = result.best
        after = snap.with_move(Side.AI, best.to_idx, best.destroy_idx)
        assert mobility(after, Side.PLAYER) == 0
        assert result.best_score >= WIN_SCORE - 1000
        assert result.method == "alphabeta"

    def test_ranked_turns_are_legal(self) -> None:
        snap = make_snap(player=(6, 0), ai=(0, 6), destroyed=[(3, 3), (2, 4)])
        result = MinimaxAI(get_difficulty_profile("NEXUS-3"), seed=2).search(snap, 300)
        assert result.ranked
        assert all(is_legal_turn_snapshot(snap, Side.AI, turn) for turn, _ in result.ranked)
        scores = [score for _, score in result.ranked]
        assert scores == sorted(scores, reverse=True)

    def test_destroy_candidates_are_capped(self) -> None:
        snap = make_snap(player=(6, 0), ai=(0, 6))
        profile = get_difficulty_profile("NEXUS-5")
        result = MinimaxAI(profile, seed=2).search(snap, 200)
        per_destination = {}
        for turn, _ in result.ranked:
            per_destination[turn.to_idx] = per_destination.get(turn.to_idx, 0) + 1
        assert max(per_destination.values()) <= profile.destroy_candidate_count

    def test_stuck_ai_gets_empty_result(self) -> None:
        result = MinimaxAI(get_difficulty_profile("NEXUS-5")).search(_trapped_ai_snap(), 100)
        assert result.ranked == []
        assert result.best is None


class TestMCTSNode:
    def test_statistics_from_movers_perspective(self) -> None:
        root = MCTSNode(make_snap(player=(6, 0), ai=(0, 6)), Side.AI)
        turn = root.untried_turns[0]
        child = root.add_child(turn)
        assert child.side_to_move is Side.PLAYER
        assert turn not in root.untried_turns

        child.update(1.0, [])
        root.update(1.0, [])
        assert child.wins == 1.0
        assert root.wins == 0.0
        assert root.visits == child.visits == 1

    def test_amaf_counts_only_movers_destinations(self) -> None:
        root = MCTSNode(make_snap(player=(6, 0), ai=(0, 6)), Side.AI)
        child = root.add_child(root.untried_turns[0])
        later = Turn(idx(3, 3), child.turn.to_idx, idx(5, 5))

        root.update(0.75, [(Side.PLAYER, later)])
        assert child.amaf_visits == 0

        root.update(0.75, [(Side.AI, later)])
        assert child.amaf_visits == 1
        assert child.amaf_wins == 0.75

    def test_unvisited_child_selected_first(self) -> None:
        root = MCTSNode(make_snap(player=(6, 0), ai=(0, 6)), Side.AI)
        visited = root.add_child(root.untried_turns[0])
        fresh = root.add_child(root.untried_turns[0])
        visited.update(1.0, [])
        root.update(1.0, [])
        assert root.uct_select_child() is fresh

    def test_terminal_node(self) -> None:
        assert MCTSNode(_trapped_ai_snap(), Side.AI).is_terminal


class TestMCTSHybrid:
    def test_run_mcts_ranks_legal_turns(self) -> None:
        snap = make_snap(player=(6, 0), ai=(0, 6))
        ai = MCTSAI(get_difficulty_profile("NEXUS-7"), seed=4)
        result = ai.run_mcts(snap, 300)
        assert result.method == "mcts"
        assert result.ranked
        assert ai.iterations >= 1
        assert 0.0 < result.confidence <= 1.0
        assert all(is_legal_turn_snapshot(snap, Side.AI, turn) for turn, _ in result.ranked)

    def test_solves_small_partitioned_endgame(self, corridor_board) -> None:
        snap = Snapshot.from_board(corridor_board)
        result = MCTSAI(get_difficulty_profile("NEXUS-7"), seed=4).search(snap, 1000)
        assert result.method == "endgameSolved"
        assert result.confidence == 1.0
        assert result.best_score == 2.0
        assert is_legal_turn_snapshot(snap, Side.AI, result.best)

    def test_stuck_ai_falls_through_to_empty_result(self) -> None:
        result = MCTSAI(get_difficulty_profile("NEXUS-7"), seed=4).search(_trapped_ai_snap(), 100)
        assert isinstance(result, SearchResult)
        assert result.ranked == []
