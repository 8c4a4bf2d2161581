"""AI factory and difficulty profiles for the Isolation AI.

This module is the single source of truth for how the ``NEXUS-*`` tiers map
onto concrete search settings, and the one place search engines are
created. All engine creation should go through :class:`AIFactory` so that
profiles, seeds and time scaling are applied consistently.

Usage:
    from isolation_ai.ai.factory import AIFactory, get_difficulty_profile

    profile = get_difficulty_profile("NEXUS-7")
    ai = AIFactory.create(profile, seed=1234)
    result = ai.search(snapshot, turn_count=8)
"""

from __future__ import annotations

import logging
import math
import random
from collections.abc import Callable, Sequence
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Optional, Union

from .. import config
from ..errors import ConfigurationError
from ..models import Difficulty

if TYPE_CHECKING:
    from .base import BaseAI

logger = logging.getLogger(__name__)

# -----------------------------------------------------------------------------
# Type definitions
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class EvalWeights:
    """Evaluation weights for one tier.

    The first eight weight the advanced evaluator's components; the last
    three drive the basic evaluator.
    """
    territory: float
    mobility: float
    mobility_potential: float
    center_control: float
    corner_avoidance: float
    partition_advantage: float
    critical_cells: float
    openness: float
    voronoi_territory: float
    immediate_mobility: float
    isolation_penalty: float


@dataclass(frozen=True)
class DifficultyProfile:
    """Canonical search settings for a single tier.

    Tiers are ordered: every technique enabled for a tier is also enabled
    for every stronger tier.
    """
    name: str
    max_depth: int
    time_limit_ms: int
    min_depth: int
    use_voronoi: bool
    use_partition_detection: bool
    use_endgame_solver: bool
    use_transposition_table: bool
    use_opening_book: bool
    use_mcts: bool
    # 0.0 = always the best move, 0.4 = sample from the top 40 %
    move_selection_range: float
    mistake_rate: float
    blunder_threshold: float
    use_killer_moves: bool
    use_history_heuristic: bool
    destroy_candidate_count: int
    early_termination_threshold: float
    weights: EvalWeights


CANONICAL_DIFFICULTY_PROFILES: dict[str, DifficultyProfile] = {
    # Beatable with a plan: basic evaluation, plays loosely.
    Difficulty.NEXUS_3.value: DifficultyProfile(
        name=Difficulty.NEXUS_3.value,
        max_depth=5,
        time_limit_ms=3000,
        min_depth=3,
        use_voronoi=False,
        use_partition_detection=False,
        use_endgame_solver=False,
        use_transposition_table=False,
        use_opening_book=False,
        use_mcts=False,
        move_selection_range=0.4,
        mistake_rate=0.12,
        blunder_threshold=5.0,
        use_killer_moves=True,
        use_history_heuristic=False,
        destroy_candidate_count=4,
        early_termination_threshold=5000,
        weights=EvalWeights(
            territory=0.0,
            mobility=2.0,
            mobility_potential=0.0,
            center_control=0.8,
            corner_avoidance=0.5,
            partition_advantage=0.0,
            critical_cells=0.0,
            openness=0.3,
            voronoi_territory=1.5,
            immediate_mobility=2.0,
            isolation_penalty=4.0,
        ),
    ),
    # Expert: full evaluation and deep alpha-beta, always plays its best.
    Difficulty.NEXUS_5.value: DifficultyProfile(
        name=Difficulty.NEXUS_5.value,
        max_depth=7,
        time_limit_ms=12000,
        min_depth=4,
        use_voronoi=True,
        use_partition_detection=True,
        use_endgame_solver=True,
        use_transposition_table=True,
        use_opening_book=True,
        use_mcts=False,
        move_selection_range=0.0,
        mistake_rate=0.0,
        blunder_threshold=math.inf,
        use_killer_moves=True,
        use_history_heuristic=True,
        destroy_candidate_count=3,
        early_termination_threshold=5000,
        weights=EvalWeights(
            territory=4.0,
            mobility=6.0,
            mobility_potential=4.0,
            center_control=1.5,
            corner_avoidance=1.0,
            partition_advantage=400.0,
            critical_cells=3.0,
            openness=0.5,
            voronoi_territory=4.0,
            immediate_mobility=6.0,
            isolation_penalty=10.0,
        ),
    ),
    # Near-unbeatable: MCTS hybrid on top of everything NEXUS-5 does.
    Difficulty.NEXUS_7.value: DifficultyProfile(
        name=Difficulty.NEXUS_7.value,
        max_depth=10,
        time_limit_ms=10000,
        min_depth=5,
        use_voronoi=True,
        use_partition_detection=True,
        use_endgame_solver=True,
        use_transposition_table=True,
        use_opening_book=True,
        use_mcts=True,
        move_selection_range=0.0,
        mistake_rate=0.0,
        blunder_threshold=math.inf,
        use_killer_moves=True,
        use_history_heuristic=True,
        destroy_candidate_count=3,
        early_termination_threshold=8000,
        weights=EvalWeights(
            territory=4.0,
            mobility=10.0,
            mobility_potential=6.0,
            center_control=1.5,
            corner_avoidance=4.0,
            partition_advantage=600.0,
            critical_cells=5.0,
            openness=1.5,
            voronoi_territory=5.0,
            immediate_mobility=10.0,
            isolation_penalty=15.0,
        ),
    ),
}

# Crisis mode: the top tier thinks twice as long when nearly trapped.
CRISIS_MOBILITY_THRESHOLD = 4
CRISIS_TIME_MULTIPLIER = 2

# Game types the factory can build engines for.
SUPPORTED_GAME_TYPES = frozenset({"isolation"})


# -----------------------------------------------------------------------------
# Helper functions
# -----------------------------------------------------------------------------


def get_difficulty_profile(difficulty: Union[str, Difficulty]) -> DifficultyProfile:
    """Return the profile for a tier identifier.

    Unknown identifiers fall back to ``NEXUS-5`` with a warning, matching
    what game clients have always received for unrecognised tiers.
    """
    key = difficulty.value if isinstance(difficulty, Difficulty) else str(difficulty)
    profile = CANONICAL_DIFFICULTY_PROFILES.get(key)
    if profile is None:
        logger.warning(f"Unknown difficulty {key!r}, falling back to NEXUS-5")
        return CANONICAL_DIFFICULTY_PROFILES[Difficulty.NEXUS_5.value]
    return profile


def effective_time_limit_ms(profile: DifficultyProfile, ai_mobility: int) -> int:
    """Time budget for one move, after crisis mode and global scaling."""
    limit = profile.time_limit_ms
    if profile.use_mcts and ai_mobility <= CRISIS_MOBILITY_THRESHOLD:
        limit *= CRISIS_TIME_MULTIPLIER
        logger.debug(f"Crisis mode: AI mobility {ai_mobility}, budget {limit}ms")
    return max(1, int(limit * config.TIME_SCALE))


def with_time_limit(profile: DifficultyProfile, time_limit_ms: int) -> DifficultyProfile:
    return replace(profile, time_limit_ms=time_limit_ms)


def select_move_index(
    scores: Sequence[float],
    profile: DifficultyProfile,
    rng: random.Random,
) -> int:
    """Pick an index into a best-first ranked list of move scores.

    A zero selection range always returns the best move. Otherwise, with
    probability ``mistake_rate`` the first move in the 30-70 % band whose
    deficit from the best is within ``blunder_threshold`` is chosen; if
    that does not apply, a move is drawn uniformly from the top
    ``max(1, floor(n * range))``, keeping only moves within
    ``blunder_threshold`` of the best.
    """
    n = len(scores)
    if n == 0 or profile.move_selection_range == 0:
        return 0

    best = scores[0]
    if rng.random() < profile.mistake_rate:
        lower_start = math.floor(n * 0.3)
        lower_end = math.floor(n * 0.7)
        for i in range(lower_start, lower_end):
            if best - scores[i] <= profile.blunder_threshold:
                return i

    top_count = max(1, math.floor(n * profile.move_selection_range))
    safe_count = 1
    while safe_count < top_count and best - scores[safe_count] <= profile.blunder_threshold:
        safe_count += 1
    return rng.randrange(safe_count)


# -----------------------------------------------------------------------------
# AI Factory
# -----------------------------------------------------------------------------


class AIFactory:
    """Centralized factory for creating search engines.

    Engines are resolved from the profile (MCTS hybrid or alpha-beta) and
    custom constructors may be registered for tests and experiments.
    """

    _custom_registry: dict[str, Callable[..., BaseAI]] = {}

    @classmethod
    def register(cls, identifier: str, constructor: Callable[..., BaseAI]) -> None:
        """Register a custom engine constructor.

        Args:
            identifier: Unique string identifier for the engine
            constructor: Callable accepting ``(profile, seed=...)``
        """
        if identifier in cls._custom_registry:
            logger.warning(f"Overwriting existing custom AI: {identifier}")
        cls._custom_registry[identifier] = constructor
        logger.debug(f"Registered custom AI: {identifier}")

    @classmethod
    def unregister(cls, identifier: str) -> bool:
        if identifier in cls._custom_registry:
            del cls._custom_registry[identifier]
            logger.debug(f"Unregistered custom AI: {identifier}")
            return True
        return False

    @classmethod
    def create(
        cls,
        profile: DifficultyProfile,
        seed: Optional[int] = None,
        game_type: str = "isolation",
        engine: Optional[str] = None,
    ) -> BaseAI:
        """Create a search engine for a profile.

        Args:
            profile: Tier settings
            seed: RNG seed; derived from the profile when omitted
            game_type: Game tag; only ``"isolation"`` is supported
            engine: Registered custom engine identifier, overriding the
                profile's choice

        Raises:
            ConfigurationError: for an unknown game type or engine
        """
        if game_type not in SUPPORTED_GAME_TYPES:
            raise ConfigurationError(
                f"Unsupported game type: {game_type}",
                context={"supported": sorted(SUPPORTED_GAME_TYPES)},
            )
        if engine is not None:
            constructor = cls._custom_registry.get(engine)
            if constructor is None:
                raise ConfigurationError(
                    f"Unknown AI engine: {engine}",
                    context={"registered": sorted(cls._custom_registry)},
                )
            return constructor(profile, seed=seed)

        # Lazy imports to avoid circular dependencies
        if profile.use_mcts:
            from .mcts_ai import MCTSAI
            return MCTSAI(profile, seed=seed)
        from .minimax_ai import MinimaxAI
        return MinimaxAI(profile, seed=seed)

    @classmethod
    def create_from_difficulty(
        cls,
        difficulty: Union[str, Difficulty],
        seed: Optional[int] = None,
    ) -> BaseAI:
        return cls.create(get_difficulty_profile(difficulty), seed=seed)


def get_all_difficulties() -> dict[str, DifficultyProfile]:
    return CANONICAL_DIFFICULTY_PROFILES.copy()
