"""
Base AI class for the Isolation engine
Abstract base class that all search engines inherit from
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional, Tuple
import random

from .factory import DifficultyProfile
from .move_generation import Snapshot, Turn


def derive_seed(profile: DifficultyProfile) -> int:
    """
    Derive a deterministic RNG seed when the caller supplies none.

    The service passes an explicit seed per request; this fallback only
    keeps offline runs (benchmarks, tests) reproducible. It mixes the tier
    name and depth bounds into a 32-bit value.
    """
    base = sum(ord(ch) * 131 ** i for i, ch in enumerate(profile.name))
    base = (base * 1_000_003) ^ (profile.max_depth * 97_911) ^ profile.min_depth
    return int(base & 0xFFFFFFFF)


@dataclass
class SearchResult:
    """Outcome of one engine search.

    ``ranked`` is best first; scores are from the AI's point of view and
    comparable within one result only.
    """
    ranked: List[Tuple[Turn, float]] = field(default_factory=list)
    depth: int = 0
    nodes: int = 0
    method: str = "none"
    elapsed_ms: int = 0
    confidence: Optional[float] = None

    @property
    def best(self) -> Optional[Turn]:
        return self.ranked[0][0] if self.ranked else None

    @property
    def best_score(self) -> Optional[float]:
        return self.ranked[0][1] if self.ranked else None


class BaseAI(ABC):
    """Abstract base class for all search engines"""

    def __init__(self, profile: DifficultyProfile, seed: Optional[int] = None):
        """
        Initialize the engine

        Args:
            profile: Tier settings
            seed: RNG seed for every stochastic choice the engine makes
        """
        self.profile = profile
        self.move_count = 0

        # Per-instance RNG used for all stochastic behaviour (rollout
        # policies, tie breaks). An explicit seed from the request wins.
        if seed is not None:
            self.rng_seed: int = int(seed)
        else:
            self.rng_seed = derive_seed(profile)
        self.rng: random.Random = random.Random(self.rng_seed)

    @abstractmethod
    def search(
        self,
        snap: Snapshot,
        time_limit_ms: float,
        turn_count: Optional[int] = None,
    ) -> SearchResult:
        """
        Rank the AI's turns in a position

        Args:
            snap: Position with the AI to move
            time_limit_ms: Wall-clock budget
            turn_count: Turns played so far, for the opening bonus

        Returns:
            SearchResult; ``ranked`` is empty only when the AI cannot move
        """

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(difficulty={self.profile.name})"
