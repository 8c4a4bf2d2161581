"""Environment-driven settings for the Isolation AI service.

Values are read once at import time. Difficulty profiles are code constants
and live in :mod:`isolation_ai.ai.factory`; the knobs here only tune how the
service runs them.
"""

from __future__ import annotations

import os

_TRUTHY = {"1", "true", "yes", "on"}


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


LOG_LEVEL: str = os.getenv("ISOLATION_AI_LOG_LEVEL", "INFO").upper()

# Upper bound on transposition entries kept by one search.
TT_MAX_ENTRIES: int = _env_int("ISOLATION_AI_TT_MAX_ENTRIES", 100_000)

# Multiplies every tier's time budget. Benchmarks and tests shrink it.
TIME_SCALE: float = max(0.01, _env_float("ISOLATION_AI_TIME_SCALE", 1.0))

CORS_ORIGINS: list[str] = os.getenv("CORS_ORIGINS", "*").split(",")

# When disabled, /ai/move always runs inline instead of in the threadpool.
SEARCH_IN_THREADPOOL: bool = os.getenv(
    "ISOLATION_AI_SEARCH_IN_THREADPOOL", "1"
).lower() in _TRUTHY

# Idle per-game locks expire after the TTL; above the cap the least recently
# used idle locks are evicted.
GAME_LOCK_TTL_SEC: int = _env_int("ISOLATION_AI_GAME_LOCK_TTL_SEC", 1800)
GAME_LOCK_MAX: int = _env_int("ISOLATION_AI_GAME_LOCK_MAX", 512)
