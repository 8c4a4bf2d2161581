"""Prometheus metrics for the Isolation AI service.

Counters and histograms live here so the orchestrator and the HTTP layer
record telemetry without owning metric instances. Labels stay coarse
(difficulty, method, outcome) to keep cardinality small.
"""

from __future__ import annotations

from typing import Final

from prometheus_client import Counter, Gauge, Histogram


MOVE_REQUESTS: Final[Counter] = Counter(
    "isolation_ai_move_requests_total",
    "Total number of move computations, labeled by difficulty and outcome.",
    labelnames=("difficulty", "outcome"),
)

MOVE_LATENCY: Final[Histogram] = Histogram(
    "isolation_ai_move_latency_seconds",
    "Wall-clock time of move computations in seconds, labeled by difficulty.",
    labelnames=("difficulty",),
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0, 20.0),
)

SEARCH_NODES: Final[Histogram] = Histogram(
    "isolation_ai_search_nodes",
    "Nodes (or MCTS iterations) visited per search, labeled by method.",
    labelnames=("method",),
    buckets=(10, 100, 1_000, 10_000, 100_000, 1_000_000),
)

SEARCH_DEPTH: Final[Gauge] = Gauge(
    "isolation_ai_search_depth",
    "Depth reached by the most recent alpha-beta search per difficulty.",
    labelnames=("difficulty",),
)

FALLBACKS: Final[Counter] = Counter(
    "isolation_ai_fallbacks_total",
    "Moves produced by the defensive fallback, labeled by reason.",
    labelnames=("reason",),
)


def observe_move(difficulty: str, outcome: str, seconds: float) -> None:
    """Record one finished move computation."""
    MOVE_REQUESTS.labels(difficulty, outcome).inc()
    MOVE_LATENCY.labels(difficulty).observe(seconds)


def observe_search(difficulty: str, method: str, nodes: int, depth: int) -> None:
    SEARCH_NODES.labels(method).observe(nodes)
    if method == "alphabeta":
        SEARCH_DEPTH.labels(difficulty).set(depth)
