"""
Isolation AI Error Hierarchy

Unified exception hierarchy for consistent error handling across the engine
and the HTTP service. All custom exceptions inherit from IsolationError so
callers can catch and filter them in one place.

Usage:
    from isolation_ai.errors import InvalidBoardStateError, NoLegalMovesError

    try:
        result = orchestrator.compute_move(board, difficulty=Difficulty.NEXUS_5)
    except NoLegalMovesError as e:
        logger.info(f"Game over: {e.message}")
"""

from typing import Any

__all__ = [
    # AI errors
    "AIError",
    "AIFallbackError",
    "ConfigurationError",
    "DestroySelectionError",
    # Board errors
    "InvalidBoardStateError",
    "InvalidMoveError",
    # Base error
    "IsolationError",
    "NoLegalMovesError",
    "SearchTimeoutError",
    # Validation errors
    "ValidationError",
]


class IsolationError(Exception):
    """Base exception for all Isolation AI errors.

    Attributes:
        code: Machine-readable error code for categorization
        message: Human-readable error description
        context: Additional context for debugging
    """
    code: str = "ISOLATION_ERROR"

    def __init__(
        self,
        message: str,
        code: str | None = None,
        context: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            ctx = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"[{self.code}] {self.message} ({ctx})"
        return f"[{self.code}] {self.message}"

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "code": self.code,
            "message": self.message,
            "context": self.context,
        }


# =============================================================================
# Board Errors
# =============================================================================


class InvalidBoardStateError(IsolationError):
    """Malformed or unparseable board.

    Raised when a board violates its structural invariants: positions out
    of bounds, both pieces on one cell, a piece on a destroyed cell,
    duplicate destroyed cells, or a grid too large for one bitboard.
    No move is computed for such a board.
    """
    code: str = "INVALID_BOARD_STATE"


class InvalidMoveError(IsolationError):
    """Turn that cannot be applied to the current board.

    Attributes:
        side: The side that attempted the turn
    """
    code: str = "INVALID_MOVE"

    def __init__(
        self,
        message: str,
        side: str | None = None,
        context: dict[str, Any] | None = None,
    ):
        super().__init__(message, context=context)
        self.side = side
        if side:
            self.context["side"] = side


class NoLegalMovesError(IsolationError):
    """The side to move has no legal slide.

    This is a terminal position rather than a failure: the side to move
    has lost. It is the only error the move pipeline raises for a
    structurally valid board.
    """
    code: str = "NO_LEGAL_MOVES"


# =============================================================================
# AI Errors
# =============================================================================


class AIError(IsolationError):
    """Base class for AI-related errors."""
    code: str = "AI_ERROR"


class AIFallbackError(AIError):
    """AI failed and used fallback move selection.

    Raised when the primary search strategy fails and a fallback
    (first legal move plus first legal destroy) is used instead.

    Attributes:
        original_error: The exception that triggered the fallback
        fallback_method: Description of fallback used (e.g., "first_legal")
    """
    code: str = "AI_FALLBACK"

    def __init__(
        self,
        message: str,
        original_error: Exception | None = None,
        fallback_method: str = "first_legal",
        context: dict[str, Any] | None = None,
    ):
        super().__init__(message, context=context)
        self.original_error = original_error
        self.fallback_method = fallback_method
        self.context["fallback_method"] = fallback_method
        if original_error:
            self.context["original_error"] = str(original_error)


class SearchTimeoutError(AIError):
    """Search exceeded its wall-clock budget.

    Searches degrade to the best result found so far instead of raising;
    this error only travels inside a search to unwind it early and is
    never surfaced to callers of the move pipeline.
    """
    code: str = "SEARCH_TIMEOUT"

    def __init__(
        self,
        message: str,
        time_limit_ms: int | None = None,
        actual_time_ms: int | None = None,
        context: dict[str, Any] | None = None,
    ):
        super().__init__(message, context=context)
        if time_limit_ms:
            self.context["time_limit_ms"] = time_limit_ms
        if actual_time_ms:
            self.context["actual_time_ms"] = actual_time_ms


class DestroySelectionError(AIError):
    """No heuristic destroy candidate could be chosen.

    Defensive-only: raised when legality invariants were violated
    upstream. The orchestrator answers it with the nearest empty cell.
    """
    code: str = "DESTROY_SELECTION_FAILURE"


# =============================================================================
# Validation Errors
# =============================================================================


class ValidationError(IsolationError):
    """Base class for validation errors."""
    code: str = "VALIDATION_ERROR"


class ConfigurationError(ValidationError):
    """Invalid configuration (unknown game type or difficulty profile)."""
    code: str = "CONFIGURATION_ERROR"
