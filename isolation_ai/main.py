"""
Isolation AI Service - FastAPI Application
Provides AI move selection and position evaluation endpoints
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Dict

from fastapi import FastAPI, HTTPException, Response
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.concurrency import run_in_threadpool

from . import __version__, config
from .ai.evaluation import evaluate_breakdown
from .ai.factory import get_difficulty_profile
from .ai.orchestrator import MoveResult, compute_move
from .ai.move_generation import Snapshot
from .ai.partition import detect_partition
from .errors import InvalidBoardStateError, NoLegalMovesError
from .metrics import observe_move
from .models import (
    EvaluationRequest,
    EvaluationResponse,
    MoveRequest,
    MoveResponse,
)

# Configure logging
logging.basicConfig(
    level=getattr(logging, config.LOG_LEVEL, logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title="Isolation AI Service",
    description="AI move selection and evaluation service for Isolation",
    version=__version__,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Searches for the same game are serialized; different games run in parallel.
@dataclass
class GameLock:
    lock: threading.Lock
    last_access: float


_game_locks: Dict[str, GameLock] = {}
_game_locks_guard = threading.Lock()


def _prune_game_locks(now: float) -> None:
    """Drop idle per-game locks. A lock that is held is never dropped."""
    if not _game_locks:
        return

    expired = [
        key
        for key, entry in _game_locks.items()
        if now - entry.last_access > config.GAME_LOCK_TTL_SEC and not entry.lock.locked()
    ]
    for key in expired:
        _game_locks.pop(key, None)

    if len(_game_locks) <= config.GAME_LOCK_MAX:
        return

    # Evict least-recently-used idle entries.
    idle = sorted(
        (kv for kv in _game_locks.items() if not kv[1].lock.locked()),
        key=lambda kv: kv[1].last_access,
    )
    overflow = len(_game_locks) - config.GAME_LOCK_MAX
    for key, _entry in idle[:overflow]:
        _game_locks.pop(key, None)


def _lock_for(game_id: str) -> threading.Lock:
    now = time.time()
    with _game_locks_guard:
        _prune_game_locks(now)
        entry = _game_locks.get(game_id)
        if entry is None:
            entry = GameLock(lock=threading.Lock(), last_access=now)
            _game_locks[game_id] = entry
        entry.last_access = now
        return entry.lock


def _run_move(request: MoveRequest) -> MoveResult:
    def run() -> MoveResult:
        return compute_move(
            request.board,
            last_opponent_move=request.last_opponent_move,
            difficulty=request.difficulty,
            turn_count=request.turn_count,
            board_history=request.board_history,
            seed=request.seed,
        )

    if request.game_id is None:
        return run()
    with _lock_for(request.game_id):
        return run()


@app.get("/")
async def root():
    """Service banner"""
    return {
        "service": "Isolation AI Service",
        "status": "running",
        "version": __version__,
    }


@app.get("/health")
async def health_check():
    """Health check for container orchestration"""
    return {"status": "healthy"}


@app.get("/metrics")
async def metrics():
    """Prometheus metrics endpoint in the default text exposition format."""
    data = generate_latest()
    return Response(content=data, media_type=CONTENT_TYPE_LATEST)


@app.post("/ai/move", response_model=MoveResponse)
async def get_ai_move(request: MoveRequest):
    """
    Get the AI's move for the current board.

    Args:
        request: MoveRequest with the board, tier and game history

    Returns:
        MoveResponse with the move, insight identifiers and diagnostics
    """
    start_time = time.time()
    try:
        if config.SEARCH_IN_THREADPOOL:
            result = await run_in_threadpool(_run_move, request)
        else:
            result = _run_move(request)
    except InvalidBoardStateError as e:
        observe_move(request.difficulty.value, "invalid", time.time() - start_time)
        logger.info(f"Rejected board: {e}")
        raise HTTPException(status_code=400, detail=e.to_dict())
    except NoLegalMovesError as e:
        logger.info(f"Terminal position: {e}")
        raise HTTPException(status_code=409, detail=e.to_dict())
    except Exception as e:
        observe_move(request.difficulty.value, "error", time.time() - start_time)
        logger.error(f"Error generating AI move: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))

    return MoveResponse(
        move=result.move,
        logs=result.logs,
        stats=result.stats,
        difficulty=request.difficulty,
    )


@app.post("/ai/evaluate", response_model=EvaluationResponse)
async def evaluate_position(request: EvaluationRequest):
    """
    Static evaluation of a board from the AI's perspective

    Uses the requested tier's weights and evaluator, and reports each
    advanced component when the tier uses the advanced evaluator.
    """
    try:
        profile = get_difficulty_profile(request.difficulty)
        snap = Snapshot.from_board(request.board)
        score, breakdown = evaluate_breakdown(
            snap,
            profile.weights,
            advanced=profile.use_voronoi,
            turn_count=request.turn_count,
        )
        return EvaluationResponse(
            score=score,
            breakdown=breakdown,
            partitioned=detect_partition(snap).is_partitioned,
        )
    except InvalidBoardStateError as e:
        raise HTTPException(status_code=400, detail=e.to_dict())
    except Exception as e:
        logger.error(f"Error evaluating position: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8001)
