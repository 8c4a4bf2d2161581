"""
Benchmark script to play difficulty tiers against each other
"""

import argparse
import random
import time

from isolation_ai.ai.move_generation import Side, apply_move
from isolation_ai.ai.orchestrator import compute_move
from isolation_ai.errors import NoLegalMovesError
from isolation_ai.models import BoardState, create_initial_board, serialize_board


def swap_sides(board: BoardState) -> BoardState:
    """Same board with the two pieces exchanged, so either side can be the AI."""
    return BoardState(
        boardSize=board.board_size,
        playerPos=board.ai_pos,
        aiPos=board.player_pos,
        destroyed=board.destroyed,
    )


def play_game(first: str, second: str, rng: random.Random, max_turns: int = 60):
    """Play one game; returns the winning tier name and the turn count.

    ``first`` controls the AI piece and moves first. ``second`` controls the
    player piece and searches on a swapped copy of the board.
    """
    board = create_initial_board(rng)
    boards = []
    turn = 0
    while turn < max_turns:
        ai_to_move = turn % 2 == 0
        tier = first if ai_to_move else second
        view = board if ai_to_move else swap_sides(board)
        history = [serialize_board(b if ai_to_move else swap_sides(b)) for b in boards]

        start_time = time.time()
        try:
            result = compute_move(
                view,
                difficulty=tier,
                turn_count=turn,
                board_history=history,
                seed=rng.randrange(2**31),
            )
        except NoLegalMovesError:
            return (second if ai_to_move else first), turn
        duration = time.time() - start_time

        side = Side.AI if ai_to_move else Side.PLAYER
        board = apply_move(board, result.move, side)
        boards.append(board)
        turn += 1
        print(
            f"  Turn {turn} ({duration:.2f}s) - {tier} via {result.stats.method} "
            f"to ({result.move.to.r},{result.move.to.c})",
            flush=True,
        )
    return None, turn


def run_benchmark(first: str, second: str, num_games: int, seed: int) -> None:
    print(f"Running benchmark: {first} vs {second} ({num_games} games)", flush=True)
    rng = random.Random(seed)
    wins = {first: 0, second: 0}
    unfinished = 0

    for i in range(num_games):
        # Alternate who moves first
        a, b = (first, second) if i % 2 == 0 else (second, first)
        print(f"Game {i + 1}: {a} (first) vs {b}", flush=True)
        winner, turns = play_game(a, b, rng)
        if winner is None:
            unfinished += 1
            print(f"  Unfinished after {turns} turns", flush=True)
        else:
            wins[winner] += 1
            print(f"  Winner: {winner} after {turns} turns", flush=True)

    print("\nResults:")
    for tier, count in wins.items():
        print(f"{tier} Wins: {count}")
    print(f"Unfinished: {unfinished}")


def main() -> None:
    parser = argparse.ArgumentParser(description="Play Isolation tiers against each other")
    parser.add_argument("--first", default="NEXUS-5", help="Tier for the first engine")
    parser.add_argument("--second", default="NEXUS-3", help="Tier for the second engine")
    parser.add_argument("--games", type=int, default=10, help="Number of games")
    parser.add_argument("--seed", type=int, default=0, help="Seed for boards and engines")
    args = parser.parse_args()
    run_benchmark(args.first, args.second, args.games, args.seed)


if __name__ == "__main__":
    main()
