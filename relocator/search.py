"""
Game search behind the UCI "go" command.

Ordinary two-player alpha-beta (fail-hard negamax) with captures tried first,
run by iterative deepening until the depth limit, the time budget or "stop".
The relocation planner in relocator.planner does not use it: relocations are
single-agent and exhaustive, this is adversarial and pruned.

Aborting:
    GameSearch raises _SearchAborted from inside the tree as soon as the stop
    event is set or the deadline passes. Every push is paired with a pop in a
    finally block, so the board is back in its root position when the
    exception reaches get_best_move(), which keeps the last completed
    iteration's answer.
"""

import threading
import time
from typing import Callable, Optional

import chess

from relocator.constants import (
    CHECKMATE_SCORE,
    DRAW_SCORE,
    MAX_DEPTH,
    PIECE_VALUES,
    TIME_CHECK_NODES,
    TIME_USAGE_FRACTION,
)
from relocator.evaluate import evaluate

# (depth, score, nodes, elapsed_ms, best move) after each completed iteration
IterationCallback = Callable[[int, int, int, int, chess.Move], None]


class _SearchAborted(Exception):
    """Unwinds the tree when the search has to stop mid-iteration."""


def _capture_key(board: chess.Board, move: chess.Move) -> tuple[int, int]:
    if not board.is_capture(move):
        return (0, 0)
    # En passant leaves to_square empty; the victim is a pawn.
    victim = board.piece_type_at(move.to_square) or chess.PAWN
    attacker = board.piece_type_at(move.from_square)
    return (1, PIECE_VALUES[victim] - PIECE_VALUES[attacker])


def ordered_moves(board: chess.Board) -> list[chess.Move]:
    """Legal moves, captures first (best victim for the cheapest attacker)."""
    return sorted(board.legal_moves, key=lambda m: _capture_key(board, m), reverse=True)


class GameSearch:
    """
    One "go" search over a board that is searched in place.

    Attributes:
        board:    Root position; pushed and popped during the search.
        evaluate: Static evaluator used at depth 0.
        nodes:    Positions entered so far, over all iterations.
        deadline: Monotonic time after which the search aborts.
    """

    def __init__(
        self,
        board: chess.Board,
        evaluate_fn: Callable[[chess.Board], int],
        stop_event: threading.Event,
        time_limit_ms: float,
    ) -> None:
        self.board = board
        self.evaluate = evaluate_fn
        self.stop_event = stop_event
        self.nodes = 0
        self.started = time.monotonic()
        self.deadline = self.started + time_limit_ms * TIME_USAGE_FRACTION / 1000

    def elapsed_ms(self) -> int:
        return int((time.monotonic() - self.started) * 1000)

    def out_of_time(self) -> bool:
        return time.monotonic() >= self.deadline

    def _enter_node(self) -> None:
        self.nodes += 1
        if self.stop_event.is_set():
            raise _SearchAborted()
        if self.nodes % TIME_CHECK_NODES == 0 and self.out_of_time():
            raise _SearchAborted()

    def _child_score(self, move: chess.Move, depth: int, alpha: int, beta: int, ply: int) -> int:
        self.board.push(move)
        try:
            return -self.alpha_beta(depth - 1, -beta, -alpha, ply + 1)
        finally:
            self.board.pop()

    def alpha_beta(self, depth: int, alpha: int, beta: int, ply: int) -> int:
        """Score for the side to move, clamped to [alpha, beta]."""
        self._enter_node()

        board = self.board
        if board.is_checkmate():
            # Nearer mates score higher.
            return -(CHECKMATE_SCORE - ply)
        if board.is_game_over():
            return DRAW_SCORE
        if depth == 0:
            return self.evaluate(board)

        for move in ordered_moves(board):
            score = self._child_score(move, depth, alpha, beta, ply)
            if score >= beta:
                return beta
            if score > alpha:
                alpha = score
        return alpha

    def root(self, depth: int) -> tuple[chess.Move, int]:
        """Search every root move to ``depth``; the first best move wins ties."""
        best_move: Optional[chess.Move] = None
        best_score = -CHECKMATE_SCORE
        for move in ordered_moves(self.board):
            score = self._child_score(move, depth, best_score, CHECKMATE_SCORE, 0)
            if best_move is None or score > best_score:
                best_move, best_score = move, score
        return best_move, best_score


def get_best_move(
    board: chess.Board,
    time_limit_ms: float,
    stop_event: threading.Event,
    max_depth: int = MAX_DEPTH,
    evaluate_fn: Callable[[chess.Board], int] = evaluate,
    on_iteration: Optional[IterationCallback] = None,
) -> tuple[Optional[chess.Move], int, int, int]:
    """
    Iterative deepening from depth 1 up to ``max_depth`` or the time budget.

    Args:
        board:         Current position, restored on return.
        time_limit_ms: Time budget in milliseconds (float("inf") = no limit).
        stop_event:    Set from outside to abort; the last completed
                       iteration's move is returned.
        max_depth:     Deepest iteration to run.
        evaluate_fn:   Leaf evaluator.
        on_iteration:  Called after every completed iteration.

    Returns:
        (move, score_cp, completed_depth, nodes). move is None when the side
        to move has no legal moves or the search was stopped before it began.
    """
    if stop_event.is_set() or not any(board.legal_moves):
        return (None, 0, 0, 0)

    search = GameSearch(board, evaluate_fn, stop_event, float(time_limit_ms))
    best_move: Optional[chess.Move] = None
    best_score = 0
    completed_depth = 0

    for depth in range(1, max_depth + 1):
        try:
            move, score = search.root(depth)
        except _SearchAborted:
            break

        best_move, best_score, completed_depth = move, score, depth
        if on_iteration is not None:
            on_iteration(depth, score, search.nodes, search.elapsed_ms(), move)
        if search.out_of_time():
            break

    if best_move is None:
        # Stopped during depth 1: any legal move beats none.
        best_move = next(iter(board.legal_moves))

    return (best_move, best_score, completed_depth, search.nodes)
