import threading

import chess

from relocator.constants import CHECKMATE_SCORE
from relocator.perft import divide, perft
from relocator.search import get_best_move

KIWIPETE = "r3k2r/p1ppqpb1/bn2pnp1/3PN3/1p2P3/2N2Q1p/PPPBBPPP/R3K2R w KQkq - 0 1"


def test_perft_start_position() -> None:
    board = chess.Board()
    assert perft(board, 1) == 20
    assert perft(board, 2) == 400
    assert perft(board, 3) == 8902
    assert board.fen() == chess.STARTING_FEN


def test_perft_kiwipete_and_divide() -> None:
    board = chess.Board(KIWIPETE)
    assert perft(board, 2) == 2039

    split = divide(board, 2)
    assert len(split) == 48
    assert sum(count for _, count in split) == 2039


def test_search_takes_a_hanging_queen() -> None:
    board = chess.Board("4k3/8/8/3q4/8/8/8/3RK3 w - - 0 1")
    move, score, depth, nodes = get_best_move(board, float("inf"), threading.Event(), max_depth=2)

    assert move == chess.Move.from_uci("d1d5")
    assert score > 0
    assert depth == 2
    assert nodes > 0
    assert board.fen() == "4k3/8/8/3q4/8/8/8/3RK3 w - - 0 1"


def test_search_scores_mate_by_distance() -> None:
    board = chess.Board("6k1/5ppp/8/8/8/8/8/R5K1 w - - 0 1")
    reported = []

    move, score, _, _ = get_best_move(
        board,
        float("inf"),
        threading.Event(),
        max_depth=3,
        on_iteration=lambda d, s, n, t, m: reported.append((d, s, m)),
    )

    assert move == chess.Move.from_uci("a1a8")
    assert score == CHECKMATE_SCORE - 1
    assert [d for d, _, _ in reported] == [1, 2, 3]


def test_stopped_search_returns_immediately() -> None:
    stop = threading.Event()
    stop.set()
    assert get_best_move(chess.Board(), float("inf"), stop) == (None, 0, 0, 0)


def test_search_uses_injected_evaluator() -> None:
    calls = []

    def flat(board: chess.Board) -> int:
        calls.append(board.fen())
        return 0

    move, score, _, _ = get_best_move(chess.Board(), float("inf"), threading.Event(), max_depth=1, evaluate_fn=flat)

    assert move in chess.Board().legal_moves
    assert score == 0
    assert len(calls) == 20


def test_stop_mid_iteration_keeps_the_last_completed_depth() -> None:
    stop = threading.Event()
    calls = []

    def flat_then_stop(board: chess.Board) -> int:
        calls.append(board.fen())
        if len(calls) == 100:
            stop.set()
        return 0

    board = chess.Board()
    # Depth 1 costs 20 leaves and depth 2 another 39, so the stop lands in depth 3.
    move, score, depth, _ = get_best_move(board, float("inf"), stop, max_depth=5, evaluate_fn=flat_then_stop)

    assert depth == 2
    assert score == 0
    assert move in board.legal_moves
    assert len(calls) == 100
    assert board.fen() == chess.STARTING_FEN
