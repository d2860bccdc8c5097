"""Move-generation node counting (perft) with per-move split output."""

import chess


def perft(board: chess.Board, depth: int) -> int:
    """Count leaf nodes of the legal move tree ``depth`` plies deep."""
    if depth <= 0:
        return 1
    if depth == 1:
        return board.legal_moves.count()

    nodes = 0
    for move in board.legal_moves:
        board.push(move)
        nodes += perft(board, depth - 1)
        board.pop()
    return nodes


def divide(board: chess.Board, depth: int) -> list[tuple[chess.Move, int]]:
    """Per root move leaf counts, in move-generation order."""
    counts = []
    for move in board.legal_moves:
        board.push(move)
        counts.append((move, perft(board, depth - 1)))
        board.pop()
    return counts
