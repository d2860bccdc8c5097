"""
Static evaluation: a raw positional score normalized onto the pawn scale.

The evaluation has two layers:

1. A raw oracle maps a board to a signed score in internal units from the
   side-to-move's perspective. The default oracle is a tapered PeSTO
   piece-square evaluation; a learned linear model (see relocator.model) can
   be plugged in instead.

2. A material-dependent normalization turns the raw score into a
   centipawn-like value. The win-rate model

       win_rate(v) = 1 / (1 + exp((a - v) / b))

   is fitted per material count, with a = p_a(m) and b = p_b(m) two cubic
   polynomials of the rescaled material count m. A raw value equal to a is
   the advantage that wins 50% of games, and is reported as exactly one pawn
   (100 cp). Normalizing therefore reduces to 100 * v / a.

All functions here are pure: the board is never modified.
"""

import math
from typing import Callable

import chess

from relocator.constants import (
    MATERIAL_ANCHOR,
    MATERIAL_MAX,
    MATERIAL_MIN,
    MATERIAL_WEIGHTS,
    MAX_PHASE,
    PHASE_WEIGHTS,
    PIECE_VALUES,
    PST,
    WIN_RATE_AS,
    WIN_RATE_BS,
)

RawEvaluator = Callable[[chess.Board], int]


def raw_evaluate(board: chess.Board) -> int:
    """
    Tapered PeSTO score from the side-to-move's perspective, in raw units.

    Each piece contributes its material value plus its middlegame and endgame
    piece-square bonus; the two totals are blended by the game phase computed
    from the remaining non-pawn material (24 = full middlegame, 0 = endgame).

    Args:
        board: The position to score. Not modified.

    Returns:
        Raw score. Positive means the side to move is ahead.
    """
    mg_score = 0
    eg_score = 0
    phase = 0

    for sq, piece in board.piece_map().items():
        pt = piece.piece_type
        mg_table, eg_table = PST[pt]

        # The king carries no material, only its placement bonus.
        material = 0 if pt == chess.KING else PIECE_VALUES[pt]

        if piece.color == chess.WHITE:
            idx = sq ^ 56
            mg_score += material + mg_table[idx]
            eg_score += material + eg_table[idx]
        else:
            idx = sq
            mg_score -= material + mg_table[idx]
            eg_score -= material + eg_table[idx]

        phase += PHASE_WEIGHTS.get(pt, 0)

    # Early promotions can push the phase past its nominal maximum.
    phase = min(phase, MAX_PHASE)

    tapered = (mg_score * phase + eg_score * (MAX_PHASE - phase)) // MAX_PHASE
    return tapered if board.turn == chess.WHITE else -tapered


def material_count(board: chess.Board) -> int:
    """Weighted piece count over both colours (P=1, N=B=3, R=5, Q=9)."""
    return sum(
        weight * chess.popcount(board.pieces_mask(pt, chess.WHITE) | board.pieces_mask(pt, chess.BLACK))
        for pt, weight in MATERIAL_WEIGHTS.items()
    )


def win_rate_params(board: chess.Board) -> tuple[float, float]:
    """
    Return the (a, b) parameters of the win-rate model for this position.

    The material count is clamped to the range the model was fitted on and
    rescaled so that the anchor count maps to 1.0.
    """
    material = material_count(board)
    m = min(max(material, MATERIAL_MIN), MATERIAL_MAX) / MATERIAL_ANCHOR

    as0, as1, as2, as3 = WIN_RATE_AS
    bs0, bs1, bs2, bs3 = WIN_RATE_BS
    a = (((as0 * m + as1) * m + as2) * m) + as3
    b = (((bs0 * m + bs1) * m + bs2) * m) + bs3
    return a, b


def to_cp(value: int, board: chess.Board) -> int:
    """Convert a raw score to centipawns for the given position's material."""
    a, _ = win_rate_params(board)
    return round(100 * value / a)


def win_rate_model(value: int, board: chess.Board) -> int:
    """Expected win rate for a raw score, in per mille, rounded to nearest."""
    a, b = win_rate_params(board)
    # math.exp overflows past ~709; the win rate is already 0 there.
    exponent = min((a - value) / b, 700.0)
    return int(0.5 + 1000 / (1 + math.exp(exponent)))


def wdl(value: int, board: chess.Board) -> tuple[int, int, int]:
    """Win / draw / loss per mille for the side a raw score belongs to."""
    w = win_rate_model(value, board)
    l = win_rate_model(-value, board)
    return w, 1000 - w - l, l


def evaluate(board: chess.Board, raw: RawEvaluator = raw_evaluate) -> int:
    """
    Normalized centipawn score from the side-to-move's perspective.

    This is the static evaluator used by the relocation planner and the game
    search. The raw oracle can be replaced (e.g. by a loaded EvalFile model)
    through ``raw``; the normalization is always applied.

    Example:
        >>> import chess
        >>> evaluate(chess.Board())
        0
    """
    return to_cp(raw(board), board)
