"""
Board-state operations for relocations.

A relocation lifts a piece off its square and drops it on a vacant square,
ignoring whose turn it is and (by default) how the piece actually moves. It
is not a chess move: no capture, no castling, no turn change. python-chess
supplies the board; this module adds the reversible apply/revert pair the
planner needs and the destination enumerator.

Apply and revert are always used as a pair through ``relocated()``, so a
trial relocation cannot leak into sibling trials even if the body raises.
"""

import enum
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterable, Iterator

import chess


class RelocationRule(enum.Enum):
    """Which vacant squares a unit may be relocated to."""

    ANY_VACANT = "AnyVacant"
    MOVEMENT_PATTERN = "MovementPattern"


@dataclass(frozen=True)
class UndoToken:
    """Everything needed to reverse one applied relocation."""

    move: chess.Move
    piece: chess.Piece


def is_vacant(board: chess.Board, square: chess.Square) -> bool:
    return not board.occupied & chess.BB_SQUARES[square]


def apply_relocation(board: chess.Board, move: chess.Move) -> UndoToken:
    """
    Move the piece on move.from_square to the vacant move.to_square.

    Raises:
        ValueError: The origin is empty or the destination is occupied.
    """
    piece = board.piece_at(move.from_square)
    if piece is None:
        raise ValueError(f"no piece to relocate on {chess.square_name(move.from_square)}")
    if not is_vacant(board, move.to_square):
        raise ValueError(f"relocation target {chess.square_name(move.to_square)} is occupied")

    board.remove_piece_at(move.from_square)
    board.set_piece_at(move.to_square, piece)
    return UndoToken(move, piece)


def revert_relocation(board: chess.Board, token: UndoToken) -> None:
    board.remove_piece_at(token.move.to_square)
    board.set_piece_at(token.move.from_square, token.piece)


@contextmanager
def relocated(board: chess.Board, move: chess.Move) -> Iterator[UndoToken]:
    """Apply a relocation for the duration of a with-block."""
    token = apply_relocation(board, move)
    try:
        yield token
    finally:
        revert_relocation(board, token)


def list_destinations(
    board: chess.Board,
    origin: chess.Square,
    rule: RelocationRule = RelocationRule.ANY_VACANT,
) -> Iterable[chess.Square]:
    """
    Vacant squares the unit on ``origin`` may be relocated to.

    Squares come out in ascending order (a1, b1, ..., h8). The set is derived
    from the occupancy bitboard on every call, so it always reflects the
    current board; iterating it does not build a list.
    """
    vacant = ~board.occupied & chess.BB_ALL
    if rule is RelocationRule.MOVEMENT_PATTERN:
        vacant &= board.attacks_mask(origin)
    return chess.SquareSet(vacant)
