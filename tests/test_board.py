import chess
import pytest

from relocator.board import (
    RelocationRule,
    apply_relocation,
    is_vacant,
    list_destinations,
    relocated,
    revert_relocation,
)


def test_apply_and_revert_restore_placement() -> None:
    board = chess.Board()
    before = board.board_fen()

    token = apply_relocation(board, chess.Move(chess.B1, chess.E4))
    assert board.piece_at(chess.B1) is None
    assert board.piece_at(chess.E4) == chess.Piece(chess.KNIGHT, chess.WHITE)
    assert board.turn == chess.WHITE

    revert_relocation(board, token)
    assert board.board_fen() == before


def test_relocated_reverts_when_body_raises() -> None:
    board = chess.Board()
    before = board.board_fen()

    with pytest.raises(RuntimeError):
        with relocated(board, chess.Move(chess.D1, chess.D5)):
            assert board.piece_at(chess.D5).piece_type == chess.QUEEN
            raise RuntimeError("boom")

    assert board.board_fen() == before


def test_apply_rejects_occupied_target_and_empty_origin() -> None:
    board = chess.Board()
    with pytest.raises(ValueError):
        apply_relocation(board, chess.Move(chess.B1, chess.D2))
    with pytest.raises(ValueError):
        apply_relocation(board, chess.Move(chess.E4, chess.E5))
    assert board.board_fen() == chess.Board().board_fen()


def test_any_vacant_lists_every_empty_square_in_order() -> None:
    board = chess.Board()
    squares = list(list_destinations(board, chess.B1))

    assert len(squares) == 32
    assert squares == sorted(squares)
    assert squares[0] == chess.A3
    assert squares[-1] == chess.H6
    assert all(is_vacant(board, sq) for sq in squares)


def test_destinations_follow_the_board() -> None:
    board = chess.Board()
    with relocated(board, chess.Move(chess.G1, chess.E4)):
        squares = set(list_destinations(board, chess.B1))
        assert chess.G1 in squares
        assert chess.E4 not in squares
    assert chess.E4 in set(list_destinations(board, chess.B1))


def test_movement_pattern_limits_to_attacked_vacant_squares() -> None:
    board = chess.Board()
    rule = RelocationRule.MOVEMENT_PATTERN

    assert list(list_destinations(board, chess.B1, rule)) == [chess.A3, chess.C3]
    assert list(list_destinations(board, chess.A1, rule)) == []
    assert list(list_destinations(board, chess.D1, rule)) == []

    board.remove_piece_at(chess.E2)
    assert list(list_destinations(board, chess.F1, rule)) == [
        chess.E2, chess.D3, chess.C4, chess.B5, chess.A6,
    ]
