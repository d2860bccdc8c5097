import json

import chess
import pytest

from relocator.constants import WIN_RATE_AS, WIN_RATE_BS
from relocator.evaluate import (
    evaluate,
    material_count,
    raw_evaluate,
    to_cp,
    wdl,
    win_rate_model,
    win_rate_params,
)
from relocator.model import LinearModel, load_model

# Start position without queens and the a-pawns: material count 58, the
# point the win-rate model is anchored at.
ANCHOR_FEN = "rnb1kbnr/1ppppppp/8/8/8/8/1PPPPPPP/RNB1KBNR w KQkq - 0 1"


def test_start_position_is_balanced() -> None:
    board = chess.Board()
    assert raw_evaluate(board) == 0
    assert evaluate(board) == 0


def test_raw_evaluation_is_from_side_to_move() -> None:
    board = chess.Board("rnbqkbnr/pppppppp/8/8/4P3/8/PPPP1PPP/RNBQKBNR w KQkq - 0 1")
    white_view = raw_evaluate(board)
    board.turn = chess.BLACK
    assert raw_evaluate(board) == -white_view
    assert raw_evaluate(board.mirror()) == raw_evaluate(board)


def test_extra_queen_scores_positive() -> None:
    board = chess.Board("4k3/8/8/8/8/8/8/3QK3 w - - 0 1")
    assert raw_evaluate(board) > 800
    assert evaluate(board) > 0


def test_material_count() -> None:
    assert material_count(chess.Board()) == 78
    assert material_count(chess.Board(ANCHOR_FEN)) == 58
    assert material_count(chess.Board("4k3/8/8/8/8/8/8/4K3 w - - 0 1")) == 0


def test_win_rate_params_at_anchor_are_coefficient_sums() -> None:
    a, b = win_rate_params(chess.Board(ANCHOR_FEN))
    assert a == pytest.approx(sum(WIN_RATE_AS))
    assert b == pytest.approx(sum(WIN_RATE_BS))


def test_win_rate_params_clamp_material() -> None:
    bare_kings = chess.Board("4k3/8/8/8/8/8/8/4K3 w - - 0 1")
    ten_pawns = chess.Board("4k3/pppppppp/8/8/8/8/PP6/4K3 w - - 0 1")
    assert material_count(ten_pawns) == 10
    assert win_rate_params(bare_kings) == win_rate_params(ten_pawns)


def test_to_cp_maps_a_to_one_pawn() -> None:
    board = chess.Board(ANCHOR_FEN)
    a, _ = win_rate_params(board)
    assert to_cp(round(a), board) == 100
    assert to_cp(-round(a), board) == -100
    assert to_cp(0, board) == 0
    assert evaluate(board, raw=lambda b: round(2 * a)) == 200


def test_win_rate_model_and_wdl() -> None:
    board = chess.Board(ANCHOR_FEN)
    a, _ = win_rate_params(board)

    assert win_rate_model(a, board) == 500
    w, d, l = wdl(0, board)
    assert w == l
    assert w + d + l == 1000

    w, d, l = wdl(1000, board)
    assert w > 900
    assert l == 0


def test_wdl_handles_mate_sized_scores() -> None:
    board = chess.Board(ANCHOR_FEN)
    assert wdl(10_000_000, board) == (1000, 0, 0)
    assert wdl(-10_000_000, board) == (0, 0, 1000)


def test_linear_model_loaded_from_eval_file(tmp_path) -> None:
    path = tmp_path / "model.json"
    path.write_text(json.dumps({"w": [100, 300, 300, 500, 900], "b": 0.0, "feature_set": "material5"}))

    model = load_model(path)
    assert isinstance(model, LinearModel)
    assert model(chess.Board()) == 0

    board = chess.Board("4k3/8/8/8/8/8/8/3QK3 w - - 0 1")
    assert model(board) == 900
    board.turn = chess.BLACK
    assert model(board) == -900


def test_load_model_rejects_bad_files(tmp_path) -> None:
    not_json = tmp_path / "broken.json"
    not_json.write_text("{nope")
    with pytest.raises(ValueError):
        load_model(not_json)

    no_weights = tmp_path / "empty.json"
    no_weights.write_text("{}")
    with pytest.raises(ValueError):
        load_model(no_weights)

    unknown_features = tmp_path / "features.json"
    unknown_features.write_text(json.dumps({"w": [1.0], "feature_set": "nnue"}))
    with pytest.raises(ValueError):
        load_model(unknown_features)

    with pytest.raises(OSError):
        load_model(tmp_path / "missing.json")
