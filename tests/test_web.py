import chess
import pytest
from fastapi.testclient import TestClient

from web.app import app


@pytest.fixture()
def client() -> TestClient:
    return TestClient(app)


def test_relocate_start_position_with_movement_rule(client: TestClient) -> None:
    response = client.post("/api/relocate", json={"fen": chess.STARTING_FEN})

    assert response.status_code == 200
    body = response.json()
    assert len(body["moves"]) == 4
    assert body["before"] == 0
    assert body["after"] > 0
    assert body["leaves"] > 0

    board = chess.Board()
    for uci in body["moves"]:
        move = chess.Move.from_uci(uci)
        assert board.piece_at(move.to_square) is None
        board.set_piece_at(move.to_square, board.remove_piece_at(move.from_square))
    assert board.board_fen() == chess.Board(body["fen"]).board_fen()


def test_relocate_with_small_roster_returns_no_moves(client: TestClient) -> None:
    response = client.post(
        "/api/relocate",
        json={"fen": chess.STARTING_FEN, "roster": ["b1", "-", "g1"], "rule": "AnyVacant"},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["moves"] == []
    assert body["before"] == body["after"] == 0
    assert body["fen"] == chess.STARTING_FEN
    assert body["leaves"] == 0


def test_relocate_with_repeated_roster_squares(client: TestClient) -> None:
    response = client.post(
        "/api/relocate",
        json={"fen": chess.STARTING_FEN, "roster": ["b1", "b1", "g1", "c1"], "rule": "AnyVacant"},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["moves"] == []
    assert body["fen"] == chess.STARTING_FEN


def test_relocate_rejects_bad_input(client: TestClient) -> None:
    assert client.post("/api/relocate", json={"fen": "garbage"}).status_code == 400
    assert client.post(
        "/api/relocate", json={"fen": chess.STARTING_FEN, "roster": ["b1", "k9"]}
    ).status_code == 422
    assert client.post(
        "/api/relocate", json={"fen": chess.STARTING_FEN, "rule": "Teleport"}
    ).status_code == 422


def test_eval_endpoint(client: TestClient) -> None:
    response = client.post("/api/eval", json={"fen": chess.STARTING_FEN})

    assert response.status_code == 200
    body = response.json()
    assert body["raw"] == 0
    assert body["material"] == 78
    assert body["cp"] == 0
    assert sum(body["wdl"]) == 1000
    assert body["wdl"][0] == body["wdl"][2]
