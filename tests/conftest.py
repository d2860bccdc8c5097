import os
import sys
import zlib

import chess
import pytest

# Ensure repo-local imports (e.g., `import relocator`) resolve without extra setup.
repo_root = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
if repo_root not in sys.path:
    sys.path.insert(0, repo_root)


def pytest_addoption(parser: pytest.Parser) -> None:
    parser.addoption(
        "-S",
        "--search",
        action="store_true",
        default=False,
        dest="run_search_slow",
        help="Run tests marked with @pytest.mark.search_slow (long-running search checks)",
    )


def pytest_collection_modifyitems(
    config: pytest.Config, items: list[pytest.Item]
) -> None:
    if not config.getoption("run_search_slow"):
        skip_slow = pytest.mark.skip(
            reason="use -S/--search to enable search smoke tests"
        )
        for item in items:
            if "search_slow" in item.keywords:
                item.add_marker(skip_slow)


class CountingEvaluator:
    """Deterministic evaluator that records how often it was called."""

    def __init__(self, score_fn):
        self.score_fn = score_fn
        self.calls = 0

    def __call__(self, board: chess.Board) -> int:
        self.calls += 1
        return self.score_fn(board)


def placement_hash_score(board: chess.Board) -> int:
    """Pseudo-random but reproducible score in [-50, 50] per piece placement."""
    return zlib.crc32(board.board_fen().encode()) % 101 - 50


@pytest.fixture()
def hash_evaluator() -> CountingEvaluator:
    return CountingEvaluator(placement_hash_score)
