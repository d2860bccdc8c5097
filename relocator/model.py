"""
Learned raw evaluator loaded from an EvalFile.

An EvalFile is a small JSON document describing a linear model over board
features:

    {"w": [..], "b": 0.0, "feature_set": "material5", "scale": 1.0}

The model output is used as a raw score (the same units raw_evaluate
produces), so it goes through the normal win-rate normalization before it
is reported.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence

import chess

_log = logging.getLogger(__name__)


def _features_material5(board: chess.Board) -> List[float]:
    def diff(pt: int) -> int:
        return len(board.pieces(pt, chess.WHITE)) - len(board.pieces(pt, chess.BLACK))

    return [
        float(diff(chess.PAWN)),
        float(diff(chess.KNIGHT)),
        float(diff(chess.BISHOP)),
        float(diff(chess.ROOK)),
        float(diff(chess.QUEEN)),
    ]


FEATURE_SETS = {
    "material5": _features_material5,
}


@dataclass
class LinearModel:
    w: Sequence[float]
    b: float = 0.0
    feature_set: str = "material5"
    scale: float = 1.0
    feature_names: Optional[List[str]] = None

    def __post_init__(self) -> None:
        if self.feature_set not in FEATURE_SETS:
            raise ValueError(f"unknown feature_set: {self.feature_set}")

    def __call__(self, board: chess.Board) -> int:
        x = FEATURE_SETS[self.feature_set](board)
        if len(x) != len(self.w):
            raise ValueError(
                f"model has {len(self.w)} weights, feature set {self.feature_set} has {len(x)}"
            )
        # Features are White-minus-Black; flip for Black to move.
        z = self.scale * (sum(wi * xi for wi, xi in zip(self.w, x)) + self.b)
        return int(round(z if board.turn == chess.WHITE else -z))


def load_model(path: str | Path) -> LinearModel:
    """
    Read a LinearModel from a JSON EvalFile.

    Raises:
        OSError: The file cannot be read.
        ValueError: The file is not valid JSON or does not describe a model.
    """
    with open(path, "r", encoding="utf-8") as f:
        try:
            obj = json.load(f)
        except json.JSONDecodeError as exc:
            raise ValueError(f"EvalFile {path} is not valid JSON: {exc}") from exc

    if not isinstance(obj, dict) or "w" not in obj:
        raise ValueError(f"EvalFile {path} has no weight vector 'w'")

    model = LinearModel(
        w=[float(v) for v in obj["w"]],
        b=float(obj.get("b", 0.0)),
        feature_set=obj.get("feature_set", "material5"),
        scale=float(obj.get("scale", 1.0)),
        feature_names=obj.get("feature_names"),
    )
    _log.info("loaded EvalFile %s (%s, %d weights)", path, model.feature_set, len(model.w))
    return model
