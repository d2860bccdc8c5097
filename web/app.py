"""
FastAPI web application for the relocation planner.

Endpoints:
    POST /api/relocate  plan and apply relocations for a FEN position
    POST /api/eval      static evaluation breakdown for a FEN position

Architecture notes:
- Sync endpoints (not async): FastAPI runs sync handlers in a thread pool,
  which is the right place for CPU-bound work like the planner.
- Stateless per request: the client sends the full FEN each time and every
  request plans on its own board, so requests never share mutable state.
"""

import logging
from typing import List, Optional

import chess
from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, field_validator

from relocator.board import RelocationRule
from relocator.constants import DEFAULT_ROSTER
from relocator.evaluate import evaluate, material_count, raw_evaluate, wdl
from relocator.planner import PlannerContext, relocate

logging.basicConfig(level=logging.INFO)
_log = logging.getLogger(__name__)

app = FastAPI(title="Chess Relocator", version="1.0.0")


# ---------------------------------------------------------------------------
# Request / response models
# ---------------------------------------------------------------------------


def _parse_board(fen: str) -> chess.Board:
    try:
        return chess.Board(fen)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=f"Invalid FEN: {exc}") from exc


class RelocateRequest(BaseModel):
    """
    Fields:
        fen:    Position to plan on.
        roster: Origin squares of the units that may move ("-" = unavailable).
                Defaults to White's pieces on their home squares.
        rule:   "AnyVacant" or "MovementPattern". Defaults to MovementPattern:
                AnyVacant with a full roster takes far too long to serve.
    """

    fen: str
    roster: Optional[List[str]] = None
    rule: RelocationRule = RelocationRule.MOVEMENT_PATTERN

    @field_validator("roster")
    @classmethod
    def check_roster(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        """Reject square names python-chess does not know."""
        if v is None:
            return v
        for token in v:
            if token != "-" and token.lower() not in chess.SQUARE_NAMES:
                raise ValueError(f"not a square: {token!r}")
        return v


class RelocateResponse(BaseModel):
    """
    Fields:
        moves:  Relocations in UCI notation, empty when no net-positive plan
                exists.
        before: Evaluation (cp, side to move) before relocating.
        after:  Evaluation after the plan is applied.
        fen:    Position after the plan.
        leaves: Positions evaluated by the planner.
    """

    moves: List[str]
    before: int
    after: int
    fen: str
    leaves: int


class EvalRequest(BaseModel):
    fen: str


class EvalResponse(BaseModel):
    raw: int
    material: int
    cp: int
    wdl: List[int]


# ---------------------------------------------------------------------------
# API routes
# ---------------------------------------------------------------------------


@app.post("/api/relocate", response_model=RelocateResponse)
def api_relocate(request: RelocateRequest) -> RelocateResponse:
    """
    Run the relocation planner on the given position and apply its plan.

    Raises:
        HTTPException 400: Malformed FEN.
        HTTPException 500: Planner failure.
    """
    board = _parse_board(request.fen)

    if request.roster is None:
        roster = list(DEFAULT_ROSTER)
    else:
        roster = [None if t == "-" else chess.parse_square(t.lower()) for t in request.roster]

    context = PlannerContext(rule=request.rule)
    try:
        report = relocate(board, roster, context)
    except Exception as exc:
        _log.exception("Relocation failed for FEN=%s", request.fen)
        raise HTTPException(status_code=500, detail=f"Planner error: {exc}") from exc

    _log.info(
        "Relocate plan=%s before=%d after=%d leaves=%d time=%dms fen=%s",
        report.plan.uci(),
        report.before,
        report.after,
        report.leaves,
        report.elapsed_ms,
        request.fen[:40],
    )

    return RelocateResponse(
        moves=[m.uci() for m in report.plan.moves],
        before=report.before,
        after=report.after,
        fen=board.fen(),
        leaves=report.leaves,
    )


@app.post("/api/eval", response_model=EvalResponse)
def api_eval(request: EvalRequest) -> EvalResponse:
    """Static evaluation of a position, side to move's perspective."""
    board = _parse_board(request.fen)
    raw = raw_evaluate(board)
    return EvalResponse(
        raw=raw,
        material=material_count(board),
        cp=evaluate(board),
        wdl=list(wdl(raw, board)),
    )
