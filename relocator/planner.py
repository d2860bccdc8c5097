"""
Fixed-depth exhaustive relocation planner.

Given a roster of units (the origin squares of the pieces that may move) the
planner picks PLAN_DEPTH relocations, each unit at most once, that leave the
board with the highest static evaluation. This is single-agent maximization:
there is no opponent reply between relocations, so every ordered selection of
units and every vacant destination is tried, with no pruning.

Search shape:

    depth 0        for each unused unit u, for each destination d:
                       relocate u -> d, recurse, undo
    ...
    depth K        evaluate the board (leaf)

Scoring rules:
    - Every node starts from BASELINE_SCORE (0) with no continuation, and
      only replaces it with a child that scores strictly higher. The first
      line reaching the maximum in enumeration order therefore wins ties.
    - Because the baseline is 0 rather than -infinity, a plan is only
      returned when it is net positive. Otherwise the result is the empty
      plan with score 0, which callers must read as "nothing found".

Cost is (R! / (R-K)!) * V^K leaf evaluations for R usable units and V vacant
squares per level, which with the default roster on a full board is far too
many for interactive use unless the MovementPattern rule narrows V.
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

import chess

from relocator.board import RelocationRule, apply_relocation, list_destinations, relocated
from relocator.constants import BASELINE_SCORE, PLAN_DEPTH
from relocator.evaluate import evaluate

_log = logging.getLogger(__name__)

Roster = Sequence[Optional[chess.Square]]


@dataclass
class PlannerContext:
    """
    Everything a relocation search needs besides the board and the roster.

    Attributes:
        evaluate: Static evaluator, board -> centipawns for the side to move.
                  Called once per leaf.
        rule:     Which vacant squares count as destinations.
        nodes:    Relocations tried during the last search.
        leaves:   Evaluator calls made during the last search.
    """

    evaluate: Callable[[chess.Board], int] = evaluate
    rule: RelocationRule = RelocationRule.ANY_VACANT
    nodes: int = 0
    leaves: int = 0


@dataclass(frozen=True)
class Plan:
    """An ordered sequence of relocations and the leaf score it reaches."""

    moves: tuple[chess.Move, ...] = ()
    score: int = BASELINE_SCORE

    @property
    def found(self) -> bool:
        return bool(self.moves)

    def uci(self) -> str:
        return " ".join(m.uci() for m in self.moves) if self.moves else "(none)"


@dataclass(frozen=True)
class RelocationReport:
    before: int
    plan: Plan
    after: int
    elapsed_ms: int = 0
    nodes: int = 0
    leaves: int = 0


_NOTHING = Plan()


def _usable(board: chess.Board, roster: Roster) -> list[Optional[chess.Square]]:
    # An empty origin, or a square already listed, has nothing left to
    # relocate: treat it as the sentinel.
    units: list[Optional[chess.Square]] = []
    seen = set()
    for sq in roster:
        if sq is None or sq in seen or board.piece_at(sq) is None:
            units.append(None)
        else:
            seen.add(sq)
            units.append(sq)
    return units


def _search(
    board: chess.Board,
    units: list[Optional[chess.Square]],
    used: list[bool],
    line: list[chess.Move],
    depth: int,
    context: PlannerContext,
) -> Plan:
    # The last level scores its leaves in place; a Plan is only built when
    # a line beats the best one so far.
    best = _NOTHING
    for i, origin in enumerate(units):
        if origin is None or used[i]:
            continue

        used[i] = True
        try:
            for target in list_destinations(board, origin, context.rule):
                move = chess.Move(origin, target)
                context.nodes += 1
                line.append(move)
                try:
                    with relocated(board, move):
                        if depth == 1:
                            context.leaves += 1
                            score = context.evaluate(board)
                            if score > best.score:
                                best = Plan(tuple(line), score)
                        else:
                            candidate = _search(board, units, used, line, depth - 1, context)
                            if candidate.score > best.score:
                                best = candidate
                finally:
                    line.pop()
        finally:
            used[i] = False

    return best


def search(
    board: chess.Board,
    roster: Roster,
    context: Optional[PlannerContext] = None,
    depth: int = PLAN_DEPTH,
) -> Plan:
    """
    Exhaustively search ``depth`` relocations of distinct roster units.

    The board is mutated while the search runs and is back in its original
    placement when this returns. Counters on ``context`` are reset first.

    Args:
        board:   Position to plan on. Relocations use set_piece_at, which
                 drops python-chess's move stack; use plan_relocations() to
                 keep the caller's board untouched.
        roster:  Origin squares of the units that may move. None entries, and
                 squares without a piece, are skipped.
        context: Evaluator and destination rule. Defaults to the normalized
                 static evaluation with any vacant square allowed.
        depth:   Number of relocations per plan.

    Returns:
        The best net-positive plan, or the empty Plan (score 0) if no line
        of full depth scores above the baseline.
    """
    if context is None:
        context = PlannerContext()
    context.nodes = 0
    context.leaves = 0

    units = _usable(board, roster)
    usable = sum(1 for u in units if u is not None)
    if depth < 1 or usable < depth:
        _log.debug("relocation search: %d usable units, %d needed", usable, depth)
        return _NOTHING

    _log.debug(
        "relocation search: %d units, depth %d, rule %s",
        usable, depth, context.rule.value,
    )
    plan = _search(board, units, [False] * len(units), [], depth, context)
    _log.debug(
        "relocation search done: nodes=%d leaves=%d score=%d plan=%s",
        context.nodes, context.leaves, plan.score, plan.uci(),
    )
    return plan


def plan_relocations(
    board: chess.Board,
    roster: Roster,
    context: Optional[PlannerContext] = None,
    depth: int = PLAN_DEPTH,
) -> Plan:
    """Search on a private copy of ``board``; the caller's board is unchanged."""
    return search(board.copy(stack=False), roster, context, depth)


def commit(
    board: chess.Board,
    plan: Plan,
    evaluate_fn: Callable[[chess.Board], int] = evaluate,
) -> tuple[int, int]:
    """
    Apply a plan permanently and report the scores before and after.

    Unlike the trial relocations inside the search, nothing is reverted. The
    board's move stack is cleared because the result is no longer reachable
    by legal play.
    """
    before = evaluate_fn(board)
    for move in plan.moves:
        apply_relocation(board, move)
    after = evaluate_fn(board)
    return before, after


def relocate(
    board: chess.Board,
    roster: Roster,
    context: Optional[PlannerContext] = None,
    depth: int = PLAN_DEPTH,
) -> RelocationReport:
    """
    Plan the best relocations for ``roster`` and commit them to ``board``.

    This is the single entry point used by the UCI "relocate" command and the
    HTTP API. When no net-positive plan exists the board is left as it is and
    both scores are equal.
    """
    if context is None:
        context = PlannerContext()

    start = time.monotonic()
    plan = plan_relocations(board, roster, context, depth)
    before, after = commit(board, plan, context.evaluate)
    elapsed_ms = int((time.monotonic() - start) * 1000)

    return RelocationReport(
        before=before,
        plan=plan,
        after=after,
        elapsed_ms=elapsed_ms,
        nodes=context.nodes,
        leaves=context.leaves,
    )
