"""
UCI (Universal Chess Interface) protocol handler.

The engine reads text commands from stdin and writes responses to stdout.
Every output line is flushed immediately, since GUIs read line by line.

Protocol overview:
    GUI -> Engine: uci, isready, ucinewgame, setoption, position, go, stop, quit
    Engine -> GUI: id, option, uciok, readyok, info, bestmove

Non-standard commands (for terminal use, never during a search):
    d          print the board, FEN and hash key
    eval       print the evaluation trace of the current position
    flip       mirror the position (colours swapped)
    bench [n]  fixed-depth search over the bench positions, totals on stderr
    relocate   plan and commit the best piece relocations for the configured
               roster, printing the evaluation before and after (alias CS433)

Threading model:
    The loop runs on the main thread. "go" starts the search on a daemon
    thread so "stop" can be handled while it runs. Everything else,
    "relocate" included, runs synchronously on the main thread.

stdout carries protocol lines only. Diagnostics go through logging to stderr,
and to the "Debug Log File" when that option is set.
"""

import functools
import logging
import sys
import os
import threading
import time
from dataclasses import dataclass
from typing import Optional

# ---------------------------------------------------------------------------
# Path setup: make 'relocator' importable when this script is run directly
# (python interface/uci.py from the repo root).
# ---------------------------------------------------------------------------
_REPO_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if _REPO_ROOT not in sys.path:
    sys.path.insert(0, _REPO_ROOT)

import chess
import chess.polyglot

from interface.options import Option, OptionsMap
from relocator.board import RelocationRule
from relocator.constants import BENCH_DEPTH, CHECKMATE_SCORE, DEFAULT_ROSTER, MAX_DEPTH
from relocator.evaluate import (
    evaluate,
    material_count,
    raw_evaluate,
    win_rate_params,
    wdl,
)
from relocator.model import load_model
from relocator.perft import divide
from relocator.planner import PlannerContext, relocate
from relocator.search import get_best_move

ENGINE_NAME = "Relocator 1.0"
ENGINE_AUTHOR = "Chess Relocator Project"

START_FEN = chess.STARTING_FEN

BENCH_FENS = [
    START_FEN,
    "rnbqkbnr/pppp1ppp/8/4p3/4P3/5N2/PPPP1PPP/RNBQKB1R b KQkq - 1 2",
    "r1bqkb1r/pppp1ppp/2n2n2/4p3/2B1P3/5N2/PPPP1PPP/RNBQK2R w KQkq - 4 4",
    "r2q1rk1/ppp2ppp/2np1n2/2b1p1B1/2B1P1b1/2NP1N2/PPP2PPP/R2Q1RK1 w - - 0 8",
    "6k1/ppp2ppp/8/3p4/3P4/8/PPP2PPP/6K1 w - - 0 1",
    "8/5pk1/6p1/7p/7P/6P1/5PK1/8 w - - 0 1",
]

HELP_TEXT = (
    "\nRelocator is a UCI chess engine front end around a fixed-depth piece"
    "\nrelocation planner. It is normally driven by a GUI or a script through"
    "\nthe UCI protocol; 'relocate' runs the planner on the current position"
    "\nwith the roster set in the RelocationRoster option.\n"
)

_log = logging.getLogger(__name__)
_io_log = logging.getLogger(__name__ + ".io")
_io_log.propagate = False


def _send(line: str) -> None:
    """Write one protocol line to stdout and flush."""
    print(line, flush=True)
    _io_log.debug("<< %s", line)


def _start_logger(path: str) -> None:
    """Mirror all protocol I/O into ``path``; an empty path stops mirroring."""
    for handler in list(_io_log.handlers):
        _io_log.removeHandler(handler)
        handler.close()

    if not path:
        return

    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setFormatter(logging.Formatter("%(message)s"))
    _io_log.addHandler(handler)
    _io_log.setLevel(logging.DEBUG)


def parse_roster(text: str) -> list[Optional[chess.Square]]:
    """
    Parse a roster such as "a1 b1 c1 d1 f1 g1 h1".

    "-" marks an unavailable slot.

    Raises:
        ValueError: A token is not a square name.
    """
    return [None if token == "-" else chess.parse_square(token.lower()) for token in text.split()]


def format_roster(roster) -> str:
    return " ".join("-" if sq is None else chess.square_name(sq) for sq in roster)


@dataclass
class SearchLimits:
    """Parameters of a "go" command."""

    depth: Optional[int] = None
    movetime: Optional[int] = None
    wtime: Optional[int] = None
    btime: Optional[int] = None
    winc: int = 0
    binc: int = 0
    movestogo: Optional[int] = None
    infinite: bool = False
    perft: Optional[int] = None


def parse_limits(tokens: list[str]) -> SearchLimits:
    limits = SearchLimits()
    it = iter(tokens)
    for token in it:
        if token == "infinite":
            limits.infinite = True
        elif token in ("depth", "movetime", "wtime", "btime", "winc", "binc", "movestogo", "perft"):
            value = next(it, None)
            try:
                setattr(limits, token, int(value))
            except (TypeError, ValueError):
                _log.warning("go: bad value for %s: %r", token, value)
    return limits


def _format_score(score: int) -> str:
    if abs(score) >= CHECKMATE_SCORE - MAX_DEPTH:
        ply = CHECKMATE_SCORE - abs(score)
        moves = (ply + 1) // 2
        return f"mate {moves if score > 0 else -moves}"
    return f"cp {score}"


def _pawns(cp: int) -> str:
    return f"{cp / 100:+.2f}"


class UciHandler:
    """
    Stateful handler for the UCI protocol.

    Attributes:
        board:         Current position, set by "position".
        search_thread: Running "go" search, or None.
        stop_event:    Shared with the search thread; set to stop it.
        options:       The option table advertised by "uci".
        raw_evaluator: Raw oracle behind the static evaluation (PeSTO, or an
                       EvalFile model).
    """

    def __init__(self) -> None:
        self.board: chess.Board = chess.Board()
        self.search_thread: Optional[threading.Thread] = None
        self.stop_event: threading.Event = threading.Event()
        self.raw_evaluator = raw_evaluate
        self.options = self._build_options()

    def _build_options(self) -> OptionsMap:
        options = OptionsMap()
        options.add(Option("Debug Log File", "string", "", on_change=lambda o: _start_logger(o.value)))
        options.add(Option("EvalFile", "string", "", on_change=self._load_eval_file))
        options.add(Option("Move Overhead", "spin", 10, min=0, max=5000))
        options.add(Option("UCI_ShowWDL", "check", False))
        options.add(Option(
            "RelocationRule",
            "combo",
            RelocationRule.ANY_VACANT.value,
            choices=tuple(rule.value for rule in RelocationRule),
        ))
        options.add(Option(
            "RelocationRoster",
            "string",
            format_roster(DEFAULT_ROSTER),
            on_change=lambda o: parse_roster(o.value),
        ))
        return options

    @property
    def evaluate(self):
        """Static evaluator (board -> cp) using the configured raw oracle."""
        return functools.partial(evaluate, raw=self.raw_evaluator)

    # -----------------------------------------------------------------------
    # Command handlers
    # -----------------------------------------------------------------------

    def handle_uci(self) -> None:
        _send(f"id name {ENGINE_NAME}")
        _send(f"id author {ENGINE_AUTHOR}")
        _send("")
        for option in self.options:
            _send(option.uci())
        _send("uciok")

    def handle_isready(self) -> None:
        _send("readyok")

    def handle_ucinewgame(self) -> None:
        self._stop_search()
        self.board = chess.Board()

    def handle_setoption(self, tokens: list[str]) -> None:
        """
        Parse and apply a "setoption" command.

        Unknown names are reported on stdout; rejected values are logged and
        leave the option unchanged.
        """
        self._stop_search()
        try:
            option = self.options.setoption(tokens)
        except KeyError as e:
            _send(f"No such option: {e.args[0]}")
            return
        except ValueError as e:
            _log.warning("setoption: %s", e)
            return
        _log.debug("option %s = %r", option.name, option.value)

    def handle_position(self, tokens: list[str]) -> None:
        """
        Parse and apply a "position" command.

        Command formats:
            position startpos [moves e2e4 e7e5 ...]
            position fen <FEN> [moves e2e4 e7e5 ...]

        A malformed FEN leaves the current position in place. Replaying stops
        at the first illegal move.
        """
        if not tokens:
            return

        if tokens[0] == "startpos":
            fen = START_FEN
            rest = tokens[1:]
        elif tokens[0] == "fen":
            if "moves" in tokens:
                moves_idx = tokens.index("moves")
                fen = " ".join(tokens[1:moves_idx])
                rest = tokens[moves_idx:]
            else:
                fen = " ".join(tokens[1:])
                rest = []
        else:
            _log.warning("position: unknown position type: %s", tokens[0])
            return

        try:
            board = chess.Board(fen)
        except ValueError as e:
            _log.warning("position: invalid FEN %r: %s", fen, e)
            return

        move_tokens = rest[1:] if rest and rest[0] == "moves" else []
        for uci_move in move_tokens:
            try:
                move = chess.Move.from_uci(uci_move.lower())
            except ValueError:
                _log.warning("position: malformed move: %s", uci_move)
                break
            if move not in board.legal_moves:
                _log.warning("position: illegal move: %s", uci_move)
                break
            board.push(move)

        self.board = board

    def handle_go(self, tokens: list[str]) -> None:
        """
        Parse a "go" command and start the search in a background thread.

        "go perft <n>" counts the move tree instead and runs synchronously.
        """
        self._stop_search()
        limits = parse_limits(tokens)

        if limits.perft is not None:
            self._run_perft(limits.perft)
            return

        time_limit_ms = self._time_budget(limits)
        max_depth = limits.depth if limits.depth else MAX_DEPTH

        self.stop_event = threading.Event()
        board_copy = self.board.copy()
        stop_event = self.stop_event
        evaluate_fn = self.evaluate
        show_wdl = self.options["UCI_ShowWDL"]

        def report(depth: int, score: int, nodes: int, elapsed_ms: int, move: chess.Move) -> None:
            elapsed_ms = max(1, elapsed_ms)
            line = f"info depth {depth} score {_format_score(score)}"
            if show_wdl:
                a, _ = win_rate_params(board_copy)
                w, d, l = wdl(round(score * a / 100), board_copy)
                line += f" wdl {w} {d} {l}"
            nps = nodes * 1000 // elapsed_ms
            _send(f"{line} nodes {nodes} nps {nps} time {elapsed_ms} pv {move.uci()}")

        def search_and_reply() -> None:
            try:
                move, _, _, _ = get_best_move(
                    board_copy,
                    time_limit_ms,
                    stop_event,
                    max_depth=max_depth,
                    evaluate_fn=evaluate_fn,
                    on_iteration=report,
                )
                _send(f"bestmove {move.uci() if move is not None else '(none)'}")
            except Exception:
                _log.exception("search error")
                _send("bestmove (none)")

        self.search_thread = threading.Thread(target=search_and_reply, daemon=True)
        self.search_thread.start()

    def handle_stop(self) -> None:
        self._stop_search()

    def handle_quit(self) -> None:
        self._stop_search()
        sys.exit(0)

    def handle_display(self) -> None:
        _send("")
        _send(str(self.board))
        _send("")
        _send(f"Fen: {self.board.fen()}")
        _send(f"Key: {chess.polyglot.zobrist_hash(self.board):016X}")
        checkers = " ".join(chess.square_name(sq) for sq in self.board.checkers())
        _send(f"Checkers: {checkers}")

    def handle_eval(self) -> None:
        """Print how the static evaluation of the current position is built."""
        raw = self.raw_evaluator(self.board)
        a, b = win_rate_params(self.board)
        cp = evaluate(self.board, raw=self.raw_evaluator)
        white_cp = cp if self.board.turn == chess.WHITE else -cp
        w, d, l = wdl(raw, self.board)

        _send("")
        _send(f"Raw evaluation     {raw:+d} (side to move)")
        _send(f"Material count     {material_count(self.board)}")
        _send(f"Win-rate a, b      {a:.2f}, {b:.2f}")
        _send(f"WDL (side to move) {w} {d} {l}")
        _send(f"Final evaluation   {_pawns(white_cp)} (white side)")

    def handle_flip(self) -> None:
        self.board = self.board.mirror()

    def handle_bench(self, tokens: list[str]) -> None:
        """Search every bench position to a fixed depth and report totals on stderr."""
        self._stop_search()
        try:
            depth = int(tokens[0]) if tokens else BENCH_DEPTH
        except ValueError:
            _log.warning("bench: bad depth %r", tokens[0])
            return

        nodes = 0
        start = time.monotonic()
        for i, fen in enumerate(BENCH_FENS, start=1):
            print(f"\nPosition: {i}/{len(BENCH_FENS)} ({fen})", file=sys.stderr, flush=True)
            board = chess.Board(fen)
            _, _, _, searched = get_best_move(
                board, float("inf"), threading.Event(), max_depth=depth, evaluate_fn=self.evaluate
            )
            nodes += searched
        elapsed_ms = int((time.monotonic() - start) * 1000) + 1

        print(
            "\n==========================="
            f"\nTotal time (ms) : {elapsed_ms}"
            f"\nNodes searched  : {nodes}"
            f"\nNodes/second    : {1000 * nodes // elapsed_ms}",
            file=sys.stderr,
            flush=True,
        )

    def handle_relocate(self) -> None:
        """
        Plan and commit the best relocations for the configured roster.

        Prints the evaluation before, the relocations, the evaluation after
        with its "eval" trace, and the resulting FEN. The current position is
        replaced by the relocated one.
        """
        self._stop_search()
        roster = parse_roster(self.options["RelocationRoster"])
        context = PlannerContext(
            evaluate=self.evaluate,
            rule=RelocationRule(self.options["RelocationRule"]),
        )

        report = relocate(self.board, roster, context)

        _send(f"current evaluation is {_pawns(report.before)}")
        _send(f"relocations {report.plan.uci()}")
        _send(f"now evaluation is {_pawns(report.after)}")
        self.handle_eval()
        _send(f"fen {self.board.fen()}")
        _send(
            f"info string relocate nodes {report.nodes} leaves {report.leaves} "
            f"score {report.plan.score} time {report.elapsed_ms}"
        )

    def handle_help(self) -> None:
        _send(HELP_TEXT)

    def handle_command(self, line: str) -> None:
        """Dispatch one input line. Errors are logged; the loop keeps running."""
        _io_log.debug(">> %s", line)
        tokens = line.split()
        if not tokens:
            return
        command, args = tokens[0], tokens[1:]

        try:
            if command == "uci":
                self.handle_uci()
            elif command == "isready":
                self.handle_isready()
            elif command == "ucinewgame":
                self.handle_ucinewgame()
            elif command == "setoption":
                self.handle_setoption(args)
            elif command == "position":
                self.handle_position(args)
            elif command == "go":
                self.handle_go(args)
            elif command == "stop":
                self.handle_stop()
            elif command == "quit":
                self.handle_quit()
            elif command == "d":
                self.handle_display()
            elif command == "eval":
                self.handle_eval()
            elif command == "flip":
                self.handle_flip()
            elif command == "bench":
                self.handle_bench(args)
            elif command in ("relocate", "CS433"):
                self.handle_relocate()
            elif command in ("help", "--help", "license", "--license"):
                self.handle_help()
            elif not command.startswith("#"):
                _send(f"Unknown command: '{line}'. Type help for more information.")
        except Exception:
            _log.exception("unhandled error for command %r", command)

    # -----------------------------------------------------------------------
    # Internal helpers
    # -----------------------------------------------------------------------

    def _load_eval_file(self, option: Option) -> None:
        if not option.value:
            self.raw_evaluator = raw_evaluate
            return
        try:
            self.raw_evaluator = load_model(option.value)
        except OSError as e:
            raise ValueError(f"cannot read EvalFile {option.value}: {e}") from e

    def _stop_search(self) -> None:
        self.stop_event.set()
        if self.search_thread is not None and self.search_thread.is_alive():
            self.search_thread.join(timeout=2.0)
        self.search_thread = None

    def _run_perft(self, depth: int) -> None:
        total = 0
        for move, count in divide(self.board, depth):
            _send(f"{move.uci()}: {count}")
            total += count
        _send("")
        _send(f"Nodes searched: {total}")
        _send("")

    def _time_budget(self, limits: SearchLimits) -> float:
        """
        Milliseconds the search may use.

        movetime wins; otherwise the clock of the side to move is split over
        movestogo (default 40) moves plus the increment. Move Overhead is
        subtracted from both. depth-only and infinite searches are unbounded.
        """
        overhead = self.options["Move Overhead"]
        if limits.infinite:
            return float("inf")
        if limits.movetime is not None:
            return max(1, limits.movetime - overhead)

        white = self.board.turn == chess.WHITE
        time_left = limits.wtime if white else limits.btime
        increment = limits.winc if white else limits.binc
        if time_left is not None:
            moves_to_go = limits.movestogo or 40
            return max(1, time_left // moves_to_go + increment - overhead)

        return float("inf")


def run_uci_loop(argv: Optional[list[str]] = None) -> None:
    """
    Read commands from stdin until "quit" or end of input.

    Command-line arguments, when given, are run as one single command
    instead (e.g. ``python interface/uci.py bench 2``).
    """
    handler = UciHandler()

    if argv:
        handler.handle_command(" ".join(argv))
        if handler.search_thread is not None:
            handler.search_thread.join()
        return

    for raw_line in sys.stdin:
        handler.handle_command(raw_line.strip())

    # End of input counts as "quit".
    handler.handle_stop()


def main() -> None:
    logging.basicConfig(
        stream=sys.stderr,
        level=logging.WARNING,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )
    run_uci_loop(sys.argv[1:])


if __name__ == "__main__":
    main()
