"""
Chess relocation planner package.

Plans a fixed number of piece relocations (a piece lifted onto any vacant
square, one relocation per piece) that maximize a static evaluation, and
provides the evaluation and game search the UCI front end needs.

Modules:
    constants — Piece values, PeSTO tables, win-rate model, planner limits
    evaluate  — Raw PeSTO evaluation and win-rate normalization to centipawns
    model     — Linear EvalFile models usable as the raw evaluator
    board     — Reversible relocations and the destination enumerator
    planner   — Exhaustive fixed-depth relocation search and plan commit
    search    — Negamax / iterative deepening behind "go"
    perft     — Legal move-tree node counting
"""
