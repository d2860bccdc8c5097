#!/usr/bin/env python3
"""
Benchmark: leaves evaluated and time per relocation plan.

Runs the UCI engine on a fixed set of quiet positions with the
MovementPattern rule (AnyVacant on a full roster is far too large to time),
issues "relocate" and reads the summary "info string relocate" line. Run it
before and after touching the planner or the evaluation to compare leaf
throughput.

Usage: python3 tools/bench.py
"""
import subprocess
import sys
import os

REPO = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
PYTHON = sys.executable
ENGINE = os.path.join(REPO, "interface", "uci.py")

# Closed positions, White to move (the default roster is White's pieces),
# keep the movement-pattern tree small. Fixed forever so numbers stay
# comparable across versions.
POSITIONS = [
    ("Start",       "startpos"),
    ("1.e4 e5",     "startpos moves e2e4 e7e5"),
    ("1.d4 d5",     "startpos moves d2d4 d7d5"),
    ("1.c4 c5",     "startpos moves c2c4 c7c5"),
    ("1.Nf3 Nf6",   "startpos moves g1f3 g8f6"),
]


def run_position(label: str, pos_spec: str) -> dict:
    """Run "relocate" on one position and return its metrics.

    Args:
        label: Human-readable position name for display.
        pos_spec: UCI position string (e.g. "startpos" or "fen <FEN>").

    Returns:
        Dict with keys: label, plan, before, after, nodes, leaves, time_ms.
    """
    env = {**os.environ, "PYTHONPATH": REPO}
    proc = subprocess.Popen(
        [PYTHON, ENGINE],
        stdin=subprocess.PIPE,
        stdout=subprocess.PIPE,
        stderr=subprocess.DEVNULL,
        text=True,
        env=env,
    )
    cmds = (
        "uci\n"
        "setoption name RelocationRule value MovementPattern\n"
        "isready\n"
        f"position {pos_spec}\n"
        "relocate\n"
    )
    proc.stdin.write(cmds)
    proc.stdin.flush()

    result = {"label": label, "plan": "(none)", "before": "", "after": "",
              "nodes": 0, "leaves": 0, "time_ms": 0}
    for line in proc.stdout:
        line = line.strip()
        if line.startswith("current evaluation is"):
            result["before"] = line.split()[-1]
        elif line.startswith("relocations"):
            result["plan"] = line.split(maxsplit=1)[1]
        elif line.startswith("now evaluation is"):
            result["after"] = line.split()[-1]
        elif line.startswith("info string relocate"):
            parts = line.split()

            def _get(key: str) -> int:
                try:
                    return int(parts[parts.index(key) + 1])
                except (ValueError, IndexError):
                    return 0

            result["nodes"] = _get("nodes")
            result["leaves"] = _get("leaves")
            result["time_ms"] = _get("time")
            break

    proc.stdin.write("quit\n")
    proc.stdin.flush()
    proc.wait(timeout=5)
    return result


def main() -> None:
    """Run all benchmark positions and print a summary table."""
    print(f"Relocator benchmark — {PYTHON}")
    print(f"Engine: {ENGINE}")
    print()
    print(
        f"{'Position':<12} {'Before':>7} {'After':>7} {'Leaves':>9} "
        f"{'Nodes':>9} {'Time(ms)':>9} {'Leaves/s':>9}  Plan"
    )
    print("-" * 96)

    total_leaves = total_ms = 0
    for label, pos in POSITIONS:
        r = run_position(label, pos)
        rate = r["leaves"] * 1000 // max(1, r["time_ms"])
        total_leaves += r["leaves"]
        total_ms += r["time_ms"]
        print(
            f"{r['label']:<12} {r['before']:>7} {r['after']:>7} {r['leaves']:>9,} "
            f"{r['nodes']:>9,} {r['time_ms']:>9,} {rate:>9,}  {r['plan']}"
        )

    print("-" * 96)
    print(f"{'TOTAL':<12} {'':>7} {'':>7} {total_leaves:>9,} {'':>9} {total_ms:>9,} "
          f"{total_leaves * 1000 // max(1, total_ms):>9,}")


if __name__ == "__main__":
    main()
