"""
Compile a course CSV into a prerequisite graph and report diagnostics.

Expected columns: course_id, course_name, credits, prereq_expression

Usage:
    python scripts/compile_courses.py --path courses.csv
    python scripts/compile_courses.py --path courses.csv --out graph.json
    python scripts/compile_courses.py --path courses.csv --strict
"""

import argparse
import json
import os
import sys

try:
    import pandas as pd
except ImportError as e:
    sys.exit(f"Missing dependency: {e}. Run: pip install pandas")

sys.path.insert(0, os.path.join(os.path.dirname(os.path.abspath(__file__)), "..", "backend"))

from data_loader import compile_rows  # noqa: E402
from validators import validate_graph  # noqa: E402


def compile_csv(path: str, max_clauses: int | None = None) -> dict:
    """Read the CSV as text columns and compile it. Raises FileNotFoundError."""
    df = pd.read_csv(path, dtype=str, keep_default_na=False)
    df.columns = [str(c).strip() for c in df.columns]
    return compile_rows(df, graph_id=os.path.splitext(os.path.basename(path))[0], max_clauses=max_clauses)


def summarize(result: dict) -> str:
    graph = result["graph"]
    grouped = sum(1 for e in graph["edges"] if e.get("groupingId"))
    lines = [
        f"[OK] nodes={len(graph['nodes'])} edges={len(graph['edges'])} "
        f"grouped_edges={grouped} diagnostics={len(result['diagnostics'])}"
    ]
    for d in result["diagnostics"]:
        lines.append(f"  [WARN] {d}")
    return "\n".join(lines)


def main(args=None) -> int:
    parser = argparse.ArgumentParser(description="Compile course rows into a prerequisite graph.")
    parser.add_argument("--path", type=str, required=True, help="Path to the course CSV.")
    parser.add_argument("--out", type=str, help="Write the compiled graph JSON here.")
    parser.add_argument("--max-clauses", type=int, default=0, help="DNF clause cap per expression (0 = none).")
    parser.add_argument("--strict", action="store_true", help="Exit non-zero when diagnostics are present.")
    opts = parser.parse_args(args)

    try:
        result = compile_csv(opts.path, max_clauses=opts.max_clauses or None)
    except FileNotFoundError:
        print(f"[FATAL] File not found: {opts.path}", file=sys.stderr)
        return 1
    except ValueError as exc:
        print(f"[FATAL] Failed to compile {opts.path}: {exc}", file=sys.stderr)
        return 1

    print(summarize(result))

    check = validate_graph(result["graph"])
    for err in check["errors"]:
        print(f"  [ERROR] {err}", file=sys.stderr)

    if opts.out:
        with open(opts.out, "w", encoding="utf-8") as f:
            json.dump(result["graph"], f, indent=2)
        print(f"[OK] Wrote {opts.out}")

    if not check["valid"]:
        return 1
    if opts.strict and result["diagnostics"]:
        return 2
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
