"""Helpers for formatting and writing solver outputs."""

from __future__ import annotations

import os
from typing import List

from config import CFG
from models import Solution, Status


def _resolve_output_path(base_dir: str, configured_name: str, fallback: str) -> str:
    """Return the absolute path where an output artifact should be written."""

    name = (configured_name or "").strip() or fallback
    if os.path.isabs(name):
        return name
    return os.path.join(base_dir, name)


def format_solution(solution: Solution, *, values: bool = False) -> List[str]:
    """SAT-solver style report: one ``s`` status line, ``v`` lines per bin."""

    lines = [f"s {solution.status.value}"]
    if solution.status is not Status.SOLVED:
        return lines
    if not solution.proven_minimal:
        count = solution.bin_count
        lines.insert(0, f"c {count} bin{'' if count == 1 else 's'}, not proven minimal")
    if values:
        for b in solution.bins:
            lines.append("v " + " ".join(str(w) for w in b.items))
    return lines


def write_solution(solution: Solution, base_dir: str) -> str:
    """Write the full report (values included) to the configured file."""

    path = _resolve_output_path(base_dir, CFG.SOLUTION_OUT, "solution.txt")
    os.makedirs(os.path.dirname(path), exist_ok=True)

    with open(path, "w", encoding="utf-8") as f:
        for line in format_solution(solution, values=True):
            f.write(line + "\n")
    return path


__all__ = ["format_solution", "write_solution"]
