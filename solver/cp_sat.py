import logging
import time
from typing import Any, Dict, Iterable, List, Optional, Tuple

from ortools.sat.python import cp_model as _cp

from config import CFG
from models import Bin, Solution, Status
from solver.constructive import first_fit_decreasing

logger = logging.getLogger(__name__)

# ---------------- helpers ----------------

def _as_int_weights(weights: Iterable[Any]) -> Tuple[bool, List[int], Optional[str]]:
    out: List[int] = []
    for w in weights:
        try:
            iv = int(w)
        except (TypeError, ValueError):
            return False, [], f"Bad weight: {w!r} is not an integer"
        if iv != w:
            return False, [], f"Bad weight: {w!r} is not an integer"
        out.append(iv)
    return True, out, None


def _workers() -> int:
    try:
        return max(1, int(getattr(CFG, "CP_SAT_WORKERS", 1)))
    except (TypeError, ValueError):
        return 1


def build_model(
    weights: List[int],
    capacity: int,
    max_bins: int,
    *,
    minimize: bool = True,
) -> Tuple[_cp.CpModel, Dict[Tuple[int, int], Any], List[Any]]:
    """Assignment model: ``x[i, j]`` item i in bin j, ``used[j]`` bin j open.

    Open bins form a prefix (``used[j] >= used[j + 1]``) so the solver does not
    revisit relabelled copies of the same packing.  Item ``i`` may only go to
    bins ``0..i``, which removes the remaining bin permutations.
    """
    model = _cp.CpModel()
    n = len(weights)

    x: Dict[Tuple[int, int], Any] = {}
    for i in range(n):
        for j in range(min(i + 1, max_bins)):
            x[i, j] = model.NewBoolVar(f"item_{i}_in_bin_{j}")
    used = [model.NewBoolVar(f"bin_{j}_used") for j in range(max_bins)]

    for i in range(n):
        model.AddExactlyOne(x[i, j] for j in range(min(i + 1, max_bins)))

    for j in range(max_bins):
        members = [(i, x[i, j]) for i in range(n) if (i, j) in x]
        model.Add(sum(weights[i] * var for i, var in members) <= capacity * used[j])
        for _, var in members:
            model.AddImplication(var, used[j])

    for j in range(max_bins - 1):
        model.Add(used[j] >= used[j + 1])

    if minimize:
        model.Minimize(sum(used))
    return model, x, used


def solve_cp_sat(
    weights: Iterable[Any],
    capacity: Any,
    *,
    max_bins: Optional[int] = None,
    max_seconds: Optional[float] = None,
    minimize: bool = True,
) -> Solution:
    """Bin packing through CP-SAT; integer weights only.

    ``max_bins`` defaults to the first-fit-decreasing count, which is always
    feasible.  OPTIMAL maps to a proven-minimal solution, FEASIBLE to an
    unproven one, INFEASIBLE to UNSOLVABLE and anything else to UNKNOWN.
    """
    t0 = time.monotonic()

    def _finish(solution: Solution) -> Solution:
        solution.elapsed_sec = time.monotonic() - t0
        return solution

    ok, items, reason = _as_int_weights(weights)
    if not ok:
        raise ValueError(reason)
    ok, cap_list, reason = _as_int_weights([capacity])
    if not ok:
        raise ValueError(reason.replace("weight", "capacity"))
    cap = cap_list[0]

    if not items:
        return _finish(Solution(Status.SOLVED, [], proven_minimal=True))
    if max(items) > cap:
        return _finish(Solution(Status.UNSOLVABLE))

    # Largest first, matching the symmetry restriction in build_model.
    items.sort(reverse=True)

    if max_bins is None:
        greedy = first_fit_decreasing(items, cap)
        max_bins = len(greedy) if greedy else len(items)
    max_bins = max(0, int(max_bins))
    if sum(items) > cap * max_bins:
        return _finish(Solution(Status.UNSOLVABLE))

    model, x, used = build_model(items, cap, max_bins, minimize=minimize)

    solver = _cp.CpSolver()
    solver.parameters.num_workers = _workers()
    if max_seconds is not None:
        if float(max_seconds) <= 0:
            return _finish(Solution(Status.UNKNOWN))
        solver.parameters.max_time_in_seconds = float(max_seconds)

    status = solver.Solve(model)
    logger.info(
        "CP-SAT finished with %s in %.2fs for %d items, %d bins",
        solver.StatusName(status),
        solver.WallTime(),
        len(items),
        max_bins,
    )

    if status == _cp.INFEASIBLE:
        return _finish(Solution(Status.UNSOLVABLE))
    if status not in (_cp.OPTIMAL, _cp.FEASIBLE):
        return _finish(Solution(Status.UNKNOWN))

    bins: List[Bin] = []
    for j in range(max_bins):
        b = Bin(cap)
        for i, w in enumerate(items):
            if (i, j) in x and solver.Value(x[i, j]):
                b.push(w)
        if not b.is_empty():
            bins.append(b)

    proven = minimize and status == _cp.OPTIMAL
    return _finish(Solution(Status.SOLVED, bins, proven_minimal=proven))


__all__ = ["build_model", "solve_cp_sat"]
