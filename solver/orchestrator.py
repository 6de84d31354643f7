# Orchestrator: bin-count minimization over the backtracking fitter
from __future__ import annotations

import logging
import time
from dataclasses import replace
from typing import Any, Callable, Iterable, List, Optional

from config import CFG
from models import Solution, Status
from progress import (
    set_attempt, set_best_bins, set_elapsed, set_item_count, set_progress_pct,
    set_status, log_attempt_detail,
)
from solver.constructive import first_fit_decreasing
from solver.fitter import Fitter, deadline_predicate
from solver.watchdog import solve_with_watchdog

logger = logging.getLogger(__name__)

ENGINES = ("backtracking", "cp-sat")


# ---------- helpers ----------

def _all_of(*predicates: Optional[Callable[[], bool]]) -> Callable[[], bool]:
    active = [p for p in predicates if p is not None]

    def _check() -> bool:
        return all(p() for p in active)

    return _check


def _deadline_from_timeout(timeout: Optional[float]) -> Optional[float]:
    if timeout is None:
        return None
    try:
        seconds = float(timeout)
    except (TypeError, ValueError):
        return None
    if seconds <= 0:
        return None
    return time.monotonic() + seconds


def _fmt_bins(count: int) -> str:
    return f"{count} bin" if count == 1 else f"{count} bins"


# ---------- minimization driver ----------

def minimize_bins(
    weights: Iterable[Any],
    capacity: Any,
    *,
    minimize: bool = True,
    deadline: Optional[float] = None,
    should_continue: Optional[Callable[[], bool]] = None,
    on_solution: Optional[Callable[[Solution], None]] = None,
    on_attempt: Optional[Callable[[int], None]] = None,
    on_progress: Optional[Callable[[float], None]] = None,
    seed: Optional[bool] = None,
    canonical_order: Optional[bool] = None,
) -> Solution:
    """Search for the fewest bins of ``capacity`` holding all ``weights``.

    Starts from one bin per item and, after every success, retries with one
    bin fewer than the solution actually used.  Stops at the first proven
    infeasible count (the previous solution is then minimal), when
    ``minimize`` is off and a first solution exists, or when ``deadline``
    (absolute ``time.monotonic()``) or ``should_continue`` interrupts the
    search.  An interrupted run keeps its last solution with
    ``proven_minimal=False``, or reports UNKNOWN if it had none.
    """
    t0 = time.monotonic()
    items: List[Any] = list(weights)
    solution = Solution()

    def _finish(result: Solution) -> Solution:
        result.elapsed_sec = time.monotonic() - t0
        return result

    def _record(found: Solution) -> None:
        logger.info("Solved with %s", _fmt_bins(found.bin_count))
        if on_solution is not None:
            on_solution(found)

    if items and max(items) > capacity:
        logger.info("Item %r exceeds the bin capacity %r", max(items), capacity)
        solution.insert(Status.UNSOLVABLE)
        return _finish(solution)

    if seed is None:
        seed = bool(getattr(CFG, "CONSTRUCTIVE_SEED", False))

    max_bins = len(items)
    if seed and minimize and items:
        greedy = first_fit_decreasing(items, capacity)
        if greedy is not None:
            solution = Solution(Status.SOLVED, greedy)
            _record(solution)
            max_bins = len(greedy) - 1

    keep_going = _all_of(deadline_predicate(deadline), should_continue)
    total_weight = sum(items)

    while True:
        if solution.solved and max_bins <= 0:
            solution = replace(solution, proven_minimal=True)
            break

        logger.info("Trying to fit in %s", _fmt_bins(max_bins))
        if on_attempt is not None:
            on_attempt(max_bins)

        if total_weight > capacity * max_bins:
            if solution.solved:
                solution = replace(solution, proven_minimal=True)
            solution.insert(Status.UNSOLVABLE)
            break

        fitter = Fitter(items, [capacity] * max_bins, canonical_order=canonical_order)
        if not fitter.run_until(keep_going, on_progress=on_progress):
            logger.info(
                "Interrupted while fitting %s after %d steps",
                _fmt_bins(max_bins),
                fitter.steps,
            )
            break

        if fitter.is_solved():
            used = fitter.used_bins()
            solution = Solution(Status.SOLVED, used)
            _record(solution)
            if not minimize:
                break
            max_bins = len(used) - 1
            continue

        logger.info("No assignment into %s exists", _fmt_bins(max_bins))
        if solution.solved:
            solution = replace(solution, proven_minimal=True)
        solution.insert(Status.UNSOLVABLE)
        break

    return _finish(solution)


# ---------- public entrypoint ----------

def _run_engine(
    engine: str,
    weights: List[Any],
    capacity: Any,
    *,
    minimize: bool,
    deadline: Optional[float],
    should_continue: Optional[Callable[[], bool]],
    on_solution: Callable[[Solution], None],
) -> Solution:
    if engine == "cp-sat":
        from solver.cp_sat import solve_cp_sat

        remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
        found = solve_cp_sat(weights, capacity, max_seconds=remaining, minimize=minimize)
        if found.solved:
            on_solution(found)
        return found

    def _on_attempt(count: int) -> None:
        set_attempt(_fmt_bins(count))

    return minimize_bins(
        weights,
        capacity,
        minimize=minimize,
        deadline=deadline,
        should_continue=should_continue,
        on_solution=on_solution,
        on_attempt=_on_attempt,
        on_progress=set_progress_pct,
    )


def solve_orchestrator(
    capacity: Any,
    weights: Iterable[Any],
    *,
    minimize: Optional[bool] = None,
    timeout: Optional[float] = None,
    engine: Optional[str] = None,
    watchdog: bool = False,
) -> Solution:
    """Solve one problem end to end, publishing progress as it goes.

    ``engine`` picks the backtracking fitter or the CP-SAT model; ``watchdog``
    runs the search on a worker thread supervised by a deadline watchdog
    instead of polling the deadline between steps on the calling thread.
    """
    items = list(weights)
    if minimize is None:
        minimize = bool(getattr(CFG, "MINIMIZE", True))
    if timeout is None:
        timeout = getattr(CFG, "TIMEOUT", None)
    engine = (engine or getattr(CFG, "ENGINE", "backtracking") or "backtracking").lower()
    if engine not in ENGINES:
        raise ValueError(f"unknown engine {engine!r}; expected one of {', '.join(ENGINES)}")

    t0 = time.monotonic()
    set_status("Solving")
    set_item_count(len(items))
    log_attempt_detail(
        "Solve requested",
        engine=engine,
        items=len(items),
        capacity=capacity,
        minimize=minimize,
        timeout=timeout or None,
        watchdog=watchdog,
    )

    def _published(found: Solution) -> None:
        set_best_bins(found.bin_count)

    if watchdog and engine == "cp-sat":
        logger.info("Watchdog ignored for cp-sat; the solver enforces its own time limit")

    if watchdog and engine == "backtracking":
        def _run(keep_going: Callable[[], bool], publish: Callable[[Solution], None]) -> Solution:
            def _both(found: Solution) -> None:
                publish(found)
                _published(found)

            return _run_engine(
                engine, items, capacity,
                minimize=minimize, deadline=None,
                should_continue=keep_going, on_solution=_both,
            )

        seconds = None if not timeout or float(timeout) <= 0 else float(timeout)
        solution = solve_with_watchdog(_run, seconds)
    else:
        solution = _run_engine(
            engine, items, capacity,
            minimize=minimize, deadline=_deadline_from_timeout(timeout),
            should_continue=None, on_solution=_published,
        )

    elapsed = time.monotonic() - t0
    if solution.elapsed_sec <= 0:
        solution.elapsed_sec = elapsed
    set_elapsed(elapsed)
    log_attempt_detail(
        "Solve finished",
        status=solution.status.value,
        bins=solution.bin_count if solution.solved else None,
        minimal=solution.proven_minimal if solution.solved else None,
        elapsed=f"{elapsed:.2f}s",
    )
    return solution


__all__ = ["minimize_bins", "solve_orchestrator", "ENGINES"]
