# solver/watchdog.py — worker thread + deadline watchdog
"""Run a search on a worker thread and collect its best result on time.

The worker only ever publishes complete solutions into the shared slot.  It
sets ``finished`` exactly once, after its last write, so a watchdog that wakes
up on that event always reads the final answer; one that times out cancels
the worker, waits for it to stop at its next step boundary and then reads the
best solution published so far.
"""
from __future__ import annotations

import logging
import threading
from dataclasses import replace
from typing import Callable, List, Optional

from models import Solution, Status

logger = logging.getLogger(__name__)

# run(should_continue, on_solution) -> final Solution
SearchRun = Callable[[Callable[[], bool], Callable[[Solution], None]], Solution]


class BestSolutionSlot:
    """Lock-guarded holder for the most recent fully solved result."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._solution: Optional[Solution] = None
        self._writes = 0

    def put(self, solution: Solution) -> None:
        with self._lock:
            self._solution = solution
            self._writes += 1

    def take(self) -> Optional[Solution]:
        with self._lock:
            return self._solution

    @property
    def writes(self) -> int:
        with self._lock:
            return self._writes


def solve_with_watchdog(
    run: SearchRun,
    timeout: Optional[float] = None,
    *,
    slot: Optional[BestSolutionSlot] = None,
) -> Solution:
    """Execute ``run`` on a worker thread, waiting at most ``timeout`` seconds.

    On timeout the worker is asked to stop at its next step boundary and the
    best published solution is returned with ``proven_minimal`` cleared, or an
    UNKNOWN solution when nothing was solved yet.  Exceptions raised by the
    worker are re-raised here.
    """
    slot = slot or BestSolutionSlot()
    finished = threading.Event()
    cancelled = threading.Event()
    failures: List[BaseException] = []

    def _keep_going() -> bool:
        return not cancelled.is_set()

    def _worker() -> None:
        try:
            final = run(_keep_going, slot.put)
            # An interrupted run must not hide what it already published.
            if final.status is not Status.UNKNOWN or slot.take() is None:
                slot.put(final)
        except Exception as exc:
            failures.append(exc)
        finally:
            finished.set()

    worker = threading.Thread(target=_worker, name="binfit-worker", daemon=True)
    worker.start()

    if timeout is not None and timeout <= 0:
        timeout = None
    completed = finished.wait(timeout)
    if not completed:
        logger.info("Deadline of %.3fs reached; stopping worker", timeout)
        cancelled.set()
    # Bounded by one search step: the predicate is polled between steps.
    worker.join()

    if failures:
        raise failures[0]

    best = slot.take()
    if best is None:
        return Solution(Status.UNKNOWN)
    if not completed and best.solved:
        best = replace(best, proven_minimal=False)
    return best


__all__ = ["BestSolutionSlot", "solve_with_watchdog"]
