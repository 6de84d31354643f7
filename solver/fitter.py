# solver/fitter.py — resumable backtracking bin fitter
"""Exact feasibility search for a fixed set of bins.

Items are assigned largest first.  The classic recursive formulation (try a
bin, recurse, undo) is kept on an explicit frame stack so the search can be
paused between any two steps, resumed later, or abandoned when a deadline
passes.  Each frame is one item's placement decision:

``TRY``
    pop the largest pending item and place it in the first acceptable bin at
    or after ``next_bin_index``.
``BACKTRACK``
    the subtree below this frame failed; take the item back out of
    ``bins[next_bin_index - 1]`` and carry on scanning from there.

Two prunings keep the tree small.  At one decision point a residual capacity
is only ever tried once, since bins with the same residual are
interchangeable for every remaining item.  Adjacent bins of the same size are
also kept in non-increasing lexicographic order of their contents.
"""
from __future__ import annotations

import logging
import math
import time
from enum import Enum
from typing import Any, Callable, Iterable, List, Optional, Set, Tuple

from config import CFG
from models import Bin, SearchCorruptedError

logger = logging.getLogger(__name__)

Predicate = Callable[[], bool]
ProgressSink = Callable[[float], None]

# Steps between wall-clock reads for the progress report.
_CLOCK_STRIDE = 256


class Mode(Enum):
    TRY = "try"
    BACKTRACK = "backtrack"


class EngineState(Enum):
    RUNNING = "running"
    SOLVED = "solved"
    EXHAUSTED = "exhausted"


class Frame:
    __slots__ = ("next_bin_index", "tried", "mode")

    def __init__(self) -> None:
        self.next_bin_index = 0
        self.tried: Set[Any] = set()
        self.mode = Mode.TRY

    def __repr__(self) -> str:
        return (
            f"Frame(next_bin_index={self.next_bin_index}, "
            f"tried={sorted(self.tried)!r}, mode={self.mode.value})"
        )


def _always() -> bool:
    return True


def deadline_predicate(deadline: Optional[float]) -> Predicate:
    """Continue-predicate for an absolute ``time.monotonic()`` deadline."""
    if deadline is None:
        return _always
    return lambda: time.monotonic() < deadline


class Fitter:
    def __init__(
        self,
        items: Iterable[Any],
        bin_capacities: Iterable[Any],
        *,
        canonical_order: Optional[bool] = None,
    ):
        self._pending: List[Any] = sorted(items)
        self._bins: List[Bin] = [Bin(c) for c in bin_capacities]
        self._frames: List[Frame] = [Frame()]
        if canonical_order is None:
            canonical_order = bool(getattr(CFG, "CANONICAL_ORDER", True))
        self.canonical_order = canonical_order

        self.steps = 0
        self.last_run_interrupted = False
        self._initial_pending = len(self._pending)
        self._min_pending = self._initial_pending

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def bins(self) -> List[Bin]:
        return self._bins

    @property
    def pending(self) -> Tuple[Any, ...]:
        return tuple(self._pending)

    @property
    def depth(self) -> int:
        return len(self._frames)

    @property
    def frames(self) -> Tuple[Frame, ...]:
        return tuple(self._frames)

    @property
    def state(self) -> EngineState:
        if not self._pending:
            return EngineState.SOLVED
        if not self._frames:
            return EngineState.EXHAUSTED
        return EngineState.RUNNING

    def is_solved(self) -> bool:
        return self.state is EngineState.SOLVED

    def is_exhausted(self) -> bool:
        return self.state is EngineState.EXHAUSTED

    def used_bins(self) -> List[Bin]:
        return [b for b in self._bins if not b.is_empty()]

    def progress_pct(self) -> float:
        """Best depth reached so far on a log scale; a UI hint only."""
        if self.is_solved() or self._initial_pending == 0:
            return 100.0
        remaining = math.log1p(self._min_pending)
        return max(0.0, 100.0 * (1.0 - remaining / math.log1p(self._initial_pending)))

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    def _breaks_order(self, idx: int, item: Any) -> bool:
        if not self.canonical_order or idx == 0:
            return False
        prev = self._bins[idx - 1]
        current = self._bins[idx]
        if prev.size != current.size:
            return False
        return current.items + (item,) > prev.items

    def step(self) -> bool:
        """Advance the search by one placement attempt.

        Returns ``True`` while more steps can change the outcome; ``False``
        once the engine is solved or exhausted.
        """
        if self.state is not EngineState.RUNNING:
            return False

        self.steps += 1
        frame = self._frames.pop()

        if frame.mode is Mode.BACKTRACK:
            placed = self._bins[frame.next_bin_index - 1].pop()
            if placed is None:
                raise SearchCorruptedError(
                    f"backtracking into empty bin {frame.next_bin_index - 1}"
                )
            self._pending.append(placed)
            frame.mode = Mode.TRY

        item = self._pending.pop()
        for idx in range(frame.next_bin_index, len(self._bins)):
            candidate = self._bins[idx]
            if not candidate.fits(item):
                continue
            if candidate.capacity in frame.tried:
                continue
            if self._breaks_order(idx, item):
                continue

            frame.tried.add(candidate.capacity)
            candidate.push(item)
            frame.next_bin_index = idx + 1
            frame.mode = Mode.BACKTRACK
            self._frames.append(frame)
            self._frames.append(Frame())
            return self.state is EngineState.RUNNING

        # No bin takes the item under the current partial assignment; the
        # frame below now has to move its own item.
        self._pending.append(item)
        return self.state is EngineState.RUNNING

    def run_until(
        self,
        predicate: Optional[Predicate] = None,
        *,
        on_progress: Optional[ProgressSink] = None,
    ) -> bool:
        """Step while ``predicate()`` holds and the search is undecided.

        Returns ``False`` if the predicate stopped the loop (the engine is
        left resumable), ``True`` once the engine is solved or exhausted.
        """
        keep_going = predicate or _always
        try:
            interval = float(getattr(CFG, "PROGRESS_INTERVAL", 1.0))
        except (TypeError, ValueError):
            interval = 1.0
        last_report = time.monotonic()

        while self.state is EngineState.RUNNING:
            if not keep_going():
                self.last_run_interrupted = True
                self._report(on_progress)
                return False

            self.step()
            pending = len(self._pending)
            if pending < self._min_pending:
                self._min_pending = pending

            if self.steps % _CLOCK_STRIDE == 0:
                now = time.monotonic()
                if now - last_report >= interval:
                    last_report = now
                    self._report(on_progress)

        self.last_run_interrupted = False
        self._report(on_progress)
        return True

    def _report(self, on_progress: Optional[ProgressSink]) -> None:
        pct = self.progress_pct()
        logger.info(
            "Fitting %d items into %d bins: depth %d, best %d pending, %.1f%% after %d steps",
            self._initial_pending,
            len(self._bins),
            len(self._frames),
            self._min_pending,
            pct,
            self.steps,
        )
        if on_progress is not None:
            on_progress(pct)

    def solve(self, predicate: Optional[Predicate] = None) -> bool:
        self.run_until(predicate)
        return self.is_solved()

    def fit(self) -> Optional[List[Bin]]:
        """Run to completion; the bins on success, ``None`` if infeasible."""
        total_weight = sum(self._pending)
        total_size = sum(b.capacity for b in self._bins)
        if total_weight > total_size:
            return None
        if self.solve():
            return self._bins
        return None


__all__ = ["Fitter", "Frame", "Mode", "EngineState", "deadline_predicate"]
