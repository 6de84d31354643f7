import random
import time
from collections import Counter
from decimal import Decimal
from fractions import Fraction

import pytest

from models import Bin, BinOverflowError, SearchCorruptedError
from solver.fitter import EngineState, Fitter, Mode, deadline_predicate


def _feasible(weights, capacities):
    """Plain exhaustive search, no pruning of any kind."""
    items = sorted(weights, reverse=True)
    residual = list(capacities)

    def _place(i):
        if i == len(items):
            return True
        for j in range(len(residual)):
            if residual[j] >= items[i]:
                residual[j] -= items[i]
                if _place(i + 1):
                    return True
                residual[j] += items[i]
        return False

    return _place(0)


def _assert_invariants(fitter, weights):
    placed = [w for b in fitter.bins for w in b.items]
    assert sum(placed) + sum(fitter.pending) == sum(weights)
    assert Counter(placed) + Counter(fitter.pending) == Counter(weights)
    for b in fitter.bins:
        assert b.total() <= b.size
        assert b.capacity == b.size - b.total()
        assert b.capacity >= 0
    assert list(fitter.pending) == sorted(fitter.pending)
    if fitter.canonical_order:
        for prev, cur in zip(fitter.bins, fitter.bins[1:]):
            if prev.size == cur.size:
                assert cur.items <= prev.items


def _assert_partition(bins, weights, capacities):
    assert len(bins) <= len(capacities)
    assert Counter(w for b in bins for w in b.items) == Counter(weights)
    for b in bins:
        assert b.total() <= b.size


def _one_step():
    budget = [1]

    def _pred():
        if budget[0]:
            budget[0] -= 1
            return True
        return False

    return _pred


def _random_instance(rng):
    n_items = rng.randint(1, 8)
    n_bins = rng.randint(1, 4)
    if rng.random() < 0.6:
        cap = rng.randint(5, 15)
        capacities = [cap] * n_bins
    else:
        capacities = [rng.randint(4, 15) for _ in range(n_bins)]
    weights = [rng.randint(1, 10) for _ in range(n_items)]
    return weights, capacities


# ---------------- Bin ----------------

def test_bin_push_pop_is_lifo_and_restores_capacity():
    b = Bin(10)
    assert b.is_empty()
    assert b.fits(10)
    b.push(6)
    b.push(3)
    assert b.capacity == 1
    assert b.items == (6, 3)
    assert not b.fits(2)
    assert b.pop() == 3
    assert b.pop() == 6
    assert b.pop() is None
    assert b.capacity == 10


def test_bin_push_over_capacity_fails_loudly():
    b = Bin(5)
    with pytest.raises(BinOverflowError):
        b.push(6)
    assert b.is_empty()
    assert b.capacity == 5


# ---------------- scenarios ----------------

def test_three_fives_fit_two_bins_of_ten():
    f = Fitter([5, 5, 5], [10, 10, 10])
    bins = f.fit()
    assert bins is not None
    assert f.state is EngineState.SOLVED
    assert [b.items for b in f.used_bins()] == [(5, 5), (5,)]


def test_three_sixes_do_not_fit_two_bins_of_ten():
    # 18 <= 20 passes the total-weight check; only the search proves it.
    f = Fitter([6, 6, 6], [10, 10])
    assert f.fit() is None
    assert f.state is EngineState.EXHAUSTED
    assert f.steps > 0
    assert sorted(f.pending) == [6, 6, 6]
    assert all(b.is_empty() for b in f.bins)


def test_fit_rejects_by_total_weight_without_searching():
    f = Fitter([11], [10])
    assert f.fit() is None
    assert f.steps == 0
    assert f.state is EngineState.RUNNING


def test_oversized_item_exhausts_search():
    f = Fitter([11, 2], [10, 10, 10])
    assert f.run_until() is True
    assert f.state is EngineState.EXHAUSTED


def test_no_items_is_solved_immediately():
    f = Fitter([], [10])
    assert f.state is EngineState.SOLVED
    assert f.step() is False
    assert f.run_until() is True
    assert f.progress_pct() == 100.0


def test_no_bins_with_items_is_exhausted():
    f = Fitter([1], [])
    assert f.run_until() is True
    assert f.is_exhausted()


def test_mixed_capacities_do_not_trigger_ordering_pruning():
    # The 6 only fits the second bin; an ordering rule across different sizes
    # would reject it and wrongly exhaust the search.
    f = Fitter([6, 4], [5, 10])
    assert f.fit() is not None
    assert [b.items for b in f.bins] == [(4,), (6,)]


def test_largest_item_is_placed_first():
    f = Fitter([1, 9, 4], [20])
    f.step()
    assert f.bins[0].items == (9,)
    assert f.pending == (1, 4)


# ---------------- stepping protocol ----------------

def test_step_pushes_backtrack_frame_then_fresh_try_frame():
    f = Fitter([5, 5], [10, 10])
    assert f.step() is True
    frames = f.frames
    assert len(frames) == 2
    assert frames[0].mode is Mode.BACKTRACK
    assert frames[0].next_bin_index == 1
    assert frames[0].tried == {10}
    assert frames[1].mode is Mode.TRY
    assert frames[1].next_bin_index == 0


def test_invariants_hold_after_every_step():
    rng = random.Random(7)
    for _ in range(40):
        weights, capacities = _random_instance(rng)
        f = Fitter(weights, capacities)
        _assert_invariants(f, weights)
        while f.step():
            _assert_invariants(f, weights)
        _assert_invariants(f, weights)


def test_engine_agrees_with_exhaustive_search():
    rng = random.Random(2024)
    for _ in range(150):
        weights, capacities = _random_instance(rng)
        f = Fitter(weights, capacities)
        f.run_until()
        expected = _feasible(weights, capacities)
        assert f.is_solved() == expected, (weights, capacities)
        if expected:
            _assert_partition(f.used_bins(), weights, capacities)
        else:
            assert f.is_exhausted()


def test_canonical_ordering_never_changes_feasibility():
    rng = random.Random(99)
    for _ in range(80):
        weights, capacities = _random_instance(rng)
        with_order = Fitter(weights, capacities, canonical_order=True)
        without = Fitter(weights, capacities, canonical_order=False)
        with_order.run_until()
        without.run_until()
        assert with_order.is_solved() == without.is_solved()


def test_symmetric_bins_are_explored_once_per_residual():
    # Nine bins of identical size: without residual pruning the search would
    # branch into each of them for every item.
    f = Fitter([7, 7, 7, 7], [10] * 9)
    f.run_until()
    assert f.is_solved()
    assert f.steps == 4


def test_swapping_bins_of_a_solution_stays_valid():
    f = Fitter([4, 4, 3, 3, 2, 2, 2], [10, 10])
    assert f.fit() is not None
    first, second = (list(b.items) for b in f.bins)
    swapped = [Bin(10), Bin(10)]
    for w in second:
        swapped[0].push(w)
    for w in first:
        swapped[1].push(w)
    _assert_partition(swapped, [4, 4, 3, 3, 2, 2, 2], [10, 10])


def test_single_step_resumption_matches_full_run():
    rng = random.Random(5)
    for _ in range(30):
        weights, capacities = _random_instance(rng)
        full = Fitter(weights, capacities)
        assert full.run_until() is True

        stepped = Fitter(weights, capacities)
        interruptions = 0
        while not stepped.run_until(_one_step()):
            assert stepped.last_run_interrupted
            _assert_invariants(stepped, weights)
            interruptions += 1

        assert stepped.state is full.state
        assert stepped.steps == full.steps
        assert interruptions == full.steps - 1
        assert [b.items for b in stepped.bins] == [b.items for b in full.bins]


def test_expired_deadline_interrupts_and_later_resume_completes():
    weights = [13, 11, 9, 8, 8, 7, 6, 5, 5, 4, 3, 2, 2, 1] * 2
    f = Fitter(weights, [20] * 9)

    assert f.run_until(deadline_predicate(time.monotonic() - 1.0)) is False
    assert f.state is EngineState.RUNNING
    assert f.steps == 0
    assert f.last_run_interrupted

    assert f.run_until(deadline_predicate(None)) is True
    assert f.is_solved()
    _assert_partition(f.used_bins(), weights, [20] * 9)


def test_predicate_is_consulted_between_steps():
    calls = []

    def _pred():
        calls.append(1)
        return len(calls) <= 3

    f = Fitter([1] * 10, [10])
    assert f.run_until(_pred) is False
    assert f.steps == 3
    assert len(calls) == 4


def test_progress_sink_reports_percentages(monkeypatch):
    import solver.fitter as fitter_mod

    monkeypatch.setattr(fitter_mod.CFG, "PROGRESS_INTERVAL", 0.0, raising=False)
    seen = []
    f = Fitter([3] * 600, [3] * 600)
    assert f.run_until(on_progress=seen.append) is True
    assert seen
    assert all(0.0 <= pct <= 100.0 for pct in seen)
    assert seen == sorted(seen)
    assert seen[-1] == 100.0


def test_progress_estimate_is_logarithmic_in_pending_items():
    f = Fitter([1] * 99, [1] * 99)
    assert f.progress_pct() == 0.0
    f.run_until(_one_step())
    f.run_until(_one_step())
    mid = f.progress_pct()
    assert 0.0 < mid < 100.0


def test_backtracking_into_empty_bin_fails_fast():
    f = Fitter([5, 5], [10, 10])
    f.step()
    f.bins[0].pop()  # corrupt the assignment behind the engine's back
    f._frames.pop()  # top TRY frame; leaves the BACKTRACK frame on top
    f._pending.append(5)
    with pytest.raises(SearchCorruptedError):
        f.step()


# ---------------- numeric domains ----------------

def test_fraction_weights():
    weights = [Fraction(1, 2), Fraction(1, 3), Fraction(1, 6), Fraction(2, 3), Fraction(1, 3)]
    f = Fitter(weights, [Fraction(1)] * 3)
    assert f.fit() is not None
    assert len(f.used_bins()) == 2
    for b in f.used_bins():
        assert b.total() == 1


def test_decimal_weights():
    weights = [Decimal("0.7"), Decimal("0.3"), Decimal("0.6"), Decimal("0.4")]
    f = Fitter(weights, [Decimal("1.0")] * 2)
    assert f.fit() is not None
    assert sorted(b.total() for b in f.bins) == [Decimal("1.0"), Decimal("1.0")]
