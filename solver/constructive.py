# solver/constructive.py
from typing import Any, Iterable, List, Optional

from models import Bin


def first_fit_decreasing(weights: Iterable[Any], capacity: Any) -> Optional[List[Bin]]:
    """
    Greedy first-fit-decreasing packing into bins of one ``capacity``.

    Each item, largest first, goes into the first open bin with room, or a new
    bin otherwise.  Never more than ~11/9 of the optimum plus one bin, which
    makes it a cheap upper bound for the exact search.

    Returns:
        the used bins, or None if some item is larger than ``capacity``.
    """
    bins: List[Bin] = []
    for w in sorted(weights, reverse=True):
        if w > capacity:
            return None
        for b in bins:
            if b.fits(w):
                b.push(w)
                break
        else:
            fresh = Bin(capacity)
            fresh.push(w)
            bins.append(fresh)
    return bins
