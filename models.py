from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional, Tuple


class BinOverflowError(AssertionError):
    """An item was pushed into a bin that cannot hold it."""


class SearchCorruptedError(AssertionError):
    """The search stack no longer matches the bins it is undoing."""


class Bin:
    """Fixed-size container tracking its residual capacity.

    ``size`` is the original capacity, ``capacity`` what is left of it.  Items
    come back out in LIFO order so ``pop`` exactly undoes the latest ``push``.
    """

    __slots__ = ("size", "capacity", "_items")

    def __init__(self, capacity: Any):
        self.size = capacity
        self.capacity = capacity
        self._items: List[Any] = []

    def fits(self, item: Any) -> bool:
        return self.capacity >= item

    def push(self, item: Any) -> None:
        if not self.fits(item):
            raise BinOverflowError(
                f"item {item!r} does not fit residual capacity {self.capacity!r}"
            )
        self.capacity -= item
        self._items.append(item)

    def pop(self) -> Optional[Any]:
        if not self._items:
            return None
        item = self._items.pop()
        self.capacity += item
        return item

    def is_empty(self) -> bool:
        return not self._items

    @property
    def items(self) -> Tuple[Any, ...]:
        return tuple(self._items)

    def total(self) -> Any:
        return sum(self._items)

    def copy(self) -> "Bin":
        clone = Bin(self.size)
        for item in self._items:
            clone.push(item)
        return clone

    def __len__(self) -> int:
        return len(self._items)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Bin):
            return NotImplemented
        return self.size == other.size and self._items == other._items

    def __repr__(self) -> str:
        return f"Bin(size={self.size!r}, items={self._items!r})"


class Status(str, Enum):
    UNKNOWN = "UNKNOWN"
    UNSOLVABLE = "UNSAT"
    SOLVED = "SAT"


@dataclass
class Solution:
    status: Status = Status.UNKNOWN
    bins: List[Bin] = field(default_factory=list)
    # Only meaningful for SOLVED: False when a deadline (or a caller that did
    # not ask for minimization) stopped the search before a smaller count was
    # ruled out.
    proven_minimal: bool = False
    elapsed_sec: float = 0.0

    @property
    def solved(self) -> bool:
        return self.status is Status.SOLVED

    @property
    def bin_count(self) -> int:
        return len(self.bins)

    def insert(self, status: Status) -> None:
        """Settle an UNKNOWN outcome; anything already decided is kept."""
        if self.status is Status.UNKNOWN:
            self.status = status

    def assignment(self) -> List[List[Any]]:
        return [list(b.items) for b in self.bins]
