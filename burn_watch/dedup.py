from __future__ import annotations

from collections import OrderedDict


class DedupTracker:
    """
    Bounded set of transaction signatures already processed.

    Insertion-ordered; once ``capacity`` is reached the oldest signature is
    evicted (FIFO). An evicted signature would be processed again if it were
    ever rescanned, which the forward-only cursor prevents in normal operation.
    Size ``capacity`` above the number of signatures one scan window can return.
    """

    def __init__(self, capacity: int = 10_000) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self.capacity = capacity
        self._entries: OrderedDict[str, None] = OrderedDict()

    def seen(self, signature: str) -> bool:
        return signature in self._entries

    def mark(self, signature: str) -> None:
        if signature in self._entries:
            return
        self._entries[signature] = None
        while len(self._entries) > self.capacity:
            self._entries.popitem(last=False)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, signature: object) -> bool:
        return signature in self._entries

    def copy(self) -> DedupTracker:
        other = DedupTracker(self.capacity)
        other._entries = self._entries.copy()
        return other
