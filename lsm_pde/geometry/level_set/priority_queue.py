"""
Min-heap of Trial points for the fast marching method.

Entries are ordered by (value, flat index), so equal values pop in
coordinate order and a march is reproducible. Decrease-key is implemented
by pushing a fresh entry and discarding stale ones on pop (lazy deletion).
"""

from __future__ import annotations

import heapq


class TrialHeap:
    """
    Binary min-heap keyed by (value, flat index) with decrease-key.

    Example:
        >>> heap = TrialHeap()
        >>> heap.push(0.5, 12)
        True
        >>> heap.push(0.3, 12)  # decrease-update
        True
        >>> heap.pop()
        (0.3, 12)
    """

    def __init__(self):
        self._entries: list[tuple[float, int]] = []
        self._current: dict[int, float] = {}

    def __len__(self) -> int:
        return len(self._current)

    def __bool__(self) -> bool:
        return bool(self._current)

    def push(self, value: float, index: int) -> bool:
        """
        Insert index or lower its value.

        Returns:
            False if index is already queued with a value <= value
        """
        current = self._current.get(index)
        if current is not None and current <= value:
            return False
        self._current[index] = value
        heapq.heappush(self._entries, (value, index))
        return True

    def _discard_stale(self) -> None:
        entries = self._entries
        while entries:
            value, index = entries[0]
            if self._current.get(index) == value:
                return
            heapq.heappop(entries)

    def peek(self) -> tuple[float, int]:
        """Smallest (value, index) without removing it."""
        self._discard_stale()
        if not self._entries:
            raise IndexError("peek from an empty TrialHeap")
        return self._entries[0]

    def pop(self) -> tuple[float, int]:
        """Remove and return the smallest (value, index)."""
        self._discard_stale()
        if not self._entries:
            raise IndexError("pop from an empty TrialHeap")
        value, index = heapq.heappop(self._entries)
        del self._current[index]
        return value, index
