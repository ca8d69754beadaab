"""Fixed-size ring buffer.

Stores a bounded number of items with O(1) push. When the buffer is full,
a push overwrites the oldest item.
"""

from typing import Generic, TypeVar

from ..errors import ConfigurationError

T = TypeVar("T")


class RingBuffer(Generic[T]):
    """Fixed-capacity FIFO with overwrite."""

    def __init__(self, capacity: int):
        if capacity < 1:
            raise ConfigurationError("RingBuffer capacity must be greater than 0")
        self._capacity = capacity
        self._slots: list[T | None] = [None] * capacity
        self._head = 0  # next slot to write
        self._size = 0

    def push(self, item: T) -> None:
        """Add an item, overwriting the oldest one if the buffer is full."""
        self._slots[self._head] = item
        self._head = (self._head + 1) % self._capacity

        if self._size < self._capacity:
            self._size += 1

    def get_all(self) -> list[T]:
        """Get all items in chronological order (oldest to newest)."""
        if self._size == 0:
            return []

        if self._size < self._capacity:
            return list(self._slots[: self._size])

        # Full: oldest item sits at head
        return self._slots[self._head :] + self._slots[: self._head]

    def get_recent(self, count: int) -> list[T]:
        """Get the most recent ``count`` items, oldest first."""
        if count <= 0:
            return []

        actual = min(count, self._size)
        start = (self._head - actual) % self._capacity
        return [self._slots[(start + i) % self._capacity] for i in range(actual)]

    def clear(self) -> None:
        """Remove all items."""
        self._slots = [None] * self._capacity
        self._head = 0
        self._size = 0

    def size(self) -> int:
        return self._size

    def capacity(self) -> int:
        return self._capacity

    def is_full(self) -> bool:
        return self._size == self._capacity

    def is_empty(self) -> bool:
        return self._size == 0

    def __len__(self) -> int:
        return self._size
