"""
Bounded, thread-safe event buffer between producers and the batch worker.

This module contains:
- OverflowPolicy: DROP_OLDEST or REJECT_NEWEST
- EventBuffer: fixed-capacity FIFO with non-blocking intake and batch drain

Design:
- Producers call ``submit()`` from any thread; it never blocks on I/O and
  never raises
- The worker calls ``drain()`` which removes up to N items atomically
- A single ``threading.Lock`` guards the deque; critical sections are O(1)
  for submit and O(N) for a drain of N items
"""

from __future__ import annotations

import threading
from collections import deque
from enum import Enum
from typing import Callable, Generic, TypeVar

T = TypeVar("T")


class OverflowPolicy(str, Enum):
    DROP_OLDEST = "drop_oldest"  # Evict the oldest buffered event to make room
    REJECT_NEWEST = "reject_newest"  # Refuse the incoming event


class EventBuffer(Generic[T]):
    """Fixed-capacity FIFO buffer with an explicit overflow policy.

    Usage:
        buf: EventBuffer[LogEvent] = EventBuffer(capacity=25_000)
        buf.submit(event)          # from any thread
        batch = buf.drain(100)     # from the worker
    """

    def __init__(
        self,
        capacity: int,
        *,
        policy: OverflowPolicy = OverflowPolicy.DROP_OLDEST,
        on_overflow: Callable[[OverflowPolicy], None] | None = None,
    ) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be > 0")
        self._capacity = capacity
        self._policy = OverflowPolicy(policy)
        self._items: deque[T] = deque()
        self._lock = threading.Lock()
        self._dropped = 0
        self._on_overflow = on_overflow

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def policy(self) -> OverflowPolicy:
        return self._policy

    @property
    def dropped(self) -> int:
        """Number of events lost to overflow since construction."""
        with self._lock:
            return self._dropped

    def qsize(self) -> int:
        with self._lock:
            return len(self._items)

    def is_empty(self) -> bool:
        return self.qsize() == 0

    def is_full(self) -> bool:
        return self.qsize() >= self._capacity

    def submit(self, item: T) -> bool:
        """Enqueue ``item`` without blocking.

        Returns True when the item was stored. Under DROP_OLDEST a full buffer
        evicts its head and the item is stored; under REJECT_NEWEST the item
        is refused and False is returned.
        """
        overflowed = False
        stored = True
        with self._lock:
            if len(self._items) >= self._capacity:
                overflowed = True
                self._dropped += 1
                if self._policy is OverflowPolicy.DROP_OLDEST:
                    self._items.popleft()
                    self._items.append(item)
                else:
                    stored = False
            else:
                self._items.append(item)
        if overflowed and self._on_overflow is not None:
            try:
                self._on_overflow(self._policy)
            except Exception:
                # Overflow reporting must never reach the producer
                pass
        return stored

    def drain(self, max_count: int) -> list[T]:
        """Remove and return up to ``max_count`` items in FIFO order."""
        if max_count <= 0:
            raise ValueError("max_count must be > 0")
        with self._lock:
            n = min(max_count, len(self._items))
            popleft = self._items.popleft
            return [popleft() for _ in range(n)]


__all__ = ["EventBuffer", "OverflowPolicy"]
