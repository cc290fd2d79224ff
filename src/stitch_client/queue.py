from __future__ import annotations

import threading
from collections import deque
from time import monotonic
from typing import Deque, Generic, Optional, TypeVar

from .errors import QueueInterrupted

T = TypeVar("T")

DEFAULT_CAPACITY = 10_000


class BoundedQueue(Generic[T]):
    """Fixed-capacity FIFO shared by producer threads and a single consumer.

    Producers block (``put``), fail fast (``offer``) or give up after a
    bound (``offer(item, timeout)``); nothing is ever dropped. The consumer
    blocks in ``take`` until an item arrives or ``interrupt`` is called.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        if capacity <= 0:
            raise ValueError("capacity must be > 0")

        self._capacity = capacity
        self._items: Deque[T] = deque()
        self._mutex = threading.Lock()
        self._not_empty = threading.Condition(self._mutex)
        self._not_full = threading.Condition(self._mutex)
        self._interrupted = False

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def size(self) -> int:
        with self._mutex:
            return len(self._items)

    @property
    def interrupted(self) -> bool:
        return self._interrupted

    def __len__(self) -> int:
        return self.size

    def put(self, item: T) -> None:
        """Append item, blocking while the queue is full."""
        with self._not_full:
            while len(self._items) >= self._capacity:
                self._not_full.wait()
            self._append(item)

    def offer(self, item: T, timeout: Optional[float] = None) -> bool:
        """Append item if space frees within ``timeout`` seconds (None: no wait)."""
        with self._not_full:
            if timeout is None or timeout <= 0:
                if len(self._items) >= self._capacity:
                    return False
            else:
                deadline = monotonic() + timeout
                while len(self._items) >= self._capacity:
                    remaining = deadline - monotonic()
                    if remaining <= 0:
                        return False
                    self._not_full.wait(remaining)
            self._append(item)
            return True

    def take(self) -> T:
        """Remove and return the oldest item, blocking while empty."""
        with self._not_empty:
            while not self._items:
                if self._interrupted:
                    raise QueueInterrupted("take() interrupted")
                self._not_empty.wait()
            if self._interrupted:
                raise QueueInterrupted("take() interrupted")
            item = self._items.popleft()
            self._not_full.notify()
            return item

    def interrupt(self) -> None:
        """Make the consumer's current and future ``take`` calls raise."""
        with self._mutex:
            self._interrupted = True
            self._not_empty.notify_all()

    # caller holds the mutex
    def _append(self, item: T) -> None:
        self._items.append(item)
        self._not_empty.notify()
