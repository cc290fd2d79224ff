from __future__ import annotations

from dataclasses import dataclass
from time import monotonic
from typing import Callable, List

from .envelope import Data


@dataclass(frozen=True)
class BatchConfig:
    """Simple size/time/bytes flush thresholds."""

    max_records: int = 10_000  # flush after N records
    max_bytes: int = 4_000_000  # or after this many serialized bytes
    max_ms: int = 60_000  # or once this many ms passed since the last flush

    def __post_init__(self):
        for name in ("max_records", "max_bytes", "max_ms"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be > 0")


class Batch:
    """
    Envelopes accumulated since the last flush.

    Owned by exactly one worker; never shared, never locked. The interval
    threshold is only evaluated when a record is added, so an idle client
    does not flush on its own.
    """

    def __init__(self, config: BatchConfig, clock: Callable[[], float] = monotonic):
        self._cfg = config
        self._clock = clock
        self._items: List[Data] = []
        self._bytes = 0
        self._last_flush = clock()

    def __len__(self) -> int:
        return len(self._items)

    @property
    def num_bytes(self) -> int:
        return self._bytes

    @property
    def ms_since_flush(self) -> float:
        return (self._clock() - self._last_flush) * 1000.0

    def add(self, item: Data) -> None:
        self._items.append(item)
        self._bytes += item.size

    def should_flush(self) -> bool:
        return (
            self._bytes >= self._cfg.max_bytes
            or len(self._items) >= self._cfg.max_records
            or self.ms_since_flush >= self._cfg.max_ms
        )

    def drain(self) -> List[Data]:
        """Hand over the pending envelopes and reset counters/time window."""
        items = self._items
        self._items = []
        self._bytes = 0
        self._last_flush = self._clock()
        return items
