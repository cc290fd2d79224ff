from __future__ import annotations

import threading
from enum import Enum
from typing import Optional

from loguru import logger

from .batch import Batch, BatchConfig
from .delivery import Delivery
from .envelope import Data, Envelope, Shutdown
from .errors import QueueInterrupted
from .metrics import STITCH_QUEUE_DEPTH
from .queue import BoundedQueue


class WorkerState(str, Enum):
    NEW = "new"
    WAITING = "waiting"
    ACCUMULATING = "accumulating"
    FLUSHING = "flushing"
    TERMINATED = "terminated"


class FlushWorker:
    """
    The single consumer of the client queue.

    Owns the Batch outright: takes envelopes, accumulates them, flushes when
    a threshold is reached, and on the shutdown sentinel flushes whatever is
    pending and exits. ``abort()`` exits immediately without flushing.
    """

    def __init__(
        self,
        queue: BoundedQueue[Envelope],
        delivery: Delivery,
        config: BatchConfig,
        *,
        name: str = "stitch-flush-worker",
    ):
        self._queue = queue
        self._delivery = delivery
        self._batch = Batch(config)
        self._state = WorkerState.NEW
        self._terminated = threading.Event()
        self._thread = threading.Thread(target=self._run, name=name, daemon=True)

    @property
    def state(self) -> WorkerState:
        return self._state

    @property
    def terminated(self) -> threading.Event:
        return self._terminated

    @property
    def started(self) -> bool:
        return self._state is not WorkerState.NEW

    def is_alive(self) -> bool:
        return self._thread.is_alive()

    def start(self) -> None:
        if self.started:
            return
        self._state = WorkerState.WAITING
        self._thread.start()

    def join(self, timeout: Optional[float] = None) -> bool:
        """Wait for the worker to finish; True once it has terminated."""
        if not self.started:
            return self._terminated.is_set()
        return self._terminated.wait(timeout)

    def abort(self) -> None:
        """Stop without flushing; records still queued or batched are lost."""
        self._queue.interrupt()
        if not self.started:
            self._state = WorkerState.TERMINATED
            self._terminated.set()

    # --------------------------- loop

    def _run(self) -> None:
        logger.info(f"{self._thread.name} started")
        try:
            while True:
                self._state = WorkerState.WAITING
                try:
                    item = self._queue.take()
                except QueueInterrupted:
                    logger.warning(
                        f"{self._thread.name} interrupted; "
                        f"dropping {len(self._batch)} batched records"
                    )
                    return
                STITCH_QUEUE_DEPTH.set(self._queue.size)

                if isinstance(item, Shutdown):
                    self._flush()
                    return

                self._accumulate(item)
        except Exception:
            logger.exception(f"{self._thread.name} died unexpectedly")
        finally:
            self._state = WorkerState.TERMINATED
            self._terminated.set()
            logger.info(f"{self._thread.name} stopped")

    def _accumulate(self, item: Data) -> None:
        self._state = WorkerState.ACCUMULATING
        self._batch.add(item)
        if self._batch.should_flush():
            self._flush()

    def _flush(self) -> None:
        self._state = WorkerState.FLUSHING
        items = self._batch.drain()
        self._delivery.flush(items)
