from __future__ import annotations

import threading
from collections.abc import Mapping
from time import monotonic
from typing import Any, List, Optional, Sequence, Union

from loguru import logger

from .codec import Codec, JsonCodec
from .config import ClientConfig
from .delivery import Delivery
from .envelope import SHUTDOWN, Data, Envelope, ResponseHandler
from .errors import ClientClosed
from .metrics import STITCH_ENQUEUE_REJECTED_TOTAL, STITCH_QUEUE_DEPTH
from .models import StitchMessage, StitchResponse
from .queue import BoundedQueue
from .transport import HttpTransport, Transport
from .worker import FlushWorker

Record = Union[Mapping, StitchMessage]


def to_record(record: Record) -> Mapping:
    if isinstance(record, StitchMessage):
        return record.to_record()
    if not isinstance(record, Mapping):
        raise TypeError(f"record must be a mapping or StitchMessage, got {type(record).__name__}")
    return record


def resolve_config(config: Union[ClientConfig, dict, None], overrides: dict) -> ClientConfig:
    if isinstance(config, ClientConfig):
        return config.model_copy(update=overrides) if overrides else config
    return ClientConfig(**{**(config or {}), **overrides})


class StitchClient:
    """
    Batching client for the Stitch import API.

    Usage:
        with StitchClient(client_id=1234, token="...", namespace="events",
                          table_name="people", key_names=["id"]) as stitch:
            stitch.put({"action": "upsert", "sequence": 1, "data": {"id": 1}})
        # close() on exit flushes everything enqueued so far

    ``put``/``offer`` enqueue a serialized snapshot of the record for the
    background worker. ``push`` skips the queue and delivers immediately on
    the calling thread, so it may overtake records already queued.
    """

    def __init__(
        self,
        config: Union[ClientConfig, dict, None] = None,
        *,
        transport: Optional[Transport] = None,
        codec: Optional[Codec] = None,
        default_handler: Optional[ResponseHandler] = None,
        autostart: bool = True,
        **overrides: Any,
    ):
        self._cfg = resolve_config(config, overrides)
        self._owns_transport = transport is None
        self._transport = transport or HttpTransport(
            self._cfg.url,
            self._cfg.token,
            connect_timeout=self._cfg.connect_timeout,
        )
        self._codec = codec or JsonCodec()
        self._default_handler = default_handler

        self._delivery = Delivery(
            self._transport,
            self._codec,
            client_id=self._cfg.client_id,
            namespace=self._cfg.namespace,
            table_name=self._cfg.table_name,
            key_names=self._cfg.key_names,
        )
        self._queue: BoundedQueue[Envelope] = BoundedQueue(self._cfg.queue_capacity)
        self._worker = FlushWorker(self._queue, self._delivery, self._cfg.batch_config())

        self._closed = False
        self._sentinel_sent = False
        self._dropped = 0
        self._close_lock = threading.Lock()

        if autostart:
            self.start()

    # --------------------------- lifecycle

    @property
    def config(self) -> ClientConfig:
        return self._cfg

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def worker(self) -> FlushWorker:
        return self._worker

    def start(self) -> None:
        """Start the background worker (done by the constructor unless autostart=False)."""
        self._worker.start()

    def close(self, timeout: Optional[float] = None) -> bool:
        """Flush everything enqueued so far and stop the worker.

        Blocks until the worker has delivered the final batch. Safe to call
        more than once; later calls only wait. With ``timeout`` (seconds),
        returns False if shutdown did not complete in time. Also returns False
        when the worker had already stopped with records still queued.
        """
        deadline = None if timeout is None else monotonic() + timeout
        with self._close_lock:
            self._closed = True
            if not self._sentinel_sent:
                self._worker.start()
                if self._worker.terminated.is_set() or self._queue.interrupted:
                    self._dropped = self._queue.size
                    logger.warning(
                        f"Stitch worker already stopped; dropping {self._dropped} queued records"
                    )
                elif deadline is None:
                    self._queue.put(SHUTDOWN)
                elif not self._queue.offer(SHUTDOWN, max(0.0, deadline - monotonic())):
                    logger.warning("Timed out enqueueing shutdown for Stitch worker")
                    return False
                self._sentinel_sent = True

        remaining = None if deadline is None else max(0.0, deadline - monotonic())
        done = self._worker.join(remaining)
        if done and self._owns_transport:
            self._transport.close()
        return done and not self._dropped

    def abort(self) -> None:
        """Stop the worker now. Records not yet flushed are lost."""
        self._closed = True
        self._worker.abort()

    def __enter__(self) -> "StitchClient":
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    # --------------------------- synchronous push

    def push(self, records: Union[Record, Sequence[Record]]) -> StitchResponse:
        """Deliver records now, bypassing the queue.

        Raises StitchRejected for a non-success status and DeliveryError for
        transport failures.
        """
        if self._closed:
            raise ClientClosed("StitchClient is closed")
        if isinstance(records, (Mapping, StitchMessage)):
            records = [records]
        return self._delivery.send(self._copies(records))

    # --------------------------- queued enqueue

    def offer(
        self,
        record: Record,
        handler: Optional[ResponseHandler] = None,
        timeout: Optional[float] = None,
    ) -> bool:
        """Enqueue without blocking (or for at most ``timeout`` seconds).

        Returns False when the queue stayed full.
        """
        item = self._wrap(record, handler)
        if self._queue.offer(item, timeout):
            STITCH_QUEUE_DEPTH.set(self._queue.size)
            return True
        STITCH_ENQUEUE_REJECTED_TOTAL.inc()
        return False

    def put(self, record: Record, handler: Optional[ResponseHandler] = None) -> None:
        """Enqueue, blocking while the queue is full."""
        item = self._wrap(record, handler)
        self._queue.put(item)
        STITCH_QUEUE_DEPTH.set(self._queue.size)

    # --------------------------- internals

    def _wrap(self, record: Record, handler: Optional[ResponseHandler]) -> Data:
        if self._closed:
            raise ClientClosed("StitchClient is closed")
        # snapshot now so later changes by the caller are not sent
        payload = self._codec.encode(to_record(record))
        return Data(payload, handler or self._default_handler)

    def _copies(self, records: Sequence[Record]) -> List[dict]:
        return [self._codec.decode(self._codec.encode(to_record(r))) for r in records]
