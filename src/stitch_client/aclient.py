from __future__ import annotations

import asyncio
from collections.abc import Mapping
from typing import Any, Optional, Sequence, Union

from loguru import logger

from .batch import Batch
from .client import Record, resolve_config, to_record
from .codec import Codec, JsonCodec
from .config import ClientConfig
from .delivery import AsyncDelivery
from .envelope import SHUTDOWN, Data, Envelope, ResponseHandler, Shutdown
from .errors import ClientClosed
from .metrics import STITCH_ENQUEUE_REJECTED_TOTAL, STITCH_QUEUE_DEPTH
from .models import StitchMessage, StitchResponse
from .transport import AsyncHttpTransport


class AsyncStitchClient:
    """
    asyncio flavour of StitchClient: one worker task drains an asyncio.Queue.

    Usage:
        async with AsyncStitchClient(client_id=1234, token="...", namespace="events") as stitch:
            await stitch.put({"action": "upsert", "sequence": 1, "data": {"id": 1}})
        # aclose() on exit flushes everything enqueued so far

    Handlers may be plain or async; coroutine results are awaited on the
    worker task.
    """

    def __init__(
        self,
        config: Union[ClientConfig, dict, None] = None,
        *,
        transport: Optional[Any] = None,
        codec: Optional[Codec] = None,
        default_handler: Optional[ResponseHandler] = None,
        **overrides: Any,
    ):
        self._cfg = resolve_config(config, overrides)
        self._owns_transport = transport is None
        self._transport = transport or AsyncHttpTransport(
            self._cfg.url,
            self._cfg.token,
            connect_timeout=self._cfg.connect_timeout,
        )
        self._codec = codec or JsonCodec()
        self._default_handler = default_handler

        self._delivery = AsyncDelivery(
            self._transport,
            self._codec,
            client_id=self._cfg.client_id,
            namespace=self._cfg.namespace,
            table_name=self._cfg.table_name,
            key_names=self._cfg.key_names,
        )
        self._queue: asyncio.Queue[Envelope] = asyncio.Queue(maxsize=self._cfg.queue_capacity)
        self._task: Optional[asyncio.Task] = None
        self._closed = False
        self._sentinel_sent = False
        self._aborted = False

    # --------------- context management

    async def __aenter__(self) -> "AsyncStitchClient":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.aclose()

    @property
    def config(self) -> ClientConfig:
        return self._cfg

    @property
    def closed(self) -> bool:
        return self._closed

    def start(self) -> None:
        """Spawn the worker task; must be called from a running loop."""
        if self._task is None:
            self._task = asyncio.get_running_loop().create_task(
                self._run(), name="stitch-flush-worker"
            )

    async def aclose(self) -> None:
        """Flush everything enqueued so far and wait for the worker task."""
        self._closed = True
        if not self._aborted:
            self.start()
        try:
            if self._task is not None:
                if not self._sentinel_sent:
                    self._sentinel_sent = True
                    if not (self._aborted or self._task.done()):
                        await self._queue.put(SHUTDOWN)
                try:
                    await asyncio.shield(self._task)
                except asyncio.CancelledError:
                    if not self._task.cancelled():
                        raise
        finally:
            if self._owns_transport:
                await self._transport.aclose()

    def abort(self) -> None:
        """Cancel the worker task; records not yet flushed are lost."""
        self._aborted = True
        self._closed = True
        if self._task is not None:
            self._task.cancel()

    # --------------- public API

    async def push(self, records: Union[Record, Sequence[Record]]) -> StitchResponse:
        if self._closed:
            raise ClientClosed("AsyncStitchClient is closed")
        if isinstance(records, (Mapping, StitchMessage)):
            records = [records]
        copies = [self._codec.decode(self._codec.encode(to_record(r))) for r in records]
        return await self._delivery.send(copies)

    async def offer(
        self,
        record: Record,
        handler: Optional[ResponseHandler] = None,
        timeout: Optional[float] = None,
    ) -> bool:
        item = self._wrap(record, handler)
        try:
            if timeout is None:
                self._queue.put_nowait(item)
            else:
                await asyncio.wait_for(self._queue.put(item), timeout)
        except (asyncio.QueueFull, asyncio.TimeoutError):
            STITCH_ENQUEUE_REJECTED_TOTAL.inc()
            return False
        STITCH_QUEUE_DEPTH.set(self._queue.qsize())
        return True

    async def put(self, record: Record, handler: Optional[ResponseHandler] = None) -> None:
        item = self._wrap(record, handler)
        await self._queue.put(item)
        STITCH_QUEUE_DEPTH.set(self._queue.qsize())

    # --------------- internals

    def _wrap(self, record: Record, handler: Optional[ResponseHandler]) -> Data:
        if self._closed:
            raise ClientClosed("AsyncStitchClient is closed")
        self.start()
        return Data(self._codec.encode(to_record(record)), handler or self._default_handler)

    async def _run(self) -> None:
        batch = Batch(self._cfg.batch_config())
        logger.info("Stitch async worker started")
        try:
            while True:
                item = await self._queue.get()
                STITCH_QUEUE_DEPTH.set(self._queue.qsize())
                if isinstance(item, Shutdown):
                    await self._delivery.flush(batch.drain())
                    return
                batch.add(item)
                if batch.should_flush():
                    await self._delivery.flush(batch.drain())
        except asyncio.CancelledError:
            logger.warning(f"Stitch async worker cancelled; dropping {len(batch)} batched records")
            raise
        except Exception:
            logger.exception("Stitch async worker died unexpectedly")
            raise
        finally:
            logger.info("Stitch async worker stopped")
