from __future__ import annotations

import inspect
from time import perf_counter
from typing import Any, List, Optional, Sequence

from loguru import logger

from .codec import Codec
from .envelope import Data
from .errors import StitchError, StitchRejected
from .metrics import (
    STITCH_FLUSH_LATENCY_MS,
    STITCH_FLUSH_TOTAL,
    STITCH_HANDLER_ERRORS_TOTAL,
    STITCH_RECORDS_TOTAL,
)
from .models import Field, StitchResponse


def _outcome(e: Optional[BaseException]) -> str:
    if e is None:
        return "success"
    if isinstance(e, StitchRejected):
        return "rejected"
    return "error"


class Delivery:
    """
    Turns records into one Stitch request and reports the outcome.

    Every record is augmented with ``client_id`` and ``namespace``, and with
    ``table_name`` / ``key_names`` when configured and not already present.
    Records passed in must be private copies; they are mutated in place.
    """

    def __init__(
        self,
        transport: Any,
        codec: Codec,
        *,
        client_id: int,
        namespace: str,
        table_name: Optional[str] = None,
        key_names: Optional[Sequence[str]] = None,
    ):
        self._transport = transport
        self._codec = codec
        self._client_id = client_id
        self._namespace = namespace
        self._table_name = table_name
        self._key_names = list(key_names) if key_names is not None else None

    @property
    def codec(self) -> Codec:
        return self._codec

    # ---------- payload ----------

    def prepare(self, records: List[dict]) -> bytes:
        for record in records:
            record[Field.CLIENT_ID] = self._client_id
            record[Field.NAMESPACE] = self._namespace
            if self._table_name is not None and Field.TABLE_NAME not in record:
                record[Field.TABLE_NAME] = self._table_name
            if self._key_names is not None and Field.KEY_NAMES not in record:
                record[Field.KEY_NAMES] = list(self._key_names)
        return self._codec.encode(records)

    # ---------- delivery ----------

    def send(self, records: List[dict]) -> StitchResponse:
        """POST records as one request; raises StitchRejected / DeliveryError."""
        body = self.prepare(records)
        t0 = perf_counter()
        error: Optional[BaseException] = None
        try:
            return self._transport.post(body, self._codec.content_type)
        except BaseException as e:
            error = e
            raise
        finally:
            self._record(len(records), len(body), t0, error)

    def flush(self, items: Sequence[Data]) -> Optional[StitchResponse]:
        """Deliver a batch and notify every handler in enqueue order.

        Returns the response on success and None on failure or when the
        batch is empty. Never raises for delivery problems.
        """
        if not items:
            return None

        records: List[dict] = []
        try:
            for item in items:
                records.append(self._codec.decode(item.payload))
            response = self.send(records)
        except Exception as e:
            self._log_failure(len(items), e)
            for item, record in zip(items, self._failed_records(items, records)):
                self._notify(item.handler, "handle_error", record, e)
            return None

        for item, record in zip(items, records):
            self._notify(item.handler, "handle_ok", record, response)
        return response

    # ---------- internals ----------

    def _failed_records(self, items: Sequence[Data], decoded: List[dict]) -> List[Any]:
        """Records to hand to ``handle_error``; undecodable payloads stay raw bytes."""
        records: List[Any] = list(decoded)
        for item in items[len(decoded):]:
            try:
                records.append(self._codec.decode(item.payload))
            except Exception:
                records.append(item.payload)
        return records

    def _notify(self, handler, callback: str, record: dict, arg) -> Any:
        if handler is None:
            return None
        try:
            return getattr(handler, callback)(record, arg)
        except Exception as exc:
            STITCH_HANDLER_ERRORS_TOTAL.labels(callback=callback).inc()
            logger.warning(
                f"Response handler {callback} raised (ignored): {type(exc).__name__}: {exc}"
            )
            return None

    def _record(self, n: int, nbytes: int, t0: float, error: Optional[BaseException]) -> None:
        elapsed_ms = (perf_counter() - t0) * 1000.0
        outcome = _outcome(error)
        STITCH_FLUSH_LATENCY_MS.observe(elapsed_ms)
        STITCH_FLUSH_TOTAL.labels(outcome=outcome).inc()
        STITCH_RECORDS_TOTAL.labels(outcome=outcome).inc(n)
        logger.debug(
            f"Stitch POST records={n} bytes={nbytes} outcome={outcome} in {elapsed_ms:.1f}ms"
        )

    @staticmethod
    def _log_failure(n: int, e: Exception) -> None:
        if isinstance(e, StitchError):
            logger.warning(f"Batch of {n} records not delivered: {e}")
        else:
            logger.error(f"Batch of {n} records failed unexpectedly: {type(e).__name__}: {e}")


class AsyncDelivery(Delivery):
    """Delivery over an async transport; awaitable handler results are awaited."""

    async def send(self, records: List[dict]) -> StitchResponse:
        body = self.prepare(records)
        t0 = perf_counter()
        error: Optional[BaseException] = None
        try:
            return await self._transport.post(body, self._codec.content_type)
        except BaseException as e:
            error = e
            raise
        finally:
            self._record(len(records), len(body), t0, error)

    async def flush(self, items: Sequence[Data]) -> Optional[StitchResponse]:
        if not items:
            return None

        records: List[dict] = []
        try:
            for item in items:
                records.append(self._codec.decode(item.payload))
            response = await self.send(records)
        except Exception as e:
            self._log_failure(len(items), e)
            for item, record in zip(items, self._failed_records(items, records)):
                await self._anotify(item.handler, "handle_error", record, e)
            return None

        for item, record in zip(items, records):
            await self._anotify(item.handler, "handle_ok", record, response)
        return response

    async def _anotify(self, handler, callback: str, record: dict, arg) -> None:
        result = self._notify(handler, callback, record, arg)
        if inspect.isawaitable(result):
            try:
                await result
            except Exception as exc:
                STITCH_HANDLER_ERRORS_TOTAL.labels(callback=callback).inc()
                logger.warning(
                    f"Response handler {callback} raised (ignored): {type(exc).__name__}: {exc}"
                )
