"""
Queued items and the per-record handler interface.

An ``Envelope`` is either ``Data`` (one serialized record plus its handler)
or the ``SHUTDOWN`` sentinel, which travels through the same queue as normal
work and is always the last item the worker processes.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, Protocol, Union

from loguru import logger

from .models import StitchResponse


class ResponseHandler(Protocol):
    """Receives the outcome of the flush that carried a record.

    Handlers run on the worker thread. Exceptions raised here are logged
    and swallowed; they never affect other records or later batches.
    """

    def handle_ok(self, record: dict, response: StitchResponse) -> Any: ...

    def handle_error(self, record: dict, error: Exception) -> Any: ...


class LoggingResponseHandler:
    """Handler that only logs outcomes."""

    def handle_ok(self, record: dict, response: StitchResponse) -> None:
        logger.debug(f"Record accepted: sequence={record.get('sequence')} status={response.status}")

    def handle_error(self, record: dict, error: Exception) -> None:
        logger.warning(
            f"Record not delivered: sequence={record.get('sequence')} "
            f"{type(error).__name__}: {error}"
        )


@dataclass(frozen=True)
class Data:
    payload: bytes
    handler: Optional[ResponseHandler] = None

    @property
    def size(self) -> int:
        return len(self.payload)


@dataclass(frozen=True)
class Shutdown:
    pass


SHUTDOWN = Shutdown()

Envelope = Union[Data, Shutdown]
