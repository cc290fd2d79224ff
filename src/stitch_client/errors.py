"""
Custom exceptions for the Stitch client.

Delivery is never retried: every error here is reported once, either raised
to the caller (synchronous paths) or handed to each record's handler.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import StitchResponse


class StitchError(Exception):
    """Base error for the Stitch client."""

    pass


class SerializationError(StitchError):
    """A record could not be encoded for the wire."""

    pass


class DeliveryError(StitchError):
    """Transport-level failure (connect, timeout, protocol)."""

    pass


class StitchRejected(StitchError):
    """Stitch answered with a non-success status."""

    def __init__(self, response: "StitchResponse"):
        super().__init__(f"Stitch rejected batch: {response.status} {response.reason}")
        self.response = response

    @property
    def content(self) -> dict:
        return self.response.content


class ClientClosed(StitchError):
    """Record enqueued after close() was called."""

    pass


class QueueInterrupted(StitchError):
    """Raised inside take() once the queue has been interrupted."""

    pass


def map_transport_error(e: Exception) -> StitchError:
    import httpx

    if isinstance(e, StitchError):
        return e
    if isinstance(e, httpx.TimeoutException):
        return DeliveryError(f"timed out talking to Stitch: {e}")
    if isinstance(e, httpx.HTTPError):
        return DeliveryError(f"{type(e).__name__}: {e}")
    return DeliveryError(str(e))
