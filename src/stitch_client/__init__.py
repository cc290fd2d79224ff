"""
Stitch Client Library

Batching client for the Stitch import API. Records are queued from any
thread, batched by one background worker under size/count/time thresholds
and POSTed to Stitch; each record's handler is told the outcome.

Usage:
    from stitch_client import StitchClient, AsyncStitchClient

    # Threaded client
    with StitchClient(client_id=1234, token="...", namespace="events") as stitch:
        stitch.put({"action": "upsert", "sequence": 1, "data": {"id": 1}}, handler)

    # Async client
    async with AsyncStitchClient(client_id=1234, token="...", namespace="events") as stitch:
        await stitch.put({"action": "upsert", "sequence": 1, "data": {"id": 1}})
"""

from .client import StitchClient
from .aclient import AsyncStitchClient
from .batch import Batch, BatchConfig
from .codec import Codec, JsonCodec
from .config import ClientConfig, get_config
from .envelope import LoggingResponseHandler, ResponseHandler
from .errors import (
    ClientClosed,
    DeliveryError,
    SerializationError,
    StitchError,
    StitchRejected,
)
from .models import Action, Field, StitchMessage, StitchResponse

__version__ = "1.0.0"
__all__ = [
    "StitchClient",
    "AsyncStitchClient",
    "ClientConfig",
    "get_config",
    "Batch",
    "BatchConfig",
    "Codec",
    "JsonCodec",
    "ResponseHandler",
    "LoggingResponseHandler",
    "StitchError",
    "SerializationError",
    "DeliveryError",
    "StitchRejected",
    "ClientClosed",
    "Action",
    "Field",
    "StitchMessage",
    "StitchResponse",
]
