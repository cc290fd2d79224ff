"""
Wire encoding for records and batches.

Records are snapshotted to bytes as soon as they are handed to the client, so
the codec is the only place that ever sees caller-owned objects.
"""

from __future__ import annotations

import json
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Protocol

from .errors import SerializationError


class Codec(Protocol):
    content_type: str

    def encode(self, obj: Any) -> bytes: ...

    def decode(self, data: bytes) -> Any: ...


def _default(o: Any) -> Any:
    if isinstance(o, (datetime, date)):
        return o.isoformat()
    if isinstance(o, Decimal):
        return str(o)
    if isinstance(o, (set, frozenset, tuple)):
        return list(o)
    if hasattr(o, "model_dump"):
        return o.model_dump(mode="json")
    raise TypeError(f"Object of type {type(o).__name__} is not JSON serializable")


class JsonCodec:
    """Compact UTF-8 JSON."""

    content_type = "application/json"

    def encode(self, obj: Any) -> bytes:
        try:
            text = json.dumps(obj, separators=(",", ":"), ensure_ascii=False, default=_default)
            return text.encode("utf-8")
        except (TypeError, ValueError) as e:
            raise SerializationError(str(e)) from e

    def decode(self, data: bytes) -> Any:
        try:
            return json.loads(data)
        except ValueError as e:
            raise SerializationError(str(e)) from e
