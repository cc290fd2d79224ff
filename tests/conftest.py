"""
Pytest configuration and fixtures for stitch-client.

Provides in-memory transports, recording handlers and a clean environment
so no test ever talks to the real Stitch API.
"""

import json
import os
import threading
import time

import pytest

from stitch_client.errors import StitchRejected
from stitch_client.models import StitchResponse


class RecordingTransport:
    """Transport that stores every POSTed batch.

    ``status`` >= 300 makes every call rejected, ``error`` is raised instead
    of answering, and ``gate`` (a threading.Event) holds each call until set.
    """

    def __init__(self, status: int = 200, error: Exception | None = None, gate=None):
        self.status = status
        self.error = error
        self.gate = gate
        self.batches: list[list[dict]] = []
        self.content_types: list[str] = []
        self.closed = False
        self._lock = threading.Lock()

    def post(self, body: bytes, content_type: str) -> StitchResponse:
        if self.gate is not None:
            self.gate.wait()
        with self._lock:
            self.batches.append(json.loads(body))
            self.content_types.append(content_type)
        if self.error is not None:
            raise self.error
        response = StitchResponse(
            status=self.status,
            reason="OK" if self.status < 300 else "Bad Request",
            content={"status": "OK" if self.status < 300 else "ERROR"},
        )
        if not response.is_ok:
            raise StitchRejected(response)
        return response

    def close(self) -> None:
        self.closed = True

    @property
    def records(self) -> list[dict]:
        return [r for b in self.batches for r in b]

    def wait_for_batches(self, n: int, timeout: float = 2.0) -> bool:
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if len(self.batches) >= n:
                return True
            time.sleep(0.005)
        return len(self.batches) >= n


class AsyncRecordingTransport(RecordingTransport):
    async def post(self, body: bytes, content_type: str) -> StitchResponse:
        return RecordingTransport.post(self, body, content_type)

    async def aclose(self) -> None:
        self.closed = True


class Collector:
    """ResponseHandler that records every callback."""

    def __init__(self):
        self.ok: list[tuple[dict, StitchResponse]] = []
        self.errors: list[tuple[dict, Exception]] = []

    def handle_ok(self, record, response):
        self.ok.append((record, response))

    def handle_error(self, record, error):
        self.errors.append((record, error))


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    """Drop STITCH_* variables and any .env file from the test's view."""
    for key in list(os.environ):
        if key.upper().startswith("STITCH_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def mock_config():
    """Minimal client configuration for tests."""
    return {
        "client_id": 4321,
        "token": "test-token",
        "namespace": "test_ns",
        "table_name": "people",
        "key_names": ["id"],
        "max_batch_records": 5,
        "max_batch_bytes": 1_000_000,
        "max_flush_interval_millis": 60_000,
    }


@pytest.fixture
def transport():
    return RecordingTransport()


@pytest.fixture
def collector():
    return Collector()


@pytest.fixture
def transport_factory():
    """Build RecordingTransport instances with custom behaviour."""
    return RecordingTransport


@pytest.fixture
def async_transport_factory():
    return AsyncRecordingTransport


@pytest.fixture
def collector_factory():
    return Collector
