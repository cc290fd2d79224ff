"""
HTTP delivery to the Stitch import API.

One POST per call. Status < 300 is success; anything else raises
``StitchRejected`` carrying the response, and network failures raise
``DeliveryError``. Nothing is retried here.
"""

from __future__ import annotations

from typing import Optional, Protocol

import httpx
from loguru import logger

from .errors import StitchRejected, map_transport_error
from .models import StitchResponse


class Transport(Protocol):
    def post(self, body: bytes, content_type: str) -> StitchResponse: ...

    def close(self) -> None: ...


def _timeout(connect_timeout: float) -> httpx.Timeout:
    return httpx.Timeout(connect_timeout, connect=connect_timeout)


def to_stitch_response(response: httpx.Response) -> StitchResponse:
    """Map an httpx response onto StitchResponse, raising on rejection."""
    try:
        content = response.json()
        if not isinstance(content, dict):
            content = {"message": content}
    except ValueError:
        content = {"message": response.text}

    result = StitchResponse(
        status=response.status_code,
        reason=response.reason_phrase,
        content=content,
    )
    if not result.is_ok:
        raise StitchRejected(result)
    return result


class HttpTransport:
    """Blocking transport over a private ``httpx.Client``."""

    def __init__(
        self,
        url: str,
        token: str,
        *,
        connect_timeout: float = 120.0,
        client: Optional[httpx.Client] = None,
    ):
        self._url = url
        self._headers = {"Authorization": f"Bearer {token}"}
        self._client = client or httpx.Client(timeout=_timeout(connect_timeout))

    def post(self, body: bytes, content_type: str) -> StitchResponse:
        headers = {**self._headers, "Content-Type": content_type}
        try:
            response = self._client.post(self._url, content=body, headers=headers)
        except httpx.HTTPError as e:
            logger.debug(f"POST {self._url} failed: {type(e).__name__}: {e}")
            raise map_transport_error(e) from e
        return to_stitch_response(response)

    def close(self) -> None:
        self._client.close()


class AsyncHttpTransport:
    """Async flavour over ``httpx.AsyncClient``."""

    def __init__(
        self,
        url: str,
        token: str,
        *,
        connect_timeout: float = 120.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self._url = url
        self._headers = {"Authorization": f"Bearer {token}"}
        self._client = client or httpx.AsyncClient(timeout=_timeout(connect_timeout))

    async def post(self, body: bytes, content_type: str) -> StitchResponse:
        headers = {**self._headers, "Content-Type": content_type}
        try:
            response = await self._client.post(self._url, content=body, headers=headers)
        except httpx.HTTPError as e:
            logger.debug(f"POST {self._url} failed: {type(e).__name__}: {e}")
            raise map_transport_error(e) from e
        return to_stitch_response(response)

    async def aclose(self) -> None:
        await self._client.aclose()
