"""asyncio bindings for the REST clients.

Each coroutine awaits the future returned by the wrapped client, so
results, errors and cancellation behave exactly as in the future-based
API. Cancelling the awaiting task cancels the underlying request.
"""

from __future__ import annotations

import asyncio
import os
from concurrent.futures import Future
from types import TracebackType
from typing import Any, Mapping, TypeVar

from .client import RestClient, RestJsonClient
from .config import TransportConfig
from .mapping import ObjectMapper
from .responses import FileResponse, NoBodyResponse, StringResponse
from .transport import Transport

ResponseValue = TypeVar("ResponseValue")
T = TypeVar("T")
AioClientT = TypeVar("AioClientT", bound="_AioBase")


def to_awaitable(
    future: Future[ResponseValue],
) -> asyncio.Future[ResponseValue]:
    """Bridge a dispatch future into the running event loop.

    The returned future resolves with the same value or exception;
    cancelling it cancels ``future``.
    """
    return asyncio.wrap_future(future)


class _AioBase:
    _client: RestClient | RestJsonClient

    @property
    def headers(self) -> Mapping[str, str]:
        return self._client.headers

    def add_header(self, name: str, value: str) -> None:
        self._client.add_header(name, value)

    def remove_header(self, name: str) -> None:
        self._client.remove_header(name)

    async def head(
        self, url: str, *, headers: Mapping[str, str] | None = None
    ) -> NoBodyResponse:
        return await to_awaitable(self._client.head(url, headers=headers))

    async def download_file(
        self,
        url: str,
        path: str | os.PathLike[str],
        *,
        headers: Mapping[str, str] | None = None,
    ) -> FileResponse:
        return await to_awaitable(
            self._client.download_file(url, path, headers=headers)
        )

    async def close(self) -> None:
        """Close the wrapped client without blocking the event loop."""
        await asyncio.to_thread(self._client.close)

    async def __aenter__(self: AioClientT) -> AioClientT:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()


class AioRestClient(_AioBase):
    """Awaitable counterpart of ``RestClient``."""

    def __init__(
        self,
        config: TransportConfig | None = None,
        *,
        transport: Transport | None = None,
    ) -> None:
        self._client = RestClient(config, transport=transport)

    async def get(
        self, url: str, *, headers: Mapping[str, str] | None = None
    ) -> StringResponse:
        return await to_awaitable(self._client.get(url, headers=headers))

    async def post(
        self,
        url: str,
        body: str | bytes | None,
        *,
        headers: Mapping[str, str] | None = None,
    ) -> StringResponse:
        return await to_awaitable(
            self._client.post(url, body, headers=headers)
        )

    async def put(
        self,
        url: str,
        body: str | bytes | None,
        *,
        headers: Mapping[str, str] | None = None,
    ) -> StringResponse:
        return await to_awaitable(self._client.put(url, body, headers=headers))

    async def patch(
        self,
        url: str,
        body: str | bytes | None,
        *,
        headers: Mapping[str, str] | None = None,
    ) -> StringResponse:
        return await to_awaitable(
            self._client.patch(url, body, headers=headers)
        )

    async def delete(
        self, url: str, *, headers: Mapping[str, str] | None = None
    ) -> StringResponse:
        return await to_awaitable(self._client.delete(url, headers=headers))


class AioRestJsonClient(_AioBase):
    """Awaitable counterpart of ``RestJsonClient``."""

    def __init__(
        self,
        mapper: ObjectMapper | None = None,
        config: TransportConfig | None = None,
        *,
        transport: Transport | None = None,
    ) -> None:
        self._client = RestJsonClient(mapper, config, transport=transport)

    async def get(
        self,
        url: str,
        target_type: type[T] | None = None,
        *,
        headers: Mapping[str, str] | None = None,
    ) -> Any:
        return await to_awaitable(
            self._client.get(url, target_type, headers=headers)
        )

    async def post(
        self,
        url: str,
        target_type: type[T] | None,
        body: Any,
        *,
        headers: Mapping[str, str] | None = None,
    ) -> Any:
        return await to_awaitable(
            self._client.post(url, target_type, body, headers=headers)
        )

    async def put(
        self,
        url: str,
        target_type: type[T] | None,
        body: Any,
        *,
        headers: Mapping[str, str] | None = None,
    ) -> Any:
        return await to_awaitable(
            self._client.put(url, target_type, body, headers=headers)
        )

    async def patch(
        self,
        url: str,
        target_type: type[T] | None,
        body: Any,
        *,
        headers: Mapping[str, str] | None = None,
    ) -> Any:
        return await to_awaitable(
            self._client.patch(url, target_type, body, headers=headers)
        )

    async def delete(
        self,
        url: str,
        target_type: type[T] | None = None,
        *,
        headers: Mapping[str, str] | None = None,
    ) -> Any:
        return await to_awaitable(
            self._client.delete(url, target_type, headers=headers)
        )
