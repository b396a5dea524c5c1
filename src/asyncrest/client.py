"""Asynchronous REST clients.

Every operation returns a ``concurrent.futures.Future`` immediately and
performs the exchange on the client's executor. Failures are delivered
through the same future: ``TransportError`` for network problems,
``SerializationError`` and ``DeserializationError`` for mapping problems
and ``concurrent.futures.CancelledError`` once the caller cancels.

Default headers are a copy-on-write snapshot. ``add_header`` and
``remove_header`` affect requests issued after they return; requests
already submitted keep the snapshot they were built with.
"""

from __future__ import annotations

import logging
import os
import tempfile
import threading
from concurrent.futures import CancelledError, Future, ThreadPoolExecutor
from pathlib import Path
from types import MappingProxyType, TracebackType
from typing import Any, Callable, Mapping, TypeVar

from requests.structures import CaseInsensitiveDict

from .config import DEFAULT_CONTENT_TYPE, TransportConfig
from .errors import SerializationError
from .mapping import MappingPipeline, ObjectMapper, PydanticObjectMapper
from .responses import (
    FileResponse,
    MappedResponse,
    NoBodyResponse,
    StringResponse,
    freeze_headers,
)
from .transport import (
    RequestDescriptor,
    Transport,
    TransportResponse,
    build_transport,
)

logger = logging.getLogger(__name__)

ResponseValue = TypeVar("ResponseValue")
T = TypeVar("T")
ClientT = TypeVar("ClientT", bound="_BaseRestClient")

BodyBuilder = Callable[[TransportResponse, "Future[Any]"], ResponseValue]


def _current_umask() -> int:
    mask = os.umask(0)
    os.umask(mask)
    return mask


# Mode a plain open() would give a new file; mkstemp always uses 0600.
_FILE_MODE = 0o666 & ~_current_umask()


def _claim(future: Future[Any]) -> bool:
    """Move ``future`` to RUNNING; False if the caller already cancelled."""
    if future.running():
        return True
    return future.set_running_or_notify_cancel()


def _failed(error: BaseException) -> Future[Any]:
    future: Future[Any] = Future()
    future.set_exception(error)
    return future


def _discard(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        pass
    except OSError as exc:
        logger.warning("could not remove partial download %s: %s", path, exc)


class _BaseRestClient:
    """Configuration, header state and dispatch shared by both clients."""

    def __init__(
        self,
        config: TransportConfig | None = None,
        *,
        transport: Transport | None = None,
    ) -> None:
        self._config = config if config is not None else TransportConfig()
        self._owns_transport = transport is None
        self._transport = transport or build_transport(self._config)
        self._owns_executor = self._config.executor is None
        self._executor = self._config.executor or ThreadPoolExecutor(
            max_workers=self._config.max_workers,
            thread_name_prefix="asyncrest",
        )

        headers: CaseInsensitiveDict[str] = CaseInsensitiveDict(
            {"Content-Type": DEFAULT_CONTENT_TYPE}
        )
        headers.update(self._config.default_headers)
        self._headers = headers
        self._headers_lock = threading.Lock()

    @property
    def config(self) -> TransportConfig:
        return self._config

    @property
    def headers(self) -> Mapping[str, str]:
        """Read-only view of the current default headers."""
        return MappingProxyType(self._headers)

    def add_header(self, name: str, value: str) -> None:
        """Add or replace a header sent with every later request."""
        with self._headers_lock:
            headers = self._headers.copy()
            headers[name] = value
            self._headers = headers

    def remove_header(self, name: str) -> None:
        """Stop sending header ``name``. No-op if it is not set."""
        with self._headers_lock:
            if name not in self._headers:
                return
            headers = self._headers.copy()
            del headers[name]
            self._headers = headers

    def _merge_headers(
        self, headers: Mapping[str, str] | None
    ) -> dict[str, str]:
        merged = self._headers.copy()
        if headers:
            merged.update(headers)
        return dict(merged.items())

    def _encode(self, body: str | bytes | None) -> bytes | None:
        if body is None or isinstance(body, bytes):
            return body
        return body.encode(self._config.charset)

    def _decode(self, body: bytes) -> str:
        return body.decode(self._config.charset, errors="replace")

    def _dispatch(
        self,
        method: str,
        url: str,
        *,
        headers: Mapping[str, str] | None,
        body: bytes | None,
        builder: BodyBuilder[ResponseValue],
    ) -> Future[ResponseValue]:
        """Submit one exchange and return the caller-facing future."""
        descriptor = RequestDescriptor(
            method=method,
            url=url,
            headers=self._merge_headers(headers),
            body=body,
            charset=self._config.charset,
        )
        future: Future[ResponseValue] = Future()
        logger.debug("dispatch %s %s", descriptor.method, descriptor.url)
        self._executor.submit(self._run, descriptor, future, builder)
        return future

    def _run(
        self,
        descriptor: RequestDescriptor,
        future: Future[ResponseValue],
        builder: BodyBuilder[ResponseValue],
    ) -> None:
        if future.cancelled():
            logger.debug(
                "%s %s cancelled before send", descriptor.method, descriptor.url
            )
            return
        try:
            response = self._transport.send(descriptor)
            with response:
                if future.cancelled():
                    raise CancelledError()
                value = builder(response, future)
        except CancelledError:
            logger.debug("%s %s cancelled", descriptor.method, descriptor.url)
            return
        except Exception as exc:
            logger.debug(
                "%s %s failed: %s", descriptor.method, descriptor.url, exc
            )
            if _claim(future):
                future.set_exception(exc)
            return
        if _claim(future):
            logger.debug(
                "%s %s completed", descriptor.method, descriptor.url
            )
            future.set_result(value)

    def _read_body(
        self, response: TransportResponse, future: Future[Any]
    ) -> bytes:
        buffer = bytearray()
        for chunk in response.iter_bytes():
            if future.cancelled():
                raise CancelledError()
            buffer += chunk
        if future.cancelled():
            raise CancelledError()
        return bytes(buffer)

    def _no_body(
        self, response: TransportResponse, future: Future[Any]
    ) -> NoBodyResponse:
        return NoBodyResponse(response.status_code, response.headers)

    def _string_body(
        self, response: TransportResponse, future: Future[Any]
    ) -> StringResponse:
        body = self._decode(self._read_body(response, future))
        return StringResponse(response.status_code, response.headers, body)

    def head(
        self, url: str, *, headers: Mapping[str, str] | None = None
    ) -> Future[NoBodyResponse]:
        """Perform an asynchronous HEAD request.

        Args:
            url: Absolute URL to request.
            headers: Optional per-request headers merged over the defaults.

        Returns:
            Future resolving to the status code and response headers.
        """
        return self._dispatch(
            "HEAD", url, headers=headers, body=None, builder=self._no_body
        )

    def download_file(
        self,
        url: str,
        path: str | os.PathLike[str],
        *,
        headers: Mapping[str, str] | None = None,
    ) -> Future[FileResponse]:
        """Stream the body of a GET request into ``path``.

        Bytes go to a temporary file beside ``path`` which is moved into
        place once the stream is fully written and closed. On failure or
        cancellation the temporary file is removed and ``path`` is left
        untouched.

        Args:
            url: Absolute URL of the file.
            path: Destination file path.
            headers: Optional per-request headers merged over the defaults.

        Returns:
            Future resolving to a FileResponse whose body is ``path``.
        """
        destination = Path(path)

        def write_file(
            response: TransportResponse, future: Future[Any]
        ) -> FileResponse:
            destination.parent.mkdir(parents=True, exist_ok=True)
            fd, temp_name = tempfile.mkstemp(
                prefix=f".{destination.name}.",
                suffix=".part",
                dir=destination.parent,
            )
            temp_path = Path(temp_name)
            try:
                with os.fdopen(fd, "wb") as handle:
                    for chunk in response.iter_bytes():
                        if future.cancelled():
                            raise CancelledError()
                        handle.write(chunk)
                    handle.flush()
                    os.fsync(handle.fileno())
                # Once claimed the future can no longer be cancelled.
                if not _claim(future):
                    raise CancelledError()
                os.chmod(temp_path, _FILE_MODE)
                os.replace(temp_path, destination)
            except BaseException:
                _discard(temp_path)
                raise
            return FileResponse(
                response.status_code, response.headers, destination
            )

        return self._dispatch(
            "GET", url, headers=headers, body=None, builder=write_file
        )

    def close(self) -> None:
        """Release the transport and any executor created by this client."""
        try:
            if self._owns_executor:
                self._executor.shutdown(wait=True)
        finally:
            if self._owns_transport:
                self._transport.close()

    def __enter__(self: ClientT) -> ClientT:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()


class RestClient(_BaseRestClient):
    """REST client exchanging raw text bodies.

    Content-Type defaults to ``application/json`` and can be overridden
    with ``add_header`` or per request.
    """

    def get(
        self, url: str, *, headers: Mapping[str, str] | None = None
    ) -> Future[StringResponse]:
        """Perform an asynchronous GET request."""
        return self._dispatch(
            "GET", url, headers=headers, body=None, builder=self._string_body
        )

    def post(
        self,
        url: str,
        body: str | bytes | None,
        *,
        headers: Mapping[str, str] | None = None,
    ) -> Future[StringResponse]:
        """Perform an asynchronous POST request with a text body."""
        return self._send_text("POST", url, body, headers)

    def put(
        self,
        url: str,
        body: str | bytes | None,
        *,
        headers: Mapping[str, str] | None = None,
    ) -> Future[StringResponse]:
        """Perform an asynchronous PUT request with a text body."""
        return self._send_text("PUT", url, body, headers)

    def patch(
        self,
        url: str,
        body: str | bytes | None,
        *,
        headers: Mapping[str, str] | None = None,
    ) -> Future[StringResponse]:
        """Perform an asynchronous PATCH request with a text body."""
        return self._send_text("PATCH", url, body, headers)

    def delete(
        self, url: str, *, headers: Mapping[str, str] | None = None
    ) -> Future[StringResponse]:
        """Perform an asynchronous DELETE request."""
        return self._dispatch(
            "DELETE",
            url,
            headers=headers,
            body=None,
            builder=self._string_body,
        )

    def _send_text(
        self,
        method: str,
        url: str,
        body: str | bytes | None,
        headers: Mapping[str, str] | None,
    ) -> Future[StringResponse]:
        return self._dispatch(
            method,
            url,
            headers=headers,
            body=self._encode(body),
            builder=self._string_body,
        )


class RestJsonClient(_BaseRestClient):
    """REST client that maps request and response bodies through a mapper.

    Bodies given as ``str`` or ``bytes`` are sent verbatim; any other
    object is serialized first. When ``target_type`` is given the response
    body is deserialized into it and a ``MappedResponse`` is returned,
    otherwise the raw text comes back in a ``StringResponse``.
    """

    def __init__(
        self,
        mapper: ObjectMapper | None = None,
        config: TransportConfig | None = None,
        *,
        transport: Transport | None = None,
    ) -> None:
        super().__init__(config, transport=transport)
        self._pipeline = MappingPipeline(
            mapper if mapper is not None else PydanticObjectMapper()
        )

    @property
    def mapper(self) -> ObjectMapper:
        return self._pipeline.mapper

    def get(
        self,
        url: str,
        target_type: type[T] | None = None,
        *,
        headers: Mapping[str, str] | None = None,
    ) -> Future[Any]:
        """Perform an asynchronous GET request.

        Raises (through the future):
            DeserializationError: The body does not fit ``target_type``.
        """
        return self._dispatch(
            "GET",
            url,
            headers=headers,
            body=None,
            builder=self._builder_for(target_type),
        )

    def post(
        self,
        url: str,
        target_type: type[T] | None,
        body: Any,
        *,
        headers: Mapping[str, str] | None = None,
    ) -> Future[Any]:
        """Perform an asynchronous POST request.

        Raises (through the future):
            SerializationError: ``body`` could not be serialized; the
                request was not sent.
            DeserializationError: The body does not fit ``target_type``.
        """
        return self._send_mapped("POST", url, target_type, body, headers)

    def put(
        self,
        url: str,
        target_type: type[T] | None,
        body: Any,
        *,
        headers: Mapping[str, str] | None = None,
    ) -> Future[Any]:
        """Perform an asynchronous PUT request. See ``post``."""
        return self._send_mapped("PUT", url, target_type, body, headers)

    def patch(
        self,
        url: str,
        target_type: type[T] | None,
        body: Any,
        *,
        headers: Mapping[str, str] | None = None,
    ) -> Future[Any]:
        """Perform an asynchronous PATCH request. See ``post``."""
        return self._send_mapped("PATCH", url, target_type, body, headers)

    def delete(
        self,
        url: str,
        target_type: type[T] | None = None,
        *,
        headers: Mapping[str, str] | None = None,
    ) -> Future[Any]:
        """Perform an asynchronous DELETE request. See ``get``."""
        return self._dispatch(
            "DELETE",
            url,
            headers=headers,
            body=None,
            builder=self._builder_for(target_type),
        )

    def _send_mapped(
        self,
        method: str,
        url: str,
        target_type: type[T] | None,
        body: Any,
        headers: Mapping[str, str] | None,
    ) -> Future[Any]:
        if body is not None and not isinstance(body, (str, bytes)):
            try:
                body = self._pipeline.serialize(body)
            except SerializationError as exc:
                logger.debug("%s %s not sent: %s", method, url, exc)
                return _failed(exc)
        return self._dispatch(
            method,
            url,
            headers=headers,
            body=self._encode(body),
            builder=self._builder_for(target_type),
        )

    def _builder_for(self, target_type: type[T] | None) -> BodyBuilder[Any]:
        if target_type is None:
            return self._string_body

        def map_body(
            response: TransportResponse, future: Future[Any]
        ) -> MappedResponse[T]:
            text = self._decode(self._read_body(response, future))
            value = self._pipeline.deserialize(
                text,
                target_type,
                status_code=response.status_code,
                headers=freeze_headers(response.headers),
            )
            return MappedResponse(
                response.status_code, response.headers, value
            )

        return map_body
