"""Transport boundary: request descriptors, raw responses and HTTP backends.

A transport performs one blocking HTTP exchange and hands back the status,
the headers and a lazily consumed body stream. The client runs transports
on its executor, so nothing here blocks the caller's thread.
"""

from __future__ import annotations

import logging
import ssl
from dataclasses import dataclass, field
from types import MappingProxyType, TracebackType
from typing import Any, Callable, Iterable, Iterator, Mapping, Protocol
from urllib.parse import urljoin, urlsplit

import httpx
import requests
from requests.adapters import HTTPAdapter

from .config import HttpVersion, RedirectPolicy, TransportConfig
from .errors import ConnectionFailedError, RequestTimeoutError, TransportError

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024


@dataclass(frozen=True)
class RequestDescriptor:
    """One outbound request, built per call and never shared."""

    method: str
    url: str
    headers: Mapping[str, str] = field(default_factory=dict)
    body: bytes | None = None
    charset: str = "utf-8"

    def __post_init__(self) -> None:
        object.__setattr__(self, "method", self.method.upper())
        object.__setattr__(
            self, "headers", MappingProxyType(dict(self.headers))
        )


class TransportResponse:
    """Raw status, headers and streamed body of one exchange."""

    def __init__(
        self,
        status_code: int,
        headers: Mapping[str, tuple[str, ...]],
        chunks: Iterable[bytes] = (),
        close: Callable[[], None] | None = None,
    ) -> None:
        self.status_code = status_code
        self.headers = headers
        self._chunks = chunks
        self._close = close
        self.closed = False

    def iter_bytes(self) -> Iterator[bytes]:
        """Yield body chunks as they arrive."""
        for chunk in self._chunks:
            if chunk:
                yield chunk

    def read(self) -> bytes:
        """Consume and return the whole body."""
        return b"".join(self.iter_bytes())

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        if self._close is not None:
            self._close()

    def __enter__(self) -> TransportResponse:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()


class Transport(Protocol):
    """Blocking HTTP capability consumed by the client."""

    def send(self, request: RequestDescriptor) -> TransportResponse: ...

    def close(self) -> None: ...


def is_downgrade(from_url: str, location: str) -> bool:
    """Return True when following ``location`` leaves HTTPS for HTTP."""
    target = urljoin(from_url, location)
    return (
        urlsplit(from_url).scheme.lower() == "https"
        and urlsplit(target).scheme.lower() == "http"
    )


def _group_headers(
    items: Iterable[tuple[str, str]],
) -> dict[str, tuple[str, ...]]:
    grouped: dict[str, list[str]] = {}
    for name, value in items:
        grouped.setdefault(name, []).append(value)
    return {name: tuple(values) for name, values in grouped.items()}


class _PolicySession(requests.Session):
    """Session that refuses HTTPS to HTTP redirects under NORMAL policy."""

    def __init__(self, redirect_policy: RedirectPolicy) -> None:
        super().__init__()
        self.redirect_policy = redirect_policy

    def get_redirect_target(self, resp: requests.Response) -> str | None:
        location = super().get_redirect_target(resp)
        if (
            location is not None
            and self.redirect_policy is RedirectPolicy.NORMAL
            and is_downgrade(resp.url, location)
        ):
            logger.debug("refusing redirect %s -> %s", resp.url, location)
            return None
        return location


class _SSLContextAdapter(HTTPAdapter):
    """HTTPAdapter whose connection pools use a caller-supplied context."""

    def __init__(self, ssl_context: ssl.SSLContext, **kwargs: Any) -> None:
        self._ssl_context = ssl_context
        super().__init__(**kwargs)

    def init_poolmanager(self, *args: Any, **kwargs: Any) -> None:
        kwargs["ssl_context"] = self._ssl_context
        return super().init_poolmanager(*args, **kwargs)


def _translate_requests_error(
    exc: requests.exceptions.RequestException,
) -> TransportError:
    """Map requests exceptions to client transport errors."""
    if isinstance(exc, requests.exceptions.Timeout):
        return RequestTimeoutError(str(exc))
    if isinstance(exc, requests.exceptions.ConnectionError):
        return ConnectionFailedError(str(exc))
    return TransportError(str(exc))


class RequestsTransport:
    """HTTP/1.1 transport on top of a shared ``requests.Session``."""

    def __init__(self, config: TransportConfig) -> None:
        if config.version is not HttpVersion.HTTP_1_1:
            raise ValueError("RequestsTransport only supports HTTP/1.1")
        self._config = config
        self._session = _PolicySession(config.redirect_policy)
        if config.ssl_context is not None:
            self._session.mount(
                "https://", _SSLContextAdapter(config.ssl_context)
            )

    def send(self, request: RequestDescriptor) -> TransportResponse:
        logger.debug("requests %s %s", request.method, request.url)
        try:
            response = self._session.request(
                request.method,
                request.url,
                headers=dict(request.headers),
                data=request.body,
                timeout=self._config.timeout_seconds,
                allow_redirects=(
                    self._config.redirect_policy is not RedirectPolicy.NEVER
                ),
                stream=True,
            )
        except requests.exceptions.RequestException as exc:
            raise _translate_requests_error(exc) from exc
        return TransportResponse(
            status_code=response.status_code,
            headers=self._headers_value(response),
            chunks=self._iter_content(response),
            close=response.close,
        )

    @staticmethod
    def _headers_value(
        response: requests.Response,
    ) -> dict[str, tuple[str, ...]]:
        raw_headers = getattr(response.raw, "headers", None)
        if raw_headers is not None and hasattr(raw_headers, "getlist"):
            return {
                name: tuple(raw_headers.getlist(name)) for name in raw_headers
            }
        return {name: (value,) for name, value in response.headers.items()}

    @staticmethod
    def _iter_content(response: requests.Response) -> Iterator[bytes]:
        try:
            yield from response.iter_content(CHUNK_SIZE)
        except requests.exceptions.RequestException as exc:
            raise _translate_requests_error(exc) from exc

    def close(self) -> None:
        self._session.close()


def _translate_httpx_error(exc: httpx.HTTPError) -> TransportError:
    """Map httpx exceptions to client transport errors."""
    if isinstance(exc, httpx.TimeoutException):
        return RequestTimeoutError(str(exc))
    if isinstance(exc, httpx.ConnectError):
        return ConnectionFailedError(str(exc))
    return TransportError(str(exc))


class HttpxTransport:
    """Transport on top of ``httpx.Client``; negotiates HTTP/2 if asked."""

    def __init__(self, config: TransportConfig) -> None:
        self._config = config
        self._client = httpx.Client(
            http2=config.version is HttpVersion.HTTP_2,
            verify=config.ssl_context if config.ssl_context else True,
            timeout=config.timeout_seconds,
            follow_redirects=False,
        )

    def _follows(self, current: httpx.URL, target: httpx.URL) -> bool:
        policy = self._config.redirect_policy
        if policy is RedirectPolicy.NEVER:
            return False
        if policy is RedirectPolicy.NORMAL and is_downgrade(
            str(current), str(target)
        ):
            logger.debug("refusing redirect %s -> %s", current, target)
            return False
        return True

    def _send_following(self, request: httpx.Request) -> httpx.Response:
        response = self._client.send(request, stream=True)
        hops = 0
        while response.next_request is not None and self._follows(
            response.request.url, response.next_request.url
        ):
            hops += 1
            if hops > self._client.max_redirects:
                response.close()
                raise httpx.TooManyRedirects(
                    "Exceeded maximum allowed redirects.", request=request
                )
            next_request = response.next_request
            response.close()
            response = self._client.send(next_request, stream=True)
        return response

    def send(self, request: RequestDescriptor) -> TransportResponse:
        logger.debug("httpx %s %s", request.method, request.url)
        try:
            response = self._send_following(
                self._client.build_request(
                    request.method,
                    request.url,
                    headers=dict(request.headers),
                    content=request.body,
                )
            )
        except httpx.HTTPError as exc:
            raise _translate_httpx_error(exc) from exc
        return TransportResponse(
            status_code=response.status_code,
            headers=_group_headers(response.headers.multi_items()),
            chunks=self._iter_bytes(response),
            close=response.close,
        )

    @staticmethod
    def _iter_bytes(response: httpx.Response) -> Iterator[bytes]:
        try:
            yield from response.iter_bytes(CHUNK_SIZE)
        except httpx.HTTPError as exc:
            raise _translate_httpx_error(exc) from exc

    def close(self) -> None:
        self._client.close()


def build_transport(config: TransportConfig) -> Transport:
    """Pick the transport able to honour ``config.version``."""
    if config.version is HttpVersion.HTTP_2:
        return HttpxTransport(config)
    return RequestsTransport(config)
