"""Error taxonomy for the REST client engine.

Transport failures and mapping failures are kept apart so callers can tell
a broken network call from a payload that could not be converted. Mapping
failures are further split by direction:

* ``SerializationError``: the caller's outbound object could not be
  written. The request is never sent and the caller can fix the object.
* ``DeserializationError``: the response body could not be read into the
  requested type. The round trip succeeded; the remote payload is at fault.

Cancellation is reported with ``concurrent.futures.CancelledError``.
"""

from __future__ import annotations

from typing import Any, Mapping


class RestClientError(Exception):
    """Base exception for all client errors."""


class TransportError(RestClientError):
    """Network, DNS, TLS or protocol failure raised by the transport.

    The transport library's own exception is chained as ``__cause__``.
    """


class RequestTimeoutError(TransportError):
    """The request did not complete within the configured timeout."""


class ConnectionFailedError(TransportError):
    """A connection to the remote host could not be established."""


class MappingError(RestClientError):
    """Object mapping failure.

    Attributes:
        payload: The text or object that failed to map.
        cause: The exception raised by the mapper.
    """

    def __init__(
        self,
        message: str,
        payload: Any = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message)
        self.payload = payload
        self.cause = cause


class SerializationError(MappingError):
    """Outbound body could not be serialized; nothing was sent."""


class DeserializationError(MappingError):
    """Response body could not be deserialized to the requested type.

    ``status_code`` and ``headers`` describe the response that failed to
    map. They are informational only; no typed response is produced.
    """

    def __init__(
        self,
        message: str,
        payload: Any = None,
        cause: BaseException | None = None,
        status_code: int | None = None,
        headers: Mapping[str, tuple[str, ...]] | None = None,
    ) -> None:
        super().__init__(message, payload=payload, cause=cause)
        self.status_code = status_code
        self.headers = headers
