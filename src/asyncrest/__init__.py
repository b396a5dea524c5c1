"""Asynchronous REST client engine with pluggable object mapping."""

from .aio import AioRestClient, AioRestJsonClient, to_awaitable
from .client import RestClient, RestJsonClient
from .config import HttpVersion, RedirectPolicy, TransportConfig
from .errors import (
    ConnectionFailedError,
    DeserializationError,
    MappingError,
    RequestTimeoutError,
    RestClientError,
    SerializationError,
    TransportError,
)
from .mapping import MappingPipeline, ObjectMapper, PydanticObjectMapper
from .responses import (
    FileResponse,
    MappedResponse,
    NoBodyResponse,
    StringResponse,
)
from .transport import (
    HttpxTransport,
    RequestDescriptor,
    RequestsTransport,
    Transport,
    TransportResponse,
)

__all__ = [
    "AioRestClient",
    "AioRestJsonClient",
    "ConnectionFailedError",
    "DeserializationError",
    "FileResponse",
    "HttpVersion",
    "HttpxTransport",
    "MappedResponse",
    "MappingError",
    "MappingPipeline",
    "NoBodyResponse",
    "ObjectMapper",
    "PydanticObjectMapper",
    "RedirectPolicy",
    "RequestDescriptor",
    "RequestTimeoutError",
    "RequestsTransport",
    "RestClient",
    "RestClientError",
    "RestJsonClient",
    "SerializationError",
    "StringResponse",
    "Transport",
    "TransportConfig",
    "TransportError",
    "TransportResponse",
    "to_awaitable",
]
