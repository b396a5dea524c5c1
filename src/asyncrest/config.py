"""Configuration models for the REST client engine."""

from __future__ import annotations

import codecs
import ssl
from concurrent.futures import Executor
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Mapping

DEFAULT_CONTENT_TYPE = "application/json"
DEFAULT_TIMEOUT_SECONDS = 30.0


class HttpVersion(str, Enum):
    """HTTP protocol version requested from the transport."""

    HTTP_1_1 = "HTTP/1.1"
    HTTP_2 = "HTTP/2"


class RedirectPolicy(str, Enum):
    """Which redirects the transport is allowed to follow.

    NORMAL follows redirects except those downgrading HTTPS to HTTP.
    """

    NEVER = "never"
    ALWAYS = "always"
    NORMAL = "normal"


def _default_headers() -> Mapping[str, str]:
    """Return immutable empty default headers mapping."""

    return MappingProxyType({})


@dataclass(frozen=True)
class TransportConfig:
    """Configuration shared by every request of one client.

    Default headers given here only seed the client; later changes go
    through ``RestClient.add_header`` and ``RestClient.remove_header``.
    """

    version: HttpVersion = HttpVersion.HTTP_1_1
    executor: Executor | None = None
    redirect_policy: RedirectPolicy = RedirectPolicy.NORMAL
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    ssl_context: ssl.SSLContext | None = None
    default_headers: Mapping[str, str] = field(default_factory=_default_headers)
    charset: str = "utf-8"
    max_workers: int | None = None

    def __post_init__(self) -> None:
        if self.timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be > 0")
        if self.max_workers is not None and self.max_workers < 1:
            raise ValueError("max_workers must be >= 1 when provided")
        try:
            codecs.lookup(self.charset)
        except LookupError as exc:
            raise ValueError(f"unknown charset: {self.charset!r}") from exc

        # Coerce plain strings so "HTTP/2" or "never" are accepted too.
        object.__setattr__(self, "version", HttpVersion(self.version))
        object.__setattr__(
            self, "redirect_policy", RedirectPolicy(self.redirect_policy)
        )
        # Freeze copied headers to avoid post-init mutation side effects.
        object.__setattr__(
            self,
            "default_headers",
            MappingProxyType(dict(self.default_headers)),
        )

    @classmethod
    def defaults(cls) -> TransportConfig:
        """HTTP/1.1, NORMAL redirects, 30s timeout, UTF-8, pooled executor."""
        return cls()
