"""Response value types returned by the client operations."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Generic, Iterable, Mapping, TypeVar

from requests.structures import CaseInsensitiveDict

T = TypeVar("T")

Headers = Mapping[str, tuple[str, ...]]


def freeze_headers(
    headers: Mapping[str, Iterable[str]] | None = None,
) -> Headers:
    """Return a read-only, case-insensitive copy of multi-valued headers."""
    frozen: CaseInsensitiveDict[tuple[str, ...]] = CaseInsensitiveDict()
    for name, values in (headers or {}).items():
        if isinstance(values, str):
            frozen[name] = (values,)
        else:
            frozen[name] = tuple(values)
    return MappingProxyType(frozen)


@dataclass(frozen=True)
class NoBodyResponse:
    """Status code and headers of a response without a body."""

    status_code: int
    headers: Headers = field(default_factory=freeze_headers, hash=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "headers", freeze_headers(self.headers))

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    def header(self, name: str) -> str | None:
        """Return the first value of header ``name`` or None."""
        values = self.headers.get(name)
        return values[0] if values else None


@dataclass(frozen=True)
class StringResponse(NoBodyResponse):
    """Response whose body is the decoded text."""

    body: str = ""


@dataclass(frozen=True)
class MappedResponse(NoBodyResponse, Generic[T]):
    """Response whose body was deserialized into the requested type."""

    body: T | None = None


@dataclass(frozen=True)
class FileResponse(NoBodyResponse):
    """Response whose body was written to ``body`` on local disk."""

    body: Path = field(default_factory=Path)
