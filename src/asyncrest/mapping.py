"""Object mapping capability and the pipeline that classifies its failures."""

from __future__ import annotations

import logging
from typing import Any, Protocol, TypeVar, runtime_checkable

from pydantic import TypeAdapter

from .errors import DeserializationError, SerializationError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@runtime_checkable
class ObjectMapper(Protocol):
    """Converts between domain objects and request/response text."""

    def serialize(self, obj: Any) -> str: ...

    def deserialize(self, text: str, target_type: type[T]) -> T: ...


class PydanticObjectMapper:
    """JSON mapper backed by pydantic ``TypeAdapter``.

    Handles pydantic models, dataclasses, TypedDicts and builtin
    containers. Adapters are cached per type.
    """

    def __init__(self) -> None:
        self._adapters: dict[Any, TypeAdapter[Any]] = {}

    def _adapter(self, target_type: Any) -> TypeAdapter[Any]:
        adapter = self._adapters.get(target_type)
        if adapter is None:
            adapter = TypeAdapter(target_type)
            self._adapters[target_type] = adapter
        return adapter

    def serialize(self, obj: Any) -> str:
        return self._adapter(type(obj)).dump_json(obj).decode("utf-8")

    def deserialize(self, text: str, target_type: type[T]) -> T:
        return self._adapter(target_type).validate_json(text)


class MappingPipeline:
    """Wraps an ``ObjectMapper`` and classifies failures by direction."""

    def __init__(self, mapper: ObjectMapper) -> None:
        self._mapper = mapper

    @property
    def mapper(self) -> ObjectMapper:
        return self._mapper

    def serialize(self, obj: Any) -> str:
        """Serialize an outbound body.

        Raises:
            SerializationError: The mapper failed; the payload is ``obj``.
        """
        try:
            return self._mapper.serialize(obj)
        except Exception as exc:
            logger.debug(
                "serialization of %s failed: %s", type(obj).__name__, exc
            )
            raise SerializationError(
                f"could not serialize {type(obj).__name__}: {exc}",
                payload=obj,
                cause=exc,
            ) from exc

    def deserialize(
        self,
        text: str,
        target_type: type[T],
        *,
        status_code: int | None = None,
        headers: Any = None,
    ) -> T:
        """Deserialize a response body into ``target_type``.

        Raises:
            DeserializationError: The mapper failed; the payload is ``text``.
        """
        try:
            return self._mapper.deserialize(text, target_type)
        except Exception as exc:
            name = getattr(target_type, "__name__", repr(target_type))
            logger.debug("deserialization to %s failed: %s", name, exc)
            raise DeserializationError(
                f"could not deserialize response body to {name}: {exc}",
                payload=text,
                cause=exc,
                status_code=status_code,
                headers=headers,
            ) from exc
