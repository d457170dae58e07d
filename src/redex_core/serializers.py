"""
Serializers - pluggable codecs between Python values and Redis bytes.

Every cache client owns exactly one Serializer. A serializer is stateless:
it is built once and shared across all operations and threads.

Reading a value back into a specific type is done with ``as_type``: the
decoded payload is validated into that type with a pydantic TypeAdapter,
so pydantic models, dataclasses, datetimes and generic containers like
``list[Order]`` all round-trip through the text codecs.

Copyright (c) 2025 Goncharenko Anton aka alienxs2
License: MIT
"""

import json
import pickle
from abc import ABC, abstractmethod
from functools import lru_cache
from typing import Any, Dict, Optional, Type, Union

import orjson
import structlog
from pydantic import TypeAdapter, ValidationError
from pydantic_core import PydanticSerializationError, to_jsonable_python

from redex_core.exceptions import ConfigurationError, DeserializationError, SerializationError

logger = structlog.get_logger(__name__)


@lru_cache(maxsize=256)
def _type_adapter(as_type: Any) -> TypeAdapter:
    return TypeAdapter(as_type)


def coerce(value: Any, as_type: Optional[Any]) -> Any:
    """
    Validate a decoded payload into ``as_type``.

    Args:
        value: Decoded Python object (dict, list, str, ...)
        as_type: Target type, or None to return ``value`` untouched

    Returns:
        Instance of ``as_type`` (or ``value`` when no type requested)

    Raises:
        DeserializationError: If the payload does not fit the type
    """
    if as_type is None:
        return value
    try:
        return _type_adapter(as_type).validate_python(value)
    except ValidationError as e:
        raise DeserializationError(
            f"Stored value does not match type {as_type!r}: {e}",
            details={"type": repr(as_type)},
            original_exception=e,
        )


class Serializer(ABC):
    """
    Contract for value codecs.

    Implementations must round-trip: ``deserialize(serialize(v), type(v)) == v``.
    """

    name: str = ""

    @abstractmethod
    def serialize(self, value: Any) -> bytes:
        """Encode ``value`` to bytes. Raises SerializationError."""

    @abstractmethod
    def deserialize(self, data: Union[bytes, str], as_type: Optional[Any] = None) -> Any:
        """Decode ``data``, optionally validating into ``as_type``. Raises DeserializationError."""

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"


class JsonSerializer(Serializer):
    """
    UTF-8 JSON codec built on the standard json module.

    Non-JSON-native values (pydantic models, dataclasses, datetime, UUID,
    Decimal, sets) are converted with pydantic's ``to_jsonable_python``.

    Example:
        ```python
        codec = JsonSerializer()
        data = codec.serialize({"id": 1, "at": datetime(2025, 1, 1)})
        # b'{"id":1,"at":"2025-01-01T00:00:00"}'
        codec.deserialize(data)
        # {'id': 1, 'at': '2025-01-01T00:00:00'}
        ```
    """

    name = "json"

    def serialize(self, value: Any) -> bytes:
        try:
            return json.dumps(
                to_jsonable_python(value), ensure_ascii=False, separators=(",", ":")
            ).encode("utf-8")
        except (TypeError, ValueError, PydanticSerializationError) as e:
            logger.error("serialization_failed", serializer=self.name, error=str(e))
            raise SerializationError(
                f"Failed to serialize value to JSON: {e}", original_exception=e
            )

    def deserialize(self, data: Union[bytes, str], as_type: Optional[Any] = None) -> Any:
        try:
            if isinstance(data, bytes):
                data = data.decode("utf-8")
            decoded = json.loads(data)
        except (json.JSONDecodeError, UnicodeDecodeError, ValueError) as e:
            logger.error("deserialization_failed", serializer=self.name, error=str(e))
            raise DeserializationError(
                f"Failed to deserialize JSON: {e}", original_exception=e
            )
        return coerce(decoded, as_type)


class OrjsonSerializer(Serializer):
    """
    JSON codec on orjson, faster than JsonSerializer.

    Payloads are interchangeable with JsonSerializer for the values both
    accept. Non-string dict keys are stringified as the stdlib codec does;
    integers wider than 64 bits are rejected with SerializationError.
    """

    name = "orjson"

    def serialize(self, value: Any) -> bytes:
        try:
            return orjson.dumps(
                value, default=to_jsonable_python, option=orjson.OPT_NON_STR_KEYS
            )
        except (orjson.JSONEncodeError, PydanticSerializationError) as e:
            logger.error("serialization_failed", serializer=self.name, error=str(e))
            raise SerializationError(
                f"Failed to serialize value with orjson: {e}", original_exception=e
            )

    def deserialize(self, data: Union[bytes, str], as_type: Optional[Any] = None) -> Any:
        try:
            decoded = orjson.loads(data)
        except orjson.JSONDecodeError as e:
            logger.error("deserialization_failed", serializer=self.name, error=str(e))
            raise DeserializationError(
                f"Failed to deserialize JSON: {e}", original_exception=e
            )
        return coerce(decoded, as_type)


class PickleSerializer(Serializer):
    """
    Python-native pickle codec.

    Round-trips arbitrary picklable objects without ``as_type``. Only use it
    against a Redis that is not writable by untrusted parties: unpickling
    executes code.
    """

    name = "pickle"

    def __init__(self, protocol: int = pickle.HIGHEST_PROTOCOL) -> None:
        self.protocol = protocol

    def serialize(self, value: Any) -> bytes:
        try:
            return pickle.dumps(value, protocol=self.protocol)
        except (pickle.PicklingError, TypeError, AttributeError) as e:
            logger.error("serialization_failed", serializer=self.name, error=str(e))
            raise SerializationError(f"Failed to pickle value: {e}", original_exception=e)

    def deserialize(self, data: Union[bytes, str], as_type: Optional[Any] = None) -> Any:
        if isinstance(data, str):
            data = data.encode("utf-8", "surrogateescape")
        try:
            decoded = pickle.loads(data)
        except (pickle.UnpicklingError, EOFError, ValueError, TypeError) as e:
            logger.error("deserialization_failed", serializer=self.name, error=str(e))
            raise DeserializationError(f"Failed to unpickle value: {e}", original_exception=e)
        return coerce(decoded, as_type)

    def __repr__(self) -> str:
        return f"PickleSerializer(protocol={self.protocol})"


SERIALIZERS: Dict[str, Type[Serializer]] = {
    JsonSerializer.name: JsonSerializer,
    OrjsonSerializer.name: OrjsonSerializer,
    PickleSerializer.name: PickleSerializer,
}


def get_serializer(name: str) -> Serializer:
    """
    Build a serializer by name.

    Args:
        name: One of "json", "orjson", "pickle" (case-insensitive)

    Raises:
        ConfigurationError: If the name is unknown
    """
    try:
        return SERIALIZERS[name.lower()]()
    except KeyError:
        raise ConfigurationError(
            f"Unknown serializer '{name}'. Available: {sorted(SERIALIZERS)}",
            details={"serializer": name},
        )
