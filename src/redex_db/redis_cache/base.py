"""
Shared plumbing for the sync and async Redis cache clients.

Holds argument validation, value (de)serialization, lifecycle checks and
store-error logging so both clients enforce identical semantics.

Copyright (c) 2025 Goncharenko Anton aka alienxs2
License: MIT
"""

from contextlib import contextmanager
from datetime import timedelta
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Tuple, Union

import redis
import structlog

from redex_core.exceptions import CacheClosedError, InvalidArgumentError, MissingArgumentError
from redex_core.serializers import JsonSerializer, Serializer

logger = structlog.get_logger(__name__)

TTL = Union[int, timedelta]
Items = Union[Mapping[str, Any], Iterable[Tuple[str, Any]]]


class CacheClientBase:
    """
    Behaviour common to RedisCacheClient and AsyncRedisCacheClient.

    Subclasses own the redis-py client; this base only knows how to
    validate arguments, convert values and log store failures.
    """

    def __init__(
        self,
        serializer: Optional[Serializer] = None,
        host: str = "localhost",
        port: int = 6379,
        db: int = 0,
    ) -> None:
        if db < 0 or db > 15:
            raise InvalidArgumentError(f"db must be in range 0-15, got {db}", error_code="ARG_003")

        if port <= 0 or port > 65535:
            raise InvalidArgumentError(
                f"port must be in range 1-65535, got {port}", error_code="ARG_003"
            )

        self.host = host
        self.port = port
        self.db = db
        self._serializer = serializer or JsonSerializer()
        self._closed = False
        self._logger = logger.bind(host=host, port=port, db=db)

    @property
    def serializer(self) -> Serializer:
        """The codec used for every value written or read."""
        return self._serializer

    @property
    def closed(self) -> bool:
        return self._closed

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def _ensure_open(self) -> None:
        if self._closed:
            raise CacheClosedError()

    @staticmethod
    def _validate_key(value: Any, name: str = "key") -> None:
        if not value or not isinstance(value, str):
            raise InvalidArgumentError(f"{name} must be non-empty string", details={"argument": name})

    @staticmethod
    def _validate_item(item: Any, name: str = "item") -> None:
        if item is None:
            raise MissingArgumentError(f"{name} must not be None", details={"argument": name})

    @staticmethod
    def _validate_ttl(ttl: Optional[TTL]) -> Optional[TTL]:
        if ttl is None:
            return None
        if isinstance(ttl, timedelta):
            seconds = ttl.total_seconds()
        elif isinstance(ttl, int) and not isinstance(ttl, bool):
            seconds = ttl
        else:
            raise InvalidArgumentError(
                f"ttl must be int seconds or timedelta, got {type(ttl).__name__}",
                error_code="ARG_003",
            )
        if seconds <= 0:
            raise InvalidArgumentError(f"ttl must be positive, got {ttl}", error_code="ARG_003")
        # EX has whole-second resolution
        if seconds < 1:
            raise InvalidArgumentError(
                f"ttl must be at least one second, got {ttl}", error_code="ARG_003"
            )
        return ttl

    def _validate_keys(self, keys: Iterable[str], name: str = "key") -> List[str]:
        keys = list(keys)
        for key in keys:
            self._validate_key(key, name)
        return keys

    def _prepare_items(self, items: Items) -> Dict[str, bytes]:
        """Validate and serialize (key, value) pairs, preserving order."""
        pairs = items.items() if isinstance(items, Mapping) else items
        prepared: Dict[str, bytes] = {}
        for key, value in pairs:
            self._validate_key(key)
            self._validate_item(value, "value")
            prepared[key] = self._serializer.serialize(value)
        return prepared

    # ------------------------------------------------------------------
    # Conversion
    # ------------------------------------------------------------------

    def _load(self, data: Optional[bytes], as_type: Optional[Any] = None) -> Any:
        if data is None:
            return None
        return self._serializer.deserialize(data, as_type)

    @staticmethod
    def _decode(raw: Union[bytes, str]) -> str:
        # binary payloads (pickle) survive as lone surrogates
        return raw.decode("utf-8", "surrogateescape") if isinstance(raw, bytes) else raw

    @staticmethod
    def _flatten_info(info: Mapping[str, Any]) -> Dict[str, str]:
        """
        Flatten a parsed INFO reply into string pairs.

        Nested sections (e.g. keyspace ``db0``) render as
        ``keys=1,expires=0,avg_ttl=0``.
        """
        flat: Dict[str, str] = {}
        for key, value in info.items():
            if isinstance(value, dict):
                flat[key] = ",".join(f"{k}={v}" for k, v in value.items())
            else:
                flat[key] = str(value)
        return flat

    # ------------------------------------------------------------------
    # Error logging
    # ------------------------------------------------------------------

    @contextmanager
    def _store_call(self, operation: str, **context: Any) -> Iterator[None]:
        """Log redis-py failures for ``operation`` and re-raise them unchanged."""
        self._ensure_open()
        try:
            yield
        except redis.RedisError as e:
            self._logger.error(
                f"redis_error_{operation}", error_type=type(e).__name__, error=str(e), **context
            )
            raise
