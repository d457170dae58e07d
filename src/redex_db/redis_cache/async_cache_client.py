"""
AsyncRedisCacheClient - Typed asyncio facade over Redis.

Same operations and semantics as RedisCacheClient, built on
redis.asyncio. Every operation is a coroutine that suspends only the
calling task while its round trip is outstanding.

Copyright (c) 2025 Goncharenko Anton aka alienxs2
License: MIT
"""

import asyncio
import inspect
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Union

import redis
import redis.asyncio
from redis.asyncio import ConnectionPool, Redis

from redex_core.config import RedexSettings
from redex_core.serializers import Serializer, get_serializer
from redex_db.pool_config import PoolConfig, RetryConfig
from redex_db.redis_cache.base import TTL, CacheClientBase, Items
from redex_db.redis_cache.subscriptions import AsyncSubscription


class AsyncRedisCacheClient(CacheClientBase):
    """
    Asynchronous typed cache client backed by one redis.asyncio pool.

    Example:
        ```python
        async with AsyncRedisCacheClient(host="localhost") as cache:
            await cache.add("order:1", order)
            order = await cache.get("order:1", as_type=Order)

            async def on_event(event):
                await audit.record(event)

            await cache.subscribe("events", on_event)
            await cache.publish("events", {"kind": "created"})
        ```
    """

    def __init__(
        self,
        serializer: Optional[Serializer] = None,
        host: str = "localhost",
        port: int = 6379,
        db: int = 0,
        password: Optional[str] = None,
        ssl: bool = False,
        pool_config: Optional[PoolConfig] = None,
        retry_config: Optional[RetryConfig] = None,
        subscriber_poll_interval: float = 0.1,
        client: Optional[Redis] = None,
    ) -> None:
        """
        Initialize the client. No I/O happens here; use ``connect()`` or
        ``async with`` to verify connectivity.

        Args:
            serializer: Value codec (default: JsonSerializer)
            host: Redis server host address (default: "localhost")
            port: Redis server port (default: 6379)
            db: Redis database number 0-15 (default: 0)
            password: Optional Redis password
            ssl: Connect over TLS
            pool_config: Pool sizing and timeouts (default: PoolConfig())
            retry_config: Retry policy executed by redis-py (default: RetryConfig())
            subscriber_poll_interval: Seconds each reader task waits per poll
            client: Pre-built redis.asyncio.Redis; the caller keeps ownership

        Raises:
            InvalidArgumentError: If db or port is out of range
        """
        super().__init__(serializer=serializer, host=host, port=port, db=db)

        self.pool_config = pool_config or PoolConfig()
        self.retry_config = retry_config or RetryConfig()
        self.subscriber_poll_interval = subscriber_poll_interval

        self._pool: Optional[ConnectionPool] = None
        self._owns_pool = client is None
        self._subscriptions: List[AsyncSubscription] = []

        if client is not None:
            self.client = client
        else:
            self._pool = ConnectionPool(
                host=host,
                port=port,
                db=db,
                password=password,
                connection_class=(
                    redis.asyncio.SSLConnection if ssl else redis.asyncio.Connection
                ),
                max_connections=self.pool_config.max_connections,
                socket_timeout=self.pool_config.socket_timeout,
                socket_connect_timeout=self.pool_config.socket_connect_timeout,
                socket_keepalive=True,
                health_check_interval=self.pool_config.health_check_interval,
                retry=self.retry_config.build_async(),
                retry_on_error=self.retry_config.retry_on_error,
                decode_responses=False,
            )
            self.client = Redis(connection_pool=self._pool)

        self._logger.info(
            "async_redis_cache_client_initialized",
            serializer=self._serializer.name,
            owns_pool=self._owns_pool,
        )

    @classmethod
    def from_settings(
        cls,
        settings: Optional[RedexSettings] = None,
        serializer: Optional[Serializer] = None,
        **kwargs: Any,
    ) -> "AsyncRedisCacheClient":
        """Build a client from RedexSettings (default: the module-level settings)."""
        if settings is None:
            from redex_core.config import settings as default_settings

            settings = default_settings

        password = settings.redis_password.get_secret_value() if settings.redis_password else None
        return cls(
            serializer=serializer or get_serializer(settings.serializer),
            host=settings.redis_host,
            port=settings.redis_port,
            db=settings.redis_db,
            password=password,
            ssl=settings.redis_ssl,
            pool_config=PoolConfig.from_settings(settings),
            retry_config=RetryConfig.from_settings(settings),
            subscriber_poll_interval=settings.subscriber_poll_interval,
            **kwargs,
        )

    async def connect(self) -> "AsyncRedisCacheClient":
        """
        Verify connectivity with PING.

        Raises:
            redis.ConnectionError: If the server is unreachable
        """
        try:
            await self.ping()
        except redis.RedisError as e:
            self._logger.error("connection_failed", error=str(e))
            raise
        return self

    # ==================================================================
    # STRING KEYS
    # ==================================================================

    async def add(self, key: str, value: Any, ttl: Optional[TTL] = None) -> bool:
        """
        Store a value under key, overwriting any previous value.

        Raises:
            InvalidArgumentError: If key is empty or ttl not positive
            MissingArgumentError: If value is None
        """
        self._validate_key(key)
        self._validate_item(value, "value")
        ttl = self._validate_ttl(ttl)
        data = self._serializer.serialize(value)

        with self._store_call("add", key=key):
            result = await self.client.set(key, data, ex=ttl)

        self._logger.debug("cache_set", key=key, ttl=str(ttl) if ttl else None)
        return bool(result)

    async def replace(self, key: str, value: Any, ttl: Optional[TTL] = None) -> bool:
        """Overwrite key only if it already exists."""
        self._validate_key(key)
        self._validate_item(value, "value")
        ttl = self._validate_ttl(ttl)
        data = self._serializer.serialize(value)

        with self._store_call("replace", key=key):
            result = await self.client.set(key, data, ex=ttl, xx=True)

        self._logger.debug("cache_replace", key=key, replaced=bool(result))
        return bool(result)

    async def add_all(self, items: Items, ttl: Optional[TTL] = None) -> bool:
        """Store several values in a single round trip (MSET or pipelined SET EX)."""
        prepared = self._prepare_items(items)
        ttl = self._validate_ttl(ttl)
        if not prepared:
            return True

        with self._store_call("add_all", count=len(prepared)):
            if ttl is None:
                result = bool(await self.client.mset(prepared))
            else:
                async with self.client.pipeline(transaction=False) as pipe:
                    for key, data in prepared.items():
                        pipe.set(key, data, ex=ttl)
                    result = all(await pipe.execute())

        self._logger.debug("cache_set_many", count=len(prepared))
        return result

    async def get(self, key: str, as_type: Optional[Any] = None) -> Optional[Any]:
        """Get a value by key; None if absent."""
        self._validate_key(key)

        with self._store_call("get", key=key):
            data = await self.client.get(key)

        if data is None:
            self._logger.debug("cache_miss", key=key)
            return None

        self._logger.debug("cache_hit", key=key)
        return self._load(data, as_type)

    async def get_all(self, keys: Iterable[str], as_type: Optional[Any] = None) -> Dict[str, Any]:
        """Get several keys in a single MGET; absent keys map to None."""
        keys = self._validate_keys(keys)
        if not keys:
            return {}

        with self._store_call("get_all", count=len(keys)):
            values = await self.client.mget(keys)

        return {key: self._load(data, as_type) for key, data in zip(keys, values)}

    async def remove(self, key: str) -> bool:
        self._validate_key(key)

        with self._store_call("remove", key=key):
            removed = await self.client.delete(key)

        self._logger.debug("cache_deleted", key=key, existed=removed > 0)
        return removed > 0

    async def remove_all(self, keys: Iterable[str]) -> None:
        keys = self._validate_keys(keys)
        if not keys:
            return

        with self._store_call("remove_all", count=len(keys)):
            await self.client.delete(*keys)

    async def exists(self, key: str) -> bool:
        self._validate_key(key)

        with self._store_call("exists", key=key):
            return await self.client.exists(key) > 0

    async def search_keys(self, pattern: str) -> List[str]:
        """Find keys matching a glob pattern; full keyspace walk via SCAN MATCH."""
        self._validate_key(pattern, "pattern")

        with self._store_call("search_keys", pattern=pattern):
            keys = [self._decode(key) async for key in self.client.scan_iter(match=pattern)]

        self._logger.debug("scan_complete", pattern=pattern, count=len(keys))
        return keys

    # ==================================================================
    # SETS
    # ==================================================================

    async def set_add(self, set_key: str, item: Any) -> bool:
        """
        Add a serialized item to a set.

        Raises:
            InvalidArgumentError: If set_key is empty
            MissingArgumentError: If item is None
        """
        self._validate_key(set_key, "set_key")
        self._validate_item(item)
        data = self._serializer.serialize(item)

        with self._store_call("set_add", set_key=set_key):
            return await self.client.sadd(set_key, data) > 0

    async def set_member(self, set_key: str) -> List[str]:
        self._validate_key(set_key, "set_key")

        with self._store_call("set_member", set_key=set_key):
            members = await self.client.smembers(set_key)

        return [self._decode(member) for member in members]

    async def set_members(self, set_key: str, as_type: Optional[Any] = None) -> List[Any]:
        self._validate_key(set_key, "set_key")

        with self._store_call("set_members", set_key=set_key):
            members = await self.client.smembers(set_key)

        return [self._load(member, as_type) for member in members]

    # ==================================================================
    # LISTS
    # ==================================================================

    async def list_add_to_left(self, list_key: str, item: Any) -> int:
        self._validate_key(list_key, "list_key")
        self._validate_item(item)
        data = self._serializer.serialize(item)

        with self._store_call("list_add_to_left", list_key=list_key):
            return int(await self.client.lpush(list_key, data))

    async def list_get_from_right(
        self, list_key: str, as_type: Optional[Any] = None
    ) -> Optional[Any]:
        self._validate_key(list_key, "list_key")

        with self._store_call("list_get_from_right", list_key=list_key):
            data = await self.client.rpop(list_key)

        return self._load(data, as_type)

    # ==================================================================
    # HASHES
    # ==================================================================

    async def hash_set(self, hash_key: str, field: str, value: Any, nx: bool = False) -> bool:
        """Write one hash field; with nx, only if absent (atomic HSETNX)."""
        self._validate_key(hash_key, "hash_key")
        self._validate_key(field, "field")
        self._validate_item(value, "value")
        data = self._serializer.serialize(value)

        with self._store_call("hash_set", hash_key=hash_key, field=field):
            if nx:
                return bool(await self.client.hsetnx(hash_key, field, data))
            await self.client.hset(hash_key, field, data)
        return True

    async def hash_set_many(self, hash_key: str, values: Mapping[str, Any]) -> None:
        self._validate_key(hash_key, "hash_key")
        prepared = {}
        for field, value in values.items():
            self._validate_key(field, "field")
            self._validate_item(value, "value")
            prepared[field] = self._serializer.serialize(value)
        if not prepared:
            return

        with self._store_call("hash_set_many", hash_key=hash_key, count=len(prepared)):
            await self.client.hset(hash_key, mapping=prepared)

    async def hash_get(
        self, hash_key: str, field: str, as_type: Optional[Any] = None
    ) -> Optional[Any]:
        self._validate_key(hash_key, "hash_key")
        self._validate_key(field, "field")

        with self._store_call("hash_get", hash_key=hash_key, field=field):
            data = await self.client.hget(hash_key, field)

        return self._load(data, as_type)

    async def hash_get_many(
        self, hash_key: str, fields: Iterable[str], as_type: Optional[Any] = None
    ) -> Dict[str, Any]:
        """Absent fields are left out of the result."""
        self._validate_key(hash_key, "hash_key")
        fields = self._validate_keys(fields, "field")
        if not fields:
            return {}

        with self._store_call("hash_get_many", hash_key=hash_key, count=len(fields)):
            values = await self.client.hmget(hash_key, fields)

        return {
            field: self._load(data, as_type)
            for field, data in zip(fields, values)
            if data is not None
        }

    async def hash_get_all(self, hash_key: str, as_type: Optional[Any] = None) -> Dict[str, Any]:
        self._validate_key(hash_key, "hash_key")

        with self._store_call("hash_get_all", hash_key=hash_key):
            entries = await self.client.hgetall(hash_key)

        return {self._decode(field): self._load(data, as_type) for field, data in entries.items()}

    async def hash_delete(self, hash_key: str, field: str) -> bool:
        self._validate_key(hash_key, "hash_key")
        self._validate_key(field, "field")

        with self._store_call("hash_delete", hash_key=hash_key, field=field):
            return await self.client.hdel(hash_key, field) > 0

    async def hash_delete_many(self, hash_key: str, fields: Iterable[str]) -> int:
        self._validate_key(hash_key, "hash_key")
        fields = self._validate_keys(fields, "field")
        if not fields:
            return 0

        with self._store_call("hash_delete_many", hash_key=hash_key, count=len(fields)):
            return int(await self.client.hdel(hash_key, *fields))

    async def hash_exists(self, hash_key: str, field: str) -> bool:
        self._validate_key(hash_key, "hash_key")
        self._validate_key(field, "field")

        with self._store_call("hash_exists", hash_key=hash_key, field=field):
            return bool(await self.client.hexists(hash_key, field))

    async def hash_keys(self, hash_key: str) -> List[str]:
        self._validate_key(hash_key, "hash_key")

        with self._store_call("hash_keys", hash_key=hash_key):
            fields = await self.client.hkeys(hash_key)

        return [self._decode(field) for field in fields]

    async def hash_values(self, hash_key: str, as_type: Optional[Any] = None) -> List[Any]:
        self._validate_key(hash_key, "hash_key")

        with self._store_call("hash_values", hash_key=hash_key):
            values = await self.client.hvals(hash_key)

        return [self._load(data, as_type) for data in values]

    async def hash_length(self, hash_key: str) -> int:
        self._validate_key(hash_key, "hash_key")

        with self._store_call("hash_length", hash_key=hash_key):
            return int(await self.client.hlen(hash_key))

    async def hash_increment_by(
        self, hash_key: str, field: str, amount: Union[int, float] = 1
    ) -> Union[int, float]:
        self._validate_key(hash_key, "hash_key")
        self._validate_key(field, "field")

        with self._store_call("hash_increment_by", hash_key=hash_key, field=field):
            if isinstance(amount, float):
                return float(await self.client.hincrbyfloat(hash_key, field, amount))
            return int(await self.client.hincrby(hash_key, field, amount))

    # ==================================================================
    # PUB/SUB
    # ==================================================================

    async def publish(self, channel: str, message: Any) -> int:
        self._validate_key(channel, "channel")
        self._validate_item(message, "message")
        data = self._serializer.serialize(message)

        with self._store_call("publish", channel=channel):
            receivers = await self.client.publish(channel, data)

        self._logger.debug("message_published", channel=channel, receivers=receivers)
        return int(receivers)

    async def subscribe(
        self, channel: str, handler: Callable[[Any], Any], as_type: Optional[Any] = None
    ) -> AsyncSubscription:
        """
        Register handler for messages on channel.

        Messages are delivered on a dedicated asyncio.Task in the current
        event loop. handler may be a plain function or a coroutine function;
        its exceptions are logged and delivery continues.

        Returns:
            AsyncSubscription handle; ``await sub.unsubscribe()`` stops delivery
        """
        self._validate_key(channel, "channel")
        if not callable(handler):
            raise TypeError("handler must be callable")

        async def dispatch(message: Dict[str, Any]) -> None:
            result = handler(self._serializer.deserialize(message["data"], as_type))
            if inspect.isawaitable(result):
                await result

        def on_error(error: BaseException, pubsub: Any) -> None:
            self._logger.error(
                "subscription_handler_failed",
                channel=channel,
                error_type=type(error).__name__,
                error=str(error),
            )

        with self._store_call("subscribe", channel=channel):
            pubsub = self.client.pubsub(ignore_subscribe_messages=True)
            await pubsub.subscribe(**{channel: dispatch})

        task = asyncio.create_task(
            pubsub.run(exception_handler=on_error, poll_timeout=self.subscriber_poll_interval),
            name=f"redex-subscription:{channel}",
        )
        subscription = AsyncSubscription(channel, pubsub, task, on_stop=self._forget_subscription)
        self._subscriptions.append(subscription)
        self._logger.info("subscription_started", channel=channel)
        return subscription

    async def unsubscribe(self, channel: str) -> None:
        self._validate_key(channel, "channel")
        for subscription in [s for s in self._subscriptions if s.channel == channel]:
            await subscription.unsubscribe()

    async def unsubscribe_all(self) -> None:
        for subscription in list(self._subscriptions):
            await subscription.unsubscribe()

    def _forget_subscription(self, subscription: AsyncSubscription) -> None:
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)

    # ==================================================================
    # SERVER
    # ==================================================================

    async def get_info(self) -> Dict[str, str]:
        """Server metadata from INFO as string pairs."""
        with self._store_call("get_info"):
            info = await self.client.info()

        return self._flatten_info(info)

    async def ping(self) -> bool:
        with self._store_call("ping"):
            return bool(await self.client.ping())

    async def flush_db(self) -> None:
        with self._store_call("flush_db"):
            await self.client.flushdb()
        self._logger.warning("database_flushed")

    async def save(self, background: bool = True) -> None:
        with self._store_call("save", background=background):
            if background:
                await self.client.bgsave()
            else:
                await self.client.save()

    # ==================================================================
    # LIFECYCLE
    # ==================================================================

    async def close(self) -> None:
        """Stop all subscriptions and release the pool. Idempotent."""
        if self._closed:
            return

        self._closed = True
        await self.unsubscribe_all()
        if self._owns_pool:
            await self.client.aclose()
            if self._pool is not None:
                await self._pool.disconnect()
        self._logger.info("connection_closed")

    async def __aenter__(self) -> "AsyncRedisCacheClient":
        return await self.connect()

    async def __aexit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        await self.close()

    def __repr__(self) -> str:
        return (
            f"AsyncRedisCacheClient(host={self.host!r}, port={self.port}, db={self.db}, "
            f"serializer={self._serializer!r}, closed={self._closed})"
        )
