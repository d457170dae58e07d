"""
RedisCacheClient - Typed synchronous facade over Redis.

Maps typed operations onto string, set, list, hash, key-search, pub/sub and
INFO primitives. Values pass through a pluggable Serializer on the way in
and out. Absent data comes back as None / empty / zero, never as an error.
Store failures from redis-py are logged and re-raised unchanged; the facade
does no retrying of its own.

Copyright (c) 2025 Goncharenko Anton aka alienxs2
License: MIT
"""

import threading
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Union

import redis
from redis import ConnectionPool, Redis

from redex_core.config import RedexSettings
from redex_core.serializers import Serializer, get_serializer
from redex_db.pool_config import PoolConfig, RetryConfig
from redex_db.redis_cache.base import TTL, CacheClientBase, Items
from redex_db.redis_cache.subscriptions import Subscription


class RedisCacheClient(CacheClientBase):
    """
    Synchronous typed cache client backed by one Redis connection pool.

    Attributes:
        host: Redis server host address
        port: Redis server port
        db: Redis database number (0-15)
        serializer: Codec used for all values
        client: Underlying redis.Redis instance

    Example:
        ```python
        with RedisCacheClient(host="localhost", port=6379) as cache:
            cache.add("order:1", Order(id=1, total=9.5), ttl=3600)
            order = cache.get("order:1", as_type=Order)

            cache.hash_set("user:42", "email", "a@b.c")
            cache.hash_set("user:42", "email", "x@y.z", nx=True)  # False, unchanged

            sub = cache.subscribe("events", lambda event: print(event))
            cache.publish("events", {"kind": "created"})
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
        verify_connection: bool = True,
    ) -> None:
        """
        Initialize the client and its connection pool.

        Args:
            serializer: Value codec (default: JsonSerializer)
            host: Redis server host address (default: "localhost")
            port: Redis server port (default: 6379)
            db: Redis database number 0-15 (default: 0)
            password: Optional Redis password
            ssl: Connect over TLS
            pool_config: Pool sizing and timeouts (default: PoolConfig())
            retry_config: Retry policy executed by redis-py (default: RetryConfig())
            subscriber_poll_interval: Seconds each pub/sub worker blocks per poll
            client: Pre-built redis.Redis to use instead of creating a pool;
                the caller keeps ownership of its pool
            verify_connection: PING the server during construction

        Raises:
            InvalidArgumentError: If db or port is out of range
            redis.ConnectionError: If the server is unreachable and
                verify_connection is set
        """
        super().__init__(serializer=serializer, host=host, port=port, db=db)

        self.pool_config = pool_config or PoolConfig()
        self.retry_config = retry_config or RetryConfig()
        self.subscriber_poll_interval = subscriber_poll_interval

        self._pool: Optional[ConnectionPool] = None
        self._owns_pool = client is None
        self._subscriptions: List[Subscription] = []
        self._subscriptions_lock = threading.Lock()

        if client is not None:
            self.client = client
        else:
            self._pool = ConnectionPool(
                host=host,
                port=port,
                db=db,
                password=password,
                connection_class=redis.SSLConnection if ssl else redis.Connection,
                max_connections=self.pool_config.max_connections,
                socket_timeout=self.pool_config.socket_timeout,
                socket_connect_timeout=self.pool_config.socket_connect_timeout,
                socket_keepalive=True,
                health_check_interval=self.pool_config.health_check_interval,
                retry=self.retry_config.build(),
                retry_on_error=self.retry_config.retry_on_error,
                decode_responses=False,
            )
            self.client = Redis(connection_pool=self._pool)

        if verify_connection:
            try:
                self.client.ping()
            except redis.RedisError as e:
                self._logger.error("connection_failed", error=str(e))
                self._release()
                raise

        self._logger.info(
            "redis_cache_client_initialized",
            serializer=self._serializer.name,
            owns_pool=self._owns_pool,
        )

    @classmethod
    def from_settings(
        cls,
        settings: Optional[RedexSettings] = None,
        serializer: Optional[Serializer] = None,
        **kwargs: Any,
    ) -> "RedisCacheClient":
        """
        Build a client from RedexSettings (default: the module-level settings).

        Args:
            settings: Settings to read connection, pool and retry values from
            serializer: Overrides the serializer named in settings
            **kwargs: Extra constructor arguments (e.g. verify_connection)
        """
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

    # ==================================================================
    # STRING KEYS
    # ==================================================================

    def add(self, key: str, value: Any, ttl: Optional[TTL] = None) -> bool:
        """
        Store a value under key, overwriting any previous value.

        Args:
            key: Cache key (non-empty)
            value: Value to store (not None)
            ttl: Optional expiry, int seconds or timedelta

        Returns:
            True if Redis acknowledged the write

        Raises:
            InvalidArgumentError: If key is empty or ttl not positive
            MissingArgumentError: If value is None
            SerializationError: If value cannot be encoded
        """
        self._validate_key(key)
        self._validate_item(value, "value")
        ttl = self._validate_ttl(ttl)
        data = self._serializer.serialize(value)

        with self._store_call("add", key=key):
            result = self.client.set(key, data, ex=ttl)

        self._logger.debug("cache_set", key=key, ttl=str(ttl) if ttl else None)
        return bool(result)

    def replace(self, key: str, value: Any, ttl: Optional[TTL] = None) -> bool:
        """Overwrite key only if it already exists. Returns False if it was absent."""
        self._validate_key(key)
        self._validate_item(value, "value")
        ttl = self._validate_ttl(ttl)
        data = self._serializer.serialize(value)

        with self._store_call("replace", key=key):
            result = self.client.set(key, data, ex=ttl, xx=True)

        self._logger.debug("cache_replace", key=key, replaced=bool(result))
        return bool(result)

    def add_all(self, items: Items, ttl: Optional[TTL] = None) -> bool:
        """
        Store several values in a single round trip.

        Without ttl this is one MSET; with ttl a non-transactional pipeline
        of SET ... EX. Neither is a cross-key transaction.

        Args:
            items: Mapping or iterable of (key, value) pairs
            ttl: Optional expiry applied to every key

        Returns:
            True if every write was acknowledged (True for an empty batch)
        """
        prepared = self._prepare_items(items)
        ttl = self._validate_ttl(ttl)
        if not prepared:
            return True

        with self._store_call("add_all", count=len(prepared)):
            if ttl is None:
                result = bool(self.client.mset(prepared))
            else:
                pipe = self.client.pipeline(transaction=False)
                for key, data in prepared.items():
                    pipe.set(key, data, ex=ttl)
                result = all(pipe.execute())

        self._logger.debug("cache_set_many", count=len(prepared))
        return result

    def get(self, key: str, as_type: Optional[Any] = None) -> Optional[Any]:
        """
        Get a value by key.

        Args:
            key: Cache key (non-empty)
            as_type: Optional type to validate the value into

        Returns:
            The deserialized value, or None if the key does not exist

        Raises:
            InvalidArgumentError: If key is empty
            DeserializationError: If the stored bytes do not decode

        Example:
            ```python
            order = cache.get("order:1", as_type=Order)
            if order is None:
                print("cache miss")
            ```
        """
        self._validate_key(key)

        with self._store_call("get", key=key):
            data = self.client.get(key)

        if data is None:
            self._logger.debug("cache_miss", key=key)
            return None

        self._logger.debug("cache_hit", key=key)
        return self._load(data, as_type)

    def get_all(self, keys: Iterable[str], as_type: Optional[Any] = None) -> Dict[str, Any]:
        """
        Get several keys in a single MGET.

        Returns:
            One entry per requested key; absent keys map to None
        """
        keys = self._validate_keys(keys)
        if not keys:
            return {}

        with self._store_call("get_all", count=len(keys)):
            values = self.client.mget(keys)

        result = {key: self._load(data, as_type) for key, data in zip(keys, values)}
        self._logger.debug(
            "cache_get_many",
            requested=len(keys),
            hits=sum(1 for data in values if data is not None),
        )
        return result

    def remove(self, key: str) -> bool:
        """Delete key. Returns True if it existed; absent keys are not an error."""
        self._validate_key(key)

        with self._store_call("remove", key=key):
            removed = self.client.delete(key)

        self._logger.debug("cache_deleted", key=key, existed=removed > 0)
        return removed > 0

    def remove_all(self, keys: Iterable[str]) -> None:
        """Delete several keys in one DEL."""
        keys = self._validate_keys(keys)
        if not keys:
            return

        with self._store_call("remove_all", count=len(keys)):
            removed = self.client.delete(*keys)

        self._logger.debug("cache_deleted_many", requested=len(keys), removed=removed)

    def exists(self, key: str) -> bool:
        """Check if key exists."""
        self._validate_key(key)

        with self._store_call("exists", key=key):
            return self.client.exists(key) > 0

    def search_keys(self, pattern: str) -> List[str]:
        """
        Find keys matching a glob pattern (``*``, ``?``, ``[...]``).

        Walks the entire keyspace of the active database with SCAN MATCH,
        so cost is O(N) in database size. Not meant for hot paths.

        Args:
            pattern: Glob pattern, e.g. "order:*"

        Returns:
            Matching key names
        """
        self._validate_key(pattern, "pattern")

        with self._store_call("search_keys", pattern=pattern):
            keys = [self._decode(key) for key in self.client.scan_iter(match=pattern)]

        self._logger.debug("scan_complete", pattern=pattern, count=len(keys))
        return keys

    # ==================================================================
    # SETS
    # ==================================================================

    def set_add(self, set_key: str, item: Any) -> bool:
        """
        Add a serialized item to a set.

        Returns:
            True if the item was newly added, False if already a member

        Raises:
            InvalidArgumentError: If set_key is empty
            MissingArgumentError: If item is None
        """
        self._validate_key(set_key, "set_key")
        self._validate_item(item)
        data = self._serializer.serialize(item)

        with self._store_call("set_add", set_key=set_key):
            return self.client.sadd(set_key, data) > 0

    def set_member(self, set_key: str) -> List[str]:
        """Raw set members as strings (not deserialized)."""
        self._validate_key(set_key, "set_key")

        with self._store_call("set_member", set_key=set_key):
            members = self.client.smembers(set_key)

        return [self._decode(member) for member in members]

    def set_members(self, set_key: str, as_type: Optional[Any] = None) -> List[Any]:
        """Set members deserialized through the serializer."""
        self._validate_key(set_key, "set_key")

        with self._store_call("set_members", set_key=set_key):
            members = self.client.smembers(set_key)

        return [self._load(member, as_type) for member in members]

    # ==================================================================
    # LISTS
    # ==================================================================

    def list_add_to_left(self, list_key: str, item: Any) -> int:
        """
        Push a serialized item onto the head of a list.

        Returns:
            New length of the list

        Raises:
            InvalidArgumentError: If list_key is empty
            MissingArgumentError: If item is None
        """
        self._validate_key(list_key, "list_key")
        self._validate_item(item)
        data = self._serializer.serialize(item)

        with self._store_call("list_add_to_left", list_key=list_key):
            return int(self.client.lpush(list_key, data))

    def list_get_from_right(self, list_key: str, as_type: Optional[Any] = None) -> Optional[Any]:
        """Pop the tail element; None if the list is empty or absent."""
        self._validate_key(list_key, "list_key")

        with self._store_call("list_get_from_right", list_key=list_key):
            data = self.client.rpop(list_key)

        return self._load(data, as_type)

    # ==================================================================
    # HASHES
    # ==================================================================

    def hash_set(self, hash_key: str, field: str, value: Any, nx: bool = False) -> bool:
        """
        Write one hash field.

        Args:
            hash_key: Hash key
            field: Field name
            value: Value to store (not None)
            nx: Only write if the field does not exist yet (atomic HSETNX)

        Returns:
            With nx: True if written, False if the field existed (value unchanged).
            Without nx: True.
        """
        self._validate_key(hash_key, "hash_key")
        self._validate_key(field, "field")
        self._validate_item(value, "value")
        data = self._serializer.serialize(value)

        with self._store_call("hash_set", hash_key=hash_key, field=field):
            if nx:
                return bool(self.client.hsetnx(hash_key, field, data))
            self.client.hset(hash_key, field, data)
        return True

    def hash_set_many(self, hash_key: str, values: Mapping[str, Any]) -> None:
        """Write several hash fields in one HSET."""
        self._validate_key(hash_key, "hash_key")
        prepared = {}
        for field, value in values.items():
            self._validate_key(field, "field")
            self._validate_item(value, "value")
            prepared[field] = self._serializer.serialize(value)
        if not prepared:
            return

        with self._store_call("hash_set_many", hash_key=hash_key, count=len(prepared)):
            self.client.hset(hash_key, mapping=prepared)

    def hash_get(self, hash_key: str, field: str, as_type: Optional[Any] = None) -> Optional[Any]:
        self._validate_key(hash_key, "hash_key")
        self._validate_key(field, "field")

        with self._store_call("hash_get", hash_key=hash_key, field=field):
            data = self.client.hget(hash_key, field)

        return self._load(data, as_type)

    def hash_get_many(
        self, hash_key: str, fields: Iterable[str], as_type: Optional[Any] = None
    ) -> Dict[str, Any]:
        """Get several fields in one HMGET. Absent fields are left out of the result."""
        self._validate_key(hash_key, "hash_key")
        fields = self._validate_keys(fields, "field")
        if not fields:
            return {}

        with self._store_call("hash_get_many", hash_key=hash_key, count=len(fields)):
            values = self.client.hmget(hash_key, fields)

        return {
            field: self._load(data, as_type)
            for field, data in zip(fields, values)
            if data is not None
        }

    def hash_get_all(self, hash_key: str, as_type: Optional[Any] = None) -> Dict[str, Any]:
        """Every field of the hash, deserialized."""
        self._validate_key(hash_key, "hash_key")

        with self._store_call("hash_get_all", hash_key=hash_key):
            entries = self.client.hgetall(hash_key)

        return {self._decode(field): self._load(data, as_type) for field, data in entries.items()}

    def hash_delete(self, hash_key: str, field: str) -> bool:
        self._validate_key(hash_key, "hash_key")
        self._validate_key(field, "field")

        with self._store_call("hash_delete", hash_key=hash_key, field=field):
            return self.client.hdel(hash_key, field) > 0

    def hash_delete_many(self, hash_key: str, fields: Iterable[str]) -> int:
        """Delete several fields in one HDEL; returns how many existed."""
        self._validate_key(hash_key, "hash_key")
        fields = self._validate_keys(fields, "field")
        if not fields:
            return 0

        with self._store_call("hash_delete_many", hash_key=hash_key, count=len(fields)):
            return int(self.client.hdel(hash_key, *fields))

    def hash_exists(self, hash_key: str, field: str) -> bool:
        self._validate_key(hash_key, "hash_key")
        self._validate_key(field, "field")

        with self._store_call("hash_exists", hash_key=hash_key, field=field):
            return bool(self.client.hexists(hash_key, field))

    def hash_keys(self, hash_key: str) -> List[str]:
        self._validate_key(hash_key, "hash_key")

        with self._store_call("hash_keys", hash_key=hash_key):
            fields = self.client.hkeys(hash_key)

        return [self._decode(field) for field in fields]

    def hash_values(self, hash_key: str, as_type: Optional[Any] = None) -> List[Any]:
        self._validate_key(hash_key, "hash_key")

        with self._store_call("hash_values", hash_key=hash_key):
            values = self.client.hvals(hash_key)

        return [self._load(data, as_type) for data in values]

    def hash_length(self, hash_key: str) -> int:
        self._validate_key(hash_key, "hash_key")

        with self._store_call("hash_length", hash_key=hash_key):
            return int(self.client.hlen(hash_key))

    def hash_increment_by(
        self, hash_key: str, field: str, amount: Union[int, float] = 1
    ) -> Union[int, float]:
        """
        Atomically increment a numeric hash field (HINCRBY / HINCRBYFLOAT).

        The counter is kept in Redis's native numeric form, not serialized.
        """
        self._validate_key(hash_key, "hash_key")
        self._validate_key(field, "field")

        with self._store_call("hash_increment_by", hash_key=hash_key, field=field):
            if isinstance(amount, float):
                return float(self.client.hincrbyfloat(hash_key, field, amount))
            return int(self.client.hincrby(hash_key, field, amount))

    # ==================================================================
    # PUB/SUB
    # ==================================================================

    def publish(self, channel: str, message: Any) -> int:
        """
        Publish a serialized message.

        Returns:
            Number of subscribers Redis reports as having received it
        """
        self._validate_key(channel, "channel")
        self._validate_item(message, "message")
        data = self._serializer.serialize(message)

        with self._store_call("publish", channel=channel):
            receivers = self.client.publish(channel, data)

        self._logger.debug("message_published", channel=channel, receivers=receivers)
        return int(receivers)

    def subscribe(
        self, channel: str, handler: Callable[[Any], Any], as_type: Optional[Any] = None
    ) -> Subscription:
        """
        Register handler for messages on channel.

        The handler receives each deserialized message on a redis-py worker
        thread, never on the calling thread, and possibly after publish()
        has already returned. Exceptions raised by the handler are logged
        and the subscription keeps running.

        Args:
            channel: Channel name
            handler: Callable taking one deserialized message
            as_type: Optional type to validate messages into

        Returns:
            Subscription handle; call unsubscribe() to stop delivery
        """
        self._validate_key(channel, "channel")
        if not callable(handler):
            raise TypeError("handler must be callable")

        def dispatch(message: Dict[str, Any]) -> None:
            handler(self._serializer.deserialize(message["data"], as_type))

        def on_error(error: BaseException, pubsub: Any, thread: Any) -> None:
            self._logger.error(
                "subscription_handler_failed",
                channel=channel,
                error_type=type(error).__name__,
                error=str(error),
            )

        with self._store_call("subscribe", channel=channel):
            pubsub = self.client.pubsub(ignore_subscribe_messages=True)
            pubsub.subscribe(**{channel: dispatch})
            thread = pubsub.run_in_thread(
                sleep_time=self.subscriber_poll_interval,
                daemon=True,
                exception_handler=on_error,
            )

        subscription = Subscription(
            channel,
            pubsub,
            thread,
            join_timeout=self.subscriber_poll_interval * 10,
            on_stop=self._forget_subscription,
        )
        with self._subscriptions_lock:
            self._subscriptions.append(subscription)
        self._logger.info("subscription_started", channel=channel)
        return subscription

    def unsubscribe(self, channel: str) -> None:
        """Stop every subscription this client holds on channel."""
        self._validate_key(channel, "channel")
        with self._subscriptions_lock:
            matching = [s for s in self._subscriptions if s.channel == channel]
        for subscription in matching:
            subscription.unsubscribe()

    def unsubscribe_all(self) -> None:
        """Stop every subscription this client holds."""
        with self._subscriptions_lock:
            subscriptions = list(self._subscriptions)
        for subscription in subscriptions:
            subscription.unsubscribe()

    def _forget_subscription(self, subscription: Subscription) -> None:
        with self._subscriptions_lock:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)

    # ==================================================================
    # SERVER
    # ==================================================================

    def get_info(self) -> Dict[str, str]:
        """
        Server metadata from INFO as string pairs.

        Example:
            ```python
            info = cache.get_info()
            print(info["redis_version"], info["tcp_port"])
            ```
        """
        with self._store_call("get_info"):
            info = self.client.info()

        return self._flatten_info(info)

    def ping(self) -> bool:
        with self._store_call("ping"):
            return bool(self.client.ping())

    def flush_db(self) -> None:
        """Delete every key of the active database."""
        with self._store_call("flush_db"):
            self.client.flushdb()
        self._logger.warning("database_flushed")

    def save(self, background: bool = True) -> None:
        """Ask the server to persist its dataset (BGSAVE, or blocking SAVE)."""
        with self._store_call("save", background=background):
            if background:
                self.client.bgsave()
            else:
                self.client.save()

    # ==================================================================
    # LIFECYCLE
    # ==================================================================

    def close(self) -> None:
        """
        Stop all subscriptions and release the connection pool.

        Idempotent. Every other operation raises CacheClosedError afterwards.
        An injected client is left open for its owner to close.
        """
        if self._closed:
            return

        self._closed = True
        self.unsubscribe_all()
        self._release()
        self._logger.info("connection_closed")

    def _release(self) -> None:
        if not self._owns_pool:
            return
        self.client.close()
        if self._pool is not None:
            self._pool.disconnect()

    def __enter__(self) -> "RedisCacheClient":
        return self

    def __exit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        self.close()

    def __repr__(self) -> str:
        return (
            f"RedisCacheClient(host={self.host!r}, port={self.port}, db={self.db}, "
            f"serializer={self._serializer!r}, closed={self._closed})"
        )
