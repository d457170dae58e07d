"""
Unit tests for RedisCacheClient.

Tests use unittest.mock to mock Redis without requiring a running server.

Test Coverage:
- __init__: pool construction, validation, connectivity check, injection
- string keys: add/add_all/replace/get/get_all/remove/remove_all/exists/search_keys
- sets, lists, hashes
- publish/subscribe
- get_info, close / lifecycle
- store errors propagate unchanged, no retries
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock, patch

import pytest
import redis
from pydantic import BaseModel

from redex_core.config import RedexSettings
from redex_core.exceptions import (
    CacheClosedError,
    DeserializationError,
    InvalidArgumentError,
    MissingArgumentError,
)
from redex_core.serializers import JsonSerializer, PickleSerializer
from redex_db.redis_cache.cache_client import RedisCacheClient
from redex_db.redis_cache.subscriptions import Subscription


class Item(BaseModel):
    key: str
    value: datetime


@pytest.fixture
def mock_redis():
    """Patch pool + client classes; yields the redis.Redis instance mock."""
    with patch("redex_db.redis_cache.cache_client.ConnectionPool"), patch(
        "redex_db.redis_cache.cache_client.Redis"
    ) as mock_redis_class:
        mock_redis_instance = MagicMock()
        mock_redis_class.return_value = mock_redis_instance
        mock_redis_instance.ping.return_value = True
        yield mock_redis_instance


@pytest.fixture
def client(mock_redis):
    return RedisCacheClient()


# ============================================================================
# __init__ TESTS
# ============================================================================


class TestRedisCacheClientInit:
    """Test RedisCacheClient initialization."""

    @patch("redex_db.redis_cache.cache_client.ConnectionPool")
    @patch("redex_db.redis_cache.cache_client.Redis")
    def test_init_defaults(self, mock_redis_class, mock_pool_class):
        mock_redis_class.return_value.ping.return_value = True

        client = RedisCacheClient()

        assert client.host == "localhost"
        assert client.port == 6379
        assert client.db == 0
        assert isinstance(client.serializer, JsonSerializer)
        assert not client.closed

        pool_kwargs = mock_pool_class.call_args.kwargs
        assert pool_kwargs["max_connections"] == 10
        assert pool_kwargs["decode_responses"] is False
        assert pool_kwargs["retry_on_error"] == [redis.ConnectionError, redis.TimeoutError]
        mock_redis_class.assert_called_once_with(connection_pool=mock_pool_class.return_value)

    def test_init_invalid_db_raises(self):
        with pytest.raises(InvalidArgumentError, match="db must be in range 0-15"):
            RedisCacheClient(db=16)

    def test_init_invalid_port_raises(self):
        with pytest.raises(ValueError, match="port must be in range 1-65535"):
            RedisCacheClient(port=0)

    @patch("redex_db.redis_cache.cache_client.ConnectionPool")
    @patch("redex_db.redis_cache.cache_client.Redis")
    def test_init_connection_failure_propagates_unchanged(self, mock_redis_class, mock_pool_class):
        mock_redis_instance = mock_redis_class.return_value
        mock_redis_instance.ping.side_effect = redis.ConnectionError("Connection refused")

        with pytest.raises(redis.ConnectionError, match="Connection refused"):
            RedisCacheClient()

        mock_pool_class.return_value.disconnect.assert_called_once()

    @patch("redex_db.redis_cache.cache_client.ConnectionPool")
    def test_init_with_injected_client_skips_pool(self, mock_pool_class):
        injected = MagicMock()

        client = RedisCacheClient(client=injected, verify_connection=False)

        assert client.client is injected
        mock_pool_class.assert_not_called()
        injected.ping.assert_not_called()

    @patch("redex_db.redis_cache.cache_client.ConnectionPool")
    @patch("redex_db.redis_cache.cache_client.Redis")
    def test_from_settings(self, mock_redis_class, mock_pool_class):
        mock_redis_class.return_value.ping.return_value = True
        settings = RedexSettings(
            redis_host="cache.internal", redis_port=6390, redis_db=3, serializer="pickle"
        )

        client = RedisCacheClient.from_settings(settings)

        assert client.host == "cache.internal"
        assert client.port == 6390
        assert client.db == 3
        assert isinstance(client.serializer, PickleSerializer)
        assert mock_pool_class.call_args.kwargs["host"] == "cache.internal"


# ============================================================================
# STRING KEY TESTS
# ============================================================================


class TestAdd:
    def test_add_serializes_and_sets(self, client, mock_redis):
        mock_redis.set.return_value = True

        assert client.add("my Key", "my value") is True
        mock_redis.set.assert_called_once_with("my Key", b'"my value"', ex=None)

    def test_add_with_ttl(self, client, mock_redis):
        mock_redis.set.return_value = True

        client.add("k", 1, ttl=timedelta(minutes=5))

        assert mock_redis.set.call_args.kwargs["ex"] == timedelta(minutes=5)

    @pytest.mark.parametrize("key", ["", None, 42])
    def test_add_invalid_key_raises_before_store_call(self, client, mock_redis, key):
        with pytest.raises(InvalidArgumentError, match="key must be non-empty string"):
            client.add(key, "value")

        mock_redis.set.assert_not_called()

    def test_add_none_value_raises(self, client, mock_redis):
        with pytest.raises(MissingArgumentError):
            client.add("k", None)

    @pytest.mark.parametrize("ttl", [0, -1, timedelta(0), 1.5, True])
    def test_add_invalid_ttl_raises(self, client, ttl):
        with pytest.raises(InvalidArgumentError, match="ttl must be"):
            client.add("k", "v", ttl=ttl)

    @pytest.mark.parametrize("ttl", [timedelta(milliseconds=500), timedelta(microseconds=1)])
    def test_add_sub_second_ttl_rejected_before_store_call(self, client, mock_redis, ttl):
        with pytest.raises(InvalidArgumentError, match="at least one second"):
            client.add("k", "v", ttl=ttl)
        with pytest.raises(InvalidArgumentError, match="at least one second"):
            client.add_all({"k": "v"}, ttl=ttl)

        mock_redis.set.assert_not_called()
        mock_redis.pipeline.assert_not_called()

    def test_replace_uses_xx(self, client, mock_redis):
        mock_redis.set.return_value = None

        assert client.replace("missing", "v") is False
        assert mock_redis.set.call_args.kwargs["xx"] is True


class TestAddAll:
    def test_add_all_single_mset(self, client, mock_redis):
        mock_redis.mset.return_value = True

        added = client.add_all([("key1", "value1"), ("key2", "value2"), ("key3", "value3")])

        assert added is True
        mock_redis.mset.assert_called_once_with(
            {"key1": b'"value1"', "key2": b'"value2"', "key3": b'"value3"'}
        )

    def test_add_all_with_ttl_uses_pipeline(self, client, mock_redis):
        pipe = MagicMock()
        pipe.execute.return_value = [True, True]
        mock_redis.pipeline.return_value = pipe

        assert client.add_all({"a": 1, "b": 2}, ttl=60) is True

        mock_redis.pipeline.assert_called_once_with(transaction=False)
        assert pipe.set.call_count == 2
        mock_redis.mset.assert_not_called()

    def test_add_all_empty_is_noop(self, client, mock_redis):
        assert client.add_all({}) is True
        mock_redis.mset.assert_not_called()

    def test_add_all_invalid_key_raises(self, client, mock_redis):
        with pytest.raises(InvalidArgumentError):
            client.add_all({"ok": 1, "": 2})
        mock_redis.mset.assert_not_called()


class TestGet:
    def test_get_hit(self, client, mock_redis):
        mock_redis.get.return_value = b"[0.1, 0.2, 0.3]"

        assert client.get("embedding_key") == [0.1, 0.2, 0.3]
        mock_redis.get.assert_called_once_with("embedding_key")

    def test_get_miss_returns_none(self, client, mock_redis):
        mock_redis.get.return_value = None

        assert client.get("nonexistent_key") is None

    def test_get_as_type(self, client, mock_redis):
        item = Item(key="k", value=datetime(2025, 5, 1, tzinfo=timezone.utc))
        mock_redis.get.return_value = JsonSerializer().serialize(item)

        assert client.get("k", as_type=Item) == item

    def test_get_empty_key_raises(self, client, mock_redis):
        with pytest.raises(InvalidArgumentError):
            client.get("")
        mock_redis.get.assert_not_called()

    def test_get_corrupted_raises(self, client, mock_redis):
        mock_redis.get.return_value = b"invalid json {{"

        with pytest.raises(DeserializationError):
            client.get("bad_key")

    def test_get_store_error_propagates_without_retry(self, client, mock_redis):
        mock_redis.get.side_effect = redis.TimeoutError("Timeout reading from socket")

        with pytest.raises(redis.TimeoutError):
            client.get("k")

        assert mock_redis.get.call_count == 1

    def test_get_all_maps_missing_to_none(self, client, mock_redis):
        mock_redis.mget.return_value = [b'"v1"', b'"v2"', b'"v3"', None]

        result = client.get_all(["k1", "k2", "k3", "notexistingkey"])

        assert result == {"k1": "v1", "k2": "v2", "k3": "v3", "notexistingkey": None}
        mock_redis.mget.assert_called_once_with(["k1", "k2", "k3", "notexistingkey"])

    def test_get_all_empty(self, client, mock_redis):
        assert client.get_all([]) == {}
        mock_redis.mget.assert_not_called()


class TestRemoveExistsSearch:
    def test_remove(self, client, mock_redis):
        mock_redis.delete.return_value = 1
        assert client.remove("k") is True

        mock_redis.delete.return_value = 0
        assert client.remove("k") is False

    def test_remove_all_single_delete(self, client, mock_redis):
        client.remove_all(key for key in ["a", "b", "c"])

        mock_redis.delete.assert_called_once_with("a", "b", "c")

    def test_exists(self, client, mock_redis):
        mock_redis.exists.return_value = 1
        assert client.exists("k") is True

        mock_redis.exists.return_value = 0
        assert client.exists("this key does not exist") is False

    def test_search_keys_decodes(self, client, mock_redis):
        mock_redis.scan_iter.return_value = iter([b"Key1", b"Key10", "Key11"])

        assert client.search_keys("Key1*") == ["Key1", "Key10", "Key11"]
        mock_redis.scan_iter.assert_called_once_with(match="Key1*")

    def test_search_keys_single_char_wildcard(self, client, mock_redis):
        mock_redis.scan_iter.return_value = iter([b"Key1", b"Key2"])

        assert client.search_keys("Key?") == ["Key1", "Key2"]
        mock_redis.scan_iter.assert_called_once_with(match="Key?")

    def test_search_keys_empty_pattern(self, client):
        with pytest.raises(InvalidArgumentError, match="pattern"):
            client.search_keys("")


# ============================================================================
# SET / LIST TESTS
# ============================================================================


class TestSets:
    def test_set_add_new_member(self, client, mock_redis):
        mock_redis.sadd.return_value = 1

        assert client.set_add("MySet", "member") is True
        mock_redis.sadd.assert_called_once_with("MySet", b'"member"')

    def test_set_add_existing_member(self, client, mock_redis):
        mock_redis.sadd.return_value = 0

        assert client.set_add("MySet", "member") is False

    def test_set_add_empty_key_raises(self, client, mock_redis):
        with pytest.raises(InvalidArgumentError, match="set_key"):
            client.set_add("", "")
        mock_redis.sadd.assert_not_called()

    def test_set_add_none_item_raises(self, client, mock_redis):
        with pytest.raises(MissingArgumentError, match="item must not be None"):
            client.set_add("MySet", None)
        mock_redis.sadd.assert_not_called()

    def test_set_member_raw(self, client, mock_redis):
        mock_redis.smembers.return_value = {b'"a"', b'"b"'}

        assert sorted(client.set_member("MySet")) == ['"a"', '"b"']

    def test_set_members_deserialized(self, client, mock_redis):
        mock_redis.smembers.return_value = {b'"a"', b'"b"'}

        assert sorted(client.set_members("MySet")) == ["a", "b"]

    def test_set_member_with_binary_codec(self, mock_redis):
        serializer = PickleSerializer()
        client = RedisCacheClient(serializer=serializer)
        mock_redis.smembers.return_value = {serializer.serialize("a"), serializer.serialize(7)}

        members = client.set_member("MySet")

        assert len(members) == 2
        assert all(isinstance(m, str) for m in members)
        assert {serializer.deserialize(m) for m in members} == {"a", 7}


class TestLists:
    def test_list_add_to_left(self, client, mock_redis):
        mock_redis.lpush.return_value = 3

        assert client.list_add_to_left("MyList", {"a": 1}) == 3
        mock_redis.lpush.assert_called_once_with("MyList", b'{"a":1}')

    def test_list_add_to_left_validation(self, client):
        with pytest.raises(InvalidArgumentError):
            client.list_add_to_left("", "")
        with pytest.raises(MissingArgumentError):
            client.list_add_to_left("MyList", None)

    def test_list_get_from_right(self, client, mock_redis):
        mock_redis.rpop.return_value = b'{"key": "k", "value": "2025-01-01T00:00:00Z"}'

        item = client.list_get_from_right("MyList", as_type=Item)

        assert item.key == "k"
        assert item.value == datetime(2025, 1, 1, tzinfo=timezone.utc)

    def test_list_get_from_right_empty(self, client, mock_redis):
        mock_redis.rpop.return_value = None

        assert client.list_get_from_right("MyList") is None

    def test_list_get_from_right_empty_key_raises(self, client):
        with pytest.raises(InvalidArgumentError):
            client.list_get_from_right("")


# ============================================================================
# HASH TESTS
# ============================================================================


class TestHashes:
    def test_hash_set_nx_absent_inserts(self, client, mock_redis):
        mock_redis.hsetnx.return_value = 1

        assert client.hash_set("h", "f", "v", nx=True) is True
        mock_redis.hsetnx.assert_called_once_with("h", "f", b'"v"')
        mock_redis.hset.assert_not_called()

    def test_hash_set_nx_present_leaves_value(self, client, mock_redis):
        mock_redis.hsetnx.return_value = 0

        assert client.hash_set("h", "f", "v", nx=True) is False
        mock_redis.hset.assert_not_called()

    def test_hash_set_overwrite_returns_true(self, client, mock_redis):
        mock_redis.hset.return_value = 0  # field already existed

        assert client.hash_set("h", "f", "v") is True
        mock_redis.hset.assert_called_once_with("h", "f", b'"v"')

    def test_hash_set_many_single_round_trip(self, client, mock_redis):
        client.hash_set_many("h", {"a": 1, "b": 2})

        mock_redis.hset.assert_called_once_with("h", mapping={"a": b"1", "b": b"2"})

    def test_hash_set_many_empty_is_noop(self, client, mock_redis):
        client.hash_set_many("h", {})
        mock_redis.hset.assert_not_called()

    def test_hash_get(self, client, mock_redis):
        mock_redis.hget.return_value = b"42"
        assert client.hash_get("h", "f") == 42

        mock_redis.hget.return_value = None
        assert client.hash_get("h", "missing") is None

    def test_hash_get_many_excludes_absent(self, client, mock_redis):
        mock_redis.hmget.return_value = [b"1", None, b"3"]

        assert client.hash_get_many("h", ["a", "b", "c"]) == {"a": 1, "c": 3}
        mock_redis.hmget.assert_called_once_with("h", ["a", "b", "c"])

    def test_hash_get_all(self, client, mock_redis):
        mock_redis.hgetall.return_value = {b"a": b"1", b"b": b'"x"'}

        assert client.hash_get_all("h") == {"a": 1, "b": "x"}

    def test_hash_delete(self, client, mock_redis):
        mock_redis.hdel.return_value = 1
        assert client.hash_delete("h", "f") is True

        mock_redis.hdel.return_value = 0
        assert client.hash_delete("h", "f") is False

    def test_hash_delete_many_returns_count(self, client, mock_redis):
        mock_redis.hdel.return_value = 2

        assert client.hash_delete_many("h", ["a", "b", "c"]) == 2
        mock_redis.hdel.assert_called_once_with("h", "a", "b", "c")

    def test_hash_delete_many_empty(self, client, mock_redis):
        assert client.hash_delete_many("h", []) == 0
        mock_redis.hdel.assert_not_called()

    def test_hash_exists(self, client, mock_redis):
        mock_redis.hexists.return_value = False

        assert client.hash_exists("h", "f") is False

    def test_hash_keys_values_length(self, client, mock_redis):
        mock_redis.hkeys.return_value = [b"a", b"b"]
        mock_redis.hvals.return_value = [b"1", b"2"]
        mock_redis.hlen.return_value = 2

        assert client.hash_keys("h") == ["a", "b"]
        assert client.hash_values("h") == [1, 2]
        assert client.hash_length("h") == 2

    def test_hash_absent_returns_empty(self, client, mock_redis):
        mock_redis.hkeys.return_value = []
        mock_redis.hvals.return_value = []
        mock_redis.hlen.return_value = 0

        assert client.hash_keys("missing") == []
        assert client.hash_values("missing") == []
        assert client.hash_length("missing") == 0

    def test_hash_increment_by(self, client, mock_redis):
        mock_redis.hincrby.return_value = 5
        mock_redis.hincrbyfloat.return_value = 2.5

        assert client.hash_increment_by("h", "count", 2) == 5
        assert client.hash_increment_by("h", "ratio", 0.5) == 2.5
        mock_redis.hincrby.assert_called_once_with("h", "count", 2)
        mock_redis.hincrbyfloat.assert_called_once_with("h", "ratio", 0.5)

    @pytest.mark.parametrize("hash_key,field", [("", "f"), ("h", "")])
    def test_hash_validation(self, client, mock_redis, hash_key, field):
        with pytest.raises(InvalidArgumentError):
            client.hash_get(hash_key, field)
        mock_redis.hget.assert_not_called()


# ============================================================================
# PUB/SUB TESTS
# ============================================================================


class TestPubSub:
    def test_publish_returns_receivers(self, client, mock_redis):
        mock_redis.publish.return_value = 2

        assert client.publish("unit_test", list(range(10))) == 2
        mock_redis.publish.assert_called_once_with("unit_test", b"[0,1,2,3,4,5,6,7,8,9]")

    def test_subscribe_starts_worker_and_dispatches(self, client, mock_redis):
        pubsub = MagicMock()
        mock_redis.pubsub.return_value = pubsub
        received = []

        subscription = client.subscribe("unit_test", received.append)

        assert isinstance(subscription, Subscription)
        mock_redis.pubsub.assert_called_once_with(ignore_subscribe_messages=True)
        assert pubsub.run_in_thread.call_args.kwargs["daemon"] is True

        dispatch = pubsub.subscribe.call_args.kwargs["unit_test"]
        dispatch({"type": "message", "channel": b"unit_test", "data": b"[0,1,2]"})

        assert received == [[0, 1, 2]]

    def test_subscribe_exception_handler_logs_and_continues(self, client, mock_redis):
        pubsub = MagicMock()
        mock_redis.pubsub.return_value = pubsub

        client.subscribe("unit_test", lambda value: None)
        on_error = pubsub.run_in_thread.call_args.kwargs["exception_handler"]

        # must not raise, the worker thread keeps polling
        on_error(ValueError("handler failed"), pubsub, pubsub.run_in_thread.return_value)

    def test_subscribe_requires_callable(self, client):
        with pytest.raises(TypeError):
            client.subscribe("unit_test", "not callable")

    def test_unsubscribe_stops_matching_channel(self, client, mock_redis):
        first, second = MagicMock(), MagicMock()
        mock_redis.pubsub.side_effect = [first, second]

        client.subscribe("a", print)
        client.subscribe("b", print)
        client.unsubscribe("a")

        first.run_in_thread.return_value.stop.assert_called_once()
        second.run_in_thread.return_value.stop.assert_not_called()

    def test_subscription_unsubscribe_idempotent(self, client, mock_redis):
        mock_redis.pubsub.return_value = MagicMock()
        subscription = client.subscribe("a", print)

        subscription.unsubscribe()
        subscription.unsubscribe()

        thread = mock_redis.pubsub.return_value.run_in_thread.return_value
        thread.stop.assert_called_once()
        assert not subscription.is_active

    def test_stopped_subscriptions_are_released(self, client, mock_redis):
        mock_redis.pubsub.side_effect = lambda **kwargs: MagicMock()

        for _ in range(100):
            client.subscribe("ch", print).unsubscribe()

        assert client._subscriptions == []

    def test_unsubscribe_all_releases_every_handle(self, client, mock_redis):
        mock_redis.pubsub.side_effect = lambda **kwargs: MagicMock()
        handles = [client.subscribe(channel, print) for channel in ("a", "b", "a")]

        client.unsubscribe("a")
        assert client._subscriptions == [handles[1]]

        client.unsubscribe_all()
        assert client._subscriptions == []
        assert not any(handle.is_active for handle in handles)


# ============================================================================
# SERVER / LIFECYCLE TESTS
# ============================================================================


class TestServerAndLifecycle:
    def test_get_info_flattens(self, client, mock_redis):
        mock_redis.info.return_value = {
            "redis_version": "7.2.4",
            "tcp_port": 6379,
            "db0": {"keys": 3, "expires": 0},
        }

        info = client.get_info()

        assert info == {"redis_version": "7.2.4", "tcp_port": "6379", "db0": "keys=3,expires=0"}

    def test_close_releases_pool_and_blocks_operations(self, client, mock_redis):
        client.close()

        mock_redis.close.assert_called_once()
        assert client.closed
        with pytest.raises(CacheClosedError):
            client.get("k")

    def test_close_twice_is_noop(self, client, mock_redis):
        client.close()
        client.close()

        mock_redis.close.assert_called_once()

    def test_close_stops_subscriptions(self, client, mock_redis):
        mock_redis.pubsub.return_value = MagicMock()
        subscription = client.subscribe("a", print)

        client.close()

        assert not subscription.is_active

    def test_close_leaves_injected_client_open(self):
        injected = MagicMock()
        client = RedisCacheClient(client=injected)

        client.close()

        injected.close.assert_not_called()

    def test_context_manager(self, mock_redis):
        with RedisCacheClient() as client:
            assert not client.closed

        assert client.closed

    def test_flush_db(self, client, mock_redis):
        client.flush_db()

        mock_redis.flushdb.assert_called_once()

    def test_save(self, client, mock_redis):
        client.save()
        client.save(background=False)

        mock_redis.bgsave.assert_called_once()
        mock_redis.save.assert_called_once()
