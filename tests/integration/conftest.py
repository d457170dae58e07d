"""
Integration test fixtures.

These tests talk to a real Redis server located by REDIS_HOST / REDIS_PORT
(default localhost:6379) and use REDIS_TEST_DB (default 15), which is
flushed after every test. They are skipped when the server does not
answer PING.

Copyright (c) 2025 Goncharenko Anton aka alienxs2
License: MIT
"""

import os
from typing import Any, Dict, Generator

import pytest
import redis

from redex_core.serializers import JsonSerializer, OrjsonSerializer, PickleSerializer, Serializer
from redex_db.redis_cache.cache_client import RedisCacheClient

REDIS_HOST = os.getenv("REDIS_HOST", "localhost")
REDIS_PORT = int(os.getenv("REDIS_PORT", "6379"))
REDIS_TEST_DB = int(os.getenv("REDIS_TEST_DB", "15"))


@pytest.fixture(scope="session")
def redis_server() -> None:
    """Skip the integration suite when no Redis server is reachable."""
    probe = redis.Redis(host=REDIS_HOST, port=REDIS_PORT, socket_connect_timeout=1)
    try:
        probe.ping()
    except redis.RedisError as e:
        pytest.skip(f"Redis not reachable at {REDIS_HOST}:{REDIS_PORT}: {e}")
    finally:
        probe.close()


@pytest.fixture(
    params=[JsonSerializer(), OrjsonSerializer(), PickleSerializer()],
    ids=lambda serializer: serializer.name,
)
def serializer(request) -> Serializer:
    """Run every integration test once per codec."""
    return request.param


@pytest.fixture(scope="session")
def redis_connection() -> Dict[str, Any]:
    return {"host": REDIS_HOST, "port": REDIS_PORT, "db": REDIS_TEST_DB}


@pytest.fixture
def cache(redis_server, redis_connection, serializer) -> Generator[RedisCacheClient, None, None]:
    client = RedisCacheClient(serializer=serializer, **redis_connection)
    yield client
    client.flush_db()
    client.close()
