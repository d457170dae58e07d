"""
redex_db - Store layer for Redex.

Provides the Redis-backed cache clients and their pool/retry configuration.

Author: Goncharenko Anton aka alienxs2
License: MIT
"""

from redex_db.pool_config import PoolConfig, RetryConfig
from redex_db.redis_cache import (
    AsyncRedisCacheClient,
    AsyncSubscription,
    RedisCacheClient,
    Subscription,
)

__all__ = [
    "RedisCacheClient",
    "AsyncRedisCacheClient",
    "Subscription",
    "AsyncSubscription",
    "PoolConfig",
    "RetryConfig",
]
