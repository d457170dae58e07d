"""
Redis cache facade: typed sync and async clients plus pub/sub handles.
"""

from redex_db.redis_cache.async_cache_client import AsyncRedisCacheClient
from redex_db.redis_cache.cache_client import RedisCacheClient
from redex_db.redis_cache.subscriptions import AsyncSubscription, Subscription

__all__ = [
    "RedisCacheClient",
    "AsyncRedisCacheClient",
    "Subscription",
    "AsyncSubscription",
]
