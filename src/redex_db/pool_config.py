"""
Connection pool and retry configuration for the Redis cache clients.

The facade itself never retries. RetryConfig describes the policy handed
to redis-py, which retries connection and timeout errors internally with
exponential backoff.

Copyright (c) 2025 Goncharenko Anton aka alienxs2
License: MIT
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING

import redis
from redis.asyncio.retry import Retry as AsyncRetry
from redis.backoff import ExponentialBackoff
from redis.retry import Retry

from redex_core.exceptions import ConfigurationError

if TYPE_CHECKING:
    from redex_core.config import RedexSettings


@dataclass
class PoolConfig:
    """
    Connection pool configuration.

    Attributes:
        max_connections: Maximum connections allowed in pool (default: 10)
        socket_timeout: Socket read/write timeout in seconds (default: 5.0)
        socket_connect_timeout: Timeout for initial connection in seconds (default: 5.0)
        health_check_interval: Seconds between idle connection health checks, 0 disables (default: 30)
    """

    max_connections: int = 10
    socket_timeout: float = 5.0
    socket_connect_timeout: float = 5.0
    health_check_interval: int = 30

    def __post_init__(self) -> None:
        """Validate pool configuration after initialization."""
        if self.max_connections < 1:
            raise ConfigurationError(
                f"max_connections must be >= 1, got {self.max_connections}"
            )

        if self.socket_timeout <= 0:
            raise ConfigurationError(f"socket_timeout must be > 0, got {self.socket_timeout}")

        if self.socket_connect_timeout <= 0:
            raise ConfigurationError(
                f"socket_connect_timeout must be > 0, got {self.socket_connect_timeout}"
            )

        if self.health_check_interval < 0:
            raise ConfigurationError(
                f"health_check_interval must be >= 0, got {self.health_check_interval}"
            )

    @classmethod
    def from_settings(cls, settings: "RedexSettings") -> "PoolConfig":
        """Build pool configuration from RedexSettings."""
        return cls(
            max_connections=settings.redis_max_connections,
            socket_timeout=settings.redis_socket_timeout,
            socket_connect_timeout=settings.redis_socket_connect_timeout,
            health_check_interval=settings.redis_health_check_interval,
        )


@dataclass
class RetryConfig:
    """
    Retry policy for transient Redis errors, executed by redis-py.

    Attributes:
        max_retries: Maximum retry attempts, 0 disables (default: 3)
        initial_delay: Backoff base in seconds (default: 0.1)
        max_delay: Backoff cap in seconds (default: 2.0)
    """

    max_retries: int = 3
    initial_delay: float = 0.1
    max_delay: float = 2.0

    def __post_init__(self) -> None:
        """Validate retry configuration after initialization."""
        if self.max_retries < 0:
            raise ConfigurationError(f"max_retries must be >= 0, got {self.max_retries}")

        if self.max_retries > 10:
            raise ConfigurationError(f"max_retries must be <= 10, got {self.max_retries}")

        if self.initial_delay <= 0:
            raise ConfigurationError(f"initial_delay must be > 0, got {self.initial_delay}")

        if self.max_delay < self.initial_delay:
            raise ConfigurationError(
                f"max_delay ({self.max_delay}) must be >= initial_delay ({self.initial_delay})"
            )

    def build(self) -> Retry:
        """Build a synchronous redis-py Retry policy."""
        return Retry(ExponentialBackoff(cap=self.max_delay, base=self.initial_delay), self.max_retries)

    def build_async(self) -> AsyncRetry:
        """Build a redis.asyncio Retry policy."""
        return AsyncRetry(
            ExponentialBackoff(cap=self.max_delay, base=self.initial_delay), self.max_retries
        )

    @property
    def retry_on_error(self) -> list:
        """Exceptions redis-py retries on."""
        return [redis.ConnectionError, redis.TimeoutError]

    @classmethod
    def from_settings(cls, settings: "RedexSettings") -> "RetryConfig":
        """Build retry configuration from RedexSettings."""
        return cls(
            max_retries=settings.redis_max_retries,
            initial_delay=settings.redis_retry_initial_delay,
            max_delay=settings.redis_retry_max_delay,
        )


__all__ = ["PoolConfig", "RetryConfig"]
