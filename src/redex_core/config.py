"""
Configuration Management for Redex.

Provides centralized, type-safe configuration loading using Pydantic Settings.
Supports environment variables, .env files, and sensible defaults for zero-config operation.

Copyright (c) 2025 Goncharenko Anton aka alienxs2
License: MIT
"""

from typing import Any, Dict, Optional

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings


class RedexSettings(BaseSettings):
    """
    Centralized configuration for the Redex cache facade.

    Configuration is loaded with the following priority (highest to lowest):
    1. System environment variables
    2. .env file in the working directory
    3. Hardcoded default values

    All parameters have defaults that point at a local Redis, so the
    facade works out-of-the-box for development.

    Example:
        ```python
        from redex_core.config import settings

        print(settings.redis_host)  # 'localhost'
        print(settings.redis_connection_string(mask_password=True))
        ```
    """

    # ========================================
    # REDIS CONNECTION
    # ========================================

    redis_host: str = Field(default="localhost", description="Redis server hostname")

    redis_port: int = Field(default=6379, ge=1, le=65535, description="Redis server port")

    redis_db: int = Field(default=0, ge=0, le=15, description="Redis logical database (0-15)")

    redis_password: Optional[SecretStr] = Field(
        default=None, description="Redis authentication password (if required)"
    )

    redis_ssl: bool = Field(default=False, description="Connect to Redis over TLS")

    # ========================================
    # CONNECTION POOL
    # ========================================

    redis_max_connections: int = Field(
        default=10, ge=1, le=1000, description="Maximum connections held by the pool"
    )

    redis_socket_timeout: float = Field(
        default=5.0, gt=0.0, le=300.0, description="Socket read/write timeout in seconds"
    )

    redis_socket_connect_timeout: float = Field(
        default=5.0, gt=0.0, le=60.0, description="Timeout for establishing a connection"
    )

    redis_health_check_interval: int = Field(
        default=30, ge=0, le=3600, description="Seconds between idle connection health checks"
    )

    # ========================================
    # RETRY (applied by redis-py, not the facade)
    # ========================================

    redis_max_retries: int = Field(
        default=3, ge=0, le=10, description="Retries redis-py performs on connection errors"
    )

    redis_retry_initial_delay: float = Field(
        default=0.1, ge=0.001, le=5.0, description="Base delay for exponential backoff"
    )

    redis_retry_max_delay: float = Field(
        default=2.0, ge=0.01, le=60.0, description="Backoff delay cap in seconds"
    )

    # ========================================
    # SERIALIZATION / PUBSUB
    # ========================================

    serializer: str = Field(
        default="json", description="Value codec: json, orjson or pickle"
    )

    subscriber_poll_interval: float = Field(
        default=0.1,
        gt=0.0,
        le=10.0,
        description="Seconds a pub/sub worker waits for a message per poll",
    )

    # ========================================
    # LOGGING
    # ========================================

    log_level: str = Field(
        default="INFO", description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    log_format: str = Field(default="json", description="Log format (json, console)")

    # ========================================
    # VALIDATORS
    # ========================================

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalize and validate the log level."""
        allowed = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in allowed:
            raise ValueError(f"log_level must be one of {allowed}, got '{v}'")
        return v_upper

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        """Normalize and validate the log format."""
        allowed = ["json", "console"]
        v_lower = v.lower()
        if v_lower not in allowed:
            raise ValueError(f"log_format must be one of {allowed}, got '{v}'")
        return v_lower

    @field_validator("serializer")
    @classmethod
    def validate_serializer(cls, v: str) -> str:
        """
        Validate serializer name.

        Args:
            v: Serializer name (case-insensitive)

        Returns:
            Lowercase serializer name

        Raises:
            ValueError: If serializer is not one of the registered codecs
        """
        allowed = ["json", "orjson", "pickle"]
        v_lower = v.lower()
        if v_lower not in allowed:
            raise ValueError(f"serializer must be one of {allowed}, got '{v}'")
        return v_lower

    @field_validator("redis_retry_max_delay")
    @classmethod
    def validate_retry_max_delay(cls, v: float, info: Any) -> float:
        """Ensure the backoff cap is not below the initial delay."""
        if info.data and "redis_retry_initial_delay" in info.data:
            initial = info.data["redis_retry_initial_delay"]
            if v < initial:
                raise ValueError(
                    f"redis_retry_max_delay ({v}) must be >= redis_retry_initial_delay ({initial})"
                )
        return v

    # ========================================
    # COMPUTED PROPERTIES
    # ========================================

    def redis_connection_string(self, mask_password: bool = False) -> str:
        """
        Get Redis connection URL.

        Args:
            mask_password: Replace the password with '***' (for logs)

        Returns:
            URL in format: redis[s]://[:password@]host:port/db
        """
        scheme = "rediss" if self.redis_ssl else "redis"
        auth = ""
        if self.redis_password:
            password = "***" if mask_password else self.redis_password.get_secret_value()
            auth = f":{password}@"
        return f"{scheme}://{auth}{self.redis_host}:{self.redis_port}/{self.redis_db}"

    # ========================================
    # PYDANTIC CONFIGURATION
    # ========================================

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "validate_assignment": True,
        "extra": "forbid",
    }


# ============================================================
# HELPER FUNCTIONS
# ============================================================


def get_config_summary(settings: RedexSettings) -> Dict[str, Any]:
    """
    Get configuration summary for logging/debugging with sensitive values masked.

    Args:
        settings: RedexSettings instance

    Returns:
        Configuration summary grouped by category
    """
    return {
        "redis": {
            "url": settings.redis_connection_string(mask_password=True),
            "ssl": settings.redis_ssl,
        },
        "pool": {
            "max_connections": settings.redis_max_connections,
            "socket_timeout": settings.redis_socket_timeout,
            "socket_connect_timeout": settings.redis_socket_connect_timeout,
            "health_check_interval": settings.redis_health_check_interval,
        },
        "retry": {
            "max_retries": settings.redis_max_retries,
            "initial_delay": settings.redis_retry_initial_delay,
            "max_delay": settings.redis_retry_max_delay,
        },
        "serialization": {
            "serializer": settings.serializer,
        },
        "logging": {
            "level": settings.log_level,
            "format": settings.log_format,
        },
    }


# Default instance - instantiated once at module import
settings = RedexSettings()
