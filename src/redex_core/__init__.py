"""
Redex Core Layer.

Cross-cutting pieces shared by the store layer:
- Exception hierarchy
- Configuration management
- Logging service
- Pluggable value serializers

Author: Goncharenko Anton aka alienxs2
License: MIT
"""

from .config import RedexSettings, get_config_summary, settings
from .exceptions import (
    CacheClosedError,
    ConfigurationError,
    DeserializationError,
    InvalidArgumentError,
    MissingArgumentError,
    RedexError,
    SerializationError,
)
from .logging_service import LoggingConfig, LoggingService
from .serializers import (
    JsonSerializer,
    OrjsonSerializer,
    PickleSerializer,
    Serializer,
    get_serializer,
)

__all__ = [
    "RedexSettings",
    "get_config_summary",
    "settings",
    "RedexError",
    "InvalidArgumentError",
    "MissingArgumentError",
    "SerializationError",
    "DeserializationError",
    "CacheClosedError",
    "ConfigurationError",
    "LoggingConfig",
    "LoggingService",
    "Serializer",
    "JsonSerializer",
    "OrjsonSerializer",
    "PickleSerializer",
    "get_serializer",
]
