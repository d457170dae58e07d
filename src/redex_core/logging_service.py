"""
LoggingService - Centralized structured logging for Redex.

Configures structlog once per process. Module loggers are plain
structlog.get_logger(__name__) loggers; a processor in the chain
redacts sensitive keys so passwords never reach the log stream.

Copyright (c) 2025 Goncharenko Anton aka alienxs2
License: MIT
"""

import logging
import sys
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import structlog
from structlog.types import Processor


@dataclass
class LoggingConfig:
    """
    Configuration for LoggingService.

    Attributes:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format: Output format ("json" or "console" for dev)
        output_stream: Output destination (default: sys.stderr)
        sensitive_keys: Set of metadata keys whose values are redacted
    """

    level: str = "INFO"
    format: str = "json"
    output_stream: Any = sys.stderr
    sensitive_keys: set[str] = field(default_factory=set)

    def __post_init__(self) -> None:
        if not self.sensitive_keys:
            self.sensitive_keys = {
                "password",
                "redis_password",
                "passwd",
                "secret",
                "token",
                "auth",
                "authorization",
            }


class LoggingService:
    """
    Centralized structured logging service using structlog.

    Example:
        LoggingService.configure_logging(level="INFO", format="json")

        logger = structlog.get_logger("redex_db.redis_cache")
        logger.info("connected", host="h", password="p")  # password="[REDACTED]"
    """

    _configured: bool = False
    _log_level: str = "INFO"
    _config: Optional[LoggingConfig] = None
    _sensitive_keys: set[str] = set()

    @classmethod
    def configure_logging(
        cls, level: str = "INFO", format: str = "json", config: Optional[LoggingConfig] = None
    ) -> None:
        """
        Configure global structured logging.

        Must be called once at application startup before any logging.

        Args:
            level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
            format: Output format ("json" or "console")
            config: Optional LoggingConfig for advanced configuration

        Raises:
            ValueError: If level or format is invalid
            RuntimeError: If called after logging already configured
        """
        if cls._configured:
            raise RuntimeError("Logging already configured")

        if config is not None:
            cfg = config
        else:
            level_upper = level.upper()
            if level_upper not in ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]:
                raise ValueError(
                    f"Invalid log level: {level}. "
                    "Must be one of: DEBUG, INFO, WARNING, ERROR, CRITICAL"
                )

            format_lower = format.lower()
            if format_lower not in ["json", "console"]:
                raise ValueError(f"Invalid format: {format}. Must be 'json' or 'console'")

            cfg = LoggingConfig(level=level_upper, format=format_lower)

        cls._config = cfg
        cls._log_level = cfg.level
        cls._sensitive_keys = cfg.sensitive_keys

        structlog.configure(
            processors=cls._setup_processors(),
            wrapper_class=structlog.make_filtering_bound_logger(getattr(logging, cfg.level)),
            context_class=dict,
            logger_factory=structlog.PrintLoggerFactory(file=cfg.output_stream),
            cache_logger_on_first_use=True,
        )

        cls._configured = True

    @classmethod
    def configure_from_settings(cls, settings: Any) -> None:
        """Configure logging from a RedexSettings instance."""
        cls.configure_logging(level=settings.log_level, format=settings.log_format)

    @classmethod
    def _redact_sensitive(
        cls, logger: Any, method_name: str, event_dict: Dict[str, Any]
    ) -> Dict[str, Any]:
        """structlog processor: redact sensitive keys on every log line."""
        return cls._sanitize_metadata(event_dict)

    @classmethod
    def _sanitize_metadata(cls, data: dict[str, Any]) -> dict[str, Any]:
        """
        Replace values of sensitive keys with "[REDACTED]".

        Recurses into nested dicts and lists of dicts.

        Example:
            LoggingService._sanitize_metadata({"host": "h", "password": "p"})
            # {"host": "h", "password": "[REDACTED]"}
        """
        if not isinstance(data, dict):
            return data

        sanitized: Dict[str, Any] = {}

        for key, value in data.items():
            if key.lower() in cls._sensitive_keys:
                sanitized[key] = "[REDACTED]"
            elif isinstance(value, dict):
                sanitized[key] = cls._sanitize_metadata(value)
            elif isinstance(value, list):
                sanitized[key] = [
                    cls._sanitize_metadata(item) if isinstance(item, dict) else item
                    for item in value
                ]
            else:
                sanitized[key] = value

        return sanitized

    @classmethod
    def _setup_processors(cls) -> list[Processor]:
        """Build the structlog processor chain for the configured format."""
        processors: list[Processor] = [
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            cls._redact_sensitive,
        ]

        if cls._config and cls._config.format == "console":
            processors.append(structlog.dev.ConsoleRenderer(colors=True))
        else:
            processors.append(structlog.processors.JSONRenderer())

        return processors
