"""
Exception hierarchy for Redex.

Defines the facade's error types with error codes and correlation IDs.
Store failures raised by redis-py are NOT wrapped here; they propagate
to the caller unchanged.

Copyright (c) 2025 Goncharenko Anton aka alienxs2
License: MIT
"""

import uuid
from typing import Any, Dict, Optional


class RedexError(Exception):
    """
    Base exception for all Redex errors.

    Provides standard error attributes: message, error_code, details,
    correlation_id.

    Attributes:
        message: Human-readable error message
        error_code: Programmatic error code (e.g., "ARG_001")
        details: Additional context (dict)
        correlation_id: UUID for tracing across layers
        original_exception: Wrapped exception (if any)

    Example:
        raise RedexError(
            message="Operation failed",
            error_code="ERR_UNKNOWN",
            details={"key": "orders:1"},
        )
    """

    def __init__(
        self,
        message: str,
        error_code: str = "ERR_UNKNOWN",
        details: Optional[Dict[str, Any]] = None,
        correlation_id: Optional[str] = None,
        original_exception: Optional[Exception] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        self.correlation_id = correlation_id or str(uuid.uuid4())
        self.original_exception = original_exception

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert exception to dictionary for logging/serialization.

        Returns:
            Dictionary with all error information
        """
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code,
            "details": self.details,
            "correlation_id": self.correlation_id,
            "original_error": str(self.original_exception) if self.original_exception else None,
        }


# === Argument Validation ===


class InvalidArgumentError(RedexError, ValueError):
    """
    Raised when a caller passes an invalid argument (empty key, bad TTL).

    Error Codes:
        ARG_001: Empty or non-string key/field/channel
        ARG_003: Value out of range

    Programmer error: raised before any store call, never retried.
    """

    def __init__(self, message: str, error_code: str = "ARG_001", **kwargs):
        super().__init__(message=message, error_code=error_code, **kwargs)


class MissingArgumentError(InvalidArgumentError):
    """
    Raised when a required value is None.

    Error Codes:
        ARG_002: Required value is None
    """

    def __init__(self, message: str, error_code: str = "ARG_002", **kwargs):
        super().__init__(message=message, error_code=error_code, **kwargs)


# === Serialization ===


class SerializationError(RedexError):
    """Raised when a value cannot be encoded by the active serializer."""

    def __init__(self, message: str, error_code: str = "SER_001", **kwargs):
        super().__init__(message=message, error_code=error_code, **kwargs)


class DeserializationError(RedexError):
    """Raised when stored bytes cannot be decoded into the requested type."""

    def __init__(self, message: str, error_code: str = "SER_002", **kwargs):
        super().__init__(message=message, error_code=error_code, **kwargs)


# === Lifecycle / Configuration ===


class CacheClosedError(RedexError):
    """Raised when an operation is attempted on a closed cache client."""

    def __init__(self, message: str = "cache client is closed", error_code: str = "CACHE_001", **kwargs):
        super().__init__(message=message, error_code=error_code, **kwargs)


class ConfigurationError(RedexError):
    """Raised when pool, retry or serializer configuration is invalid."""

    def __init__(self, message: str, error_code: str = "CFG_001", **kwargs):
        super().__init__(message=message, error_code=error_code, **kwargs)
