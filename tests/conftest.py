"""
Pytest configuration and fixtures for all tests.

Configures structured logging once per test so every module logger
writes through a freshly configured LoggingService.

Copyright (c) 2025 Goncharenko Anton aka alienxs2
License: MIT
"""

import pytest

from redex_core.logging_service import LoggingService


def pytest_configure(config):
    """Configure logging before any tests are collected."""
    LoggingService.configure_logging(level="DEBUG", format="json")


@pytest.fixture(autouse=True)
def reset_logging_service():
    """Reset LoggingService state before each test."""
    LoggingService._configured = False
    LoggingService._log_level = "INFO"
    LoggingService._config = None
    LoggingService._sensitive_keys = set()

    LoggingService.configure_logging(level="DEBUG", format="json")

    yield

    LoggingService._configured = False
