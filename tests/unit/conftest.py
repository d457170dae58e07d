"""
Unit test fixtures.

Isolates unit tests from environment variables (.env file)
to ensure tests verify actual default values.

Copyright (c) 2025 Goncharenko Anton aka alienxs2
License: MIT
"""

import os

import pytest


# Environment variables that affect RedexSettings defaults
CONFIG_ENV_VARS = [
    "REDIS_HOST",
    "REDIS_PORT",
    "REDIS_DB",
    "REDIS_PASSWORD",
    "REDIS_SSL",
    "REDIS_MAX_CONNECTIONS",
    "REDIS_SOCKET_TIMEOUT",
    "REDIS_SOCKET_CONNECT_TIMEOUT",
    "REDIS_HEALTH_CHECK_INTERVAL",
    "REDIS_MAX_RETRIES",
    "REDIS_RETRY_INITIAL_DELAY",
    "REDIS_RETRY_MAX_DELAY",
    "SERIALIZER",
    "SUBSCRIBER_POLL_INTERVAL",
    "LOG_LEVEL",
    "LOG_FORMAT",
]


@pytest.fixture(autouse=True)
def clean_env_for_unit_tests(monkeypatch, tmp_path):
    """
    Remove all config-related environment variables and change working
    directory to avoid loading .env file.
    """
    for var in CONFIG_ENV_VARS:
        monkeypatch.delenv(var, raising=False)

    original_dir = os.getcwd()
    os.chdir(tmp_path)
    yield
    os.chdir(original_dir)
