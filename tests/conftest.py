"""Pytest configuration and fixtures shared across all test modules.

Environment variables are set before anything imports the settings module,
so the global ``settings`` object is built for the ``testing`` environment
with rate limiting switched on and the in-memory store.
"""

import os

# CRITICAL: Set this before any imports that might load settings
os.environ["APP_ENV"] = "testing"
os.environ.setdefault("RATE_LIMITER_ENABLED", "true")
os.environ.setdefault("RATE_LIMITER_ENVIRONMENTS", '["testing"]')
os.environ.setdefault("RATE_LIMITER_STORE_BACKEND", "memory")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from unittest.mock import Mock

import pytest

from window_limiter.adapters.store.in_memory import InMemoryEventStore
from window_limiter.core.rate_limit import reset_rate_limiter

BASE_TIME = 1_700_000_000.0


@pytest.fixture(autouse=True)
def _fresh_rate_limiter():
    """Every test starts with an empty in-memory history."""
    reset_rate_limiter()
    yield
    reset_rate_limiter()


@pytest.fixture
def clock() -> Mock:
    """Controllable time source; set ``clock.return_value`` to move time."""
    return Mock(return_value=BASE_TIME)


@pytest.fixture
def store(clock: Mock) -> InMemoryEventStore:
    return InMemoryEventStore(clock=clock)
