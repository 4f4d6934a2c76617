"""Factory for event store instances."""

from window_limiter.adapters.store.base import AbstractEventStore
from window_limiter.adapters.store.in_memory import InMemoryEventStore
from window_limiter.adapters.store.redis_store import RedisEventStore
from window_limiter.core.config import RateLimiterSettings
from window_limiter.core.errors import ValidationAppError


def create_event_store(limiter_settings: RateLimiterSettings) -> AbstractEventStore:
    """Instantiate the configured event store backend.

    Args:
        limiter_settings: Rate limiter settings selecting the backend.

    Returns:
        AbstractEventStore: Store for recorded events.

    Raises:
        ValidationAppError: If the backend name is not supported.
    """
    backend = limiter_settings.store_backend.lower()

    if backend == "memory":
        return InMemoryEventStore()

    if backend == "redis":
        return RedisEventStore.from_url(
            limiter_settings.redis_url,
            socket_timeout=limiter_settings.redis_socket_timeout_seconds,
        )

    raise ValidationAppError(
        code="store_unknown_backend",
        message=f"Unknown event store backend: '{backend}'. Supported backends: memory, redis",
    )
