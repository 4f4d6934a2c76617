"""Redis-backed event store.

Every event is its own key written with SETEX, so Redis' native TTL expiry
drops old history without any sweeping on our side. Listing uses SCAN with a
MATCH pattern instead of KEYS to avoid blocking the server on large keyspaces.
"""

from __future__ import annotations

import logging

import redis

from window_limiter.adapters.store.base import AbstractEventStore
from window_limiter.core.errors import StoreError

logger = logging.getLogger(__name__)

REDIS_EXCEPTIONS = (
    redis.ConnectionError,
    redis.TimeoutError,
    redis.RedisError,
)


class RedisEventStore(AbstractEventStore):
    """Event store on top of a synchronous ``redis.Redis`` client."""

    def __init__(self, client: redis.Redis, *, scan_count: int = 1000) -> None:
        """Initialize the store.

        Args:
            client: Configured Redis client. Responses may be bytes or str.
            scan_count: COUNT hint passed to SCAN.
        """
        self._client = client
        self._scan_count = scan_count

    @classmethod
    def from_url(cls, url: str, *, socket_timeout: float | None = None) -> "RedisEventStore":
        """Build a store from a ``redis://`` URL."""
        client = redis.Redis.from_url(
            url,
            socket_timeout=socket_timeout,
            socket_connect_timeout=socket_timeout,
            decode_responses=True,
        )
        return cls(client)

    def set_with_expiry(self, key: str, ttl_seconds: int, value: str = "") -> None:
        try:
            self._client.setex(key, ttl_seconds, value)
        except REDIS_EXCEPTIONS as exc:
            logger.error(
                "event_store.write_failed",
                extra={"backend": "redis", "error_type": type(exc).__name__},
            )
            raise StoreError(
                code="store_unavailable",
                message="Event store write failed",
                details={"backend": "redis", "hint": str(exc)},
            ) from exc

    def list_keys_matching(self, pattern: str) -> list[str]:
        try:
            keys = list(self._client.scan_iter(match=pattern, count=self._scan_count))
        except REDIS_EXCEPTIONS as exc:
            logger.error(
                "event_store.read_failed",
                extra={"backend": "redis", "error_type": type(exc).__name__},
            )
            raise StoreError(
                code="store_unavailable",
                message="Event store read failed",
                details={"backend": "redis", "hint": str(exc)},
            ) from exc

        return [key.decode() if isinstance(key, bytes) else key for key in keys]
