"""Event store interface.

The limiter depends on this abstraction (not a concrete backend) so the same
engine runs against an in-process dict in tests and Redis in production.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

KEY_SEPARATOR = "/"


def build_key(*parts: str) -> str:
    """Join key components with the store key separator."""
    return KEY_SEPARATOR.join(parts)


class AbstractEventStore(ABC):
    """Interface for key-value stores with per-key expiry."""

    @abstractmethod
    def set_with_expiry(self, key: str, ttl_seconds: int, value: str = "") -> None:
        """Write ``key`` so that it disappears after ``ttl_seconds``.

        Raises:
            StoreError: If the backend is unavailable.
        """
        raise NotImplementedError

    @abstractmethod
    def list_keys_matching(self, pattern: str) -> list[str]:
        """Return all live keys matching a glob-style ``pattern``.

        Only ``*`` is used by the limiter, always as a trailing wildcard.

        Raises:
            StoreError: If the backend is unavailable.
        """
        raise NotImplementedError
