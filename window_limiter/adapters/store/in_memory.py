"""In-memory event store.

Notes:
- Per-process only: running multiple workers gives each worker its own history,
  which multiplies the effective limit.
- Thread-safe: uses a lock around shared state.
- Expired keys are evicted lazily on access, mirroring store-side TTL expiry.
"""

from __future__ import annotations

import fnmatch
import threading
import time
from typing import Callable

from window_limiter.adapters.store.base import AbstractEventStore


class InMemoryEventStore(AbstractEventStore):
    """Dict-backed store with per-key expiry.

    Intended for tests and single-process deployments.
    """

    def __init__(self, *, clock: Callable[[], float] = time.time) -> None:
        """Initialize the store.

        Args:
            clock: Time source function returning UNIX time in seconds.
        """
        self._clock = clock
        self._lock = threading.RLock()
        self._values: dict[str, str] = {}
        self._expires_at: dict[str, float] = {}

    def _evict_expired(self, now: float) -> None:
        expired = [key for key, expires_at in self._expires_at.items() if expires_at <= now]
        for key in expired:
            del self._expires_at[key]
            del self._values[key]

    def set_with_expiry(self, key: str, ttl_seconds: int, value: str = "") -> None:
        if ttl_seconds < 1:
            raise ValueError("ttl_seconds must be >= 1")

        now = self._clock()
        with self._lock:
            self._values[key] = value
            self._expires_at[key] = now + ttl_seconds

    def list_keys_matching(self, pattern: str) -> list[str]:
        now = self._clock()
        with self._lock:
            self._evict_expired(now)
            return [key for key in self._values if fnmatch.fnmatchcase(key, pattern)]

    def __len__(self) -> int:
        with self._lock:
            self._evict_expired(self._clock())
            return len(self._values)
