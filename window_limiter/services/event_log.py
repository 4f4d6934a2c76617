"""Recording of admitted requests."""

from __future__ import annotations

from window_limiter.adapters.store.base import AbstractEventStore, build_key
from window_limiter.services.identity import history_key
from window_limiter.services.window import format_timestamp


class EventLogger:
    """Writes one expiring store key per admitted request.

    Only call ``record`` after an admitted decision; recording rejected
    requests would count them against the client's quota.
    """

    def __init__(self, store: AbstractEventStore, *, namespace: str, expires_seconds: int) -> None:
        if expires_seconds < 1:
            raise ValueError("expires_seconds must be >= 1")
        self._store = store
        self._namespace = namespace
        self._expires_seconds = expires_seconds

    def record(self, identity: str, bucket: str, timestamp: float) -> None:
        """Store the event.

        Raises:
            StoreError: If the store cannot be written.
        """
        key = build_key(history_key(self._namespace, identity, bucket), format_timestamp(timestamp))
        self._store.set_with_expiry(key, self._expires_seconds, "")
