"""Unit tests for event store adapters."""

from unittest.mock import Mock

import pytest
import redis

from window_limiter.adapters.store.factory import create_event_store
from window_limiter.adapters.store.in_memory import InMemoryEventStore
from window_limiter.adapters.store.redis_store import RedisEventStore
from window_limiter.core.config import RateLimiterSettings
from window_limiter.core.errors import StoreError
from window_limiter.services.event_log import EventLogger


class TestInMemoryEventStore:
    def test_lists_keys_by_glob(self, store: InMemoryEventStore) -> None:
        store.set_with_expiry("ns/a/default/1700000000.5", 60)
        store.set_with_expiry("ns/a/default/1600000000.5", 60)
        store.set_with_expiry("ns/b/default/1700000000.5", 60)

        assert store.list_keys_matching("ns/a/default/17*") == ["ns/a/default/1700000000.5"]
        assert len(store.list_keys_matching("ns/a/default/*")) == 2

    def test_keys_expire_after_ttl(self, store: InMemoryEventStore, clock: Mock) -> None:
        store.set_with_expiry("ns/a/default/1", 10)

        clock.return_value += 9.5
        assert store.list_keys_matching("ns/*") == ["ns/a/default/1"]

        clock.return_value += 0.5
        assert store.list_keys_matching("ns/*") == []
        assert len(store) == 0

    def test_rejects_non_positive_ttl(self, store: InMemoryEventStore) -> None:
        with pytest.raises(ValueError):
            store.set_with_expiry("k", 0)


class TestRedisEventStore:
    def test_set_with_expiry_uses_setex(self) -> None:
        client = Mock()
        store = RedisEventStore(client)

        store.set_with_expiry("ns/a/default/1700000000.5", 86400)

        client.setex.assert_called_once_with("ns/a/default/1700000000.5", 86400, "")

    def test_list_keys_scans_with_match_and_decodes(self) -> None:
        client = Mock()
        client.scan_iter.return_value = iter([b"ns/a/default/1.5", "ns/a/default/2.5"])
        store = RedisEventStore(client, scan_count=500)

        keys = store.list_keys_matching("ns/a/default/*")

        assert keys == ["ns/a/default/1.5", "ns/a/default/2.5"]
        client.scan_iter.assert_called_once_with(match="ns/a/default/*", count=500)

    @pytest.mark.parametrize(
        "error",
        [redis.ConnectionError("refused"), redis.TimeoutError("timed out")],
    )
    def test_read_failure_raises_store_error(self, error: Exception) -> None:
        client = Mock()
        client.scan_iter.side_effect = error
        store = RedisEventStore(client)

        with pytest.raises(StoreError) as exc_info:
            store.list_keys_matching("ns/*")

        assert exc_info.value.code == "store_unavailable"
        assert exc_info.value.__cause__ is error

    def test_write_failure_raises_store_error(self) -> None:
        client = Mock()
        client.setex.side_effect = redis.ConnectionError("refused")
        store = RedisEventStore(client)

        with pytest.raises(StoreError):
            store.set_with_expiry("k", 10)


def test_event_logger_writes_escaped_key_with_ttl() -> None:
    store = Mock()
    logger = EventLogger(store, namespace="rate_limit", expires_seconds=3600)

    logger.record("2001:db8::1", "uploads", 1700000000.25)

    store.set_with_expiry.assert_called_once_with(
        "rate_limit/2001%3Adb8%3A%3A1/uploads/1700000000.25", 3600, ""
    )


def test_factory_builds_memory_store() -> None:
    store = create_event_store(RateLimiterSettings(store_backend="memory"))

    assert isinstance(store, InMemoryEventStore)


def test_factory_builds_redis_store_without_connecting() -> None:
    store = create_event_store(
        RateLimiterSettings(store_backend="redis", redis_url="redis://cache:6379/3")
    )

    assert isinstance(store, RedisEventStore)
