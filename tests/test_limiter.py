"""Tests for the check orchestration (evaluate, decide, record)."""

from unittest.mock import Mock

import pytest

from window_limiter.adapters.store.base import AbstractEventStore
from window_limiter.adapters.store.in_memory import InMemoryEventStore
from window_limiter.core.errors import InvalidOptionError, InvalidSpecError, StoreError
from window_limiter.services.decision import ADMITTED, Exceeded
from window_limiter.services.limiter import LimiterConfig, RateLimiter
from window_limiter.services.limits import Limit

BASE_TIME = 1_700_000_000.0


class UnavailableStore(AbstractEventStore):
    """Store whose backend is down."""

    def __init__(self, *, fail_reads: bool = True) -> None:
        self.fail_reads = fail_reads

    def set_with_expiry(self, key: str, ttl_seconds: int, value: str = "") -> None:
        raise StoreError(code="store_unavailable", message="Event store write failed")

    def list_keys_matching(self, pattern: str) -> list[str]:
        if self.fail_reads:
            raise StoreError(code="store_unavailable", message="Event store read failed")
        return []


@pytest.fixture
def limiter(store: InMemoryEventStore, clock: Mock) -> RateLimiter:
    config = LimiterConfig(
        namespace="rate_limit",
        expires_seconds=3600,
        default_limits=(Limit(2, 10),),
        default_identifier=lambda request: request["ip"],
    )
    return RateLimiter(store, config, clock=clock)


def at(clock: Mock, offset: float) -> None:
    clock.return_value = BASE_TIME + offset


def check_at(limiter: RateLimiter, clock: Mock, request, *offsets: float, bucket: str = "default") -> None:
    """Run one admitted check per offset; events need distinct timestamps."""
    for offset in offsets:
        at(clock, offset)
        assert limiter.check(request, bucket).allowed is True


def test_two_per_ten_seconds_scenario(limiter: RateLimiter, clock: Mock) -> None:
    request = {"ip": "10.0.0.1"}

    at(clock, 0)
    first = limiter.check(request)
    assert first.decision is ADMITTED
    assert first.evaluation.states[0].remaining == 1

    at(clock, 1)
    second = limiter.check(request)
    assert second.decision is ADMITTED
    assert second.evaluation.states[0].remaining == 0

    at(clock, 2)
    third = limiter.check(request)
    assert third.decision == Exceeded(bucket="default", requests=2, seconds=10, retry_after=8)
    assert third.allowed is False


def test_rejected_requests_are_not_recorded(
    limiter: RateLimiter, store: InMemoryEventStore, clock: Mock
) -> None:
    request = {"ip": "10.0.0.1"}
    check_at(limiter, clock, request, 0, 1)

    for offset in range(2, 7):
        at(clock, offset)
        assert limiter.check(request).allowed is False

    assert len(store) == 2


def test_admits_while_every_limit_has_quota(limiter: RateLimiter, clock: Mock) -> None:
    request = {"ip": "10.0.0.1"}

    for offset in range(5):
        at(clock, offset)
        result = limiter.check(request, limits=[5, 10, 10, 60])
        assert result.decision is ADMITTED


def test_exhausted_limit_reports_zero_then_exceeded(limiter: RateLimiter, clock: Mock) -> None:
    request = {"ip": "10.0.0.1"}
    for offset in range(3):
        at(clock, offset)
        limiter.check(request, limits=[3, 30])

    at(clock, 3)
    evaluation = limiter.evaluate(request, limits=[3, 30])
    assert evaluation.states[0].remaining == 0

    result = limiter.check(request, limits=[3, 30])
    assert result.decision == Exceeded(bucket="default", requests=3, seconds=30, retry_after=27)


def test_retry_after_shrinks_and_hits_zero_when_oldest_event_ages_out(
    limiter: RateLimiter, clock: Mock
) -> None:
    request = {"ip": "10.0.0.1"}
    at(clock, 0)
    limiter.check(request)
    at(clock, 1)
    limiter.check(request)

    previous = None
    for offset in (2, 3.5, 6, 9, 9.99):
        at(clock, offset)
        decision = limiter.check(request).decision
        assert isinstance(decision, Exceeded)
        if previous is not None:
            assert decision.retry_after <= previous
        previous = decision.retry_after

    assert previous == 1

    at(clock, 10)
    evaluation = limiter.evaluate(request)
    assert evaluation.violated is None
    assert evaluation.states[0].remaining == 1
    assert limiter.check(request).decision is ADMITTED


def test_identities_are_isolated(limiter: RateLimiter, clock: Mock) -> None:
    check_at(limiter, clock, {"ip": "10.0.0.1"}, 0, 1)

    at(clock, 2)
    assert limiter.check({"ip": "10.0.0.1"}).allowed is False
    other = limiter.check({"ip": "10.0.0.2"})
    assert other.allowed is True
    assert other.evaluation.states[0].remaining == 1


def test_buckets_are_partitioned(limiter: RateLimiter, clock: Mock) -> None:
    request = {"ip": "10.0.0.1"}
    check_at(limiter, clock, request, 0, 1, bucket="uploads")

    at(clock, 2)
    assert limiter.check(request, "uploads").allowed is False
    assert limiter.check(request, "downloads").allowed is True
    assert limiter.check(request).allowed is True


def test_evaluate_is_idempotent(limiter: RateLimiter) -> None:
    request = {"ip": "10.0.0.1"}
    limiter.check(request)

    assert limiter.evaluate(request) == limiter.evaluate(request)


def test_literal_identifier_shares_history_across_requests(
    limiter: RateLimiter, clock: Mock
) -> None:
    options = {"identifier": "shared-key"}
    at(clock, 0)
    limiter.check({"ip": "10.0.0.1"}, options=options)
    at(clock, 1)
    limiter.check({"ip": "10.0.0.2"}, options=options)

    at(clock, 2)
    assert limiter.check({"ip": "10.0.0.3"}, options=options).allowed is False


def test_derived_identifier_is_called_with_request(limiter: RateLimiter) -> None:
    identifier = Mock(return_value="user-42")

    limiter.check({"ip": "10.0.0.1", "user": 42}, options={"identifier": identifier})

    identifier.assert_called_once_with({"ip": "10.0.0.1", "user": 42})


def test_identity_with_separator_is_escaped(
    limiter: RateLimiter, store: InMemoryEventStore
) -> None:
    limiter.check({"ip": "a/b*"})

    [key] = store.list_keys_matching("*")
    assert key.startswith("rate_limit/a%2Fb%2A/default/")
    assert limiter.evaluate({"ip": "a/b*"}).states[0].remaining == 1
    assert limiter.evaluate({"ip": "a"}).states[0].remaining == 2


def test_empty_identity_is_rejected(limiter: RateLimiter) -> None:
    with pytest.raises(InvalidOptionError):
        limiter.check({"ip": ""})


def test_invalid_bucket_is_rejected(limiter: RateLimiter) -> None:
    with pytest.raises(InvalidSpecError):
        limiter.check({"ip": "10.0.0.1"}, "api v2")


def test_headers_reflect_recorded_event(limiter: RateLimiter) -> None:
    result = limiter.check({"ip": "10.0.0.1"}, limits=[5, 10, 20, 60])

    assert ("Rate-Limit-1-Remaining", "4") in result.headers
    assert ("Rate-Limit-2-Remaining", "19") in result.headers
    assert ("Rate-Limit-1-Reset", "10") in result.headers


def test_headers_disabled_by_option(limiter: RateLimiter) -> None:
    result = limiter.check({"ip": "10.0.0.1"}, options={"send_headers": False})

    assert result.headers == []


def test_store_read_failure_propagates(clock: Mock) -> None:
    limiter = RateLimiter(UnavailableStore(), LimiterConfig(default_identifier=str), clock=clock)

    with pytest.raises(StoreError):
        limiter.check("10.0.0.1")


def test_store_write_failure_propagates(clock: Mock) -> None:
    store = UnavailableStore(fail_reads=False)
    limiter = RateLimiter(store, LimiterConfig(default_identifier=str), clock=clock)

    with pytest.raises(StoreError):
        limiter.check("10.0.0.1")


def test_events_expire_with_retention_ttl(store: InMemoryEventStore, clock: Mock) -> None:
    config = LimiterConfig(
        expires_seconds=60,
        default_limits=(Limit(1, 30),),
        default_identifier=str,
    )
    limiter = RateLimiter(store, config, clock=clock)
    limiter.check("10.0.0.1")

    at(clock, 61)

    assert len(store) == 0
    assert limiter.check("10.0.0.1").allowed is True
