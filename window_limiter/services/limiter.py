"""Rate limit check orchestration.

One check runs: resolve identity -> evaluate every limit of the bucket ->
decide -> record the event if admitted.

Concurrency: nothing locks the evaluate/record pair. Concurrent requests for
the same identity+bucket can all be admitted on history that does not yet
contain each other's events, so a limit may be exceeded by up to the number
of requests in flight at once. Quotas are best effort, not strict.
"""

from __future__ import annotations

import hashlib
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Sequence

from window_limiter.adapters.store.base import AbstractEventStore
from window_limiter.core.errors import StoreError
from window_limiter.services.decision import (
    ADMITTED,
    Decision,
    Exceeded,
    build_headers,
    decide,
)
from window_limiter.services.event_log import EventLogger
from window_limiter.services.identity import resolve_identity
from window_limiter.services.limits import (
    DEFAULT_BUCKET,
    Limit,
    RateLimitOptions,
    parse_limits,
    validate_bucket,
)
from window_limiter.services.window import EvaluationResult, WindowEngine, summarize

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LimiterConfig:
    """Explicit limiter configuration.

    Attributes:
        namespace: First component of every store key.
        expires_seconds: Retention TTL of recorded events; must exceed the
            longest window in use.
        default_limits: Limits applied when a check names none.
        default_options: Options every check starts from.
        default_identifier: Host capability deriving an identity from a
            request when no identifier option is given.
    """

    namespace: str = "rate_limit"
    expires_seconds: int = 24 * 60 * 60
    default_limits: tuple[Limit, ...] = (Limit(requests=10, seconds=20),)
    default_options: RateLimitOptions = field(default_factory=RateLimitOptions)
    default_identifier: Callable[[Any], str] | None = None


@dataclass(frozen=True)
class CheckResult:
    """Result of one check.

    On admission ``evaluation`` and ``headers`` already include the event that
    was just recorded, so ``evaluation.violated`` may be set when this request
    used up the last slot of a limit.
    """

    decision: Decision
    evaluation: EvaluationResult
    headers: list[tuple[str, str]]

    @property
    def allowed(self) -> bool:
        return not isinstance(self.decision, Exceeded)


def _hash_identity(identity: str) -> str:
    """Hash the identity for logging without exposing client addresses."""
    return hashlib.sha256(identity.encode()).hexdigest()[:16]


class RateLimiter:
    """Sliding-window rate limiter over a shared event store."""

    def __init__(
        self,
        store: AbstractEventStore,
        config: LimiterConfig | None = None,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.config = config or LimiterConfig()
        self._clock = clock
        self._engine = WindowEngine(store, namespace=self.config.namespace, clock=clock)
        self._event_logger = EventLogger(
            store,
            namespace=self.config.namespace,
            expires_seconds=self.config.expires_seconds,
        )

    def resolve_limits(self, limits: Sequence[Any] = ()) -> tuple[Limit, ...]:
        """Parse a flat limit sequence, falling back to the configured default."""
        if not limits:
            return self.config.default_limits
        return parse_limits(limits)

    def _prepare(
        self,
        request: Any,
        bucket: str,
        limits: Sequence[Any],
        options: Mapping[str, Any] | None,
    ) -> tuple[tuple[Limit, ...], RateLimitOptions, str]:
        validate_bucket(bucket)
        resolved_limits = self.resolve_limits(limits)
        resolved_options = self.config.default_options.merged(options)
        identity = resolve_identity(request, resolved_options.identifier, self.config.default_identifier)
        return resolved_limits, resolved_options, identity

    def evaluate(
        self,
        request: Any,
        bucket: str = DEFAULT_BUCKET,
        limits: Sequence[Any] = (),
        options: Mapping[str, Any] | None = None,
    ) -> EvaluationResult:
        """Evaluate without recording anything."""
        resolved_limits, _, identity = self._prepare(request, bucket, limits, options)
        return self._engine.evaluate(identity, bucket, resolved_limits)

    def check(
        self,
        request: Any,
        bucket: str = DEFAULT_BUCKET,
        limits: Sequence[Any] = (),
        options: Mapping[str, Any] | None = None,
    ) -> CheckResult:
        """Decide whether ``request`` is admitted for ``bucket``.

        Args:
            request: Host request context, passed to identifier functions.
            bucket: Quota partition name.
            limits: Flat ``(requests, seconds, ...)`` sequence; empty means
                the configured default limits.
            options: Option overrides (``send_headers``, ``header_prefix``,
                ``identifier``).

        Returns:
            CheckResult with the decision and the headers to surface.

        Raises:
            InvalidSpecError: On a malformed bucket or limit specification.
            InvalidOptionError: On bad options or an empty identity.
            StoreError: If the event store is unavailable.
        """
        resolved_limits, resolved_options, identity = self._prepare(request, bucket, limits, options)
        identity_hash = _hash_identity(identity)

        now = self._clock()
        try:
            evaluation = self._engine.evaluate(identity, bucket, resolved_limits, now=now)
            decision = decide(evaluation, bucket)
            if isinstance(decision, Exceeded):
                logger.warning(
                    "rate_limit.exceeded",
                    extra={
                        "bucket": bucket,
                        "identity_hash": identity_hash,
                        "limit": decision.requests,
                        "window_s": decision.seconds,
                        "retry_after_s": decision.retry_after,
                    },
                )
                headers = build_headers(bucket, evaluation, resolved_options)
                return CheckResult(decision=decision, evaluation=evaluation, headers=headers)

            self._event_logger.record(identity, bucket, now)
        except StoreError as exc:
            logger.error(
                "rate_limit.store_error",
                extra={"bucket": bucket, "identity_hash": identity_hash, "error_code": exc.code},
            )
            raise

        evaluation = summarize(evaluation.history + (now,), resolved_limits, now)
        logger.debug(
            "rate_limit.allowed",
            extra={
                "bucket": bucket,
                "identity_hash": identity_hash,
                "remaining": [state.remaining for state in evaluation.states],
            },
        )
        headers = build_headers(bucket, evaluation, resolved_options)
        return CheckResult(decision=ADMITTED, evaluation=evaluation, headers=headers)
