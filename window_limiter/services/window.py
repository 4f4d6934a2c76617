"""Sliding-window accounting engine.

Events are individual store keys of the form
``<namespace>/<identity>/<bucket>/<timestamp>``. To answer "how many events in
the last N seconds" the engine lists the keys of one identity+bucket and parses
their timestamps back out.

Listing everything retained for a bucket would grow with total traffic, so the
listing is narrowed with a scan-bounding prefix: the leading decimal digits
shared by ``now`` and ``now - W`` (``W`` being the longest window). The closer
the ratio ``now / (now - W)`` is to one, the more digits are stable across the
whole window and the fewer keys have to be read. Only the store's key-matching
query sees the prefix; counting is always done on exact timestamps.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Iterable, Sequence

from window_limiter.adapters.store.base import KEY_SEPARATOR, AbstractEventStore
from window_limiter.services.identity import history_key
from window_limiter.services.limits import Limit

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LimitState:
    """Usage of one limit at evaluation time.

    Attributes:
        limit: The limit this state describes.
        remaining: Requests left in the window; zero or negative when used up.
        reset_in: Seconds until the oldest counted event leaves the window
            (0 when the window holds no events).
    """

    limit: Limit
    remaining: int
    reset_in: int


@dataclass(frozen=True)
class EvaluationResult:
    """Outcome of evaluating every limit of one bucket."""

    now: float
    history: tuple[float, ...]
    states: tuple[LimitState, ...]
    violated: LimitState | None

    @property
    def exceeded(self) -> bool:
        return self.violated is not None


def format_timestamp(timestamp: float) -> str:
    """Render a timestamp the way it is stored in event keys."""
    return repr(float(timestamp))


def scan_prefix(now: float, window_seconds: int) -> str:
    """Return the leading digits shared by every timestamp in the window.

    Any number between ``now - window_seconds`` and ``now`` with the same digit
    count starts with the digits both bounds have in common. When the bounds
    differ in length, or the window reaches back past the epoch, nothing is
    shared and the empty prefix is returned (full scan of the bucket).
    """
    oldest = now - window_seconds
    if oldest <= 0:
        return ""

    upper = str(int(now))
    lower = str(int(oldest))
    if len(upper) != len(lower):
        return ""

    length = 0
    for a, b in zip(upper, lower):
        if a != b:
            break
        length += 1
    return upper[:length]


def summarize(history: Iterable[float], limits: Sequence[Limit], now: float) -> EvaluationResult:
    """Compute per-limit remaining counts and reset times for ``history``.

    The violated limit is the one with the largest window among those with no
    requests left; on equal windows the later one in ``limits`` wins.
    """
    history = tuple(sorted(history))
    states = []
    violated: LimitState | None = None

    for limit in limits:
        in_window = [t for t in history if t > now - limit.seconds]
        remaining = limit.requests - len(in_window)
        reset_in = limit.seconds - int(now - min(in_window)) if in_window else 0
        state = LimitState(limit=limit, remaining=remaining, reset_in=reset_in)
        states.append(state)

        if remaining < 1 and (violated is None or limit.seconds >= violated.limit.seconds):
            violated = state

    return EvaluationResult(now=now, history=history, states=tuple(states), violated=violated)


class WindowEngine:
    """Evaluates limit specifications against an event store."""

    def __init__(
        self,
        store: AbstractEventStore,
        *,
        namespace: str,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._namespace = namespace
        self._clock = clock

    def fetch_history(self, identity: str, bucket: str, longest_window: int, now: float) -> list[float]:
        """Read candidate event timestamps for an identity+bucket.

        Raises:
            StoreError: If the store cannot be queried.
        """
        prefix = scan_prefix(now, longest_window)
        pattern = f"{history_key(self._namespace, identity, bucket)}{KEY_SEPARATOR}{prefix}*"

        history = []
        for key in self._store.list_keys_matching(pattern):
            raw = key.rsplit(KEY_SEPARATOR, 1)[-1]
            try:
                history.append(float(raw))
            except ValueError:
                logger.debug("window.unparseable_key", extra={"bucket": bucket, "suffix": raw})
        return history

    def evaluate(
        self,
        identity: str,
        bucket: str,
        limits: Sequence[Limit],
        *,
        now: float | None = None,
    ) -> EvaluationResult:
        """Evaluate every limit for one identity+bucket.

        Args:
            identity: Resolved identity (unescaped).
            bucket: Validated bucket name.
            limits: Non-empty limit specification.
            now: Evaluation time; defaults to the engine clock.

        Returns:
            EvaluationResult with one LimitState per limit, in order.

        Raises:
            StoreError: If the store cannot be queried.
        """
        if now is None:
            now = self._clock()
        longest = max(limit.seconds for limit in limits)
        history = self.fetch_history(identity, bucket, longest, now)
        return summarize(history, limits, now)
