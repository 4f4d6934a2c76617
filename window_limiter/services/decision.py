"""Admission decisions and the response contract.

Pure functions over an ``EvaluationResult``: no store access happens here.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from window_limiter.services.limits import DEFAULT_BUCKET, RateLimitOptions
from window_limiter.services.window import EvaluationResult


@dataclass(frozen=True)
class Admitted:
    """The request may proceed."""


@dataclass(frozen=True)
class Exceeded:
    """The request is rejected.

    Attributes:
        bucket: Bucket whose limit was hit.
        requests: Request count of the violated limit.
        seconds: Window size of the violated limit.
        retry_after: Whole seconds until the oldest counted event ages out.
    """

    bucket: str
    requests: int
    seconds: int
    retry_after: int


ADMITTED = Admitted()

Decision = Union[Admitted, Exceeded]


def decide(evaluation: EvaluationResult, bucket: str) -> Decision:
    """Turn an evaluation into a decision."""
    violated = evaluation.violated
    if violated is None:
        return ADMITTED
    return Exceeded(
        bucket=bucket,
        requests=violated.limit.requests,
        seconds=violated.limit.seconds,
        retry_after=int(violated.reset_in),
    )


def build_headers(
    bucket: str,
    evaluation: EvaluationResult,
    options: RateLimitOptions,
) -> list[tuple[str, str]]:
    """Build ``<prefix>[-<bucket>][-<n>]-Limit/Remaining/Reset`` headers.

    The bucket part is left out for the default bucket and the 1-based limit
    number only appears when the bucket has more than one limit.
    """
    if not options.send_headers:
        return []

    prefix = options.header_prefix
    if bucket != DEFAULT_BUCKET:
        prefix = f"{prefix}-{bucket}"

    numbered = len(evaluation.states) > 1
    headers: list[tuple[str, str]] = []
    for number, state in enumerate(evaluation.states, start=1):
        name = f"{prefix}-{number}" if numbered else prefix
        headers.append((f"{name}-Limit", str(state.limit.requests)))
        headers.append((f"{name}-Remaining", str(state.remaining)))
        headers.append((f"{name}-Reset", str(state.reset_in)))
    return headers


def rejection_message(exceeded: Exceeded) -> str:
    """Plain-text body for a rejected request."""
    lead = "Rate" if exceeded.bucket == DEFAULT_BUCKET else f"{exceeded.bucket} rate"
    return (
        f"{lead} limit exceeded: {exceeded.requests} requests in {exceeded.seconds} seconds."
        f" Try again in {exceeded.retry_after} seconds."
    )
