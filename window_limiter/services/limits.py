"""Limit specification and option validation.

A limit specification is written as a flat sequence of positive integers,
``(requests_1, seconds_1, requests_2, seconds_2, ...)``. Every pair becomes one
``Limit``; all of them are enforced together for a single bucket.

Validation happens when a route declares its limits, so a broken setup stops
the application from starting instead of failing on the first request.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Sequence, Union

from window_limiter.core.errors import InvalidOptionError, InvalidSpecError

DEFAULT_BUCKET = "default"

_BUCKET_PATTERN = re.compile(r"^[A-Za-z0-9-]*$")


@dataclass(frozen=True)
class Limit:
    """At most ``requests`` events within any trailing ``seconds`` window."""

    requests: int
    seconds: int


@dataclass(frozen=True)
class LiteralIdentifier:
    """Identity given verbatim by the caller."""

    value: str


@dataclass(frozen=True)
class DerivedIdentifier:
    """Identity computed from the request context on every check."""

    func: Callable[[Any], str]


Identifier = Union[LiteralIdentifier, DerivedIdentifier]


@dataclass(frozen=True)
class RateLimitOptions:
    """Per-check options after validation.

    Attributes:
        send_headers: Whether rate limit headers are emitted.
        header_prefix: Prefix for every emitted header name.
        identifier: How to obtain the identity; None means the host default.
    """

    send_headers: bool = True
    header_prefix: str = "Rate-Limit"
    identifier: Identifier | None = None

    def merged(self, overrides: "Mapping[str, Any] | None") -> "RateLimitOptions":
        """Return a copy with validated ``overrides`` applied on top."""
        if not overrides:
            return self
        validated = validate_options(overrides)
        return RateLimitOptions(
            send_headers=validated.get("send_headers", self.send_headers),
            header_prefix=validated.get("header_prefix", self.header_prefix),
            identifier=validated.get("identifier", self.identifier),
        )


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def parse_limits(
    values: Sequence[Any],
    default: Sequence[Any] | None = None,
) -> tuple[Limit, ...]:
    """Turn a flat ``(requests, seconds, ...)`` sequence into limits.

    Args:
        values: Flat sequence of positive integers. May be empty when a
            default is supplied.
        default: Fallback flat sequence used when ``values`` is empty.

    Returns:
        Tuple of limits in specification order.

    Raises:
        InvalidSpecError: If the resolved sequence is empty, has odd length,
            or contains a non-integer or non-positive value.
    """
    flat = list(values) if values else list(default or ())

    if not flat:
        raise InvalidSpecError(
            code="limits_missing",
            message="No explicit or default limit values provided",
        )
    if any(not _is_int(v) for v in flat):
        raise InvalidSpecError(
            code="limits_not_integer",
            message="All limit values must be integers",
            details={"value": repr([v for v in flat if not _is_int(v)][0])},
        )
    if len(flat) % 2 != 0:
        raise InvalidSpecError(
            code="limits_odd_length",
            message="Limit values must come in (requests, seconds) pairs",
        )
    if any(v < 1 for v in flat):
        raise InvalidSpecError(
            code="limits_not_positive",
            message="All limit values must be positive integers",
        )

    return tuple(Limit(requests=flat[i], seconds=flat[i + 1]) for i in range(0, len(flat), 2))


def validate_bucket(bucket: Any) -> str:
    """Check a bucket name.

    Raises:
        InvalidSpecError: If the name is not a string of ``A-Za-z0-9-``.
    """
    if not isinstance(bucket, str) or not _BUCKET_PATTERN.match(bucket):
        raise InvalidSpecError(
            code="invalid_bucket",
            message="Bucket name must be a string containing only a-z, A-Z, 0-9, and -",
            details={"bucket": str(bucket)},
        )
    return bucket


def to_identifier(value: Any) -> Identifier:
    """Wrap a string or callable as an ``Identifier`` variant."""
    if isinstance(value, (LiteralIdentifier, DerivedIdentifier)):
        return value
    if isinstance(value, str):
        return LiteralIdentifier(value)
    if callable(value):
        return DerivedIdentifier(value)
    raise InvalidOptionError(
        code="invalid_option",
        message="identifier must be a callable or a string",
        details={"option": "identifier"},
    )


def validate_options(options: Mapping[str, Any]) -> dict[str, Any]:
    """Validate a raw options mapping.

    Recognized keys are ``send_headers`` (bool), ``header_prefix`` (str) and
    ``identifier`` (str or callable taking the request).

    Returns:
        Dict with the same keys; ``identifier`` converted to an ``Identifier``.

    Raises:
        InvalidOptionError: On an unknown key or a wrongly typed value.
    """
    validated: dict[str, Any] = {}

    for option, value in options.items():
        if option == "send_headers":
            if not isinstance(value, bool):
                raise InvalidOptionError(
                    code="invalid_option",
                    message="send_headers must be true or false",
                    details={"option": option},
                )
            validated[option] = value
        elif option == "header_prefix":
            if not isinstance(value, str):
                raise InvalidOptionError(
                    code="invalid_option",
                    message="header_prefix must be a string",
                    details={"option": option},
                )
            validated[option] = value
        elif option == "identifier":
            validated[option] = to_identifier(value)
        else:
            raise InvalidOptionError(
                code="unknown_option",
                message=f"Invalid option {option}",
                details={"option": str(option)},
            )

    return validated
