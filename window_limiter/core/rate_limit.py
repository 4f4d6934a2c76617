"""Rate limiting dependency for FastAPI routes.

This module wires the limiter core into the HTTP layer:

    @router.get("/search", dependencies=[Depends(rate_limit("search", 5, 10, 20, 60))])

- The bucket name is optional and comes first; the integers are flat
  ``requests, seconds`` pairs; keyword arguments are options.
- Arguments are validated when ``rate_limit(...)`` is called, i.e. at import
  time of the router module, so a broken declaration stops the app from
  starting.
- Limiting only happens when ``RATE_LIMITER_ENABLED`` is set and ``APP_ENV``
  is one of ``RATE_LIMITER_ENVIRONMENTS``.
"""

from __future__ import annotations

from typing import Any, Callable

from fastapi import Request, Response

from window_limiter.adapters.store.factory import create_event_store
from window_limiter.core.config import RateLimiterSettings, settings
from window_limiter.core.errors import RateLimitExceededError
from window_limiter.services.decision import Exceeded, rejection_message
from window_limiter.services.limiter import LimiterConfig, RateLimiter
from window_limiter.services.limits import (
    DEFAULT_BUCKET,
    RateLimitOptions,
    parse_limits,
    validate_bucket,
    validate_options,
)

_limiter: RateLimiter | None = None
_limiter_settings: RateLimiterSettings | None = None


def client_address(request: Request) -> str:
    """Default identity: the address of the connecting client."""
    return request.client.host if request.client else "unknown"


def build_limiter_config(limiter_settings: RateLimiterSettings) -> LimiterConfig:
    """Translate settings into the explicit limiter configuration."""
    return LimiterConfig(
        namespace=limiter_settings.namespace,
        expires_seconds=limiter_settings.expires_seconds,
        default_limits=parse_limits(limiter_settings.default_limits),
        default_options=RateLimitOptions(
            send_headers=limiter_settings.send_headers,
            header_prefix=limiter_settings.header_prefix,
        ),
        default_identifier=client_address,
    )


def get_rate_limiter() -> RateLimiter:
    """Return the process-wide rate limiter instance.

    The instance is cached in-module so the in-memory backend keeps its
    history across requests. If the settings object is replaced (primarily in
    tests), the limiter is rebuilt.
    """

    global _limiter, _limiter_settings

    if _limiter is None or _limiter_settings is not settings.rate_limiter:
        _limiter = RateLimiter(
            create_event_store(settings.rate_limiter),
            build_limiter_config(settings.rate_limiter),
        )
        _limiter_settings = settings.rate_limiter

    return _limiter


def reset_rate_limiter() -> None:
    """Drop the cached limiter (and with it any in-memory history)."""

    global _limiter, _limiter_settings
    _limiter = None
    _limiter_settings = None


def rate_limiting_active() -> bool:
    """Whether checks apply in the current environment."""
    cfg = settings.rate_limiter
    return cfg.enabled and settings.app_env in cfg.environments


def rate_limit(*args: Any, **options: Any) -> Callable[[Request, Response], None]:
    """Build a FastAPI dependency enforcing limits for one bucket.

    Args:
        *args: Optional bucket name followed by flat ``requests, seconds``
            integer pairs. Without integers the configured default limits
            apply.
        **options: ``send_headers``, ``header_prefix``, ``identifier``.

    Returns:
        Dependency callable for ``Depends``/``dependencies=[...]``.

    Raises:
        InvalidSpecError: On a bad bucket name or limit values.
        InvalidOptionError: On unknown or wrongly typed options.
    """

    args_list = list(args)
    bucket = args_list.pop(0) if args_list and isinstance(args_list[0], str) else DEFAULT_BUCKET
    validate_bucket(bucket)
    if args_list:
        parse_limits(args_list)
    limits = tuple(args_list)
    validate_options(options)

    def enforce_rate_limit(request: Request, response: Response) -> None:
        """Admit the request or raise ``RateLimitExceededError``.

        Declared sync so FastAPI runs it in the threadpool; store calls block.
        """

        if not rate_limiting_active():
            return

        result = get_rate_limiter().check(request, bucket, limits, options)
        decision = result.decision

        if isinstance(decision, Exceeded):
            headers = list(result.headers)
            # Headers are empty when send_headers is off; Retry-After follows suit.
            if headers:
                headers.append(("Retry-After", str(decision.retry_after)))
            raise RateLimitExceededError(
                code="rate_limit_exceeded",
                message=rejection_message(decision),
                details={"bucket": decision.bucket, "retry_after": decision.retry_after},
                exceeded=decision,
                headers=headers,
            )

        for name, value in result.headers:
            response.headers[name] = value

    return enforce_rate_limit
