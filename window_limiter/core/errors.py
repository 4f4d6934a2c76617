"""Application-level exception types.

Configuration errors (bad limit specs, bad options) fail fast at setup time.
Store errors are runtime infrastructure failures and always propagate to the
host so it can choose its own fail-open/fail-closed policy.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, NotRequired, TypedDict

if TYPE_CHECKING:
    from window_limiter.services.decision import Exceeded


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients."""

    code: str
    message: str
    hint: str
    bucket: str
    option: str
    value: str
    backend: str
    retry_after: int
    request_id: str
    context: NotRequired[dict[str, Any]]


@dataclass
class AppError(Exception):
    """Base error for application/domain failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message.
        details: Optional structured details for debugging/observability.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


class ValidationAppError(AppError):
    """Raised when input/config validation fails."""


class InvalidSpecError(ValidationAppError):
    """Raised for a malformed limit specification or bucket name."""


class InvalidOptionError(ValidationAppError):
    """Raised for an unknown or wrongly typed rate limit option."""


class StoreError(AppError):
    """Raised when the event store cannot be read or written."""


@dataclass
class RateLimitExceededError(AppError):
    """Raised by the HTTP layer to turn an ``Exceeded`` decision into a 429.

    The decision itself is a plain value returned by the limiter; this
    exception only carries it (and the headers to send) to the handler.
    """

    exceeded: Exceeded | None = None
    headers: list[tuple[str, str]] = field(default_factory=list)
