"""Global exception handlers for consistent error responses.

Design:
- RateLimitExceededError → 429 plain text with Retry-After and rate headers
- StoreError → 503 (the store is down; the limiter neither admits nor denies)
- Other AppError subclasses → 400
- Unexpected Exception → generic 500 (safety net)
- JSON error bodies include request_id for log correlation
"""

import logging

from fastapi import Request
from fastapi.responses import JSONResponse, PlainTextResponse

from window_limiter.core.errors import AppError, RateLimitExceededError, StoreError
from window_limiter.core.logging import get_request_id

logger = logging.getLogger(__name__)


def _error_body(code: str, message: str, details=None) -> dict:
    error_content = {
        "code": code,
        "message": message,
        "request_id": get_request_id(),
    }
    if details:
        error_content["details"] = details
    return {"error": error_content}


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceededError) -> PlainTextResponse:
    """Render a rejected request.

    The body is the human-readable rejection message, e.g.
    ``"search rate limit exceeded: 5 requests in 10 seconds. Try again in 7 seconds."``.
    """
    return PlainTextResponse(
        exc.message,
        status_code=429,
        headers=dict(exc.headers),
    )


async def store_error_handler(request: Request, exc: StoreError) -> JSONResponse:
    """Report an unavailable event store as 503 Service Unavailable."""
    logger.error(
        "store_error_handled",
        extra={
            "error_code": exc.code,
            "request_path": request.url.path,
            "request_id": get_request_id(),
        },
    )
    return JSONResponse(
        status_code=503,
        content=_error_body(exc.code, exc.message),
    )


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Handle remaining domain errors (validation and options) as 400."""
    logger.warning(
        "app_error_handled",
        extra={
            "error_code": exc.code,
            "error_message": exc.message,
            "status_code": 400,
            "has_details": bool(exc.details),
            "request_id": get_request_id(),
        },
    )
    return JSONResponse(
        status_code=400,
        content=_error_body(exc.code, exc.message, exc.details),
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Fallback handler for unexpected errors.

    Logs the failure and returns a generic message; no stack traces or error
    text reach the client.
    """
    logger.error(
        "unhandled_exception",
        extra={
            "error_type": type(exc).__name__,
            "error_msg": str(exc),
            "request_path": request.url.path,
            "request_method": request.method,
            "request_id": get_request_id(),
        },
    )
    return JSONResponse(
        status_code=500,
        content=_error_body(
            "internal_server_error",
            "An unexpected error occurred. Please try again later.",
        ),
    )


def setup_exception_handlers(app) -> None:
    """Register all exception handlers with the FastAPI app.

    Starlette picks the handler of the most specific class in the exception's
    MRO, so registration order does not matter.
    """
    app.exception_handler(RateLimitExceededError)(rate_limit_exceeded_handler)
    app.exception_handler(StoreError)(store_error_handler)
    app.exception_handler(AppError)(app_error_handler)
    app.exception_handler(Exception)(general_exception_handler)
