"""Application factory for the FastAPI app.

Centralizes app construction (middleware, handlers, routers) so tests can
build fresh instances.
"""

from __future__ import annotations

from fastapi import FastAPI

from window_limiter.api.routes import health_router, ping_router
from window_limiter.core.config import settings
from window_limiter.core.exception_handlers import setup_exception_handlers
from window_limiter.core.logging import configure_logging
from window_limiter.core.middleware import request_id_middleware


def create_app() -> FastAPI:
    """Create and configure the FastAPI application instance.

    Returns:
        Configured FastAPI app with middleware, handlers and routers.
    """
    # Logging first so subsequent init logs are formatted as desired
    configure_logging(settings.log)

    app = FastAPI(
        title="Window Limiter",
        description=(
            "Sliding-window request admission control. Rejected requests get "
            "HTTP 429 with a Retry-After header and a plain-text explanation."
        ),
        version="0.1.0",
    )

    app.middleware("http")(request_id_middleware)
    setup_exception_handlers(app)

    app.include_router(ping_router, prefix="/v1")
    app.include_router(health_router)

    return app
