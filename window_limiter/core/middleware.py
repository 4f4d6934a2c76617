"""HTTP middleware binding a correlation id to each request.

Rate limit decisions are logged from inside route dependencies; the id set
here is what ties a ``rate_limit.exceeded`` log line to the request that
triggered it.

Usage:
    app.middleware("http")(request_id_middleware)
"""

from __future__ import annotations

import time
import uuid

from fastapi import Request, Response

from window_limiter.core.config import settings
from window_limiter.core.logging import clear_request_id, set_request_id


async def request_id_middleware(request: Request, call_next) -> Response:
    """Accept or generate a request id and echo it on the response.

    The incoming header named by ``LOG_REQUEST_ID_HEADER`` is reused when
    present, otherwise a UUID4 is generated. The response also carries the
    handling time in ``X-Request-Duration-ms``.
    """

    header_name = settings.log.request_id_header
    request_id = request.headers.get(header_name) or str(uuid.uuid4())
    set_request_id(request_id)
    start = time.perf_counter()
    try:
        response: Response = await call_next(request)
    finally:
        clear_request_id()

    response.headers[header_name] = request_id
    response.headers.setdefault(
        "X-Request-Duration-ms", f"{(time.perf_counter() - start) * 1000:.2f}"
    )
    return response
