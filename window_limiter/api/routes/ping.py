"""Sample rate limited endpoints.

``/v1/ping`` uses the configured default limits in the default bucket.
``/v1/search`` has its own ``search`` bucket with a short and a long window,
so it emits numbered headers (``Rate-Limit-search-1-Limit`` ...).
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from window_limiter.core.rate_limit import rate_limit

router = APIRouter(tags=["Sample"])


@router.get("/ping", dependencies=[Depends(rate_limit())])
def ping() -> dict:
    return {"pong": True}


@router.get("/search", dependencies=[Depends(rate_limit("search", 5, 10, 20, 60))])
def search(q: str = "") -> dict:
    """Echo the query; stands in for an expensive endpoint."""

    return {"query": q, "results": []}
