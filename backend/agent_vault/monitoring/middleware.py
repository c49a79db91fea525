"""
Prometheus request metrics for FastAPI.

Requests are labelled by route template (`/api/v1/agents/{agent_id}`)
rather than raw path so agent ids do not inflate label cardinality.
"""

import re
import time
from typing import Callable, Optional

from fastapi import FastAPI, Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from .metrics import get_metrics_collector

DEFAULT_EXCLUDED = frozenset({"/health", "/metrics"})

_NUMERIC_SEGMENT = re.compile(r"/\d+(?=/|$)")


def normalize_path(path: str) -> str:
    """
    Replace numeric path segments with a placeholder.

    /api/v1/agents/41/withdraw -> /api/v1/agents/{id}/withdraw
    """
    return _NUMERIC_SEGMENT.sub("/{id}", path)


def route_template(request: Request) -> str:
    """
    Path template of the route that handled the request.

    The router records the matched route in the scope while dispatching,
    so this is only meaningful once the request has been handled.
    Unrouted requests fall back to the normalized raw path.
    """
    route = request.scope.get("route")
    template = getattr(route, "path", None)
    return template or normalize_path(request.url.path)


class PrometheusMiddleware(BaseHTTPMiddleware):
    """Counts requests and observes latency per method, route and status"""

    def __init__(self, app: ASGIApp, exclude_paths: Optional[frozenset[str]] = None):
        super().__init__(app)
        self.exclude_paths = exclude_paths or DEFAULT_EXCLUDED
        self.collector = get_metrics_collector()

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.url.path in self.exclude_paths:
            return await call_next(request)

        started = time.perf_counter()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            self.collector.track_request(
                method=request.method,
                endpoint=route_template(request),
                status=status_code,
                duration=time.perf_counter() - started,
            )


def setup_prometheus_middleware(app: FastAPI, exclude_paths: Optional[frozenset[str]] = None) -> None:
    app.add_middleware(PrometheusMiddleware, exclude_paths=exclude_paths)
