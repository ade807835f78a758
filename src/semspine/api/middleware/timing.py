"""Timing middleware: ``X-Process-Time-Ms`` header and slow-request logging."""

from __future__ import annotations

import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from semspine.core.logging import get_logger

logger = get_logger(__name__)


class TimingMiddleware(BaseHTTPMiddleware):
    """Expose processing time; log requests slower than ``slow_ms``.

    Job ticks run a cascade chunk (and possibly an LLM call) inside the
    request, so slow requests are expected there and logged at info.
    """

    def __init__(self, app, slow_ms: float = 2000.0) -> None:
        super().__init__(app)
        self.slow_ms = slow_ms

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        start = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = round((time.perf_counter() - start) * 1000, 2)
        response.headers["X-Process-Time-Ms"] = str(elapsed_ms)
        if elapsed_ms >= self.slow_ms:
            logger.info(
                "slow_request",
                method=request.method,
                path=request.url.path,
                status=response.status_code,
                elapsed_ms=elapsed_ms,
            )
        return response
