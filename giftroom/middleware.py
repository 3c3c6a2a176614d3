"""Request id propagation and request lifecycle logging."""

import time
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from giftroom.logging import clear_request_id, get_logger, set_request_id

logger = get_logger(__name__)


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Binds X-Request-ID (or a fresh id) to every log record of the request."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = set_request_id(request.headers.get("X-Request-ID"))
        start_time = time.perf_counter()

        try:
            response = await call_next(request)
            if request.url.path != "/health":
                duration_ms = (time.perf_counter() - start_time) * 1000
                level = "warning" if response.status_code >= 400 else "info"
                getattr(logger, level)(
                    "%s %s -> %d (%.1f ms)",
                    request.method, request.url.path, response.status_code, duration_ms,
                )
            response.headers["X-Request-ID"] = request_id
            return response
        finally:
            clear_request_id()
