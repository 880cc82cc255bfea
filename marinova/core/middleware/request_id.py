"""Request correlation: one id per request, echoed back and logged on completion."""

import logging
import time
from bisect import bisect_right
from uuid import uuid4

from starlette.middleware.base import BaseHTTPMiddleware

from marinova.core.logging import LOGGER_NAME, request_id_var

REQUEST_ID_HEADER = "x-request-id"

_BUCKET_EDGES_MS = (10, 100, 500, 1000)
_BUCKET_LABELS = ("<10ms", "10-100ms", "100-500ms", "500-1000ms", ">=1000ms")


def latency_bucket(duration_ms: float) -> str:
    return _BUCKET_LABELS[bisect_right(_BUCKET_EDGES_MS, duration_ms)]


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Reuse the caller's x-request-id or mint one, and bind it for logging."""

    def __init__(self, app, header_name: str = REQUEST_ID_HEADER):
        super().__init__(app)
        self.header_name = header_name

    async def dispatch(self, request, call_next):
        rid = request.headers.get(self.header_name) or str(uuid4())
        request.state.request_id = rid
        token = request_id_var.set(rid)
        started = time.perf_counter()
        try:
            response = await call_next(request)
        finally:
            request_id_var.reset(token)

        response.headers[self.header_name] = rid
        logging.getLogger(LOGGER_NAME).info(
            "request.complete",
            extra={
                "request_id": rid,
                "method": request.method,
                "path": request.url.path,
                "status": response.status_code,
                "latency_bucket": latency_bucket((time.perf_counter() - started) * 1000),
            },
        )
        return response
