"""Request ID + access log middleware.

Learn: Every request gets an id, either from the incoming X-Request-ID
header (for distributed tracing) or auto-generated. The id is bound to
structlog's contextvars so every log line written while handling the
request carries it, including the access line emitted here on the way
out. The Authorization header is never logged.
"""

import time
import uuid

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

logger = structlog.get_logger()


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Generate/propagate a request id and log one line per request."""

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)

        started = time.perf_counter()
        response: Response = await call_next(request)
        logger.info(
            "http.request",
            method=request.method,
            path=request.url.path,
            status=response.status_code,
            duration_ms=round((time.perf_counter() - started) * 1000, 1),
        )

        response.headers["X-Request-ID"] = request_id
        return response
