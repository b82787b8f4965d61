"""Request tracing middleware for correlation IDs and logging."""

import time
import uuid
from collections.abc import Callable
from typing import Any

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

logger = structlog.get_logger()


class RequestTracingMiddleware(BaseHTTPMiddleware):
    """Bind a correlation ID to every log line emitted while serving a request.

    The ID comes from the ``X-Correlation-ID`` header when the dashboard sends
    one, so a "mark as paid" click can be followed through the payment,
    reconciliation and audit events it produces.
    """

    async def dispatch(self, request: Request, call_next: Callable[..., Any]) -> Response:
        """Process request with tracing."""
        correlation_id = request.headers.get("X-Correlation-ID") or str(uuid.uuid4())
        start_time = time.perf_counter()

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            correlation_id=correlation_id,
            method=request.method,
            path=request.url.path,
        )

        try:
            response: Response = await call_next(request)
        except Exception as e:
            logger.exception(
                "request_failed",
                error_type=type(e).__name__,
                duration_ms=round((time.perf_counter() - start_time) * 1000, 2),
            )
            raise

        logger.info(
            "request_completed",
            status_code=response.status_code,
            duration_ms=round((time.perf_counter() - start_time) * 1000, 2),
        )
        response.headers["X-Correlation-ID"] = correlation_id
        return response
