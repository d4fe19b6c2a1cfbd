"""Request ID and access logging middleware."""

import logging
import time
import uuid
from collections.abc import Callable
from typing import Any

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from endpoint_monitor.logging_config import request_id_var

logger = logging.getLogger(__name__)


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Add request ID to each request for log correlation.

    This middleware:
    - Reads X-Request-ID from incoming request headers if present
    - Generates a new request ID if not present
    - Stores the request ID in a context variable for logging
    - Adds X-Request-ID to response headers for client correlation
    """

    async def dispatch(self, request: Request, call_next: Callable[[Request], Any]) -> Response:
        request_id = request.headers.get("X-Request-ID", str(uuid.uuid4())[:8])
        request_id_var.set(request_id)

        response: Response = await call_next(request)
        response.headers["X-Request-ID"] = request_id

        return response


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log every request on arrival and on completion with its duration."""

    async def dispatch(self, request: Request, call_next: Callable[[Request], Any]) -> Response:
        start_time = time.monotonic()
        user_agent = request.headers.get("user-agent", "")[:50]
        client = request.client.host if request.client else None

        logger.info(
            "%s %s",
            request.method,
            request.url.path,
            extra={"extra_fields": {"ip": client, "user_agent": user_agent}},
        )

        response: Response = await call_next(request)

        duration_ms = int((time.monotonic() - start_time) * 1000)
        logger.info(
            "%s %s - %d",
            request.method,
            request.url.path,
            response.status_code,
            extra={"extra_fields": {"duration_ms": duration_ms}},
        )
        return response
