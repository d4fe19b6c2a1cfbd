"""HTTP middleware for request correlation and access logging."""

from endpoint_monitor.middleware.request_id import RequestIDMiddleware, RequestLoggingMiddleware

__all__ = [
    "RequestIDMiddleware",
    "RequestLoggingMiddleware",
]
