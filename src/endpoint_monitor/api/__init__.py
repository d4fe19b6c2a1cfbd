"""Endpoint monitor API package.

Provides the FastAPI routes the dashboard polls.
"""

from endpoint_monitor.api.routes import create_router
from endpoint_monitor.api.schemas import (
    AddEndpointRequest,
    AddEndpointResponse,
    ConfigResponse,
    ErrorResponse,
    StatusResponse,
)

__all__ = [
    "create_router",
    "AddEndpointRequest",
    "AddEndpointResponse",
    "ConfigResponse",
    "ErrorResponse",
    "StatusResponse",
]
