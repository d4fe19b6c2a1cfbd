"""Endpoint Monitor - scheduled reachability checks for API endpoints.

This package provides:
- Per-endpoint probe scheduling with an in-flight guard (monitor/)
- Endpoint configuration document and runtime settings (config/)
- FastAPI routes serving the cached results (api/)
"""

from endpoint_monitor.main import create_app

__version__ = "0.1.0"
__all__ = [
    "create_app",
]
