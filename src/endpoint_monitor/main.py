"""Endpoint Monitor - FastAPI application."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from endpoint_monitor.api.routes import create_router
from endpoint_monitor.api.schemas import ErrorResponse
from endpoint_monitor.config.endpoints import ConfigStore
from endpoint_monitor.config.settings import MonitorSettings
from endpoint_monitor.middleware import RequestIDMiddleware, RequestLoggingMiddleware
from endpoint_monitor.monitor.probe import ProbeRunner
from endpoint_monitor.monitor.scheduler import EndpointScheduler

logger = logging.getLogger(__name__)


def build_scheduler(settings: MonitorSettings) -> EndpointScheduler:
    """Wire the config store, probe runner and scheduler from settings."""
    store = ConfigStore(settings.config_path)
    return EndpointScheduler(
        store=store,
        runner=ProbeRunner.from_settings(settings),
        success_marker=settings.success_marker,
        sync_interval_seconds=settings.sync_interval,
    )


def _log_startup_banner(scheduler: EndpointScheduler) -> None:
    store = scheduler.store
    endpoints = store.endpoints
    logger.info(
        "Monitoring %d endpoints with independent test intervals",
        len(endpoints),
        extra={"extra_fields": {"config_path": str(store.path)}},
    )
    for endpoint in endpoints:
        logger.info(
            "  - %s: every %d minute(s)",
            endpoint.name,
            store.interval_for(endpoint),
        )


def _validation_message(exc: RequestValidationError) -> str:
    """First validation problem as "Invalid request: field: reason"."""
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    reason = first.get("msg", "invalid value")
    return f"Invalid request: {location}: {reason}" if location else f"Invalid request: {reason}"


def create_app(
    settings: MonitorSettings | None = None,
    scheduler: EndpointScheduler | None = None,
) -> FastAPI:
    """Create the FastAPI application.

    Args:
        settings: Runtime settings (read from the environment by default)
        scheduler: Pre-built scheduler (built from settings by default)

    Returns:
        Configured FastAPI app; the scheduler starts and stops with its lifespan
    """
    settings = settings or MonitorSettings()
    scheduler = scheduler or build_scheduler(settings)
    store = scheduler.store

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if settings.autostart:
            await scheduler.start()
            _log_startup_banner(scheduler)
        else:
            store.load_config()
        try:
            yield
        finally:
            await scheduler.stop()

    app = FastAPI(
        title="Endpoint Monitor",
        description="Scheduled reachability checks for API endpoints",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.scheduler = scheduler

    # Rate limiting is disabled in test mode
    limiter = Limiter(key_func=get_remote_address, enabled=not settings.testing)
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)  # type: ignore[arg-type]

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials="*" not in settings.cors_origins,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestLoggingMiddleware)
    # Added last so it runs first and the request id is set for the access log
    app.add_middleware(RequestIDMiddleware)

    @app.exception_handler(RequestValidationError)
    async def invalid_request(request: Request, exc: RequestValidationError) -> JSONResponse:
        message = _validation_message(exc)
        logger.warning(
            "Rejected invalid request",
            extra={"extra_fields": {"path": request.url.path, "error": message}},
        )
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=ErrorResponse(error=message).model_dump(),
        )

    @app.exception_handler(Exception)
    async def unhandled_exception(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            "Unhandled server error",
            exc_info=exc,
            extra={"extra_fields": {"path": request.url.path}},
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=ErrorResponse(error="Internal server error").model_dump(),
        )

    app.include_router(create_router(scheduler, store, limiter), prefix="/api")

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        """Liveness probe, independent of the monitor."""
        return {"status": "ok"}

    return app
