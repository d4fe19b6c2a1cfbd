"""
FastAPI route endpoints for the endpoint monitor.

This module defines the API routes:
- GET /api/status: Cached results for the configured endpoints
- POST /api/test: Probe every endpoint now and wait for the results
- GET /api/config: Endpoint names and base URLs (no API keys)
- POST /api/endpoint: Register a new endpoint

Routes only read the cache; the manual trigger and registration are the only
paths that start probes.
"""

import logging

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse
from slowapi import Limiter

from endpoint_monitor.api.schemas import (
    AddEndpointRequest,
    AddEndpointResponse,
    ConfigResponse,
    ErrorResponse,
    RegisteredEndpoint,
    SanitizedConfig,
    StatusResponse,
)
from endpoint_monitor.config.endpoints import ConfigStore
from endpoint_monitor.exceptions import ConfigPersistError, EndpointRegistrationError
from endpoint_monitor.monitor.scheduler import EndpointScheduler

logger = logging.getLogger(__name__)

TEST_RATE_LIMIT = "6/minute"


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=message).model_dump(),
    )


def create_router(
    scheduler: EndpointScheduler,
    store: ConfigStore,
    limiter: Limiter,
) -> APIRouter:
    """Create the API router bound to one scheduler and config store.

    Args:
        scheduler: Scheduler whose cache backs the status route
        store: Endpoint configuration document
        limiter: Rate limiter for the manual trigger

    Returns:
        APIRouter to mount under /api
    """
    router = APIRouter(tags=["monitor"])

    @router.get("/status", response_model=StatusResponse)
    async def get_status() -> StatusResponse:
        """Latest cached result for every configured endpoint."""
        return StatusResponse(data=scheduler.get_results())

    @router.post(
        "/test",
        response_model=StatusResponse,
        responses={500: {"model": ErrorResponse}},
    )
    @limiter.limit(TEST_RATE_LIMIT)
    async def trigger_test(request: Request) -> StatusResponse | JSONResponse:
        """Probe every endpoint concurrently and return the fresh results."""
        logger.info("Manual test requested")
        try:
            results = await scheduler.test_all_endpoints()
        except Exception as e:
            logger.error(f"Manual test failed: {e}", exc_info=True)
            return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, str(e))
        return StatusResponse(data=results)

    @router.get("/config", response_model=ConfigResponse)
    async def get_config() -> ConfigResponse:
        """Endpoint list without API keys."""
        return ConfigResponse(data=SanitizedConfig.model_validate(store.sanitized()))

    @router.post(
        "/endpoint",
        response_model=AddEndpointResponse,
        responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
    )
    async def add_endpoint(body: AddEndpointRequest) -> AddEndpointResponse | JSONResponse:
        """Register a new endpoint, persist it and probe everything once."""
        logger.info(
            "Endpoint registration requested",
            extra={"extra_fields": {"name": body.name, "api_base": body.api_base}},
        )
        try:
            endpoint = store.add_endpoint(body.to_payload())
        except EndpointRegistrationError as e:
            logger.warning(
                "Endpoint registration rejected",
                extra={"extra_fields": {"name": body.name, "error": e.message}},
            )
            return _error(status.HTTP_400_BAD_REQUEST, e.message)
        except ConfigPersistError as e:
            logger.error("Endpoint registration failed", extra={"extra_fields": {"error": e.message}})
            return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, e.message)

        store.load_config()
        scheduler.spawn(scheduler.test_all_endpoints(), name="registration-test")

        return AddEndpointResponse(
            message="Endpoint added",
            data=RegisteredEndpoint(
                name=endpoint.name,
                api_base=endpoint.api_base,
                test_interval=endpoint.test_interval,
                invite_link=endpoint.invite_link,
            ),
        )

    return router
