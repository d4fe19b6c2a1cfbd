"""
Pydantic schemas for API request/response models.

This module defines the data models for:
- StatusResponse: Cached results served to the dashboard
- ConfigResponse: Sanitized endpoint list (never the API keys)
- AddEndpointRequest/AddEndpointResponse: Endpoint registration
- ErrorResponse: Failure envelope
"""

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from endpoint_monitor.monitor.models import TestResult

# -----------------------------------------------------------------------------
# Status
# -----------------------------------------------------------------------------


class StatusResponse(BaseModel):
    """Latest result for every configured endpoint."""

    success: bool = True
    data: list[TestResult] = Field(default_factory=list)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))


# -----------------------------------------------------------------------------
# Configuration
# -----------------------------------------------------------------------------


class EndpointSummary(BaseModel):
    """Public view of one endpoint."""

    model_config = ConfigDict(populate_by_name=True)

    name: str
    api_base: str = Field(alias="apiBase")


class SanitizedConfig(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    endpoints: list[EndpointSummary] = Field(default_factory=list)
    default_test_interval: int | None = Field(default=None, alias="defaultTestInterval")
    timeout: int | None = None


class ConfigResponse(BaseModel):
    success: bool = True
    data: SanitizedConfig


# -----------------------------------------------------------------------------
# Registration
# -----------------------------------------------------------------------------


class AddEndpointRequest(BaseModel):
    """Endpoint registration body.

    Every field is optional at the schema level so that missing fields are
    reported with the service's own error message instead of a 422.
    """

    model_config = ConfigDict(populate_by_name=True)

    name: str | None = None
    api_base: str | None = Field(default=None, alias="apiBase")
    api_key: str | None = Field(default=None, alias="apiKey")
    test_interval: int | str | None = Field(default=None, alias="testInterval")
    invite_link: str | None = Field(default=None, alias="inviteLink")

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


class RegisteredEndpoint(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str
    api_base: str = Field(alias="apiBase")
    test_interval: int | None = Field(default=None, alias="testInterval")
    invite_link: str = Field(default="", alias="inviteLink")


class AddEndpointResponse(BaseModel):
    success: bool = True
    message: str = "Endpoint added"
    data: RegisteredEndpoint


# -----------------------------------------------------------------------------
# Error
# -----------------------------------------------------------------------------


class ErrorResponse(BaseModel):
    """Error envelope returned with 4xx/5xx responses."""

    success: bool = False
    error: str
