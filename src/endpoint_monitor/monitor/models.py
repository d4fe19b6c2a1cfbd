"""Result models shared by the scheduler, the cache and the HTTP layer."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field

if TYPE_CHECKING:
    from endpoint_monitor.config.endpoints import Endpoint


class EndpointStatus(str, Enum):
    """Health status of a monitored endpoint."""

    UNKNOWN = "unknown"
    TESTING = "testing"
    ONLINE = "online"
    OFFLINE = "offline"
    ERROR = "error"


class TestResult(BaseModel):
    """Latest probe result for one endpoint, serialized in camelCase."""

    __test__ = False

    model_config = ConfigDict(populate_by_name=True)

    name: str
    api_base: str = Field(alias="apiBase")
    invite_link: str = Field(default="", alias="inviteLink")
    status: EndpointStatus = EndpointStatus.UNKNOWN
    response_time: int | None = Field(default=None, alias="responseTime")
    error: str | None = None
    last_checked: datetime | None = Field(default=None, alias="lastChecked")

    @classmethod
    def placeholder(
        cls,
        endpoint: Endpoint,
        status: EndpointStatus = EndpointStatus.UNKNOWN,
        error: str | None = None,
        last_checked: datetime | None = None,
    ) -> TestResult:
        """Result for an endpoint that has no completed probe to report."""
        return cls(
            name=endpoint.name,
            api_base=endpoint.api_base,
            invite_link=endpoint.invite_link,
            status=status,
            error=error,
            last_checked=last_checked,
        )
