"""
Health classification of raw probe output.

Rules, first match wins:

1. An HTTP client/server error code (400-599) appears as a token: offline,
   the raw output is kept as the error detail.
2. The success marker appears: online.
3. Otherwise: error, with a fixed detail.

An error code outranks the success marker, so verbose output that echoes the
marker next to a 503 is still reported offline. Stderr is part of the output,
which means stray digit triplets there also count.
"""

import re
from dataclasses import dataclass

from endpoint_monitor.config.settings import DEFAULT_SUCCESS_MARKER
from endpoint_monitor.monitor.models import EndpointStatus

HTTP_ERROR_PATTERN = re.compile(r"(?<!\d)[45]\d{2}(?!\d)")
NO_MARKER_ERROR = "No success marker detected"


@dataclass(frozen=True)
class Classification:
    """Outcome of classifying one probe output."""

    status: EndpointStatus
    error: str | None = None


def has_http_error(output: str) -> bool:
    return HTTP_ERROR_PATTERN.search(output) is not None


def classify(output: str, success_marker: str = DEFAULT_SUCCESS_MARKER) -> Classification:
    """Map raw probe output to online, offline or error."""
    if has_http_error(output):
        return Classification(EndpointStatus.OFFLINE, output)
    if success_marker and success_marker in output:
        return Classification(EndpointStatus.ONLINE, None)
    return Classification(EndpointStatus.ERROR, NO_MARKER_ERROR)
