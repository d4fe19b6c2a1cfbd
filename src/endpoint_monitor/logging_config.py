"""Structured logging configuration for the endpoint monitor.

Every module logs through ``logging.getLogger(__name__)`` and passes structured
data as ``extra={"extra_fields": {...}}``. The JSON formatter merges those
fields into the log object; the text formatter appends them as ``key=value``.

The probe runner logs every subprocess start and exit at DEBUG. With many
endpoints that drowns the scheduler's own output, so its logger is held at
INFO unless ``MONITOR_PROBE_DEBUG`` is set.
"""

import json
import logging
import os
import sys
import uuid
from contextvars import ContextVar
from datetime import UTC, datetime
from typing import Any

# Context variable for request correlation ID
request_id_var: ContextVar[str] = ContextVar("request_id", default="")

TEXT_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
PROBE_LOGGER = "endpoint_monitor.monitor.probe"

# Minimum level per logger, applied on top of the root level
QUIET_LOGGERS: dict[str, int] = {
    "uvicorn.access": logging.WARNING,
    PROBE_LOGGER: logging.INFO,
}


def _extra_fields(record: logging.LogRecord) -> dict[str, Any]:
    extra_fields = getattr(record, "extra_fields", None)
    return extra_fields if isinstance(extra_fields, dict) else {}


class JSONFormatter(logging.Formatter):
    """One JSON object per record; non-ASCII probe output is kept readable."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        request_id = request_id_var.get()
        if request_id:
            log_data["request_id"] = request_id

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        log_data.update(_extra_fields(record))
        return json.dumps(log_data, ensure_ascii=False, default=str)


class TextFormatter(logging.Formatter):
    """Plain text formatter that appends structured fields as key=value pairs."""

    def __init__(self, fmt: str = TEXT_FORMAT) -> None:
        super().__init__(fmt)

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        fields = dict(_extra_fields(record))
        request_id = request_id_var.get()
        if request_id:
            fields.setdefault("request_id", request_id)
        if fields:
            pairs = " ".join(f"{key}={value}" for key, value in fields.items())
            line = f"{line} | {pairs}"
        return line


def _resolve_level(name: str) -> int:
    level = logging.getLevelName(name.strip().upper())
    return level if isinstance(level, int) else logging.INFO


def configure_logging(
    level: str | None = None,
    log_format: str | None = None,
    probe_debug: bool | None = None,
) -> None:
    """Install one stdout handler on the root logger.

    Environment variables (used when the argument is None):
        LOG_LEVEL: Logging level (default: INFO)
        LOG_FORMAT: 'json' or 'text' (default: json)
        MONITOR_PROBE_DEBUG: Keep the probe runner's DEBUG output (default: off)
    """
    log_level = _resolve_level(level or os.getenv("LOG_LEVEL", "INFO"))
    log_format = (log_format or os.getenv("LOG_FORMAT", "json")).lower()
    if probe_debug is None:
        probe_debug = os.getenv("MONITOR_PROBE_DEBUG", "").strip().lower() in ("1", "true", "yes", "on")

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(log_level)
    handler.setFormatter(JSONFormatter() if log_format == "json" else TextFormatter())
    root_logger.addHandler(handler)

    for name, minimum in QUIET_LOGGERS.items():
        if name == PROBE_LOGGER and probe_debug:
            logging.getLogger(name).setLevel(logging.NOTSET)
            continue
        logging.getLogger(name).setLevel(max(minimum, log_level))


def get_request_id() -> str:
    """Current request ID, generating one for code running outside a request."""
    request_id = request_id_var.get()
    if not request_id:
        request_id = str(uuid.uuid4())[:8]
        request_id_var.set(request_id)
    return request_id
