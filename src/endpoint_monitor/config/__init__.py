"""Configuration: runtime settings and the endpoint document."""

from endpoint_monitor.config.endpoints import ConfigStore, Endpoint, MonitorConfig
from endpoint_monitor.config.settings import MonitorSettings

__all__ = [
    "ConfigStore",
    "Endpoint",
    "MonitorConfig",
    "MonitorSettings",
]
