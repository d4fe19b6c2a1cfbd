"""Endpoint monitoring core.

This module contains:
- Probe runner (external command with timeout escalation)
- Result classifier
- Result cache
- Per-endpoint scheduler
- Configuration synchronizer
"""

from endpoint_monitor.monitor.cache import ResultCache
from endpoint_monitor.monitor.classifier import Classification, classify
from endpoint_monitor.monitor.models import EndpointStatus, TestResult
from endpoint_monitor.monitor.probe import (
    ProbeFailure,
    ProbeFailureKind,
    ProbeOutcome,
    ProbeRunner,
)
from endpoint_monitor.monitor.scheduler import EndpointScheduler, ScheduleEntry
from endpoint_monitor.monitor.sync import ConfigSynchronizer

__all__ = [
    "Classification",
    "ConfigSynchronizer",
    "EndpointScheduler",
    "EndpointStatus",
    "ProbeFailure",
    "ProbeFailureKind",
    "ProbeOutcome",
    "ProbeRunner",
    "ResultCache",
    "ScheduleEntry",
    "TestResult",
    "classify",
]
