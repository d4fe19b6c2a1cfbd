"""
In-memory cache of the latest probe result per endpoint.

Written by every probe that completes and read by the HTTP layer, possibly
from different threads, so every access goes through one lock. Entries are
never evicted; results for endpoints that left the configuration stay here
but are filtered out by the scheduler's read path.
"""

from __future__ import annotations

import threading

from endpoint_monitor.monitor.models import TestResult


class ResultCache:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._results: dict[str, TestResult] = {}

    def get(self, name: str) -> TestResult | None:
        with self._lock:
            return self._results.get(name)

    def set(self, result: TestResult) -> None:
        with self._lock:
            self._results[result.name] = result

    def values(self) -> list[TestResult]:
        with self._lock:
            return list(self._results.values())

    def names(self) -> set[str]:
        with self._lock:
            return set(self._results)

    def clear(self) -> None:
        with self._lock:
            self._results.clear()

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._results

    def __len__(self) -> int:
        with self._lock:
            return len(self._results)
