"""Per-endpoint scheduler.

Owns one recurring timer per configured endpoint and makes sure at most one
probe per endpoint is in flight. Every completed probe is classified and
written to the result cache; probe failures end up in the result, never as
exceptions out of the scheduler.

Timers are asyncio tasks. Each firing spawns the test as its own task, so a
slow probe never delays its own timer; the in-flight guard turns overlapping
firings into cache reads.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from collections.abc import Coroutine
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from endpoint_monitor.config.endpoints import ConfigStore, Endpoint
from endpoint_monitor.config.settings import DEFAULT_SUCCESS_MARKER
from endpoint_monitor.monitor.cache import ResultCache
from endpoint_monitor.monitor.classifier import classify
from endpoint_monitor.monitor.models import EndpointStatus, TestResult
from endpoint_monitor.monitor.probe import ProbeRunner
from endpoint_monitor.monitor.sync import ConfigSynchronizer

logger = logging.getLogger(__name__)

TESTING_MESSAGE = "Test in progress"
PREVIEW_LENGTH = 200


@dataclass
class ScheduleEntry:
    """Timer state for one endpoint."""

    endpoint: Endpoint
    interval_minutes: int
    task: asyncio.Task[None]


class EndpointScheduler:
    """Schedules, runs and caches endpoint probes.

    Example usage:
        ```python
        store = ConfigStore("config.json")
        scheduler = EndpointScheduler(store, ProbeRunner())
        await scheduler.start()
        ...
        results = scheduler.get_results()
        await scheduler.stop()
        ```
    """

    def __init__(
        self,
        store: ConfigStore,
        runner: ProbeRunner,
        cache: ResultCache | None = None,
        success_marker: str = DEFAULT_SUCCESS_MARKER,
        sync_interval_seconds: float = 300.0,
        interval_unit_seconds: float = 60.0,
    ) -> None:
        """Initialize the scheduler.

        Args:
            store: Source of the endpoint configuration
            runner: Executes one probe
            cache: Result cache (a fresh one by default)
            success_marker: Text that marks a healthy probe reply
            sync_interval_seconds: Seconds between configuration syncs
            interval_unit_seconds: Length of one interval unit (a minute)
        """
        self.store = store
        self.runner = runner
        self.cache = cache if cache is not None else ResultCache()
        self.success_marker = success_marker
        self.interval_unit_seconds = interval_unit_seconds

        self._entries: dict[str, ScheduleEntry] = {}
        self._in_flight: set[str] = set()
        self._in_flight_lock = threading.Lock()
        self._background: set[asyncio.Task[Any]] = set()
        self._synchronizer = ConfigSynchronizer(self, store, interval_seconds=sync_interval_seconds)
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    @property
    def synchronizer(self) -> ConfigSynchronizer:
        return self._synchronizer

    # ------------------------------------------------------------------
    # In-flight guard
    # ------------------------------------------------------------------

    def _try_acquire(self, name: str) -> bool:
        with self._in_flight_lock:
            if name in self._in_flight:
                return False
            self._in_flight.add(name)
            return True

    def _release(self, name: str) -> None:
        with self._in_flight_lock:
            self._in_flight.discard(name)

    def is_testing(self, name: str) -> bool:
        with self._in_flight_lock:
            return name in self._in_flight

    # ------------------------------------------------------------------
    # Probing
    # ------------------------------------------------------------------

    async def test_endpoint(self, endpoint: Endpoint) -> TestResult:
        """Probe one endpoint unless a probe for it is already running.

        Returns:
            The fresh result, or when a probe is already in flight the cached
            result (a ``testing`` placeholder if nothing is cached yet).
        """
        if not self._try_acquire(endpoint.name):
            logger.warning(
                "Endpoint %s is already being tested, skipping",
                endpoint.name,
                extra={"extra_fields": {"endpoint": endpoint.name}},
            )
            cached = self.cache.get(endpoint.name)
            if cached is not None:
                return cached
            return TestResult.placeholder(
                endpoint,
                status=EndpointStatus.TESTING,
                error=TESTING_MESSAGE,
                last_checked=datetime.now(UTC),
            )

        logger.info(
            "Testing endpoint %s",
            endpoint.name,
            extra={
                "extra_fields": {
                    "endpoint": endpoint.name,
                    "api_base": endpoint.api_base,
                    "test_interval_minutes": self.store.interval_for(endpoint),
                }
            },
        )

        start_time = time.monotonic()
        status: EndpointStatus
        error: str | None
        try:
            outcome = await self.runner.run(endpoint.api_key, endpoint.api_base)
            if outcome.failure is not None:
                status, error = EndpointStatus.OFFLINE, outcome.failure.message
            else:
                classification = classify(outcome.output or "", self.success_marker)
                status, error = classification.status, classification.error
        except Exception as e:
            logger.exception("Probe for endpoint %s raised unexpectedly", endpoint.name)
            status, error = EndpointStatus.OFFLINE, f"Unexpected error: {e}"
        finally:
            self._release(endpoint.name)

        response_time = int((time.monotonic() - start_time) * 1000)
        result = TestResult(
            name=endpoint.name,
            api_base=endpoint.api_base,
            invite_link=endpoint.invite_link,
            status=status,
            response_time=response_time,
            error=error,
            last_checked=datetime.now(UTC),
        )
        self.cache.set(result)
        self._log_result(result)
        return result

    def _log_result(self, result: TestResult) -> None:
        fields: dict[str, Any] = {"endpoint": result.name, "response_time_ms": result.response_time}
        if result.status == EndpointStatus.ONLINE:
            logger.info("Endpoint %s is online", result.name, extra={"extra_fields": fields})
        elif result.status == EndpointStatus.OFFLINE:
            fields["error_preview"] = (result.error or "")[:PREVIEW_LENGTH]
            logger.error("Endpoint %s is offline", result.name, extra={"extra_fields": fields})
        else:
            fields["error_preview"] = (result.error or "")[:PREVIEW_LENGTH]
            logger.warning(
                "Endpoint %s responded without a success marker",
                result.name,
                extra={"extra_fields": fields},
            )

    async def test_all_endpoints(self) -> list[TestResult]:
        """Reload configuration and probe every endpoint concurrently.

        Returns:
            One result per endpoint configured when the fan-out started, or an
            empty list if no configuration has ever loaded.
        """
        if not self.store.load_config():
            logger.error("Configuration reload failed, using the previous configuration")
            if not self.store.loaded:
                return []

        endpoints = self.store.endpoints
        logger.info(
            "Testing %d endpoints concurrently",
            len(endpoints),
            extra={"extra_fields": {"endpoints": len(endpoints)}},
        )
        batch_start = time.monotonic()

        results = list(await asyncio.gather(*(self.test_endpoint(ep) for ep in endpoints)))

        counts = {status: 0 for status in EndpointStatus}
        for result in results:
            counts[result.status] += 1
        logger.info(
            "Batch test finished",
            extra={
                "extra_fields": {
                    "total_time_ms": int((time.monotonic() - batch_start) * 1000),
                    "total_endpoints": len(results),
                    "online": counts[EndpointStatus.ONLINE],
                    "offline": counts[EndpointStatus.OFFLINE],
                    "error": counts[EndpointStatus.ERROR],
                    "testing": counts[EndpointStatus.TESTING],
                }
            },
        )
        return results

    def get_results(self) -> list[TestResult]:
        """Latest result for every currently configured endpoint.

        Endpoints without a completed probe get an ``unknown`` placeholder.
        Cached results of endpoints no longer configured are not returned.
        """
        if not self.store.loaded:
            return self.cache.values()

        results: list[TestResult] = []
        for endpoint in self.store.endpoints:
            cached = self.cache.get(endpoint.name)
            results.append(cached if cached is not None else TestResult.placeholder(endpoint))
        return results

    # ------------------------------------------------------------------
    # Timers
    # ------------------------------------------------------------------

    def spawn(self, coro: Coroutine[Any, Any, Any], name: str | None = None) -> asyncio.Task[Any]:
        """Run a coroutine in the background, holding a reference until it ends."""
        task = asyncio.create_task(coro, name=name)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    def start_endpoint_timer(self, endpoint: Endpoint) -> ScheduleEntry:
        """Test the endpoint now, then every ``testInterval`` minutes.

        Any timer already armed for the same name is replaced.
        """
        interval_minutes = self.store.interval_for(endpoint)
        logger.info(
            "Starting timer for endpoint %s",
            endpoint.name,
            extra={"extra_fields": {"endpoint": endpoint.name, "interval_minutes": interval_minutes}},
        )

        self.spawn(self.test_endpoint(endpoint), name=f"probe:{endpoint.name}")

        self._cancel_timer(endpoint.name)
        task = asyncio.create_task(
            self._timer_loop(endpoint, interval_minutes * self.interval_unit_seconds),
            name=f"timer:{endpoint.name}",
        )
        entry = ScheduleEntry(endpoint=endpoint, interval_minutes=interval_minutes, task=task)
        self._entries[endpoint.name] = entry
        return entry

    async def _timer_loop(self, endpoint: Endpoint, interval_seconds: float) -> None:
        while True:
            await asyncio.sleep(interval_seconds)
            logger.debug("Timer fired for endpoint %s", endpoint.name)
            # Use the current definition so a changed key or URL is picked up
            current = self.store.config.get(endpoint.name) if self.store.config else None
            self.spawn(self.test_endpoint(current or endpoint), name=f"probe:{endpoint.name}")

    def _cancel_timer(self, name: str) -> None:
        entry = self._entries.pop(name, None)
        if entry is not None:
            entry.task.cancel()

    def stop_all_timers(self) -> None:
        """Cancel every armed timer. In-flight probes keep running."""
        logger.info("Stopping all endpoint timers", extra={"extra_fields": {"timers": len(self._entries)}})
        for name in list(self._entries):
            logger.debug("Stopping timer for endpoint %s", name)
            self._cancel_timer(name)

    def armed_intervals(self) -> dict[str, int]:
        """Interval in minutes each running timer was armed with, by name."""
        return {name: entry.interval_minutes for name, entry in self._entries.items()}

    def schedule(self) -> dict[str, ScheduleEntry]:
        return dict(self._entries)

    def rebuild(self) -> None:
        """Stop every timer and arm one per currently configured endpoint."""
        self.stop_all_timers()
        for endpoint in self.store.endpoints:
            self.start_endpoint_timer(endpoint)

    def reload_and_restart(self) -> bool:
        """Reload configuration and rebuild the whole schedule.

        Returns:
            False if the configuration could not be loaded; timers stay stopped.
        """
        logger.info("Reloading configuration and restarting timers")
        self.stop_all_timers()
        if not self.store.load_config():
            logger.error("Configuration reload failed, timers not restarted")
            return False
        self.rebuild()
        return True

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Load configuration, arm every timer and start the synchronizer."""
        if self._running:
            logger.warning("Scheduler already running")
            return

        self._running = True
        logger.info("Starting endpoint scheduler")
        if self.store.load_config():
            self.rebuild()
        else:
            logger.error("Initial configuration load failed, waiting for the next sync")
        await self._synchronizer.start()

    async def stop(self) -> None:
        """Stop the synchronizer, every timer and any probe still running."""
        self._running = False
        await self._synchronizer.stop()

        tasks = [entry.task for entry in self._entries.values()] + list(self._background)
        self.stop_all_timers()
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        logger.info("Endpoint scheduler stopped")
