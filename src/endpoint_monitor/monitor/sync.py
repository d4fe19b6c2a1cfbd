"""Configuration synchronizer.

Reloads the endpoint document on a fixed cycle (five minutes by default) and
rebuilds the schedule when it drifted from the configuration:

- the number of endpoints changed, or
- an endpoint's effective interval differs from the interval its timer was
  armed with (an endpoint without a timer counts as changed).

Otherwise the running timers are left alone. A failed reload changes nothing.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from endpoint_monitor.config.endpoints import ConfigStore
    from endpoint_monitor.monitor.scheduler import EndpointScheduler

logger = logging.getLogger(__name__)

DEFAULT_SYNC_INTERVAL_SECONDS = 300.0


class ConfigSynchronizer:
    """Keeps the scheduler's timers in line with the endpoint document."""

    def __init__(
        self,
        scheduler: EndpointScheduler,
        store: ConfigStore,
        interval_seconds: float = DEFAULT_SYNC_INTERVAL_SECONDS,
    ) -> None:
        self.scheduler = scheduler
        self.store = store
        self.interval_seconds = interval_seconds
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        if self.running:
            logger.warning("Config synchronizer already running")
            return
        self._task = asyncio.create_task(self._sync_loop(), name="config-sync")
        logger.info(
            "Config synchronizer started",
            extra={"extra_fields": {"interval_seconds": self.interval_seconds}},
        )

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Config synchronizer stopped")

    async def _sync_loop(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            try:
                self.sync_once()
            except Exception as e:
                logger.error(f"Config sync error: {e}", exc_info=True)

    def sync_once(self) -> bool:
        """Run one reload-and-diff cycle.

        Returns:
            True if the schedule was rebuilt.
        """
        logger.info("Checking configuration for changes")
        old_count = len(self.store.endpoints)

        if not self.store.load_config():
            return False

        endpoints = self.store.endpoints
        if len(endpoints) != old_count:
            logger.info(
                "Endpoint count changed (%d -> %d), restarting timers",
                old_count,
                len(endpoints),
            )
            self.scheduler.rebuild()
            return True

        armed = self.scheduler.armed_intervals()
        changed = [
            endpoint.name
            for endpoint in endpoints
            if armed.get(endpoint.name) != self.store.interval_for(endpoint)
        ]
        if changed:
            logger.info(
                "Test intervals changed, restarting timers",
                extra={"extra_fields": {"endpoints": changed}},
            )
            self.scheduler.rebuild()
            return True

        return False
