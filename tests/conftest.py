"""Pytest configuration and fixtures for endpoint monitor tests."""

import os

# Set TESTING environment variable before importing app modules
# This disables rate limiting during tests
os.environ["TESTING"] = "true"

import asyncio
import json
from pathlib import Path
from typing import Any

import pytest

from endpoint_monitor.config.endpoints import ConfigStore
from endpoint_monitor.monitor.probe import ProbeOutcome
from endpoint_monitor.monitor.scheduler import EndpointScheduler

SUCCESS_OUTPUT = "成功"


def write_config(path: Path, document: dict[str, Any]) -> None:
    path.write_text(json.dumps(document, ensure_ascii=False, indent=2), encoding="utf-8")


def make_document(*endpoints: dict[str, Any], default_interval: int = 1) -> dict[str, Any]:
    return {
        "endpoints": list(endpoints),
        "defaultTestInterval": default_interval,
        "timeout": 300,
    }


def make_endpoint(name: str, interval: int | None = 5, **extra: Any) -> dict[str, Any]:
    endpoint: dict[str, Any] = {
        "name": name,
        "apiBase": f"https://{name.lower()}.example.com",
        "apiKey": f"sk-{name.lower()}-secret",
        "inviteLink": f"https://{name.lower()}.example.com/invite",
    }
    if interval is not None:
        endpoint["testInterval"] = interval
    endpoint.update(extra)
    return endpoint


class FakeRunner:
    """Stand-in probe runner that records calls and returns a fixed outcome.

    Set ``gate`` to an asyncio.Event to hold every run until it is set.
    """

    def __init__(self, outcome: ProbeOutcome | Exception | None = None) -> None:
        self.outcome = outcome if outcome is not None else ProbeOutcome(output=SUCCESS_OUTPUT, exit_code=0)
        self.calls: list[tuple[str, str]] = []
        self.gate: asyncio.Event | None = None

    async def run(self, api_key: str, api_base: str) -> ProbeOutcome:
        self.calls.append((api_key, api_base))
        if self.gate is not None:
            await self.gate.wait()
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return self.outcome


async def wait_until(predicate: Any, timeout: float = 2.0) -> None:
    """Yield to the event loop until predicate() is true."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.005)


@pytest.fixture
def config_path(tmp_path: Path) -> Path:
    """Config file with two endpoints."""
    path = tmp_path / "config.json"
    write_config(path, make_document(make_endpoint("Alpha", 5), make_endpoint("Beta", 10)))
    return path


@pytest.fixture
def store(config_path: Path) -> ConfigStore:
    return ConfigStore(config_path)


@pytest.fixture
def runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def scheduler(store: ConfigStore, runner: FakeRunner) -> EndpointScheduler:
    """Scheduler whose timers never fire on their own during a test."""
    return EndpointScheduler(
        store,
        runner,  # type: ignore[arg-type]
        sync_interval_seconds=3600.0,
        interval_unit_seconds=3600.0,
    )
