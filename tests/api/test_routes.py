"""
Tests for the monitor HTTP API.

Tests cover:
- GET /api/status: cached results in camelCase, placeholders for untested endpoints
- POST /api/test: manual trigger, failure envelope, rate limit
- GET /api/config: no API keys exposed
- POST /api/endpoint: registration, validation errors, persistence
- Request ID propagation and the liveness route
"""

import json
import time
from collections.abc import Callable, Iterator
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, patch

import pytest
from conftest import FakeRunner
from fastapi import FastAPI
from fastapi.testclient import TestClient

from endpoint_monitor.config.endpoints import ConfigStore
from endpoint_monitor.config.settings import MonitorSettings
from endpoint_monitor.main import create_app
from endpoint_monitor.monitor.scheduler import EndpointScheduler


def poll(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Wait for work running on the app's event loop thread."""
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError("condition not reached in time")
        time.sleep(0.01)


def build_app(
    config_path: Path,
    runner: FakeRunner,
    autostart: bool = False,
    testing: bool = True,
) -> tuple[FastAPI, EndpointScheduler]:
    settings = MonitorSettings(config_path=str(config_path), autostart=autostart, testing=testing)
    scheduler = EndpointScheduler(
        ConfigStore(config_path),
        runner,  # type: ignore[arg-type]
        sync_interval_seconds=3600.0,
        interval_unit_seconds=3600.0,
    )
    return create_app(settings, scheduler=scheduler), scheduler


@pytest.fixture
def app_and_scheduler(config_path: Path, runner: FakeRunner) -> tuple[FastAPI, EndpointScheduler]:
    return build_app(config_path, runner)


@pytest.fixture
def client(app_and_scheduler: tuple[FastAPI, EndpointScheduler]) -> Iterator[TestClient]:
    app, _ = app_and_scheduler
    with TestClient(app) as test_client:
        yield test_client


def registration(**overrides: Any) -> dict[str, Any]:
    body: dict[str, Any] = {
        "name": "Gamma",
        "apiBase": "https://gamma.example.com",
        "apiKey": "sk-gamma-secret",
        "testInterval": 3,
        "inviteLink": "https://gamma.example.com/join",
    }
    body.update(overrides)
    return body


# =============================================================================
# GET /api/status
# =============================================================================


class TestStatusRoute:
    def test_placeholders_before_any_probe(self, client: TestClient) -> None:
        response = client.get("/api/status")

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert "timestamp" in body
        assert [item["name"] for item in body["data"]] == ["Alpha", "Beta"]
        for item in body["data"]:
            assert item["status"] == "unknown"
            assert item["lastChecked"] is None
            assert item["apiBase"].startswith("https://")
            assert "apiKey" not in item

    def test_serves_cached_results(
        self,
        client: TestClient,
        app_and_scheduler: tuple[FastAPI, EndpointScheduler],
        runner: FakeRunner,
    ) -> None:
        client.post("/api/test")
        body = client.get("/api/status").json()

        assert all(item["status"] == "online" for item in body["data"])
        assert all(item["responseTime"] is not None for item in body["data"])
        assert len(runner.calls) == 2

    def test_reading_status_starts_no_probe(self, client: TestClient, runner: FakeRunner) -> None:
        client.get("/api/status")
        client.get("/api/status")
        assert runner.calls == []


# =============================================================================
# POST /api/test
# =============================================================================


class TestManualTrigger:
    def test_returns_fresh_results(self, client: TestClient, runner: FakeRunner) -> None:
        response = client.post("/api/test")

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert [item["name"] for item in body["data"]] == ["Alpha", "Beta"]
        assert {item["status"] for item in body["data"]} == {"online"}
        assert len(runner.calls) == 2

    def test_failure_returns_error_envelope(
        self, client: TestClient, app_and_scheduler: tuple[FastAPI, EndpointScheduler]
    ) -> None:
        _, scheduler = app_and_scheduler
        with patch.object(scheduler, "test_all_endpoints", AsyncMock(side_effect=RuntimeError("boom"))):
            response = client.post("/api/test")

        assert response.status_code == 500
        assert response.json() == {"success": False, "error": "boom"}

    def test_rate_limited_outside_test_mode(self, config_path: Path, runner: FakeRunner) -> None:
        app, _ = build_app(config_path, runner, testing=False)
        with TestClient(app) as client:
            codes = [client.post("/api/test").status_code for _ in range(7)]

        assert codes[:6] == [200] * 6
        assert codes[6] == 429


# =============================================================================
# GET /api/config
# =============================================================================


class TestConfigRoute:
    def test_sanitized_config(self, client: TestClient) -> None:
        response = client.get("/api/config")

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["data"] == {
            "endpoints": [
                {"name": "Alpha", "apiBase": "https://alpha.example.com"},
                {"name": "Beta", "apiBase": "https://beta.example.com"},
            ],
            "defaultTestInterval": 1,
            "timeout": 300,
        }
        assert "secret" not in response.text


# =============================================================================
# POST /api/endpoint
# =============================================================================


class TestAddEndpointRoute:
    """Tests for endpoint registration."""

    def test_registers_and_persists(
        self, client: TestClient, config_path: Path, runner: FakeRunner
    ) -> None:
        response = client.post("/api/endpoint", json=registration())

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["data"] == {
            "name": "Gamma",
            "apiBase": "https://gamma.example.com",
            "testInterval": 3,
            "inviteLink": "https://gamma.example.com/join",
        }
        assert "sk-gamma-secret" not in response.text

        on_disk = json.loads(config_path.read_text(encoding="utf-8"))
        assert on_disk["endpoints"][-1]["apiKey"] == "sk-gamma-secret"

        names = [e["name"] for e in client.get("/api/config").json()["data"]["endpoints"]]
        assert names == ["Alpha", "Beta", "Gamma"]

        # Registration probes every endpoint once in the background
        poll(lambda: len(runner.calls) >= 3)

    def test_numeric_string_interval(self, client: TestClient) -> None:
        response = client.post("/api/endpoint", json=registration(testInterval="10"))

        assert response.status_code == 200
        assert response.json()["data"]["testInterval"] == 10

    def test_missing_fields(self, client: TestClient, config_path: Path) -> None:
        before = config_path.read_bytes()
        response = client.post("/api/endpoint", json={"name": "Gamma"})

        assert response.status_code == 400
        assert response.json() == {"success": False, "error": "Missing required fields"}
        assert config_path.read_bytes() == before

    def test_duplicate_name(self, client: TestClient, config_path: Path, runner: FakeRunner) -> None:
        before = config_path.read_bytes()
        response = client.post("/api/endpoint", json=registration(name="Alpha"))

        assert response.status_code == 400
        assert response.json() == {"success": False, "error": "Endpoint name already exists"}
        assert config_path.read_bytes() == before
        assert runner.calls == []

    def test_invalid_interval(self, client: TestClient, config_path: Path) -> None:
        before = config_path.read_bytes()
        response = client.post("/api/endpoint", json=registration(testInterval="often"))

        assert response.status_code == 400
        assert response.json()["success"] is False
        assert config_path.read_bytes() == before

    def test_wrong_field_type_uses_error_envelope(self, client: TestClient, config_path: Path) -> None:
        before = config_path.read_bytes()
        response = client.post("/api/endpoint", json=registration(name=123))

        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert "name" in body["error"]
        assert config_path.read_bytes() == before

    def test_malformed_json_uses_error_envelope(self, client: TestClient) -> None:
        response = client.post(
            "/api/endpoint",
            content=b"{not json",
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["error"].startswith("Invalid request")

    def test_unwritable_configuration(
        self, client: TestClient, app_and_scheduler: tuple[FastAPI, EndpointScheduler], tmp_path: Path
    ) -> None:
        _, scheduler = app_and_scheduler
        broken = tmp_path / "broken.json"
        broken.write_text("{ not json", encoding="utf-8")
        scheduler.store.path = broken
        scheduler.store._document = None

        response = client.post("/api/endpoint", json=registration())

        assert response.status_code == 500
        assert response.json()["success"] is False
        assert broken.read_text(encoding="utf-8") == "{ not json"


# =============================================================================
# Application wiring
# =============================================================================


class TestAppWiring:
    def test_health(self, client: TestClient) -> None:
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    def test_request_id_is_echoed(self, client: TestClient) -> None:
        response = client.get("/health", headers={"X-Request-ID": "req-123"})
        assert response.headers["X-Request-ID"] == "req-123"

    def test_request_id_is_generated(self, client: TestClient) -> None:
        response = client.get("/health")
        assert len(response.headers["X-Request-ID"]) == 8

    def test_cors_preflight(self, client: TestClient) -> None:
        response = client.options(
            "/api/status",
            headers={
                "Origin": "http://dashboard.example.com",
                "Access-Control-Request-Method": "GET",
            },
        )
        assert response.status_code == 200
        assert response.headers["access-control-allow-origin"] == "*"

    def test_unhandled_error_returns_envelope(
        self, app_and_scheduler: tuple[FastAPI, EndpointScheduler]
    ) -> None:
        app, scheduler = app_and_scheduler
        with TestClient(app, raise_server_exceptions=False) as client:
            with patch.object(scheduler, "get_results", side_effect=RuntimeError("boom")):
                response = client.get("/api/status")

        assert response.status_code == 500
        assert response.json() == {"success": False, "error": "Internal server error"}

    def test_autostart_probes_every_endpoint(self, config_path: Path, runner: FakeRunner) -> None:
        app, scheduler = build_app(config_path, runner, autostart=True)
        with TestClient(app) as client:
            assert scheduler.running
            poll(lambda: len(scheduler.cache) == 2)
            statuses = {item["status"] for item in client.get("/api/status").json()["data"]}
            assert statuses == {"online"}

        assert not scheduler.running
        assert scheduler.schedule() == {}
