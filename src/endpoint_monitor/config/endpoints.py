"""
Endpoint configuration document.

The document is a JSON file holding the monitored endpoints:

    {
      "endpoints": [
        {"name": "...", "apiBase": "...", "apiKey": "...", "testInterval": 5, "inviteLink": ""}
      ],
      "defaultTestInterval": 1,
      "timeout": 300
    }

ConfigStore keeps the last document that parsed successfully. A failed reload
leaves it untouched, so the scheduler keeps running on stale but valid data.
Registration appends to the raw document and rewrites the file, preserving any
keys this module does not know about.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from collections import Counter
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from endpoint_monitor.exceptions import (
    ConfigLoadError,
    ConfigPersistError,
    DuplicateEndpointError,
    InvalidEndpointError,
    MissingFieldsError,
)

logger = logging.getLogger(__name__)

FALLBACK_TEST_INTERVAL = 1
REQUIRED_FIELDS = ("name", "apiBase", "apiKey", "testInterval")


class Endpoint(BaseModel):
    """One monitored API endpoint."""

    model_config = ConfigDict(populate_by_name=True, extra="allow", frozen=True)

    name: str = Field(min_length=1)
    api_base: str = Field(alias="apiBase")
    api_key: str = Field(alias="apiKey", repr=False)
    test_interval: int | None = Field(default=None, alias="testInterval", ge=0)
    invite_link: str = Field(default="", alias="inviteLink")

    @field_validator("invite_link", mode="before")
    @classmethod
    def none_link_to_empty(cls, v: Any) -> Any:
        return "" if v is None else v


class MonitorConfig(BaseModel):
    """Parsed endpoint document."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    endpoints: list[Endpoint] = Field(default_factory=list)
    default_test_interval: int | None = Field(
        default=FALLBACK_TEST_INTERVAL, alias="defaultTestInterval", ge=0
    )
    timeout: int | None = None

    def interval_for(self, endpoint: Endpoint) -> int:
        """Effective test interval in minutes for an endpoint."""
        return endpoint.test_interval or self.default_test_interval or FALLBACK_TEST_INTERVAL

    def get(self, name: str) -> Endpoint | None:
        for endpoint in self.endpoints:
            if endpoint.name == name:
                return endpoint
        return None


class ConfigStore:
    """Reads, validates and rewrites the endpoint document.

    Example usage:
        ```python
        store = ConfigStore("config.json")
        if store.load_config():
            for endpoint in store.endpoints:
                print(endpoint.name, store.config.interval_for(endpoint))
        ```
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._config: MonitorConfig | None = None
        self._document: dict[str, Any] | None = None
        self._lock = threading.Lock()

    @property
    def config(self) -> MonitorConfig | None:
        """Last configuration that loaded successfully, or None."""
        return self._config

    @property
    def loaded(self) -> bool:
        return self._config is not None

    @property
    def endpoints(self) -> list[Endpoint]:
        """Currently configured endpoints (empty before the first good load)."""
        if self._config is None:
            return []
        return list(self._config.endpoints)

    def interval_for(self, endpoint: Endpoint) -> int:
        """Effective interval in minutes, honoring the document default."""
        if self._config is None:
            return endpoint.test_interval or FALLBACK_TEST_INTERVAL
        return self._config.interval_for(endpoint)

    def load_config(self) -> bool:
        """Re-read the document from disk.

        Returns:
            True when the document parsed and replaced the current configuration,
            False when reading failed and the previous configuration was kept.
        """
        try:
            document, config = self._read()
        except ConfigLoadError as e:
            logger.error(
                "Failed to load configuration, keeping previous one",
                extra={"extra_fields": {"path": str(self.path), "error": e.message}},
            )
            return False

        with self._lock:
            self._document = document
            self._config = config

        duplicates = [name for name, count in Counter(e.name for e in config.endpoints).items() if count > 1]
        if duplicates:
            logger.warning(
                "Configuration contains duplicate endpoint names",
                extra={"extra_fields": {"duplicates": duplicates}},
            )

        logger.info(
            "Configuration loaded",
            extra={"extra_fields": {"endpoints": len(config.endpoints)}},
        )
        return True

    def _read(self) -> tuple[dict[str, Any], MonitorConfig]:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigLoadError(f"Cannot read {self.path}: {e}") from e

        try:
            document = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ConfigLoadError(f"Invalid JSON in {self.path}: {e}") from e

        if not isinstance(document, dict):
            raise ConfigLoadError(f"{self.path} must contain a JSON object")

        try:
            config = MonitorConfig.model_validate(document)
        except ValidationError as e:
            raise ConfigLoadError(f"Invalid configuration in {self.path}: {e}") from e

        return document, config

    def sanitized(self) -> dict[str, Any]:
        """Configuration view that is safe to expose (no API keys)."""
        config = self._config or MonitorConfig()
        return {
            "endpoints": [
                {"name": endpoint.name, "apiBase": endpoint.api_base} for endpoint in config.endpoints
            ],
            "defaultTestInterval": config.default_test_interval,
            "timeout": config.timeout,
        }

    def add_endpoint(self, payload: dict[str, Any]) -> Endpoint:
        """Validate a new endpoint, append it to the document and persist it.

        Args:
            payload: Endpoint fields as received from the API
                (name, apiBase, apiKey, testInterval, inviteLink)

        Returns:
            The registered endpoint.

        Raises:
            MissingFieldsError: A required field is missing or empty.
            InvalidEndpointError: testInterval is not a positive integer.
            DuplicateEndpointError: The name is already configured.
            ConfigPersistError: The document could not be written.
        """
        missing = [name for name in REQUIRED_FIELDS if not payload.get(name)]
        if missing:
            raise MissingFieldsError(fields=missing)

        test_interval = _parse_interval(payload["testInterval"])
        entry = {
            "name": str(payload["name"]),
            "apiBase": str(payload["apiBase"]),
            "apiKey": str(payload["apiKey"]),
            "testInterval": test_interval,
            "inviteLink": str(payload.get("inviteLink") or ""),
        }
        try:
            endpoint = Endpoint.model_validate(entry)
        except ValidationError as e:
            raise InvalidEndpointError(f"Invalid endpoint definition: {e}") from e

        with self._lock:
            document = self._current_document()
            endpoints = document.setdefault("endpoints", [])
            if any(isinstance(ep, dict) and ep.get("name") == endpoint.name for ep in endpoints):
                raise DuplicateEndpointError(endpoint.name)

            updated = dict(document)
            updated["endpoints"] = [*endpoints, entry]
            self._write(updated)

            self._document = updated
            self._config = MonitorConfig.model_validate(updated)

        logger.info(
            "Endpoint added and saved to configuration",
            extra={"extra_fields": {"name": endpoint.name}},
        )
        return endpoint

    def _current_document(self) -> dict[str, Any]:
        """Freshest document to append to: disk first, then the last good copy."""
        try:
            document, _ = self._read()
            return document
        except ConfigLoadError:
            if self._document is not None:
                return dict(self._document)
            if not self.path.exists():
                return {"endpoints": [], "defaultTestInterval": FALLBACK_TEST_INTERVAL}
            raise ConfigPersistError(
                f"Refusing to overwrite unreadable configuration at {self.path}"
            ) from None

    def _write(self, document: dict[str, Any]) -> None:
        data = json.dumps(document, indent=2, ensure_ascii=False)
        directory = self.path.parent
        try:
            directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(prefix=".config-", suffix=".json", dir=directory)
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    fh.write(data)
                os.replace(tmp_path, self.path)
            except BaseException:
                Path(tmp_path).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise ConfigPersistError(f"Cannot write {self.path}: {e}") from e


def _parse_interval(value: Any) -> int:
    """Parse testInterval from an int or a numeric string."""
    if isinstance(value, bool):
        raise InvalidEndpointError("testInterval must be a positive integer")
    try:
        interval = int(str(value).strip())
    except ValueError:
        raise InvalidEndpointError("testInterval must be a positive integer") from None
    if interval <= 0:
        raise InvalidEndpointError("testInterval must be a positive integer")
    return interval
