"""Probe runner - executes the external connectivity check for one endpoint.

Each run launches one short-lived child process with the endpoint credentials
in its environment and stdin attached to the null device, so the tool can never
block waiting for input. The child leads its own session, so anything it spawns
shares its process group. The run is bounded by a hard timeout; an expired probe
group gets SIGTERM first and SIGKILL if it is still alive after the grace period.

Failures are returned as values on ProbeOutcome instead of being raised:
- launch_failure: the executable could not be started
- timeout: the process exceeded the wall-clock limit
- non_zero_exit: the process failed without printing anything

A non-zero exit that did print something is a normal outcome; the classifier
decides health from the content.
"""

from __future__ import annotations

import asyncio
import logging
import os
import signal
import subprocess
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from endpoint_monitor.config.settings import MonitorSettings

logger = logging.getLogger(__name__)

AUTH_TOKEN_ENV = "ANTHROPIC_AUTH_TOKEN"
BASE_URL_ENV = "ANTHROPIC_BASE_URL"

DEFAULT_TIMEOUT_SECONDS = 300.0
DEFAULT_KILL_GRACE_SECONDS = 5.0


class ProbeFailureKind(str, Enum):
    """Why a probe produced no classifiable output."""

    LAUNCH_FAILURE = "launch_failure"
    TIMEOUT = "timeout"
    NON_ZERO_EXIT = "non_zero_exit"


@dataclass(frozen=True)
class ProbeFailure:
    kind: ProbeFailureKind
    message: str


@dataclass(frozen=True)
class ProbeOutcome:
    """Result of one probe run: combined output, or a failure."""

    output: str | None = None
    failure: ProbeFailure | None = None
    exit_code: int | None = None

    @property
    def ok(self) -> bool:
        return self.failure is None

    @classmethod
    def failed(
        cls, kind: ProbeFailureKind, message: str, exit_code: int | None = None
    ) -> ProbeOutcome:
        return cls(failure=ProbeFailure(kind, message), exit_code=exit_code)


class ProbeRunner:
    """Runs the probe command against one endpoint.

    Example usage:
        ```python
        runner = ProbeRunner(command="claude", args=["--print", "reply OK"])
        outcome = await runner.run(api_key="sk-...", api_base="https://api.example.com")
        if outcome.ok:
            print(outcome.output)
        else:
            print(outcome.failure.kind, outcome.failure.message)
        ```
    """

    def __init__(
        self,
        command: str = "claude",
        args: list[str] | None = None,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        kill_grace_seconds: float = DEFAULT_KILL_GRACE_SECONDS,
    ) -> None:
        self.command = command
        self.args = list(args or [])
        self.timeout_seconds = timeout_seconds
        self.kill_grace_seconds = kill_grace_seconds

    @classmethod
    def from_settings(cls, settings: MonitorSettings) -> ProbeRunner:
        return cls(
            command=settings.probe_command,
            args=settings.probe_args,
            timeout_seconds=settings.probe_timeout,
            kill_grace_seconds=settings.kill_grace,
        )

    def build_env(self, api_key: str, api_base: str) -> dict[str, str]:
        """Process environment plus the endpoint credentials."""
        env = dict(os.environ)
        env[AUTH_TOKEN_ENV] = api_key
        env[BASE_URL_ENV] = api_base
        return env

    async def run(self, api_key: str, api_base: str) -> ProbeOutcome:
        """Execute one probe and collect its combined output."""
        logger.debug(
            "Probe command running",
            extra={"extra_fields": {"api_base": api_base, "command": self.command}},
        )

        try:
            process = await asyncio.create_subprocess_exec(
                self.command,
                *self.args,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                env=self.build_env(api_key, api_base),
                start_new_session=True,
            )
        except (OSError, ValueError) as e:
            logger.error(
                "Probe command could not be started",
                extra={"extra_fields": {"command": self.command, "error": str(e)}},
            )
            return ProbeOutcome.failed(
                ProbeFailureKind.LAUNCH_FAILURE,
                f"Cannot execute {self.command}: {e}",
            )

        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(),
                timeout=self.timeout_seconds,
            )
        except TimeoutError:
            logger.error(
                "Probe command timed out, terminating",
                extra={"extra_fields": {"timeout_seconds": self.timeout_seconds, "pid": process.pid}},
            )
            exit_code = await self._terminate(process)
            return ProbeOutcome.failed(
                ProbeFailureKind.TIMEOUT,
                f"Probe timed out after {self.timeout_seconds:g}s",
                exit_code=exit_code,
            )
        except asyncio.CancelledError:
            _signal_group(process, signal.SIGKILL)
            # Reap the child so its pipe transports close on this loop
            await asyncio.shield(process.wait())
            raise

        output = _decode(stdout) + _decode(stderr)
        exit_code = process.returncode

        logger.debug(
            "Probe command finished",
            extra={"extra_fields": {"exit_code": exit_code, "output_length": len(output)}},
        )

        if exit_code != 0 and not output:
            return ProbeOutcome.failed(
                ProbeFailureKind.NON_ZERO_EXIT,
                f"Probe exited with code {exit_code}",
                exit_code=exit_code,
            )

        return ProbeOutcome(output=output, exit_code=exit_code)

    async def _terminate(self, process: asyncio.subprocess.Process) -> int | None:
        """SIGTERM, then SIGKILL once the grace period runs out.

        Signals go to the whole process group so helpers started by the probe
        command do not outlive it. The group is killed even when the direct
        child exits within the grace period.
        """
        _signal_group(process, signal.SIGTERM)

        try:
            exit_code = await asyncio.wait_for(process.wait(), timeout=self.kill_grace_seconds)
        except TimeoutError:
            logger.warning(
                "Probe command ignored SIGTERM, killing",
                extra={"extra_fields": {"pid": process.pid, "grace_seconds": self.kill_grace_seconds}},
            )
            _signal_group(process, signal.SIGKILL)
            return await process.wait()

        _signal_group(process, signal.SIGKILL)
        return exit_code


def _signal_group(process: asyncio.subprocess.Process, sig: int) -> None:
    """Signal the probe's process group, or the child alone if the group is gone."""
    try:
        os.killpg(process.pid, sig)
        return
    except ProcessLookupError:
        pass
    except PermissionError:
        logger.warning(
            "Cannot signal probe process group",
            extra={"extra_fields": {"pid": process.pid, "signal": int(sig)}},
        )
    if process.returncode is None:
        try:
            process.send_signal(sig)
        except ProcessLookupError:
            pass


def _decode(data: bytes | None) -> str:
    if not data:
        return ""
    return data.decode("utf-8", errors="replace")
