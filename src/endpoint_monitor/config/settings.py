"""Runtime settings for the endpoint monitor service."""

import os

DEFAULT_PROBE_PROMPT = '请回复"成功"'
DEFAULT_SUCCESS_MARKER = "成功"


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name, "").strip().lower()
    if not raw:
        return default
    return raw in ("1", "true", "yes", "on")


class MonitorSettings:
    """Configuration for the scheduler, probe runner and HTTP server.

    Every attribute can be passed explicitly; anything left as None falls back
    to the matching environment variable and then to the built-in default.

    Attributes:
        config_path: Path of the JSON endpoint document (MONITOR_CONFIG_PATH)
        probe_command: Executable invoked for each probe (MONITOR_PROBE_COMMAND)
        probe_prompt: Prompt argument handed to the probe (MONITOR_PROBE_PROMPT)
        success_marker: Text that marks a healthy reply (MONITOR_SUCCESS_MARKER)
        probe_timeout: Hard wall-clock limit per probe in seconds (MONITOR_PROBE_TIMEOUT)
        kill_grace: Seconds between SIGTERM and SIGKILL (MONITOR_KILL_GRACE)
        sync_interval: Seconds between configuration syncs (MONITOR_SYNC_INTERVAL)
        autostart: Start the scheduler together with the app (MONITOR_AUTOSTART)
        host: Bind address (HOST)
        port: Bind port (PORT)
        cors_origins: Allowed CORS origins (CORS_ORIGINS, comma separated)
        testing: Test mode, disables rate limiting (TESTING)
    """

    def __init__(
        self,
        config_path: str | None = None,
        probe_command: str | None = None,
        probe_prompt: str | None = None,
        success_marker: str | None = None,
        probe_timeout: float | None = None,
        kill_grace: float | None = None,
        sync_interval: float | None = None,
        autostart: bool | None = None,
        host: str | None = None,
        port: int | None = None,
        cors_origins: list[str] | None = None,
        testing: bool | None = None,
    ) -> None:
        self.config_path = config_path or os.getenv("MONITOR_CONFIG_PATH", "config.json")
        self.probe_command = probe_command or os.getenv("MONITOR_PROBE_COMMAND", "claude")
        self.probe_prompt = probe_prompt or os.getenv("MONITOR_PROBE_PROMPT", DEFAULT_PROBE_PROMPT)
        self.success_marker = success_marker or os.getenv(
            "MONITOR_SUCCESS_MARKER", DEFAULT_SUCCESS_MARKER
        )
        self.probe_timeout = (
            probe_timeout if probe_timeout is not None else _env_float("MONITOR_PROBE_TIMEOUT", 300.0)
        )
        self.kill_grace = kill_grace if kill_grace is not None else _env_float("MONITOR_KILL_GRACE", 5.0)
        self.sync_interval = (
            sync_interval if sync_interval is not None else _env_float("MONITOR_SYNC_INTERVAL", 300.0)
        )
        self.autostart = autostart if autostart is not None else _env_bool("MONITOR_AUTOSTART", True)
        self.host = host or os.getenv("HOST", "0.0.0.0")
        self.port = port or int(os.getenv("PORT", "3000"))
        if cors_origins is None:
            cors_origins = [
                origin.strip() for origin in os.getenv("CORS_ORIGINS", "*").split(",") if origin.strip()
            ]
        self.cors_origins = cors_origins
        self.testing = testing if testing is not None else _env_bool("TESTING", False)

    @property
    def probe_args(self) -> list[str]:
        """Fixed two-argument command line handed to the probe executable."""
        return ["--print", self.probe_prompt]
