"""Run the endpoint monitor with uvicorn."""

import uvicorn

from endpoint_monitor.config.settings import MonitorSettings
from endpoint_monitor.logging_config import configure_logging
from endpoint_monitor.main import create_app


def main() -> None:
    configure_logging()
    settings = MonitorSettings()
    uvicorn.run(
        create_app(settings),
        host=settings.host,
        port=settings.port,
        log_config=None,
    )


if __name__ == "__main__":
    main()
