import logging

import click
import uvicorn

from mcp_time_server.app import create_app
from mcp_time_server.settings import Settings
from mcp_time_server.utilities.logging import configure_logging

logger = logging.getLogger(__name__)


@click.command()
@click.option("--host", default=None, help="Interface to bind (default: settings / MCP_TIME_HOST)")
@click.option("--port", type=int, default=None, help="Port to listen on (default: settings / PORT)")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"], case_sensitive=False),
    default=None,
    help="Log level",
)
def main(host: str | None, port: int | None, log_level: str | None) -> int:
    overrides = {
        key: value
        for key, value in {"host": host, "port": port, "log_level": log_level and log_level.upper()}.items()
        if value is not None
    }
    settings = Settings(**overrides)
    configure_logging(settings.log_level)

    app = create_app(settings)

    base_url = f"http://localhost:{settings.port}"
    logger.info("MCP Time Server running on port %d", settings.port)
    logger.info("Health check: %s/health", base_url)
    logger.info("MCP endpoint: %s%s", base_url, settings.mcp_path)

    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())
    return 0
