"""SSH steps FastMCP server.

A thin wrapper that wires the step tools, middleware and process-wide
dependencies together. All step logic lives in steps.py and services/.
"""

import logging
import os
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from fastmcp import FastMCP
from starlette.requests import Request
from starlette.responses import PlainTextResponse

from ssh_steps.config import Settings
from ssh_steps.dependencies import Dependencies
from ssh_steps.logs import get_session_logger
from ssh_steps.middleware import ErrorHandlingMiddleware, LoggingMiddleware
from ssh_steps.services.state import set_dependencies
from ssh_steps.tools import ssh_command, ssh_get, ssh_put, ssh_remove, ssh_script
from ssh_steps.utils.console import ConsoleFormatter, stream_supports_color

NOISY_LOGGERS = (
    "uvicorn",
    "uvicorn.access",
    "uvicorn.error",
    "asyncssh",
    "httpx",
    "httpcore",
    "fastmcp",
    "starlette",
    "anyio",
)


def _configure_logging() -> None:
    """Configure colorful logging for the ssh_steps package.

    Called at module load time so logging is configured before any logger
    is used, however the server is started.
    """
    log_level = os.getenv("SSH_STEPS_LOG_LEVEL", "INFO").upper()
    use_colors = os.getenv("SSH_STEPS_LOG_COLORS", "true").lower() != "false"
    if not stream_supports_color(sys.stderr):
        use_colors = False

    package_logger = logging.getLogger("ssh_steps")
    package_logger.setLevel(getattr(logging, log_level, logging.INFO))

    if not package_logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(ConsoleFormatter(use_colors=use_colors))
        package_logger.addHandler(handler)
        package_logger.propagate = False

    # Session output only ever reaches invocation sinks
    get_session_logger()

    for noisy_logger in NOISY_LOGGERS:
        lg = logging.getLogger(noisy_logger)
        lg.setLevel(logging.WARNING)
        lg.handlers = []
        lg.propagate = False


_configure_logging()

logger = logging.getLogger(__name__)


@asynccontextmanager
async def app_lifespan(server: FastMCP) -> AsyncIterator[dict[str, Any]]:
    """Create the worker pool and log router; shut them down on exit.

    Args:
        server: The FastMCP server instance

    Yields:
        Dict with the workspace path
    """
    logger.info("SSH steps server starting up")

    deps = Dependencies.create()
    set_dependencies(deps)
    server.deps = deps

    logger.info(
        "Workspace %s, log buffer %d lines, flush %dms, rate %d/s",
        deps.settings.workspace,
        deps.settings.log_buffer_size,
        deps.settings.log_flush_interval_ms,
        deps.settings.log_rate_limit,
    )
    logger.info("SSH steps server ready to accept connections")

    try:
        yield {"workspace": str(deps.settings.workspace)}
    finally:
        logger.info("SSH steps server shutting down")
        if deps.pool.active_count > 0:
            logger.info("Cancelling %d running execution(s)", deps.pool.active_count)
        await deps.cleanup()
        logger.info("SSH steps server shutdown complete")


def configure_middleware(server: FastMCP, settings: Settings | None = None) -> None:
    """Configure middleware stack for the server.

    Error handling sits innermost so step logging sees the final outcome.

    Args:
        server: The FastMCP server to configure.
        settings: Settings to read middleware options from (default: env)
    """
    settings = settings or Settings.from_env()

    # First added = innermost
    server.add_middleware(
        ErrorHandlingMiddleware(include_traceback=settings.include_traceback)
    )
    server.add_middleware(
        LoggingMiddleware(
            include_payloads=settings.log_payloads,
            slow_threshold_ms=float(settings.slow_threshold_ms),
        )
    )


def create_server() -> FastMCP:
    """Create and configure the MCP server with middleware and tools.

    Returns:
        Configured FastMCP server instance
    """
    server = FastMCP(
        "ssh_steps",
        lifespan=app_lifespan,
    )

    configure_middleware(server)

    server.tool()(ssh_command)
    server.tool()(ssh_script)
    server.tool()(ssh_get)
    server.tool()(ssh_put)
    server.tool()(ssh_remove)

    @server.custom_route("/health", methods=["GET"])
    async def health_check(request: Request) -> PlainTextResponse:
        """Health check endpoint."""
        client_host = request.client.host if request.client else "unknown"
        logger.debug("Health check from %s", client_host)
        return PlainTextResponse("OK")

    return server


# Default server instance
mcp = create_server()
