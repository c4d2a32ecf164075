"""Per-invocation log routing for remote session output."""

from ssh_steps.logs.buffer import RATE_LIMIT_MARKER, LogBuffer
from ssh_steps.logs.correlation import (
    SESSION_LOGGER_NAME,
    CorrelationFilter,
    bind_correlation_id,
    current_correlation_id,
    get_session_logger,
    new_correlation_id,
)
from ssh_steps.logs.router import CorrelatedLogHandler, CorrelatedLogRouter

__all__ = [
    "RATE_LIMIT_MARKER",
    "SESSION_LOGGER_NAME",
    "CorrelatedLogHandler",
    "CorrelatedLogRouter",
    "CorrelationFilter",
    "LogBuffer",
    "bind_correlation_id",
    "current_correlation_id",
    "get_session_logger",
    "new_correlation_id",
]
