"""Correlation ids for attributing log lines to the invocation that made them.

The active id lives in a ContextVar, so it follows each invocation's task
(and anything that task spawns) without being threaded through every call.
"""

import logging
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar

SESSION_LOGGER_NAME = "ssh_steps.session"

_correlation_id: ContextVar[str | None] = ContextVar(
    "ssh_steps_correlation_id", default=None
)


def new_correlation_id() -> str:
    """Generate a process-unique correlation id."""
    return str(uuid.uuid4())


def current_correlation_id() -> str | None:
    """Return the correlation id bound in the current context, if any."""
    return _correlation_id.get()


@contextmanager
def bind_correlation_id(correlation_id: str) -> Iterator[str]:
    """Bind ``correlation_id`` for the duration of the block.

    The previous value is restored on every exit path.
    """
    token = _correlation_id.set(correlation_id)
    try:
        yield correlation_id
    finally:
        _correlation_id.reset(token)


class CorrelationFilter(logging.Filter):
    """Stamp ``record.correlation_id`` from the emitting context."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "correlation_id"):
            record.correlation_id = current_correlation_id()
        return True


def get_session_logger() -> logging.Logger:
    """Return the shared channel that remote session output is logged to.

    The channel never propagates to the process console. Its records only
    reach invocation sinks through a CorrelatedLogRouter.
    """
    session_logger = logging.getLogger(SESSION_LOGGER_NAME)
    if not any(isinstance(f, CorrelationFilter) for f in session_logger.filters):
        session_logger.addFilter(CorrelationFilter())
        session_logger.setLevel(logging.DEBUG)
        session_logger.propagate = False
    return session_logger
