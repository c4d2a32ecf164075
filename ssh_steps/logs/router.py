"""Correlated log routing.

Concurrent invocations share one logging channel. Each invocation gets its
own CorrelatedLogHandler bound to its correlation id; a handler keeps only
lines from its own id, so runs never interleave each other's output.
"""

import logging
import threading
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import TextIO

from ssh_steps.logs.buffer import (
    DEFAULT_BUFFER_SIZE,
    DEFAULT_FLUSH_INTERVAL_MS,
    DEFAULT_RATE_LIMIT_LINES_PER_SEC,
    LogBuffer,
)
from ssh_steps.logs.correlation import current_correlation_id, get_session_logger

logger = logging.getLogger(__name__)


class CorrelatedLogHandler(logging.Handler):
    """Logging handler that buffers and rate limits one invocation's lines.

    The sink belongs to the invoking context and outlives this handler, so
    ``close()`` flushes but never closes it.
    """

    def __init__(
        self,
        sink: TextIO,
        correlation_id: str | None = None,
        buffer_size: int = DEFAULT_BUFFER_SIZE,
        flush_interval_ms: int = DEFAULT_FLUSH_INTERVAL_MS,
        rate_limit: int = DEFAULT_RATE_LIMIT_LINES_PER_SEC,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the handler.

        Args:
            sink: Text stream to write flushed lines to
            correlation_id: Id to accept; None binds to the first line seen
            buffer_size: Number of lines to buffer before flushing
            flush_interval_ms: Time in milliseconds between flushes
            rate_limit: Maximum lines per second (0 to disable)
            clock: Monotonic clock in seconds
        """
        super().__init__()
        self.sink = sink
        self.correlation_id = correlation_id
        self._buffer = LogBuffer(
            capacity=buffer_size,
            flush_interval=flush_interval_ms / 1000.0,
            rate_limit=rate_limit,
            clock=clock,
        )
        self.setFormatter(logging.Formatter("%(message)s"))

    def publish(self, line: str, correlation_id: str | None) -> bool:
        """Accept ``line`` if it belongs to this handler's invocation.

        Returns:
            True if the line was buffered, False if dropped
        """
        with self.lock:
            # First line seen binds the handler to its originating run
            if self.correlation_id is None:
                self.correlation_id = correlation_id

            if correlation_id != self.correlation_id:
                return False

            accepted = self._buffer.admit(line)
            if self._buffer.should_flush():
                self._flush_buffer()
            return accepted

    def emit(self, record: logging.LogRecord) -> None:
        try:
            line = self.format(record)
            correlation_id = getattr(record, "correlation_id", None)
            if correlation_id is None:
                correlation_id = current_correlation_id()
            self.publish(line, correlation_id)
        except Exception:
            self.handleError(record)

    def _flush_buffer(self) -> None:
        pending = self._buffer.drain()
        if not pending:
            return
        for line in pending:
            self.sink.write(line + "\n")
        self.sink.flush()

    @property
    def pending(self) -> int:
        """Number of lines waiting for the next flush."""
        return len(self._buffer.lines)

    def flush(self) -> None:
        with self.lock:
            self._flush_buffer()

    def close(self) -> None:
        with self.lock:
            self._flush_buffer()
        # The sink belongs to the caller and is reused after this handler
        super().close()


class CorrelatedLogRouter:
    """Process-wide demultiplexer for the shared session output channel.

    Constructed once and handed to each invocation, which opens a
    ``scope()`` for its correlation id.
    """

    def __init__(
        self,
        channel: logging.Logger | None = None,
        buffer_size: int = DEFAULT_BUFFER_SIZE,
        flush_interval_ms: int = DEFAULT_FLUSH_INTERVAL_MS,
        rate_limit: int = DEFAULT_RATE_LIMIT_LINES_PER_SEC,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the router.

        Args:
            channel: Shared logger to attach handlers to (default: session logger)
            buffer_size: Lines buffered per invocation before flushing
            flush_interval_ms: Milliseconds between flushes
            rate_limit: Maximum lines per second per invocation (0 disables)
            clock: Monotonic clock in seconds
        """
        self.channel = channel or get_session_logger()
        self.buffer_size = buffer_size
        self.flush_interval_ms = flush_interval_ms
        self.rate_limit = rate_limit
        self._clock = clock
        self._handlers: list[CorrelatedLogHandler] = []
        self._lock = threading.Lock()

        logger.debug(
            "CorrelatedLogRouter initialized (channel=%s, buffer=%d, interval=%dms, rate=%d/s)",
            self.channel.name,
            buffer_size,
            flush_interval_ms,
            rate_limit,
        )

    @contextmanager
    def scope(self, correlation_id: str, sink: TextIO) -> Iterator[CorrelatedLogHandler]:
        """Route lines tagged ``correlation_id`` to ``sink`` inside the block.

        The handler is detached and given a final flush on every exit path.
        """
        handler = CorrelatedLogHandler(
            sink,
            correlation_id,
            buffer_size=self.buffer_size,
            flush_interval_ms=self.flush_interval_ms,
            rate_limit=self.rate_limit,
            clock=self._clock,
        )
        with self._lock:
            self._handlers.append(handler)
        self.channel.addHandler(handler)
        logger.debug("Attached log handler for %s", correlation_id)
        try:
            yield handler
        finally:
            self.channel.removeHandler(handler)
            with self._lock:
                self._handlers.remove(handler)
            handler.close()
            logger.debug("Detached log handler for %s", correlation_id)

    def publish(self, line: str, correlation_id: str | None) -> None:
        """Offer ``line`` to every attached handler; each keeps only its own id."""
        with self._lock:
            handlers = list(self._handlers)
        for handler in handlers:
            handler.publish(line, correlation_id)

    @property
    def active_scopes(self) -> int:
        """Number of invocations currently attached."""
        return len(self._handlers)
