"""Error handling middleware: categorize, count and log failed requests."""

import logging
from collections import Counter
from collections.abc import Callable
from typing import Any

from fastmcp.server.middleware import MiddlewareContext

from ssh_steps.errors import (
    CancellationError,
    ChannelUnavailableError,
    RemoteCommandError,
    TransferError,
    TransportError,
    UnsupportedResumeError,
    ValidationError,
)
from ssh_steps.middleware.base import StepsMiddleware

ErrorCallback = Callable[[Exception, MiddlewareContext], None]

# Checked in order; first match wins
ERROR_CATEGORIES: tuple[tuple[type[BaseException], str], ...] = (
    (ValidationError, "validation"),
    (ChannelUnavailableError, "validation"),
    (RemoteCommandError, "remote"),
    (TransferError, "transfer"),
    (TransportError, "transport"),
    (CancellationError, "cancelled"),
    (UnsupportedResumeError, "cancelled"),
)

# Caller mistakes and deliberate stops are not server faults
EXPECTED_CATEGORIES = frozenset({"validation", "cancelled"})


def classify(error: BaseException) -> tuple[BaseException, str]:
    """Find the taxonomy error behind ``error`` and its category.

    Tools report step failures as ToolError chained to the step's own
    error, so the ``__cause__`` chain is walked until a known type turns
    up. Anything outside the ssh_steps taxonomy is ``internal``.
    """
    current: BaseException | None = error
    while current is not None:
        for error_type, category in ERROR_CATEGORIES:
            if isinstance(current, error_type):
                return current, category
        current = current.__cause__
    return error, "internal"


def categorize(error: BaseException) -> str:
    """Return the taxonomy category of ``error``."""
    return classify(error)[1]


class ErrorHandlingMiddleware(StepsMiddleware):
    """Logs failed requests by category, counts them and re-raises.

    Expected categories (validation, cancelled) are logged at WARNING, the
    rest at ERROR. Internal errors always carry their traceback; the others
    only with ``include_traceback``.

    Example:
        >>> def on_error(exc, ctx):
        ...     alert(ctx.method, exc)
        >>> mcp.add_middleware(ErrorHandlingMiddleware(error_callback=on_error))
    """

    def __init__(
        self,
        logger: logging.Logger | None = None,
        include_traceback: bool = False,
        error_callback: ErrorCallback | None = None,
    ) -> None:
        """Initialize error handling middleware.

        Args:
            logger: Optional custom logger.
            include_traceback: Attach tracebacks to every category, not only internal.
            error_callback: Called with (exception, context) for each failure.
        """
        super().__init__(logger=logger)
        self.include_traceback = include_traceback
        self.error_callback = error_callback
        self._by_type: Counter[str] = Counter()
        self._by_category: Counter[str] = Counter()

    def get_error_stats(self) -> dict[str, int]:
        """Failure counts keyed by exception type name."""
        return dict(self._by_type)

    def get_category_stats(self) -> dict[str, int]:
        """Failure counts keyed by taxonomy category."""
        return dict(self._by_category)

    def reset_stats(self) -> None:
        self._by_type.clear()
        self._by_category.clear()

    def _record(self, error: Exception, method: str | None) -> None:
        cause, category = classify(error)
        self._by_type[type(cause).__name__] += 1
        self._by_category[category] += 1

        expected = category in EXPECTED_CATEGORIES
        self.logger.log(
            logging.WARNING if expected else logging.ERROR,
            "%s failed [%s] %s: %s",
            method,
            category,
            type(cause).__name__,
            cause,
            exc_info=error if (self.include_traceback or category == "internal") else None,
        )

    async def on_message(
        self,
        context: MiddlewareContext,
        call_next: Any,
    ) -> Any:
        """Pass the request on; log and re-raise whatever it raises."""
        try:
            return await call_next(context)
        except Exception as e:
            self._record(e, context.method)
            if self.error_callback is not None:
                try:
                    self.error_callback(e, context)
                except Exception as callback_error:
                    self.logger.warning("Error callback failed: %s", callback_error)
            raise
