"""SSH steps middleware components."""

from ssh_steps.middleware.base import StepsMiddleware
from ssh_steps.middleware.errors import ErrorHandlingMiddleware, categorize, classify
from ssh_steps.middleware.logging import LoggingMiddleware, redact

__all__ = [
    "ErrorHandlingMiddleware",
    "LoggingMiddleware",
    "StepsMiddleware",
    "categorize",
    "classify",
    "redact",
]
