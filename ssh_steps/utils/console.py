"""Console log formatter.

Lines read ``time | LEVEL | component | run | message`` where ``run`` is
the first block of the correlation id of the execution that logged the
line, so interleaved concurrent runs can be told apart on the console.
"""

import logging
import re
import sys
from datetime import datetime
from typing import TextIO

from ssh_steps.logs.correlation import current_correlation_id

RESET = "\033[0m"
DIM = "\033[2m"

LEVEL_COLORS = {
    "DEBUG": "\033[90m",
    "INFO": "\033[92m",
    "WARNING": "\033[93m",
    "ERROR": "\033[91m",
    "CRITICAL": "\033[41m\033[37m\033[1m",
}

# Longest matching prefix wins
COMPONENT_COLORS = (
    ("ssh_steps.execution", "\033[95m"),
    ("ssh_steps.services", "\033[94m"),
    ("ssh_steps.middleware", "\033[33m"),
    ("ssh_steps.config", "\033[32m"),
    ("ssh_steps.logs", "\033[36m"),
    ("ssh_steps", "\033[96m"),
)
RUN_COLOR = "\033[96m"
NO_RUN = "-" * 8

HIGHLIGHTS = (
    # user@host:port
    (re.compile(r"(\w[\w.\-]*@[\w.\-]+:\d+)"), "\033[95m"),
    # durations
    (re.compile(r"(\d+(?:\.\d+)?ms)"), "\033[93m"),
    # exit statuses
    (re.compile(r"(exit(?:ed with)? status \d+)"), "\033[91m"),
)


def stream_supports_color(stream: TextIO | None = None) -> bool:
    """Return True if ``stream`` (default stderr) is an interactive terminal."""
    stream = stream or sys.stderr
    isatty = getattr(stream, "isatty", None)
    return bool(isatty and isatty())


def short_run_id(correlation_id: str | None) -> str:
    if not correlation_id:
        return NO_RUN
    return correlation_id.split("-", 1)[0][:8]


class ConsoleFormatter(logging.Formatter):
    """Column formatter for the process console."""

    def __init__(self, use_colors: bool = True) -> None:
        super().__init__()
        self.use_colors = use_colors

    def _paint(self, text: str, color: str) -> str:
        return f"{color}{text}{RESET}" if self.use_colors else text

    def _component(self, name: str) -> str:
        short = name.removeprefix("ssh_steps.")
        color = next(
            (c for prefix, c in COMPONENT_COLORS if name.startswith(prefix)), ""
        )
        return self._paint(f"{short:<20}", color) if color else f"{short:<20}"

    def _run(self, record: logging.LogRecord) -> str:
        correlation_id = getattr(record, "correlation_id", None) or current_correlation_id()
        run = short_run_id(correlation_id)
        return self._paint(run, RUN_COLOR) if correlation_id else run

    def _highlight(self, message: str) -> str:
        if not self.use_colors:
            return message
        for pattern, color in HIGHLIGHTS:
            message = pattern.sub(f"{color}\\1{RESET}", message)
        return message

    def format(self, record: logging.LogRecord) -> str:
        dt = datetime.fromtimestamp(record.created)
        timestamp = self._paint(f"{dt:%H:%M:%S}.{int(record.msecs):03d}", DIM)
        level = self._paint(
            f"{record.levelname:<8}", LEVEL_COLORS.get(record.levelname, "")
        )
        sep = self._paint("|", DIM)

        line = (
            f"{timestamp} {sep} {level} {sep} {self._component(record.name)} {sep} "
            f"{self._run(record)} {sep} {self._highlight(record.getMessage())}"
        )
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line
