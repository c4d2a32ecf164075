"""Interaction capture: echoing remote output into the session channel."""

import logging
from collections.abc import Callable
from typing import Any

from ssh_steps.logs.correlation import get_session_logger
from ssh_steps.models import RemoteConfig


class LineAssembler:
    """Split a chunked text stream into lines.

    The trailing partial line is held until more data arrives or the stream
    ends, so output without a final newline is still emitted by ``close()``.
    """

    def __init__(self, emit: Callable[[str], None]) -> None:
        self._emit = emit
        self._partial = ""

    def feed(self, chunk: str) -> None:
        if not chunk:
            return
        lines = (self._partial + chunk).split("\n")
        self._partial = lines.pop()
        for line in lines:
            self._emit(line.rstrip("\r"))

    def close(self) -> None:
        if self._partial:
            self._emit(self._partial.rstrip("\r"))
            self._partial = ""


class SessionOutput:
    """Writes one session's lines to the shared session channel.

    With ``interaction`` disabled (file transfers), remote output is never
    echoed; only ``info()`` messages carrying paths and counts get through.
    """

    def __init__(
        self,
        remote: RemoteConfig,
        interaction: bool = True,
        channel: logging.Logger | None = None,
    ) -> None:
        self.remote = remote
        self.interaction = interaction
        self.channel = channel or get_session_logger()
        self._prefix = f"{remote.name}|" if remote.append_name else ""

    def echo(self, line: str, stream: str = "stdout") -> None:
        """Echo one line of remote output."""
        if not self.interaction:
            return
        level = logging.WARNING if stream == "stderr" else logging.INFO
        self.channel.log(level, "%s%s", self._prefix, line)

    def info(self, message: str, *args: Any) -> None:
        """Log a message about the session itself (never remote output)."""
        self.channel.info(message, *args)

    def assembler(self, stream: str = "stdout") -> LineAssembler:
        return LineAssembler(lambda line: self.echo(line, stream))
