"""Collaborators a pipeline hands to each step invocation."""

import io
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol, TextIO, TypeVar

T = TypeVar("T")


class Channel(Protocol):
    """Where a step's remote work actually runs."""

    async def call(self, fn: Callable[[], Awaitable[T]]) -> T: ...


class LocalChannel:
    """Channel that runs the work in the current process."""

    async def call(self, fn: Callable[[], Awaitable[T]]) -> T:
        return await fn()


@dataclass
class StepContext:
    """Working area, output sink, identity and channel of one invocation.

    ``channel`` is None when the invocation is not wrapped in anything that
    provides one.
    """

    workspace: Path = field(default_factory=Path.cwd)
    sink: TextIO = field(default_factory=io.StringIO)
    identity: Any = None
    channel: Channel | None = field(default_factory=LocalChannel)

    def resolve(self, path: str) -> Path:
        """Resolve ``path`` against the workspace."""
        return self.workspace / path
