"""Line buffer with size/interval flushing and per-second rate limiting."""

import time
from collections.abc import Callable
from dataclasses import dataclass, field

RATE_LIMIT_MARKER = "[Rate limit exceeded: some output suppressed]"

DEFAULT_BUFFER_SIZE = 50
DEFAULT_FLUSH_INTERVAL_MS = 100
DEFAULT_RATE_LIMIT_LINES_PER_SEC = 1000


@dataclass
class LogBuffer:
    """Pending lines for one correlation context.

    Rate limiting uses fixed one-second windows. Once ``rate_limit`` lines
    were counted in a window, later lines in that window are dropped and a
    single marker takes the place of the first dropped line.
    """

    capacity: int = DEFAULT_BUFFER_SIZE
    flush_interval: float = DEFAULT_FLUSH_INTERVAL_MS / 1000.0  # seconds
    rate_limit: int = DEFAULT_RATE_LIMIT_LINES_PER_SEC  # 0 disables
    clock: Callable[[], float] = field(default=time.monotonic, repr=False)
    lines: list[str] = field(default_factory=list, init=False)
    last_flush: float = field(init=False)
    rate_count: int = field(default=0, init=False)
    window_start: float = field(init=False)

    def __post_init__(self) -> None:
        if self.capacity <= 0:
            raise ValueError(f"capacity must be > 0, got {self.capacity}")
        now = self.clock()
        self.last_flush = now
        self.window_start = now

    def admit(self, line: str) -> bool:
        """Append ``line`` unless the current window is over its limit.

        Returns:
            True if the line was buffered, False if it was dropped
        """
        if self.rate_limit > 0:
            now = self.clock()
            if now - self.window_start >= 1.0:
                self.rate_count = 0
                self.window_start = now

            self.rate_count += 1
            if self.rate_count > self.rate_limit:
                if self.rate_count == self.rate_limit + 1:
                    self.lines.append(RATE_LIMIT_MARKER)
                return False

        self.lines.append(line)
        return True

    def should_flush(self) -> bool:
        """Flush when full or when the interval since the last flush elapsed."""
        if not self.lines:
            return False
        if len(self.lines) >= self.capacity:
            return True
        return (self.clock() - self.last_flush) >= self.flush_interval

    def drain(self) -> list[str]:
        """Take every pending line and restart the flush interval."""
        pending = self.lines
        self.lines = []
        self.last_flush = self.clock()
        return pending
