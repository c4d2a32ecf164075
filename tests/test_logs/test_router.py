"""Tests for CorrelatedLogHandler and CorrelatedLogRouter."""

import asyncio
import io
import logging
import uuid

import pytest

from ssh_steps.logs import (
    RATE_LIMIT_MARKER,
    CorrelatedLogHandler,
    CorrelatedLogRouter,
    CorrelationFilter,
    bind_correlation_id,
    new_correlation_id,
)


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def channel() -> logging.Logger:
    """Private logger standing in for the shared session channel."""
    lg = logging.getLogger(f"test.channel.{uuid.uuid4().hex}")
    lg.addFilter(CorrelationFilter())
    lg.setLevel(logging.DEBUG)
    lg.propagate = False
    return lg


def _lines(sink: io.StringIO) -> list[str]:
    return sink.getvalue().splitlines()


class TestHandler:
    """CorrelatedLogHandler behaviour."""

    def test_binds_to_first_correlation_id(self) -> None:
        sink = io.StringIO()
        handler = CorrelatedLogHandler(sink, buffer_size=1)

        assert handler.publish("mine", "run-a")
        assert not handler.publish("theirs", "run-b")
        handler.close()

        assert handler.correlation_id == "run-a"
        assert _lines(sink) == ["mine"]

    def test_foreign_lines_dropped_silently(self) -> None:
        sink = io.StringIO()
        handler = CorrelatedLogHandler(sink, "run-a", buffer_size=1)

        handler.publish("x", "run-b")
        handler.publish("y", None)
        handler.close()

        assert sink.getvalue() == ""

    def test_buffers_until_capacity(self) -> None:
        sink = io.StringIO()
        clock = FakeClock()
        handler = CorrelatedLogHandler(sink, "run", buffer_size=3, clock=clock)

        handler.publish("1", "run")
        handler.publish("2", "run")
        assert sink.getvalue() == ""
        assert handler.pending == 2

        handler.publish("3", "run")
        assert _lines(sink) == ["1", "2", "3"]
        assert handler.pending == 0

    def test_flushes_after_interval(self) -> None:
        sink = io.StringIO()
        clock = FakeClock()
        handler = CorrelatedLogHandler(
            sink, "run", buffer_size=50, flush_interval_ms=100, clock=clock
        )

        handler.publish("1", "run")
        assert sink.getvalue() == ""
        clock.advance(0.1)
        handler.publish("2", "run")

        assert _lines(sink) == ["1", "2"]

    def test_rate_limit_burst(self) -> None:
        """A burst of N+5 lines yields N lines plus one marker."""
        sink = io.StringIO()
        clock = FakeClock()
        handler = CorrelatedLogHandler(
            sink, "run", buffer_size=1000, rate_limit=10, clock=clock
        )

        for i in range(15):
            handler.publish(f"line {i}", "run")
        handler.close()

        lines = _lines(sink)
        assert lines == [f"line {i}" for i in range(10)] + [RATE_LIMIT_MARKER]

    def test_rate_limit_resets_in_next_window(self) -> None:
        sink = io.StringIO()
        clock = FakeClock()
        handler = CorrelatedLogHandler(
            sink, "run", buffer_size=1000, rate_limit=10, clock=clock
        )

        for i in range(15):
            handler.publish(f"a{i}", "run")
        clock.advance(1.0)
        for i in range(3):
            handler.publish(f"b{i}", "run")
        handler.close()

        lines = _lines(sink)
        assert lines.count(RATE_LIMIT_MARKER) == 1
        assert lines[-3:] == ["b0", "b1", "b2"]
        assert len(lines) == 10 + 1 + 3

    def test_close_flushes_but_keeps_sink_open(self) -> None:
        sink = io.StringIO()
        handler = CorrelatedLogHandler(sink, "run", buffer_size=50)

        handler.publish("pending", "run")
        handler.close()

        assert not sink.closed
        assert _lines(sink) == ["pending"]
        sink.write("still usable\n")

    def test_emit_uses_record_correlation_id(self, channel: logging.Logger) -> None:
        sink = io.StringIO()
        handler = CorrelatedLogHandler(sink, "run", buffer_size=1)
        channel.addHandler(handler)
        try:
            with bind_correlation_id("run"):
                channel.info("hello %s", "world")
            with bind_correlation_id("other"):
                channel.info("not mine")
        finally:
            channel.removeHandler(handler)
            handler.close()

        assert _lines(sink) == ["hello world"]


class TestRouter:
    """CorrelatedLogRouter behaviour."""

    def test_scope_attaches_and_detaches(self, channel: logging.Logger) -> None:
        router = CorrelatedLogRouter(channel, buffer_size=50)
        sink = io.StringIO()

        with router.scope("run", sink) as handler:
            assert handler in channel.handlers
            assert router.active_scopes == 1
            with bind_correlation_id("run"):
                channel.info("inside")

        assert handler not in channel.handlers
        assert router.active_scopes == 0
        assert _lines(sink) == ["inside"]
        assert not sink.closed

    def test_scope_flushes_on_error(self, channel: logging.Logger) -> None:
        router = CorrelatedLogRouter(channel, buffer_size=50)
        sink = io.StringIO()

        with pytest.raises(RuntimeError):
            with router.scope("run", sink):
                with bind_correlation_id("run"):
                    channel.info("before failure")
                raise RuntimeError("boom")

        assert _lines(sink) == ["before failure"]
        assert router.active_scopes == 0

    def test_publish_fans_out_by_correlation_id(self, channel: logging.Logger) -> None:
        router = CorrelatedLogRouter(channel, buffer_size=50)
        sink_a, sink_b = io.StringIO(), io.StringIO()

        with router.scope("a", sink_a), router.scope("b", sink_b):
            router.publish("for a", "a")
            router.publish("for b", "b")
            router.publish("for nobody", "c")

        assert _lines(sink_a) == ["for a"]
        assert _lines(sink_b) == ["for b"]

    @pytest.mark.asyncio
    async def test_concurrent_invocations_do_not_interleave(
        self, channel: logging.Logger
    ) -> None:
        """Two invocations on one channel each see only their own lines."""
        router = CorrelatedLogRouter(channel, buffer_size=7, flush_interval_ms=10_000)
        sinks = {"A": io.StringIO(), "B": io.StringIO()}

        async def invocation(name: str) -> None:
            correlation_id = new_correlation_id()
            with bind_correlation_id(correlation_id), router.scope(
                correlation_id, sinks[name]
            ):
                for i in range(20):
                    channel.info("%s line %d", name, i)
                    await asyncio.sleep(0)

        await asyncio.gather(invocation("A"), invocation("B"))

        for name, sink in sinks.items():
            lines = _lines(sink)
            assert lines == [f"{name} line {i}" for i in range(20)]
