"""Tests for correlation id context handling."""

import asyncio
import logging

import pytest

from ssh_steps.logs import (
    SESSION_LOGGER_NAME,
    CorrelationFilter,
    bind_correlation_id,
    current_correlation_id,
    get_session_logger,
    new_correlation_id,
)


def test_new_ids_are_unique() -> None:
    assert len({new_correlation_id() for _ in range(100)}) == 100


def test_bind_restores_previous_value() -> None:
    assert current_correlation_id() is None
    with bind_correlation_id("outer"):
        with bind_correlation_id("inner"):
            assert current_correlation_id() == "inner"
        assert current_correlation_id() == "outer"
    assert current_correlation_id() is None


def test_bind_restores_on_error() -> None:
    with pytest.raises(ValueError):
        with bind_correlation_id("run"):
            raise ValueError("boom")
    assert current_correlation_id() is None


@pytest.mark.asyncio
async def test_ids_are_task_local() -> None:
    seen: dict[str, str | None] = {}

    async def worker(name: str) -> None:
        with bind_correlation_id(name):
            await asyncio.sleep(0)
            seen[name] = current_correlation_id()

    await asyncio.gather(worker("a"), worker("b"))

    assert seen == {"a": "a", "b": "b"}
    assert current_correlation_id() is None


def test_filter_stamps_record() -> None:
    record = logging.LogRecord("x", logging.INFO, __file__, 1, "msg", None, None)
    with bind_correlation_id("run"):
        assert CorrelationFilter().filter(record)
    assert record.correlation_id == "run"


def test_session_logger_does_not_propagate() -> None:
    session_logger = get_session_logger()

    assert session_logger.name == SESSION_LOGGER_NAME
    assert session_logger.propagate is False
    assert sum(isinstance(f, CorrelationFilter) for f in session_logger.filters) == 1
    get_session_logger()
    assert sum(isinstance(f, CorrelationFilter) for f in session_logger.filters) == 1
