"""Tests for the shared worker pool."""

import asyncio

import pytest

from ssh_steps.execution import WorkerPool


async def answer() -> int:
    return 42


class TestWorkerPool:
    """Worker task lifecycle."""

    @pytest.mark.asyncio
    async def test_submit_runs_on_named_worker(self) -> None:
        pool = WorkerPool()

        task = pool.submit(answer())

        assert task.get_name() == "ssh-steps-worker-1"
        assert await task == 42

    @pytest.mark.asyncio
    async def test_worker_names_are_unique(self) -> None:
        pool = WorkerPool(name_prefix="step")

        tasks = [pool.submit(answer()) for _ in range(3)]
        await asyncio.gather(*tasks)

        assert [t.get_name() for t in tasks] == ["step-1", "step-2", "step-3"]

    @pytest.mark.asyncio
    async def test_finished_workers_are_forgotten(self) -> None:
        pool = WorkerPool()
        release = asyncio.Event()

        async def blocked() -> None:
            await release.wait()

        task = pool.submit(blocked())
        await asyncio.sleep(0)
        assert pool.active_count == 1

        release.set()
        await task
        await asyncio.sleep(0)
        assert pool.active_count == 0

    @pytest.mark.asyncio
    async def test_shutdown_cancels_running_workers(self) -> None:
        pool = WorkerPool()

        task = pool.submit(asyncio.sleep(60))
        await asyncio.sleep(0)
        await pool.shutdown()

        assert task.cancelled()
        assert pool.is_shutdown

    @pytest.mark.asyncio
    async def test_submit_after_shutdown(self) -> None:
        pool = WorkerPool()
        await pool.shutdown()
        coro = answer()

        with pytest.raises(RuntimeError, match="shut down"):
            pool.submit(coro)

        assert coro.cr_frame is None
