"""Asynchronous execution of step work on the shared worker pool.

``ExecutionCoordinator.start()`` returns at once. The work runs on a worker
task with a fresh correlation id bound and the caller's identity
impersonated; its outcome is reported exactly once through the success or
failure callback.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from contextlib import ExitStack
from enum import Enum
from typing import Any, TextIO

from ssh_steps.errors import CancellationError, UnsupportedResumeError
from ssh_steps.execution.identity import ContextIdentityRealm, IdentityRealm
from ssh_steps.execution.pool import WorkerPool
from ssh_steps.logs import CorrelatedLogRouter, bind_correlation_id, new_correlation_id

logger = logging.getLogger(__name__)

RESUME_UNSUPPORTED = "Resume after a restart not supported for non-blocking synchronous steps"

Work = Callable[[], Awaitable[Any]]
SuccessCallback = Callable[[Any], None]
FailureCallback = Callable[[BaseException], None]


class ExecutionState(Enum):
    """Lifecycle of one execution."""

    SCHEDULED = "scheduled"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def finished(self) -> bool:
        return self not in (ExecutionState.SCHEDULED, ExecutionState.RUNNING)


class Execution:
    """Handle on one scheduled invocation."""

    def __init__(
        self,
        work: Work,
        identity: Any = None,
        on_success: SuccessCallback | None = None,
        on_failure: FailureCallback | None = None,
        realm: IdentityRealm | None = None,
        router: CorrelatedLogRouter | None = None,
        sink: TextIO | None = None,
    ) -> None:
        self.correlation_id = new_correlation_id()
        self.identity = identity
        self.state = ExecutionState.SCHEDULED
        self.stop_cause: CancellationError | None = None
        self.late_cancel_cause: BaseException | None = None

        self._work = work
        self._on_success = on_success
        self._on_failure = on_failure
        self._realm = realm or ContextIdentityRealm()
        self._router = router
        self._sink = sink
        self._task: asyncio.Task[Any] | None = None
        self._worker_name: str | None = None
        self._reported = False
        self._result: Any = None
        self._error: BaseException | None = None
        self._done = asyncio.Event()

    def _attach(self, task: asyncio.Task[Any]) -> None:
        self._task = task
        task.add_done_callback(self._on_task_done)

    # Reporting

    def _report_success(self, result: Any) -> None:
        if self._reported:
            return
        self._reported = True
        self._result = result
        self.state = ExecutionState.SUCCEEDED
        self._done.set()
        logger.info("Execution %s succeeded", self.correlation_id)
        if self._on_success is not None:
            try:
                self._on_success(result)
            except Exception:
                logger.exception("Success callback for %s raised", self.correlation_id)

    def _report_failure(self, error: BaseException, state: ExecutionState) -> None:
        if self._reported:
            return
        self._reported = True
        self._error = error
        self.state = state
        self._done.set()
        logger.info(
            "Execution %s %s: %s", self.correlation_id, state.value, error
        )
        if self._on_failure is not None:
            try:
                self._on_failure(error)
            except Exception:
                logger.exception("Failure callback for %s raised", self.correlation_id)

    # Worker body

    async def _run(self) -> Any:
        task = asyncio.current_task()
        self._worker_name = task.get_name() if task is not None else None
        self.state = ExecutionState.RUNNING
        logger.debug("Execution %s running in %s", self.correlation_id, self._worker_name)

        # Callbacks run after the scopes unwind and the sink is flushed
        try:
            with ExitStack() as stack:
                stack.enter_context(bind_correlation_id(self.correlation_id))
                if self._router is not None and self._sink is not None:
                    stack.enter_context(self._router.scope(self.correlation_id, self._sink))
                stack.enter_context(self._realm.impersonate(self.identity))
                result = await self._work()
        except asyncio.CancelledError:
            if self.stop_cause is None:
                self._report_failure(
                    CancellationError("Execution was cancelled by shutdown"),
                    ExecutionState.CANCELLED,
                )
            raise
        except Exception as e:
            if self.stop_cause is not None:
                self.stop_cause.add_suppressed(e)
            else:
                self._report_failure(e, ExecutionState.FAILED)
            return None

        if self.stop_cause is None:
            self._report_success(result)
        return result

    def _on_task_done(self, task: asyncio.Task[Any]) -> None:
        # A task cancelled before it ever ran never enters _run
        if task.cancelled() and not self._reported:
            self._report_failure(
                self.stop_cause or CancellationError("Execution was cancelled"),
                ExecutionState.CANCELLED,
            )

    # Public API

    def cancel(self, cause: BaseException | None = None) -> bool:
        """Stop the execution cooperatively.

        The failure reported is a CancellationError chained to ``cause``.
        Errors raised by the work after this point are attached to it as
        suppressed errors. Cancelling a finished execution only records
        ``cause``.

        Returns:
            True if the execution was still in flight
        """
        if self._reported:
            self.late_cancel_cause = cause
            if self._error is not None and cause is not None:
                self._error.add_note(f"Cancelled after completion: {cause}")
            logger.debug(
                "Cancel of finished execution %s recorded: %s", self.correlation_id, cause
            )
            return False

        message = f"Execution was cancelled: {cause}" if cause else "Execution was cancelled"
        stop_cause = CancellationError(message)
        stop_cause.__cause__ = cause
        self.stop_cause = stop_cause

        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._report_failure(stop_cause, ExecutionState.CANCELLED)
        return True

    def resume_after_restart(self) -> None:
        """Fail the execution: in-flight state does not survive a restart."""
        logger.warning("Execution %s cannot be resumed after a restart", self.correlation_id)
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._report_failure(UnsupportedResumeError(RESUME_UNSUPPORTED), ExecutionState.FAILED)

    @property
    def status(self) -> str:
        if self._worker_name is None:
            return "not yet scheduled"
        return f"running in worker: {self._worker_name}"

    @property
    def done(self) -> bool:
        return self._reported

    async def wait(self) -> Any:
        """Wait for the outcome.

        Returns:
            The work's result

        Raises:
            BaseException: The reported failure
        """
        await self._done.wait()
        if self._error is not None:
            raise self._error
        return self._result


class ExecutionCoordinator:
    """Schedules step work on the shared worker pool."""

    def __init__(
        self,
        pool: WorkerPool,
        router: CorrelatedLogRouter | None = None,
        realm: IdentityRealm | None = None,
    ) -> None:
        self.pool = pool
        self.router = router or CorrelatedLogRouter()
        self.realm = realm or ContextIdentityRealm()

    def start(
        self,
        work: Work,
        identity: Any = None,
        on_success: SuccessCallback | None = None,
        on_failure: FailureCallback | None = None,
        sink: TextIO | None = None,
    ) -> Execution:
        """Schedule ``work`` and return without waiting for it.

        Args:
            work: Zero-argument coroutine function doing the remote work
            identity: Identity to impersonate while the work runs
            on_success: Called with the work's result
            on_failure: Called with the error, including cancellation
            sink: Text stream receiving the run's session output

        Returns:
            Execution handle

        Raises:
            RuntimeError: If the pool has been shut down
        """
        execution = Execution(
            work,
            identity=identity,
            on_success=on_success,
            on_failure=on_failure,
            realm=self.realm,
            router=self.router,
            sink=sink,
        )
        execution._attach(self.pool.submit(execution._run()))
        logger.info("Scheduled execution %s", execution.correlation_id)
        return execution
