"""Asynchronous execution of step invocations."""

from ssh_steps.execution.context import Channel, LocalChannel, StepContext
from ssh_steps.execution.coordinator import (
    RESUME_UNSUPPORTED,
    Execution,
    ExecutionCoordinator,
    ExecutionState,
)
from ssh_steps.execution.identity import (
    ContextIdentityRealm,
    IdentityRealm,
    current_identity,
    impersonate,
)
from ssh_steps.execution.pool import WorkerPool

__all__ = [
    "RESUME_UNSUPPORTED",
    "Channel",
    "ContextIdentityRealm",
    "Execution",
    "ExecutionCoordinator",
    "ExecutionState",
    "IdentityRealm",
    "LocalChannel",
    "StepContext",
    "WorkerPool",
    "current_identity",
    "impersonate",
]
