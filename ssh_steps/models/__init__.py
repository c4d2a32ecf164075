"""Data models for SSH steps."""

from ssh_steps.models.command import CommandResult, TransferResult
from ssh_steps.models.remote import RemoteConfig
from ssh_steps.models.request import ExecutionRequest, Operation

__all__ = [
    "CommandResult",
    "ExecutionRequest",
    "Operation",
    "RemoteConfig",
    "TransferResult",
]
