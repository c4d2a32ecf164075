"""Execution request: one tagged unit of work per invocation."""

from dataclasses import dataclass
from enum import Enum


class Operation(Enum):
    """Operation kinds understood by the session service."""

    COMMAND = "command"
    SCRIPT = "script"
    GET = "get"
    PUT = "put"
    REMOVE = "remove"


@dataclass(frozen=True)
class ExecutionRequest:
    """Operation kind plus the parameters that kind needs.

    ``source`` and ``destination`` are the from/into pair for transfers;
    ``path`` is the script file for SCRIPT and the remote path for REMOVE.
    """

    operation: Operation
    command: str | None = None
    sudo: bool = False
    path: str | None = None
    source: str | None = None
    destination: str | None = None
    filter_by: str = "name"
    filter_regex: str | None = None
    fail_on_error: bool = True
    dry_run: bool = False
    verbose: bool = False

    @classmethod
    def command_request(cls, command: str, sudo: bool = False, **options: bool) -> "ExecutionRequest":
        return cls(Operation.COMMAND, command=command, sudo=sudo, **options)

    @classmethod
    def script_request(cls, path: str, sudo: bool = False, **options: bool) -> "ExecutionRequest":
        return cls(Operation.SCRIPT, path=path, sudo=sudo, **options)

    @classmethod
    def get_request(
        cls,
        remote_from: str,
        local_into: str,
        filter_by: str = "name",
        filter_regex: str | None = None,
        **options: bool,
    ) -> "ExecutionRequest":
        return cls(
            Operation.GET,
            source=remote_from,
            destination=local_into,
            filter_by=filter_by,
            filter_regex=filter_regex,
            **options,
        )

    @classmethod
    def put_request(
        cls,
        local_from: str,
        remote_into: str,
        filter_by: str = "name",
        filter_regex: str | None = None,
        **options: bool,
    ) -> "ExecutionRequest":
        return cls(
            Operation.PUT,
            source=local_from,
            destination=remote_into,
            filter_by=filter_by,
            filter_regex=filter_regex,
            **options,
        )

    @classmethod
    def remove_request(cls, path: str, **options: bool) -> "ExecutionRequest":
        return cls(Operation.REMOVE, path=path, **options)
