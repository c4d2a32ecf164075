"""Step adapters: thin requests that pipelines invoke.

Each step checks its own parameters against the workspace, builds an
ExecutionRequest and hands the remote work to the coordinator.
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from ssh_steps.errors import ChannelUnavailableError, InvalidFieldError, MissingFieldError
from ssh_steps.execution import Execution, ExecutionCoordinator, StepContext
from ssh_steps.execution.coordinator import FailureCallback, SuccessCallback
from ssh_steps.models import ExecutionRequest
from ssh_steps.services.session import RemoteSessionService

logger = logging.getLogger(__name__)

CHANNEL_UNAVAILABLE = (
    "Unable to get the channel, Perhaps you forgot to surround the code with a step "
    "that provides this, such as: node, dockerNode"
)


@dataclass(frozen=True, kw_only=True)
class SSHStep:
    """Parameters shared by every step."""

    remote: Mapping[str, Any] | None = None
    fail_on_error: bool = True
    dry_run: bool = False


@dataclass(frozen=True, kw_only=True)
class CommandStep(SSHStep):
    command: str | None = None
    sudo: bool = False


@dataclass(frozen=True, kw_only=True)
class ScriptStep(SSHStep):
    script: str | None = None


@dataclass(frozen=True, kw_only=True)
class GetStep(SSHStep):
    from_path: str | None = None
    into: str | None = None
    filter_by: str = "name"
    filter_regex: str | None = None
    override: bool = False
    verbose: bool = False


@dataclass(frozen=True, kw_only=True)
class PutStep(SSHStep):
    from_path: str | None = None
    into: str | None = None
    filter_by: str = "name"
    filter_regex: str | None = None


@dataclass(frozen=True, kw_only=True)
class RemoveStep(SSHStep):
    path: str | None = None


def _required(value: str | None, field: str) -> str:
    if value is None or not value.strip():
        raise MissingFieldError(f"{field} is null or empty", field)
    return value


def prepare(step: SSHStep, context: StepContext) -> ExecutionRequest:
    """Validate ``step`` against the workspace and build its request.

    Raises:
        MissingFieldError: If a required parameter is empty
        InvalidFieldError: If a workspace path is missing, is a directory,
            or would be overwritten without ``override``
    """
    options = {"fail_on_error": step.fail_on_error, "dry_run": step.dry_run}

    if isinstance(step, CommandStep):
        command = _required(step.command, "command")
        return ExecutionRequest.command_request(command, step.sudo, **options)

    if isinstance(step, ScriptStep):
        script = context.resolve(_required(step.script, "script"))
        if not script.exists():
            raise InvalidFieldError(f"{script} does not exist.", "script")
        if script.is_dir():
            raise InvalidFieldError(f"{script} is a directory.", "script")
        return ExecutionRequest.script_request(str(script), **options)

    if isinstance(step, GetStep):
        remote_from = _required(step.from_path, "from")
        into = context.resolve(_required(step.into, "into"))
        if into.exists() and not step.override:
            raise InvalidFieldError(
                f"{into} already exist. Please set override to true just in case.", "into"
            )
        return ExecutionRequest.get_request(
            remote_from,
            str(into),
            step.filter_by,
            step.filter_regex,
            verbose=step.verbose,
            **options,
        )

    if isinstance(step, PutStep):
        local_from = context.resolve(_required(step.from_path, "from"))
        if not local_from.exists():
            raise InvalidFieldError(f"{local_from} does not exist.", "from")
        into = _required(step.into, "into")
        return ExecutionRequest.put_request(
            str(local_from), into, step.filter_by, step.filter_regex, **options
        )

    if isinstance(step, RemoveStep):
        return ExecutionRequest.remove_request(_required(step.path, "path"), **options)

    raise InvalidFieldError(f"Unknown step type: {type(step).__name__}", "step")


def run_step(
    step: SSHStep,
    context: StepContext,
    coordinator: ExecutionCoordinator,
    on_success: SuccessCallback | None = None,
    on_failure: FailureCallback | None = None,
) -> Execution:
    """Validate ``step`` and schedule its remote work.

    Parameters and the remote descriptor are checked before anything is
    scheduled; nothing connects until the worker runs.

    Raises:
        ChannelUnavailableError: If the context provides no channel
        ValidationError: If the step or its remote is invalid
    """
    channel = context.channel
    if channel is None:
        raise ChannelUnavailableError(CHANNEL_UNAVAILABLE)

    request = prepare(step, context)
    service = RemoteSessionService.create(
        step.remote,
        fail_on_error=request.fail_on_error,
        dry_run=request.dry_run,
        verbose=request.verbose,
    )
    logger.debug(
        "Running %s step on %s", request.operation.value, service.remote.name
    )

    async def work() -> Any:
        return await channel.call(lambda: service.execute(request))

    return coordinator.start(
        work,
        identity=context.identity,
        on_success=on_success,
        on_failure=on_failure,
        sink=context.sink,
    )
