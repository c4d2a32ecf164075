"""MCP tools exposing the five SSH steps."""

import io
import logging
from collections.abc import Callable, Mapping
from typing import Any

from fastmcp.exceptions import ToolError

from ssh_steps.config import SSHConfigParser
from ssh_steps.errors import InvalidFieldError, SSHStepsError
from ssh_steps.execution import StepContext
from ssh_steps.models import CommandResult, TransferResult
from ssh_steps.services.state import get_dependencies
from ssh_steps.steps import (
    CommandStep,
    GetStep,
    PutStep,
    RemoveStep,
    ScriptStep,
    SSHStep,
    run_step,
)

logger = logging.getLogger(__name__)

RemoteArg = dict[str, Any] | str
StepFactory = Callable[[Mapping[str, Any]], SSHStep]


def _resolve_remote(remote: RemoteArg) -> Mapping[str, Any]:
    """Turn a remote argument into a descriptor map.

    A string names a Host block of the configured SSH config file.

    Raises:
        InvalidFieldError: If no Host block has that name
    """
    if not isinstance(remote, str):
        return remote

    settings = get_dependencies().settings
    remotes = SSHConfigParser(settings.ssh_config_path).parse()
    if remote not in remotes:
        available = ", ".join(sorted(remotes)) or "(none)"
        raise InvalidFieldError(
            f"Unknown remote '{remote}'. Available: {available}", "remote"
        )
    return remotes[remote]


def _format_result(result: Any) -> str:
    if isinstance(result, CommandResult):
        prefix = "[dry-run] " if result.dry_run else ""
        lines = [f"{prefix}exit status: {result.returncode}"]
        if result.output:
            lines.append(result.output.rstrip("\n"))
        if result.error:
            lines.append("[stderr]")
            lines.append(result.error.rstrip("\n"))
        return "\n".join(lines)
    if isinstance(result, TransferResult):
        status = "ok" if result.success else "failed"
        return f"{status}: {result.message} ({result.items_transferred} file(s))"
    if isinstance(result, bool):
        return "removed" if result else "nothing removed"
    return str(result)


def _with_log(text: str, sink: io.StringIO) -> str:
    log = sink.getvalue()
    if not log:
        return text
    return f"{text}\n\n--- log ---\n{log.rstrip()}"


async def _run(remote: RemoteArg, make_step: StepFactory) -> str:
    """Build the step for ``remote``, run it and wait for its outcome.

    Raises:
        ToolError: Chained to the step failure, carrying its message and
            the session log captured before it failed
    """
    deps = get_dependencies()
    sink = io.StringIO()
    context = StepContext(workspace=deps.settings.workspace, sink=sink)

    try:
        step = make_step(_resolve_remote(remote))
        execution = run_step(step, context, deps.coordinator)
        result = await execution.wait()
    except SSHStepsError as e:
        logger.debug("Step failed: %s", e)
        raise ToolError(_with_log(str(e), sink)) from e

    return _with_log(_format_result(result), sink)


async def ssh_command(
    remote: RemoteArg,
    command: str,
    sudo: bool = False,
    fail_on_error: bool = True,
    dry_run: bool = False,
) -> str:
    """Run a shell command on a remote host.

    Args:
        remote: Remote descriptor map, or the name of an SSH config host
        command: Command line to run
        sudo: Run through sudo with the remote's password
        fail_on_error: Treat a non-zero exit as an error
        dry_run: Only log what would run

    Returns:
        Exit status and output, followed by the captured session log
    """
    return await _run(
        remote,
        lambda resolved: CommandStep(
            remote=resolved,
            command=command,
            sudo=sudo,
            fail_on_error=fail_on_error,
            dry_run=dry_run,
        ),
    )


async def ssh_script(
    remote: RemoteArg,
    script: str,
    fail_on_error: bool = True,
    dry_run: bool = False,
) -> str:
    """Run a script file from the workspace on a remote host.

    Args:
        remote: Remote descriptor map, or the name of an SSH config host
        script: Script path relative to the workspace
        fail_on_error: Treat a non-zero exit as an error
        dry_run: Only log what would run
    """
    return await _run(
        remote,
        lambda resolved: ScriptStep(
            remote=resolved, script=script, fail_on_error=fail_on_error, dry_run=dry_run
        ),
    )


async def ssh_get(
    remote: RemoteArg,
    from_path: str,
    into: str,
    filter_by: str = "name",
    filter_regex: str | None = None,
    override: bool = False,
    fail_on_error: bool = True,
    dry_run: bool = False,
) -> str:
    """Download a remote file or directory into the workspace.

    Args:
        remote: Remote descriptor map, or the name of an SSH config host
        from_path: Remote file or directory
        into: Destination relative to the workspace
        filter_by: Entry attribute the regex is matched against (name or path)
        filter_regex: Only transfer directory entries matching this pattern
        override: Overwrite an existing destination
        fail_on_error: Treat a failed transfer as an error
        dry_run: Only log what would be transferred
    """
    return await _run(
        remote,
        lambda resolved: GetStep(
            remote=resolved,
            from_path=from_path,
            into=into,
            filter_by=filter_by,
            filter_regex=filter_regex,
            override=override,
            fail_on_error=fail_on_error,
            dry_run=dry_run,
        ),
    )


async def ssh_put(
    remote: RemoteArg,
    from_path: str,
    into: str,
    filter_by: str = "name",
    filter_regex: str | None = None,
    fail_on_error: bool = True,
    dry_run: bool = False,
) -> str:
    """Upload a workspace file or directory to a remote host.

    Args:
        remote: Remote descriptor map, or the name of an SSH config host
        from_path: Source relative to the workspace
        into: Remote destination
        filter_by: Entry attribute the regex is matched against (name or path)
        filter_regex: Only transfer directory entries matching this pattern
        fail_on_error: Treat a failed transfer as an error
        dry_run: Only log what would be transferred
    """
    return await _run(
        remote,
        lambda resolved: PutStep(
            remote=resolved,
            from_path=from_path,
            into=into,
            filter_by=filter_by,
            filter_regex=filter_regex,
            fail_on_error=fail_on_error,
            dry_run=dry_run,
        ),
    )


async def ssh_remove(
    remote: RemoteArg,
    path: str,
    fail_on_error: bool = True,
    dry_run: bool = False,
) -> str:
    """Remove a remote file or directory tree.

    Args:
        remote: Remote descriptor map, or the name of an SSH config host
        path: Remote path to delete
        fail_on_error: Treat a failed delete as an error
        dry_run: Only log what would be removed
    """
    return await _run(
        remote,
        lambda resolved: RemoveStep(
            remote=resolved, path=path, fail_on_error=fail_on_error, dry_run=dry_run
        ),
    )
