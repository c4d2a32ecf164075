"""Remote session service: one logical SSH session per invocation.

Every operation opens the gateway chain and the target, performs one action
and closes everything before returning. Command and script sessions echo
remote output to the session channel; transfer sessions never do.
"""

import logging
import posixpath
from collections.abc import AsyncIterator, Iterator, Mapping
from contextlib import ExitStack, asynccontextmanager, contextmanager
from pathlib import Path
from typing import Any, TextIO

import asyncssh

from ssh_steps.config.remote import validate_remote
from ssh_steps.errors import (
    InvalidFieldError,
    MissingFieldError,
    RemoteCommandError,
    TransferError,
    TransportError,
)
from ssh_steps.logs import (
    CorrelatedLogRouter,
    bind_correlation_id,
    current_correlation_id,
    get_session_logger,
    new_correlation_id,
)
from ssh_steps.models import (
    CommandResult,
    ExecutionRequest,
    Operation,
    RemoteConfig,
    TransferResult,
)
from ssh_steps.services.connection import open_session
from ssh_steps.services.executors import EntryFilter, stat_path, stream_process
from ssh_steps.services.output import SessionOutput
from ssh_steps.utils.shell import quote_path, script_interpreter, sudo_wrap

logger = logging.getLogger(__name__)


def _require(value: str | None, field: str) -> str:
    if value is None or not value.strip():
        raise MissingFieldError(f"{field} is null or empty", field)
    return value


class RemoteSessionService:
    """Runs commands, scripts and transfers against one remote."""

    def __init__(
        self,
        remote: RemoteConfig,
        fail_on_error: bool = True,
        dry_run: bool = False,
        sink: TextIO | None = None,
        router: CorrelatedLogRouter | None = None,
        verbose: bool = False,
    ) -> None:
        """Initialize the service.

        Args:
            remote: Validated remote descriptor
            fail_on_error: Raise on non-zero exits and failed transfers
            dry_run: Log what would happen without connecting
            sink: Text stream receiving this invocation's session output.
                None leaves routing to an enclosing router scope.
            router: Router used when ``sink`` is given
            verbose: Log every transferred path
        """
        self.remote = remote
        self.fail_on_error = fail_on_error
        self.dry_run = dry_run
        self.sink = sink
        self.verbose = verbose
        self._router = router
        self._channel = get_session_logger()

    @classmethod
    def create(
        cls,
        remote: Mapping[str, Any] | RemoteConfig | None,
        fail_on_error: bool = True,
        dry_run: bool = False,
        sink: TextIO | None = None,
        router: CorrelatedLogRouter | None = None,
        verbose: bool = False,
    ) -> "RemoteSessionService":
        """Validate ``remote`` and build a service bound to it.

        Raises:
            ValidationError: If the descriptor (or a gateway) is invalid
        """
        config = remote if isinstance(remote, RemoteConfig) else validate_remote(remote)
        return cls(
            config,
            fail_on_error=fail_on_error,
            dry_run=dry_run,
            sink=sink,
            router=router,
            verbose=verbose,
        )

    # Session plumbing

    @contextmanager
    def _log_scope(self) -> Iterator[None]:
        """Route this invocation's session output to ``sink`` if one was given."""
        if self.sink is None:
            yield
            return
        if self._router is None:
            self._router = CorrelatedLogRouter(self._channel)
        correlation_id = current_correlation_id() or new_correlation_id()
        with ExitStack() as stack:
            stack.enter_context(bind_correlation_id(correlation_id))
            stack.enter_context(self._router.scope(correlation_id, self.sink))
            yield

    @asynccontextmanager
    async def _session(
        self, interaction: bool = True
    ) -> AsyncIterator[tuple[asyncssh.SSHClientConnection, SessionOutput]]:
        """Open the connection chain for one operation.

        A dropped connection surfaces as TransportError whatever
        ``fail_on_error`` says, including one lost in the middle of an SFTP
        transfer.
        """
        output = SessionOutput(self.remote, interaction=interaction, channel=self._channel)
        try:
            async with open_session(self.remote) as conn:
                yield conn, output
        except (asyncssh.DisconnectError, asyncssh.SFTPConnectionLost, ConnectionError) as e:
            raise TransportError(self.remote.name, e) from e

    def _check(self, command: str, result: CommandResult) -> CommandResult:
        if result.returncode != 0:
            logger.warning(
                "Command on %s exited with status %d", self.remote.name, result.returncode
            )
            if self.fail_on_error:
                raise RemoteCommandError(command, result.returncode, self.remote.name)
        return result

    def _transfer_failed(self, message: str, error: BaseException | None = None) -> TransferResult:
        logger.error("Transfer on %s failed: %s", self.remote.name, message)
        if self.fail_on_error:
            if isinstance(error, TransferError):
                raise error
            raise TransferError(message) from error
        return TransferResult(success=False, message=message)

    def _dry_run(self, message: str, *args: Any) -> None:
        self._channel.info("[dry-run] " + message, *args)

    # Commands

    async def execute_command(self, command: str, sudo: bool = False) -> CommandResult:
        """Run ``command`` on the remote, echoing its output as it arrives.

        Args:
            command: Shell command line
            sudo: Run through sudo with the remote's password

        Returns:
            CommandResult with full stdout, stderr and exit status

        Raises:
            MissingFieldError: If command is empty
            RemoteCommandError: On non-zero exit with fail_on_error
            TransportError: If the connection cannot be opened or drops
        """
        _require(command, "command")
        with self._log_scope():
            if self.dry_run:
                self._dry_run(
                    "Would run on %s: %s%s", self.remote.label, "sudo " if sudo else "", command
                )
                return CommandResult(output="", error="", returncode=0, dry_run=True)

            command_line, stdin_data = (
                sudo_wrap(command, self.remote.password) if sudo else (command, None)
            )
            async with self._session() as (conn, output):
                output.info("Executing command on %s: %s", self.remote.label, command)
                result = await stream_process(
                    conn,
                    command_line,
                    output,
                    stdin_data=stdin_data,
                    encoding=self.remote.encoding,
                    pty=self.remote.pty,
                )
            output.info("Success: %s", result.success)
            return self._check(command, result)

    async def execute_script_from_file(self, path: str, sudo: bool = False) -> CommandResult:
        """Run a local script file on the remote.

        The interpreter comes from the script's shebang (``sh`` without one)
        and the script text is streamed on stdin, never echoed.

        Raises:
            MissingFieldError: If path is empty
            InvalidFieldError: If path is missing or is a directory
            RemoteCommandError: On non-zero exit with fail_on_error
        """
        _require(path, "script")
        script_path = Path(path)
        if not script_path.exists():
            raise InvalidFieldError(f"{path} does not exist.", "script")
        if script_path.is_dir():
            raise InvalidFieldError(f"{path} is a directory.", "script")

        with self._log_scope():
            script = script_path.read_text(encoding=self.remote.encoding)
            interpreter = script_interpreter(script)
            if self.dry_run:
                self._dry_run(
                    "Would run script %s on %s with %s", path, self.remote.label, interpreter
                )
                return CommandResult(output="", error="", returncode=0, dry_run=True)

            if sudo:
                command_line, password = sudo_wrap(interpreter, self.remote.password)
                stdin_data = (password or "") + script
            else:
                command_line, stdin_data = interpreter, script

            async with self._session() as (conn, output):
                output.info("Executing script %s on %s", script_path.name, self.remote.label)
                result = await stream_process(
                    conn,
                    command_line,
                    output,
                    stdin_data=stdin_data,
                    encoding=self.remote.encoding,
                    pty=self.remote.pty,
                )
            output.info("Success: %s", result.success)
            return self._check(f"{interpreter} < {script_path.name}", result)

    # Transfers

    async def get(
        self,
        remote_from: str,
        local_into: str,
        filter_by: str | None = "name",
        filter_regex: str | None = None,
    ) -> TransferResult:
        """Download a remote file or directory tree.

        Directory entries are filtered with ``filter_by``/``filter_regex``;
        a file named directly is always transferred.

        Returns:
            TransferResult with the number of files transferred

        Raises:
            TransferError: On failure with fail_on_error
            TransportError: If the connection cannot be opened or drops
        """
        _require(remote_from, "from")
        _require(local_into, "into")
        entry_filter = EntryFilter(filter_by, filter_regex)

        with self._log_scope():
            if self.dry_run:
                self._dry_run(
                    "Would get %s from %s into %s (%s)",
                    remote_from,
                    self.remote.label,
                    local_into,
                    entry_filter.describe(),
                )
                return TransferResult(
                    success=True, message=f"Dry run: get {remote_from}", dry_run=True
                )

            try:
                async with self._session(interaction=False) as (conn, output):
                    output.info("Receiving %s from %s", remote_from, self.remote.label)
                    async with conn.start_sftp_client() as sftp:
                        count = await self._download(sftp, remote_from, local_into, entry_filter)
            except (asyncssh.SFTPError, OSError, TransferError) as e:
                return self._transfer_failed(f"get {remote_from} -> {local_into}: {e}", e)

            message = f"Received {count} file(s) from {remote_from} into {local_into}"
            self._channel.info(message)
            return TransferResult(success=True, message=message, items_transferred=count)

    async def _download(
        self,
        sftp: asyncssh.SFTPClient,
        remote_from: str,
        local_into: str,
        entry_filter: EntryFilter,
    ) -> int:
        target = Path(local_into)
        name = posixpath.basename(remote_from.rstrip("/")) or remote_from

        if await sftp.isdir(remote_from):
            if target.is_dir():
                target = target / name
            count = await self._download_tree(sftp, remote_from, target, entry_filter)
            if entry_filter.active and count == 0:
                raise TransferError(
                    f"No file under {remote_from} matched {entry_filter.describe()}"
                )
            return count

        if not await sftp.exists(remote_from):
            raise TransferError(f"{remote_from} does not exist.")
        if target.is_dir():
            target = target / name
        await sftp.get(remote_from, str(target))
        if self.verbose:
            logger.info("Received %s -> %s", remote_from, target)
        return 1

    async def _download_tree(
        self,
        sftp: asyncssh.SFTPClient,
        remote_dir: str,
        local_dir: Path,
        entry_filter: EntryFilter,
    ) -> int:
        local_dir.mkdir(parents=True, exist_ok=True)
        count = 0
        for entry in await sftp.readdir(remote_dir):
            if entry.filename in (".", ".."):
                continue
            remote_path = posixpath.join(remote_dir, entry.filename)
            local_path = local_dir / entry.filename
            if entry.attrs.type == asyncssh.FILEXFER_TYPE_DIRECTORY:
                count += await self._download_tree(sftp, remote_path, local_path, entry_filter)
            elif entry_filter(entry.filename, remote_path):
                await sftp.get(remote_path, str(local_path))
                count += 1
                if self.verbose:
                    logger.info("Received %s -> %s", remote_path, local_path)
        return count

    async def put(
        self,
        local_from: str,
        remote_into: str,
        filter_by: str | None = "name",
        filter_regex: str | None = None,
    ) -> TransferResult:
        """Upload a local file or directory tree.

        Returns:
            TransferResult with the number of files transferred

        Raises:
            TransferError: On failure with fail_on_error
            TransportError: If the connection cannot be opened or drops
        """
        _require(local_from, "from")
        _require(remote_into, "into")
        entry_filter = EntryFilter(filter_by, filter_regex)

        with self._log_scope():
            if self.dry_run:
                self._dry_run(
                    "Would put %s into %s on %s (%s)",
                    local_from,
                    remote_into,
                    self.remote.label,
                    entry_filter.describe(),
                )
                return TransferResult(
                    success=True, message=f"Dry run: put {local_from}", dry_run=True
                )

            source = Path(local_from)
            if not source.exists():
                return self._transfer_failed(f"{local_from} does not exist.")

            try:
                async with self._session(interaction=False) as (conn, output):
                    output.info("Sending %s to %s", local_from, self.remote.label)
                    async with conn.start_sftp_client() as sftp:
                        count = await self._upload(sftp, source, remote_into, entry_filter)
            except (asyncssh.SFTPError, OSError, TransferError) as e:
                return self._transfer_failed(f"put {local_from} -> {remote_into}: {e}", e)

            message = f"Sent {count} file(s) from {local_from} into {remote_into}"
            self._channel.info(message)
            return TransferResult(success=True, message=message, items_transferred=count)

    async def _upload(
        self,
        sftp: asyncssh.SFTPClient,
        source: Path,
        remote_into: str,
        entry_filter: EntryFilter,
    ) -> int:
        target = remote_into
        if await sftp.isdir(remote_into):
            target = posixpath.join(remote_into, source.name)

        if source.is_dir():
            count = await self._upload_tree(sftp, source, target, entry_filter)
            if entry_filter.active and count == 0:
                raise TransferError(f"No file under {source} matched {entry_filter.describe()}")
            return count

        await sftp.put(str(source), target)
        if self.verbose:
            logger.info("Sent %s -> %s", source, target)
        return 1

    async def _upload_tree(
        self,
        sftp: asyncssh.SFTPClient,
        local_dir: Path,
        remote_dir: str,
        entry_filter: EntryFilter,
    ) -> int:
        await sftp.makedirs(remote_dir, exist_ok=True)
        count = 0
        for entry in sorted(local_dir.iterdir()):
            remote_path = posixpath.join(remote_dir, entry.name)
            if entry.is_dir():
                count += await self._upload_tree(sftp, entry, remote_path, entry_filter)
            elif entry_filter(entry.name, str(entry)):
                await sftp.put(str(entry), remote_path)
                count += 1
                if self.verbose:
                    logger.info("Sent %s -> %s", entry, remote_path)
        return count

    # Remove

    async def remove(self, remote_path: str) -> bool:
        """Delete a remote file or directory tree.

        Returns:
            True if the path was removed, False if it did not exist or
            (without fail_on_error) could not be removed

        Raises:
            MissingFieldError: If remote_path is empty
            RemoteCommandError: If deletion fails with fail_on_error
        """
        _require(remote_path, "path")
        with self._log_scope():
            if self.dry_run:
                self._dry_run("Would remove %s on %s", remote_path, self.remote.label)
                return True

            command = f"rm -rf -- {quote_path(remote_path)}"
            async with self._session() as (conn, output):
                kind = await stat_path(conn, remote_path)
                if kind is None:
                    logger.warning("%s does not exist on %s", remote_path, self.remote.name)
                    output.info("%s does not exist, nothing to remove", remote_path)
                    return False
                output.info("Removing %s %s on %s", kind, remote_path, self.remote.label)
                result = await conn.run(command, check=False)

            if result.returncode != 0:
                if self.fail_on_error:
                    raise RemoteCommandError(command, result.returncode, self.remote.name)
                logger.warning(
                    "Removing %s on %s exited with status %s",
                    remote_path,
                    self.remote.name,
                    result.returncode,
                )
                return False
            return True

    # Dispatch

    async def execute(self, request: ExecutionRequest) -> CommandResult | TransferResult | bool:
        """Run ``request`` with the request's own error and dry-run flags.

        Returns:
            CommandResult for commands and scripts, TransferResult for
            transfers, bool for remove
        """
        self.fail_on_error = request.fail_on_error
        self.dry_run = request.dry_run
        self.verbose = request.verbose

        operation = request.operation
        if operation is Operation.COMMAND:
            return await self.execute_command(request.command or "", request.sudo)
        if operation is Operation.SCRIPT:
            return await self.execute_script_from_file(request.path or "", request.sudo)
        if operation is Operation.GET:
            return await self.get(
                request.source or "",
                request.destination or "",
                request.filter_by,
                request.filter_regex,
            )
        if operation is Operation.PUT:
            return await self.put(
                request.source or "",
                request.destination or "",
                request.filter_by,
                request.filter_regex,
            )
        if operation is Operation.REMOVE:
            return await self.remove(request.path or "")
        raise InvalidFieldError(f"Unsupported operation: {operation}", "operation")
