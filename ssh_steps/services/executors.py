"""Low-level SSH executors used by the session service."""

import asyncio
import re
from typing import TYPE_CHECKING

from ssh_steps.errors import InvalidFieldError
from ssh_steps.models import CommandResult
from ssh_steps.utils.shell import quote_path

if TYPE_CHECKING:
    import asyncssh

    from ssh_steps.services.output import LineAssembler, SessionOutput

CHUNK_SIZE = 4096

FILTER_ATTRIBUTES = ("name", "path")


def _decode(value: str | bytes | None) -> str:
    """Normalize asyncssh output that may be bytes, str or None."""
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return value


async def stat_path(conn: "asyncssh.SSHClientConnection", path: str) -> str | None:
    """Determine if path is a file, directory, or doesn't exist.

    Returns:
        'file', 'directory', or None if path doesn't exist.
    """
    cmd = f'stat -c "%F" {quote_path(path)} 2>/dev/null'
    result = await conn.run(cmd, check=False)

    if result.returncode != 0:
        return None

    file_type = _decode(result.stdout).strip().lower()
    if not file_type:
        return None
    if "directory" in file_type:
        return "directory"
    return "file"  # Regular files, links and specials all count as files


async def _pump(stream: "asyncssh.SSHReader[str]", assembler: "LineAssembler") -> str:
    """Read a stream chunk by chunk until EOF, feeding the assembler."""
    chunks: list[str] = []
    while True:
        chunk = _decode(await stream.read(CHUNK_SIZE))
        if not chunk:
            break
        chunks.append(chunk)
        assembler.feed(chunk)
    assembler.close()
    return "".join(chunks)


async def stream_process(
    conn: "asyncssh.SSHClientConnection",
    command: str,
    output: "SessionOutput",
    stdin_data: str | None = None,
    encoding: str = "utf-8",
    pty: bool = False,
) -> CommandResult:
    """Run ``command`` and echo its output line by line as it arrives.

    Args:
        conn: SSH connection to execute command on
        command: Shell command line
        output: Session output receiving stdout/stderr lines
        stdin_data: Text written to the process stdin, then EOF
        encoding: Remote text encoding
        pty: Request a pseudo terminal

    Returns:
        CommandResult with full stdout, stderr, and return code.
    """
    process = await conn.create_process(
        command,
        encoding=encoding,
        errors="replace",
        term_type="xterm" if pty else None,
    )
    try:
        if stdin_data is not None:
            process.stdin.write(stdin_data)
        process.stdin.write_eof()

        stdout, stderr = await asyncio.gather(
            _pump(process.stdout, output.assembler("stdout")),
            _pump(process.stderr, output.assembler("stderr")),
        )
        completed = await process.wait()
    finally:
        process.close()

    returncode = completed.returncode
    if returncode is None:
        returncode = -1

    return CommandResult(output=stdout, error=stderr, returncode=returncode)


class EntryFilter:
    """Select directory entries for a transfer.

    ``filter_by`` names the entry attribute to test (``name`` is the base
    name, ``path`` the full path); ``filter_regex`` is searched in it. No
    regex selects everything.
    """

    def __init__(self, filter_by: str | None = "name", filter_regex: str | None = None):
        """Initialize entry filter.

        Raises:
            InvalidFieldError: If filter_by is unknown or the regex is invalid
        """
        self.filter_by = (filter_by or "name").strip()
        if self.filter_by not in FILTER_ATTRIBUTES:
            raise InvalidFieldError(
                f"filterBy must be one of {', '.join(FILTER_ATTRIBUTES)}, "
                f"got '{self.filter_by}'",
                "filterBy",
            )
        self.filter_regex = filter_regex or None
        try:
            self._pattern = re.compile(self.filter_regex) if self.filter_regex else None
        except re.error as e:
            raise InvalidFieldError(f"filterRegex is not a valid pattern: {e}", "filterRegex") from e

    @property
    def active(self) -> bool:
        return self._pattern is not None

    def __call__(self, name: str, path: str) -> bool:
        if self._pattern is None:
            return True
        value = name if self.filter_by == "name" else path
        return self._pattern.search(value) is not None

    def describe(self) -> str:
        if not self.active:
            return "no filter"
        return f"{self.filter_by} =~ /{self.filter_regex}/"
