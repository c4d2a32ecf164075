"""Error taxonomy for SSH steps.

Validation and usage errors are raised before any I/O and never retried.
Remote and transfer errors honour ``fail_on_error``. Transport errors always
propagate because the session itself is unusable.
"""


class SSHStepsError(Exception):
    """Base class for every error raised by ssh_steps."""


class ValidationError(SSHStepsError, ValueError):
    """Malformed or missing remote descriptor or step parameter."""


class MissingFieldError(ValidationError):
    """A required field is absent or empty."""

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message)


class InvalidFieldError(ValidationError):
    """A field is present but has an unusable value."""

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message)


class RemoteCommandError(SSHStepsError):
    """Remote command, script or delete exited non-zero."""

    def __init__(self, command: str, exit_code: int, remote: str | None = None):
        """Initialize remote command error.

        Args:
            command: Command that failed (never the script body)
            exit_code: Remote exit status
            remote: Name of the remote the command ran on
        """
        self.command = command
        self.exit_code = exit_code
        self.remote = remote
        where = f" on {remote}" if remote else ""
        super().__init__(
            f"Command '{command}' failed{where} with exit status {exit_code}"
        )


class TransferError(SSHStepsError):
    """File get/put could not complete. Carries paths and counts only."""


class TransportError(SSHStepsError):
    """Connection to the remote (or a gateway) failed or dropped."""

    def __init__(self, remote: str, original_error: BaseException):
        self.remote = remote
        self.original_error = original_error
        super().__init__(f"Cannot connect to {remote}: {original_error}")


class ChannelUnavailableError(SSHStepsError):
    """The invocation context does not provide a channel to run on."""


class CancellationError(SSHStepsError):
    """A run was stopped externally.

    Errors raised by the work after cancellation began are kept in
    ``suppressed`` instead of being reported on their own.
    """

    def __init__(self, message: str = "Execution was cancelled"):
        super().__init__(message)
        self.suppressed: list[BaseException] = []

    def add_suppressed(self, error: BaseException) -> None:
        """Record a secondary error raised after cancellation."""
        self.suppressed.append(error)
        self.add_note(f"Suppressed: {type(error).__name__}: {error}")


class UnsupportedResumeError(SSHStepsError):
    """In-flight executions cannot be reconstructed after a restart."""
