"""SSH steps: run commands, scripts and file transfers on remote hosts."""

from ssh_steps.errors import (
    CancellationError,
    ChannelUnavailableError,
    InvalidFieldError,
    MissingFieldError,
    RemoteCommandError,
    SSHStepsError,
    TransferError,
    TransportError,
    UnsupportedResumeError,
    ValidationError,
)

__version__ = "0.1.0"

__all__ = [
    "CancellationError",
    "ChannelUnavailableError",
    "InvalidFieldError",
    "MissingFieldError",
    "RemoteCommandError",
    "SSHStepsError",
    "TransferError",
    "TransportError",
    "UnsupportedResumeError",
    "ValidationError",
    "__version__",
]
