"""Operation result data models."""

from dataclasses import dataclass


@dataclass
class CommandResult:
    """Result of a remote command or script execution."""

    output: str
    error: str
    returncode: int
    dry_run: bool = False

    @property
    def success(self) -> bool:
        return self.returncode == 0


@dataclass
class TransferResult:
    """Result of a file transfer operation.

    Only paths and counts are kept here, never file content.
    """

    success: bool
    message: str
    items_transferred: int = 0
    dry_run: bool = False
