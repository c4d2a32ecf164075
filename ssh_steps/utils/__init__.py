"""Utility modules for SSH steps."""

from ssh_steps.utils.console import ConsoleFormatter, stream_supports_color
from ssh_steps.utils.shell import quote_path, script_interpreter, sudo_wrap

__all__ = [
    "ConsoleFormatter",
    "quote_path",
    "script_interpreter",
    "stream_supports_color",
    "sudo_wrap",
]
