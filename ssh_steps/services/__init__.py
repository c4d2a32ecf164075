"""Remote session services."""

from ssh_steps.services.connection import connect_with_retry, open_session
from ssh_steps.services.executors import EntryFilter, stat_path, stream_process
from ssh_steps.services.output import LineAssembler, SessionOutput
from ssh_steps.services.session import RemoteSessionService

__all__ = [
    "EntryFilter",
    "LineAssembler",
    "RemoteSessionService",
    "SessionOutput",
    "connect_with_retry",
    "open_session",
    "stat_path",
    "stream_process",
]
