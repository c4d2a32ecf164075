"""SSH host key policy.

Resolves the known_hosts file for a remote when its connection is opened.
Validation only checks that a policy was given; the file itself is looked
up here.
"""

import logging
import os
from pathlib import Path

from ssh_steps.errors import InvalidFieldError
from ssh_steps.models import RemoteConfig

logger = logging.getLogger(__name__)


class HostKeyPolicy:
    """Host key verification settings for one remote hop."""

    def __init__(self, remote: RemoteConfig):
        """Initialize host key policy.

        Args:
            remote: Validated remote (or gateway) descriptor

        Raises:
            InvalidFieldError: If knownHosts points at a missing file
        """
        self.remote_name = remote.name
        self._known_hosts = self._resolve_known_hosts(remote)

    def _resolve_known_hosts(self, remote: RemoteConfig) -> str | None:
        """Resolve known_hosts path.

        Returns:
            Path to known_hosts file or None to disable verification
        """
        if remote.known_hosts:
            path = Path(os.path.expanduser(remote.known_hosts))
            if not path.exists():
                raise InvalidFieldError(
                    f"knownHosts file not found for {remote.name}: {path}\n\n"
                    f"To fix this:\n"
                    f"1. Add host keys: ssh-keyscan {remote.host} >> {path}\n"
                    f"2. Or set allowAnyHosts: true (NOT RECOMMENDED)",
                    "knownHosts",
                )
            return str(path)

        # Validation guarantees allowAnyHosts is set here
        logger.warning(
            "Host key verification DISABLED for %s (allowAnyHosts=true). "
            "Vulnerable to MITM attacks.",
            remote.label,
        )
        return None

    def get_known_hosts_path(self) -> str | None:
        """Get path to known_hosts file.

        Returns:
            Path string or None if verification disabled
        """
        return self._known_hosts

    def is_enabled(self) -> bool:
        return self._known_hosts is not None
